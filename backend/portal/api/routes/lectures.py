from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.core.exceptions import (
    ConflictError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ValidationFailedError,
)
from portal.models.lecture import DayOfWeek, Lecture, LectureStatus
from portal.models.user import User, UserRole
from portal.schemas.lecture import (
    AffectedLecturesOut,
    LectureConflictListOut,
    LectureConflictOut,
    LectureCreate,
    LectureEnvelope,
    LectureListOut,
    LectureOccurrenceOut,
    LectureOut,
    LectureUpdate,
    parse_time_to_minutes,
    split_time_slot,
)
from portal.services.affected_lectures import LectureOccurrence, affected_lecture_ids, resolve
from portal.services.app_settings import get_int_setting
from portal.services.audit import log_activity
from portal.services.lectures import conflicts_for, detect_schedule_conflicts, teacher_lectures

router = APIRouter()

REQUIRED_LECTURE_FIELDS = {"subject", "class_year", "day_of_week", "time_slot", "scheduled_teacher_id", "status"}


def occurrence_out(occurrence: LectureOccurrence) -> LectureOccurrenceOut:
    base = LectureOut.model_validate(occurrence.lecture).model_dump()
    return LectureOccurrenceOut(**base, specific_date=occurrence.specific_date)


def _load_teacher(db: Session, teacher_id: str) -> User:
    teacher = db.get(User, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return teacher


def _ensure_can_manage(current_user: User, teacher: User) -> None:
    if current_user.effective_role == UserRole.admin:
        return
    if not current_user.department or teacher.department != current_user.department:
        raise PermissionDeniedError("HODs can only manage lectures within their department")


def _raise_on_conflicts(db: Session, lecture: Lecture) -> None:
    conflicts = conflicts_for(db, lecture)
    if conflicts:
        raise ConflictError(
            conflicts[0].description,
            details={
                "conflicts": [
                    {"kind": item.kind, "lecture_ids": item.lecture_ids, "description": item.description}
                    for item in conflicts
                ]
            },
        )


@router.get("/lectures", response_model=LectureListOut)
def list_lectures(
    teacher_id: str | None = Query(default=None),
    day_of_week: DayOfWeek | None = Query(default=None),
    class_year: str | None = Query(default=None),
    include_cancelled: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LectureListOut:
    query = select(Lecture)
    if teacher_id:
        query = query.where(Lecture.scheduled_teacher_id == teacher_id)
    if day_of_week is not None:
        query = query.where(Lecture.day_of_week == day_of_week)
    if class_year:
        query = query.where(Lecture.class_year == class_year)
    if not include_cancelled:
        query = query.where(Lecture.status != LectureStatus.cancelled)
    query = query.order_by(Lecture.created_at.asc())
    return LectureListOut(lectures=list(db.execute(query).scalars()))


@router.get("/lectures/affected", response_model=AffectedLecturesOut)
def list_affected_lectures(
    start_date: date = Query(...),
    end_date: date = Query(...),
    teacher_id: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> AffectedLecturesOut:
    target_id = teacher_id or current_user.id
    if target_id != current_user.id:
        if current_user.effective_role == UserRole.teacher:
            raise PermissionDeniedError("Teachers can only resolve their own lectures")
        _ensure_can_manage(current_user, _load_teacher(db, target_id))

    if start_date <= end_date:
        total_days = (end_date - start_date).days + 1
        max_days = get_int_setting(db, "max_leave_days_per_request", 30)
        if total_days > max_days:
            raise ValidationFailedError(
                f"A leave range cannot exceed {max_days} day(s)",
                details={"total_days": total_days, "max_days": max_days},
            )
    occurrences = resolve(teacher_lectures(db, target_id), start_date, end_date)
    return AffectedLecturesOut(
        teacher_id=target_id,
        start_date=start_date,
        end_date=end_date,
        lectures=[occurrence_out(item) for item in occurrences],
        lecture_ids=affected_lecture_ids(occurrences),
    )


@router.get("/lectures/conflicts", response_model=LectureConflictListOut)
def list_lecture_conflicts(
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> LectureConflictListOut:
    query = select(Lecture).where(Lecture.status != LectureStatus.cancelled)
    if current_user.effective_role == UserRole.hod:
        query = query.where(Lecture.department == current_user.department)
    conflicts = detect_schedule_conflicts(list(db.execute(query).scalars()))
    return LectureConflictListOut(
        conflicts=[
            LectureConflictOut(
                kind=item.kind,
                day_of_week=item.day_of_week,
                lecture_ids=item.lecture_ids,
                description=item.description,
            )
            for item in conflicts
        ]
    )


@router.get("/lectures/{lecture_id}", response_model=LectureEnvelope)
def get_lecture(
    lecture_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LectureEnvelope:
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        raise ResourceNotFoundError("Lecture", lecture_id)
    return LectureEnvelope(lecture=lecture)


@router.post("/lectures", response_model=LectureEnvelope, status_code=status.HTTP_201_CREATED)
def create_lecture(
    payload: LectureCreate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> LectureEnvelope:
    teacher = _load_teacher(db, payload.scheduled_teacher_id)
    _ensure_can_manage(current_user, teacher)

    lecture = Lecture(
        **payload.model_dump(),
        department=teacher.department,
        status=LectureStatus.scheduled,
    )
    _raise_on_conflicts(db, lecture)
    db.add(lecture)
    db.flush()
    log_activity(
        db,
        user=current_user,
        action="lecture.create",
        entity_type="lecture",
        entity_id=lecture.id,
        details={"teacher_id": teacher.id, "day_of_week": lecture.day_of_week.value, "time_slot": lecture.time_slot},
    )
    db.commit()
    db.refresh(lecture)
    return LectureEnvelope(message="Lecture created", lecture=lecture)


@router.put("/lectures/{lecture_id}", response_model=LectureEnvelope)
def update_lecture(
    lecture_id: str,
    payload: LectureUpdate,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> LectureEnvelope:
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        raise ResourceNotFoundError("Lecture", lecture_id)
    _ensure_can_manage(current_user, _load_teacher(db, lecture.scheduled_teacher_id))

    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key not in REQUIRED_LECTURE_FIELDS
    }
    if "scheduled_teacher_id" in data:
        teacher = _load_teacher(db, data["scheduled_teacher_id"])
        _ensure_can_manage(current_user, teacher)
        data["department"] = teacher.department
    if "time_slot" in data and data["time_slot"]:
        start, end = split_time_slot(data["time_slot"])
        data.setdefault("start_time", start)
        data.setdefault("end_time", end)

    for key, value in data.items():
        setattr(lecture, key, value)
    if "time_slot" not in data and ("start_time" in data or "end_time" in data):
        if lecture.start_time and lecture.end_time:
            lecture.time_slot = f"{lecture.start_time} - {lecture.end_time}"
    if lecture.start_time and lecture.end_time:
        if parse_time_to_minutes(lecture.end_time) <= parse_time_to_minutes(lecture.start_time):
            db.rollback()
            raise ValidationFailedError("End time must be after start time")

    if lecture.status != LectureStatus.cancelled:
        try:
            _raise_on_conflicts(db, lecture)
        except ConflictError:
            db.rollback()
            raise

    log_activity(
        db,
        user=current_user,
        action="lecture.update",
        entity_type="lecture",
        entity_id=lecture.id,
        details={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(lecture)
    return LectureEnvelope(message="Lecture updated", lecture=lecture)


@router.delete("/lectures/{lecture_id}")
def delete_lecture(
    lecture_id: str,
    current_user: User = Depends(require_roles(UserRole.admin, UserRole.hod)),
    db: Session = Depends(get_db),
) -> dict:
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        raise ResourceNotFoundError("Lecture", lecture_id)
    _ensure_can_manage(current_user, _load_teacher(db, lecture.scheduled_teacher_id))

    db.delete(lecture)
    log_activity(db, user=current_user, action="lecture.delete", entity_type="lecture", entity_id=lecture_id)
    db.commit()
    return {"success": True, "message": "Lecture deleted"}
