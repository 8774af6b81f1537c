from collections import defaultdict
from datetime import date, datetime, timezone
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import false, select
from sqlalchemy.orm import Session

from portal.api.deps import get_current_user, get_db, require_roles
from portal.api.routes.lectures import occurrence_out
from portal.core.config import get_settings
from portal.core.exceptions import ConflictError, PermissionDeniedError, ResourceNotFoundError, ValidationFailedError
from portal.models.lecture import DayOfWeek, Lecture, LectureStatus
from portal.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from portal.models.notification import NotificationPriority, NotificationType
from portal.models.user import User, UserRole
from portal.schemas.leave import (
    AvailableTeacherListOut,
    AvailableTeacherOut,
    LeaveCalendarOut,
    LeaveRequestCreate,
    LeaveRequestListOut,
    LeaveRequestOut,
    LeaveReview,
    LeaveReviewOut,
    LeaveSubmitOut,
    LeaveTypeListOut,
    LeaveTypeOut,
    SubstituteAssignmentCreate,
    SubstituteAssignmentEnvelope,
    SubstituteAssignmentOut,
    SubstituteDetailOut,
    SubstituteNeedListOut,
    SubstituteNeedOut,
    SubstituteReportOut,
    SubstituteRequestCreate,
    SubstituteRequestOut,
    SubstituteSummaryOut,
    TeacherScheduleOut,
)
from portal.schemas.lecture import parse_time_to_minutes, split_time_slot
from portal.services.affected_lectures import (
    LectureOccurrence,
    affected_lecture_ids,
    lectures_on,
    resolve,
    weekday_name,
)
from portal.services.app_settings import get_int_setting
from portal.services.audit import log_activity
from portal.services.lectures import teacher_lectures
from portal.services.leave_workflow import LEAVE_TYPE_CATALOGUE, ensure_can_review, review_transition
from portal.services.notifications import Notice, notify_roles, notify_users
from portal.services.substitutes import (
    assign_substitute,
    available_substitutes,
    needing_substitutes,
    substitute_report,
)

settings = get_settings()
router = APIRouter()
logger = logging.getLogger(__name__)

REVIEWER_ROLES = (UserRole.admin, UserRole.hod)


def _hydrate_leave_requests(db: Session, requests: list[LeaveRequest]) -> list[LeaveRequestOut]:
    if not requests:
        return []

    user_ids = {item.teacher_id for item in requests} | {item.reviewed_by_id for item in requests if item.reviewed_by_id}
    users = {item.id: item for item in db.execute(select(User).where(User.id.in_(user_ids))).scalars()}

    output: list[LeaveRequestOut] = []
    for request in requests:
        teacher = users.get(request.teacher_id)
        reviewer = users.get(request.reviewed_by_id) if request.reviewed_by_id else None
        output.append(
            LeaveRequestOut(
                id=request.id,
                teacher_id=request.teacher_id,
                teacher_name=teacher.name if teacher else None,
                department=teacher.department if teacher else None,
                start_date=request.start_date,
                end_date=request.end_date,
                total_days=request.total_days,
                reason=request.reason,
                leave_type=request.leave_type,
                affected_lectures=list(request.affected_lectures or []),
                notes=request.notes,
                is_hod_request=request.is_hod_request,
                delegate_responsibilities=request.delegate_responsibilities,
                status=request.status,
                review_comments=request.review_comments,
                reviewed_by_id=request.reviewed_by_id,
                reviewer_name=reviewer.name if reviewer else None,
                reviewed_at=request.reviewed_at,
                created_at=request.created_at,
            )
        )
    return output


def _department_scoped(query, current_user: User):
    if current_user.effective_role == UserRole.admin:
        return query
    if not current_user.department:
        return query.where(false())
    return query.join(User, User.id == LeaveRequest.teacher_id).where(User.department == current_user.department)


def _load_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise ResourceNotFoundError("Teacher", user_id)
    return user


def _ensure_same_department(current_user: User, teacher: User) -> None:
    if current_user.effective_role == UserRole.admin or current_user.id == teacher.id:
        return
    if current_user.effective_role == UserRole.hod and current_user.department and teacher.department == current_user.department:
        return
    raise PermissionDeniedError("You can only act on teachers within your department")


def _selected_lecture_ids(
    requested: list[str] | None,
    lectures: list[Lecture],
    start_date: date,
    end_date: date,
) -> list[str]:
    if requested is None:
        return affected_lecture_ids(resolve(lectures, start_date, end_date))
    selected = [item for item in dict.fromkeys(requested) if item]
    known = {item.id for item in lectures}
    unknown = [item for item in selected if item not in known]
    if unknown:
        raise ValidationFailedError(
            "Affected lectures must belong to the requesting teacher",
            details={"invalid_lecture_ids": unknown},
        )
    return selected


@router.get("/leaves/types", response_model=LeaveTypeListOut)
def list_leave_types(current_user: User = Depends(get_current_user)) -> LeaveTypeListOut:
    return LeaveTypeListOut(
        leaveTypes=[
            LeaveTypeOut(id=leave_type, name=name, max_days=max_days, default_days=default_days)
            for leave_type, name, max_days, default_days in LEAVE_TYPE_CATALOGUE
        ]
    )


@router.post("/leaves", response_model=LeaveSubmitOut, status_code=status.HTTP_201_CREATED)
def submit_leave_request(
    payload: LeaveRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaveSubmitOut:
    teacher_id = payload.teacher_id or current_user.id
    if teacher_id != current_user.id and current_user.effective_role != UserRole.admin:
        raise PermissionDeniedError("You can only submit leave requests for yourself")
    teacher = _load_user(db, teacher_id)

    if payload.start_date > payload.end_date:
        raise ValidationFailedError("Start date must be on or before end date")
    total_days = (payload.end_date - payload.start_date).days + 1
    max_days = get_int_setting(db, "max_leave_days_per_request", 30)
    if total_days > max_days:
        raise ValidationFailedError(
            f"A single leave request cannot exceed {max_days} day(s)",
            details={"total_days": total_days, "max_days": max_days},
        )

    lectures = teacher_lectures(db, teacher.id)
    selected = _selected_lecture_ids(payload.affected_lectures, lectures, payload.start_date, payload.end_date)
    is_hod_request = teacher.role == UserRole.hod

    request = LeaveRequest(
        teacher_id=teacher.id,
        start_date=payload.start_date,
        end_date=payload.end_date,
        total_days=total_days,
        reason=payload.reason,
        leave_type=payload.leave_type,
        affected_lectures=selected,
        notes=payload.notes,
        is_hod_request=is_hod_request,
        delegate_responsibilities=payload.delegate_responsibilities if is_hod_request else None,
        status=LeaveStatus.pending,
    )
    db.add(request)
    db.flush()

    message = (
        f"{teacher.name} has requested {payload.reason.value} leave from "
        f"{payload.start_date.isoformat()} to {payload.end_date.isoformat()} ({total_days} day(s))."
    )
    to_admins = is_hod_request or teacher.role == UserRole.admin or not teacher.department
    notice = Notice(
        title="New Leave Request",
        message=message,
        notification_type=NotificationType.leave_request,
        priority=NotificationPriority.high,
        action_url="/admin/leave-management" if to_admins else "/leave-management",
    )
    if to_admins:
        notify_roles(db, [UserRole.admin], notice, exclude_user_id=teacher.id)
    else:
        notify_roles(db, [UserRole.hod], notice, department=teacher.department, exclude_user_id=teacher.id)
    log_activity(
        db,
        user=current_user,
        action="leave.submit",
        entity_type="leave_request",
        entity_id=request.id,
        details={
            "teacher_id": teacher.id,
            "start_date": payload.start_date.isoformat(),
            "end_date": payload.end_date.isoformat(),
            "affected_lectures": len(selected),
        },
    )
    db.commit()
    db.refresh(request)
    logger.info("Leave request %s submitted for %s (%s day(s))", request.id, teacher.email, total_days)
    return LeaveSubmitOut(
        message="Leave request submitted successfully",
        leave_id=request.id,
        request=_hydrate_leave_requests(db, [request])[0],
    )


@router.get("/leaves/mine", response_model=LeaveRequestListOut)
def list_my_leave_requests(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaveRequestListOut:
    query = (
        select(LeaveRequest)
        .where(LeaveRequest.teacher_id == current_user.id)
        .order_by(LeaveRequest.created_at.desc())
    )
    return LeaveRequestListOut(requests=_hydrate_leave_requests(db, list(db.execute(query).scalars())))


@router.get("/leaves", response_model=LeaveRequestListOut)
def list_leave_requests(
    leave_status: LeaveStatus | None = Query(default=None, alias="status"),
    teacher_id: str | None = Query(default=None),
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> LeaveRequestListOut:
    query = _department_scoped(select(LeaveRequest), current_user)
    if leave_status is not None:
        query = query.where(LeaveRequest.status == leave_status)
    if teacher_id:
        query = query.where(LeaveRequest.teacher_id == teacher_id)
    query = query.order_by(LeaveRequest.start_date.desc(), LeaveRequest.created_at.desc())
    return LeaveRequestListOut(requests=_hydrate_leave_requests(db, list(db.execute(query).scalars())))


@router.get("/leaves/pending", response_model=LeaveRequestListOut)
def list_pending_leave_requests(
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> LeaveRequestListOut:
    query = _department_scoped(select(LeaveRequest), current_user).where(LeaveRequest.status == LeaveStatus.pending)
    if current_user.effective_role == UserRole.hod:
        query = query.where(LeaveRequest.is_hod_request.is_(False), LeaveRequest.teacher_id != current_user.id)
    query = query.order_by(LeaveRequest.created_at.asc())
    return LeaveRequestListOut(requests=_hydrate_leave_requests(db, list(db.execute(query).scalars())))


@router.get("/leaves/calendar", response_model=LeaveCalendarOut)
def list_leave_calendar(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaveCalendarOut:
    query = _department_scoped(select(LeaveRequest), current_user).where(LeaveRequest.status == LeaveStatus.approved)
    query = query.order_by(LeaveRequest.start_date.desc())
    return LeaveCalendarOut(leaves=_hydrate_leave_requests(db, list(db.execute(query).scalars())))


@router.get("/leaves/teacher/schedule", response_model=TeacherScheduleOut)
def get_teacher_schedule(
    day: date = Query(alias="date"),
    teacher_id: str | None = Query(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TeacherScheduleOut:
    teacher = _load_user(db, teacher_id or current_user.id)
    _ensure_same_department(current_user, teacher)
    lectures = sorted(lectures_on(teacher_lectures(db, teacher.id), day), key=lambda item: item.start_time or "")
    return TeacherScheduleOut(
        date=day,
        day_of_week=weekday_name(day),
        lectures=[occurrence_out(LectureOccurrence(lecture=item, specific_date=day)) for item in lectures],
    )


@router.get("/leaves/lectures/needing-substitutes", response_model=SubstituteNeedListOut)
def list_lectures_needing_substitutes(
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> SubstituteNeedListOut:
    department = None if current_user.effective_role == UserRole.admin else current_user.department
    needs = needing_substitutes(db, department=department)
    return SubstituteNeedListOut(
        lectures=[
            SubstituteNeedOut(
                **occurrence_out(item.occurrence).model_dump(),
                leave_id=item.leave.id,
                leave_reason=item.leave.reason.value,
                original_teacher_name=item.teacher.name if item.teacher else None,
            )
            for item in needs
        ]
    )


@router.get("/leaves/teachers/available", response_model=AvailableTeacherListOut)
def list_available_teachers(
    lecture_id: str = Query(...),
    day: date = Query(alias="date"),
    ignore_department: bool = Query(default=False),
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> AvailableTeacherListOut:
    lecture = db.get(Lecture, lecture_id)
    if lecture is None:
        raise ResourceNotFoundError("Lecture", lecture_id)
    if not lectures_on([lecture], day):
        raise ValidationFailedError(
            f"{lecture.subject} is not held on {weekday_name(day)}",
            details={"day_of_week": lecture.day_of_week.value, "date": day.isoformat()},
        )

    candidates = available_substitutes(
        db,
        lecture=lecture,
        day=day,
        max_daily_load=settings.substitute_max_daily_load,
        ignore_department=ignore_department,
    )
    return AvailableTeacherListOut(
        available=[
            AvailableTeacherOut(
                id=item.teacher.id,
                name=item.teacher.name,
                email=item.teacher.email,
                department=item.teacher.department,
                designation=item.teacher.designation,
                daily_load=item.daily_load,
            )
            for item in candidates
        ],
        lecture=occurrence_out(LectureOccurrence(lecture=lecture, specific_date=day)),
    )


@router.post(
    "/leaves/substitute/assign",
    response_model=SubstituteAssignmentEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def create_substitute_assignment(
    payload: SubstituteAssignmentCreate,
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> SubstituteAssignmentEnvelope:
    leave = db.get(LeaveRequest, payload.leave_request_id)
    if leave is None:
        raise ResourceNotFoundError("Leave request", payload.leave_request_id)
    _ensure_same_department(current_user, _load_user(db, leave.teacher_id))

    assignment = assign_substitute(
        db,
        leave_request_id=payload.leave_request_id,
        lecture_id=payload.lecture_id,
        lecture_date=payload.lecture_date,
        substitute_teacher_id=payload.substitute_teacher_id,
        assigned_by=current_user,
        max_daily_load=settings.substitute_max_daily_load,
        notes=payload.notes,
    )
    lecture = db.get(Lecture, assignment.lecture_id)
    notify_users(
        db,
        [assignment.substitute_teacher_id],
        Notice(
            title="Substitute Lecture Assigned",
            message=(
                f"You have been assigned to cover {lecture.subject} ({lecture.class_year}) "
                f"on {assignment.lecture_date.isoformat()} at {lecture.time_slot}."
            ),
            notification_type=NotificationType.substitution,
            priority=NotificationPriority.high,
            action_url="/teacher/schedule",
            deliver_email=True,
        ),
    )
    log_activity(
        db,
        user=current_user,
        action="leave.substitute.assign",
        entity_type="substitute_assignment",
        entity_id=assignment.id,
        details={
            "leave_request_id": assignment.leave_request_id,
            "lecture_id": assignment.lecture_id,
            "lecture_date": assignment.lecture_date.isoformat(),
            "substitute_teacher_id": assignment.substitute_teacher_id,
        },
    )
    db.commit()
    db.refresh(assignment)
    return SubstituteAssignmentEnvelope(message="Substitute assigned", assignment=assignment)


@router.post(
    "/leaves/substitute/request",
    response_model=SubstituteRequestOut,
    status_code=status.HTTP_201_CREATED,
)
def request_substitute(
    payload: SubstituteRequestCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SubstituteRequestOut:
    """Record a one-day absence from a single lecture so reviewers can arrange cover."""
    teacher = _load_user(db, payload.teacher_id or current_user.id)
    if teacher.id != current_user.id:
        if current_user.effective_role == UserRole.teacher:
            raise PermissionDeniedError("You can only request substitutes for yourself")
        _ensure_same_department(current_user, teacher)

    start_time, end_time = split_time_slot(payload.time_slot)
    if start_time is None or end_time is None or parse_time_to_minutes(end_time) <= parse_time_to_minutes(start_time):
        raise ValidationFailedError(
            "Time slot must look like HH:MM-HH:MM",
            details={"time_slot": payload.time_slot},
        )
    day = DayOfWeek(weekday_name(payload.lecture_date))

    lecture = db.execute(
        select(Lecture).where(
            Lecture.scheduled_teacher_id == teacher.id,
            Lecture.day_of_week == day,
            Lecture.start_time == start_time,
            Lecture.end_time == end_time,
            Lecture.subject == payload.subject,
            Lecture.class_year == payload.class_year,
            Lecture.status != LectureStatus.cancelled,
        )
    ).scalars().first()
    if lecture is None:
        lecture = Lecture(
            subject=payload.subject,
            class_year=payload.class_year,
            division=payload.division.strip().upper() if payload.division else None,
            day_of_week=day,
            time_slot=f"{start_time} - {end_time}",
            start_time=start_time,
            end_time=end_time,
            department=teacher.department,
            scheduled_teacher_id=teacher.id,
            status=LectureStatus.scheduled,
        )
        db.add(lecture)
        db.flush()

    existing = db.execute(
        select(LeaveRequest).where(
            LeaveRequest.teacher_id == teacher.id,
            LeaveRequest.status != LeaveStatus.rejected,
            LeaveRequest.start_date <= payload.lecture_date,
            LeaveRequest.end_date >= payload.lecture_date,
        )
    ).scalars()
    if any(lecture.id in (item.affected_lectures or []) for item in existing):
        raise ConflictError(
            "This lecture is already covered by a leave request",
            details={"lecture_id": lecture.id, "date": payload.lecture_date.isoformat()},
        )

    summary = f"Ad-hoc substitute request: {lecture.subject} for {lecture.class_year} at {lecture.time_slot}"
    request = LeaveRequest(
        teacher_id=teacher.id,
        start_date=payload.lecture_date,
        end_date=payload.lecture_date,
        total_days=1,
        reason=payload.reason,
        leave_type=LeaveType.casual,
        affected_lectures=[lecture.id],
        notes=f"{summary}\n{payload.notes}" if payload.notes else summary,
        is_hod_request=teacher.role == UserRole.hod,
        # Cover requests skip review and go straight to the substitute queue.
        status=LeaveStatus.approved,
    )
    db.add(request)
    db.flush()

    notice = Notice(
        title="Substitute Needed",
        message=(
            f"{teacher.name} needs a substitute for {lecture.subject} ({lecture.class_year}) "
            f"on {payload.lecture_date.isoformat()} at {lecture.time_slot}."
        ),
        notification_type=NotificationType.substitution,
        priority=NotificationPriority.high,
        action_url="/substitutes",
    )
    if teacher.role in (UserRole.hod, UserRole.admin) or not teacher.department:
        notify_roles(db, [UserRole.admin], notice, exclude_user_id=teacher.id)
    else:
        notify_roles(db, [UserRole.hod], notice, department=teacher.department, exclude_user_id=teacher.id)
    log_activity(
        db,
        user=current_user,
        action="leave.substitute.request",
        entity_type="leave_request",
        entity_id=request.id,
        details={"teacher_id": teacher.id, "lecture_id": lecture.id, "date": payload.lecture_date.isoformat()},
    )
    db.commit()
    logger.info("Substitute requested for lecture %s on %s", lecture.id, payload.lecture_date.isoformat())
    return SubstituteRequestOut(
        message="Substitute request submitted successfully",
        request_id=request.id,
        lecture_id=lecture.id,
    )


@router.get("/leaves/substitute/report", response_model=SubstituteReportOut)
def get_substitute_report(
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> SubstituteReportOut:
    if start_date > end_date:
        raise ValidationFailedError("Start date must be on or before end date")
    assignments = substitute_report(db, start_date=start_date, end_date=end_date)

    user_ids = {item.substitute_teacher_id for item in assignments} | {item.original_teacher_id for item in assignments}
    users = {item.id: item for item in db.execute(select(User).where(User.id.in_(user_ids))).scalars()}
    lectures = {
        item.id: item
        for item in db.execute(select(Lecture).where(Lecture.id.in_({a.lecture_id for a in assignments}))).scalars()
    }
    leaves = {
        item.id: item
        for item in db.execute(
            select(LeaveRequest).where(LeaveRequest.id.in_({a.leave_request_id for a in assignments}))
        ).scalars()
    }

    details: list[SubstituteDetailOut] = []
    subjects: dict[str, list[str]] = defaultdict(list)
    for item in assignments:
        original = users.get(item.original_teacher_id)
        if current_user.effective_role == UserRole.hod and (original is None or original.department != current_user.department):
            continue
        substitute = users.get(item.substitute_teacher_id)
        lecture = lectures.get(item.lecture_id)
        leave = leaves.get(item.leave_request_id)
        details.append(
            SubstituteDetailOut(
                **SubstituteAssignmentOut.model_validate(item).model_dump(),
                subject=lecture.subject if lecture else None,
                class_year=lecture.class_year if lecture else None,
                time_slot=lecture.time_slot if lecture else None,
                original_teacher_name=original.name if original else None,
                substitute_teacher_name=substitute.name if substitute else None,
                leave_reason=leave.reason.value if leave else None,
            )
        )
        if lecture is not None and lecture.subject not in subjects[item.substitute_teacher_id]:
            subjects[item.substitute_teacher_id].append(lecture.subject)

    counts: dict[str, int] = defaultdict(int)
    for detail in details:
        counts[detail.substitute_teacher_id] += 1
    summary = [
        SubstituteSummaryOut(
            substitute_teacher_id=teacher_id,
            substitute_name=users[teacher_id].name if teacher_id in users else None,
            department=users[teacher_id].department if teacher_id in users else None,
            lecture_count=count,
            subjects=subjects.get(teacher_id, []),
        )
        for teacher_id, count in sorted(counts.items(), key=lambda pair: (-pair[1], pair[0]))
    ]
    return SubstituteReportOut(summary=summary, details=details)


@router.get("/leaves/{leave_id}", response_model=LeaveRequestOut)
def get_leave_request(
    leave_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LeaveRequestOut:
    request = db.get(LeaveRequest, leave_id)
    if request is None:
        raise ResourceNotFoundError("Leave request", leave_id)
    if request.teacher_id != current_user.id:
        if current_user.effective_role == UserRole.teacher:
            raise PermissionDeniedError("You can only view your own leave requests")
        _ensure_same_department(current_user, _load_user(db, request.teacher_id))
    return _hydrate_leave_requests(db, [request])[0]


@router.put("/leaves/{leave_id}/review", response_model=LeaveReviewOut)
def review_leave_request(
    leave_id: str,
    payload: LeaveReview,
    current_user: User = Depends(require_roles(*REVIEWER_ROLES)),
    db: Session = Depends(get_db),
) -> LeaveReviewOut:
    request = db.get(LeaveRequest, leave_id)
    if request is None:
        raise ResourceNotFoundError("Leave request", leave_id)
    requester = db.get(User, request.teacher_id)
    ensure_can_review(current_user, request, requester)

    request.status = review_transition(request.status, payload.status)
    request.review_comments = payload.comments
    request.reviewed_by_id = current_user.id
    request.reviewed_at = datetime.now(timezone.utc)

    decision = "Approved" if request.status == LeaveStatus.approved else "Rejected"
    message = (
        f"Your leave request from {request.start_date.isoformat()} to {request.end_date.isoformat()} "
        f"has been {decision.lower()} by {current_user.name}."
    )
    if payload.comments:
        message += f" Comments: {payload.comments}"
    notify_users(
        db,
        [request.teacher_id],
        Notice(
            title=f"Leave Request {decision}",
            message=message,
            notification_type=NotificationType.leave_status,
            action_url="/my-leaves",
            deliver_email=True,
        ),
    )
    log_activity(
        db,
        user=current_user,
        action="leave.review",
        entity_type="leave_request",
        entity_id=request.id,
        details={"status": request.status.value, "teacher_id": request.teacher_id},
    )
    db.commit()
    db.refresh(request)
    logger.info("Leave request %s %s by %s", request.id, request.status.value, current_user.email)
    return LeaveReviewOut(
        message=f"Leave request {decision.lower()}",
        request=_hydrate_leave_requests(db, [request])[0],
    )
