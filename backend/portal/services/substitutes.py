"""Manual substitute cover for lectures missed during approved leave."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.core.exceptions import ConflictError, ResourceNotFoundError, ValidationFailedError
from portal.models.lecture import Lecture, LectureStatus
from portal.models.leave_request import LeaveRequest, LeaveStatus
from portal.models.substitute_assignment import SubstituteAssignment, SubstituteAssignmentStatus
from portal.models.user import User, UserRole
from portal.services.affected_lectures import LectureOccurrence, lectures_on, resolve
from portal.services.lectures import slots_overlap

logger = logging.getLogger(__name__)

TEACHING_ROLES = (UserRole.teacher, UserRole.hod)


@dataclass(frozen=True)
class SubstituteNeed:
    occurrence: LectureOccurrence
    leave: LeaveRequest
    teacher: User | None


@dataclass(frozen=True)
class SubstituteCandidate:
    teacher: User
    daily_load: int


def _active_assignments_on(db: Session, day: date) -> list[SubstituteAssignment]:
    return list(
        db.execute(
            select(SubstituteAssignment).where(
                SubstituteAssignment.lecture_date == day,
                SubstituteAssignment.status == SubstituteAssignmentStatus.assigned,
            )
        ).scalars()
    )


def _teachers_on_leave(db: Session, day: date) -> set[str]:
    return set(
        db.execute(
            select(LeaveRequest.teacher_id).where(
                LeaveRequest.status == LeaveStatus.approved,
                LeaveRequest.start_date <= day,
                LeaveRequest.end_date >= day,
            )
        ).scalars()
    )


def _scheduled_lectures(db: Session) -> list[Lecture]:
    return list(db.execute(select(Lecture).where(Lecture.status != LectureStatus.cancelled)).scalars())


def needing_substitutes(db: Session, *, department: str | None = None) -> list[SubstituteNeed]:
    leaves = list(
        db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.approved)
            .order_by(LeaveRequest.start_date.asc())
        ).scalars()
    )
    if not leaves:
        return []

    teacher_ids = {item.teacher_id for item in leaves}
    teachers = {item.id: item for item in db.execute(select(User).where(User.id.in_(teacher_ids))).scalars()}
    if department is not None:
        leaves = [item for item in leaves if teachers.get(item.teacher_id) and teachers[item.teacher_id].department == department]

    lecture_ids = {lecture_id for item in leaves for lecture_id in item.affected_lectures or []}
    lectures = {
        item.id: item
        for item in db.execute(
            select(Lecture).where(Lecture.id.in_(lecture_ids), Lecture.status != LectureStatus.cancelled)
        ).scalars()
    }
    covered = {
        (item.lecture_id, item.lecture_date)
        for item in db.execute(
            select(SubstituteAssignment).where(SubstituteAssignment.status == SubstituteAssignmentStatus.assigned)
        ).scalars()
    }

    needs: list[SubstituteNeed] = []
    for leave in leaves:
        affected = [lectures[lecture_id] for lecture_id in leave.affected_lectures or [] if lecture_id in lectures]
        for occurrence in resolve(affected, leave.start_date, leave.end_date):
            if (occurrence.lecture_id, occurrence.specific_date) in covered:
                continue
            needs.append(SubstituteNeed(occurrence=occurrence, leave=leave, teacher=teachers.get(leave.teacher_id)))
    needs.sort(key=lambda item: (item.occurrence.specific_date, item.occurrence.lecture.start_time or ""))
    return needs


def available_substitutes(
    db: Session,
    *,
    lecture: Lecture,
    day: date,
    max_daily_load: int,
    ignore_department: bool = False,
) -> list[SubstituteCandidate]:
    original = db.get(User, lecture.scheduled_teacher_id)
    query = select(User).where(
        User.id != lecture.scheduled_teacher_id,
        User.is_active.is_(True),
        User.role.in_(TEACHING_ROLES),
    )
    if not ignore_department:
        department = lecture.department or (original.department if original else None)
        query = query.where(User.department == department)
    teachers = list(db.execute(query.order_by(User.name.asc())).scalars())
    if not teachers:
        return []

    on_leave = _teachers_on_leave(db, day)
    day_lectures = lectures_on(_scheduled_lectures(db), day)
    assignments = _active_assignments_on(db, day)
    covered_lectures = {
        item.id: item
        for item in db.execute(
            select(Lecture).where(Lecture.id.in_({assignment.lecture_id for assignment in assignments}))
        ).scalars()
    }

    candidates: list[SubstituteCandidate] = []
    for teacher in teachers:
        if teacher.id in on_leave:
            continue
        own = [item for item in day_lectures if item.scheduled_teacher_id == teacher.id]
        covering = [
            covered_lectures[item.lecture_id]
            for item in assignments
            if item.substitute_teacher_id == teacher.id and item.lecture_id in covered_lectures
        ]
        load = len(own) + len(covering)
        if load >= max_daily_load:
            continue
        if any(slots_overlap(lecture, busy) for busy in own + covering):
            continue
        candidates.append(SubstituteCandidate(teacher=teacher, daily_load=load))

    candidates.sort(key=lambda item: (item.daily_load, item.teacher.name.lower()))
    return candidates


def assign_substitute(
    db: Session,
    *,
    leave_request_id: str,
    lecture_id: str,
    lecture_date: date,
    substitute_teacher_id: str,
    assigned_by: User,
    max_daily_load: int,
    notes: str | None = None,
) -> SubstituteAssignment:
    leave = db.get(LeaveRequest, leave_request_id)
    if leave is None:
        raise ResourceNotFoundError("Leave request", leave_request_id)
    if leave.status != LeaveStatus.approved:
        raise ValidationFailedError("Substitutes can only be assigned for approved leave")

    lecture = db.get(Lecture, lecture_id)
    if lecture is None or lecture_id not in (leave.affected_lectures or []):
        raise ValidationFailedError("Lecture is not affected by this leave request")
    if not any(item.specific_date == lecture_date for item in resolve([lecture], leave.start_date, leave.end_date)):
        raise ValidationFailedError("Lecture does not take place on the given date within the leave period")

    duplicate = db.execute(
        select(SubstituteAssignment).where(
            SubstituteAssignment.lecture_id == lecture_id,
            SubstituteAssignment.lecture_date == lecture_date,
            SubstituteAssignment.status == SubstituteAssignmentStatus.assigned,
        )
    ).scalar_one_or_none()
    if duplicate is not None:
        raise ConflictError("A substitute is already assigned to this lecture", details={"assignment_id": duplicate.id})

    substitute = db.get(User, substitute_teacher_id)
    if substitute is None:
        raise ResourceNotFoundError("Teacher", substitute_teacher_id)
    candidates = available_substitutes(
        db,
        lecture=lecture,
        day=lecture_date,
        max_daily_load=max_daily_load,
        ignore_department=True,
    )
    if substitute_teacher_id not in {item.teacher.id for item in candidates}:
        raise ConflictError("Selected teacher is not available for this lecture")

    assignment = SubstituteAssignment(
        leave_request_id=leave.id,
        lecture_id=lecture.id,
        lecture_date=lecture_date,
        original_teacher_id=lecture.scheduled_teacher_id,
        substitute_teacher_id=substitute.id,
        assigned_by_id=assigned_by.id,
        notes=notes,
        status=SubstituteAssignmentStatus.assigned,
    )
    db.add(assignment)
    db.flush()
    logger.info(
        "Assigned %s (%s) on %s to substitute %s",
        lecture.subject,
        lecture.time_slot,
        lecture_date.isoformat(),
        substitute.name,
    )
    return assignment


def substitute_report(db: Session, *, start_date: date, end_date: date) -> list[SubstituteAssignment]:
    return list(
        db.execute(
            select(SubstituteAssignment)
            .where(
                SubstituteAssignment.status == SubstituteAssignmentStatus.assigned,
                SubstituteAssignment.lecture_date >= start_date,
                SubstituteAssignment.lecture_date <= end_date,
            )
            .order_by(SubstituteAssignment.lecture_date.desc())
        ).scalars()
    )
