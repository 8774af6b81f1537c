from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from itertools import combinations

from sqlalchemy import select
from sqlalchemy.orm import Session

from portal.models.lecture import DayOfWeek, Lecture, LectureStatus
from portal.schemas.lecture import parse_time_to_minutes


@dataclass
class SlotConflict:
    kind: str
    day_of_week: DayOfWeek
    lecture_ids: list[str] = field(default_factory=list)
    description: str = ""


def teacher_lectures(db: Session, teacher_id: str, *, include_cancelled: bool = False) -> list[Lecture]:
    query = select(Lecture).where(Lecture.scheduled_teacher_id == teacher_id)
    if not include_cancelled:
        query = query.where(Lecture.status != LectureStatus.cancelled)
    query = query.order_by(Lecture.day_of_week, Lecture.start_time, Lecture.created_at)
    return list(db.execute(query).scalars())


def _time_window(lecture: Lecture) -> tuple[int, int] | None:
    if not lecture.start_time or not lecture.end_time:
        return None
    return parse_time_to_minutes(lecture.start_time), parse_time_to_minutes(lecture.end_time)


def slots_overlap(first: Lecture, second: Lecture) -> bool:
    if first.day_of_week != second.day_of_week:
        return False
    window_a = _time_window(first)
    window_b = _time_window(second)
    if window_a is None or window_b is None:
        return first.time_slot.strip() == second.time_slot.strip()
    return window_a[0] < window_b[1] and window_b[0] < window_a[1]


def _same_class(first: Lecture, second: Lecture) -> bool:
    if first.class_year.strip().lower() != second.class_year.strip().lower():
        return False
    return (first.division or "").strip().upper() == (second.division or "").strip().upper()


def conflicts_for(db: Session, candidate: Lecture) -> list[SlotConflict]:
    """Conflicts ``candidate`` would introduce against the stored schedule."""
    others = db.execute(
        select(Lecture).where(
            Lecture.day_of_week == candidate.day_of_week,
            Lecture.status != LectureStatus.cancelled,
        )
    ).scalars()

    found: list[SlotConflict] = []
    for other in others:
        if other.id == candidate.id or not slots_overlap(candidate, other):
            continue
        if other.scheduled_teacher_id == candidate.scheduled_teacher_id:
            found.append(
                SlotConflict(
                    kind="teacher_conflict",
                    day_of_week=candidate.day_of_week,
                    lecture_ids=[other.id],
                    description=f"Teacher already has {other.subject} at {other.time_slot}",
                )
            )
        elif _same_class(candidate, other):
            found.append(
                SlotConflict(
                    kind="class_conflict",
                    day_of_week=candidate.day_of_week,
                    lecture_ids=[other.id],
                    description=f"{other.class_year} already has {other.subject} at {other.time_slot}",
                )
            )
    return found


def detect_schedule_conflicts(lectures: list[Lecture]) -> list[SlotConflict]:
    by_day: dict[DayOfWeek, list[Lecture]] = defaultdict(list)
    for lecture in lectures:
        if lecture.status == LectureStatus.cancelled:
            continue
        by_day[lecture.day_of_week].append(lecture)

    conflicts: list[SlotConflict] = []
    for day, items in by_day.items():
        for first, second in combinations(items, 2):
            if not slots_overlap(first, second):
                continue
            if first.scheduled_teacher_id == second.scheduled_teacher_id:
                kind = "teacher_conflict"
                description = f"Teacher double-booked on {day.value}: {first.subject} / {second.subject}"
            elif _same_class(first, second):
                kind = "class_conflict"
                description = f"{first.class_year} double-booked on {day.value}: {first.subject} / {second.subject}"
            else:
                continue
            conflicts.append(
                SlotConflict(kind=kind, day_of_week=day, lecture_ids=[first.id, second.id], description=description)
            )
    return conflicts
