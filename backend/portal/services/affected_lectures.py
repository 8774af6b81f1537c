"""Expansion of weekly lecture templates into dated occurrences.

A lecture row is a standing weekly slot. When a teacher asks for leave over a
date range, every calendar day in the range is matched against each lecture's
``day_of_week`` to find the concrete classes they will miss.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable, Sequence

# Indexed by ``date.weekday()`` (Monday == 0).
WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DAY_SHORT_MAP = {
    "mon": "Monday",
    "tue": "Tuesday",
    "wed": "Wednesday",
    "thu": "Thursday",
    "fri": "Friday",
    "sat": "Saturday",
    "sun": "Sunday",
}


@dataclass(frozen=True)
class LectureOccurrence:
    lecture: Any
    specific_date: date

    @property
    def lecture_id(self) -> str:
        return self.lecture.id


def normalize_day_name(value: Any) -> str | None:
    """Return the canonical weekday name for ``value`` or ``None``.

    Accepts enum members, full names in any case and three-letter prefixes.
    """
    if value is None:
        return None
    raw = getattr(value, "value", value)
    text = str(raw).strip()
    if not text:
        return None
    lowered = text.lower()
    for name in WEEKDAY_NAMES:
        if name.lower() == lowered:
            return name
    return DAY_SHORT_MAP.get(lowered[:3]) if len(lowered) == 3 else None


def weekday_name(value: date) -> str:
    return WEEKDAY_NAMES[value.weekday()]


def iter_weekday_dates(start_date: date, end_date: date, weekday: int) -> Iterable[date]:
    """Dates in the inclusive range falling on ``weekday``; never steps past ``end_date``."""
    span = (end_date - start_date).days
    first = (weekday - start_date.weekday()) % 7
    for offset in range(first, span + 1, 7):
        yield start_date + timedelta(days=offset)


def resolve(lectures: Sequence[Any], start_date: date, end_date: date) -> list[LectureOccurrence]:
    if not lectures or start_date > end_date:
        return []

    dates_by_day: dict[str, list[date]] = {}
    occurrences: list[LectureOccurrence] = []
    for lecture in lectures:
        lecture_day = normalize_day_name(lecture.day_of_week)
        if lecture_day is None:
            continue
        if lecture_day not in dates_by_day:
            weekday = WEEKDAY_NAMES.index(lecture_day)
            dates_by_day[lecture_day] = list(iter_weekday_dates(start_date, end_date, weekday))
        occurrences.extend(LectureOccurrence(lecture=lecture, specific_date=day) for day in dates_by_day[lecture_day])
    return occurrences


def affected_lecture_ids(occurrences: Iterable[LectureOccurrence]) -> list[str]:
    return list(dict.fromkeys(item.lecture_id for item in occurrences))


def lectures_on(lectures: Sequence[Any], day: date) -> list[Any]:
    """Lectures held on ``day``, i.e. a single-day resolve without duplicates."""
    return [item.lecture for item in resolve(lectures, day, day)]
