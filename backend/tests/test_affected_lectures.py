from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from portal.models.lecture import DayOfWeek
from portal.services.affected_lectures import (
    affected_lecture_ids,
    lectures_on,
    normalize_day_name,
    resolve,
    weekday_name,
)

MONDAY = date(2024, 1, 1)


def make_lecture(lecture_id, day_of_week):
    return SimpleNamespace(id=lecture_id, day_of_week=day_of_week)


def test_single_monday_lecture_in_one_week():
    lecture = make_lecture("L1", "Monday")

    occurrences = resolve([lecture], MONDAY, date(2024, 1, 7))

    assert [(item.lecture_id, item.specific_date) for item in occurrences] == [("L1", MONDAY)]


def test_two_week_range_yields_one_occurrence_per_week():
    lecture = make_lecture("L1", "Monday")

    occurrences = resolve([lecture], MONDAY, date(2024, 1, 14))

    assert [item.specific_date for item in occurrences] == [date(2024, 1, 1), date(2024, 1, 8)]
    assert affected_lecture_ids(occurrences) == ["L1"]


def test_single_day_range_matches_only_that_weekday():
    lectures = [make_lecture("mon", "Monday"), make_lecture("tue", "Tuesday")]

    occurrences = resolve(lectures, MONDAY, MONDAY)

    assert len(occurrences) == 1
    assert occurrences[0].lecture_id == "mon"
    assert occurrences[0].specific_date == MONDAY


def test_any_seven_day_window_hits_every_lecture_once():
    lectures = [make_lecture(name, name) for name in DayOfWeek.__members__]

    for offset in range(7):
        start = MONDAY + timedelta(days=offset)
        occurrences = resolve(lectures, start, start + timedelta(days=6))
        assert sorted(item.lecture_id for item in occurrences) == sorted(DayOfWeek.__members__)


def test_empty_inputs_and_inverted_range():
    assert resolve([], MONDAY, date(2024, 1, 31)) == []
    assert resolve([make_lecture("L1", "Monday")], date(2024, 1, 8), MONDAY) == []


def test_resolve_is_idempotent():
    lectures = [make_lecture("L1", "Monday"), make_lecture("L2", "Wednesday")]

    first = resolve(lectures, MONDAY, date(2024, 1, 21))
    second = resolve(lectures, MONDAY, date(2024, 1, 21))

    assert first == second


def test_day_names_accept_enum_case_and_short_forms():
    assert normalize_day_name(DayOfWeek.Friday) == "Friday"
    assert normalize_day_name("  thursday ") == "Thursday"
    assert normalize_day_name("SAT") == "Saturday"
    assert normalize_day_name("Funday") is None
    assert normalize_day_name("") is None


def test_lectures_with_unknown_day_are_skipped():
    lectures = [make_lecture("bad", "Someday"), make_lecture("ok", "mon")]

    occurrences = resolve(lectures, MONDAY, MONDAY)

    assert [item.lecture_id for item in occurrences] == ["ok"]


def test_duplicate_lectures_in_selection_keep_first_order():
    lectures = [make_lecture("L2", "Tuesday"), make_lecture("L1", "Monday")]

    occurrences = resolve(lectures, MONDAY, date(2024, 1, 16))

    assert affected_lecture_ids(occurrences) == ["L2", "L1"]
    assert len(occurrences) == 4


@pytest.mark.parametrize(
    ("day", "expected"),
    [(date(2024, 1, 1), "Monday"), (date(2024, 1, 6), "Saturday"), (date(2024, 1, 7), "Sunday")],
)
def test_weekday_name(day, expected):
    assert weekday_name(day) == expected


def test_lectures_on_filters_by_weekday():
    lectures = [make_lecture("mon", "Monday"), make_lecture("fri", DayOfWeek.Friday)]

    assert [item.id for item in lectures_on(lectures, date(2024, 1, 5))] == ["fri"]


def test_range_ending_on_last_representable_date():
    lecture = make_lecture("L1", "Friday")

    occurrences = resolve([lecture], date.max, date.max)

    assert date.max.weekday() == 4
    assert [(item.lecture_id, item.specific_date) for item in occurrences] == [("L1", date.max)]


def test_range_at_calendar_bounds_without_matches():
    assert resolve([make_lecture("L1", "Sunday")], date.max - timedelta(days=3), date.max) == []
    assert [item.specific_date for item in resolve([make_lecture("L1", "Monday")], date.min, date.min)] == [date.min]


def test_lecture_major_order_with_dates_ascending():
    lectures = [make_lecture("wed", "Wednesday"), make_lecture("mon", "Monday")]

    occurrences = resolve(lectures, MONDAY, date(2024, 1, 17))

    assert [(item.lecture_id, item.specific_date) for item in occurrences] == [
        ("wed", date(2024, 1, 3)),
        ("wed", date(2024, 1, 10)),
        ("wed", date(2024, 1, 17)),
        ("mon", date(2024, 1, 1)),
        ("mon", date(2024, 1, 8)),
        ("mon", date(2024, 1, 15)),
    ]


def test_matches_a_day_by_day_walk_over_a_long_range():
    lectures = [make_lecture(name, name) for name in DayOfWeek.__members__]
    start, end = date(2023, 12, 28), date(2024, 3, 3)

    occurrences = resolve(lectures, start, end)

    walked = []
    for lecture in lectures:
        day = start
        while day <= end:
            if weekday_name(day) == lecture.day_of_week:
                walked.append((lecture.id, day))
            day += timedelta(days=1)
    assert [(item.lecture_id, item.specific_date) for item in occurrences] == walked
