import logging
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from base.errors import InvalidDateFormatError, InvalidInputError
from base.types import WeekType, WeekTypeLabel
from schedule.weeks import (
    format_period,
    get_date_range_bounds,
    get_week_bounds,
    parse_date_or_now,
    predict_week_type,
    resolve_week_types,
    shift_months,
    week_type_for_date,
)

from builders import REFERENCE_DATE, lesson

MOSCOW = ZoneInfo("Europe/Moscow")


def test_cold_start_defaults_to_numerator():
    assignment = resolve_week_types(REFERENCE_DATE, [])

    assert assignment.first_week_monday == date(2026, 3, 2)
    assert assignment.first_week is WeekType.numerator
    assert assignment.second_week is WeekType.denominator
    assert assignment.numerator_period == "02.03-08.03"
    assert assignment.denominator_period == "09.03-15.03"
    assert assignment.input_week_type is WeekType.numerator


@pytest.mark.parametrize("anchor_day, expected", [
    # Exactly two weeks before the window
    (date(2026, 2, 16), WeekType.numerator),
    # Exactly one week before the window
    (date(2026, 2, 23), WeekType.denominator),
    # Mid-week anchors count from their own Monday
    (date(2026, 2, 25), WeekType.denominator),
    (date(2026, 2, 14), WeekType.denominator),
])
def test_prediction_from_earlier_lesson_uses_week_parity(anchor_day, expected):
    before = lesson(100, anchor_day, week_type=WeekTypeLabel.numerator)

    assignment = resolve_week_types(REFERENCE_DATE, [], before=before)

    assert assignment.first_week is expected
    assert assignment.second_week is expected.opposite


def test_prediction_from_later_lesson_when_no_earlier_one():
    after = lesson(100, date(2026, 3, 18), week_type=WeekTypeLabel.denominator)

    assignment = resolve_week_types(REFERENCE_DATE, [], after=after)

    assert assignment.first_week is WeekType.denominator
    assert assignment.numerator_period == "09.03-15.03"
    assert assignment.denominator_period == "02.03-08.03"


def test_earlier_reference_wins_over_later_one():
    before = lesson(100, date(2026, 2, 16), week_type=WeekTypeLabel.numerator)
    # Three weeks after the window start, predicts a denominator first week
    after = lesson(101, date(2026, 3, 25), week_type=WeekTypeLabel.numerator)

    assignment = resolve_week_types(REFERENCE_DATE, [], before=before, after=after)

    assert assignment.first_week is WeekType.numerator


def test_unknown_reference_is_ignored(caplog):
    before = lesson(100, date(2026, 2, 23))
    after = lesson(101, date(2026, 3, 16), week_type=WeekTypeLabel.denominator)

    with caplog.at_level(logging.WARNING):
        assignment = resolve_week_types(REFERENCE_DATE, [], before=before, after=after)

    assert assignment.first_week is WeekType.denominator
    assert "week type is unknown" in caplog.text


def test_actual_label_overrides_prediction():
    before = lesson(100, date(2026, 2, 16), week_type=WeekTypeLabel.numerator)
    rows = [
        lesson(1, date(2026, 3, 2)),
        lesson(2, date(2026, 3, 3), week_type=WeekTypeLabel.denominator),
    ]

    assignment = resolve_week_types(REFERENCE_DATE, rows, before=before)

    assert assignment.first_week is WeekType.denominator
    assert assignment.second_week is WeekType.numerator


def test_second_week_label_is_kept_when_consistent():
    before = lesson(100, date(2026, 2, 23), week_type=WeekTypeLabel.numerator)
    rows = [lesson(1, date(2026, 3, 12), week_type=WeekTypeLabel.numerator)]

    assignment = resolve_week_types(REFERENCE_DATE, rows, before=before)

    assert assignment.first_week is WeekType.denominator
    assert assignment.second_week is WeekType.numerator
    assert assignment.numerator_period == "09.03-15.03"


def test_equal_labels_in_both_weeks_are_forced_apart(caplog):
    rows = [
        lesson(1, date(2026, 3, 2), week_type=WeekTypeLabel.denominator),
        lesson(2, date(2026, 3, 9), week_type=WeekTypeLabel.denominator),
    ]

    with caplog.at_level(logging.WARNING):
        assignment = resolve_week_types(REFERENCE_DATE, rows)

    assert assignment.first_week is WeekType.denominator
    assert assignment.second_week is WeekType.numerator
    assert "relabeling" in caplog.text


@pytest.mark.parametrize("offset", range(21))
def test_weeks_are_always_opposite(offset):
    reference = date(2026, 3, 2) + timedelta(days=offset)
    after = lesson(1, date(2026, 4, 1), week_type=WeekTypeLabel.numerator)

    assignment = resolve_week_types(reference, [], after=after)

    assert assignment.first_week is not assignment.second_week
    assert assignment.input_week_type is assignment.first_week


def test_predict_week_type_works_backwards():
    assert predict_week_type(date(2026, 3, 18), WeekType.numerator, date(2026, 3, 2)) is WeekType.numerator
    assert predict_week_type(date(2026, 3, 11), WeekType.numerator, date(2026, 3, 2)) is WeekType.denominator


def test_week_type_for_date_splits_the_window():
    assignment = resolve_week_types(REFERENCE_DATE, [])

    assert week_type_for_date(assignment, date(2026, 3, 8)) is WeekType.numerator
    assert week_type_for_date(assignment, date(2026, 3, 9)) is WeekType.denominator


@pytest.mark.parametrize("day", [date(2026, 3, 2), date(2026, 3, 4), date(2026, 3, 8)])
def test_get_week_bounds(day):
    assert get_week_bounds(day) == (date(2026, 3, 2), date(2026, 3, 15))


def test_format_period():
    assert format_period(date(2026, 12, 28)) == "28.12-03.01"


@pytest.mark.parametrize("day, months, expected", [
    (date(2026, 8, 31), -6, date(2026, 2, 28)),
    (date(2024, 8, 31), -6, date(2024, 2, 29)),
    (date(2026, 2, 15), -6, date(2025, 8, 15)),
    (date(2026, 11, 30), 6, date(2027, 5, 30)),
])
def test_shift_months_clamps_day(day, months, expected):
    assert shift_months(day, months) == expected


def test_get_date_range_bounds():
    assert get_date_range_bounds(REFERENCE_DATE, 6) == (date(2025, 9, 4), date(2026, 9, 4))


def test_parse_date_or_now():
    assert parse_date_or_now("2026-03-04", MOSCOW) == REFERENCE_DATE
    assert parse_date_or_now(None, MOSCOW) == datetime.now(MOSCOW).date()


@pytest.mark.parametrize("value", ["04.03.2026", "2026-13-01", "tomorrow"])
def test_parse_date_or_now_rejects_bad_dates(value):
    with pytest.raises(InvalidDateFormatError) as e:
        parse_date_or_now(value, MOSCOW)

    assert isinstance(e.value, InvalidInputError)
    assert e.value.to_response().error == "invalid_input"
