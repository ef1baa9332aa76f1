"""
Numerator/denominator resolution for a two week window.

The window always starts on the Monday of the reference date's week and
spans 14 days. Each of its two weeks gets a label: the label of any of
its own lessons when known, otherwise a prediction made from the nearest
labeled lesson outside the window (weeks alternate, so only the parity of
the distance in whole weeks matters).
"""

import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Iterable
from zoneinfo import ZoneInfo

from base.errors import InvalidDateFormatError
from base.types import LessonRecord, WeekAssignment, WeekType

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"
PERIOD_FORMAT = "%d.%m"
WINDOW_DAYS = 14

WEEK_TYPE_RU = {
    WeekType.numerator: "числитель",
    WeekType.denominator: "знаменатель",
}


def parse_date_or_now(date_str: str | None, tz: ZoneInfo) -> date:
    if not date_str:
        return datetime.now(tz).date()

    try:
        return datetime.strptime(date_str, DATE_FORMAT).date()
    except ValueError:
        raise InvalidDateFormatError(date_str)


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


def get_week_bounds(day: date) -> tuple[date, date]:
    """Monday of the day's week and the Sunday of the following week"""
    monday = week_start(day)
    return monday, monday + timedelta(days=WINDOW_DAYS - 1)


def shift_months(day: date, months: int) -> date:
    month_index = day.month - 1 + months
    year, month = day.year + month_index // 12, month_index % 12 + 1
    # Clamp to the last day, 31.08 - 6 months is 28.02 (or 29.02)
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def get_date_range_bounds(day: date, months_offset: int) -> tuple[date, date]:
    return shift_months(day, -months_offset), shift_months(day, months_offset)


def format_period(monday: date) -> str:
    return f"{monday.strftime(PERIOD_FORMAT)}-{(monday + timedelta(days=6)).strftime(PERIOD_FORMAT)}"


def predict_week_type(anchor_day: date, anchor_type: WeekType, target_monday: date) -> WeekType:
    """
    Label of the week starting at `target_monday`, given a day known to
    belong to an `anchor_type` week. Works in both directions
    """
    weeks = abs((target_monday - week_start(anchor_day)).days) // 7
    return anchor_type if weeks % 2 == 0 else anchor_type.opposite


def _anchor_type(row: LessonRecord | None) -> WeekType | None:
    if row is None:
        return None

    week_type = row.week_type.resolved()
    if week_type is None:
        logger.warning(f"Ignoring reference lesson {row.id} from {row.date}: its week type is unknown")

    return week_type


def _actual_week_type(rows: Iterable[LessonRecord], monday: date) -> WeekType | None:
    sunday = monday + timedelta(days=6)
    for row in sorted(rows, key=lambda r: (r.date, r.time, r.id)):
        if monday <= row.date <= sunday and (week_type := row.week_type.resolved()):
            return week_type

    return None


def resolve_week_types(
    reference_date: date,
    window_rows: list[LessonRecord],
    before: LessonRecord | None = None,
    after: LessonRecord | None = None
) -> WeekAssignment:
    first_monday = week_start(reference_date)
    second_monday = first_monday + timedelta(days=7)

    first_actual = _actual_week_type(window_rows, first_monday)
    second_actual = _actual_week_type(window_rows, second_monday)

    if first_actual is None:
        # The earlier reference wins when both are present
        if before_type := _anchor_type(before):
            predicted = predict_week_type(before.date, before_type, first_monday)
        elif after_type := _anchor_type(after):
            predicted = predict_week_type(after.date, after_type, first_monday)
        else:
            logger.debug(f"No labeled lessons around {reference_date}, defaulting to numerator")
            predicted = WeekType.numerator
        first_week = predicted
    else:
        first_week = first_actual

    second_week = second_actual or first_week.opposite
    if second_week == first_week:
        logger.warning(
            f"Both weeks starting {first_monday} are labeled {first_week.value}, "
            f"relabeling the second one as {first_week.opposite.value}"
        )
        second_week = first_week.opposite

    if first_week is WeekType.numerator:
        numerator_monday, denominator_monday = first_monday, second_monday
    else:
        numerator_monday, denominator_monday = second_monday, first_monday

    return WeekAssignment(
        first_week_monday=first_monday,
        first_week=first_week,
        second_week=second_week,
        numerator_period=format_period(numerator_monday),
        denominator_period=format_period(denominator_monday),
        input_week_type=first_week if reference_date < second_monday else second_week,
    )


def week_type_for_date(assignment: WeekAssignment, day: date) -> WeekType:
    """Date based label inside the assignment's window"""
    second_monday = assignment.first_week_monday + timedelta(days=7)
    return assignment.first_week if day < second_monday else assignment.second_week
