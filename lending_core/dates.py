"""
Calendar date arithmetic for interest accrual.

Day counts ignore time-of-day: datetimes are reduced to their calendar
date before any subtraction.
"""

from datetime import date, datetime
from typing import Union
import calendar

from .errors import InvalidDateError


DateLike = Union[date, datetime, str]


def to_date(value: DateLike) -> date:
    """Reduce a date, datetime or ISO string to a calendar date"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date(value)
    raise InvalidDateError(f"Expected a date, got {type(value).__name__}")


def parse_date(value: str) -> date:
    """
    Parse an ISO calendar date.

    Accepts plain dates ("2024-03-15") and full ISO datetimes as sent by
    browsers ("2024-03-15T10:20:00.000Z"); for the latter only the
    calendar date part is kept, with no time zone shift applied.
    """
    if not value or not isinstance(value, str):
        raise InvalidDateError("Date must be a non-empty ISO string")
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise InvalidDateError(f"Invalid date '{value}', expected YYYY-MM-DD")


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole days from start to end; end before start is an input error"""
    start_date = to_date(start)
    end_date = to_date(end)
    days = (end_date - start_date).days
    if days < 0:
        raise InvalidDateError(
            f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}"
        )
    return days


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def completed_months_between(start: DateLike, end: DateLike) -> int:
    """
    Count completed month boundaries from start to end.

    A month starting on the 31st completes on the last day of a shorter
    month (Jan 31 -> Feb 28), consistent with add_months.
    """
    start_date = to_date(start)
    end_date = to_date(end)
    if end_date < start_date:
        raise InvalidDateError(
            f"End date {end_date.isoformat()} is before start date {start_date.isoformat()}"
        )

    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    if add_months(start_date, months) > end_date:
        months -= 1
    return months
