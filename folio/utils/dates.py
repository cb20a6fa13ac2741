"""Date helpers for anchor-date and window selection."""

import calendar
from datetime import date, datetime

from folio.errors import InvalidArgumentError


def parse_date(value) -> date:
    """
    Accept a date, datetime or ISO string and return a date.

    Raises:
        InvalidArgumentError: If the value is missing or not an ISO date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise InvalidArgumentError("Date is required")
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise InvalidArgumentError(f"Malformed date: {value}") from e


def minus_months(day: date, months: int) -> date:
    """Step back whole months, clamping the day to the target month's length."""
    index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    return date(year, month, min(day.day, calendar.monthrange(year, month)[1]))


def month_prefix(day: date) -> str:
    """'YYYY-MM' prefix used to compare against monthly series keys."""
    return day.isoformat()[:7]
