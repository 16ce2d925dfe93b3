"""Whole-day calendar arithmetic for anchor dates and offsets."""

from __future__ import annotations

import re
from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone

from bundle_scheduler.errors import InvalidInputError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]


def parse_date(value: date | str, field_name: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass a date through).

    Raises:
        InvalidInputError: If the value is not a valid calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise InvalidInputError(f"{field_name} must be in YYYY-MM-DD format, got {value!r}")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidInputError(f"{field_name} is not a valid date: {value!r}") from e


def format_date(value: date) -> str:
    return value.isoformat()


def add_days(anchor: date, offset_days: int) -> date:
    """Return ``anchor`` moved by a signed number of whole days."""
    return anchor + timedelta(days=offset_days)


def date_range(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current = add_days(current, 1)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def format_anchor_date(value: date) -> str:
    """Format a date as a short label such as ``Mar 15``."""
    return f"{_MONTHS[value.month - 1]} {value.day}"
