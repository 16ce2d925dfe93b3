"""Date-level schedule matching for cron-like expressions and legacy rules.

Only the subset of cron needed here is understood: ``*``, ``*/N`` and
comma-separated integer lists. Minute and hour fields are carried for the
caller's wall-clock scheduling and are ignored when matching a date.
"""

from __future__ import annotations

from datetime import date

from bundle_scheduler.dates import add_days
from bundle_scheduler.errors import InvalidInputError
from bundle_scheduler.models import LegacySchedule, RecurringRule

CRON_FIELD_COUNT = 5


def cron_weekday(d: date) -> int:
    """Day of week as cron counts it (0 = Sunday)."""
    return d.isoweekday() % 7


def _is_number(text: str) -> bool:
    # isdigit() alone accepts digits int() cannot parse, such as "²"
    return text.isascii() and text.isdigit()


def matches_field(field_expr: str, value: int) -> bool:
    """Check a single cron field against a value.

    Malformed fields never raise; they simply do not match.
    """
    field_expr = field_expr.strip()
    if field_expr == "*":
        return True

    if field_expr.startswith("*/"):
        step = field_expr[2:]
        if not _is_number(step) or int(step) == 0:
            return False
        return value % int(step) == 0

    for part in field_expr.split(","):
        part = part.strip()
        if _is_number(part) and int(part) == value:
            return True
    return False


def cron_matches_date(expr: str, d: date) -> bool:
    """Check whether a 5-field cron expression fires on a calendar date."""
    if not isinstance(expr, str):
        return False
    fields = expr.split()
    if len(fields) != CRON_FIELD_COUNT:
        return False

    _minute, _hour, day_of_month, month, day_of_week = fields
    return (
        matches_field(day_of_month, d.day)
        and matches_field(month, d.month)
        and matches_field(day_of_week, cron_weekday(d))
    )


def simple_matches_date(
    kind: LegacySchedule | str,
    d: date,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> bool:
    """Match the legacy daily/weekly/monthly representation."""
    try:
        kind = LegacySchedule(kind)
    except ValueError:
        return False

    if kind == LegacySchedule.DAILY:
        return True
    if kind == LegacySchedule.WEEKLY:
        return day_of_week is not None and cron_weekday(d) == day_of_week
    return day_of_month is not None and d.day == day_of_month


def is_legacy_schedule(schedule: str) -> bool:
    return schedule in {s.value for s in LegacySchedule}


def rule_matches_date(rule: RecurringRule, d: date) -> bool:
    """Check whether a recurring rule fires on a date, whatever its schedule form."""
    if is_legacy_schedule(rule.schedule):
        return simple_matches_date(rule.schedule, d, rule.day_of_week, rule.day_of_month)
    return cron_matches_date(rule.schedule, d)


def next_occurrence(expr: str, start: date, horizon_days: int = 1464) -> date | None:
    """Find the first date on or after ``start`` matching ``expr``.

    Returns None if nothing matches within ``horizon_days``. The default
    horizon covers a leap-day-only schedule.
    """
    for offset in range(horizon_days + 1):
        candidate = add_days(start, offset)
        if cron_matches_date(expr, candidate):
            return candidate
    return None


def validate_cron(expr: str) -> None:
    """Reject expressions that can never be evaluated.

    Raises:
        InvalidInputError: If the expression does not have five fields.
    """
    if not isinstance(expr, str) or len(expr.split()) != CRON_FIELD_COUNT:
        raise InvalidInputError(
            f"schedule must be a {CRON_FIELD_COUNT}-field cron expression, got {expr!r}"
        )


def normalize_schedule(
    schedule: str,
    day_of_week: int | None = None,
    day_of_month: int | None = None,
) -> str:
    """Convert a legacy daily/weekly/monthly schedule into a cron expression.

    Cron expressions are validated and returned unchanged.

    Raises:
        InvalidInputError: If the schedule or its day selector is invalid.
    """
    if not is_legacy_schedule(schedule):
        validate_cron(schedule)
        return " ".join(schedule.split())

    kind = LegacySchedule(schedule)
    if kind == LegacySchedule.DAILY:
        return "0 0 * * *"

    if kind == LegacySchedule.WEEKLY:
        if not isinstance(day_of_week, int) or not 0 <= day_of_week <= 6:
            raise InvalidInputError("day_of_week must be an integer between 0 and 6")
        return f"0 0 * * {day_of_week}"

    if not isinstance(day_of_month, int) or not 1 <= day_of_month <= 31:
        raise InvalidInputError("day_of_month must be an integer between 1 and 31")
    return f"0 0 {day_of_month} * *"
