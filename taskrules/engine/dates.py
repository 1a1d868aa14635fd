"""Relative and absolute due date resolution."""

import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

RELATIVE_PATTERN = re.compile(
    r"^\+\s*(?P<amount>\d+)\s*(?P<unit>days?|weeks?|months?)?$",
    re.IGNORECASE,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_datetime(spec: Any, now: datetime | None = None) -> datetime | None:
    """Resolve a due date directive to an aware UTC datetime.

    Accepts ``+N day(s)|week(s)|month(s)`` (a bare ``+N`` means days),
    ISO date or timestamp strings, and date/datetime objects.

    Args:
        spec: Directive or absolute date
        now: Reference time for relative directives

    Returns:
        Resolved datetime, or None if the value is empty, unparseable or
        out of the representable date range
    """
    if spec is None or spec == "":
        return None

    if isinstance(spec, datetime):
        return _to_utc(spec)
    if isinstance(spec, date):
        return datetime.combine(spec, time.min, tzinfo=timezone.utc)
    if not isinstance(spec, str):
        return None

    text = spec.strip()
    match = RELATIVE_PATTERN.match(text)
    try:
        if match:
            base = _to_utc(now) if now is not None else _utcnow()
            amount = int(match.group("amount"))
            unit = (match.group("unit") or "days").lower()
            if unit.startswith("week"):
                return base + timedelta(weeks=amount)
            if unit.startswith("month"):
                return base + relativedelta(months=amount)
            return base + timedelta(days=amount)

        return _to_utc(date_parser.isoparse(text))
    # Offsets past datetime.max overflow in timedelta/relativedelta
    except (ValueError, OverflowError):
        return None


def resolve_due_date(spec: Any, now: datetime | None = None) -> str | None:
    """Resolve a due date directive to an ISO-8601 UTC timestamp string.

    Args:
        spec: ``+3 days``, ``+2 weeks``, ``+1 month``, or an absolute date
        now: Reference time for relative directives

    Returns:
        ISO timestamp, or None if unparseable
    """
    resolved = resolve_datetime(spec, now)
    return resolved.isoformat() if resolved is not None else None
