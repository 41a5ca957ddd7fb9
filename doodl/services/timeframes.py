from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from doodl.services.errors import ValidationError


_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_OFFSET_PATTERN = re.compile(r"^([+-])(\d{2}):?(\d{2})$")


def parse_date(value: str) -> date:
    raw = (value or "").strip()
    if not _DATE_PATTERN.match(raw):
        raise ValidationError(f"Invalid date '{value}': expected YYYY-MM-DD")
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValidationError(f"Invalid date '{value}': no such calendar day")


def parse_offset(value: str) -> timezone | None:
    """Return a fixed-offset zone for ``+HH:MM``/``-HHMM`` strings, else None."""
    match = _OFFSET_PATTERN.match((value or "").strip())
    if not match:
        return None
    sign, hours, minutes = match.groups()
    hours, minutes = int(hours), int(minutes)
    if hours > 14 or minutes > 59:
        raise ValidationError(f"Invalid timezone offset '{value}'")
    delta = timedelta(hours=hours, minutes=minutes)
    return timezone(-delta if sign == "-" else delta)


def resolve_timezone(value: str | None, default: str = "UTC") -> tzinfo:
    name = (value or "").strip() or default
    offset = parse_offset(name)
    if offset is not None:
        return offset
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(f"Invalid timezone '{name}'")


def local_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=tz)


def resolve_day_range(day_value: str, timezone_value: str | None, default: str = "UTC"):
    """Return ``(start_ms, end_ms)`` for a calendar day in the given zone.

    The end is the next local midnight, so DST transition days span 23 or
    25 hours in IANA zones; fixed offsets always span 24 hours.
    """
    day = parse_date(day_value)
    tz = resolve_timezone(timezone_value, default)
    start = local_midnight(day, tz)
    end = local_midnight(day + timedelta(days=1), tz)
    return to_epoch_ms(start), to_epoch_ms(end)


def to_epoch_ms(value: datetime) -> int:
    return int(round(value.timestamp() * 1000))


def from_epoch_ms(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
