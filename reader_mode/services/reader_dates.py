from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Literal

RelativeDurationStyle = Literal["long", "short"]

_DATE_ONLY_FORMAT = "%Y-%m-%d"
_RELATIVE_UNITS: tuple[tuple[str, str, str], ...] = (
    ("year", "years", "y"),
    ("month", "months", "mo"),
    ("day", "days", "d"),
    ("hour", "hours", "h"),
    ("minute", "minutes", "m"),
    ("second", "seconds", "s"),
)


def parse_published_time(raw: str | None) -> datetime | None:
    """
    Parse a published-time string scraped from page metadata.

    Tries ISO-8601 with fractional seconds, plain ISO-8601, a bare ISO date and
    finally `yyyy-MM-dd` taken from the first ten characters. Naive results are
    treated as UTC.
    """
    if raw is None:
        return None
    candidate = raw.strip()
    if not candidate:
        return None

    parsed = _parse_iso_datetime(candidate)
    if parsed is None:
        parsed = _parse_date_only(candidate)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _parse_iso_datetime(value: str) -> datetime | None:
    normalized = value[:-1] + "+00:00" if value.endswith(("Z", "z")) else value
    try:
        return datetime.fromisoformat(normalized)
    except ValueError:
        return None


def _parse_date_only(value: str) -> datetime | None:
    try:
        return datetime.combine(date.fromisoformat(value), datetime.min.time())
    except ValueError:
        pass
    try:
        return datetime.strptime(value[:10], _DATE_ONLY_FORMAT)
    except ValueError:
        return None


def absolute_date_string(value: datetime | date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def format_publication_date(value: str | datetime | None) -> str | None:
    """Header text for a publication date; unparsable strings are shown verbatim."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return absolute_date_string(value)
    stripped = value.strip()
    if not stripped:
        return None
    parsed = parse_published_time(stripped)
    if parsed is None:
        return stripped
    return absolute_date_string(parsed)


def relative_date_string(
    value: datetime,
    *,
    now: datetime | None = None,
    style: RelativeDurationStyle = "long",
) -> str | None:
    reference = now if now is not None else datetime.now(UTC)
    is_past = value <= reference
    earlier, later = (value, reference) if is_past else (reference, value)

    components = _calendar_components(earlier, later)
    for (singular, plural, short_unit), quantity in zip(_RELATIVE_UNITS, components):
        if quantity <= 0:
            continue
        if style == "short":
            phrase = f"{quantity}{short_unit}"
        else:
            phrase = f"{quantity} {singular if quantity == 1 else plural}"
        return f"{phrase} ago" if is_past else f"in {phrase}"
    return None


def relative_or_absolute_date_string(
    value: datetime,
    *,
    now: datetime | None = None,
    style: RelativeDurationStyle = "long",
) -> str:
    relative = relative_date_string(value, now=now, style=style)
    if relative is not None:
        return relative
    return absolute_date_string(value)


def _calendar_components(earlier: datetime, later: datetime) -> tuple[int, int, int, int, int, int]:
    months = (later.year - earlier.year) * 12 + (later.month - earlier.month)
    if _within_month_position(later) < _within_month_position(earlier):
        months -= 1
    months = max(months, 0)
    if months > 0:
        return (months // 12, months % 12, 0, 0, 0, 0)

    delta = later - earlier
    hours, remainder = divmod(delta.seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return (0, 0, delta.days, hours, minutes, seconds)


def _within_month_position(value: datetime) -> tuple[int, int, int, int, int]:
    return (value.day, value.hour, value.minute, value.second, value.microsecond)


def short_duration_string(seconds: float) -> str | None:
    if seconds <= 0:
        return None
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    hours, remainder = divmod(int(seconds), 3600)
    minutes = remainder // 60
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}m"
