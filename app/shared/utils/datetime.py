"""
UTC datetime utilities for consistent timezone handling.

All datetime values in the system are timezone-aware UTC. Day and hour
bucketing converts to the configured stats timezone only at the edges.
"""

from datetime import UTC, date, datetime, time, tzinfo
from typing import Any


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure a datetime is UTC-aware.

    - If None, returns None
    - If naive, assumes UTC and attaches timezone
    - If aware, converts to UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a PostgREST timestamp into an aware UTC datetime.

    Accepts ISO-8601 strings ('Z' suffix allowed) and datetimes. Naive
    values are taken as UTC. Returns None for empty or unparseable input.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(parsed)


def start_of_local_day(day: date, tz: tzinfo) -> datetime:
    """Midnight of `day` in tz, as an aware UTC datetime (query lower bound)."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)
