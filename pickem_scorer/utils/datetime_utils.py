"""
Low-level timezone and timestamp utilities.

Domain-agnostic helpers for timezone-aware UTC datetimes. League-calendar
logic (seasons, weeks) lives in date_utils.py.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def now_utc() -> datetime:
    """Return the current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def today_in(tz_name: str) -> date:
    """Return the current calendar date in the given timezone."""
    return datetime.now(ZoneInfo(tz_name)).date()


def ensure_utc(value: datetime) -> datetime:
    """Coerce a datetime to aware UTC.

    SQLite drops tzinfo on round-trip, so naive values read back from the
    store are treated as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
