"""
Time helpers.

All engine timestamps are timezone-aware UTC; day boundaries are UTC days.
"""
from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, time, timezone
from typing import Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (as returned by some drivers) and normalize aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def resolve_clock(clock: Optional[Clock]) -> Clock:
    return clock or utc_now
