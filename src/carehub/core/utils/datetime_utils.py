"""
Date and time utility functions for CareHub.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional


def get_current_timestamp() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def epoch_millis(value: Optional[datetime] = None) -> int:
    """Milliseconds since the epoch, used for human-facing document numbers."""
    value = value or get_current_timestamp()
    return int(value.timestamp() * 1000)


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def days_until(target: datetime, now: Optional[datetime] = None) -> int:
    """Whole days until ``target``, rounded up (negative once past)."""
    now = now or get_current_timestamp()
    delta = ensure_utc(target) - now
    return math.ceil(delta / timedelta(days=1))
