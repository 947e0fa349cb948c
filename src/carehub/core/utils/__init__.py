"""
Utility functions shared across CareHub.
"""

from .datetime_utils import (
    days_until,
    end_of_day,
    ensure_utc,
    epoch_millis,
    get_current_timestamp,
    start_of_day,
)
from .retry import retry_async

__all__ = [
    "days_until",
    "end_of_day",
    "ensure_utc",
    "epoch_millis",
    "get_current_timestamp",
    "retry_async",
    "start_of_day",
]
