"""Utility modules."""
from lms_api.utils.time_utils import (
    Clock,
    SystemClock,
    elapsed_minutes,
    ensure_timezone_aware,
    get_clock,
    isoformat_or_none,
)

__all__ = [
    "Clock",
    "SystemClock",
    "elapsed_minutes",
    "ensure_timezone_aware",
    "get_clock",
    "isoformat_or_none",
]
