"""Time utilities and the injectable clock."""
import math
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current time for the assessment engine."""

    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


_system_clock = SystemClock()


def get_clock() -> Clock:
    """Dependency returning the process clock (overridden in tests)."""
    return _system_clock


def ensure_timezone_aware(dt: datetime | None) -> datetime | None:
    """
    Treat naive datetimes as UTC.
    SQLite returns naive values even for DateTime(timezone=True) columns.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def isoformat_or_none(dt: datetime | None) -> str | None:
    """Serialize a datetime as ISO string in UTC."""
    aware = ensure_timezone_aware(dt)
    return aware.isoformat() if aware else None


def elapsed_minutes(started_at: datetime, now: datetime) -> int:
    """Elapsed whole minutes between two instants, rounded half up."""
    delta: timedelta = now - ensure_timezone_aware(started_at)
    minutes = delta.total_seconds() / 60
    return max(0, math.floor(minutes + 0.5))
