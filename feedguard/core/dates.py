"""Date and clock utilities."""

from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Optional, Protocol


# Standard format constants
DATE_FORMAT = "%Y-%m-%d"


class Clock(Protocol):
    """Anything that can tell the current time."""
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        clock.advance(hours=3)
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value

    def advance(self, **delta) -> datetime:
        """Move forward by timedelta keyword arguments (days=, hours=, ...)."""
        with self._lock:
            self._now = self._now + timedelta(**delta)
            return self._now


def today() -> str:
    """
    Get today's date as YYYY-MM-DD string.

    Returns:
        Date string in YYYY-MM-DD format
    """
    return datetime.now().strftime(DATE_FORMAT)


def as_utc(value: datetime) -> datetime:
    """Read naive timestamps as UTC; aware ones pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: datetime) -> str:
    """Serialize a timestamp, assuming UTC for naive values."""
    return as_utc(value).isoformat()


def parse_iso(value: str, default: Optional[datetime] = None) -> Optional[datetime]:
    """
    Parse an ISO timestamp (as written by to_iso).

    Naive timestamps are read as UTC, so records written by older tools
    compare cleanly against the system clock.

    Args:
        value: ISO 8601 string
        default: Returned when parsing fails

    Returns:
        Timezone-aware datetime or default
    """
    try:
        parsed = datetime.fromisoformat(value)
    except (ValueError, TypeError):
        return default
    return as_utc(parsed)
