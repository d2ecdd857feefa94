"""
Clock -- injectable time source.

Engines take their as-of date as an explicit argument and never read the
system time.  Services obtain "today" from a ``Clock`` handed to their
constructor, so every evaluation can be replayed with a fixed clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware time."""
        ...

    def today(self) -> date:
        """Current calendar date in the clock's timezone."""
        return self.now().date()


class SystemClock(Clock):
    """Production clock backed by the system time (UTC)."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same value until ``advance()`` or ``set_time()``
    is called.
    """

    def __init__(self, fixed_time: datetime | date | None = None):
        self._fixed_time = _as_datetime(fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime | date) -> None:
        self._fixed_time = _as_datetime(time)
        self._offset = timedelta(0)

    def advance(self, *, days: int = 0, seconds: int = 0) -> None:
        self._offset += timedelta(days=days, seconds=seconds)


def _as_datetime(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime(value.year, value.month, value.day, 12, 0, 0, tzinfo=timezone.utc)
