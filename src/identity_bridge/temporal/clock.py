"""Time source shared by the correlation engine and its caches.

Everything that expires (pending contacts, TTL cache entries, snapshot
timestamps) reads time through a :class:`Clock` so tests can move time
forward without sleeping.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)


class Clock(ABC):
    """Abstract clock interface."""

    @abstractmethod
    def now(self) -> datetime:
        """Get current time."""
        ...

    def seconds_since(self, moment: datetime) -> float:
        """Seconds elapsed between *moment* and now."""
        return (self.now() - moment).total_seconds()


class SystemClock(Clock):
    """Real system time."""

    def now(self) -> datetime:
        return utc_now()


class FakeClock(Clock):
    """Controllable clock for tests."""

    def __init__(self, initial: datetime | None = None) -> None:
        if initial is not None and initial.tzinfo is None:
            initial = initial.replace(tzinfo=timezone.utc)
        self._now = initial or utc_now()

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: int | float = 0, **kwargs: int) -> None:
        """Move time forward.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Additional timedelta arguments (minutes, hours, days)
        """
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
