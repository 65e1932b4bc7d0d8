"""
Clock -- injectable time source.

Services, the orchestrator and the scheduler take a Clock in their
constructor and never call ``datetime.now()`` themselves, so period
arithmetic and cooldown windows can be driven deterministically in tests.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` returns the same instant until ``advance()`` or ``set_time()``
    is called.  Safe to share between worker threads.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._lock = threading.Lock()
        self._time = (fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        if self._time.tzinfo is None:
            raise ValueError("DeterministicClock requires an aware datetime")

    def now(self) -> datetime:
        with self._lock:
            return self._time.astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock requires an aware datetime")
        with self._lock:
            self._time = time

    def advance(self, seconds: float = 0, *, hours: float = 0, days: float = 0) -> datetime:
        """Move the clock forward and return the new instant."""
        with self._lock:
            self._time += timedelta(seconds=seconds, hours=hours, days=days)
            return self._time.astimezone(timezone.utc)
