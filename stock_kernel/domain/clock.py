"""
Injectable time source.

Ledger services never call ``datetime.now()``.  Stock level timestamps,
transaction ``created_at``, document dates and the date segment of
document numbers (``ADJ-20240101-0001``) all come from the Clock handed
to the service, so a test can pin them.

SystemClock is the only place that reads the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware UTC datetimes."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    ``now()`` keeps returning the same instant until ``advance``,
    ``tick`` or ``set_time`` moves it.  Naive datetimes passed in are
    taken as UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = self._as_utc(fixed_time or DEFAULT_TEST_TIME)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = self._as_utc(time)

    def advance(self, seconds: int | float | timedelta = 1) -> datetime:
        """Move forward by ``seconds`` (or a timedelta) and return the new time."""
        step = seconds if isinstance(seconds, timedelta) else timedelta(seconds=seconds)
        if step < timedelta(0):
            raise ValueError("DeterministicClock cannot move backwards")
        self._current += step
        return self._current

    def tick(self) -> datetime:
        return self.advance(1)
