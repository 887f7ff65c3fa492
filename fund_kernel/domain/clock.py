"""
Clock -- injectable time source.

Services never call ``datetime.now()`` or ``date.today()`` directly; report
defaults (balance sheet "as of today", income statement "this year") are
derived from the Clock the service was built with.
"""

from abc import ABC, abstractmethod
from datetime import UTC, date, datetime, timedelta


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` is the calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Production clock returning actual system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Test clock pinned to one instant.

    Reports default to "today", so tests move the clock by whole days.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance_days(self, days: int = 1) -> None:
        self._now += timedelta(days=days)
