"""Injectable time source for expiry comparisons."""

from datetime import datetime, timedelta
from typing import Protocol

from utils.timezone import now_utc, to_utc


class Clock(Protocol):
    """Anything that can report the current UTC time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return now_utc()


class FrozenClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = FrozenClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
        clock.advance(minutes=15)
    """

    def __init__(self, start: datetime | None = None):
        self._now = to_utc(start) if start is not None else now_utc()

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = to_utc(moment)

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta(**kwargs) and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
