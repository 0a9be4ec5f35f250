"""
Clock adapters.

SystemClock reads the wall clock; FrozenClock returns a fixed instant that
only moves when told to.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


class SystemClock:
    def now_utc(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """
    Clock that returns a fixed time.

    Useful for testing audit stamps.
    """

    def __init__(self, frozen_utc: datetime) -> None:
        """
        Initialize with frozen time.

        Args:
            frozen_utc: The UTC time to return from now_utc() (naive treated as UTC)
        """
        self._frozen_utc = _as_utc(frozen_utc)

    def now_utc(self) -> datetime:
        """Return frozen UTC time."""
        return self._frozen_utc

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        """Move the clock forward and return the new time."""
        step = delta if delta is not None else timedelta(**kwargs)
        if step < timedelta(0):
            raise ValueError("FrozenClock cannot move backwards")
        self._frozen_utc = self._frozen_utc + step
        return self._frozen_utc

    def set_now(self, value: datetime) -> None:
        self._frozen_utc = _as_utc(value)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
