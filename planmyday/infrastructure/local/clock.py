"""
Clock implementations.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta

from planmyday.interfaces.clock import IClock
from planmyday.utils.datetime_utils import ensure_utc, now_utc


class SystemClock(IClock):
    def now(self) -> datetime:
        return now_utc()

    def monotonic(self) -> float:
        return time.monotonic()


class FixedClock(IClock):
    """
    Clock pinned to one instant.

    ``monotonic`` advances by ``tick_seconds`` on every call, which lets tests
    drive time budgets deterministically.
    """

    def __init__(self, instant: datetime, tick_seconds: float = 0.0):
        self._instant = ensure_utc(instant)
        self._tick_seconds = tick_seconds
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._instant

    def monotonic(self) -> float:
        value = self._elapsed
        self._elapsed += self._tick_seconds
        return value

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta
