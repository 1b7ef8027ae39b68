"""
Wall-clock budget for long-running engine loops.
"""

from typing import Callable


class TimeBudget:
    """Checked between iterations; never interrupts a computation in flight."""

    def __init__(self, timeout_ms: int, timer: Callable[[], float]):
        self.timeout_ms = timeout_ms
        self._timer = timer
        self._started = timer()

    @property
    def elapsed_ms(self) -> float:
        return (self._timer() - self._started) * 1000

    def expired(self) -> bool:
        return self.elapsed_ms > self.timeout_ms
