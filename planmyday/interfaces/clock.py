"""
Clock interface.

The engine never reads the system time directly; callers pass a clock so
every operation is reproducible with a fixed "now".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class IClock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant as a UTC-aware datetime."""
        pass

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds from an arbitrary origin, used for time budgets."""
        pass
