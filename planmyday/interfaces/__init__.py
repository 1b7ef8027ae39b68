"""Abstract interfaces for infrastructure abstraction."""

from planmyday.interfaces.clock import IClock

__all__ = ["IClock"]
