"""
Enum definitions for the scheduling engine.

These enums are used across models and provide type-safe status/mode values.
"""

from enum import Enum


class TaskStatus(str, Enum):
    """Task status."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Tasks in these states never block anyone else's placement
NON_BLOCKING_STATUSES = frozenset(
    {TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.RESCHEDULED}
)


class Weekday(str, Enum):
    """Weekday names in ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def from_index(cls, index: int) -> "Weekday":
        return list(cls)[index]


class SchedulingMode(str, Enum):
    """
    How a task should be placed.

    NOW = nearest free slot within the next month
    TODAY / TOMORROW = must land on that civil day
    NEXT_WEEK / NEXT_MONTH = search starts next Monday / on the 1st
    DUE_DATE = latest slot before the due date
    ASAP = earliest slot, displacing movable tasks in the way
    OPTIMAL = forward search with a horizon derived from the due date
    """

    NOW = "now"
    TODAY = "today"
    TOMORROW = "tomorrow"
    NEXT_WEEK = "next-week"
    NEXT_MONTH = "next-month"
    ASAP = "asap"
    DUE_DATE = "due-date"
    OPTIMAL = "optimal"


class RescheduleMode(str, Enum):
    """Reschedule request modes."""

    NEXT_AVAILABLE = "next-available"
    ASAP_SHUFFLE = "asap-shuffle"


class SchedulingErrorKind(str, Enum):
    """Structured error kinds returned by the engine."""

    NO_DURATION_SET = "NoDurationSet"
    NO_SLOT_FOUND = "NoSlotFound"
    DEPENDENCY_UNRESOLVED = "DependencyUnresolved"
    DEPENDENCY_AFTER_DEADLINE = "DependencyAfterDeadline"
    TIMEOUT = "Timeout"
    RECURSION_LIMIT_EXCEEDED = "RecursionLimitExceeded"
    UNKNOWN_MODE = "UnknownMode"
    INVALID_TASK_STATE = "InvalidTaskState"
