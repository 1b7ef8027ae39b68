"""Pydantic models (schemas) for the scheduling engine."""

from planmyday.models.enums import (
    RescheduleMode,
    SchedulingErrorKind,
    SchedulingMode,
    TaskStatus,
    Weekday,
)
from planmyday.models.schedule import (
    DayHours,
    ScheduleHours,
    TaskPlacement,
    TimeSlot,
    parse_schedule_hours,
)
from planmyday.models.task import Task, TaskGroup
from planmyday.models.schedule_result import (
    BatchFailure,
    BatchSchedulingResult,
    PullForwardResult,
    ReflowResult,
    ScheduleRequest,
    SchedulingResult,
)

__all__ = [
    # Enums
    "TaskStatus",
    "Weekday",
    "SchedulingMode",
    "RescheduleMode",
    "SchedulingErrorKind",
    # Schedule primitives
    "DayHours",
    "ScheduleHours",
    "TimeSlot",
    "TaskPlacement",
    "parse_schedule_hours",
    # Task
    "Task",
    "TaskGroup",
    # Requests / results
    "ScheduleRequest",
    "SchedulingResult",
    "ReflowResult",
    "PullForwardResult",
    "BatchFailure",
    "BatchSchedulingResult",
]
