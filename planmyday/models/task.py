"""
Task model definitions.

Tasks are the units of work the engine places on a calendar. Instants are
stored as UTC-aware datetimes; naive inputs are read as UTC.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from planmyday.models.enums import NON_BLOCKING_STATUSES, TaskStatus
from planmyday.models.schedule import ScheduleHours, TimeSlot
from planmyday.utils.datetime_utils import ensure_utc, now_utc


class Task(BaseModel):
    """A task as seen by the scheduling engine."""

    id: str = Field(..., min_length=1, description="Opaque task id")
    title: str = Field("", max_length=500)
    duration: Optional[int] = Field(None, ge=0, description="Estimated minutes")
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    status: TaskStatus = TaskStatus.PENDING
    locked: bool = Field(False, description="Locked tasks are never moved by the engine")
    due_date: Optional[datetime] = None
    group_id: Optional[str] = None
    depends_on: list[str] = Field(
        default_factory=list, description="Tasks that must finish before this one starts"
    )
    depends_on_task_id: Optional[str] = Field(
        None, description="Legacy single dependency, merged with depends_on"
    )
    parent_task_id: Optional[str] = None
    step_order: Optional[int] = Field(None, description="Position among sibling subtasks")
    priority: int = Field(3, ge=1, le=5, description="1 = most urgent, 5 = least urgent")
    created_at: datetime = Field(default_factory=now_utc)

    @field_validator("scheduled_start", "scheduled_end", "due_date", "created_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_schedule_pair(self):
        """scheduled_start and scheduled_end come together and are ordered."""
        if (self.scheduled_start is None) != (self.scheduled_end is None):
            raise ValueError("scheduled_start and scheduled_end must both be set or both be empty")
        if self.scheduled_start is not None and self.scheduled_start >= self.scheduled_end:
            raise ValueError("scheduled_start must be before scheduled_end")
        return self

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_start is not None

    @property
    def has_duration(self) -> bool:
        return bool(self.duration and self.duration > 0)

    @property
    def is_blocking(self) -> bool:
        """True when the task occupies its interval for everyone else."""
        return self.is_scheduled and self.status not in NON_BLOCKING_STATUSES

    @property
    def slot(self) -> Optional[TimeSlot]:
        if not self.is_scheduled:
            return None
        return TimeSlot(start=self.scheduled_start, end=self.scheduled_end)

    def effective_duration(self) -> timedelta:
        """
        Duration used when the task has to be re-seated.

        Falls back to the length of the current interval when no estimate is set.
        """
        if self.has_duration:
            return timedelta(minutes=self.duration)
        if self.is_scheduled:
            return self.scheduled_end - self.scheduled_start
        return timedelta(0)

    def with_slot(self, slot: Optional[TimeSlot]) -> "Task":
        """Return a copy placed at ``slot`` (or unscheduled when None)."""
        return self.model_copy(
            update={
                "scheduled_start": slot.start if slot else None,
                "scheduled_end": slot.end if slot else None,
            }
        )


class TaskGroup(BaseModel):
    """Optional scheduling policy owner for tasks."""

    id: str = Field(..., min_length=1)
    name: str = ""
    auto_schedule_enabled: bool = False
    auto_schedule_hours: Optional[ScheduleHours] = None
    priority: Optional[int] = None

    @property
    def overrides_hours(self) -> bool:
        """Group hours win over the caller's defaults only when enabled and set."""
        return (
            self.auto_schedule_enabled
            and self.auto_schedule_hours is not None
            and not self.auto_schedule_hours.is_empty()
        )
