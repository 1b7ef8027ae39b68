"""
Request and result models exchanged with the engine's callers.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from planmyday.models.enums import SchedulingErrorKind
from planmyday.models.schedule import ScheduleHours, TaskPlacement, TimeSlot
from planmyday.models.task import Task, TaskGroup
from planmyday.utils.datetime_utils import ensure_utc


class ScheduleRequest(BaseModel):
    """Everything needed to place one task."""

    task: Task
    all_tasks: list[Task] = Field(default_factory=list)
    mode: str = Field("now", description="SchedulingMode value; validated by the dispatcher")
    timezone: Optional[str] = None
    groups: list[TaskGroup] = Field(default_factory=list)
    working_hours: Optional[ScheduleHours] = Field(
        None, description="Caller's default hours, overridden by the task's group"
    )
    awake_hours: Optional[ScheduleHours] = Field(
        None, description="Fallback hours for today/tomorrow modes"
    )
    dependency_map: dict[str, list[str]] = Field(default_factory=dict)
    start_from: Optional[datetime] = Field(
        None, description="Extra lower bound, e.g. the end of the previous subtask"
    )
    max_days: Optional[int] = Field(None, ge=1)
    max_timeout_ms: Optional[int] = Field(None, ge=1)

    @field_validator("start_from")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class SchedulingResult(BaseModel):
    """Outcome of placing a single task."""

    task_id: str
    slot: Optional[TimeSlot] = None
    shuffled_tasks: list[TaskPlacement] = Field(default_factory=list)
    residual_conflict_ids: list[str] = Field(
        default_factory=list, description="Tasks still overlapping the result that the engine would not move"
    )
    feedback: list[str] = Field(default_factory=list)
    error: Optional[SchedulingErrorKind] = None
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.slot is not None


class ReflowResult(BaseModel):
    """Outcome of re-packing one day (and any days it cascaded into)."""

    target_date: date
    moved_tasks: list[TaskPlacement] = Field(default_factory=list)
    unplaced_task_ids: list[str] = Field(default_factory=list)
    processed_dates: list[date] = Field(default_factory=list)
    feedback: list[str] = Field(default_factory=list)
    error: Optional[SchedulingErrorKind] = None
    error_message: Optional[str] = None


class PullForwardResult(BaseModel):
    """Tasks pulled from a group's backlog into a day."""

    target_date: date
    group_id: str
    moved_tasks: list[TaskPlacement] = Field(default_factory=list)
    feedback: list[str] = Field(default_factory=list)
    error: Optional[SchedulingErrorKind] = None
    error_message: Optional[str] = None


class BatchFailure(BaseModel):
    task_id: str
    error: SchedulingErrorKind
    message: str


class BatchSchedulingResult(BaseModel):
    """Outcome of scheduling several tasks one after another."""

    scheduled: list[TaskPlacement] = Field(default_factory=list)
    shuffled_tasks: list[TaskPlacement] = Field(default_factory=list)
    failures: list[BatchFailure] = Field(default_factory=list)
    total_candidates: int = 0
    feedback: list[str] = Field(default_factory=list)
    error: Optional[SchedulingErrorKind] = None
    error_message: Optional[str] = None
