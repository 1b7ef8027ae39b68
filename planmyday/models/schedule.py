"""
Schedule primitives: working-hour maps and time slots.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from planmyday.core.logger import setup_logger
from planmyday.models.enums import Weekday
from planmyday.utils.datetime_utils import ensure_utc

logger = setup_logger(__name__)


class DayHours(BaseModel):
    """Working window for one weekday, in local whole hours."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_hour: int = Field(..., ge=0, le=23, validation_alias=AliasChoices("start_hour", "start"))
    end_hour: int = Field(..., ge=1, le=24, validation_alias=AliasChoices("end_hour", "end"))

    @model_validator(mode="after")
    def validate_order(self):
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        return self


class ScheduleHours(BaseModel):
    """
    Per-weekday working hours.

    A day without an entry is a day off, unless the whole map is empty, in
    which case the default window applies every day.
    """

    model_config = ConfigDict(frozen=True)

    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None
    sunday: Optional[DayHours] = None

    def is_empty(self) -> bool:
        return all(self.for_weekday(day) is None for day in Weekday)

    def for_weekday(self, weekday: Weekday | str) -> Optional[DayHours]:
        return getattr(self, Weekday(weekday).value)

    @classmethod
    def every_day(cls, start_hour: int, end_hour: int) -> "ScheduleHours":
        hours = DayHours(start_hour=start_hour, end_hour=end_hour)
        return cls(**{day.value: hours for day in Weekday})


def parse_schedule_hours(raw: Any) -> Optional[ScheduleHours]:
    """
    Parse stored hours (JSON string, dict or model) into ScheduleHours.

    Malformed input is logged and treated as "not configured".
    """
    if raw is None or isinstance(raw, ScheduleHours):
        return raw
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing schedule hours JSON: {e}")
            return None
    if not isinstance(raw, dict):
        logger.error(f"Unsupported schedule hours payload: {type(raw).__name__}")
        return None
    try:
        return ScheduleHours.model_validate({key.lower(): value for key, value in raw.items()})
    except ValueError as e:
        logger.error(f"Invalid schedule hours: {e}")
        return None


class TimeSlot(BaseModel):
    """Half-open interval [start, end) of UTC instants."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def validate_order(self):
        if self.start >= self.end:
            raise ValueError("TimeSlot start must be before end")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_minutes(self) -> int:
        return int(self.duration.total_seconds() // 60)

    def overlaps(self, other: "TimeSlot") -> bool:
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


class TaskPlacement(BaseModel):
    """New interval computed for a task (target, displaced or pulled)."""

    task_id: str
    new_slot: TimeSlot
    previous_slot: Optional[TimeSlot] = None
