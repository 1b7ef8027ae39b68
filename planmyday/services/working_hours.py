"""
Working-hours resolution.

Decides which local hour window applies to a weekday, and which hours map
applies to a task (its group's, or the caller's defaults).
"""

from __future__ import annotations

from typing import Iterable, Optional

from planmyday.core.config import get_settings
from planmyday.models.enums import Weekday
from planmyday.models.schedule import DayHours, ScheduleHours
from planmyday.models.task import Task, TaskGroup


def default_day_hours() -> DayHours:
    settings = get_settings()
    return DayHours(
        start_hour=settings.DEFAULT_WORK_START_HOUR,
        end_hour=settings.DEFAULT_WORK_END_HOUR,
    )


def resolve_working_hours(
    weekday: Weekday | str,
    hours_map: Optional[ScheduleHours],
) -> Optional[DayHours]:
    """
    Get the working window for a weekday.

    Args:
        weekday: Weekday name
        hours_map: Configured hours, or None

    Returns:
        The day's window; the default window when nothing is configured at
        all; None when the map is configured but the day has no entry.
    """
    if hours_map is None or hours_map.is_empty():
        return default_day_hours()
    return hours_map.for_weekday(weekday)


def find_group(groups: Iterable[TaskGroup], group_id: Optional[str]) -> Optional[TaskGroup]:
    if not group_id:
        return None
    return next((group for group in groups if group.id == group_id), None)


def effective_hours(
    task: Task,
    groups: Iterable[TaskGroup],
    default_hours: Optional[ScheduleHours],
) -> Optional[ScheduleHours]:
    """Hours map that governs ``task``: its group's when the group overrides, else the defaults."""
    group = find_group(groups, task.group_id)
    if group is not None and group.overrides_hours:
        return group.auto_schedule_hours
    return default_hours
