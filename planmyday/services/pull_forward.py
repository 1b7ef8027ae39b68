"""
Pull-forward.

Backfills a day's free capacity with a group's upcoming tasks.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Mapping, Optional

from planmyday.core.config import get_settings
from planmyday.core.exceptions import DependencyUnresolvedError
from planmyday.core.logger import setup_logger
from planmyday.models.enums import NON_BLOCKING_STATUSES
from planmyday.models.schedule import ScheduleHours, TaskPlacement
from planmyday.models.schedule_result import PullForwardResult
from planmyday.models.task import Task, TaskGroup
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.dependency_resolver import DependencyResolver
from planmyday.services.slot_finder import SlotFinder, collect_obstacles
from planmyday.services.working_hours import effective_hours, resolve_working_hours

logger = setup_logger(__name__)


class PullForward:
    """Greedy backfill of one day from one group's later tasks."""

    def __init__(
        self,
        projector: CivilTimeProjector,
        slot_finder: SlotFinder,
        lookahead_days: Optional[int] = None,
    ):
        self.projector = projector
        self.slot_finder = slot_finder
        self.lookahead_days = lookahead_days or get_settings().PULL_FORWARD_LOOKAHEAD_DAYS

    def candidates(self, target_date: date, group_id: str, all_tasks: Iterable[Task]) -> list[Task]:
        """
        Group tasks scheduled after ``target_date`` within the look-ahead.

        Locked tasks and tasks in a terminal status are never pulled.
        """
        after_day = self.projector.to_instant(target_date, 24, 0)
        horizon = self.projector.start_of_day(target_date + timedelta(days=self.lookahead_days + 1))
        picked = [
            task
            for task in all_tasks
            if task.group_id == group_id
            and not task.locked
            and task.status not in NON_BLOCKING_STATUSES
            and task.is_scheduled
            and after_day <= task.scheduled_start < horizon
        ]
        return sorted(picked, key=lambda task: (task.scheduled_start, task.created_at))

    def pull_forward(
        self,
        target_date: date,
        group_id: str,
        all_tasks: Iterable[Task],
        groups: Iterable[TaskGroup],
        default_hours: Optional[ScheduleHours],
        now: datetime,
        dependency_map: Optional[Mapping[str, list[str]]] = None,
    ) -> PullForwardResult:
        """
        Move as many upcoming group tasks into ``target_date`` as fit.

        Args:
            target_date: Civil date to fill
            group_id: Group whose backlog is pulled
            all_tasks: Current task snapshot; every task on the day is an obstacle
            groups: Groups, for the group's own hours
            default_hours: Caller's default hours
            now: Current instant
            dependency_map: Extra prerequisite ids

        Returns:
            PullForwardResult; stops at the first task that does not fit
        """
        all_tasks = list(all_tasks)
        groups = list(groups)
        result = PullForwardResult(target_date=target_date, group_id=group_id)

        candidates = self.candidates(target_date, group_id, all_tasks)
        if not candidates:
            result.feedback.append("No upcoming tasks to pull forward")
            return result

        day_start = self.projector.start_of_day(target_date)
        day_end = self.projector.to_instant(target_date, 24, 0)
        if day_end <= now:
            result.feedback.append(f"{target_date} is already over")
            return result

        hours = effective_hours(candidates[0], groups, default_hours)
        if resolve_working_hours(self.projector.weekday(target_date), hours) is None:
            result.feedback.append(f"The group does not work on {target_date}")
            return result

        resolver = DependencyResolver(all_tasks, dependency_map)
        obstacles = collect_obstacles(all_tasks, exclude_ids=[task.id for task in candidates])

        for task in candidates:
            label = task.title or task.id
            try:
                dependency_end = resolver.constraint(task)
            except DependencyUnresolvedError as e:
                result.feedback.append(f'Stopped at "{label}": {e.message}')
                break

            lower_bound = day_start
            if dependency_end is not None and dependency_end > lower_bound:
                lower_bound = dependency_end
            minutes = int(task.effective_duration().total_seconds() // 60)
            slot = self.slot_finder.find_forward(
                duration_minutes=minutes,
                obstacles=obstacles,
                lower_bound=lower_bound,
                hours=hours,
                now=now,
                max_days=1,
                upper_bound=day_end,
                allow_after_hours=False,
            )
            if slot is None:
                result.feedback.append(f'"{label}" does not fit on {target_date}; stopping')
                break

            result.moved_tasks.append(
                TaskPlacement(task_id=task.id, new_slot=slot, previous_slot=task.slot)
            )
            result.feedback.append(
                f'Pulled "{label}" forward to {self.projector.format_slot(slot.start, slot.end)}'
            )
            obstacles = sorted([*obstacles, slot], key=lambda s: s.start)
            resolver.update(task.with_slot(slot))

        logger.info(
            f"Pull-forward into {target_date} for group {group_id}: "
            f"{len(result.moved_tasks)} of {len(candidates)} moved"
        )
        return result
