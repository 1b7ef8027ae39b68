"""
Day reflow.

Re-packs one civil day's movable tasks from a cursor forward. Tasks that no
longer fit are pushed to the next day their group works, and that day is
reflowed in turn. A task that cannot be placed anywhere keeps its slot, and
the day is re-packed around it.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Mapping, Optional

from planmyday.core.config import get_settings
from planmyday.core.exceptions import DependencyUnresolvedError
from planmyday.core.logger import setup_logger
from planmyday.models.enums import SchedulingErrorKind, TaskStatus
from planmyday.models.schedule import ScheduleHours, TaskPlacement, TimeSlot
from planmyday.models.schedule_result import ReflowResult
from planmyday.models.task import Task, TaskGroup
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.dependency_resolver import DependencyResolver
from planmyday.services.slot_finder import SlotFinder
from planmyday.services.working_hours import effective_hours, resolve_working_hours
from planmyday.utils.time_budget import TimeBudget

logger = setup_logger(__name__)

FIXED_STATUSES = frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CANCELLED})


def is_fixed(task: Task) -> bool:
    """Fixed tasks keep their slot and act as obstacles during a reflow."""
    return task.locked or task.status in FIXED_STATUSES


def is_reflowable(task: Task) -> bool:
    return (
        not is_fixed(task)
        and task.status == TaskStatus.PENDING
        and task.effective_duration() > timedelta(0)
    )


@dataclass
class _DayPlan:
    """Slots computed for one pass over a day, committed only once stable."""

    slots: dict[str, TimeSlot] = field(default_factory=dict)
    pushed_days: list[date] = field(default_factory=list)
    stranded: dict[str, str] = field(default_factory=dict)
    feedback: list[str] = field(default_factory=list)
    timed_out: bool = False


class DayReflow:
    """Day re-packing with bounded cascade into following days."""

    def __init__(
        self,
        projector: CivilTimeProjector,
        slot_finder: SlotFinder,
        timer: Callable[[], float],
        max_cascade_days: Optional[int] = None,
        max_timeout_ms: Optional[int] = None,
    ):
        settings = get_settings()
        self.projector = projector
        self.slot_finder = slot_finder
        self.timer = timer
        self.max_cascade_days = max_cascade_days or settings.MAX_CASCADE_DAYS
        self.max_timeout_ms = max_timeout_ms or settings.MAX_TIMEOUT_MS

    def reflow_day(
        self,
        target_date: date,
        all_tasks: Iterable[Task],
        groups: Iterable[TaskGroup],
        default_hours: Optional[ScheduleHours],
        now: datetime,
        dependency_map: Optional[Mapping[str, list[str]]] = None,
    ) -> ReflowResult:
        """
        Re-pack ``target_date`` and every day it cascades into.

        Args:
            target_date: Civil date to reflow
            all_tasks: Current task snapshot
            groups: Groups, for each task's own hours
            default_hours: Caller's default hours
            now: Current instant; on today the cursor starts here
            dependency_map: Extra prerequisite ids

        Returns:
            ReflowResult with every moved task (original slot kept as
            previous_slot), tasks left in place because they could not be
            placed within the cascade limit or wait on an unscheduled
            prerequisite, and a Timeout error when the budget ran out
        """
        groups = list(groups)
        snapshot: dict[str, Task] = {task.id: task for task in all_tasks}
        original_slots = {task_id: task.slot for task_id, task in snapshot.items()}
        budget = TimeBudget(self.max_timeout_ms, self.timer)
        result = ReflowResult(target_date=target_date)
        today = self.projector.local_date(now)
        last_day = target_date + timedelta(days=self.max_cascade_days)

        # Earliest pending day first, so a push never lands on a processed day
        pending = [target_date]
        queued = {target_date}
        while pending:
            if budget.expired():
                self._mark_timeout(result)
                break
            day = heapq.heappop(pending)
            result.processed_dates.append(day)

            pushed_days = self._reflow_one_day(
                day, today, snapshot, groups, default_hours, now, last_day,
                budget, result, dependency_map,
            )
            for pushed_day in pushed_days:
                if pushed_day not in queued:
                    queued.add(pushed_day)
                    heapq.heappush(pending, pushed_day)
            if result.error is not None:
                break

        for task_id, task in snapshot.items():
            previous = original_slots.get(task_id)
            if task.slot is not None and task.slot != previous:
                result.moved_tasks.append(
                    TaskPlacement(task_id=task_id, new_slot=task.slot, previous_slot=previous)
                )
        result.moved_tasks.sort(key=lambda placement: placement.new_slot.start)

        logger.info(
            f"Reflow of {target_date}: {len(result.moved_tasks)} moved, "
            f"{len(result.unplaced_task_ids)} unplaced, days {[str(d) for d in result.processed_dates]}"
        )
        return result

    def _reflow_one_day(
        self,
        day: date,
        today: date,
        snapshot: dict[str, Task],
        groups: list[TaskGroup],
        default_hours: Optional[ScheduleHours],
        now: datetime,
        last_day: date,
        budget: TimeBudget,
        result: ReflowResult,
        dependency_map: Optional[Mapping[str, list[str]]],
    ) -> list[date]:
        """Re-pack one day in place in ``snapshot``; returns the days tasks were pushed to."""
        movable = sorted(
            (
                task for task in snapshot.values()
                if task.is_scheduled
                and self.projector.local_date(task.scheduled_start) == day
                and is_reflowable(task)
            ),
            key=lambda task: (task.scheduled_start, task.created_at),
        )

        # Tasks that cannot move stay where they are; re-plan around them
        # until no new task gets stuck.
        held: dict[str, str] = {}
        while True:
            plan = self._plan_day(
                day, today, movable, held, snapshot, groups, default_hours, now,
                last_day, budget, dependency_map,
            )
            if plan.timed_out or not plan.stranded:
                break
            held.update(plan.stranded)

        for task_id, slot in plan.slots.items():
            snapshot[task_id] = snapshot[task_id].with_slot(slot)
        for task_id, message in {**held, **plan.stranded}.items():
            result.unplaced_task_ids.append(task_id)
            result.feedback.append(message)
        result.feedback.extend(plan.feedback)
        if plan.timed_out:
            self._mark_timeout(result)
        return plan.pushed_days

    def _plan_day(
        self,
        day: date,
        today: date,
        movable: list[Task],
        held: Mapping[str, str],
        snapshot: Mapping[str, Task],
        groups: list[TaskGroup],
        default_hours: Optional[ScheduleHours],
        now: datetime,
        last_day: date,
        budget: TimeBudget,
        dependency_map: Optional[Mapping[str, list[str]]],
    ) -> _DayPlan:
        plan = _DayPlan()
        day_start = self.projector.start_of_day(day)
        day_end = self.projector.to_instant(day, 24, 0)
        moving_ids = {task.id for task in movable if task.id not in held}
        obstacles: list[TimeSlot] = [
            task.slot
            for task in snapshot.values()
            if task.id not in moving_ids
            and task.is_scheduled
            and (
                task.is_blocking
                or task.id in held
                or (is_fixed(task) and self.projector.local_date(task.scheduled_start) == day)
            )
        ]
        resolver = DependencyResolver(snapshot.values(), dependency_map)

        cursor = max(now if day == today else day_start, day_start)
        for task in movable:
            if task.id in held:
                continue
            if budget.expired():
                plan.timed_out = True
                break

            label = task.title or task.id
            try:
                constraint = resolver.constraint(task)
            except DependencyUnresolvedError as e:
                plan.stranded[task.id] = f'"{label}" was left in place: {e.message}'
                continue

            hours = effective_hours(task, groups, default_hours)
            minutes = int(task.effective_duration().total_seconds() // 60)
            lower_bound = cursor
            if constraint is not None and constraint > lower_bound:
                lower_bound = constraint
            slot = self.slot_finder.find_forward(
                duration_minutes=minutes,
                obstacles=sorted(obstacles, key=lambda s: s.start),
                lower_bound=lower_bound,
                hours=hours,
                now=now,
                max_days=1,
                upper_bound=day_end,
                allow_after_hours=False,
            )
            if slot is not None:
                # A dependency wait leaves the gap before it open for later tasks
                if lower_bound == cursor:
                    cursor = slot.end
            else:
                slot = self._push_slot(day, minutes, constraint, obstacles, hours, now, last_day)
                if slot is None:
                    plan.stranded[task.id] = (
                        f'"{label}" did not fit and no working day is left within '
                        f"{self.max_cascade_days} days; left in place"
                    )
                    continue
                target = self.projector.local_date(slot.start)
                plan.pushed_days.append(target)
                plan.feedback.append(f'Moved "{label}" to {target}')

            plan.slots[task.id] = slot
            obstacles.append(slot)
            resolver.update(task.with_slot(slot))
        return plan

    def _push_slot(
        self,
        day: date,
        minutes: int,
        constraint: Optional[datetime],
        obstacles: list[TimeSlot],
        hours: Optional[ScheduleHours],
        now: datetime,
        last_day: date,
    ) -> Optional[TimeSlot]:
        """First free slot on a later working day, no later than ``last_day``."""
        candidate = day + timedelta(days=1)
        if constraint is not None:
            candidate = max(candidate, self.projector.local_date(constraint))
        ordered = sorted(obstacles, key=lambda s: s.start)
        while candidate <= last_day:
            if resolve_working_hours(self.projector.weekday(candidate), hours) is not None:
                lower_bound = self.projector.start_of_day(candidate)
                if constraint is not None and constraint > lower_bound:
                    lower_bound = constraint
                slot = self.slot_finder.find_forward(
                    duration_minutes=minutes,
                    obstacles=ordered,
                    lower_bound=lower_bound,
                    hours=hours,
                    now=now,
                    max_days=1,
                    upper_bound=self.projector.to_instant(candidate, 24, 0),
                    allow_after_hours=False,
                )
                if slot is not None:
                    return slot
            candidate += timedelta(days=1)
        return None

    def _mark_timeout(self, result: ReflowResult) -> None:
        if result.error is not None:
            return
        result.error = SchedulingErrorKind.TIMEOUT
        result.error_message = f"Reflow stopped after {self.max_timeout_ms} ms"
        result.feedback.append(result.error_message)
        logger.warning(result.error_message)
