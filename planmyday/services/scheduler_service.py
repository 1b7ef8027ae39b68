"""
Scheduler service.

Public entry point of the engine. Wires the civil-time projector, slot
finder, dispatcher, shuffler, reflow and pull-forward for a request's
timezone, and turns scheduling errors into structured results.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Mapping, Optional

from planmyday.core.config import Settings, get_settings
from planmyday.core.exceptions import InvalidTaskStateError, SchedulingError, UnknownModeError
from planmyday.core.logger import setup_logger
from planmyday.infrastructure.local.clock import SystemClock
from planmyday.interfaces.clock import IClock
from planmyday.models.enums import RescheduleMode, SchedulingMode, TaskStatus
from planmyday.models.schedule import ScheduleHours, TaskPlacement
from planmyday.models.schedule_result import (
    BatchFailure,
    BatchSchedulingResult,
    PullForwardResult,
    ReflowResult,
    ScheduleRequest,
    SchedulingResult,
)
from planmyday.models.task import Task, TaskGroup
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.day_reflow import DayReflow
from planmyday.services.mode_dispatcher import ModeDispatcher, parse_mode
from planmyday.services.pull_forward import PullForward
from planmyday.services.slot_finder import SlotFinder

logger = setup_logger(__name__)

# Modes a group may be auto-scheduled with
AUTO_SCHEDULE_MODES = (
    SchedulingMode.NOW,
    SchedulingMode.TODAY,
    SchedulingMode.TOMORROW,
    SchedulingMode.NEXT_WEEK,
    SchedulingMode.NEXT_MONTH,
    SchedulingMode.ASAP,
)

RESCHEDULE_MODES = {
    RescheduleMode.NEXT_AVAILABLE: SchedulingMode.OPTIMAL,
    RescheduleMode.ASAP_SHUFFLE: SchedulingMode.ASAP,
}


def apply_placements(tasks: Iterable[Task], placements: Iterable[TaskPlacement]) -> list[Task]:
    """
    Return a new snapshot with ``placements`` applied.

    Later placements for the same task win; tasks without a placement are
    returned unchanged.
    """
    new_slots = {placement.task_id: placement.new_slot for placement in placements}
    return [
        task.with_slot(new_slots[task.id]) if task.id in new_slots else task
        for task in tasks
    ]


class SchedulerService:
    """
    Service for placing tasks on a user's calendar.

    Provides:
    - Single-task scheduling in every SchedulingMode
    - Rescheduling (next available slot or asap with shuffle)
    - Day reflow and group pull-forward
    - Batch scheduling of subtask chains and group backlogs
    """

    def __init__(self, clock: Optional[IClock] = None, settings: Optional[Settings] = None):
        """
        Initialize scheduler service.

        Args:
            clock: Source of "now" and of the monotonic timer (defaults to the system clock)
            settings: Engine settings (defaults to the cached ones)
        """
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    def _projector(self, timezone: Optional[str]) -> CivilTimeProjector:
        return CivilTimeProjector(timezone or self.settings.DEFAULT_TIMEZONE)

    def _slot_finder(self, projector: CivilTimeProjector) -> SlotFinder:
        return SlotFinder(
            projector,
            granularity_minutes=self.settings.SLOT_GRANULARITY_MINUTES,
            after_hours_limit_hour=self.settings.AFTER_HOURS_LIMIT_HOUR,
        )

    def schedule_task(self, request: ScheduleRequest) -> SchedulingResult:
        """
        Place one task.

        Args:
            request: Task, snapshot, mode, hours and tunables

        Returns:
            SchedulingResult; failures carry ``error`` and ``error_message``
            instead of raising
        """
        projector = self._projector(request.timezone)
        dispatcher = ModeDispatcher(
            projector,
            self._slot_finder(projector),
            timer=self.clock.monotonic,
            settings=self.settings,
        )
        try:
            return dispatcher.dispatch(request, self.clock.now())
        except SchedulingError as e:
            logger.info(f"Could not schedule task {request.task.id}: [{e.kind.value}] {e.message}")
            return SchedulingResult(
                task_id=request.task.id,
                feedback=[e.message],
                error=e.kind,
                error_message=e.message,
            )

    def reschedule_task(
        self,
        task: Task,
        all_tasks: list[Task],
        mode: RescheduleMode | str = RescheduleMode.NEXT_AVAILABLE,
        timezone: Optional[str] = None,
        groups: Optional[list[TaskGroup]] = None,
        working_hours: Optional[ScheduleHours] = None,
        dependency_map: Optional[dict[str, list[str]]] = None,
    ) -> SchedulingResult:
        """
        Move an already scheduled task.

        ``next-available`` searches with the optimal horizon; ``asap-shuffle``
        takes the earliest slot and displaces whatever is in the way.
        Completed tasks cannot be rescheduled.
        """
        try:
            if task.status == TaskStatus.COMPLETED:
                raise InvalidTaskStateError(
                    f'Task "{task.title or task.id}" is completed and cannot be rescheduled',
                    details={"task_id": task.id, "status": task.status.value},
                )
            try:
                scheduling_mode = RESCHEDULE_MODES[RescheduleMode(mode)]
            except ValueError:
                raise UnknownModeError(str(mode), [m.value for m in RescheduleMode])
        except SchedulingError as e:
            return SchedulingResult(task_id=task.id, feedback=[e.message], error=e.kind, error_message=e.message)

        request = ScheduleRequest(
            task=task,
            all_tasks=all_tasks,
            mode=scheduling_mode.value,
            timezone=timezone,
            groups=groups or [],
            working_hours=working_hours,
            dependency_map=dependency_map or {},
        )
        return self.schedule_task(request)

    def reflow_day(
        self,
        target_date: date,
        all_tasks: list[Task],
        timezone: Optional[str] = None,
        groups: Optional[list[TaskGroup]] = None,
        working_hours: Optional[ScheduleHours] = None,
        max_cascade_days: Optional[int] = None,
        max_timeout_ms: Optional[int] = None,
        dependency_map: Optional[dict[str, list[str]]] = None,
    ) -> ReflowResult:
        projector = self._projector(timezone)
        reflow = DayReflow(
            projector,
            self._slot_finder(projector),
            timer=self.clock.monotonic,
            max_cascade_days=max_cascade_days or self.settings.MAX_CASCADE_DAYS,
            max_timeout_ms=max_timeout_ms or self.settings.MAX_TIMEOUT_MS,
        )
        return reflow.reflow_day(
            target_date, all_tasks, groups or [], working_hours, self.clock.now(), dependency_map
        )

    def pull_forward(
        self,
        target_date: date,
        group_id: str,
        all_tasks: list[Task],
        timezone: Optional[str] = None,
        groups: Optional[list[TaskGroup]] = None,
        working_hours: Optional[ScheduleHours] = None,
        dependency_map: Optional[Mapping[str, list[str]]] = None,
        lookahead_days: Optional[int] = None,
    ) -> PullForwardResult:
        projector = self._projector(timezone)
        engine = PullForward(
            projector,
            self._slot_finder(projector),
            lookahead_days=lookahead_days or self.settings.PULL_FORWARD_LOOKAHEAD_DAYS,
        )
        return engine.pull_forward(
            target_date,
            group_id,
            all_tasks,
            groups or [],
            working_hours,
            self.clock.now(),
            dependency_map,
        )

    def schedule_subtasks(
        self,
        parent_id: str,
        all_tasks: list[Task],
        mode: SchedulingMode | str = SchedulingMode.NOW,
        timezone: Optional[str] = None,
        groups: Optional[list[TaskGroup]] = None,
        working_hours: Optional[ScheduleHours] = None,
        awake_hours: Optional[ScheduleHours] = None,
        dependency_map: Optional[dict[str, list[str]]] = None,
    ) -> BatchSchedulingResult:
        """
        Schedule a parent's subtasks as a chain.

        Subtasks are taken in step order (then creation time); each one starts
        no earlier than the previous one ends. Completed subtasks and subtasks
        without a duration are skipped. The chain stops at the first failure.
        """
        subtasks = sorted(
            (task for task in all_tasks if task.parent_task_id == parent_id),
            key=lambda task: (
                task.step_order if task.step_order is not None else float("inf"),
                task.created_at,
            ),
        )
        result = BatchSchedulingResult(total_candidates=len(subtasks))
        chain: list[Task] = []
        for task in subtasks:
            label = task.title or task.id
            if task.status == TaskStatus.COMPLETED:
                result.feedback.append(f'Skipped "{label}": already completed')
            elif not task.has_duration:
                result.feedback.append(f'Skipped "{label}": no duration set')
            else:
                chain.append(task)

        return self._schedule_sequence(
            chain,
            all_tasks,
            result,
            mode=mode,
            chained=True,
            timezone=timezone,
            groups=groups,
            working_hours=working_hours,
            awake_hours=awake_hours,
            dependency_map=dependency_map,
        )

    def auto_schedule_group(
        self,
        group_id: str,
        all_tasks: list[Task],
        mode: SchedulingMode | str = SchedulingMode.NOW,
        max_tasks: Optional[int] = None,
        timezone: Optional[str] = None,
        groups: Optional[list[TaskGroup]] = None,
        working_hours: Optional[ScheduleHours] = None,
        awake_hours: Optional[ScheduleHours] = None,
        dependency_map: Optional[dict[str, list[str]]] = None,
    ) -> BatchSchedulingResult:
        """
        Schedule the next few unscheduled tasks of a group.

        Args:
            group_id: Group to pull tasks from
            all_tasks: Current task snapshot
            mode: One of now, today, tomorrow, next-week, next-month, asap
            max_tasks: How many tasks to schedule (clamped to the configured range)

        Returns:
            BatchSchedulingResult with every placement and per-task failures
        """
        try:
            scheduling_mode = parse_mode(mode)
            if scheduling_mode not in AUTO_SCHEDULE_MODES:
                raise UnknownModeError(scheduling_mode.value, [m.value for m in AUTO_SCHEDULE_MODES])
        except SchedulingError as e:
            return BatchSchedulingResult(feedback=[e.message], error=e.kind, error_message=e.message)

        limit = self.settings.AUTO_SCHEDULE_DEFAULT_TASKS if max_tasks is None else max_tasks
        limit = max(1, min(limit, self.settings.AUTO_SCHEDULE_MAX_TASKS))

        eligible = [
            task
            for task in all_tasks
            if task.group_id == group_id
            and not task.is_scheduled
            and task.parent_task_id is None
            and task.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
            and task.has_duration
        ]
        eligible.sort(
            key=lambda task: (
                task.priority,
                task.due_date is None,
                task.due_date or task.created_at,
                task.created_at,
            )
        )
        picked = eligible[:limit]
        result = BatchSchedulingResult(total_candidates=len(eligible))
        if not picked:
            result.feedback.append("No unscheduled tasks with a duration in this group")
            return result

        return self._schedule_sequence(
            picked,
            all_tasks,
            result,
            mode=scheduling_mode,
            chained=False,
            timezone=timezone,
            groups=groups,
            working_hours=working_hours,
            awake_hours=awake_hours,
            dependency_map=dependency_map,
        )

    def _schedule_sequence(
        self,
        tasks: list[Task],
        all_tasks: list[Task],
        result: BatchSchedulingResult,
        mode: SchedulingMode | str,
        chained: bool,
        timezone: Optional[str],
        groups: Optional[list[TaskGroup]],
        working_hours: Optional[ScheduleHours],
        awake_hours: Optional[ScheduleHours],
        dependency_map: Optional[dict[str, list[str]]],
    ) -> BatchSchedulingResult:
        """Schedule ``tasks`` one after another against an evolving snapshot."""
        snapshot = list(all_tasks)
        previous_end: Optional[datetime] = None
        mode_value = mode.value if isinstance(mode, SchedulingMode) else mode

        for index, task in enumerate(tasks):
            current = next((t for t in snapshot if t.id == task.id), task)
            request = ScheduleRequest(
                task=current,
                all_tasks=snapshot,
                mode=mode_value,
                timezone=timezone,
                groups=groups or [],
                working_hours=working_hours,
                awake_hours=awake_hours,
                dependency_map=dependency_map or {},
                start_from=previous_end if chained else None,
            )
            outcome = self.schedule_task(request)
            result.feedback.extend(outcome.feedback)

            if outcome.slot is None:
                result.failures.append(
                    BatchFailure(task_id=task.id, error=outcome.error, message=outcome.error_message or "")
                )
                if chained:
                    remaining = len(tasks) - index - 1
                    if remaining:
                        result.feedback.append(f"Stopped the chain; {remaining} subtask(s) not scheduled")
                    break
                continue

            placement = TaskPlacement(task_id=task.id, new_slot=outcome.slot, previous_slot=current.slot)
            result.scheduled.append(placement)
            result.shuffled_tasks.extend(outcome.shuffled_tasks)
            snapshot = apply_placements(snapshot, [placement, *outcome.shuffled_tasks])
            previous_end = outcome.slot.end
            if outcome.error is not None and result.error is None:
                result.error = outcome.error
                result.error_message = outcome.error_message

        logger.info(
            f"Batch scheduling: {len(result.scheduled)} scheduled, {len(result.failures)} failed "
            f"out of {len(tasks)}"
        )
        return result
