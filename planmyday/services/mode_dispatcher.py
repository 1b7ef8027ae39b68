"""
Mode dispatcher.

Turns a scheduling mode into search bounds, raises them by dependency and
chain constraints, and hands the search to the slot finder (or, for asap, to
the cascade shuffler).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from planmyday.core.config import Settings, get_settings
from planmyday.core.exceptions import (
    DependencyAfterDeadlineError,
    NoDurationSetError,
    NoSlotFoundError,
    UnknownModeError,
)
from planmyday.core.logger import setup_logger
from planmyday.models.enums import SchedulingMode
from planmyday.models.schedule import TimeSlot
from planmyday.models.schedule_result import ScheduleRequest, SchedulingResult
from planmyday.models.task import Task
from planmyday.services.cascade_shuffler import CascadeShuffler
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.dependency_resolver import DependencyResolver
from planmyday.services.slot_finder import SlotFinder, collect_obstacles
from planmyday.services.working_hours import effective_hours

logger = setup_logger(__name__)


@dataclass(frozen=True)
class SearchWindow:
    """Bounds and policy for one mode, before dependency constraints."""

    lower_bound: datetime
    upper_bound: Optional[datetime]
    max_days: int
    allow_after_hours: bool = True
    backward: bool = False
    shuffle: bool = False
    awake_fallback: bool = False


@dataclass(frozen=True)
class ModeContext:
    task: Task
    now: datetime
    today: date
    projector: CivilTimeProjector
    settings: Settings
    max_days: Optional[int] = None

    @property
    def search_days(self) -> int:
        return self.max_days or self.settings.DEFAULT_SEARCH_DAYS


def _now_window(ctx: ModeContext) -> SearchWindow:
    return SearchWindow(lower_bound=ctx.now, upper_bound=None, max_days=ctx.search_days)


def _today_window(ctx: ModeContext) -> SearchWindow:
    return SearchWindow(
        lower_bound=ctx.now,
        upper_bound=ctx.projector.to_instant(ctx.today, 23, 59),
        max_days=1,
        awake_fallback=True,
    )


def _tomorrow_window(ctx: ModeContext) -> SearchWindow:
    tomorrow = ctx.today + timedelta(days=1)
    # The finder snaps midnight to tomorrow's window start
    return SearchWindow(
        lower_bound=ctx.projector.start_of_day(tomorrow),
        upper_bound=ctx.projector.to_instant(tomorrow, 23, 59),
        max_days=1,
        awake_fallback=True,
    )


def _next_week_window(ctx: ModeContext) -> SearchWindow:
    days_ahead = 7 - ctx.today.weekday()
    monday = ctx.today + timedelta(days=days_ahead)
    return SearchWindow(
        lower_bound=ctx.projector.start_of_day(monday),
        upper_bound=None,
        max_days=ctx.search_days,
    )


def _next_month_window(ctx: ModeContext) -> SearchWindow:
    if ctx.today.month == 12:
        first = date(ctx.today.year + 1, 1, 1)
    else:
        first = date(ctx.today.year, ctx.today.month + 1, 1)
    return SearchWindow(
        lower_bound=ctx.projector.start_of_day(first),
        upper_bound=None,
        max_days=ctx.max_days or ctx.settings.NEXT_MONTH_SEARCH_DAYS,
    )


def _due_date_window(ctx: ModeContext) -> SearchWindow:
    due = ctx.task.due_date
    if due is None:
        raise NoSlotFoundError(
            "Task has no due date; due-date scheduling needs one",
            details={"task_id": ctx.task.id},
        )
    days_back = (ctx.projector.local_date(due) - ctx.today).days
    return SearchWindow(
        lower_bound=ctx.now,
        upper_bound=due,
        max_days=max(0, days_back),
        backward=True,
    )


def _asap_window(ctx: ModeContext) -> SearchWindow:
    return SearchWindow(
        lower_bound=ctx.now,
        upper_bound=None,
        max_days=ctx.search_days,
        shuffle=True,
    )


def _optimal_window(ctx: ModeContext) -> SearchWindow:
    due = ctx.task.due_date
    if due is None:
        days = ctx.settings.OPTIMAL_NO_DUE_DATE_DAYS
    else:
        days_until_due = math.ceil((due - ctx.now).total_seconds() / 86400)
        days = max(1, min(ctx.settings.DEFAULT_SEARCH_DAYS, days_until_due))
    return SearchWindow(lower_bound=ctx.now, upper_bound=None, max_days=days)


MODE_WINDOWS: dict[SchedulingMode, Callable[[ModeContext], SearchWindow]] = {
    SchedulingMode.NOW: _now_window,
    SchedulingMode.TODAY: _today_window,
    SchedulingMode.TOMORROW: _tomorrow_window,
    SchedulingMode.NEXT_WEEK: _next_week_window,
    SchedulingMode.NEXT_MONTH: _next_month_window,
    SchedulingMode.DUE_DATE: _due_date_window,
    SchedulingMode.ASAP: _asap_window,
    SchedulingMode.OPTIMAL: _optimal_window,
}

_unmapped = set(SchedulingMode) - set(MODE_WINDOWS)
if _unmapped:
    raise RuntimeError(f"Scheduling modes without a window: {sorted(m.value for m in _unmapped)}")


def parse_mode(mode: SchedulingMode | str) -> SchedulingMode:
    """
    Parse a mode string.

    Raises:
        UnknownModeError: The string is not a SchedulingMode value
    """
    try:
        return SchedulingMode(mode)
    except ValueError:
        raise UnknownModeError(str(mode), [m.value for m in SchedulingMode])


class ModeDispatcher:
    """
    Places a single task according to its scheduling mode.

    Raises SchedulingError subclasses on failure; the scheduler service turns
    them into structured results.
    """

    def __init__(
        self,
        projector: CivilTimeProjector,
        slot_finder: SlotFinder,
        timer: Callable[[], float],
        settings: Optional[Settings] = None,
    ):
        """
        Initialize dispatcher.

        Args:
            projector: Civil-time projector for the request timezone
            slot_finder: Finder bound to the same projector
            timer: Monotonic timer for the shuffle budget
            settings: Engine settings (defaults to the cached ones)
        """
        self.projector = projector
        self.slot_finder = slot_finder
        self.timer = timer
        self.settings = settings or get_settings()

    def window_for(
        self,
        mode: SchedulingMode,
        task: Task,
        now: datetime,
        max_days: Optional[int] = None,
    ) -> SearchWindow:
        """Search bounds for ``mode`` as seen from ``now``."""
        ctx = ModeContext(
            task=task,
            now=now,
            today=self.projector.local_date(now),
            projector=self.projector,
            settings=self.settings,
            max_days=max_days,
        )
        return MODE_WINDOWS[mode](ctx)

    def dispatch(self, request: ScheduleRequest, now: datetime) -> SchedulingResult:
        """
        Place ``request.task`` per ``request.mode``.

        Args:
            request: Task, snapshot, hours and tunables
            now: Current instant

        Returns:
            SchedulingResult with the slot; asap results also carry the
            displacements and, when a guard stopped the shuffle, its error

        Raises:
            UnknownModeError: Mode string not recognized
            NoDurationSetError: Task has no duration
            DependencyUnresolvedError: A prerequisite is unscheduled
            DependencyAfterDeadlineError: Prerequisites end after the due date
            NoSlotFoundError: Search exhausted its bounds
        """
        mode = parse_mode(request.mode)
        task = request.task
        if not task.has_duration:
            raise NoDurationSetError(
                f'Task "{task.title or task.id}" has no duration',
                details={"task_id": task.id},
            )

        window = self.window_for(mode, task, now, request.max_days)
        feedback: list[str] = []

        resolver = DependencyResolver(request.all_tasks, request.dependency_map)
        dependency_end = resolver.constraint(task)
        lower_bound = window.lower_bound
        if dependency_end is not None and dependency_end > lower_bound:
            lower_bound = dependency_end
            feedback.append(f"Waiting for dependencies until {self.projector.format(dependency_end)}")
        if request.start_from is not None and request.start_from > lower_bound:
            lower_bound = request.start_from

        hours = effective_hours(task, request.groups, request.working_hours)
        obstacles = collect_obstacles(request.all_tasks, exclude_ids=[task.id])
        logger.debug(
            f"Dispatching task {task.id} mode={mode.value} lower={lower_bound.isoformat()} "
            f"upper={window.upper_bound.isoformat() if window.upper_bound else None}"
        )

        if window.backward:
            slot = self._place_backward(task, window, lower_bound, dependency_end, obstacles, hours, now)
        elif window.shuffle:
            return self._place_with_shuffle(request, window, lower_bound, hours, now, feedback)
        else:
            slot = self._place_forward(
                request, mode, window, lower_bound, dependency_end, obstacles, hours, now, feedback
            )

        feedback.append(f"Scheduled for {self.projector.format_slot(slot.start, slot.end)}")
        logger.info(f"Scheduled task {task.id} ({mode.value}) at {slot}")
        return SchedulingResult(task_id=task.id, slot=slot, feedback=feedback)

    def _place_backward(self, task, window, lower_bound, dependency_end, obstacles, hours, now) -> TimeSlot:
        due = window.upper_bound
        duration = timedelta(minutes=task.duration)
        if dependency_end is not None and dependency_end + duration > due:
            raise DependencyAfterDeadlineError(
                f"Dependencies finish at {self.projector.format(dependency_end)}, "
                f"too late to fit before the due date {self.projector.format(due)}",
                details={"task_id": task.id},
            )
        slot = self.slot_finder.find_backward(
            duration_minutes=task.duration,
            obstacles=obstacles,
            deadline=due,
            hours=hours,
            now=now,
            max_days=window.max_days,
            earliest=lower_bound,
        )
        if slot is None:
            raise NoSlotFoundError(
                f"No free slot before the due date {self.projector.format(due)}",
                details={"task_id": task.id},
            )
        return slot

    def _place_forward(
        self, request, mode, window, lower_bound, dependency_end, obstacles, hours, now, feedback
    ) -> TimeSlot:
        task = request.task
        if window.upper_bound is not None and lower_bound >= window.upper_bound:
            if dependency_end is not None and dependency_end >= window.upper_bound:
                message = f"Cannot satisfy dependencies before the end of the {mode.value} window"
            else:
                message = f"The {mode.value} window has already passed"
            raise NoSlotFoundError(message, details={"task_id": task.id})

        def search(search_hours):
            return self.slot_finder.find_forward(
                duration_minutes=task.duration,
                obstacles=obstacles,
                lower_bound=lower_bound,
                hours=search_hours,
                now=now,
                max_days=window.max_days,
                upper_bound=window.upper_bound,
                allow_after_hours=window.allow_after_hours,
            )

        slot = search(hours)
        if slot is None and window.awake_fallback and request.awake_hours is not None:
            slot = search(request.awake_hours)
            if slot is not None:
                feedback.append("No room in working hours; used awake hours instead")
        if slot is None:
            raise NoSlotFoundError(
                f"No free slot found for mode {mode.value}",
                details={"task_id": task.id, "max_days": window.max_days},
            )
        return slot

    def _place_with_shuffle(self, request, window, lower_bound, hours, now, feedback) -> SchedulingResult:
        task = request.task
        # The target takes the earliest working slot regardless of what is booked there
        slot = self.slot_finder.find_forward(
            duration_minutes=task.duration,
            obstacles=[],
            lower_bound=lower_bound,
            hours=hours,
            now=now,
            max_days=window.max_days,
        )
        if slot is None:
            raise NoSlotFoundError(
                "No working-hours slot found for asap placement",
                details={"task_id": task.id},
            )

        shuffler = CascadeShuffler(
            projector=self.projector,
            slot_finder=self.slot_finder,
            timer=self.timer,
            max_depth=self.settings.SHUFFLE_MAX_DEPTH,
            max_timeout_ms=request.max_timeout_ms or self.settings.MAX_TIMEOUT_MS,
            max_days=window.max_days,
        )
        outcome = shuffler.shuffle(
            target=task,
            target_slot=slot,
            all_tasks=request.all_tasks,
            groups=request.groups,
            default_hours=request.working_hours,
            now=now,
            dependency_map=request.dependency_map,
        )
        feedback.append(f"Scheduled for {self.projector.format_slot(slot.start, slot.end)}")
        feedback.extend(outcome.feedback)
        return SchedulingResult(
            task_id=task.id,
            slot=slot,
            shuffled_tasks=outcome.placements,
            residual_conflict_ids=outcome.residual_conflict_ids,
            feedback=feedback,
            error=outcome.error,
            error_message=outcome.error_message,
        )
