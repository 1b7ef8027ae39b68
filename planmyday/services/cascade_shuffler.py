"""
Cascade shuffler.

Seats a task at its earliest slot and pushes every movable task in the way
forward, re-seating displaced tasks in their own group's hours. Displacement
cascades depth-first through an explicit work stack, bounded by a depth
ceiling and a wall-clock budget.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional

from planmyday.core.config import get_settings
from planmyday.core.exceptions import DependencyUnresolvedError
from planmyday.core.logger import setup_logger
from planmyday.models.enums import SchedulingErrorKind, TaskStatus
from planmyday.models.schedule import ScheduleHours, TaskPlacement, TimeSlot
from planmyday.models.task import Task, TaskGroup
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.dependency_resolver import DependencyResolver
from planmyday.services.slot_finder import SlotFinder
from planmyday.services.working_hours import effective_hours
from planmyday.utils.time_budget import TimeBudget

logger = setup_logger(__name__)


def is_movable(task: Task) -> bool:
    """Locked and in-progress tasks stay where they are."""
    return not task.locked and task.status == TaskStatus.PENDING


@dataclass
class ShuffleOutcome:
    placements: list[TaskPlacement] = field(default_factory=list)
    feedback: list[str] = field(default_factory=list)
    residual_conflict_ids: list[str] = field(default_factory=list)
    error: Optional[SchedulingErrorKind] = None
    error_message: Optional[str] = None


@dataclass
class _Frame:
    """A task that was just seated and may still overlap unmoved tasks."""

    task_id: str
    slot: TimeSlot
    depth: int
    pending: list[str]


class CascadeShuffler:
    """
    Displaces conflicting movable tasks after a forced placement.

    Each displaced task is visited at most once per run, which also breaks
    cycles between tasks that keep colliding with each other.
    """

    def __init__(
        self,
        projector: CivilTimeProjector,
        slot_finder: SlotFinder,
        timer: Callable[[], float],
        max_depth: Optional[int] = None,
        max_timeout_ms: Optional[int] = None,
        max_days: Optional[int] = None,
    ):
        settings = get_settings()
        self.projector = projector
        self.slot_finder = slot_finder
        self.timer = timer
        self.max_depth = max_depth or settings.SHUFFLE_MAX_DEPTH
        self.max_timeout_ms = max_timeout_ms or settings.MAX_TIMEOUT_MS
        self.max_days = max_days or settings.DEFAULT_SEARCH_DAYS

    def shuffle(
        self,
        target: Task,
        target_slot: TimeSlot,
        all_tasks: Iterable[Task],
        groups: Iterable[TaskGroup],
        default_hours: Optional[ScheduleHours],
        now: datetime,
        dependency_map: Optional[dict[str, list[str]]] = None,
    ) -> ShuffleOutcome:
        """
        Push tasks overlapping ``target_slot`` (and, transitively, the tasks
        they land on) later.

        Args:
            target: Task being placed
            target_slot: Interval already chosen for the target
            all_tasks: Current task snapshot
            groups: Groups, for each displaced task's own hours
            default_hours: Caller's default hours
            now: Current instant
            dependency_map: Extra prerequisite ids

        Returns:
            Ordered displacements plus feedback; a partial result carries
            Timeout or RecursionLimitExceeded
        """
        tasks = [task for task in all_tasks if task.id != target.id]
        groups = list(groups)
        task_map = {task.id: task for task in tasks}
        resolver = DependencyResolver([target.with_slot(target_slot), *tasks], dependency_map)
        budget = TimeBudget(self.max_timeout_ms, self.timer)
        outcome = ShuffleOutcome()

        positions: dict[str, TimeSlot] = {task.id: task.slot for task in tasks if task.is_blocking}
        settled: dict[str, TimeSlot] = {target.id: target_slot}
        for task_id, slot in positions.items():
            if not is_movable(task_map[task_id]):
                settled[task_id] = slot
        visited: set[str] = {target.id}

        def conflicts_for(task_id: str, slot: TimeSlot) -> list[str]:
            hits = [
                other_id
                for other_id, other_slot in positions.items()
                if other_id != task_id and other_slot.overlaps(slot)
            ]
            hits.sort(key=lambda other_id: (positions[other_id].start, task_map[other_id].created_at))
            return hits

        stack = [_Frame(target.id, target_slot, 0, conflicts_for(target.id, target_slot))]
        while stack:
            if budget.expired():
                outcome.error = SchedulingErrorKind.TIMEOUT
                outcome.error_message = (
                    f"Shuffle stopped after {self.max_timeout_ms} ms; "
                    f"{len(outcome.placements)} task(s) already moved"
                )
                outcome.feedback.append(outcome.error_message)
                logger.warning(outcome.error_message)
                break

            frame = stack[-1]
            if not frame.pending:
                stack.pop()
                continue

            other_id = frame.pending.pop(0)
            current = positions.get(other_id)
            if other_id in visited or current is None or not current.overlaps(frame.slot):
                continue

            other = task_map[other_id]
            label = other.title or other_id
            if not is_movable(other):
                reason = "locked" if other.locked else "in progress"
                outcome.feedback.append(f'"{label}" is {reason} and was left in place')
                if other_id not in outcome.residual_conflict_ids:
                    outcome.residual_conflict_ids.append(other_id)
                continue

            if frame.depth + 1 > self.max_depth:
                outcome.error = SchedulingErrorKind.RECURSION_LIMIT_EXCEEDED
                outcome.error_message = f"Shuffle depth limit ({self.max_depth}) reached"
                outcome.feedback.append(f'{outcome.error_message}; "{label}" was not moved')
                outcome.residual_conflict_ids.append(other_id)
                continue

            visited.add(other_id)
            new_slot = self._reseat(
                other,
                after=frame.slot.end,
                settled=settled,
                resolver=resolver,
                hours=effective_hours(other, groups, default_hours),
                now=now,
            )
            if new_slot is None:
                settled[other_id] = current
                outcome.residual_conflict_ids.append(other_id)
                outcome.feedback.append(f'No free slot found to move "{label}"')
                continue

            positions[other_id] = new_slot
            settled[other_id] = new_slot
            resolver.update(other.with_slot(new_slot))
            outcome.placements.append(
                TaskPlacement(task_id=other_id, new_slot=new_slot, previous_slot=current)
            )
            outcome.feedback.append(
                f'Moved "{label}" to {self.projector.format_slot(new_slot.start, new_slot.end)}'
            )
            stack.append(
                _Frame(other_id, new_slot, frame.depth + 1, conflicts_for(other_id, new_slot))
            )

        logger.info(
            f"Shuffle for task {target.id}: {len(outcome.placements)} moved, "
            f"{len(outcome.residual_conflict_ids)} left in conflict"
        )
        return outcome

    def _reseat(
        self,
        task: Task,
        after: datetime,
        settled: dict[str, TimeSlot],
        resolver: DependencyResolver,
        hours: Optional[ScheduleHours],
        now: datetime,
    ) -> Optional[TimeSlot]:
        lower_bound = after
        try:
            dependency_end = resolver.constraint(task)
        except DependencyUnresolvedError:
            dependency_end = None
        if dependency_end is not None and dependency_end > lower_bound:
            lower_bound = dependency_end

        obstacles = sorted(
            (slot for task_id, slot in settled.items() if task_id != task.id),
            key=lambda slot: slot.start,
        )
        minutes = int(task.effective_duration().total_seconds() // 60)
        return self.slot_finder.find_forward(
            duration_minutes=minutes,
            obstacles=obstacles,
            lower_bound=lower_bound,
            hours=hours,
            now=now,
            max_days=self.max_days,
        )
