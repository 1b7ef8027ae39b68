"""
Overlap detection helpers.

Checks the no-overlap invariant over a task snapshot and finds active tasks
that share time with completed ones.
"""

from typing import Iterable

from planmyday.models.task import Task


def do_tasks_overlap(task1: Task, task2: Task) -> bool:
    """True when both tasks are scheduled and their intervals intersect."""
    if not task1.is_scheduled or not task2.is_scheduled:
        return False
    return task1.slot.overlaps(task2.slot)


def detect_task_overlaps(
    active_tasks: Iterable[Task],
    completed_tasks: Iterable[Task],
) -> dict[str, list[Task]]:
    """
    Map each active task id to the completed tasks sharing its time.

    Args:
        active_tasks: Tasks still to be done
        completed_tasks: Finished tasks whose old intervals remain on record

    Returns:
        Active task id -> overlapping completed tasks (ids without overlaps are omitted)
    """
    completed = list(completed_tasks)
    overlaps: dict[str, list[Task]] = {}
    for active in active_tasks:
        hits = [done for done in completed if do_tasks_overlap(active, done)]
        if hits:
            overlaps[active.id] = hits
    return overlaps


def find_overlapping_pairs(tasks: Iterable[Task]) -> list[tuple[str, str]]:
    """
    Pairs of blocking tasks whose intervals overlap.

    Only tasks that act as obstacles (scheduled, not completed, cancelled or
    rescheduled) are considered. Pairs are ordered by start time.
    """
    blocking = sorted(
        (task for task in tasks if task.is_blocking),
        key=lambda task: (task.scheduled_start, task.created_at),
    )
    pairs: list[tuple[str, str]] = []
    for index, first in enumerate(blocking):
        for second in blocking[index + 1:]:
            if second.scheduled_start >= first.scheduled_end:
                break
            pairs.append((first.id, second.id))
    return pairs
