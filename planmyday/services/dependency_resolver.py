"""
Dependency constraint resolution.

Computes the earliest instant a task may start given its prerequisites.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Mapping, Optional

from planmyday.core.exceptions import DependencyUnresolvedError
from planmyday.core.logger import setup_logger
from planmyday.models.enums import TaskStatus
from planmyday.models.task import Task

logger = setup_logger(__name__)


def dependency_ids(task: Task, dependency_map: Optional[Mapping[str, list[str]]] = None) -> list[str]:
    """
    All prerequisite ids of a task, in first-seen order without duplicates.

    Merges the legacy single field, the task's own ``depends_on`` and the
    caller's dependency map.
    """
    merged: list[str] = []
    sources: list[Iterable[str]] = [
        [task.depends_on_task_id] if task.depends_on_task_id else [],
        task.depends_on,
        (dependency_map or {}).get(task.id, []),
    ]
    for source in sources:
        for dep_id in source:
            if dep_id and dep_id != task.id and dep_id not in merged:
                merged.append(dep_id)
    return merged


class DependencyResolver:
    """Resolves dependency lower bounds against a task snapshot."""

    def __init__(
        self,
        all_tasks: Iterable[Task],
        dependency_map: Optional[Mapping[str, list[str]]] = None,
    ):
        self.task_map = {task.id: task for task in all_tasks}
        self.dependency_map = dependency_map or {}

    def dependency_ids(self, task: Task) -> list[str]:
        return dependency_ids(task, self.dependency_map)

    def update(self, task: Task) -> None:
        """Replace a task in the snapshot (e.g. after it was moved)."""
        self.task_map[task.id] = task

    def constraint(self, task: Task) -> Optional[datetime]:
        """
        Latest end among the task's incomplete prerequisites.

        Args:
            task: Task about to be placed

        Returns:
            The instant the task may start at the earliest, or None when no
            incomplete prerequisite exists

        Raises:
            DependencyUnresolvedError: An incomplete prerequisite has no
                scheduled interval, so no safe start can be determined
        """
        latest_end: Optional[datetime] = None
        for dep_id in self.dependency_ids(task):
            dep_task = self.task_map.get(dep_id)
            if dep_task is None:
                logger.debug(f"Ignoring missing dependency {dep_id} of task {task.id}")
                continue
            if dep_task.status == TaskStatus.COMPLETED:
                continue
            if not dep_task.is_scheduled:
                raise DependencyUnresolvedError(
                    f'Dependency "{dep_task.title or dep_id}" must be scheduled first',
                    dependency_id=dep_id,
                )
            if latest_end is None or dep_task.scheduled_end > latest_end:
                latest_end = dep_task.scheduled_end
        return latest_end

    def blocking_tasks(self, task: Task) -> list[Task]:
        """Incomplete prerequisites that currently hold ``task`` back."""
        return [
            self.task_map[dep_id]
            for dep_id in self.dependency_ids(task)
            if dep_id in self.task_map and self.task_map[dep_id].status != TaskStatus.COMPLETED
        ]
