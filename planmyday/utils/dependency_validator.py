"""
Task dependency validation utilities.

Validates task dependencies to prevent circular dependencies and ensure
consistency before a dependency set is handed to the scheduler.
"""

from typing import Iterable, Mapping, Optional

from planmyday.core.exceptions import BusinessLogicError
from planmyday.models.task import Task
from planmyday.services.dependency_resolver import dependency_ids


class DependencyValidator:
    """Validator for task dependencies over an in-memory task snapshot."""

    def __init__(
        self,
        all_tasks: Iterable[Task],
        dependency_map: Optional[Mapping[str, list[str]]] = None,
    ):
        """
        Initialize validator with a task snapshot.

        Args:
            all_tasks: Every task visible to the user
            dependency_map: Extra task_id -> prerequisite ids
        """
        self.task_map = {task.id: task for task in all_tasks}
        self.dependency_map = dependency_map or {}

    def validate_dependencies(self, task_id: str, new_dependency_ids: list[str]) -> None:
        """
        Validate a proposed dependency list for a task.

        Args:
            task_id: ID of the task being validated
            new_dependency_ids: Proposed prerequisite ids

        Raises:
            BusinessLogicError: If dependencies are invalid
        """
        if not new_dependency_ids:
            return

        # 1. Check for self-dependency
        if task_id in new_dependency_ids:
            raise BusinessLogicError("A task cannot depend on itself")

        # 2. Check for duplicate dependencies
        if len(new_dependency_ids) != len(set(new_dependency_ids)):
            raise BusinessLogicError("Duplicate dependencies")

        # 3. Every dependency must exist
        for dep_id in new_dependency_ids:
            if dep_id not in self.task_map:
                raise BusinessLogicError(f"Dependency task {dep_id} not found")

        # 4. Subtask rules
        task = self.task_map.get(task_id)
        if task is not None and task.parent_task_id:
            self._validate_subtask_dependencies(task, new_dependency_ids)

        # 5. Check for circular dependencies
        self._check_circular_dependency(task_id, new_dependency_ids)

    def _validate_subtask_dependencies(self, subtask: Task, new_dependency_ids: list[str]) -> None:
        """
        Subtasks may depend on siblings or on unrelated top-level tasks, never on their parent.

        Raises:
            BusinessLogicError: If subtask dependencies are invalid
        """
        for dep_id in new_dependency_ids:
            dep_task = self.task_map[dep_id]
            if dep_task.id == subtask.parent_task_id:
                raise BusinessLogicError(
                    "A subtask cannot depend on its parent (the parent completes after its subtasks)"
                )
            if dep_task.parent_task_id and dep_task.parent_task_id != subtask.parent_task_id:
                raise BusinessLogicError(
                    "A subtask can only depend on subtasks of the same parent"
                )

    def _check_circular_dependency(
        self,
        task_id: str,
        new_dependency_ids: list[str],
        visited: Optional[set[str]] = None,
    ) -> None:
        """
        Check for circular dependencies using DFS.

        Raises:
            BusinessLogicError: If circular dependency is detected
        """
        if visited is None:
            visited = {task_id}

        for dep_id in new_dependency_ids:
            if dep_id in visited:
                raise BusinessLogicError(
                    f"Circular dependency detected: task {dep_id} is already in the dependency chain"
                )

            dep_task = self.task_map.get(dep_id)
            if dep_task is None:
                continue

            next_ids = dependency_ids(dep_task, self.dependency_map)
            if next_ids:
                self._check_circular_dependency(dep_id, next_ids, visited | {dep_id})

    def find_cycles(self) -> list[str]:
        """Ids of tasks whose dependency chain runs into a cycle."""
        cyclic: list[str] = []
        for task in self.task_map.values():
            try:
                self._check_circular_dependency(task.id, dependency_ids(task, self.dependency_map))
            except BusinessLogicError:
                cyclic.append(task.id)
        return cyclic
