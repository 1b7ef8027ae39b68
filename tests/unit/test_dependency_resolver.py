"""
Unit tests for DependencyResolver.
"""

from datetime import datetime, timezone

import pytest

from planmyday.core.exceptions import DependencyUnresolvedError
from planmyday.models.enums import SchedulingErrorKind, TaskStatus
from planmyday.models.task import Task
from planmyday.services.dependency_resolver import DependencyResolver, dependency_ids


UTC = timezone.utc


def make_task(
    task_id: str,
    start_hour: int | None = None,
    end_hour: int | None = None,
    status: TaskStatus = TaskStatus.PENDING,
    depends_on: list[str] | None = None,
    depends_on_task_id: str | None = None,
) -> Task:
    scheduled = start_hour is not None
    return Task(
        id=task_id,
        title=task_id.upper(),
        duration=60,
        scheduled_start=datetime(2026, 1, 5, start_hour, tzinfo=UTC) if scheduled else None,
        scheduled_end=datetime(2026, 1, 5, end_hour, tzinfo=UTC) if scheduled else None,
        status=status,
        depends_on=depends_on or [],
        depends_on_task_id=depends_on_task_id,
    )


def test_dependency_ids_merges_all_sources_without_duplicates():
    task = make_task("t", depends_on=["b", "c"], depends_on_task_id="a")

    assert dependency_ids(task, {"t": ["c", "d", "t"]}) == ["a", "b", "c", "d"]


def test_no_dependencies_means_no_constraint():
    task = make_task("t")

    assert DependencyResolver([task]).constraint(task) is None


def test_constraint_is_latest_incomplete_end():
    a = make_task("a", 9, 10)
    b = make_task("b", 11, 13)
    task = make_task("t", depends_on=["a", "b"])

    assert DependencyResolver([a, b, task]).constraint(task) == datetime(2026, 1, 5, 13, tzinfo=UTC)


def test_completed_dependencies_are_satisfied():
    done = make_task("done", 14, 16, status=TaskStatus.COMPLETED)
    unscheduled_done = make_task("old", status=TaskStatus.COMPLETED)
    task = make_task("t", depends_on=["done", "old"])

    assert DependencyResolver([done, unscheduled_done, task]).constraint(task) is None


def test_unscheduled_incomplete_dependency_blocks():
    pending = make_task("p")
    task = make_task("t", depends_on=["p"])

    with pytest.raises(DependencyUnresolvedError) as exc_info:
        DependencyResolver([pending, task]).constraint(task)

    assert exc_info.value.dependency_id == "p"
    assert exc_info.value.kind == SchedulingErrorKind.DEPENDENCY_UNRESOLVED


def test_missing_dependency_is_ignored():
    task = make_task("t", depends_on=["ghost"])

    assert DependencyResolver([task]).constraint(task) is None


def test_dependency_map_is_honored():
    a = make_task("a", 10, 12)
    task = make_task("t")

    resolver = DependencyResolver([a, task], {"t": ["a"]})

    assert resolver.constraint(task) == datetime(2026, 1, 5, 12, tzinfo=UTC)
    assert [t.id for t in resolver.blocking_tasks(task)] == ["a"]


def test_update_replaces_snapshot_entry():
    a = make_task("a", 10, 12)
    task = make_task("t", depends_on=["a"])
    resolver = DependencyResolver([a, task])

    resolver.update(make_task("a", 14, 15))

    assert resolver.constraint(task) == datetime(2026, 1, 5, 15, tzinfo=UTC)
