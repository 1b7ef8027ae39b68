"""
Unit tests for overlap helpers.
"""

from datetime import datetime, timedelta, timezone

from planmyday.models.enums import TaskStatus
from planmyday.models.task import Task
from planmyday.utils.overlap import detect_task_overlaps, do_tasks_overlap, find_overlapping_pairs


UTC = timezone.utc


def make_task(task_id: str, start_hour: int | None, minutes: int = 60, **kwargs) -> Task:
    start = datetime(2026, 1, 5, start_hour, tzinfo=UTC) if start_hour is not None else None
    return Task(
        id=task_id,
        duration=minutes,
        scheduled_start=start,
        scheduled_end=start + timedelta(minutes=minutes) if start else None,
        **kwargs,
    )


def test_do_tasks_overlap():
    assert do_tasks_overlap(make_task("a", 9, 90), make_task("b", 10))
    assert not do_tasks_overlap(make_task("a", 9), make_task("b", 10))
    assert not do_tasks_overlap(make_task("a", 9), make_task("b", None))


def test_detect_task_overlaps_with_completed():
    active = [make_task("a", 9), make_task("b", 12)]
    completed = [make_task("done", 9, 30, status=TaskStatus.COMPLETED)]

    overlaps = detect_task_overlaps(active, completed)

    assert list(overlaps) == ["a"]
    assert [task.id for task in overlaps["a"]] == ["done"]


def test_find_overlapping_pairs_ignores_non_blocking():
    tasks = [
        make_task("a", 9, 120),
        make_task("b", 10),
        make_task("c", 12),
        make_task("gone", 9, status=TaskStatus.CANCELLED),
    ]

    assert find_overlapping_pairs(tasks) == [("a", "b")]
