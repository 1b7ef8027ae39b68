"""
Unit tests for SlotFinder forward and backward search.
"""

from datetime import datetime, timedelta, timezone

import pytest

from planmyday.models.enums import TaskStatus
from planmyday.models.schedule import DayHours, ScheduleHours, TimeSlot
from planmyday.models.task import Task
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.slot_finder import SlotFinder, collect_obstacles
from planmyday.utils.datetime_utils import is_on_grid


UTC = timezone.utc
NINE_TO_FIVE = ScheduleHours.every_day(9, 17)
WEEKDAYS_ONLY = ScheduleHours(**{
    day: DayHours(start_hour=9, end_hour=17)
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday")
})


def at(day: int, hour: int, minute: int = 0) -> datetime:
    """Instant in January 2026 (the 5th is a Monday)."""
    return datetime(2026, 1, day, hour, minute, tzinfo=UTC)


def slot(start: datetime, end: datetime) -> TimeSlot:
    return TimeSlot(start=start, end=end)


@pytest.fixture
def finder() -> SlotFinder:
    return SlotFinder(CivilTimeProjector("UTC"), granularity_minutes=15, after_hours_limit_hour=23)


def forward(finder, duration, now, obstacles=(), lower_bound=None, hours=NINE_TO_FIVE, **kwargs):
    return finder.find_forward(
        duration_minutes=duration,
        obstacles=list(obstacles),
        lower_bound=lower_bound or now,
        hours=hours,
        now=now,
        max_days=kwargs.pop("max_days", 30),
        **kwargs,
    )


def test_basic_forward_search(finder):
    result = forward(finder, 60, at(5, 10))

    assert result == slot(at(5, 10), at(5, 11))


def test_conflict_skip(finder):
    result = forward(finder, 60, at(5, 10), obstacles=[slot(at(5, 10), at(5, 10, 30))])

    assert result == slot(at(5, 10, 30), at(5, 11, 30))


def test_single_jump_clears_all_overlapping_obstacles(finder):
    obstacles = [slot(at(5, 10), at(5, 11)), slot(at(5, 10, 30), at(5, 12))]

    assert forward(finder, 60, at(5, 10), obstacles=obstacles) == slot(at(5, 12), at(5, 13))


def test_start_rounds_up_to_grid(finder):
    result = forward(finder, 30, at(5, 10, 7))

    assert result.start == at(5, 10, 15)
    assert is_on_grid(result.start)


def test_snaps_to_window_start(finder):
    assert forward(finder, 45, at(5, 7)) == slot(at(5, 9), at(5, 9, 45))


def test_after_hours_allowance_today(finder):
    assert forward(finder, 60, at(5, 18, 30)) == slot(at(5, 18, 30), at(5, 19, 30))


def test_after_hours_allowance_requires_fit_before_limit(finder):
    assert forward(finder, 60, at(5, 22, 30)) == slot(at(6, 9), at(6, 10))


def test_after_hours_allowance_only_applies_to_today(finder):
    result = forward(finder, 60, at(5, 10), lower_bound=at(6, 18))

    assert result == slot(at(7, 9), at(7, 10))


def test_after_hours_can_be_disabled(finder):
    assert forward(finder, 60, at(5, 18, 30), allow_after_hours=False) == slot(at(6, 9), at(6, 10))


def test_task_crossing_window_end_moves_to_next_day(finder):
    assert forward(finder, 60, at(5, 16, 30)) == slot(at(6, 9), at(6, 10))


def test_skips_days_off(finder):
    result = forward(finder, 60, at(5, 10), lower_bound=at(10, 8), hours=WEEKDAYS_ONLY)

    assert result == slot(at(12, 9), at(12, 10))


def test_upper_bound_rejects_late_end(finder):
    result = forward(finder, 60, at(5, 10), obstacles=[slot(at(5, 10), at(5, 16, 30))], upper_bound=at(5, 17))

    assert result is None


def test_horizon_exhausted_returns_none(finder):
    monday_only = ScheduleHours(monday=DayHours(start_hour=9, end_hour=17))
    result = forward(
        finder,
        60,
        at(5, 10),
        obstacles=[slot(at(5, 9), at(5, 17))],
        hours=monday_only,
        max_days=1,
        allow_after_hours=False,
    )

    assert result is None


@pytest.mark.parametrize("duration", [None, 0, -15])
def test_forward_needs_positive_duration(finder, duration):
    assert forward(finder, duration, at(5, 10)) is None


def test_duration_exact_and_grid_aligned_over_many_obstacles(finder):
    obstacles = [slot(at(5, h, 10), at(5, h, 50)) for h in range(9, 17)]
    result = forward(finder, 25, at(5, 9), obstacles=obstacles)

    assert result.duration == timedelta(minutes=25)
    assert is_on_grid(result.start)
    assert not any(result.overlaps(o) for o in obstacles)


def test_window_on_dst_start_day():
    finder = SlotFinder(CivilTimeProjector("America/New_York"))
    sunday_only = ScheduleHours(sunday=DayHours(start_hour=9, end_hour=17))
    now = datetime(2026, 3, 6, 15, 0, tzinfo=UTC)

    result = finder.find_forward(60, [], now, sunday_only, now, max_days=7)

    # 09:00 EDT on 2026-03-08
    assert result == slot(datetime(2026, 3, 8, 13, 0, tzinfo=UTC), datetime(2026, 3, 8, 14, 0, tzinfo=UTC))


def test_collect_obstacles_skips_free_statuses_and_excluded():
    tasks = [
        Task(id="a", scheduled_start=at(5, 10), scheduled_end=at(5, 11)),
        Task(id="b", scheduled_start=at(5, 9), scheduled_end=at(5, 10), status=TaskStatus.IN_PROGRESS),
        Task(id="c", scheduled_start=at(5, 12), scheduled_end=at(5, 13), status=TaskStatus.COMPLETED),
        Task(id="d", scheduled_start=at(5, 12), scheduled_end=at(5, 13), status=TaskStatus.CANCELLED),
        Task(id="e", scheduled_start=at(5, 12), scheduled_end=at(5, 13), status=TaskStatus.RESCHEDULED),
        Task(id="f", scheduled_start=at(5, 14), scheduled_end=at(5, 15)),
        Task(id="g"),
    ]

    result = collect_obstacles(tasks, exclude_ids=["f"])

    assert result == [slot(at(5, 9), at(5, 10)), slot(at(5, 10), at(5, 11))]


def backward(finder, duration, deadline, now, obstacles=(), earliest=None, max_days=30):
    return finder.find_backward(
        duration_minutes=duration,
        obstacles=list(obstacles),
        deadline=deadline,
        hours=NINE_TO_FIVE,
        now=now,
        max_days=max_days,
        earliest=earliest,
    )


def test_backward_picks_latest_start_before_deadline(finder):
    assert backward(finder, 60, at(5, 15), at(5, 8)) == slot(at(5, 14), at(5, 15))


def test_backward_moves_below_conflicts(finder):
    result = backward(finder, 60, at(5, 15), at(5, 8), obstacles=[slot(at(5, 13, 30), at(5, 15))])

    assert result == slot(at(5, 12, 30), at(5, 13, 30))


def test_backward_falls_back_to_previous_day(finder):
    result = backward(finder, 60, at(6, 10), at(5, 7), obstacles=[slot(at(6, 9), at(6, 10))])

    assert result == slot(at(5, 16), at(5, 17))


def test_backward_infeasible_before_early_deadline(finder):
    # Only 30 minutes of window precede a 09:30 deadline
    assert backward(finder, 120, at(5, 9, 30), at(5, 7)) is None


def test_backward_respects_earliest(finder):
    assert backward(finder, 60, at(5, 17), at(5, 8), earliest=at(5, 16, 30)) is None
    assert backward(finder, 60, at(5, 17), at(5, 8), earliest=at(5, 15, 50)) == slot(at(5, 16), at(5, 17))
