"""
Slot finder.

Forward and backward interval search over working-hour windows, skipping
existing bookings. All arithmetic is done on UTC instants; the civil-time
projector supplies day boundaries in the user's timezone.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from planmyday.core.config import get_settings
from planmyday.core.logger import setup_logger
from planmyday.models.schedule import ScheduleHours, TimeSlot
from planmyday.models.task import Task
from planmyday.services.civil_time import CivilTimeProjector
from planmyday.services.working_hours import resolve_working_hours
from planmyday.utils.datetime_utils import ceil_to_grid, ensure_utc, floor_to_grid

logger = setup_logger(__name__)


def collect_obstacles(tasks: Iterable[Task], exclude_ids: Iterable[str] = ()) -> list[TimeSlot]:
    """
    Intervals that a new placement must not overlap.

    Completed, cancelled and rescheduled tasks free their time, and the
    excluded ids (usually the task being placed) never block themselves.
    """
    excluded = set(exclude_ids)
    slots = [
        task.slot
        for task in tasks
        if task.id not in excluded and task.is_blocking
    ]
    return sorted(slots, key=lambda slot: slot.start)


class SlotFinder:
    """
    Interval search for one timezone.

    Provides:
    - find_forward: earliest feasible slot from a lower bound
    - find_backward: latest feasible slot before a deadline
    """

    def __init__(
        self,
        projector: CivilTimeProjector,
        granularity_minutes: Optional[int] = None,
        after_hours_limit_hour: Optional[int] = None,
    ):
        """
        Initialize slot finder.

        Args:
            projector: Civil-time projector for the user's timezone
            granularity_minutes: Start-time grid (defaults to settings)
            after_hours_limit_hour: Local hour until which today may run past
                the working window (defaults to settings)
        """
        settings = get_settings()
        self.projector = projector
        self.granularity_minutes = granularity_minutes or settings.SLOT_GRANULARITY_MINUTES
        self.after_hours_limit_hour = (
            after_hours_limit_hour
            if after_hours_limit_hour is not None
            else settings.AFTER_HOURS_LIMIT_HOUR
        )

    def _ceil(self, instant: datetime) -> datetime:
        return ceil_to_grid(instant, self.granularity_minutes)

    def _floor(self, instant: datetime) -> datetime:
        return floor_to_grid(instant, self.granularity_minutes)

    def find_forward(
        self,
        duration_minutes: int,
        obstacles: Sequence[TimeSlot],
        lower_bound: datetime,
        hours: Optional[ScheduleHours],
        now: datetime,
        max_days: int,
        upper_bound: Optional[datetime] = None,
        allow_after_hours: bool = True,
    ) -> Optional[TimeSlot]:
        """
        Find the earliest slot of ``duration_minutes`` at or after ``lower_bound``.

        Args:
            duration_minutes: Slot length
            obstacles: Busy intervals to avoid
            lower_bound: Earliest start (raised to ``now``)
            hours: Working hours map (None = default window every day)
            now: Current instant; decides which civil day is "today"
            max_days: Search horizon past ``lower_bound``
            upper_bound: Latest allowed end, if any
            allow_after_hours: Let today run past the window until the
                after-hours limit

        Returns:
            The slot, or None when the horizon is exhausted
        """
        if not duration_minutes or duration_minutes <= 0:
            return None

        duration = timedelta(minutes=duration_minutes)
        lower_bound = ensure_utc(lower_bound)
        now = ensure_utc(now)
        horizon = lower_bound + timedelta(days=max_days)
        if upper_bound is not None:
            upper_bound = ensure_utc(upper_bound)
            horizon = min(horizon, upper_bound)

        today = self.projector.local_date(now)
        candidate = self._ceil(max(lower_bound, now))

        while candidate < horizon:
            civil = self.projector.to_civil(candidate)
            window = resolve_working_hours(civil.weekday, hours)
            if window is None:
                candidate = self.projector.next_day_start(candidate)
                continue

            day_start, day_end = self.projector.day_window(civil.date, window)
            if candidate < day_start:
                candidate = self._ceil(day_start)

            limit = day_end
            if candidate >= day_end:
                if not (allow_after_hours and civil.date == today):
                    candidate = self.projector.next_day_start(candidate)
                    continue
                limit = max(
                    day_end,
                    self.projector.to_instant(civil.date, self.after_hours_limit_hour, 0),
                )

            end = candidate + duration
            if end > limit:
                candidate = self.projector.next_day_start(candidate)
                continue
            if upper_bound is not None and end > upper_bound:
                return None

            conflicts = [slot for slot in obstacles if candidate < slot.end and end > slot.start]
            if conflicts:
                # One jump clears every interval overlapping the candidate
                candidate = self._ceil(max(slot.end for slot in conflicts))
                continue

            return TimeSlot(start=candidate, end=end)

        logger.debug(
            f"No forward slot for {duration_minutes} min from {lower_bound.isoformat()} "
            f"within {max_days} days"
        )
        return None

    def find_backward(
        self,
        duration_minutes: int,
        obstacles: Sequence[TimeSlot],
        deadline: datetime,
        hours: Optional[ScheduleHours],
        now: datetime,
        max_days: int,
        earliest: Optional[datetime] = None,
    ) -> Optional[TimeSlot]:
        """
        Find the latest slot that ends by ``deadline``.

        Days are tried from the deadline's civil day backward; on each day the
        latest non-conflicting start wins. Nothing starts before ``now`` or
        ``earliest`` (the dependency constraint).

        Returns:
            The slot, or None when no day within ``max_days`` fits
        """
        if not duration_minutes or duration_minutes <= 0:
            return None

        duration = timedelta(minutes=duration_minutes)
        deadline = ensure_utc(deadline)
        floor_bound = ensure_utc(now)
        if earliest is not None:
            floor_bound = max(floor_bound, ensure_utc(earliest))
        floor_bound = self._ceil(floor_bound)

        deadline_day = self.projector.local_date(deadline)
        for offset in range(max_days + 1):
            day = deadline_day - timedelta(days=offset)
            if self.projector.to_instant(day, 24, 0) <= floor_bound:
                break

            window = resolve_working_hours(self.projector.weekday(day), hours)
            if window is None:
                continue

            day_start, day_end = self.projector.day_window(day, window)
            lowest_start = max(day_start, floor_bound)
            candidate = self._floor(min(day_end, deadline) - duration)
            while candidate >= lowest_start:
                end = candidate + duration
                conflicts = [slot for slot in obstacles if candidate < slot.end and end > slot.start]
                if not conflicts:
                    return TimeSlot(start=candidate, end=end)
                candidate = self._floor(min(slot.start for slot in conflicts) - duration)

        logger.debug(
            f"No backward slot for {duration_minutes} min before {deadline.isoformat()}"
        )
        return None
