"""
Civil-time projection.

Converts UTC instants to the wall-clock fields of a user's timezone and back.
Every working-hours and "is this today" decision in the engine goes through
this module instead of reading raw UTC fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from planmyday.models.enums import Weekday
from planmyday.models.schedule import DayHours
from planmyday.utils.datetime_utils import UTC, ensure_utc, resolve_timezone


@dataclass(frozen=True)
class CivilTime:
    year: int
    month: int
    day: int
    hour: int
    minute: int
    weekday: Weekday

    @property
    def date(self) -> date:
        return date(self.year, self.month, self.day)


class CivilTimeProjector:
    """
    Pure instant <-> civil time conversion for one timezone.

    ``to_instant`` follows zoneinfo semantics: an ambiguous wall time (DST
    fall-back) resolves to its first occurrence, and a wall time inside a DST
    gap is shifted forward by the gap length.
    """

    def __init__(self, timezone: Optional[str] = None):
        self.zone = resolve_timezone(timezone)
        self.timezone_name = self.zone.key

    def to_civil(self, instant: datetime) -> CivilTime:
        local = ensure_utc(instant).astimezone(self.zone)
        return CivilTime(
            year=local.year,
            month=local.month,
            day=local.day,
            hour=local.hour,
            minute=local.minute,
            weekday=Weekday.from_index(local.weekday()),
        )

    def to_instant(self, day: date, hour: int = 0, minute: int = 0) -> datetime:
        """Civil date + wall-clock time -> UTC instant. ``hour=24`` is next midnight."""
        if hour == 24:
            day = day + timedelta(days=1)
            hour = 0
        local = datetime(day.year, day.month, day.day, hour, minute, tzinfo=self.zone)
        return local.astimezone(UTC)

    def local_date(self, instant: datetime) -> date:
        return self.to_civil(instant).date

    def weekday(self, day: date) -> Weekday:
        return Weekday.from_index(day.weekday())

    def start_of_day(self, day: date) -> datetime:
        return self.to_instant(day, 0, 0)

    def next_day_start(self, instant: datetime) -> datetime:
        """Midnight (civil) of the day after ``instant``."""
        return self.start_of_day(self.local_date(instant) + timedelta(days=1))

    def is_same_day(self, a: datetime, b: datetime) -> bool:
        return self.local_date(a) == self.local_date(b)

    def day_window(self, day: date, hours: DayHours) -> tuple[datetime, datetime]:
        """UTC bounds of a working window on a civil date."""
        return (
            self.to_instant(day, hours.start_hour, 0),
            self.to_instant(day, hours.end_hour, 0),
        )

    def format(self, instant: datetime) -> str:
        """Short local label used in feedback messages."""
        local = ensure_utc(instant).astimezone(self.zone)
        return local.strftime("%a %Y-%m-%d %H:%M")

    def format_slot(self, start: datetime, end: datetime) -> str:
        local_end = ensure_utc(end).astimezone(self.zone)
        return f"{self.format(start)}-{local_end.strftime('%H:%M')}"
