"""
Unit tests for CivilTimeProjector.
"""

from datetime import date, datetime, timezone

from planmyday.models.enums import Weekday
from planmyday.models.schedule import DayHours
from planmyday.services.civil_time import CivilTimeProjector


UTC = timezone.utc


def test_to_civil_projects_into_local_fields():
    projector = CivilTimeProjector("America/New_York")
    civil = projector.to_civil(datetime(2026, 1, 5, 15, 0, tzinfo=UTC))

    assert (civil.year, civil.month, civil.day) == (2026, 1, 5)
    assert (civil.hour, civil.minute) == (10, 0)
    assert civil.weekday == Weekday.MONDAY
    assert civil.date == date(2026, 1, 5)


def test_local_date_can_differ_from_utc_date():
    projector = CivilTimeProjector("Asia/Tokyo")
    # 20:00 UTC on Monday is already Tuesday in Tokyo
    instant = datetime(2026, 1, 5, 20, 0, tzinfo=UTC)

    assert projector.local_date(instant) == date(2026, 1, 6)
    assert projector.to_civil(instant).weekday == Weekday.TUESDAY


def test_to_instant_round_trips_through_to_civil():
    projector = CivilTimeProjector("Europe/Berlin")
    instant = projector.to_instant(date(2026, 7, 1), 9, 30)

    assert instant == datetime(2026, 7, 1, 7, 30, tzinfo=UTC)
    civil = projector.to_civil(instant)
    assert (civil.hour, civil.minute) == (9, 30)


def test_hour_24_is_next_midnight():
    projector = CivilTimeProjector("America/New_York")

    assert projector.to_instant(date(2026, 1, 5), 24, 0) == projector.start_of_day(date(2026, 1, 6))


def test_working_window_follows_dst_offset():
    projector = CivilTimeProjector("America/New_York")
    hours = DayHours(start_hour=9, end_hour=17)

    before = projector.day_window(date(2026, 3, 6), hours)
    after = projector.day_window(date(2026, 3, 9), hours)

    assert before == (
        datetime(2026, 3, 6, 14, 0, tzinfo=UTC),
        datetime(2026, 3, 6, 22, 0, tzinfo=UTC),
    )
    assert after == (
        datetime(2026, 3, 9, 13, 0, tzinfo=UTC),
        datetime(2026, 3, 9, 21, 0, tzinfo=UTC),
    )


def test_wall_time_in_dst_gap_shifts_forward():
    projector = CivilTimeProjector("America/New_York")
    # 02:30 does not exist on 2026-03-08; it lands on 03:30 EDT
    instant = projector.to_instant(date(2026, 3, 8), 2, 30)

    assert instant == datetime(2026, 3, 8, 7, 30, tzinfo=UTC)
    assert projector.to_civil(instant).hour == 3


def test_ambiguous_wall_time_resolves_to_first_occurrence():
    projector = CivilTimeProjector("America/New_York")
    instant = projector.to_instant(date(2026, 11, 1), 1, 30)

    assert instant == datetime(2026, 11, 1, 5, 30, tzinfo=UTC)


def test_next_day_start_on_dst_day():
    projector = CivilTimeProjector("America/New_York")
    # Noon EDT on the fall-back day; that day is 25 hours long
    noon = datetime(2026, 11, 1, 17, 0, tzinfo=UTC)

    assert projector.next_day_start(noon) == datetime(2026, 11, 2, 5, 0, tzinfo=UTC)


def test_is_same_day_uses_local_calendar():
    projector = CivilTimeProjector("America/Los_Angeles")
    late_evening = datetime(2026, 1, 6, 7, 0, tzinfo=UTC)  # 23:00 Monday local
    morning = datetime(2026, 1, 5, 17, 0, tzinfo=UTC)  # 09:00 Monday local

    assert projector.is_same_day(late_evening, morning)


def test_unknown_timezone_falls_back_to_utc():
    projector = CivilTimeProjector("Mars/Olympus_Mons")

    assert projector.timezone_name == "UTC"
    assert projector.to_instant(date(2026, 1, 5), 9, 0) == datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def test_format_slot():
    projector = CivilTimeProjector("UTC")
    label = projector.format_slot(
        datetime(2026, 1, 5, 10, 0, tzinfo=UTC),
        datetime(2026, 1, 5, 11, 0, tzinfo=UTC),
    )

    assert label == "Mon 2026-01-05 10:00-11:00"
