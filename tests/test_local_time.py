"""Matcher clock: zoneinfo vs the legacy month heuristic around DST changes and midnight."""

from datetime import date, datetime, timezone

import pytest

from waste_reminder.services.local_time import (
    MODE_MONTH_HEURISTIC,
    MODE_ZONEINFO,
    month_heuristic_offset,
    resolve_slot,
)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_summer_evening():
    slot = resolve_slot(utc(2026, 7, 10, 17, 0), mode=MODE_ZONEINFO)
    assert (slot.local_hour, slot.local_minute) == (19, 0)
    assert slot.is_summer_time is True
    assert slot.today == date(2026, 7, 10)
    assert slot.tomorrow == date(2026, 7, 11)
    assert slot.tomorrow_str == "2026-07-11"


def test_winter_morning():
    slot = resolve_slot(utc(2026, 1, 15, 6, 30), mode=MODE_ZONEINFO)
    assert (slot.local_hour, slot.local_minute) == (7, 30)
    assert slot.is_summer_time is False


@pytest.mark.parametrize(
    "now, zoneinfo_hour, heuristic_hour",
    [
        # After the last Sunday of March: CEST already, heuristic still says CET
        (utc(2026, 3, 30, 10, 0), 12, 11),
        # After the last Sunday of October: CET already, heuristic still says CEST
        (utc(2026, 10, 26, 10, 0), 11, 12),
    ],
)
def test_heuristic_disagrees_in_transition_weeks(now, zoneinfo_hour, heuristic_hour):
    assert resolve_slot(now, mode=MODE_ZONEINFO).local_hour == zoneinfo_hour
    assert resolve_slot(now, mode=MODE_MONTH_HEURISTIC).local_hour == heuristic_hour


def test_heuristic_agrees_mid_season():
    now = utc(2026, 6, 1, 5, 0)
    assert resolve_slot(now, mode=MODE_ZONEINFO).local_hour == resolve_slot(now, mode=MODE_MONTH_HEURISTIC).local_hour == 7


def test_month_heuristic_offset():
    assert month_heuristic_offset(utc(2026, 3, 31, 12)) == 1
    assert month_heuristic_offset(utc(2026, 4, 1, 12)) == 2
    assert month_heuristic_offset(utc(2026, 10, 31, 12)) == 2
    assert month_heuristic_offset(utc(2026, 11, 1, 12)) == 1


def test_local_dates_cross_midnight():
    """23:30 UTC in winter is already the next day in Warsaw; the heuristic keeps UTC dates."""
    now = utc(2026, 1, 10, 23, 30)
    zoned = resolve_slot(now, mode=MODE_ZONEINFO)
    assert zoned.local_hour == 0
    assert zoned.today == date(2026, 1, 11)
    assert zoned.tomorrow == date(2026, 1, 12)

    legacy = resolve_slot(now, mode=MODE_MONTH_HEURISTIC)
    assert legacy.local_hour == 0
    assert legacy.today == date(2026, 1, 10)


def test_tomorrow_across_month_and_year_end():
    slot = resolve_slot(utc(2026, 12, 31, 12, 0), mode=MODE_ZONEINFO)
    assert slot.tomorrow == date(2027, 1, 1)


def test_naive_datetime_is_treated_as_utc():
    assert resolve_slot(datetime(2026, 7, 10, 17, 0), mode=MODE_ZONEINFO).local_hour == 19


def test_unknown_mode():
    with pytest.raises(ValueError, match="Unknown local_time_mode"):
        resolve_slot(utc(2026, 7, 10, 17, 0), mode="sundial")
