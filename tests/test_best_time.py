"""Unit tests for find_next_good_time."""
from datetime import datetime
from zoneinfo import ZoneInfo

from schemas.lead import BestTimeSlot
from scoring.engine import find_next_good_time

NY = ZoneInfo("America/New_York")


def _slot(day, hour, probability=0.9):
    return BestTimeSlot(day_of_week=day, hour=hour, probability=probability)


def test_current_slot_is_good():
    # Wednesday 17:30 local
    local_now = datetime(2026, 10, 14, 17, 30, tzinfo=NY)
    good, next_time = find_next_good_time([_slot(3, 17)], local_now)
    assert good is True
    assert next_time is None


def test_later_today_is_preferred():
    local_now = datetime(2026, 10, 14, 9, 15, tzinfo=NY)  # Wednesday
    slots = [_slot(4, 9), _slot(3, 16), _slot(3, 10)]
    good, next_time = find_next_good_time(slots, local_now)
    assert good is False
    assert next_time == datetime(2026, 10, 14, 10, 0, tzinfo=NY)


def test_nearest_day_beats_earlier_hour():
    local_now = datetime(2026, 10, 17, 12, 0, tzinfo=NY)  # Saturday
    slots = [_slot(4, 10), _slot(2, 18), _slot(2, 11)]
    good, next_time = find_next_good_time(slots, local_now)
    assert good is False
    # Tuesday is 3 days ahead, Thursday 5
    assert next_time == datetime(2026, 10, 20, 11, 0, tzinfo=NY)


def test_earlier_today_wraps_to_next_week():
    local_now = datetime(2026, 10, 14, 19, 0, tzinfo=NY)  # Wednesday
    good, next_time = find_next_good_time([_slot(3, 10)], local_now)
    assert good is False
    assert next_time == datetime(2026, 10, 21, 10, 0, tzinfo=NY)


def test_low_probability_slots_are_ignored():
    local_now = datetime(2026, 10, 14, 10, 0, tzinfo=NY)
    good, next_time = find_next_good_time([_slot(3, 10, probability=0.5)], local_now)
    assert good is False
    assert next_time is None


def test_no_slots():
    local_now = datetime(2026, 10, 14, 10, 0, tzinfo=NY)
    assert find_next_good_time([], local_now) == (False, None)
