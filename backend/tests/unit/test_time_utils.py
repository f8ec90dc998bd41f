from datetime import date

import pytest

from app.utils.time_utils import (
    day_of_week,
    duration_minutes,
    is_valid_time_str,
    minutes_to_time_str,
    normalize_time_str,
    ranges_overlap,
    subtract_intervals,
    time_str_to_minutes,
)


@pytest.mark.parametrize("value", ["00:00", "9:05", "09:05", "23:59"])
def test_valid_time_strings(value):
    assert is_valid_time_str(value)


@pytest.mark.parametrize("value", ["24:00", "12:60", "1200", "", "ab:cd", "12:5"])
def test_invalid_time_strings(value):
    assert not is_valid_time_str(value)


def test_time_conversion_and_padding():
    assert time_str_to_minutes("09:30") == 570
    assert minutes_to_time_str(570) == "09:30"
    assert minutes_to_time_str(24 * 60) == "24:00"
    assert normalize_time_str("9:05") == "09:05"
    assert duration_minutes("10:00", "11:30") == 90


def test_time_str_to_minutes_rejects_garbage():
    with pytest.raises(ValueError):
        time_str_to_minutes("25:00")


def test_half_open_ranges_touching_do_not_overlap():
    assert not ranges_overlap(600, 660, 660, 720)
    assert ranges_overlap(600, 661, 660, 720)


def test_day_of_week_is_sunday_based():
    assert day_of_week(date(2024, 6, 2)) == 0  # Sunday
    assert day_of_week(date(2024, 6, 3)) == 1  # Monday
    assert day_of_week(date(2024, 6, 8)) == 6  # Saturday


def test_subtract_intervals_merges_and_cuts():
    base = [(540, 720), (700, 780), (900, 960)]
    removed = [(600, 630), (750, 920)]

    assert subtract_intervals(base, removed) == [(540, 600), (630, 750), (920, 960)]


def test_subtract_intervals_full_cover_leaves_nothing():
    assert subtract_intervals([(540, 600)], [(500, 700)]) == []
