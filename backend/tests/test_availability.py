from datetime import date

import pytest

from app.core.config import DEFAULT_DAILY_BLOCKS
from app.core.exceptions import ValidationError
from app.services.availability import available_slots, build_daily_grid


@pytest.fixture
def grid():
    return build_daily_grid(DEFAULT_DAILY_BLOCKS)


def availability_map(slots):
    return {slot.interval.start_label: slot.available for slot in slots}


def test_empty_classroom_is_free_all_day(grid):
    slots = available_slots(5, 1, [], grid)

    assert [slot.interval.label for slot in slots] == [
        "08:00 - 09:30",
        "09:45 - 11:15",
        "11:30 - 13:00",
        "14:00 - 15:30",
        "15:45 - 17:15",
        "17:30 - 19:00",
    ]
    assert all(slot.available for slot in slots)


def test_blocks_overlapping_a_lesson_are_unavailable(grid, make_entry):
    lesson = make_entry("09:00", "10:30", id=1, classroom_id=5, teacher_id=9, group_id=2)

    result = availability_map(available_slots(5, 1, [lesson], grid))

    assert result == {
        "08:00": False,
        "09:45": False,
        "11:30": True,
        "14:00": True,
        "15:45": True,
        "17:30": True,
    }


def test_other_rooms_days_and_inactive_entries_do_not_block(grid, make_entry):
    entries = [
        make_entry("08:00", "09:30", id=1, classroom_id=6),
        make_entry("08:00", "09:30", id=2, classroom_id=5, day_of_week=2),
        make_entry("08:00", "09:30", id=3, classroom_id=5, is_active=False),
    ]
    assert all(slot.available for slot in available_slots(5, 1, entries, grid))


def test_lesson_touching_a_block_edge_leaves_it_free(grid, make_entry):
    lesson = make_entry("09:30", "09:45", id=1, classroom_id=5)
    result = availability_map(available_slots(5, 1, [lesson], grid))
    assert result["08:00"] is True
    assert result["09:45"] is True


def test_date_filter_skips_lessons_pinned_to_other_dates(grid, make_entry):
    monday = date(2026, 10, 19)
    pinned_elsewhere = make_entry("08:00", "09:30", id=1, classroom_id=5, specific_date=date(2026, 10, 12))
    pinned_here = make_entry("11:30", "13:00", id=2, classroom_id=5, specific_date=monday)
    recurring = make_entry("14:00", "15:30", id=3, classroom_id=5)
    entries = [pinned_elsewhere, pinned_here, recurring]

    on_date = availability_map(available_slots(5, 1, entries, grid, on_date=monday))
    assert on_date["08:00"] is True
    assert on_date["11:30"] is False
    assert on_date["14:00"] is False

    any_week = availability_map(available_slots(5, 1, entries, grid))
    assert any_week["08:00"] is False


def test_date_must_fall_on_the_requested_weekday(grid):
    with pytest.raises(ValidationError, match="not a Monday"):
        available_slots(5, 1, [], grid, on_date=date(2026, 10, 20))


@pytest.mark.parametrize("day", [0, 8])
def test_day_of_week_out_of_range(grid, day):
    with pytest.raises(ValidationError):
        available_slots(5, day, [], grid)


def test_grid_must_be_ordered_and_non_empty():
    with pytest.raises(ValidationError):
        build_daily_grid([])
    with pytest.raises(ValidationError, match="ordered"):
        build_daily_grid(["11:30-13:00", "08:00-09:30"])
