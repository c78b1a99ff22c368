from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Sequence

from app.core.exceptions import ValidationError
from app.services.entries import ScheduleEntry, day_name, validate_day_of_week
from app.services.intervals import TimeInterval, overlaps


@dataclass(frozen=True)
class SlotStatus:
    interval: TimeInterval
    available: bool


def build_daily_grid(blocks: Sequence[str]) -> list[TimeInterval]:
    """Parse ``HH:MM-HH:MM`` block definitions into an ordered grid."""
    grid = [TimeInterval.parse_range(block) for block in blocks]
    if not grid:
        raise ValidationError("The daily block grid must contain at least one block")
    for previous, current in zip(grid, grid[1:]):
        if current.start < previous.start:
            raise ValidationError(f"Daily blocks must be ordered by start time: {previous.label} before {current.label}")
    return grid


def available_slots(
    classroom_id: int,
    day_of_week: int,
    existing: Iterable[ScheduleEntry],
    grid: Sequence[TimeInterval],
    on_date: date | None = None,
) -> list[SlotStatus]:
    validate_day_of_week(day_of_week)
    if on_date is not None and on_date.isoweekday() != day_of_week:
        raise ValidationError(f"Date {on_date.isoformat()} is not a {day_name(day_of_week)}")

    occupied = [
        entry.interval
        for entry in existing
        if entry.is_active
        and entry.classroom_id == classroom_id
        and entry.day_of_week == day_of_week
        and (on_date is None or entry.specific_date is None or entry.specific_date == on_date)
    ]
    return [
        SlotStatus(interval=block, available=not any(overlaps(block, interval) for interval in occupied))
        for block in grid
    ]
