from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

from app.core.exceptions import ValidationError
from app.services.entries import WEEK_DAYS, ScheduleEntry

WeeklyView = dict[int, list[ScheduleEntry]]


def _sort_key(entry: ScheduleEntry) -> tuple[int, int]:
    return entry.interval.start, entry.id if entry.id is not None else 0


def weekly_view(entries: Iterable[ScheduleEntry]) -> WeeklyView:
    """Partition active entries by weekday; every day 1..7 is present, lessons ordered by start."""
    buckets: dict[int, list[ScheduleEntry]] = defaultdict(list)
    for entry in entries:
        if entry.is_active:
            buckets[entry.day_of_week].append(entry)
    return {day: sorted(buckets.get(day, []), key=_sort_key) for day in WEEK_DAYS}


@dataclass(frozen=True)
class GroupTimetable:
    group_id: int
    days: WeeklyView
    total_lessons: int


def group_timetable(group_id: int, entries: Iterable[ScheduleEntry]) -> GroupTimetable:
    days = weekly_view(entry for entry in entries if entry.group_id == group_id)
    return GroupTimetable(group_id=group_id, days=days, total_lessons=sum(len(lessons) for lessons in days.values()))


def validate_week_start(week_start: date) -> date:
    if week_start.isoweekday() != 1:
        raise ValidationError(f"week_start must be a Monday, got {week_start.isoformat()}")
    return week_start


def entries_in_week(entries: Iterable[ScheduleEntry], week_start: date) -> list[ScheduleEntry]:
    """Recurring entries plus entries pinned to a date inside the week starting ``week_start``."""
    validate_week_start(week_start)
    week_end = week_start + timedelta(days=6)
    return [
        entry
        for entry in entries
        if entry.specific_date is None or week_start <= entry.specific_date <= week_end
    ]
