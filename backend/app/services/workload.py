from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from app.services.entries import WEEK_DAYS, ScheduleEntry


@dataclass(frozen=True)
class WorkloadSummary:
    per_day_minutes: dict[int, int]
    total_weekly_minutes: int
    lesson_count: int

    @property
    def total_weekly_hours(self) -> float:
        return round(self.total_weekly_minutes / 60, 2)


def workload_summary(entries: Iterable[ScheduleEntry]) -> WorkloadSummary:
    # Trusts its input: overlapping lessons are counted twice.
    per_day = {day: 0 for day in WEEK_DAYS}
    lessons = 0
    for entry in entries:
        if not entry.is_active:
            continue
        per_day[entry.day_of_week] += entry.interval.duration_minutes
        lessons += 1
    return WorkloadSummary(per_day_minutes=per_day, total_weekly_minutes=sum(per_day.values()), lesson_count=lessons)
