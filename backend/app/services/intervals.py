"""Time-of-day intervals at minute resolution.

Intervals are half-open ``[start, end)``: a lesson ending at 10:30 and another
starting at 10:30 do not overlap.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time

from app.core.exceptions import ValidationError

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")
MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value: str | time) -> int:
    """Parse ``HH:MM`` (or ``HH:MM:SS``, seconds dropped) into minutes since midnight."""
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    text = (value or "").strip()
    if not TIME_PATTERN.match(text):
        raise ValidationError(f"Invalid time {value!r}: expected HH:MM in 24-hour format")
    hours, minutes = text.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_minutes(value: int) -> str:
    hours, minutes = divmod(value, 60)
    return f"{hours:02d}:{minutes:02d}"


def minutes_to_time(value: int) -> time:
    return time(value // 60, value % 60)


def overlaps(first: "TimeInterval", second: "TimeInterval") -> bool:
    return first.start < second.end and first.end > second.start


@dataclass(frozen=True, order=True)
class TimeInterval:
    start: int
    end: int

    @classmethod
    def parse(
        cls,
        start: str | time,
        end: str | time,
        *,
        min_minutes: int | None = None,
        max_minutes: int | None = None,
    ) -> "TimeInterval":
        interval = cls(parse_time_to_minutes(start), parse_time_to_minutes(end))
        interval.validate(min_minutes=min_minutes, max_minutes=max_minutes)
        return interval

    @classmethod
    def parse_range(cls, value: str) -> "TimeInterval":
        """Parse ``"HH:MM-HH:MM"`` as used by the daily block grid."""
        start, sep, end = value.partition("-")
        if not sep:
            raise ValidationError(f"Invalid time range {value!r}: expected HH:MM-HH:MM")
        return cls.parse(start, end)

    def validate(self, *, min_minutes: int | None = None, max_minutes: int | None = None) -> None:
        if not (0 <= self.start < MINUTES_PER_DAY and 0 <= self.end < MINUTES_PER_DAY):
            raise ValidationError("Time must be between 00:00 and 23:59")
        if self.start >= self.end:
            raise ValidationError(
                f"Start time {format_minutes(self.start)} must be before end time {format_minutes(self.end)}"
            )
        duration = self.duration_minutes
        if min_minutes is not None and duration < min_minutes:
            raise ValidationError(
                f"Lesson must last at least {min_minutes} minutes (got {duration})",
                details={"duration_minutes": duration},
            )
        if max_minutes is not None and duration > max_minutes:
            raise ValidationError(
                f"Lesson must last at most {max_minutes} minutes (got {duration})",
                details={"duration_minutes": duration},
            )

    @property
    def duration_minutes(self) -> int:
        return self.end - self.start

    @property
    def start_label(self) -> str:
        return format_minutes(self.start)

    @property
    def end_label(self) -> str:
        return format_minutes(self.end)

    @property
    def label(self) -> str:
        return f"{self.start_label} - {self.end_label}"

    def overlaps(self, other: "TimeInterval") -> bool:
        return overlaps(self, other)

    def start_time(self) -> time:
        return minutes_to_time(self.start)

    def end_time(self) -> time:
        return minutes_to_time(self.end)
