from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from enum import Enum

from app.core.exceptions import ValidationError
from app.services.intervals import TimeInterval

DAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
WEEK_DAYS = tuple(range(1, 8))


def day_name(day_of_week: int) -> str:
    if 1 <= day_of_week <= 7:
        return DAY_NAMES[day_of_week - 1]
    return "Unknown"


def validate_day_of_week(day_of_week: int) -> int:
    if not isinstance(day_of_week, int) or isinstance(day_of_week, bool) or not 1 <= day_of_week <= 7:
        raise ValidationError(f"day_of_week must be between 1 (Monday) and 7 (Sunday), got {day_of_week!r}")
    return day_of_week


class ResourceKind(str, Enum):
    classroom = "CLASSROOM"
    teacher = "TEACHER"
    group = "GROUP"


class EntryState(str, Enum):
    draft = "DRAFT"
    valid = "VALID"
    conflict_rejected = "CONFLICT_REJECTED"
    persisted = "PERSISTED"
    active = "ACTIVE"
    inactive = "INACTIVE"
    deleted = "DELETED"


@dataclass(frozen=True)
class ScheduleEntry:
    group_id: int
    subject_id: int
    teacher_id: int
    classroom_id: int
    day_of_week: int
    interval: TimeInterval
    specific_date: date | None = None
    is_active: bool = True
    notes: str | None = None
    id: int | None = None

    def resource_id(self, kind: ResourceKind) -> int:
        if kind is ResourceKind.classroom:
            return self.classroom_id
        if kind is ResourceKind.teacher:
            return self.teacher_id
        return self.group_id

    def lock_keys(self) -> set[tuple[str, int, int]]:
        """Advisory lock keys covering every resource this entry occupies."""
        return {(kind.value, self.day_of_week, self.resource_id(kind)) for kind in ResourceKind}

    def shares_date_with(self, other: "ScheduleEntry") -> bool:
        # A recurring entry occurs on every instance of its weekday, including pinned dates.
        if self.specific_date is None or other.specific_date is None:
            return True
        return self.specific_date == other.specific_date

    def with_changes(self, **changes) -> "ScheduleEntry":
        return replace(self, **changes)

    @property
    def state(self) -> EntryState:
        if self.id is None:
            return EntryState.draft
        return EntryState.active if self.is_active else EntryState.inactive


def validate_entry(entry: ScheduleEntry, *, min_minutes: int, max_minutes: int) -> ScheduleEntry:
    """Move a draft to VALID or raise ``ValidationError``."""
    validate_day_of_week(entry.day_of_week)
    entry.interval.validate(min_minutes=min_minutes, max_minutes=max_minutes)
    for field_name in ("group_id", "subject_id", "teacher_id", "classroom_id"):
        value = getattr(entry, field_name)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ValidationError(f"{field_name} must be a positive integer")
    if entry.specific_date is not None and entry.specific_date.isoweekday() != entry.day_of_week:
        raise ValidationError(
            f"specific_date {entry.specific_date.isoformat()} is a {day_name(entry.specific_date.isoweekday())}, "
            f"not a {day_name(entry.day_of_week)}"
        )
    return entry


@dataclass(frozen=True)
class ScheduleFilter:
    classroom_id: int | None = None
    teacher_id: int | None = None
    group_id: int | None = None
    subject_id: int | None = None
    day_of_week: int | None = None
    is_active: bool | None = None
    # Combine classroom/teacher/group with OR instead of AND ("touches any of these resources").
    match_any: bool = False

    @classmethod
    def touching(cls, entry: ScheduleEntry) -> "ScheduleFilter":
        return cls(
            classroom_id=entry.classroom_id,
            teacher_id=entry.teacher_id,
            group_id=entry.group_id,
            match_any=True,
        )

    def matches(self, entry: ScheduleEntry) -> bool:
        resource_checks = [
            expected == actual
            for expected, actual in (
                (self.classroom_id, entry.classroom_id),
                (self.teacher_id, entry.teacher_id),
                (self.group_id, entry.group_id),
            )
            if expected is not None
        ]
        if resource_checks and not (any(resource_checks) if self.match_any else all(resource_checks)):
            return False
        checks = (
            (self.subject_id, entry.subject_id),
            (self.day_of_week, entry.day_of_week),
            (self.is_active, entry.is_active),
        )
        return all(expected is None or expected == actual for expected, actual in checks)
