from __future__ import annotations

import re
from datetime import date

from pydantic import BaseModel, Field, field_validator, model_validator

from app.services.availability import SlotStatus
from app.services.conflict_service import ConflictPair, ScheduleConflict
from app.services.entries import ScheduleEntry, day_name
from app.services.intervals import TimeInterval
from app.services.schedule_service import NON_NULLABLE_FIELDS
from app.services.timetable import WeeklyView
from app.services.workload import WorkloadSummary

# Request bodies take minutes only; stored values may carry seconds.
HH_MM_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _validate_time(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not HH_MM_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    return value


class ScheduleEntryBase(BaseModel):
    group_id: int = Field(ge=1)
    subject_id: int = Field(ge=1)
    teacher_id: int = Field(ge=1)
    classroom_id: int = Field(ge=1)
    day_of_week: int = Field(ge=1, le=7, description="1 = Monday, 7 = Sunday")
    start_time: str = Field(examples=["09:00"])
    end_time: str = Field(examples=["10:30"])
    specific_date: date | None = Field(default=None, description="Pins a one-off occurrence")
    notes: str | None = Field(default=None, max_length=1000)

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        return _validate_time(value)

    def to_entry(self, *, is_active: bool = True) -> ScheduleEntry:
        return ScheduleEntry(
            group_id=self.group_id,
            subject_id=self.subject_id,
            teacher_id=self.teacher_id,
            classroom_id=self.classroom_id,
            day_of_week=self.day_of_week,
            interval=TimeInterval.parse(self.start_time, self.end_time),
            specific_date=self.specific_date,
            is_active=is_active,
            notes=self.notes,
        )


class ScheduleEntryCreate(ScheduleEntryBase):
    is_active: bool = True


class ScheduleEntryUpdate(BaseModel):
    group_id: int | None = Field(default=None, ge=1)
    subject_id: int | None = Field(default=None, ge=1)
    teacher_id: int | None = Field(default=None, ge=1)
    classroom_id: int | None = Field(default=None, ge=1)
    day_of_week: int | None = Field(default=None, ge=1, le=7)
    start_time: str | None = None
    end_time: str | None = None
    specific_date: date | None = None
    notes: str | None = Field(default=None, max_length=1000)
    is_active: bool | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str | None) -> str | None:
        return _validate_time(value)

    @model_validator(mode="after")
    def reject_cleared_required_fields(self) -> "ScheduleEntryUpdate":
        cleared = sorted(
            name for name in self.model_fields_set if name in NON_NULLABLE_FIELDS and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"Fields cannot be null: {', '.join(cleared)}")
        return self


class ConflictCheckRequest(ScheduleEntryBase):
    exclude_schedule_id: int | None = Field(default=None, ge=1)


class ScheduleEntryOut(BaseModel):
    id: int
    group_id: int
    subject_id: int
    teacher_id: int
    classroom_id: int
    day_of_week: int
    day_name: str
    start_time: str
    end_time: str
    duration_minutes: int
    specific_date: date | None = None
    is_active: bool
    notes: str | None = None

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> "ScheduleEntryOut":
        return cls(
            id=entry.id,
            group_id=entry.group_id,
            subject_id=entry.subject_id,
            teacher_id=entry.teacher_id,
            classroom_id=entry.classroom_id,
            day_of_week=entry.day_of_week,
            day_name=day_name(entry.day_of_week),
            start_time=entry.interval.start_label,
            end_time=entry.interval.end_label,
            duration_minutes=entry.interval.duration_minutes,
            specific_date=entry.specific_date,
            is_active=entry.is_active,
            notes=entry.notes,
        )


class ConflictOut(BaseModel):
    resource_kind: str
    conflicting_entry_id: int | None
    message: str

    @classmethod
    def from_conflict(cls, conflict: ScheduleConflict) -> "ConflictOut":
        return cls(**conflict.as_dict())


class ConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: list[ConflictOut] = Field(default_factory=list)


class SlotStatusOut(BaseModel):
    start_time: str
    end_time: str
    available: bool

    @classmethod
    def from_status(cls, status: SlotStatus) -> "SlotStatusOut":
        return cls(start_time=status.interval.start_label, end_time=status.interval.end_label, available=status.available)


class AvailableSlotsOut(BaseModel):
    classroom_id: int
    day_of_week: int
    day_name: str
    on_date: date | None = None
    slots: list[SlotStatusOut]


class DayScheduleOut(BaseModel):
    day_of_week: int
    day_name: str
    lessons: list[ScheduleEntryOut] = Field(default_factory=list)


def day_schedules(view: WeeklyView) -> dict[int, DayScheduleOut]:
    return {
        day: DayScheduleOut(
            day_of_week=day,
            day_name=day_name(day),
            lessons=[ScheduleEntryOut.from_entry(entry) for entry in lessons],
        )
        for day, lessons in view.items()
    }


class WeeklyTimetableOut(BaseModel):
    group_id: int | None = None
    teacher_id: int | None = None
    classroom_id: int | None = None
    weekly_schedule: dict[int, DayScheduleOut]


class GroupTimetableOut(BaseModel):
    group_id: int
    total_lessons: int
    timetable: dict[int, DayScheduleOut]


class WorkloadDayOut(BaseModel):
    day_of_week: int
    day_name: str
    minutes: int
    hours: float


class WorkloadOut(BaseModel):
    teacher_id: int
    week_start: date | None = None
    per_day: list[WorkloadDayOut]
    total_weekly_minutes: int
    total_weekly_hours: float
    total_lessons: int

    @classmethod
    def from_summary(cls, teacher_id: int, summary: WorkloadSummary, week_start: date | None) -> "WorkloadOut":
        return cls(
            teacher_id=teacher_id,
            week_start=week_start,
            per_day=[
                WorkloadDayOut(day_of_week=day, day_name=day_name(day), minutes=minutes, hours=round(minutes / 60, 2))
                for day, minutes in sorted(summary.per_day_minutes.items())
            ],
            total_weekly_minutes=summary.total_weekly_minutes,
            total_weekly_hours=summary.total_weekly_hours,
            total_lessons=summary.lesson_count,
        )


class ConflictPairOut(BaseModel):
    day_of_week: int
    first_entry_id: int
    second_entry_id: int
    resource_kinds: list[str]
    description: str

    @classmethod
    def from_pair(cls, pair: ConflictPair) -> "ConflictPairOut":
        kinds = [kind.value for kind in pair.kinds]
        return cls(
            day_of_week=pair.first.day_of_week,
            first_entry_id=pair.first.id,
            second_entry_id=pair.second.id,
            resource_kinds=kinds,
            description=(
                f"{day_name(pair.first.day_of_week)}: entry {pair.first.id} ({pair.first.interval.label}) and "
                f"entry {pair.second.id} ({pair.second.interval.label}) share {', '.join(kind.lower() for kind in kinds)}"
            ),
        )


class DetectedConflictsOut(BaseModel):
    total: int
    conflicts: list[ConflictPairOut]
