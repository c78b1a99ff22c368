"""Schedule entry lifecycle: validate, check conflicts, persist under lock.

Every write runs check-then-write inside ``ScheduleStore.transaction`` while
holding the advisory locks of each ``(resource, day)`` the entry touches, so
two concurrent writers cannot both pass the conflict check.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import date
import logging
from typing import Callable, TypeVar

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    ResourceNotFoundError,
    UnavailableResourceError,
    ValidationError,
)
from app.services.availability import SlotStatus, available_slots, build_daily_grid
from app.services.conflict_service import ConflictDetector, ConflictPair, ScheduleConflict
from app.services.entries import (
    ScheduleEntry,
    ScheduleFilter,
    validate_day_of_week,
    validate_entry,
)
from app.services.intervals import TimeInterval, parse_time_to_minutes
from app.services.store import ResourceDirectory, ScheduleStore
from app.services.timetable import GroupTimetable, WeeklyView, entries_in_week, group_timetable, weekly_view
from app.services.workload import WorkloadSummary, workload_summary

logger = logging.getLogger(__name__)

T = TypeVar("T")

RESOURCE_LABELS = {
    "group": "Group",
    "subject": "Subject",
    "teacher": "Teacher",
    "classroom": "Classroom",
}

# Columns an update may change but never clear.
NON_NULLABLE_FIELDS = (
    "group_id",
    "subject_id",
    "teacher_id",
    "classroom_id",
    "day_of_week",
    "start_time",
    "end_time",
    "is_active",
)


def retry_once_on_race(operation: Callable[[], T]) -> T:
    """Run ``operation``; a ``ConcurrencyError`` re-runs the whole check-then-write one more time."""
    try:
        return operation()
    except ConcurrencyError:
        logger.info("Retrying schedule write after a concurrent modification")
        return operation()


class ScheduleService:
    def __init__(
        self,
        store: ScheduleStore,
        resources: ResourceDirectory,
        *,
        settings: Settings | None = None,
        detector: ConflictDetector | None = None,
    ) -> None:
        self.store = store
        self.resources = resources
        self.settings = settings or get_settings()
        self.detector = detector or ConflictDetector()
        self.grid = build_daily_grid(self.settings.daily_blocks)

    # Validation ---------------------------------------------------------

    def validate(self, entry: ScheduleEntry) -> ScheduleEntry:
        return validate_entry(
            entry,
            min_minutes=self.settings.lesson_min_minutes,
            max_minutes=self.settings.lesson_max_minutes,
        )

    def _ensure_resources(self, entry: ScheduleEntry) -> None:
        for kind, resource_id in (
            ("group", entry.group_id),
            ("subject", entry.subject_id),
            ("teacher", entry.teacher_id),
            ("classroom", entry.classroom_id),
        ):
            if not self.resources.exists(kind, resource_id):
                raise ResourceNotFoundError(RESOURCE_LABELS[kind], resource_id)
        if not self.resources.classroom_is_available(entry.classroom_id):
            raise UnavailableResourceError("Classroom", entry.classroom_id)

    def _ensure_exists(self, kind: str, resource_id: int) -> None:
        if not self.resources.exists(kind, resource_id):
            raise ResourceNotFoundError(RESOURCE_LABELS[kind], resource_id)

    def _require_entry(self, entry_id: int) -> ScheduleEntry:
        entry = self.store.get(entry_id)
        if entry is None:
            raise ResourceNotFoundError("Schedule", entry_id)
        return entry

    # Conflict checks ----------------------------------------------------

    def check_conflicts(self, candidate: ScheduleEntry, exclude_id: int | None = None) -> list[ScheduleConflict]:
        self.validate(candidate)
        existing = self.store.find_active_by_day(candidate.day_of_week, ScheduleFilter.touching(candidate))
        return self.detector.find_conflicts(candidate, existing, exclude_id=exclude_id)

    def _reject_duplicate_slot(self, candidate: ScheduleEntry, exclude_id: int | None = None) -> None:
        duplicate = self.detector.find_duplicate_slot(
            candidate,
            self.store.find_same_slot(candidate.group_id, candidate.day_of_week, candidate.interval.start),
            exclude_id=exclude_id,
        )
        if duplicate is not None:
            logger.info("Rejected schedule entry for group %s: duplicate slot", candidate.group_id)
            raise ConflictError([duplicate])

    def _reject_if_conflicting(self, candidate: ScheduleEntry, exclude_id: int | None = None) -> None:
        self._reject_duplicate_slot(candidate, exclude_id=exclude_id)
        conflicts = self.check_conflicts(candidate, exclude_id=exclude_id)
        if conflicts:
            logger.info(
                "Rejected schedule entry for group %s on day %s: %d conflict(s)",
                candidate.group_id,
                candidate.day_of_week,
                len(conflicts),
            )
            raise ConflictError(conflicts)

    # Writes -------------------------------------------------------------

    def create_entry(self, draft: ScheduleEntry) -> ScheduleEntry:
        self.validate(draft)
        self._ensure_resources(draft)
        candidate = draft.with_changes(id=None)
        with self.store.transaction(candidate.lock_keys()):
            if candidate.is_active:
                self._reject_if_conflicting(candidate)
            else:
                # Inactive entries never collide, but the identical-slot guard still applies.
                self._reject_duplicate_slot(candidate)
            entry_id = self.store.insert(candidate)
        logger.info(
            "Created schedule entry %s: group=%s teacher=%s classroom=%s day=%s %s",
            entry_id,
            candidate.group_id,
            candidate.teacher_id,
            candidate.classroom_id,
            candidate.day_of_week,
            candidate.interval.label,
        )
        return self._require_entry(entry_id)

    def _apply_changes(self, current: ScheduleEntry, changes: dict) -> ScheduleEntry:
        """Merge a partial update; ``start_time``/``end_time`` strings are folded into the interval."""
        cleared = sorted(key for key in NON_NULLABLE_FIELDS if key in changes and changes[key] is None)
        if cleared:
            raise ValidationError(f"Fields cannot be null: {', '.join(cleared)}", details={"fields": cleared})
        fields = {key: value for key, value in changes.items() if key not in {"id", "start_time", "end_time"}}
        if "start_time" in changes or "end_time" in changes:
            fields["interval"] = TimeInterval(
                parse_time_to_minutes(changes["start_time"]) if "start_time" in changes else current.interval.start,
                parse_time_to_minutes(changes["end_time"]) if "end_time" in changes else current.interval.end,
            )
        return current.with_changes(**fields)

    def update_entry(self, entry_id: int, changes: dict) -> ScheduleEntry:
        current = self._require_entry(entry_id)
        candidate = self._apply_changes(current, changes)
        self.validate(candidate)
        resource_fields = {"group_id", "subject_id", "teacher_id", "classroom_id"}
        if resource_fields & set(changes):
            self._ensure_resources(candidate)

        lock_keys = current.lock_keys() | candidate.lock_keys()
        with self.store.transaction(lock_keys):
            # Re-read under lock so the check sees the latest committed state.
            current = self._require_entry(entry_id)
            candidate = self._apply_changes(current, changes)
            if not (current.lock_keys() | candidate.lock_keys()) <= lock_keys:
                logger.info("Schedule entry %s moved while waiting for its locks", entry_id)
                raise ConcurrencyError()
            if candidate.is_active:
                self._reject_if_conflicting(candidate, exclude_id=entry_id)
            else:
                self.validate(candidate)
                self._reject_duplicate_slot(candidate, exclude_id=entry_id)
            self.store.update(entry_id, candidate)
        logger.info("Updated schedule entry %s (%s)", entry_id, ", ".join(sorted(changes)) or "no changes")
        return self._require_entry(entry_id)

    def toggle_status(self, entry_id: int) -> ScheduleEntry:
        current = self._require_entry(entry_id)
        with self.store.transaction(current.lock_keys()):
            current = self._require_entry(entry_id)
            activating = not current.is_active
            if activating and self.settings.revalidate_on_reactivation:
                self._reject_if_conflicting(current.with_changes(is_active=True), exclude_id=entry_id)
            self.store.set_active(entry_id, activating)
        logger.info("Schedule entry %s is now %s", entry_id, "active" if activating else "inactive")
        return self._require_entry(entry_id)

    def delete_entry(self, entry_id: int, *, hard: bool = False) -> None:
        current = self._require_entry(entry_id)
        with self.store.transaction(current.lock_keys()):
            if hard:
                self.store.hard_delete(entry_id)
            else:
                self.store.soft_delete(entry_id)
        logger.info("%s schedule entry %s", "Hard-deleted" if hard else "Soft-deleted", entry_id)

    # Reads --------------------------------------------------------------

    def get_entry(self, entry_id: int) -> ScheduleEntry:
        return self._require_entry(entry_id)

    def list_entries(self, filters: ScheduleFilter | None = None, *, page: int = 1, limit: int = 10) -> list[ScheduleEntry]:
        page = max(1, page)
        return self.store.find(filters, offset=(page - 1) * limit, limit=limit)

    def list_for_resource(self, kind: str, resource_id: int) -> list[ScheduleEntry]:
        self._ensure_exists(kind, resource_id)
        filters = ScheduleFilter(is_active=True, **{f"{kind}_id": resource_id})
        return self.store.find(filters)

    def get_available_slots(self, classroom_id: int, day_of_week: int, on_date: date | None = None) -> list[SlotStatus]:
        validate_day_of_week(day_of_week)
        existing = self.store.find_active_by_day(day_of_week, ScheduleFilter(classroom_id=classroom_id))
        return available_slots(classroom_id, day_of_week, existing, self.grid, on_date=on_date)

    def get_weekly_timetable(
        self,
        *,
        group_id: int | None = None,
        teacher_id: int | None = None,
        classroom_id: int | None = None,
    ) -> WeeklyView:
        filters = ScheduleFilter(group_id=group_id, teacher_id=teacher_id, classroom_id=classroom_id, is_active=True)
        return weekly_view(self.store.find(filters))

    def get_group_timetable(self, group_id: int) -> GroupTimetable:
        self._ensure_exists("group", group_id)
        return group_timetable(group_id, self.store.find(ScheduleFilter(group_id=group_id, is_active=True)))

    def get_workload(self, teacher_id: int, week_start: date | None = None) -> WorkloadSummary:
        self._ensure_exists("teacher", teacher_id)
        entries = self.store.find(ScheduleFilter(teacher_id=teacher_id, is_active=True))
        if week_start is not None:
            entries = entries_in_week(entries, week_start)
        return workload_summary(entries)

    def detect_stored_conflicts(self, filters: ScheduleFilter | None = None) -> list[ConflictPair]:
        filters = filters or ScheduleFilter()
        if filters.day_of_week is not None:
            validate_day_of_week(filters.day_of_week)
        return self.detector.find_conflicting_entries(self.store.find(replace(filters, is_active=True)))
