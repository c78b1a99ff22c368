from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable

from app.services.entries import ResourceKind, ScheduleEntry
from app.services.intervals import overlaps


@dataclass(frozen=True)
class ScheduleConflict:
    kind: ResourceKind
    entry_id: int | None
    message: str

    def as_dict(self) -> dict:
        return {"resource_kind": self.kind.value, "conflicting_entry_id": self.entry_id, "message": self.message}


@dataclass
class ConflictPair:
    """Two stored entries colliding on one or more resource dimensions."""

    first: ScheduleEntry
    second: ScheduleEntry
    kinds: list[ResourceKind] = field(default_factory=list)


def _describe(kind: ResourceKind, candidate: ScheduleEntry, existing: ScheduleEntry) -> str:
    window = f"from {existing.interval.start_label} to {existing.interval.end_label}"
    if kind is ResourceKind.classroom:
        return (
            f"Classroom {existing.classroom_id} is already occupied by group {existing.group_id} "
            f"{window} (entry {existing.id})"
        )
    if kind is ResourceKind.teacher:
        return (
            f"Teacher {existing.teacher_id} is already teaching group {existing.group_id} "
            f"{window} (entry {existing.id})"
        )
    return f"Group {existing.group_id} already has a class {window} (entry {existing.id})"


def colliding_kinds(first: ScheduleEntry, second: ScheduleEntry) -> list[ResourceKind]:
    """Resource dimensions two time-overlapping entries share, in classroom/teacher/group order."""
    return [kind for kind in ResourceKind if first.resource_id(kind) == second.resource_id(kind)]


class ConflictDetector:
    def comparable(self, candidate: ScheduleEntry, existing: ScheduleEntry) -> bool:
        return (
            existing.is_active
            and existing.day_of_week == candidate.day_of_week
            and candidate.shares_date_with(existing)
        )

    def find_conflicts(
        self,
        candidate: ScheduleEntry,
        existing: Iterable[ScheduleEntry],
        exclude_id: int | None = None,
    ) -> list[ScheduleConflict]:
        """Every collision between ``candidate`` and ``existing``, one item per resource dimension.

        ``exclude_id`` skips the entry being updated so it never conflicts with itself.
        """
        conflicts: list[ScheduleConflict] = []
        for entry in existing:
            if not self.comparable(candidate, entry):
                continue
            if exclude_id is not None and entry.id == exclude_id:
                continue
            if not overlaps(candidate.interval, entry.interval):
                continue
            for kind in colliding_kinds(candidate, entry):
                conflicts.append(ScheduleConflict(kind=kind, entry_id=entry.id, message=_describe(kind, candidate, entry)))
        return conflicts

    def find_duplicate_slot(
        self,
        candidate: ScheduleEntry,
        existing: Iterable[ScheduleEntry],
        exclude_id: int | None = None,
    ) -> ScheduleConflict | None:
        """Identical-slot guard: same group, weekday and start time, regardless of active flag."""
        for entry in existing:
            if exclude_id is not None and entry.id == exclude_id:
                continue
            if (
                entry.group_id == candidate.group_id
                and entry.day_of_week == candidate.day_of_week
                and entry.interval.start == candidate.interval.start
            ):
                return ScheduleConflict(
                    kind=ResourceKind.group,
                    entry_id=entry.id,
                    message=(
                        f"Group {entry.group_id} already has a lesson starting at "
                        f"{entry.interval.start_label} on this day (entry {entry.id})"
                    ),
                )
        return None

    def find_conflicting_entries(self, entries: Iterable[ScheduleEntry]) -> list[ConflictPair]:
        """Pairwise sweep over stored entries.

        Entries are bucketed by weekday first, so the O(n^2) comparison only runs
        inside one day. Large datasets should pre-index by day and resource.
        """
        entries_by_day: dict[int, list[ScheduleEntry]] = defaultdict(list)
        for entry in entries:
            if entry.is_active:
                entries_by_day[entry.day_of_week].append(entry)

        pairs: list[ConflictPair] = []
        for day in sorted(entries_by_day):
            day_entries = sorted(entries_by_day[day], key=lambda item: (item.interval.start, item.id or 0))
            n = len(day_entries)
            for i in range(n):
                first = day_entries[i]
                for j in range(i + 1, n):
                    second = day_entries[j]
                    # Sorted by start: nothing later can overlap once a start passes our end.
                    if second.interval.start >= first.interval.end:
                        break
                    if not first.shares_date_with(second):
                        continue
                    kinds = colliding_kinds(first, second)
                    if kinds:
                        pairs.append(ConflictPair(first=first, second=second, kinds=kinds))
        return pairs
