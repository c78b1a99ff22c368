"""Persistence seam for schedule entries.

The scheduling core only talks to ``ScheduleStore`` and ``ResourceDirectory``;
the SQLAlchemy classes below are the production adapters.
"""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
import logging
from typing import Hashable, Iterable, Iterator, Protocol

from sqlalchemy import and_, or_, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConcurrencyError, ResourceNotFoundError
from app.models.classroom import Classroom
from app.models.group import Group
from app.models.schedule_entry import ScheduleEntryRecord
from app.models.subject import Subject
from app.models.teacher import Teacher
from app.services.entries import ScheduleEntry, ScheduleFilter
from app.services.intervals import TimeInterval, minutes_to_time
from app.services.locks import ResourceLockRegistry, advisory_lock_id, get_lock_registry

logger = logging.getLogger(__name__)


class ScheduleStore(Protocol):
    def find_active_by_day(self, day_of_week: int, filters: ScheduleFilter | None = None) -> list[ScheduleEntry]: ...

    def find(self, filters: ScheduleFilter | None = None, *, offset: int = 0, limit: int | None = None) -> list[ScheduleEntry]: ...

    def find_same_slot(self, group_id: int, day_of_week: int, start: int) -> list[ScheduleEntry]: ...

    def get(self, entry_id: int) -> ScheduleEntry | None: ...

    def insert(self, entry: ScheduleEntry) -> int: ...

    def update(self, entry_id: int, entry: ScheduleEntry) -> None: ...

    def set_active(self, entry_id: int, is_active: bool) -> None: ...

    def soft_delete(self, entry_id: int) -> None: ...

    def hard_delete(self, entry_id: int) -> None: ...

    def transaction(self, lock_keys: Iterable[Hashable]): ...


class ResourceDirectory(Protocol):
    def exists(self, kind: str, resource_id: int) -> bool: ...

    def classroom_is_available(self, classroom_id: int) -> bool: ...


def record_to_entry(record: ScheduleEntryRecord) -> ScheduleEntry:
    return ScheduleEntry(
        id=record.id,
        group_id=record.group_id,
        subject_id=record.subject_id,
        teacher_id=record.teacher_id,
        classroom_id=record.classroom_id,
        day_of_week=record.day_of_week,
        interval=TimeInterval.parse(record.start_time, record.end_time),
        specific_date=record.specific_date,
        is_active=record.is_active,
        notes=record.notes,
    )


def _apply_entry(record: ScheduleEntryRecord, entry: ScheduleEntry) -> None:
    record.group_id = entry.group_id
    record.subject_id = entry.subject_id
    record.teacher_id = entry.teacher_id
    record.classroom_id = entry.classroom_id
    record.day_of_week = entry.day_of_week
    record.start_time = entry.interval.start_time()
    record.end_time = entry.interval.end_time()
    record.specific_date = entry.specific_date
    record.is_active = entry.is_active
    record.notes = entry.notes


class SqlAlchemyScheduleStore:
    def __init__(
        self,
        db: Session,
        *,
        locks: ResourceLockRegistry | None = None,
        lock_timeout_seconds: float = 10.0,
    ) -> None:
        self.db = db
        self._locks = locks or get_lock_registry()
        self._lock_timeout = lock_timeout_seconds

    def _filter_clauses(self, filters: ScheduleFilter | None) -> list:
        clauses = [ScheduleEntryRecord.deleted_at.is_(None)]
        if filters is None:
            return clauses
        resource_clauses = [
            column == value
            for column, value in (
                (ScheduleEntryRecord.classroom_id, filters.classroom_id),
                (ScheduleEntryRecord.teacher_id, filters.teacher_id),
                (ScheduleEntryRecord.group_id, filters.group_id),
            )
            if value is not None
        ]
        if resource_clauses:
            clauses.append(or_(*resource_clauses) if filters.match_any else and_(*resource_clauses))
        if filters.subject_id is not None:
            clauses.append(ScheduleEntryRecord.subject_id == filters.subject_id)
        if filters.day_of_week is not None:
            clauses.append(ScheduleEntryRecord.day_of_week == filters.day_of_week)
        if filters.is_active is not None:
            clauses.append(ScheduleEntryRecord.is_active.is_(filters.is_active))
        return clauses

    def _entries(self, stmt) -> list[ScheduleEntry]:
        # Rows loaded earlier in this session must not mask committed changes.
        result = self.db.execute(stmt.execution_options(populate_existing=True))
        return [record_to_entry(record) for record in result.scalars()]

    def find(self, filters: ScheduleFilter | None = None, *, offset: int = 0, limit: int | None = None) -> list[ScheduleEntry]:
        stmt = (
            select(ScheduleEntryRecord)
            .where(*self._filter_clauses(filters))
            .order_by(ScheduleEntryRecord.day_of_week, ScheduleEntryRecord.start_time, ScheduleEntryRecord.id)
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._entries(stmt)

    def find_active_by_day(self, day_of_week: int, filters: ScheduleFilter | None = None) -> list[ScheduleEntry]:
        stmt = select(ScheduleEntryRecord).where(
            *self._filter_clauses(filters),
            ScheduleEntryRecord.day_of_week == day_of_week,
            ScheduleEntryRecord.is_active.is_(True),
        ).order_by(ScheduleEntryRecord.start_time, ScheduleEntryRecord.id)
        return self._entries(stmt)

    def find_same_slot(self, group_id: int, day_of_week: int, start: int) -> list[ScheduleEntry]:
        stmt = select(ScheduleEntryRecord).where(
            ScheduleEntryRecord.deleted_at.is_(None),
            ScheduleEntryRecord.group_id == group_id,
            ScheduleEntryRecord.day_of_week == day_of_week,
            ScheduleEntryRecord.start_time == minutes_to_time(start),
        )
        return self._entries(stmt)

    def _live_record(self, entry_id: int) -> ScheduleEntryRecord:
        record = self.db.get(ScheduleEntryRecord, entry_id)
        if record is None or record.deleted_at is not None:
            raise ResourceNotFoundError("Schedule", entry_id)
        return record

    def get(self, entry_id: int) -> ScheduleEntry | None:
        record = self.db.get(ScheduleEntryRecord, entry_id, populate_existing=True)
        if record is None or record.deleted_at is not None:
            return None
        return record_to_entry(record)

    def insert(self, entry: ScheduleEntry) -> int:
        record = ScheduleEntryRecord()
        _apply_entry(record, entry)
        self.db.add(record)
        self.db.flush()
        return record.id

    def update(self, entry_id: int, entry: ScheduleEntry) -> None:
        record = self._live_record(entry_id)
        _apply_entry(record, entry)
        self.db.flush()

    def set_active(self, entry_id: int, is_active: bool) -> None:
        record = self._live_record(entry_id)
        record.is_active = is_active
        self.db.flush()

    def soft_delete(self, entry_id: int) -> None:
        record = self._live_record(entry_id)
        record.deleted_at = datetime.now(timezone.utc)
        self.db.flush()

    def hard_delete(self, entry_id: int) -> None:
        record = self.db.get(ScheduleEntryRecord, entry_id)
        if record is None:
            raise ResourceNotFoundError("Schedule", entry_id)
        self.db.delete(record)
        self.db.flush()

    @contextmanager
    def transaction(self, lock_keys: Iterable[Hashable]) -> Iterator[None]:
        """Hold the advisory locks for ``lock_keys`` around one committed unit of work."""
        with self._locks.hold(lock_keys, timeout=self._lock_timeout) as ordered:
            try:
                if self.db.get_bind().dialect.name == "postgresql":
                    # Cross-process guard; released automatically at commit or rollback.
                    for key in ordered:
                        self.db.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": advisory_lock_id(key)})
                yield
                self.db.commit()
            except IntegrityError as exc:
                self.db.rollback()
                logger.warning("Schedule write lost a race: %s", exc.orig)
                raise ConcurrencyError() from exc
            except Exception:
                self.db.rollback()
                raise


class SqlAlchemyResourceDirectory:
    MODELS = {
        "group": Group,
        "teacher": Teacher,
        "subject": Subject,
        "classroom": Classroom,
    }

    def __init__(self, db: Session) -> None:
        self.db = db

    def exists(self, kind: str, resource_id: int) -> bool:
        model = self.MODELS[kind]
        return self.db.get(model, resource_id) is not None

    def classroom_is_available(self, classroom_id: int) -> bool:
        classroom = self.db.get(Classroom, classroom_id)
        return classroom is not None and classroom.is_active and classroom.is_available
