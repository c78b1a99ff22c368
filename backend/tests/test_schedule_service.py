from contextlib import contextmanager
from datetime import date

import pytest
from sqlalchemy import update

from app.core.exceptions import (
    ConcurrencyError,
    ConflictError,
    ResourceNotFoundError,
    UnavailableResourceError,
    ValidationError,
)
from app.models import ScheduleEntryRecord
from app.services.entries import ResourceKind, ScheduleFilter
from app.services.locks import ResourceLockRegistry
from app.services.schedule_service import retry_once_on_race
from app.services.store import SqlAlchemyScheduleStore

INACTIVE_CLASSROOM_ID = 7
UNAVAILABLE_CLASSROOM_ID = 8


def lesson_a(make_entry):
    return make_entry("09:00", "10:30", classroom_id=5, teacher_id=9, group_id=2, day_of_week=1)


def lesson_b(make_entry, start="10:00", end="11:00"):
    return make_entry(start, end, classroom_id=5, teacher_id=3, group_id=7, day_of_week=1)


def test_create_persists_entry(service, make_entry):
    created = service.create_entry(lesson_a(make_entry))

    assert created.id is not None
    assert created.interval.label == "09:00 - 10:30"
    assert created.is_active is True
    assert service.get_entry(created.id) == created


def test_create_rejects_classroom_collision(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))

    with pytest.raises(ConflictError) as excinfo:
        service.create_entry(lesson_b(make_entry))

    assert [(c.kind, c.entry_id) for c in excinfo.value.conflicts] == [(ResourceKind.classroom, first.id)]
    assert excinfo.value.details["conflicts"][0]["resource_kind"] == "CLASSROOM"
    assert len(service.list_entries(limit=50)) == 1


def test_check_conflicts_is_read_only(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))

    conflicts = service.check_conflicts(lesson_b(make_entry))

    assert [c.entry_id for c in conflicts] == [first.id]
    assert service.check_conflicts(first, exclude_id=first.id) == []
    assert len(service.list_entries(limit=50)) == 1


def test_update_excludes_itself_but_sees_neighbours(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))

    widened = service.update_entry(first.id, {"end_time": "11:00"})
    assert widened.interval.label == "09:00 - 11:00"

    service.update_entry(first.id, {"end_time": "10:30"})
    neighbour = service.create_entry(lesson_b(make_entry, "10:30", "11:30"))

    with pytest.raises(ConflictError) as excinfo:
        service.update_entry(first.id, {"end_time": "11:00"})
    assert [(c.kind, c.entry_id) for c in excinfo.value.conflicts] == [(ResourceKind.classroom, neighbour.id)]
    assert service.get_entry(first.id).interval.label == "09:00 - 10:30"


def test_update_can_move_entry_to_another_day(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))
    service.create_entry(make_entry("09:00", "10:30", classroom_id=5, teacher_id=4, group_id=4, day_of_week=2))

    with pytest.raises(ConflictError):
        service.update_entry(first.id, {"day_of_week": 2})

    moved = service.update_entry(first.id, {"day_of_week": 3, "classroom_id": 6})
    assert moved.day_of_week == 3
    assert moved.classroom_id == 6


def test_missing_references_and_unavailable_classrooms(service, make_entry):
    with pytest.raises(ResourceNotFoundError) as excinfo:
        service.create_entry(make_entry(teacher_id=99))
    assert excinfo.value.details == {"resource_type": "Teacher", "resource_id": 99}

    with pytest.raises(UnavailableResourceError):
        service.create_entry(make_entry(classroom_id=UNAVAILABLE_CLASSROOM_ID))
    with pytest.raises(UnavailableResourceError):
        service.create_entry(make_entry(classroom_id=INACTIVE_CLASSROOM_ID))


@pytest.mark.parametrize(
    "start, end, fields",
    [
        ("09:00", "09:20", {}),
        ("09:00", "14:00", {}),
        ("09:00", "10:00", {"day_of_week": 8}),
        ("09:00", "10:00", {"specific_date": date(2026, 10, 13)}),
    ],
)
def test_invalid_entries_are_rejected_before_any_lookup(service, make_entry, start, end, fields):
    with pytest.raises(ValidationError):
        service.create_entry(make_entry(start, end, teacher_id=99, **fields))


def test_identical_slot_guard_covers_inactive_entries(service, make_entry):
    parked = service.create_entry(make_entry("09:00", "10:30", group_id=1, is_active=False))

    with pytest.raises(ConflictError) as excinfo:
        service.create_entry(make_entry("09:00", "09:45", group_id=1, classroom_id=2, teacher_id=2))
    assert excinfo.value.conflicts[0].entry_id == parked.id

    # Inactive entries never block overlapping lessons that start elsewhere.
    service.create_entry(make_entry("09:30", "10:30", group_id=1, classroom_id=2, teacher_id=2))


def test_reactivation_rechecks_conflicts(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))
    assert service.toggle_status(first.id).is_active is False

    second = service.create_entry(lesson_b(make_entry))

    with pytest.raises(ConflictError) as excinfo:
        service.toggle_status(first.id)
    assert excinfo.value.conflicts[0].entry_id == second.id
    assert service.get_entry(first.id).is_active is False


def test_reactivation_without_recheck_is_reported_by_detection(make_service, make_entry):
    service = make_service(revalidate_on_reactivation=False)
    first = service.create_entry(lesson_a(make_entry))
    service.toggle_status(first.id)
    second = service.create_entry(lesson_b(make_entry))

    assert service.toggle_status(first.id).is_active is True

    pairs = service.detect_stored_conflicts()
    assert [(pair.first.id, pair.second.id, pair.kinds) for pair in pairs] == [
        (first.id, second.id, [ResourceKind.classroom])
    ]
    assert service.detect_stored_conflicts(ScheduleFilter(day_of_week=2)) == []


def test_soft_delete_hides_entry_and_frees_the_slot(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))

    service.delete_entry(first.id)

    with pytest.raises(ResourceNotFoundError):
        service.get_entry(first.id)
    with pytest.raises(ResourceNotFoundError):
        service.delete_entry(first.id)
    assert service.list_entries(limit=50) == []
    replacement = service.create_entry(lesson_a(make_entry))
    assert replacement.id != first.id


def test_hard_delete_removes_entry(service, make_entry):
    first = service.create_entry(lesson_a(make_entry))

    service.delete_entry(first.id, hard=True)

    assert service.store.get(first.id) is None
    with pytest.raises(ResourceNotFoundError):
        service.toggle_status(first.id)


def test_unknown_entry_ids(service):
    with pytest.raises(ResourceNotFoundError):
        service.get_entry(404)
    with pytest.raises(ResourceNotFoundError):
        service.update_entry(404, {"notes": "x"})
    with pytest.raises(ResourceNotFoundError):
        service.toggle_status(404)


def test_listing_filters_and_pagination(service, make_entry):
    for day in (1, 2, 3):
        service.create_entry(make_entry("08:00", "09:30", group_id=3, teacher_id=4, classroom_id=2, day_of_week=day))
    service.create_entry(make_entry("08:00", "09:30", group_id=4, teacher_id=5, classroom_id=3, day_of_week=1))

    first_page = service.list_entries(ScheduleFilter(group_id=3), page=1, limit=2)
    second_page = service.list_entries(ScheduleFilter(group_id=3), page=2, limit=2)
    assert [entry.day_of_week for entry in first_page] == [1, 2]
    assert [entry.day_of_week for entry in second_page] == [3]

    assert len(service.list_for_resource("classroom", 3)) == 1
    assert len(service.list_for_resource("teacher", 4)) == 3
    with pytest.raises(ResourceNotFoundError):
        service.list_for_resource("group", 999)


def test_available_slots_reflect_stored_lessons(service, make_entry):
    service.create_entry(lesson_a(make_entry))

    slots = service.get_available_slots(5, 1)
    assert [slot.available for slot in slots] == [False, False, True, True, True, True]
    assert all(slot.available for slot in service.get_available_slots(5, 2))

    with pytest.raises(ValidationError):
        service.get_available_slots(5, 0)


def test_weekly_and_group_timetables(service, make_entry):
    service.create_entry(make_entry("11:30", "13:00", group_id=2, teacher_id=1, classroom_id=1, day_of_week=1))
    service.create_entry(make_entry("08:00", "09:30", group_id=2, teacher_id=2, classroom_id=2, day_of_week=1))
    service.create_entry(make_entry("08:00", "09:30", group_id=3, teacher_id=3, classroom_id=3, day_of_week=4))

    view = service.get_weekly_timetable(group_id=2)
    assert [entry.interval.start_label for entry in view[1]] == ["08:00", "11:30"]
    assert sum(len(lessons) for lessons in view.values()) == 2

    everything = service.get_weekly_timetable()
    assert sum(len(lessons) for lessons in everything.values()) == 3

    timetable = service.get_group_timetable(2)
    assert timetable.total_lessons == 2


def test_workload_for_a_week(service, make_entry):
    service.create_entry(make_entry("09:00", "10:30", teacher_id=6, group_id=1, day_of_week=1))
    service.create_entry(make_entry("09:00", "10:00", teacher_id=6, group_id=2, classroom_id=2, day_of_week=3))
    service.create_entry(
        make_entry("12:00", "14:00", teacher_id=6, group_id=3, classroom_id=3, day_of_week=1, specific_date=date(2026, 10, 19))
    )

    weekly = service.get_workload(6)
    assert weekly.total_weekly_minutes == 270
    assert weekly.lesson_count == 3

    this_week = service.get_workload(6, week_start=date(2026, 10, 12))
    assert this_week.total_weekly_minutes == 150
    assert this_week.per_day_minutes[1] == 90

    with pytest.raises(ValidationError):
        service.get_workload(6, week_start=date(2026, 10, 13))
    with pytest.raises(ResourceNotFoundError):
        service.get_workload(99)


def test_store_turns_unique_index_violations_into_concurrency_errors(db_session, make_entry):
    store = SqlAlchemyScheduleStore(db_session, locks=ResourceLockRegistry())
    entry = make_entry()

    with store.transaction(entry.lock_keys()):
        store.insert(entry)

    with pytest.raises(ConcurrencyError):
        with store.transaction(entry.lock_keys()):
            store.insert(entry.with_changes(classroom_id=2, teacher_id=2))

    assert len(store.find()) == 1


def test_retry_once_on_race():
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise ConcurrencyError()
        return "ok"

    assert retry_once_on_race(flaky) == "ok"
    assert len(calls) == 2

    def always_racing():
        raise ConcurrencyError()

    with pytest.raises(ConcurrencyError):
        retry_once_on_race(always_racing)


@pytest.fixture
def moved_before_lock(service, db_session):
    """Moves the entry to Tuesday between the unlocked read and the first lock acquisition."""
    held = []
    locked_transaction = service.store.transaction

    def install(entry_id):
        @contextmanager
        def transaction(lock_keys):
            lock_keys = set(lock_keys)
            if not held:
                db_session.execute(
                    update(ScheduleEntryRecord).where(ScheduleEntryRecord.id == entry_id).values(day_of_week=2)
                )
                db_session.commit()
            held.append(lock_keys)
            with locked_transaction(lock_keys):
                yield

        service.store.transaction = transaction
        return held

    return install


def test_update_refuses_to_write_outside_the_held_locks(service, make_entry, moved_before_lock):
    first = service.create_entry(lesson_a(make_entry))
    held = moved_before_lock(first.id)

    with pytest.raises(ConcurrencyError):
        service.update_entry(first.id, {"start_time": "11:00", "end_time": "12:00"})

    stored = service.get_entry(first.id)
    assert stored.day_of_week == 2
    assert stored.interval.label == "09:00 - 10:30"
    assert all(day == 1 for _, day, _ in held[0])


def test_retried_update_locks_the_day_the_entry_moved_to(service, make_entry, moved_before_lock):
    first = service.create_entry(lesson_a(make_entry))
    held = moved_before_lock(first.id)

    updated = retry_once_on_race(lambda: service.update_entry(first.id, {"start_time": "11:00", "end_time": "12:00"}))

    assert len(held) == 2
    assert updated.day_of_week == 2
    assert updated.interval.label == "11:00 - 12:00"
    assert updated.lock_keys() <= held[-1]


@pytest.mark.parametrize("field", ["is_active", "day_of_week", "start_time", "classroom_id"])
def test_update_cannot_clear_required_fields(service, make_entry, field):
    first = service.create_entry(lesson_a(make_entry))

    with pytest.raises(ValidationError) as excinfo:
        service.update_entry(first.id, {field: None})

    assert excinfo.value.details == {"fields": [field]}
    assert service.get_entry(first.id) == first


def test_update_can_clear_optional_fields(service, make_entry):
    first = service.create_entry(lesson_a(make_entry).with_changes(notes="Lab", specific_date=date(2026, 10, 19)))

    cleared = service.update_entry(first.id, {"notes": None, "specific_date": None})

    assert cleared.notes is None
    assert cleared.specific_date is None
