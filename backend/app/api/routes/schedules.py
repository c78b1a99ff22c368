from datetime import date

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_schedule_service
from app.schemas.schedule import (
    AvailableSlotsOut,
    ConflictCheckRequest,
    ConflictCheckResponse,
    ConflictOut,
    ConflictPairOut,
    DetectedConflictsOut,
    GroupTimetableOut,
    ScheduleEntryCreate,
    ScheduleEntryOut,
    ScheduleEntryUpdate,
    SlotStatusOut,
    WeeklyTimetableOut,
    WorkloadOut,
    day_schedules,
)
from app.services.entries import ScheduleFilter, day_name
from app.services.schedule_service import ScheduleService, retry_once_on_race

router = APIRouter()


@router.post("", response_model=ScheduleEntryOut, status_code=status.HTTP_201_CREATED)
def create_schedule(
    payload: ScheduleEntryCreate,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleEntryOut:
    draft = payload.to_entry(is_active=payload.is_active)
    entry = retry_once_on_race(lambda: service.create_entry(draft))
    return ScheduleEntryOut.from_entry(entry)


@router.get("", response_model=list[ScheduleEntryOut])
def list_schedules(
    group_id: int | None = Query(default=None, ge=1),
    subject_id: int | None = Query(default=None, ge=1),
    teacher_id: int | None = Query(default=None, ge=1),
    classroom_id: int | None = Query(default=None, ge=1),
    day_of_week: int | None = Query(default=None, ge=1, le=7),
    is_active: bool | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    service: ScheduleService = Depends(get_schedule_service),
) -> list[ScheduleEntryOut]:
    filters = ScheduleFilter(
        group_id=group_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        classroom_id=classroom_id,
        day_of_week=day_of_week,
        is_active=is_active,
    )
    return [ScheduleEntryOut.from_entry(entry) for entry in service.list_entries(filters, page=page, limit=limit)]


@router.post("/check-conflicts", response_model=ConflictCheckResponse)
def check_conflicts(
    payload: ConflictCheckRequest,
    service: ScheduleService = Depends(get_schedule_service),
) -> ConflictCheckResponse:
    conflicts = service.check_conflicts(payload.to_entry(), exclude_id=payload.exclude_schedule_id)
    return ConflictCheckResponse(
        has_conflicts=bool(conflicts),
        conflicts=[ConflictOut.from_conflict(conflict) for conflict in conflicts],
    )


@router.get("/weekly", response_model=WeeklyTimetableOut)
def weekly_schedule(
    group_id: int | None = Query(default=None, ge=1),
    teacher_id: int | None = Query(default=None, ge=1),
    classroom_id: int | None = Query(default=None, ge=1),
    service: ScheduleService = Depends(get_schedule_service),
) -> WeeklyTimetableOut:
    view = service.get_weekly_timetable(group_id=group_id, teacher_id=teacher_id, classroom_id=classroom_id)
    return WeeklyTimetableOut(
        group_id=group_id,
        teacher_id=teacher_id,
        classroom_id=classroom_id,
        weekly_schedule=day_schedules(view),
    )


@router.get("/conflicts/detect", response_model=DetectedConflictsOut)
def detect_conflicts(
    classroom_id: int | None = Query(default=None, ge=1),
    teacher_id: int | None = Query(default=None, ge=1),
    group_id: int | None = Query(default=None, ge=1),
    day_of_week: int | None = Query(default=None, ge=1, le=7),
    service: ScheduleService = Depends(get_schedule_service),
) -> DetectedConflictsOut:
    filters = ScheduleFilter(classroom_id=classroom_id, teacher_id=teacher_id, group_id=group_id, day_of_week=day_of_week)
    pairs = service.detect_stored_conflicts(filters)
    return DetectedConflictsOut(total=len(pairs), conflicts=[ConflictPairOut.from_pair(pair) for pair in pairs])


@router.get("/available-slots/{classroom_id}/{day_of_week}", response_model=AvailableSlotsOut)
def available_slots(
    classroom_id: int,
    day_of_week: int,
    on_date: date | None = Query(default=None, alias="date"),
    service: ScheduleService = Depends(get_schedule_service),
) -> AvailableSlotsOut:
    slots = service.get_available_slots(classroom_id, day_of_week, on_date=on_date)
    return AvailableSlotsOut(
        classroom_id=classroom_id,
        day_of_week=day_of_week,
        day_name=day_name(day_of_week),
        on_date=on_date,
        slots=[SlotStatusOut.from_status(slot) for slot in slots],
    )


@router.get("/group/{group_id}", response_model=list[ScheduleEntryOut])
def group_schedules(group_id: int, service: ScheduleService = Depends(get_schedule_service)) -> list[ScheduleEntryOut]:
    return [ScheduleEntryOut.from_entry(entry) for entry in service.list_for_resource("group", group_id)]


@router.get("/group/{group_id}/timetable", response_model=GroupTimetableOut)
def group_timetable(group_id: int, service: ScheduleService = Depends(get_schedule_service)) -> GroupTimetableOut:
    timetable = service.get_group_timetable(group_id)
    return GroupTimetableOut(
        group_id=group_id,
        total_lessons=timetable.total_lessons,
        timetable=day_schedules(timetable.days),
    )


@router.get("/teacher/{teacher_id}", response_model=list[ScheduleEntryOut])
def teacher_schedules(teacher_id: int, service: ScheduleService = Depends(get_schedule_service)) -> list[ScheduleEntryOut]:
    return [ScheduleEntryOut.from_entry(entry) for entry in service.list_for_resource("teacher", teacher_id)]


@router.get("/teacher/{teacher_id}/workload", response_model=WorkloadOut)
def teacher_workload(
    teacher_id: int,
    week_start: date | None = None,
    service: ScheduleService = Depends(get_schedule_service),
) -> WorkloadOut:
    summary = service.get_workload(teacher_id, week_start=week_start)
    return WorkloadOut.from_summary(teacher_id, summary, week_start)


@router.get("/classroom/{classroom_id}", response_model=list[ScheduleEntryOut])
def classroom_schedules(classroom_id: int, service: ScheduleService = Depends(get_schedule_service)) -> list[ScheduleEntryOut]:
    return [ScheduleEntryOut.from_entry(entry) for entry in service.list_for_resource("classroom", classroom_id)]


@router.get("/{entry_id}", response_model=ScheduleEntryOut)
def get_schedule(entry_id: int, service: ScheduleService = Depends(get_schedule_service)) -> ScheduleEntryOut:
    return ScheduleEntryOut.from_entry(service.get_entry(entry_id))


@router.patch("/{entry_id}", response_model=ScheduleEntryOut)
def update_schedule(
    entry_id: int,
    payload: ScheduleEntryUpdate,
    service: ScheduleService = Depends(get_schedule_service),
) -> ScheduleEntryOut:
    changes = payload.model_dump(exclude_unset=True)
    entry = retry_once_on_race(lambda: service.update_entry(entry_id, changes))
    return ScheduleEntryOut.from_entry(entry)


@router.patch("/{entry_id}/toggle-status", response_model=ScheduleEntryOut)
def toggle_schedule_status(entry_id: int, service: ScheduleService = Depends(get_schedule_service)) -> ScheduleEntryOut:
    entry = retry_once_on_race(lambda: service.toggle_status(entry_id))
    return ScheduleEntryOut.from_entry(entry)


@router.delete("/{entry_id}")
def delete_schedule(
    entry_id: int,
    hard: bool = False,
    service: ScheduleService = Depends(get_schedule_service),
) -> dict:
    service.delete_entry(entry_id, hard=hard)
    return {"success": True, "message": "Schedule deleted successfully"}
