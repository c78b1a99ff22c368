from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.db.session import SessionLocal
from app.services.schedule_service import ScheduleService
from app.services.store import SqlAlchemyResourceDirectory, SqlAlchemyScheduleStore


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_schedule_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> ScheduleService:
    store = SqlAlchemyScheduleStore(db, lock_timeout_seconds=settings.schedule_lock_timeout_seconds)
    return ScheduleService(store, SqlAlchemyResourceDirectory(db), settings=settings)
