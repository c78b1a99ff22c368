import os

# Must be set before the app modules build their engine from settings.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.config import Settings
from app.db.base import Base
from app.main import app
from app.models import Classroom, Group, Subject, Teacher
from app.services.entries import ScheduleEntry
from app.services.intervals import TimeInterval
from app.services.locks import ResourceLockRegistry, get_lock_registry
from app.services.schedule_service import ScheduleService
from app.services.store import SqlAlchemyResourceDirectory, SqlAlchemyScheduleStore

INACTIVE_CLASSROOM_ID = 7
UNAVAILABLE_CLASSROOM_ID = 8


def seed_resources(db):
    db.add_all(Group(id=group_id, name=f"Group {group_id}", course_number=1) for group_id in range(1, 11))
    db.add_all(Teacher(id=teacher_id, full_name=f"Teacher {teacher_id}") for teacher_id in range(1, 11))
    db.add_all(Subject(id=subject_id, name=f"Subject {subject_id}", credit=3) for subject_id in range(1, 4))
    db.add_all(
        Classroom(
            id=classroom_id,
            building_number="1",
            room_number=str(100 + classroom_id),
            capacity=30,
            is_active=classroom_id != INACTIVE_CLASSROOM_ID,
            is_available=classroom_id != UNAVAILABLE_CLASSROOM_ID,
        )
        for classroom_id in range(1, 9)
    )
    db.commit()


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = factory()
    try:
        seed_resources(db)
    finally:
        db.close()
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def make_service(db_session):
    def factory(**settings_overrides) -> ScheduleService:
        store = SqlAlchemyScheduleStore(db_session, locks=ResourceLockRegistry(), lock_timeout_seconds=2.0)
        return ScheduleService(
            store,
            SqlAlchemyResourceDirectory(db_session),
            settings=Settings(**settings_overrides),
        )

    return factory


@pytest.fixture()
def service(make_service):
    return make_service()


@pytest.fixture()
def make_entry():
    def factory(start="09:00", end="10:30", **fields) -> ScheduleEntry:
        values = {
            "group_id": 1,
            "subject_id": 1,
            "teacher_id": 1,
            "classroom_id": 1,
            "day_of_week": 1,
        }
        values.update(fields)
        return ScheduleEntry(interval=TimeInterval.parse(start, end), **values)

    return factory


@pytest.fixture()
def client(session_factory):
    get_lock_registry().clear()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    get_lock_registry().clear()
