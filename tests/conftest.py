"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
Every test works under its own user id, so tables are created once per
session and never truncated.
"""
import uuid
from datetime import date
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import ascend.models  # noqa: F401
from ascend.db.base import Base, get_db
from ascend.main import app
from ascend.models.checkin import CheckinStatus, HabitCheckin
from ascend.models.habit import Habit, Moment
from ascend.models.user import User

SQLITE_URL = "sqlite:///./test_ascend.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def user_id(db) -> str:
    uid = f"user-{uuid.uuid4().hex[:12]}"
    db.add(User(id=uid, is_active=True))
    db.commit()
    return uid


@pytest.fixture()
def make_habit(db):
    def _make(
        user_id: str,
        title: str = "Habit",
        moment: Moment = Moment.morning,
        difficulty: int = 1,
        start_date: Optional[date] = None,
        archived: bool = False,
    ) -> Habit:
        habit = Habit(
            user_id=user_id,
            title=title,
            moment=moment,
            difficulty=difficulty,
            start_date=start_date,
            archived=archived,
        )
        db.add(habit)
        db.commit()
        db.refresh(habit)
        return habit
    return _make


@pytest.fixture()
def make_checkin(db):
    def _make(
        user_id: str,
        habit_id: int,
        day: date,
        status: CheckinStatus = CheckinStatus.done,
    ) -> HabitCheckin:
        checkin = HabitCheckin(user_id=user_id, habit_id=habit_id, date=day, status=status, effort=2)
        db.add(checkin)
        db.commit()
        db.refresh(checkin)
        return checkin
    return _make
