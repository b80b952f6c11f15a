# backend/tests/conftest.py
"""
Shared fixtures: in-memory SQLite with the real schema (partial unique index
included), a recording notifier instead of Redis, and a TestClient wired to
the same database.
"""

import os

# Must be set before sessionbook.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6399/0")

from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sessionbook.config import settings
from sessionbook.database import enable_sqlite_fk, get_db
from sessionbook.main import app
from sessionbook.models.generated import ApprovalState, Base, UserRole, Users
from sessionbook.services import transactions
from sessionbook.services.slots import BookingConfig

from .helpers import ADMIN_ID


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_fk)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def __call__(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))

    @property
    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


@pytest.fixture(autouse=True)
def notifier(monkeypatch):
    """Replace the Redis sink for every test; UnitOfWork falls back to it."""
    recorder = RecordingNotifier()
    monkeypatch.setattr(transactions, "emit_event", recorder)
    return recorder


@pytest.fixture(autouse=True)
def admin_ids(monkeypatch):
    monkeypatch.setattr(settings, "admin_user_ids", [ADMIN_ID])
    monkeypatch.setattr(settings, "booking_time_limit_hours", None)
    monkeypatch.setattr(settings, "cancel_time_limit_hours", None)


@pytest.fixture
def config():
    return BookingConfig()


@pytest.fixture
def today():
    """A fixed Monday, so weekday arithmetic in tests is stable."""
    return date(2030, 1, 7)


@pytest.fixture
def now(today):
    return datetime.combine(today, datetime.min.time()).replace(hour=8)


@pytest.fixture
def make_user(db):
    def _make_user(
        user_id: str,
        state: ApprovalState = ApprovalState.APPROVED,
        granted: int = 0,
        consumed: int = 0,
        role: UserRole = UserRole.USER,
    ) -> Users:
        remaining = max(granted - consumed, 0) if state == ApprovalState.APPROVED else 0
        user = Users(
            id=user_id,
            name=user_id.title(),
            role=role.value,
            approval_state=state.value,
            sessions_granted=granted,
            remaining_credits=remaining,
            consumed_credits=consumed,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


