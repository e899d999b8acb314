"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests, and a
virtual clock/timer so coalescer windows elapse instantly and on demand.
"""
import os

os.environ.setdefault("APP_ENV", "test")

import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import moodchat.models  # noqa: F401
from moodchat.core.errors import SessionStoreError
from moodchat.db.base import Base, get_db
from moodchat.deps import get_calendar_tz, get_coalescer, get_session_store
from moodchat.main import app
from moodchat.services.coalescer import SessionUpdateCoalescer
from moodchat.services.session_store import SessionStore

SQLITE_URL = "sqlite:///./test_moodchat.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

WINDOW_SECONDS = 30 * 60


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Virtual time
# ---------------------------------------------------------------------------

class VirtualTimer:
    def __init__(self, scheduler, interval, callback):
        self.scheduler = scheduler
        self.interval = interval
        self.callback = callback
        self.due = None
        self.cancelled = False
        self.fired = False

    def start(self):
        self.due = self.scheduler.now() + timedelta(seconds=self.interval)
        self.scheduler.timers.append(self)

    def cancel(self):
        self.cancelled = True

    def fire(self):
        """Run the callback, even if cancelled (simulates a lost race)."""
        self.fired = True
        self.callback()


class VirtualScheduler:
    """Clock + timer factory; advance() fires due timers in order."""

    def __init__(self, start=datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self._now = start
        self.timers = []

    def now(self):
        return self._now

    def factory(self, interval, callback):
        return VirtualTimer(self, interval, callback)

    @property
    def armed(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, **delta):
        target = self._now + timedelta(**delta)
        while True:
            due = sorted((t for t in self.armed if t.due <= target), key=lambda t: t.due)
            if not due:
                break
            timer = due[0]
            self._now = max(self._now, timer.due)
            timer.fire()
        self._now = target


class RecordingStore:
    """update_final() double that records writes and can be told to fail."""

    def __init__(self):
        self.writes = []
        self.fail_next = 0

    def update_final(self, session_id, update):
        if self.fail_next:
            self.fail_next -= 1
            raise SessionStoreError("update_final", reason="OperationalError")
        self.writes.append((session_id, update))
        return update


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session", autouse=True)
def create_tables():
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
def device_id():
    return f"device-{uuid.uuid4()}"


@pytest.fixture()
def session_factory():
    return TestingSessionLocal


@pytest.fixture()
def store():
    return SessionStore(session_factory=TestingSessionLocal)


@pytest.fixture()
def scheduler():
    return VirtualScheduler()


@pytest.fixture()
def recording_store():
    return RecordingStore()


@pytest.fixture()
def coalescer(recording_store, scheduler):
    """Coalescer over a recording store, driven by virtual time."""
    return SessionUpdateCoalescer(
        store=recording_store,
        window_seconds=WINDOW_SECONDS,
        timer_factory=scheduler.factory,
        clock=scheduler.now,
    )


@pytest.fixture()
def app_coalescer(store, scheduler):
    """Coalescer over the SQLite store, driven by virtual time."""
    return SessionUpdateCoalescer(
        store=store,
        window_seconds=WINDOW_SECONDS,
        timer_factory=scheduler.factory,
        clock=scheduler.now,
    )


@pytest.fixture()
def client(store, app_coalescer):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_coalescer] = lambda: app_coalescer
    app.dependency_overrides[get_calendar_tz] = lambda: timezone.utc
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
