import os
# Override DATABASE_URL before any proctor imports to avoid PostgreSQL driver requirement
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["DEPLOYMENT_ENV"] = "test"

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from proctor.deps import build_services, get_services
from proctor.main import app
from proctor.platform.config import settings
from proctor.platform.database import Base, get_db
from proctor.platform.middleware import _rate_limit_store

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Enable foreign key support for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Deterministic time
# ---------------------------------------------------------------------------

class FrozenClock:
    """Wall clock that only moves when a test says so."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class ManualTimer:
    def __init__(self, due: float, seq: int, callback):
        self.due = due
        self.seq = seq
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-time scheduler: callbacks run only inside ``advance``.

    When given a ``FrozenClock`` the wall clock moves in step, so events
    appended by a firing timer carry the virtual fire time.
    """

    def __init__(self, clock: FrozenClock = None):
        self._now = 0.0
        self._seq = itertools.count()
        self._clock = clock
        self.timers = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay, callback):
        timer = ManualTimer(self._now + delay, next(self._seq), callback)
        self.timers.append(timer)
        return timer

    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def _move_to(self, instant: float) -> None:
        if self._clock is not None:
            self._clock.advance(instant - self._now)
        self._now = instant

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while True:
            due = [t for t in self.timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.seq))
            self.timers.remove(timer)
            self._move_to(timer.due)
            timer.callback()
        self._move_to(target)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def policy():
    return settings.detection_policy


# ---------------------------------------------------------------------------
# Database and services
# ---------------------------------------------------------------------------

@pytest.fixture(scope="function")
def db():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def services(db, scheduler, clock):
    container = build_services(TestingSessionLocal, scheduler=scheduler, clock=clock)
    yield container
    container.detection.shutdown()

@pytest.fixture(scope="function")
def client(services):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_services] = lambda: services
    # Clear in-memory rate limit state between tests to prevent 429 bleed-through
    _rate_limit_store.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    _rate_limit_store.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def create_session(services, name: str = "Ada Lovelace", email: str = "ada@example.com") -> str:
    return services.lifecycle.create(candidate_name=name, candidate_email=email)["session_id"]


def create_active_session(services, **kwargs) -> str:
    session_id = create_session(services, **kwargs)
    services.lifecycle.start(session_id, {"ip_address": "127.0.0.1"})
    return session_id
