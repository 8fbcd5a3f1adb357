import os
import time
import pytest
from fastapi.testclient import TestClient
from unittest import mock

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REDIS_URL"] = ""


def passthrough_decorator(*args, **kwargs):
    """Passthrough decorator that doesn't do rate limiting"""

    def decorator(func):
        return func

    return decorator


mock.patch("slowapi.Limiter.limit", passthrough_decorator).start()

# ruff: noqa: E402
from maintenance_gate.main import app
from maintenance_gate.database import Base, engine, SessionLocal
from maintenance_gate.core.config import settings
from maintenance_gate.core.errors import RevisionConflict, StoreUnavailable
from maintenance_gate.core.maintenance_state import MaintenanceStateStore
from maintenance_gate import schemas


class FakeClock:
    """manually advanced monotonic clock"""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeStore:
    """in-memory store with call counting and failure injection"""

    def __init__(self, state=None, delay: float = 0.0):
        self.state = state or schemas.MaintenanceState()
        self.delay = delay
        self.get_calls = 0
        self.set_calls = 0
        self.fail_reads = False
        self.conflicts_left = 0

    def get(self):
        self.get_calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.fail_reads:
            raise StoreUnavailable("store is down")
        return self.state

    def set(self, new_state, expected_revision):
        self.set_calls += 1
        if self.conflicts_left > 0:
            self.conflicts_left -= 1
            #another writer got in first
            self.state = self.state.model_copy(update={"revision": self.state.revision + 1})
            raise RevisionConflict(expected_revision, self.state.revision)
        if expected_revision != self.state.revision:
            raise RevisionConflict(expected_revision, self.state.revision)
        self.state = new_state.model_copy(update={"revision": expected_revision + 1})
        return self.state


@pytest.fixture(scope="function")
def db_tables():
    """create a fresh schema in the in-memory database for each test"""
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def store(db_tables):
    return MaintenanceStateStore(SessionLocal)


@pytest.fixture(scope="function")
def client(db_tables):
    """create a test client, the lifespan bootstraps the maintenance record"""
    with TestClient(app, base_url="http://localhost:8000") as test_client:
        yield test_client


@pytest.fixture(scope="function")
def maintenance_url():
    return f"{settings.API_V1_STR}/maintenance"


@pytest.fixture
def fake_clock():
    return FakeClock()
