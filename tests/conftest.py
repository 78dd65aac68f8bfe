from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from store import SessionStore


class FixedClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(clock):
    return SessionStore(clock=clock)


@pytest.fixture
def client(store):
    # Fresh store per test instead of the module-level default
    from main import app, get_store

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()
