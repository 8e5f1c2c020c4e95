# backend/conftest.py
from datetime import date, datetime, timedelta, timezone

import pytest

from backend.features.badges.persistence import InMemoryBadgeDocumentStore
from backend.features.badges.service import badge_registry
from backend.features.badges.storage import InMemoryKeyValueStore


class FakeClock:
    """Manually advanced clock; call it to read the current time."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    @property
    def today(self) -> date:
        return self.now.date()

    def advance(self, days: int = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(days=days, **kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def documents():
    return InMemoryBadgeDocumentStore()


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture(scope="function", autouse=True)
def reset_badge_registry(documents, kv_store, clock):
    """
    Point the global registry at fresh in-memory backends for every test.

    Tests never touch the configured DATABASE_URL or REDIS_URL.
    """
    badge_registry.configure(documents=documents, storage=kv_store, clock=clock)
    yield
    badge_registry.reset()
