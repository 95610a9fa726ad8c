"""Pytest configuration and fixtures."""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from timetrack.client.notifications import Notification
from timetrack.services.time_entry_store import TimeEntryStore
from fakes import (
    OTHER_PROJECT_ID,
    PROJECT_ID,
    TASK_ID,
    FakeClock,
    FakeDatabase,
    MonotonicClock,
)


class RecordingNotifier:
    """Notification sink that keeps everything it is given."""

    def __init__(self):
        self.notifications: list[Notification] = []

    def notify(self, kind, message, action=None):
        self.notifications.append(Notification(kind, message, action))

    def of_kind(self, kind) -> list[Notification]:
        return [n for n in self.notifications if n.kind is kind]


class ManualTicker:
    """Ticker the test drives one second at a time."""

    def __init__(self):
        self.callback = None
        self.starts = 0
        self.cancels = 0

    @property
    def active(self) -> bool:
        return self.callback is not None

    def start(self, callback):
        self.callback = callback
        self.starts += 1

    def cancel(self):
        self.callback = None
        self.cancels += 1

    def fire(self, times: int = 1, clock: MonotonicClock = None) -> None:
        for _ in range(times):
            if self.callback is None:
                return
            if clock is not None:
                clock.advance(1)
            self.callback()


@pytest.fixture
def db():
    """Fake database seeded with two projects and one task."""
    database = FakeDatabase()
    database["projects"].docs.extend([
        {"_id": PROJECT_ID, "name": "Website rebuild", "deleted": False},
        {"_id": OTHER_PROJECT_ID, "name": "SEO retainer", "deleted": False},
        {"_id": "proj-archived", "name": "Old site", "deleted": True},
    ])
    database["tasks"].docs.append(
        {"_id": TASK_ID, "project_id": PROJECT_ID, "title": "Homepage"},
    )
    return database


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(db, clock):
    return TimeEntryStore(db, clock=clock, use_transactions=False)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def mono():
    return MonotonicClock()


@pytest_asyncio.fixture
async def app_client(db):
    """
    Create a test client backed by the fake database.

    This fixture:
    - Points the database dependency at the fake database
    - Yields an async HTTP client for testing
    - Restores the original database afterwards
    """
    from timetrack.database import database
    from timetrack.main import app

    original_db = database.db
    database.db = db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    database.db = original_db
