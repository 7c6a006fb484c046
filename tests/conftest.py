"""Shared fakes and fixtures for the parking service tests."""
import datetime as dt

import pytest

from parking.backends import BackendResolver, seed_defaults
from parking.ledger import LedgerManager
from parking.memory import MemoryStorage
from parking.models import User

# a Sunday, 9am
NOW = dt.datetime(2026, 10, 18, 9, 0)


class FixedClock:
    """Callable clock the tests can move forward."""

    def __init__(self, now: dt.datetime):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def set(self, now: dt.datetime) -> None:
        self.now = now


class RecordingPublisher:
    def __init__(self):
        self.events = []

    def publish(self, event_type, payload):
        self.events.append((event_type, payload))

    def types(self):
        return [t for t, _ in self.events]


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
def storage():
    s = MemoryStorage()
    seed_defaults(s, "admin", "admin123")
    return s


@pytest.fixture
def ledger(storage, publisher, clock):
    return LedgerManager(storage, publisher=publisher, clock=clock)


@pytest.fixture
def make_user(storage):
    counter = iter(range(1, 1000))

    def _make(**fields):
        fields.setdefault("username", f"driver{next(counter)}")
        fields.setdefault("password", "secret")
        return storage.create_user(User(**fields))

    return _make


@pytest.fixture
def resolver(storage):
    return BackendResolver(storage)


def ledger_total(storage, user_id):
    return sum(p.points for p in storage.list_penalties_by_user(user_id))


def in_days(n, now=NOW):
    return (now + dt.timedelta(days=n)).date()
