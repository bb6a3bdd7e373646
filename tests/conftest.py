"""Pytest configuration and fixtures."""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from relay.notifier import PayloadFactory, StubNotifier  # noqa: E402
from relay.store import InMemoryRelayStore, SQLiteRelayStore  # noqa: E402

T0 = datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(params=["stub", "sqlite"])
def store(request, clock, tmp_path):
    """Both store backends behind the same contract."""
    if request.param == "stub":
        yield InMemoryRelayStore(clock=clock)
    else:
        sqlite_store = SQLiteRelayStore(str(tmp_path / "relay.db"), clock=clock)
        yield sqlite_store
        sqlite_store.close()


@pytest.fixture
def notifier():
    return StubNotifier()


@pytest.fixture
def payloads():
    return PayloadFactory(scheduling_link="https://calendly.com/test")
