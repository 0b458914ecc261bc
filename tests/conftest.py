"""
Shared fixtures: a controllable wall clock, a fresh match and a tracker
wired to an in-memory store.
"""
import pytest

from config.settings import Settings
from matchlog.state import MatchState
from matchlog.storage import MemoryKeyValueStore
from matchlog.tracker import MatchTracker


class FakeClock:
    """Wall clock in milliseconds that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += seconds * 1000


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def state():
    return MatchState(regulation_duration=4200, team1_name="Netherton", team2_name="Rovers")


@pytest.fixture
def test_settings():
    """Synchronous persistence so tests can inspect the store directly."""
    return Settings(
        persist_debounce_ms=0,
        default_team1_name="Netherton",
        default_team2_name="Rovers",
        regulation_duration_seconds=4200,
        storage_key="match_state",
    )


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture
def tracker(store, test_settings, fake_clock):
    tracker = MatchTracker(store=store, config=test_settings, time_source=fake_clock)
    yield tracker
    tracker.close()
