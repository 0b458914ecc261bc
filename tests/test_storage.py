"""
Tests for the key/value stores and the debounced writer.
"""
import tempfile
import time
from pathlib import Path

import pytest

from matchlog.errors import PersistenceError
from matchlog.storage import DebouncedWriter, MemoryKeyValueStore, SQLKeyValueStore


@pytest.fixture
def sql_store():
    """SQL store backed by a temporary SQLite file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test_matchlog.db"
        store = SQLKeyValueStore(f"sqlite:///{db_path}")
        yield store
        store.close()


class FailingStore:
    """Store whose saves always fail."""

    def __init__(self):
        self.attempts = 0

    def load(self, key, default=None):
        return default

    def save(self, key, value):
        self.attempts += 1
        raise PersistenceError(["disk full"])

    def remove(self, key):
        pass


def wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


# =============================================================================
# Stores
# =============================================================================

class TestMemoryStore:
    """Dict-backed store."""

    def test_load_default_when_missing(self):
        store = MemoryKeyValueStore()
        assert store.load("match_state") is None
        assert store.load("match_state", {}) == {}

    def test_values_are_copied(self):
        store = MemoryKeyValueStore()
        value = {"goals": [{"rawTime": 10}]}
        store.save("match_state", value)
        value["goals"].clear()

        loaded = store.load("match_state")
        assert loaded == {"goals": [{"rawTime": 10}]}
        loaded["goals"].clear()
        assert store.load("match_state") == {"goals": [{"rawTime": 10}]}

    def test_remove(self):
        store = MemoryKeyValueStore({"match_state": {"a": 1}})
        store.remove("match_state")
        store.remove("match_state")
        assert "match_state" not in store


class TestSQLStore:
    """SQLAlchemy-backed store."""

    def test_save_and_load(self, sql_store):
        record = {"elapsedTime": 120, "goals": [{"rawTime": 60, "scorerName": "Smith"}]}
        sql_store.save("match_state", record)
        assert sql_store.load("match_state") == record

    def test_save_replaces_value(self, sql_store):
        sql_store.save("match_state", {"elapsedTime": 1})
        sql_store.save("match_state", {"elapsedTime": 2})
        assert sql_store.load("match_state") == {"elapsedTime": 2}

    def test_missing_key_returns_default(self, sql_store):
        assert sql_store.load("nothing", {"empty": True}) == {"empty": True}

    def test_remove(self, sql_store):
        sql_store.save("match_state", {"elapsedTime": 1})
        sql_store.remove("match_state")
        assert sql_store.load("match_state") is None

    def test_values_survive_a_new_store_instance(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            url = f"sqlite:///{Path(tmpdir) / 'persist.db'}"
            first = SQLKeyValueStore(url)
            first.save("match_state", {"team1Name": "Netherton"})
            first.close()

            second = SQLKeyValueStore(url)
            assert second.load("match_state") == {"team1Name": "Netherton"}
            second.close()

    def test_in_memory_database(self):
        store = SQLKeyValueStore("sqlite://")
        store.save("k", [1, 2, 3])
        assert store.load("k") == [1, 2, 3]
        store.close()

    def test_unserializable_value_raises_persistence_error(self, sql_store):
        with pytest.raises(PersistenceError):
            sql_store.save("match_state", {"bad": object()})


# =============================================================================
# Debounced writer
# =============================================================================

class TestDebouncedWriter:
    """Coalescing and immediate saves."""

    def test_burst_is_written_once_with_latest_value(self):
        store = MemoryKeyValueStore()
        writer = DebouncedWriter(store, delay_seconds=0.05)

        for i in range(5):
            writer.save("match_state", {"elapsedTime": i})

        assert wait_for(lambda: store.save_count == 1)
        assert store.load("match_state") == {"elapsedTime": 4}
        assert writer.has_pending is False

    def test_nothing_written_before_delay(self):
        store = MemoryKeyValueStore()
        writer = DebouncedWriter(store, delay_seconds=10)
        writer.save("match_state", {"elapsedTime": 1})

        assert store.save_count == 0
        assert writer.has_pending is True
        writer.close()
        assert store.load("match_state") == {"elapsedTime": 1}

    def test_save_immediate_supersedes_pending(self):
        store = MemoryKeyValueStore()
        writer = DebouncedWriter(store, delay_seconds=10)
        writer.save("match_state", {"elapsedTime": 1})
        writer.save_immediate("match_state", {"elapsedTime": 2})

        assert store.load("match_state") == {"elapsedTime": 2}
        assert store.save_count == 1
        assert writer.has_pending is False

    def test_zero_delay_writes_synchronously(self):
        store = MemoryKeyValueStore()
        writer = DebouncedWriter(store, delay_seconds=0)
        writer.save("match_state", {"elapsedTime": 7})
        assert store.load("match_state") == {"elapsedTime": 7}

    def test_immediate_failure_raises(self):
        writer = DebouncedWriter(FailingStore(), delay_seconds=10)
        with pytest.raises(PersistenceError):
            writer.save_immediate("match_state", {})
        assert writer.get_stats()["failed"] == 1

    def test_debounced_failure_is_recorded(self):
        store = FailingStore()
        writer = DebouncedWriter(store, delay_seconds=0.01)
        writer.save("match_state", {})

        assert wait_for(lambda: store.attempts >= 1)
        assert wait_for(lambda: writer.last_error is not None)
        assert "disk full" in str(writer.last_error)
        assert writer.has_pending is True
