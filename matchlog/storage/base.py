"""
Key/value store interface and in-memory implementation.

The store interface lets the tracker persist to SQLite in production and to
a plain dict in tests without changing the tracker.
"""
import copy
import logging
import threading
from typing import Any, Dict, Optional, Protocol

logger = logging.getLogger("matchlog.storage")


class KeyValueStore(Protocol):
    """
    Interface for match record persistence.

    Implementations:
    - MemoryKeyValueStore: process-local dict (tests, ephemeral sessions)
    - SQLKeyValueStore: SQLAlchemy over SQLite with JSON values
    """

    def load(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Load the value stored under key.

        Args:
            key: Record key
            default: Returned when nothing is stored

        Returns:
            The stored JSON-compatible value, or default
        """
        ...

    def save(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value under key, replacing any previous value."""
        ...

    def remove(self, key: str) -> None:
        """Delete the value under key (no-op when absent)."""
        ...


class MemoryKeyValueStore:
    """Dict-backed store. Values are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = threading.Lock()
        self.save_count = 0

    def load(self, key: str, default: Optional[Any] = None) -> Any:
        with self._lock:
            if key not in self._data:
                return default
            return copy.deepcopy(self._data[key])

    def save(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)
            self.save_count += 1

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data
