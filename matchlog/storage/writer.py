"""
Debounced persistence: coalesce bursts of saves into one write.
"""
import logging
import threading
from typing import Any, Dict, Optional

from matchlog.errors import MatchLogError, PersistenceError
from .base import KeyValueStore

logger = logging.getLogger("matchlog.storage.writer")


class DebouncedWriter:
    """
    Batches saves and writes the latest value per key once the writer has
    been idle for `delay_seconds`.

    Critical transitions call save_immediate(), which cancels any pending
    timer and writes synchronously. Failures on the debounced path happen on
    the timer thread; they are logged and kept in `last_error`.
    """

    def __init__(self, store: KeyValueStore, delay_seconds: float = 0.1):
        self.store = store
        self.delay_seconds = max(0.0, delay_seconds)
        self._pending: Dict[str, Any] = {}
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.RLock()
        self.last_error: Optional[PersistenceError] = None
        self._stats = {"requested": 0, "written": 0, "failed": 0}

    @property
    def has_pending(self) -> bool:
        with self._lock:
            return bool(self._pending)

    def save(self, key: str, value: Any) -> None:
        """Schedule a write; a later save for the same key replaces this one."""
        with self._lock:
            self._pending[key] = value
            self._stats["requested"] += 1
            if self.delay_seconds == 0:
                self._flush_safely()
                return
            self._cancel_timer()
            self._timer = threading.Timer(self.delay_seconds, self._flush_safely)
            self._timer.daemon = True
            self._timer.start()

    def save_immediate(self, key: str, value: Any) -> None:
        """
        Write now, superseding any pending value for the key.

        Raises:
            PersistenceError: If the store fails
        """
        with self._lock:
            self._pending.pop(key, None)
            self._write(key, value)
            self.flush()

    def flush(self) -> None:
        """
        Write every pending value now.

        Raises:
            PersistenceError: If the store fails (remaining values stay pending)
        """
        with self._lock:
            self._cancel_timer()
            while self._pending:
                key = next(iter(self._pending))
                self._write(key, self._pending[key])
                self._pending.pop(key, None)

    def close(self) -> None:
        """Flush pending writes and stop the timer."""
        try:
            self.flush()
        finally:
            self._cancel_timer()

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                **self._stats,
                "pending": len(self._pending),
                "last_error": str(self.last_error) if self.last_error else None,
            }

    def _write(self, key: str, value: Any) -> None:
        try:
            self.store.save(key, value)
        except MatchLogError as e:
            self._stats["failed"] += 1
            self.last_error = e if isinstance(e, PersistenceError) else PersistenceError(e.errors)
            raise self.last_error
        except Exception as e:
            self._stats["failed"] += 1
            self.last_error = PersistenceError([f"Failed to save '{key}': {e}"])
            raise self.last_error from e
        self._stats["written"] += 1
        self.last_error = None

    def _flush_safely(self) -> None:
        try:
            self.flush()
        except PersistenceError as e:
            logger.error(f"Debounced save failed: {e}")

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
