"""
SQLite key/value store with SQLAlchemy.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from matchlog.errors import PersistenceError
from .models import Base, MatchRecord

logger = logging.getLogger("matchlog.storage.sql")

# Transient SQLite failures (database is locked, disk I/O) are retried
_transient_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


class SQLKeyValueStore:
    """
    Key/value store backed by a single SQLAlchemy table.

    Values are stored as JSON. Errors surface as PersistenceError after
    transient failures have been retried.
    """

    def __init__(self, database_url: str = "sqlite:///./matchlog.db", echo: bool = False):
        self.database_url = database_url
        engine_kwargs = {
            "connect_args": {"check_same_thread": False},  # Needed for SQLite
            "echo": echo,
        }
        if _is_memory_url(database_url):
            # One shared connection, otherwise every session sees an empty database
            engine_kwargs["poolclass"] = StaticPool
        self.engine = create_engine(database_url, **engine_kwargs)
        self._session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        self.init_db()

    def init_db(self) -> None:
        """
        Create the table. Safe to call multiple times.
        """
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError([f"Could not initialize database: {e}"])
        logger.info(f"Match store initialized at: {self.database_url}")

    @contextmanager
    def _get_session(self):
        """Session scope: commit on success, roll back on error."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # KeyValueStore
    # =========================================================================

    def load(self, key: str, default: Optional[Any] = None) -> Any:
        try:
            value = self._load(key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load '{key}': {e}")
            raise PersistenceError([f"Failed to load '{key}': {e}"])
        return default if value is None else value

    def save(self, key: str, value: Any) -> None:
        try:
            self._save(key, value)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save '{key}': {e}")
            raise PersistenceError([f"Failed to save '{key}': {e}"])
        except (TypeError, ValueError) as e:
            raise PersistenceError([f"Value for '{key}' is not JSON serializable: {e}"])

    def remove(self, key: str) -> None:
        try:
            self._remove(key)
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove '{key}': {e}")
            raise PersistenceError([f"Failed to remove '{key}': {e}"])

    @_transient_retry
    def _load(self, key: str) -> Any:
        with self._get_session() as session:
            row = session.get(MatchRecord, key)
            return row.value if row is not None else None

    @_transient_retry
    def _save(self, key: str, value: Any) -> None:
        with self._get_session() as session:
            row = session.get(MatchRecord, key)
            if row is None:
                session.add(MatchRecord(key=key, value=value))
            else:
                row.value = value
                row.updated_at = datetime.utcnow()
        logger.debug(f"Saved '{key}'")

    @_transient_retry
    def _remove(self, key: str) -> None:
        with self._get_session() as session:
            row = session.get(MatchRecord, key)
            if row is not None:
                session.delete(row)

    def close(self) -> None:
        self.engine.dispose()
