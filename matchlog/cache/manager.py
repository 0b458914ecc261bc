"""
Statistics cache: memoized ledger statistics behind a content-derived key.
"""
import threading
import logging
import time
from datetime import datetime, timezone
from dataclasses import replace
from typing import Any, Callable, Dict, Optional

from matchlog.ledger.models import EventCategory
from matchlog.state import MatchState
from .core import StatisticsSnapshot
from .keys import compute_cache_key

logger = logging.getLogger("matchlog.cache")

DEFAULT_MAX_AGE_SECONDS = 30.0
MAX_AGE_CEILING_SECONDS = 300.0


class StatisticsCache:
    """
    Statistics cache with:
    - Content-derived cache key (goal/event counts + ledger fingerprint)
    - Max-age expiry
    - Unconditional invalidation on every ledger mutation
    - Hit/miss tracking
    """

    def __init__(
        self,
        state: MatchState,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        time_source: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the cache and subscribe it to ledger mutations.

        Args:
            state: The match aggregate to derive statistics from
            max_age_seconds: Oldest snapshot that may be served from cache
            time_source: Wall clock in seconds (injectable for tests)
        """
        self._state = state
        self._now = time_source or time.time
        self._max_age = min(float(max_age_seconds), MAX_AGE_CEILING_SECONDS)
        self._snapshot: Optional[StatisticsSnapshot] = None
        self._lock = threading.RLock()

        self._stats = {
            "hits": 0,
            "misses": 0,
            "invalidations": 0,
        }

        state.subscribe(self._on_mutation)

    def _on_mutation(self, action: str) -> None:
        self.invalidate()

    @property
    def max_age_seconds(self) -> float:
        return self._max_age

    def compute_cache_key(self) -> str:
        """Key for the ledger as it stands right now."""
        return compute_cache_key(self._state.goals, self._state.events)

    def get_statistics(self, force_recompute: bool = False) -> StatisticsSnapshot:
        """
        Get statistics, from cache when the stored snapshot is still valid.

        Args:
            force_recompute: Bypass the cache entirely

        Returns:
            StatisticsSnapshot, with from_cache=True when served from cache
        """
        with self._lock:
            key = self.compute_cache_key()
            cached = self._snapshot

            if not force_recompute and cached is not None:
                age = cached.age_seconds(self._now())
                if cached.cache_key == key and age < self._max_age:
                    logger.debug(f"STATS CACHE HIT: {key} [age={age:.1f}s]")
                    self._stats["hits"] += 1
                    return replace(cached, from_cache=True)
                logger.debug(f"STATS CACHE STALE: {cached.cache_key} -> {key} [age={age:.1f}s]")

            snapshot = self._compute(key)
            self._snapshot = snapshot
            self._stats["misses"] += 1
            logger.debug(f"STATS RECOMPUTED: {key}")
            return snapshot

    def _compute(self, key: str) -> StatisticsSnapshot:
        """Derive counts from the ledger."""
        goals = self._state.goals
        events = self._state.events

        counts = {
            EventCategory.CARD: 0,
            EventCategory.FOUL: 0,
            EventCategory.PENALTY: 0,
            EventCategory.INCIDENT: 0,
        }
        for event in events:
            category = event.category
            if category in counts:
                counts[category] += 1

        now = self._now()
        return StatisticsSnapshot(
            goals=sum(1 for g in goals if not g.disallowed),
            cards=counts[EventCategory.CARD],
            fouls=counts[EventCategory.FOUL],
            penalties=counts[EventCategory.PENALTY],
            incidents=counts[EventCategory.INCIDENT],
            # Disallowed goals still count towards the total
            total=len(goals) + len(events),
            cache_key=key,
            computed_at=now,
            computed_at_iso=datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        )

    def invalidate(self) -> None:
        """Drop the cached snapshot unconditionally."""
        with self._lock:
            if self._snapshot is not None:
                logger.debug(f"Invalidated statistics cache: {self._snapshot.cache_key}")
            self._snapshot = None
            self._stats["invalidations"] += 1

    def configure(self, max_age_seconds: float) -> float:
        """
        Change the max age (capped at 300 seconds). Invalidates the cache.

        Returns:
            The max age now in effect
        """
        if max_age_seconds <= 0:
            raise ValueError("max_age_seconds must be positive")
        with self._lock:
            self._max_age = min(float(max_age_seconds), MAX_AGE_CEILING_SECONDS)
            self.invalidate()
            logger.info(f"Statistics cache max age set to {self._max_age}s")
            return self._max_age

    def get_metrics(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            total_requests = self._stats["hits"] + self._stats["misses"]
            hit_rate = (self._stats["hits"] / total_requests * 100) if total_requests > 0 else 0
            snapshot = self._snapshot
            age = snapshot.age_seconds(self._now()) if snapshot else None

            return {
                "has_cached_data": snapshot is not None,
                "cache_key": snapshot.cache_key if snapshot else None,
                "cache_age_seconds": round(age, 1) if age is not None else None,
                "is_valid": (
                    snapshot is not None
                    and snapshot.cache_key == self.compute_cache_key()
                    and age < self._max_age
                ),
                "max_age_seconds": self._max_age,
                "hits": self._stats["hits"],
                "misses": self._stats["misses"],
                "invalidations": self._stats["invalidations"],
                "hit_rate_percent": round(hit_rate, 1),
            }
