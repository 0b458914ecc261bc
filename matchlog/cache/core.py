"""
Core statistics cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Dict
from enum import Enum


class CacheSource(Enum):
    """Where a statistics snapshot came from."""
    CACHE = "cache"         # Served from the stored snapshot
    COMPUTED = "computed"   # Recomputed from the ledger


@dataclass(frozen=True)
class StatisticsSnapshot:
    """
    Aggregate counts derived from the ledger.

    Never mutated; a recompute produces a new snapshot wholesale.
    """
    goals: int
    cards: int
    fouls: int
    penalties: int
    incidents: int
    total: int
    cache_key: str
    computed_at: float       # wall-clock seconds, for age checks
    computed_at_iso: str     # ISO timestamp for responses
    from_cache: bool = False

    @property
    def cache_source(self) -> CacheSource:
        return CacheSource.CACHE if self.from_cache else CacheSource.COMPUTED

    def age_seconds(self, now: float) -> float:
        """Seconds since the snapshot was computed."""
        return max(0.0, now - self.computed_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON response."""
        return {
            "goals": self.goals,
            "cards": self.cards,
            "fouls": self.fouls,
            "penalties": self.penalties,
            "incidents": self.incidents,
            "total": self.total,
            "cacheKey": self.cache_key,
            "computedAt": self.computed_at_iso,
            "fromCache": self.from_cache,
        }
