"""
Statistics cache module: content-keyed memoization of ledger statistics.
"""
from .core import CacheSource, StatisticsSnapshot
from .keys import compute_cache_key
from .manager import StatisticsCache

__all__ = [
    # Core types
    "CacheSource",
    "StatisticsSnapshot",
    # Keys
    "compute_cache_key",
    # Manager
    "StatisticsCache",
]
