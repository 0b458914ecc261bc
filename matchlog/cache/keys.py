"""
Content-derived cache keys for ledger statistics.

The key only covers what statistics depend on: each goal's raw time and
disallowed flag, and each event's raw time and type. Two ledgers with the
same key always produce the same statistics. This is a staleness check,
not an integrity guarantee.
"""
import hashlib
from typing import Iterable

from matchlog.ledger.models import Goal, MatchEvent


def _fingerprint(text: str) -> str:
    """Short hash of the ledger signature."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]


def compute_cache_key(goals: Iterable[Goal], events: Iterable[MatchEvent]) -> str:
    """
    Build 'g{goal_count}-e{event_count}-{fingerprint}'.

    Args:
        goals: Goals in ledger (insertion) order
        events: Events in ledger (insertion) order

    Returns:
        Deterministic short key string
    """
    goal_parts = [f"{g.raw_time}-{'D' if g.disallowed else 'V'}" for g in goals]
    event_parts = [f"{e.raw_time}-{e.type.value}" for e in events]
    signature = "|".join(goal_parts) + "#" + "|".join(event_parts)
    return f"g{len(goal_parts)}-e{len(event_parts)}-{_fingerprint(signature)}"
