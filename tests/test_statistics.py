"""
Tests for the statistics cache: counts, cache keys, expiry and invalidation.
"""
import re

import pytest

from matchlog.cache import StatisticsCache, compute_cache_key
from matchlog.ledger.models import EventType, Goal, MatchEvent


class FakeSeconds:
    def __init__(self):
        self.now = 1_000.0

    def __call__(self):
        return self.now


@pytest.fixture
def seconds():
    return FakeSeconds()


@pytest.fixture
def cache(state, seconds):
    return StatisticsCache(state, max_age_seconds=30, time_source=seconds)


def add_events(state, *types):
    for i, event_type in enumerate(types):
        state.add_event(MatchEvent(raw_time=60 * (i + 1), type=event_type))


class TestCounts:
    """Derived statistics."""

    def test_empty_match(self, cache):
        stats = cache.get_statistics()
        assert (stats.goals, stats.cards, stats.fouls, stats.penalties, stats.incidents, stats.total) == (
            0, 0, 0, 0, 0, 0
        )

    def test_single_goal(self, state, cache):
        state.add_goal(Goal(raw_time=600, scorer_name="Smith", team=1))
        stats = cache.get_statistics()
        assert stats.goals == 1
        assert stats.total == 1

    def test_disallowed_goal_counts_in_total_only(self, state, cache):
        state.add_goal(Goal(raw_time=600, scorer_name="Smith", team=1))
        key_before = cache.get_statistics().cache_key

        state.toggle_goal_disallowed(0, "offside")
        stats = cache.get_statistics()

        assert stats.goals == 0
        assert stats.total == 1
        assert stats.cache_key != key_before

    def test_categories(self, state, cache):
        add_events(
            state,
            EventType.YELLOW_CARD,
            EventType.RED_CARD,
            EventType.SIN_BIN,
            EventType.FOUL,
            EventType.PENALTY,
            EventType.INCIDENT,
            EventType.OFFSIDE,
            EventType.SUBSTITUTION,
        )
        stats = cache.get_statistics()
        assert stats.cards == 3
        assert stats.fouls == 1
        assert stats.penalties == 1
        assert stats.incidents == 1
        assert stats.total == 8

    def test_phase_markers_count_towards_total(self, state, cache):
        state.add_event(
            MatchEvent(raw_time=2100, type=EventType.HALF_TIME, is_system_event=True, score="A 0 - 0 B")
        )
        stats = cache.get_statistics()
        assert stats.total == 1
        assert stats.cards == 0


class TestCacheKey:
    """Content-derived keys."""

    def test_key_format(self, state, cache):
        state.add_goal(Goal(raw_time=600, scorer_name="Smith", team=1))
        assert re.match(r"^g1-e0-[0-9a-f]{12}$", cache.compute_cache_key())

    def test_key_ignores_notes_and_names(self):
        a = [MatchEvent(raw_time=60, type=EventType.FOUL, notes="late tackle")]
        b = [MatchEvent(raw_time=60, type=EventType.FOUL, notes="shirt pull")]
        goals_a = [Goal(raw_time=10, scorer_name="Smith", team=1)]
        goals_b = [Goal(raw_time=10, scorer_name="Jones", team=1)]
        assert compute_cache_key(goals_a, a) == compute_cache_key(goals_b, b)

    def test_key_tracks_type_and_time(self):
        base = [MatchEvent(raw_time=60, type=EventType.FOUL)]
        other_type = [MatchEvent(raw_time=60, type=EventType.PENALTY)]
        other_time = [MatchEvent(raw_time=61, type=EventType.FOUL)]
        key = compute_cache_key([], base)
        assert compute_cache_key([], other_type) != key
        assert compute_cache_key([], other_time) != key


class TestCaching:
    """Hits, expiry and invalidation."""

    def test_second_read_is_served_from_cache(self, state, cache):
        state.add_goal(Goal(raw_time=600, scorer_name="Smith", team=1))
        first = cache.get_statistics()
        second = cache.get_statistics()

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.goals == first.goals
        assert second.computed_at == first.computed_at

    def test_expired_snapshot_is_recomputed(self, cache, seconds):
        cache.get_statistics()
        seconds.now += 31
        assert cache.get_statistics().from_cache is False

    def test_mutation_invalidates_even_when_key_is_unchanged(self, state, cache):
        state.add_event(MatchEvent(raw_time=60, type=EventType.FOUL, notes="first"))
        cache.get_statistics()

        state.update_event(0, {"notes": "edited"})
        assert cache.get_metrics()["has_cached_data"] is False
        assert cache.get_statistics().from_cache is False

    def test_cached_result_matches_fresh_computation(self, state, cache):
        add_events(state, EventType.YELLOW_CARD, EventType.FOUL)
        state.add_goal(Goal(raw_time=100, scorer_name="Smith", team=2))
        cached = cache.get_statistics()
        cached = cache.get_statistics()
        fresh = cache.get_statistics(force_recompute=True)

        assert cached.from_cache is True
        assert fresh.from_cache is False
        assert cached.to_dict()["total"] == fresh.to_dict()["total"]
        assert (cached.goals, cached.cards, cached.fouls) == (fresh.goals, fresh.cards, fresh.fouls)

    def test_configure_caps_max_age(self, cache):
        cache.get_statistics()
        assert cache.configure(1000) == 300
        assert cache.get_metrics()["has_cached_data"] is False

    def test_configure_rejects_non_positive(self, cache):
        with pytest.raises(ValueError):
            cache.configure(0)

    def test_metrics(self, cache):
        cache.get_statistics()
        cache.get_statistics()
        cache.get_statistics()

        metrics = cache.get_metrics()
        assert metrics["hits"] == 2
        assert metrics["misses"] == 1
        assert metrics["hit_rate_percent"] == 66.7
        assert metrics["is_valid"] is True
