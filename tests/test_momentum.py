"""
Tests for the momentum engine and its percentage mapping.
"""
import pytest

from matchlog.ledger.models import EventType, Goal, MatchEvent
from matchlog.momentum import MomentumEngine, MomentumSnapshot, momentum_percentage


@pytest.fixture
def engine(state):
    return MomentumEngine(state)


def snapshot(t1, t2):
    return MomentumSnapshot(team1_score=t1, team2_score=t2, window_start=0, window_end=300)


class TestComputeMomentum:
    """Weighted window tallies."""

    def test_empty_ledger(self, engine):
        result = engine.compute_momentum(600)
        assert (result.team1_score, result.team2_score) == (0, 0)
        assert (result.window_start, result.window_end) == (300, 600)

    def test_window_start_never_negative(self, engine):
        assert engine.compute_momentum(120).window_start == 0

    def test_goals_weigh_three_for_their_team(self, state, engine):
        state.add_goal(Goal(raw_time=500, scorer_name="Smith", team=1))
        state.add_goal(Goal(raw_time=550, scorer_name="Rovers", team=2))
        state.add_goal(Goal(raw_time=560, scorer_name="Jones", team=1))

        result = engine.compute_momentum(600)
        assert result.team1_score == 6
        assert result.team2_score == 3

    def test_disallowed_goals_ignored(self, state, engine):
        state.add_goal(Goal(raw_time=500, scorer_name="Smith", team=1))
        state.toggle_goal_disallowed(0, "offside")
        assert engine.compute_momentum(600).team1_score == 0

    def test_entries_outside_window_ignored(self, state, engine):
        state.add_goal(Goal(raw_time=100, scorer_name="Smith", team=1))
        state.add_event(MatchEvent(raw_time=900, type=EventType.FOUL, team=1))
        result = engine.compute_momentum(600)
        assert (result.team1_score, result.team2_score) == (0, 0)

    def test_window_bounds_are_inclusive(self, state, engine):
        state.add_goal(Goal(raw_time=300, scorer_name="Smith", team=1))
        state.add_goal(Goal(raw_time=600, scorer_name="Jones", team=1))
        assert engine.compute_momentum(600).team1_score == 6

    def test_event_weights(self, state, engine):
        for event_type in (
            EventType.YELLOW_CARD,
            EventType.RED_CARD,
            EventType.SIN_BIN,
            EventType.FOUL,
            EventType.OFFSIDE,
        ):
            state.add_event(MatchEvent(raw_time=400, type=event_type, team=2, team_name="Rovers"))
        state.add_event(MatchEvent(raw_time=400, type=EventType.PENALTY, team=1))
        state.add_event(MatchEvent(raw_time=400, type=EventType.INJURY, team=1))

        result = engine.compute_momentum(600)
        assert result.team2_score == -8.5
        assert result.team1_score == 2

    def test_events_without_team_id_use_label(self, state, engine):
        state.add_event(MatchEvent(raw_time=400, type=EventType.FOUL, team_name="Rovers"))
        state.add_event(MatchEvent(raw_time=400, type=EventType.YELLOW_CARD))

        result = engine.compute_momentum(600)
        assert result.team2_score == -1
        assert result.team1_score == -2

    def test_system_events_ignored(self, state, engine):
        state.add_event(
            MatchEvent(raw_time=400, type=EventType.HALF_TIME, is_system_event=True, score="A 0 - 0 B")
        )
        result = engine.compute_momentum(600)
        assert (result.team1_score, result.team2_score) == (0, 0)

    def test_custom_window(self, state, engine):
        state.add_goal(Goal(raw_time=100, scorer_name="Smith", team=1))
        assert engine.compute_momentum(600, window_seconds=600).team1_score == 3

    def test_is_idempotent_and_read_only(self, state, engine):
        state.add_goal(Goal(raw_time=500, scorer_name="Smith", team=1))
        before = state.to_record()
        assert engine.compute_momentum(600) == engine.compute_momentum(600)
        assert state.to_record() == before


class TestMomentumPercentage:
    """Presentation mapping."""

    def test_neutral_when_both_zero(self):
        assert momentum_percentage(snapshot(0, 0)) == (50, "balanced")

    def test_one_sided_is_clamped(self):
        assert momentum_percentage(snapshot(6, 0)) == (90, "team1")
        assert momentum_percentage(snapshot(0, 6)) == (10, "team2")

    def test_negative_tallies(self):
        # Team 2 picked up cards: team 1 has the upper hand
        percentage, dominant = momentum_percentage(snapshot(0, -4))
        assert percentage == 90
        assert dominant == "team1"

    def test_mixed(self):
        percentage, dominant = momentum_percentage(snapshot(3, 1))
        assert percentage == pytest.approx(70.0)
        assert dominant == "team1"

    def test_balanced_band(self):
        percentage, dominant = momentum_percentage(snapshot(3, 2))
        assert percentage == pytest.approx(58.0)
        assert dominant == "balanced"
