"""
Momentum Engine: weighted tally of recent goals and events per side.

Pure over the ledger; nothing here is persisted or written back.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from matchlog.ledger.models import EventType, MatchEvent
from matchlog.state import MatchState

logger = logging.getLogger("matchlog.momentum")

DEFAULT_WINDOW_SECONDS = 300
GOAL_WEIGHT = 3.0

# Signed weights per event type; types not listed weigh 0
MOMENTUM_WEIGHTS: Dict[EventType, float] = {
    EventType.YELLOW_CARD: -2.0,
    EventType.RED_CARD: -3.0,
    EventType.SIN_BIN: -2.0,
    EventType.FOUL: -1.0,
    EventType.PENALTY: 2.0,
    EventType.OFFSIDE: -0.5,
}

# Percentage mapping bounds
NEUTRAL_PERCENTAGE = 50.0
PERCENTAGE_SPREAD = 40.0
MIN_PERCENTAGE = 10.0
MAX_PERCENTAGE = 90.0
DOMINANT_ABOVE = 60.0
DOMINANT_BELOW = 40.0


@dataclass(frozen=True)
class MomentumSnapshot:
    """Per-side momentum tallies over [window_start, window_end]."""
    team1_score: float
    team2_score: float
    window_start: int
    window_end: int

    def to_dict(self) -> Dict[str, Any]:
        percentage, dominant = momentum_percentage(self)
        return {
            "team1Score": self.team1_score,
            "team2Score": self.team2_score,
            "windowStart": self.window_start,
            "windowEnd": self.window_end,
            "percentage": percentage,
            "dominant": dominant,
        }


def event_weight(event_type: EventType) -> float:
    return MOMENTUM_WEIGHTS.get(event_type, 0.0)


def momentum_percentage(snapshot: MomentumSnapshot) -> Tuple[float, str]:
    """
    Map a snapshot to a bounded team-1 percentage and the dominant side.

    Returns:
        (percentage in [10, 90], "team1" | "team2" | "balanced")
    """
    t1, t2 = snapshot.team1_score, snapshot.team2_score
    magnitude = abs(t1) + abs(t2)
    if magnitude == 0:
        percentage = NEUTRAL_PERCENTAGE
    else:
        percentage = NEUTRAL_PERCENTAGE + (t1 - t2) / magnitude * PERCENTAGE_SPREAD
        percentage = max(MIN_PERCENTAGE, min(MAX_PERCENTAGE, percentage))

    if percentage > DOMINANT_ABOVE:
        dominant = "team1"
    elif percentage < DOMINANT_BELOW:
        dominant = "team2"
    else:
        dominant = "balanced"
    return percentage, dominant


class MomentumEngine:
    """Computes momentum snapshots on demand from a MatchState."""

    def __init__(self, state: MatchState, window_seconds: int = DEFAULT_WINDOW_SECONDS):
        self._state = state
        self.window_seconds = window_seconds

    def compute_momentum(
        self, current_elapsed: int, window_seconds: Optional[int] = None
    ) -> MomentumSnapshot:
        """
        Tally goals and events inside the trailing window ending at current_elapsed.

        Args:
            current_elapsed: Window end in match seconds
            window_seconds: Window length (defaults to the engine's window)

        Returns:
            MomentumSnapshot for the window
        """
        window = self.window_seconds if window_seconds is None else window_seconds
        window_end = max(0, int(current_elapsed))
        window_start = max(0, window_end - max(0, int(window)))

        tallies = {1: 0.0, 2: 0.0}

        for goal in self._state.goals:
            if goal.disallowed or not window_start <= goal.raw_time <= window_end:
                continue
            if goal.team in tallies:
                tallies[goal.team] += GOAL_WEIGHT

        team2_name = self._state.team_names[1]
        for event in self._state.events:
            if event.is_system_event or not window_start <= event.raw_time <= window_end:
                continue
            weight = event_weight(event.type)
            if weight:
                tallies[_event_side(event, team2_name)] += weight

        snapshot = MomentumSnapshot(
            team1_score=tallies[1],
            team2_score=tallies[2],
            window_start=window_start,
            window_end=window_end,
        )
        logger.debug(
            f"Momentum [{window_start}-{window_end}]: {snapshot.team1_score} vs {snapshot.team2_score}"
        )
        return snapshot


def _event_side(event: MatchEvent, team2_name: str) -> int:
    """Side an event counts against; label matching covers entries without a team id."""
    if event.team in (1, 2):
        return event.team
    if team2_name and team2_name in event.label:
        return 2
    return 1
