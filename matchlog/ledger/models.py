"""
Data models for the match ledger.

These dataclasses are the canonical shape of goals and match events,
independent of whether they were recorded live or restored from storage.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum

from matchlog.utils.helpers import safe_int, safe_str, format_clock


class EventCategory(Enum):
    """Statistics bucket an event type counts towards."""
    CARD = "card"
    FOUL = "foul"
    PENALTY = "penalty"
    INCIDENT = "incident"
    PHASE = "phase"
    OTHER = "other"


class EventType(Enum):
    """Types of match events, valued by their display label."""
    YELLOW_CARD = "Yellow Card"
    RED_CARD = "Red Card"
    SIN_BIN = "Sin Bin"
    FOUL = "Foul"
    PENALTY = "Penalty"
    OFFSIDE = "Offside"
    INCIDENT = "Incident"
    INJURY = "Injury"
    SUBSTITUTION = "Substitution"
    GAME_STARTED = "Game Started"
    HALF_TIME = "Half Time"
    FULL_TIME = "Full Time"

    @property
    def label(self) -> str:
        return self.value

    @property
    def category(self) -> EventCategory:
        return EVENT_CATEGORIES[self]

    @property
    def is_phase_marker(self) -> bool:
        return self in PHASE_MARKERS

    @classmethod
    def parse(cls, value: Any) -> "EventType":
        """
        Resolve an EventType from a member, member name or display label.

        Raises:
            ValueError: If the value names no known event type
        """
        if isinstance(value, cls):
            return value
        text = safe_str(value).strip()
        for member in cls:
            if text == member.value or text.upper() == member.name:
                return member
        raise ValueError(f"Invalid event type: {value!r}")


# Total mapping: every EventType has exactly one category
EVENT_CATEGORIES: Dict[EventType, EventCategory] = {
    EventType.YELLOW_CARD: EventCategory.CARD,
    EventType.RED_CARD: EventCategory.CARD,
    EventType.SIN_BIN: EventCategory.CARD,
    EventType.FOUL: EventCategory.FOUL,
    EventType.PENALTY: EventCategory.PENALTY,
    EventType.OFFSIDE: EventCategory.OTHER,
    EventType.INCIDENT: EventCategory.INCIDENT,
    EventType.INJURY: EventCategory.OTHER,
    EventType.SUBSTITUTION: EventCategory.OTHER,
    EventType.GAME_STARTED: EventCategory.OTHER,
    EventType.HALF_TIME: EventCategory.PHASE,
    EventType.FULL_TIME: EventCategory.PHASE,
}

PHASE_MARKERS = frozenset({EventType.HALF_TIME, EventType.FULL_TIME})


@dataclass
class Goal:
    """A goal recorded in the ledger."""
    raw_time: int
    scorer_name: str
    team: int
    team_name: str = ""
    display_time: str = ""
    scorer_shirt_number: Optional[int] = None
    assist_name: Optional[str] = None
    assist_shirt_number: Optional[int] = None
    disallowed: bool = False
    disallowed_reason: Optional[str] = None

    def __post_init__(self):
        if not self.display_time and isinstance(self.raw_time, int):
            self.display_time = format_clock(self.raw_time)

    @property
    def is_allowed(self) -> bool:
        return not self.disallowed

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted (camelCase) record shape."""
        return {
            "rawTime": self.raw_time,
            "displayTime": self.display_time,
            "scorerName": self.scorer_name,
            "scorerShirtNumber": self.scorer_shirt_number,
            "assistName": self.assist_name,
            "assistShirtNumber": self.assist_shirt_number,
            "team": self.team,
            "teamName": self.team_name,
            "disallowed": self.disallowed,
            "disallowedReason": self.disallowed_reason,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], team2_name: Optional[str] = None) -> "Goal":
        """
        Create from a persisted record.

        Older records use 'timestamp' / 'goalScorerName' style keys and may
        lack a team; those are attributed to team 2 when the scorer matches
        the stored team-2 name, otherwise to team 1.
        """
        scorer = data.get("scorerName", data.get("goalScorerName", ""))
        team = data.get("team")
        if team is None:
            team = 2 if team2_name and scorer == team2_name else 1
        return cls(
            raw_time=safe_int(data.get("rawTime"), 0),
            display_time=data.get("displayTime", data.get("timestamp", "")) or "",
            scorer_name=scorer,
            scorer_shirt_number=safe_int(
                data.get("scorerShirtNumber", data.get("goalScorerShirtNumber")), None
            ),
            assist_name=data.get("assistName", data.get("goalAssistName")) or None,
            assist_shirt_number=safe_int(
                data.get("assistShirtNumber", data.get("goalAssistShirtNumber")), None
            ),
            team=team,
            team_name=data.get("teamName") or "",
            disallowed=bool(data.get("disallowed", False)),
            disallowed_reason=data.get("disallowedReason"),
        )


@dataclass
class MatchEvent:
    """A single non-goal match event (card, foul, phase marker, ...)."""
    raw_time: int
    type: EventType
    notes: str = ""
    display_time: str = ""
    team: Optional[int] = None
    team_name: Optional[str] = None
    is_system_event: bool = False
    score: Optional[str] = None
    # Team names the score text was written with, so a rename can rewrite it
    team1_name: Optional[str] = None
    team2_name: Optional[str] = None

    def __post_init__(self):
        if not self.display_time and isinstance(self.raw_time, int):
            self.display_time = format_clock(self.raw_time)

    @property
    def label(self) -> str:
        """Display label: the type, suffixed with the team when attributed."""
        type_label = self.type.label if isinstance(self.type, EventType) else safe_str(self.type)
        if self.team_name:
            return f"{type_label} - {self.team_name}"
        return type_label

    @property
    def category(self) -> EventCategory:
        return self.type.category

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted (camelCase) record shape."""
        result = {
            "rawTime": self.raw_time,
            "displayTime": self.display_time,
            "type": self.type.value,
            "notes": self.notes,
            "team": self.team,
            "teamName": self.team_name,
            "isSystemEvent": self.is_system_event,
            "score": self.score,
        }
        if self.team1_name is not None or self.team2_name is not None:
            result["team1Name"] = self.team1_name
            result["team2Name"] = self.team2_name
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatchEvent":
        """
        Create from a persisted record.

        Raises:
            ValueError: If the stored type is not a known event type
        """
        raw_type = safe_str(data.get("type")).strip()
        team_name = data.get("teamName")
        try:
            event_type = EventType.parse(raw_type)
        except ValueError:
            # Legacy records store "Yellow Card - Team Name" in the type
            label, sep, suffix = raw_type.partition(" - ")
            if not sep:
                raise
            event_type = EventType.parse(label)
            team_name = team_name or suffix.strip() or None

        return cls(
            raw_time=safe_int(data.get("rawTime"), 0),
            display_time=data.get("displayTime", data.get("timestamp", "")) or "",
            type=event_type,
            notes=data.get("notes") or "",
            team=data.get("team"),
            team_name=team_name,
            is_system_event=bool(data.get("isSystemEvent", False)),
            score=data.get("score"),
            team1_name=data.get("team1Name"),
            team2_name=data.get("team2Name"),
        )


@dataclass(frozen=True)
class TimelineEntry:
    """
    One row of the chronological timeline.

    `index` is the entry's position in its own list (goals or events) at the
    moment the timeline was built; it is only valid until the next mutation.
    """
    kind: str  # "goal" or "event"
    index: int
    raw_time: int
    entry: Any  # Goal or MatchEvent (a copy)

    @property
    def is_goal(self) -> bool:
        return self.kind == "goal"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "index": self.index,
            "rawTime": self.raw_time,
            "entry": self.entry.to_dict(),
        }
