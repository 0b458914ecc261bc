"""
Match ledger: goal and event models plus their validation rules.
"""
from .models import (
    Goal,
    MatchEvent,
    EventType,
    EventCategory,
    TimelineEntry,
    EVENT_CATEGORIES,
    PHASE_MARKERS,
)
from .validation import (
    validate_goal,
    validate_event,
    validate_index,
    validate_time,
    validate_team_names,
    parse_event_type,
)

__all__ = [
    # Models
    "Goal",
    "MatchEvent",
    "EventType",
    "EventCategory",
    "TimelineEntry",
    "EVENT_CATEGORIES",
    "PHASE_MARKERS",
    # Validation
    "validate_goal",
    "validate_event",
    "validate_index",
    "validate_time",
    "validate_team_names",
    "parse_event_type",
]
