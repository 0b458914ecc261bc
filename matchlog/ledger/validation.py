"""
Shape validation for ledger entries, indexes, times and team names.

Each validator returns a list of human-readable reasons; an empty list
means the input is valid. `ensure_valid` turns a non-empty list into a
LedgerValidationError.
"""
from typing import Any, List, Optional

from matchlog.errors import LedgerValidationError, LedgerIndexError
from .models import Goal, MatchEvent, EventType

MAX_NAME_LENGTH = 100
MAX_TEAM_NAME_LENGTH = 50
DEFAULT_MAX_TIME = 7200
DEFAULT_MAX_NOTES = 500


def ensure_valid(errors: List[str]) -> None:
    """Raise LedgerValidationError if any errors were collected."""
    if errors:
        raise LedgerValidationError(errors)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_time(seconds: Any, max_seconds: int = DEFAULT_MAX_TIME) -> List[str]:
    """Time must be an integer number of seconds within [0, max_seconds]."""
    if not _is_int(seconds):
        return ["Time must be a whole number of seconds"]
    errors = []
    if seconds < 0:
        errors.append("Time cannot be negative")
    if seconds > max_seconds:
        errors.append(f"Time cannot exceed {max_seconds // 60} minutes")
    return errors


def _validate_shirt_number(value: Any, label: str) -> List[str]:
    if value is None:
        return []
    if not _is_int(value) or value < 1 or value > 99:
        return [f"{label} must be between 1 and 99"]
    return []


def _validate_team(team: Any, required: bool) -> List[str]:
    if team is None:
        return ["Team is required"] if required else []
    if team not in (1, 2) or isinstance(team, bool):
        return ["Team must be 1 or 2"]
    return []


def validate_goal(goal: Any, max_seconds: int = DEFAULT_MAX_TIME) -> List[str]:
    """Validate a Goal against the ledger invariants."""
    if not isinstance(goal, Goal):
        return ["Goal data is required"]

    errors = validate_time(goal.raw_time, max_seconds)

    if not goal.scorer_name or not isinstance(goal.scorer_name, str):
        errors.append("Goal scorer name is required and must be a string")
    elif len(goal.scorer_name) > MAX_NAME_LENGTH:
        errors.append(f"Goal scorer name cannot exceed {MAX_NAME_LENGTH} characters")

    if goal.assist_name is not None:
        if not isinstance(goal.assist_name, str):
            errors.append("Goal assist name must be a string")
        elif len(goal.assist_name) > MAX_NAME_LENGTH:
            errors.append(f"Goal assist name cannot exceed {MAX_NAME_LENGTH} characters")

    errors.extend(_validate_shirt_number(goal.scorer_shirt_number, "Shirt number"))
    errors.extend(_validate_shirt_number(goal.assist_shirt_number, "Assist shirt number"))
    errors.extend(_validate_team(goal.team, required=True))

    if not isinstance(goal.display_time, str):
        errors.append("Display time must be a string")

    if goal.disallowed:
        if not goal.disallowed_reason or not str(goal.disallowed_reason).strip():
            errors.append("A disallowed goal requires a reason")
    elif goal.disallowed_reason is not None:
        errors.append("Only a disallowed goal may carry a reason")

    return errors


def validate_event(
    event: Any,
    max_seconds: int = DEFAULT_MAX_TIME,
    max_notes: int = DEFAULT_MAX_NOTES,
) -> List[str]:
    """Validate a MatchEvent, including the phase-marker rules."""
    if not isinstance(event, MatchEvent):
        return ["Event data is required"]

    if not isinstance(event.type, EventType):
        return [f"Invalid event type: {event.type!r}"]

    errors = validate_time(event.raw_time, max_seconds)

    if not isinstance(event.notes, str):
        errors.append("Notes must be a string")
    elif len(event.notes) > max_notes:
        errors.append(f"Notes cannot exceed {max_notes} characters")

    errors.extend(_validate_team(event.team, required=False))
    if event.team_name is not None and not isinstance(event.team_name, str):
        errors.append("Team name must be a string")

    if event.type.is_phase_marker:
        if not event.is_system_event:
            errors.append(f"{event.type.label} events can only be recorded by the match clock")
        if not event.score:
            errors.append(f"{event.type.label} events require a score snapshot")
    elif event.is_system_event:
        errors.append(f"{event.type.label} cannot be a system event")

    return errors


def validate_index(index: Any, length: int, kind: str) -> None:
    """
    Check `0 <= index < length` against the list length at call time.

    Raises:
        LedgerIndexError: If the index is not a valid position
    """
    if not _is_int(index) or index < 0:
        raise LedgerIndexError(["Index must be a non-negative integer"])
    if index >= length:
        raise LedgerIndexError(
            [f"{kind.capitalize()} index {index} is out of range (max: {length - 1})"]
        )


def validate_team_name(name: Any, label: str) -> List[str]:
    if not name or not isinstance(name, str) or not name.strip():
        return [f"{label} name is required"]
    if len(name.strip()) > MAX_TEAM_NAME_LENGTH:
        return [f"{label} name must be between 1 and {MAX_TEAM_NAME_LENGTH} characters"]
    return []


def validate_team_names(team1_name: Any, team2_name: Any) -> List[str]:
    """Both names present, within length, and different from each other."""
    errors = validate_team_name(team1_name, "Team 1") + validate_team_name(team2_name, "Team 2")
    if not errors and team1_name.strip() == team2_name.strip():
        errors.append("Team names must be different")
    return errors


def parse_event_type(value: Any) -> EventType:
    """
    Resolve an event type from user input.

    Raises:
        LedgerValidationError: If the value names no known event type
    """
    try:
        return EventType.parse(value)
    except ValueError as e:
        raise LedgerValidationError([str(e)]) from e


def coerce_optional_int(value: Any, label: str) -> Optional[int]:
    """Accept None/''/int/numeric string; reject anything else."""
    if value is None or value == "":
        return None
    if _is_int(value):
        return value
    try:
        return int(str(value).strip())
    except ValueError as e:
        raise LedgerValidationError([f"{label} must be a number"]) from e
