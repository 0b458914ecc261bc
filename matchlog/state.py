"""
Match State: the single mutable aggregate behind the tracker.

Owns the clock fields, the goal and event lists, the team identity history
and the opaque attendance list. Every other component reads and writes
through this API; the underlying lists are never handed out.
"""
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from matchlog.errors import (
    InvariantViolationError,
    LedgerValidationError,
    SystemEventProtectedError,
)
from matchlog.ledger.models import Goal, MatchEvent, TimelineEntry
from matchlog.ledger.validation import (
    ensure_valid,
    validate_goal,
    validate_event,
    validate_index,
    validate_team_name,
    validate_team_names,
    parse_event_type,
)
from matchlog.utils.helpers import format_clock, safe_int, safe_strip

logger = logging.getLogger("matchlog.state")

DEFAULT_REGULATION_SECONDS = 4200
DEFAULT_TEAM1_NAME = "Netherton"
DEFAULT_TEAM2_NAME = "Opposition Team"

_GOAL_FIELDS = frozenset(f.name for f in fields(Goal))
_EVENT_FIELDS = frozenset(f.name for f in fields(MatchEvent))

MutationListener = Callable[[str], None]


@dataclass
class MatchClock:
    """
    Clock fields of the aggregate.

    `start_anchor` (wall-clock milliseconds) is set iff the clock is running.
    While running, `elapsed_seconds` is the value frozen at the last pause;
    the live value is derived from the anchor by the Clock Engine.
    """
    elapsed_seconds: int = 0
    is_running: bool = False
    start_anchor: Optional[float] = None
    regulation_duration: int = DEFAULT_REGULATION_SECONDS
    is_second_half: bool = False


class MatchState:
    """
    The match aggregate with an invariant-enforcing mutation API.

    Not thread-safe on its own; the tracker serializes mutations.
    """

    def __init__(
        self,
        regulation_duration: int = DEFAULT_REGULATION_SECONDS,
        team1_name: str = DEFAULT_TEAM1_NAME,
        team2_name: str = DEFAULT_TEAM2_NAME,
        max_event_time: int = 7200,
        max_notes_length: int = 500,
        max_entries: int = 1000,
    ):
        self.max_event_time = max_event_time
        self.max_notes_length = max_notes_length
        self.max_entries = max_entries

        self._listeners: List[MutationListener] = []
        self._clock = MatchClock(regulation_duration=max(0, int(regulation_duration)))
        self._goals: List[Goal] = []
        self._events: List[MatchEvent] = []
        self._team1_name = team1_name
        self._team2_name = team2_name
        self._team1_history: List[str] = [team1_name]
        self._team2_history: List[str] = [team2_name]
        self._attendance: List[Any] = []

    # =========================================================================
    # Observers
    # =========================================================================

    def subscribe(self, listener: MutationListener) -> None:
        """Register a callback invoked with an action name after each mutation."""
        self._listeners.append(listener)

    def _notify(self, action: str) -> None:
        logger.debug(f"State mutation: {action}")
        for listener in self._listeners:
            listener(action)

    # =========================================================================
    # Clock fields
    # =========================================================================

    @property
    def clock(self) -> MatchClock:
        """A copy of the clock fields."""
        return replace(self._clock)

    def set_timer_state(
        self, elapsed_seconds: int, is_running: bool, start_anchor: Optional[float] = None
    ) -> None:
        """
        Replace the timer fields in one step.

        Raises:
            InvariantViolationError: If the anchor is set without running or vice versa
        """
        if bool(is_running) != (start_anchor is not None):
            raise InvariantViolationError(
                ["Clock start anchor must be set if and only if the clock is running"]
            )
        self._clock.elapsed_seconds = max(0, int(elapsed_seconds))
        self._clock.is_running = bool(is_running)
        self._clock.start_anchor = start_anchor

    def set_regulation_duration(self, seconds: int) -> None:
        self._clock.regulation_duration = max(0, int(seconds))

    def set_half_state(self, is_second_half: bool) -> None:
        self._clock.is_second_half = bool(is_second_half)

    # =========================================================================
    # Reads
    # =========================================================================

    @property
    def goals(self) -> List[Goal]:
        return [replace(g) for g in self._goals]

    @property
    def events(self) -> List[MatchEvent]:
        return [replace(e) for e in self._events]

    @property
    def goal_count(self) -> int:
        return len(self._goals)

    @property
    def event_count(self) -> int:
        return len(self._events)

    def get_goal(self, index: int) -> Goal:
        validate_index(index, len(self._goals), "goal")
        return replace(self._goals[index])

    def get_event(self, index: int) -> MatchEvent:
        validate_index(index, len(self._events), "event")
        return replace(self._events[index])

    @property
    def team_names(self) -> Tuple[str, str]:
        return self._team1_name, self._team2_name

    def team_history(self, team: int) -> List[str]:
        if team == 1:
            return list(self._team1_history)
        if team == 2:
            return list(self._team2_history)
        raise LedgerValidationError(["Team must be 1 or 2"])

    @property
    def attendance(self) -> List[Any]:
        return list(self._attendance)

    def set_attendance(self, attendance: List[Any]) -> None:
        """Store the (opaque) attendance list alongside the match."""
        self._attendance = list(attendance or [])

    def ordered_timeline(self) -> List[TimelineEntry]:
        """
        Goals and events merged and sorted by raw time.

        The sort is stable: ties keep insertion order, goals before events.
        """
        entries = [
            TimelineEntry(kind="goal", index=i, raw_time=g.raw_time, entry=replace(g))
            for i, g in enumerate(self._goals)
        ]
        entries.extend(
            TimelineEntry(kind="event", index=i, raw_time=e.raw_time, entry=replace(e))
            for i, e in enumerate(self._events)
        )
        return sorted(entries, key=lambda entry: entry.raw_time)

    def score(self) -> Tuple[int, int]:
        """(team 1, team 2) allowed goals, attributed by each goal's team id."""
        team1 = sum(1 for g in self._goals if not g.disallowed and g.team == 1)
        team2 = sum(1 for g in self._goals if not g.disallowed and g.team == 2)
        return team1, team2

    def goal_breakdown(self) -> Dict[str, int]:
        team1, team2 = self.score()
        return {
            "total": team1 + team2,
            "team": team1,
            "opposition": team2,
            "disallowed": sum(1 for g in self._goals if g.disallowed),
        }

    def score_text(self) -> str:
        """Score line as written into phase markers: 'A 1 - 0 B'."""
        team1, team2 = self.score()
        return f"{self._team1_name} {team1} - {team2} {self._team2_name}"

    # =========================================================================
    # Ledger mutations
    # =========================================================================

    def _check_capacity(self) -> None:
        if len(self._goals) + len(self._events) >= self.max_entries:
            raise InvariantViolationError(["Maximum number of events reached"])

    def add_goal(self, goal: Goal) -> int:
        """
        Validate and append a goal. Returns its index.

        Raises:
            LedgerValidationError: If the goal fails shape validation
            InvariantViolationError: If the ledger is full
        """
        ensure_valid(validate_goal(goal, self.max_event_time))
        self._check_capacity()
        self._goals.append(replace(goal))
        self._notify("goal_added")
        return len(self._goals) - 1

    def add_event(self, event: MatchEvent) -> int:
        """
        Validate and append an event. Returns its index.

        Phase markers must arrive flagged as system events with a score text.
        """
        ensure_valid(validate_event(event, self.max_event_time, self.max_notes_length))
        self._check_capacity()
        self._events.append(replace(event))
        self._notify("event_added")
        return len(self._events) - 1

    def _merge(self, current: Any, updates: Dict[str, Any], allowed: frozenset) -> Any:
        unknown = sorted(set(updates) - allowed)
        if unknown:
            raise LedgerValidationError([f"Unknown field: {name}" for name in unknown])
        merged = replace(current, **updates)
        if "raw_time" in updates and "display_time" not in updates:
            if isinstance(merged.raw_time, int):
                merged.display_time = format_clock(merged.raw_time)
        return merged

    def update_goal(self, index: int, updates: Dict[str, Any]) -> Goal:
        """
        Merge partial fields into the goal at `index` and re-validate.

        Raises:
            LedgerIndexError: If index is out of range at call time
            LedgerValidationError: If the merged goal is invalid
        """
        validate_index(index, len(self._goals), "goal")
        merged = self._merge(self._goals[index], updates, _GOAL_FIELDS)
        ensure_valid(validate_goal(merged, self.max_event_time))
        self._goals[index] = merged
        self._notify("goal_updated")
        return replace(merged)

    def update_event(self, index: int, updates: Dict[str, Any]) -> MatchEvent:
        """
        Merge partial fields into the event at `index` and re-validate.

        Raises:
            LedgerIndexError: If index is out of range at call time
            SystemEventProtectedError: If the event is a phase marker
            LedgerValidationError: If the merged event is invalid
        """
        validate_index(index, len(self._events), "event")
        current = self._events[index]
        if current.is_system_event:
            raise SystemEventProtectedError(["System events cannot be manually modified"])
        updates = dict(updates)
        if "type" in updates:
            updates["type"] = parse_event_type(updates["type"])
        if "is_system_event" in updates and updates["is_system_event"]:
            raise SystemEventProtectedError(["Only the match clock can create system events"])
        merged = self._merge(current, updates, _EVENT_FIELDS)
        ensure_valid(validate_event(merged, self.max_event_time, self.max_notes_length))
        self._events[index] = merged
        self._notify("event_updated")
        return replace(merged)

    def remove_goal(self, index: int) -> Goal:
        """Remove the goal at `index`; later indexes shift down by one."""
        validate_index(index, len(self._goals), "goal")
        removed = self._goals.pop(index)
        self._notify("goal_removed")
        return removed

    def remove_event(self, index: int) -> MatchEvent:
        """
        Remove the event at `index`; later indexes shift down by one.

        Raises:
            SystemEventProtectedError: If the event is a phase marker
        """
        validate_index(index, len(self._events), "event")
        if self._events[index].is_system_event:
            raise SystemEventProtectedError(["System events cannot be deleted manually"])
        removed = self._events.pop(index)
        self._notify("event_removed")
        return removed

    def toggle_goal_disallowed(self, index: int, reason: Optional[str] = None) -> Goal:
        """
        Disallow an allowed goal (reason required) or reinstate a disallowed one.

        Reinstating clears the reason and ignores any reason supplied.
        """
        validate_index(index, len(self._goals), "goal")
        goal = self._goals[index]
        if goal.disallowed:
            updated = replace(goal, disallowed=False, disallowed_reason=None)
        else:
            reason = safe_strip(reason)
            if not reason:
                raise InvariantViolationError(["A reason is required to disallow a goal"])
            updated = replace(goal, disallowed=True, disallowed_reason=reason)
        self._goals[index] = updated
        self._notify("goal_disallowed" if updated.disallowed else "goal_allowed")
        return replace(updated)

    # =========================================================================
    # Teams
    # =========================================================================

    def rename_team(self, team: int, name: str) -> str:
        """
        Rename one side, record the name in that side's history, and rewrite
        team-attributed labels and phase-marker score lines.

        Raises:
            LedgerValidationError: On empty, too long or clashing names
        """
        name = safe_strip(name)
        if team not in (1, 2):
            raise LedgerValidationError(["Team must be 1 or 2"])
        ensure_valid(validate_team_name(name, f"Team {team}"))
        new1 = name if team == 1 else self._team1_name
        new2 = name if team == 2 else self._team2_name
        ensure_valid(validate_team_names(new1, new2))

        history = self._team1_history if team == 1 else self._team2_history
        if name not in history:
            history.append(name)

        for i, goal in enumerate(self._goals):
            if goal.team == team:
                self._goals[i] = replace(goal, team_name=name)
        for i, event in enumerate(self._events):
            self._events[i] = _rename_in_event(event, team, name, new1, new2)

        self._team1_name, self._team2_name = new1, new2
        self._notify("team_renamed")
        return name

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def reset(
        self,
        team1_name: Optional[str] = None,
        team2_name: Optional[str] = None,
        regulation_duration: Optional[int] = None,
    ) -> None:
        """Reset wholesale for a new match."""
        team1_name = safe_strip(team1_name) or self._team1_history[0]
        team2_name = safe_strip(team2_name) or self._team2_history[0]
        ensure_valid(validate_team_names(team1_name, team2_name))

        duration = self._clock.regulation_duration if regulation_duration is None else regulation_duration
        self._clock = MatchClock(regulation_duration=max(0, int(duration)))
        self._goals = []
        self._events = []
        self._team1_name, self._team2_name = team1_name, team2_name
        self._team1_history = [team1_name]
        self._team2_history = [team2_name]
        self._attendance = []
        self._notify("reset")

    def to_record(self) -> Dict[str, Any]:
        """Snapshot in the persisted key/value record shape."""
        return {
            "elapsedTime": self._clock.elapsed_seconds,
            "isRunning": self._clock.is_running,
            "startTimestamp": self._clock.start_anchor,
            "gameTime": self._clock.regulation_duration,
            "isSecondHalf": self._clock.is_second_half,
            "goals": [g.to_dict() for g in self._goals],
            "matchEvents": [e.to_dict() for e in self._events],
            "team1Name": self._team1_name,
            "team2Name": self._team2_name,
            "team1History": list(self._team1_history),
            "team2History": list(self._team2_history),
            "attendance": list(self._attendance),
        }

    @classmethod
    def from_record(
        cls,
        record: Optional[Dict[str, Any]],
        regulation_duration: int = DEFAULT_REGULATION_SECONDS,
        team1_name: str = DEFAULT_TEAM1_NAME,
        team2_name: str = DEFAULT_TEAM2_NAME,
        **limits: Any,
    ) -> "MatchState":
        """
        Rebuild a MatchState from a persisted record.

        Absent fields fall back to the supplied defaults. Entries that no
        longer validate are dropped with a warning rather than failing the
        whole restore.
        """
        record = record or {}
        team1_history = list(record.get("team1History") or [team1_name])
        team2_history = list(record.get("team2History") or [team2_name])
        current1 = record.get("team1Name") or team1_history[-1]
        current2 = record.get("team2Name") or team2_history[-1]

        state = cls(
            regulation_duration=safe_int(record.get("gameTime"), regulation_duration),
            team1_name=current1,
            team2_name=current2,
            **limits,
        )
        state._team1_history = team1_history
        state._team2_history = team2_history

        is_running = bool(record.get("isRunning", False))
        anchor = record.get("startTimestamp")
        if is_running and anchor is None:
            logger.warning("Stored clock was running without an anchor; restoring as paused")
            is_running = False
        if not is_running:
            anchor = None
        state.set_timer_state(safe_int(record.get("elapsedTime"), 0), is_running, anchor)
        state.set_half_state(bool(record.get("isSecondHalf", False)))

        for raw in record.get("goals") or []:
            try:
                goal = Goal.from_dict(raw, team2_name=current2)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable stored goal: {e}")
                continue
            errors = validate_goal(goal, state.max_event_time)
            if errors:
                logger.warning(f"Skipping invalid stored goal: {errors}")
                continue
            state._goals.append(goal)

        for raw in record.get("matchEvents") or []:
            try:
                event = MatchEvent.from_dict(raw)
            except (TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping unreadable stored event: {e}")
                continue
            errors = validate_event(event, state.max_event_time, state.max_notes_length)
            if errors:
                logger.warning(f"Skipping invalid stored event: {errors}")
                continue
            state._events.append(event)

        state._attendance = list(record.get("attendance") or [])
        return state


def _rename_in_event(
    event: MatchEvent, team: int, name: str, new1: str, new2: str
) -> MatchEvent:
    """Rewrite an event's team label and score line after a rename."""
    changes: Dict[str, Any] = {}
    if event.team == team and event.team_name:
        changes["team_name"] = name
    if event.score and event.team1_name and event.team2_name:
        score = _rewrite_score_text(
            event.score, event.team1_name, event.team2_name, new1, new2
        )
        if score is not None:
            changes["score"] = score
            changes["team1_name"] = new1
            changes["team2_name"] = new2
    return replace(event, **changes) if changes else event


def _rewrite_score_text(
    score: str, old1: str, old2: str, new1: str, new2: str
) -> Optional[str]:
    """
    Re-label a 'A n - m B' score line written with names old1/old2.

    Returns None when the text does not have that shape.
    """
    prefix, suffix = f"{old1} ", f" {old2}"
    if len(score) < len(prefix) + len(suffix):
        return None
    if not (score.startswith(prefix) and score.endswith(suffix)):
        return None
    tally = score[len(prefix):len(score) - len(suffix)]
    return f"{new1} {tally} {new2}"
