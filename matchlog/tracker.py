"""
Match tracker: the UI-action layer over the timeline engine.

One tracker owns one MatchState and wires the clock, statistics cache,
momentum engine and persistence around it. Every action runs to completion
under the tracker lock, then snapshots the state to the store (immediately
for clock transitions and new matches, debounced otherwise).
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.settings import Settings, settings as default_settings
from matchlog.cache import StatisticsCache, StatisticsSnapshot
from matchlog.clock import ClockEngine, ClockTicker, TimeSource, wall_clock_ms
from matchlog.errors import InvariantViolationError, LedgerValidationError
from matchlog.ledger.models import EventType, Goal, MatchEvent, TimelineEntry
from matchlog.ledger.validation import (
    coerce_optional_int,
    ensure_valid,
    parse_event_type,
    validate_time,
)
from matchlog.momentum import MomentumEngine, MomentumSnapshot, momentum_percentage
from matchlog.state import MatchState
from matchlog.storage import DebouncedWriter, KeyValueStore, MemoryKeyValueStore
from matchlog.utils.helpers import (
    format_clock,
    format_match_minute,
    sanitize_text,
)

logger = logging.getLogger("matchlog.tracker")

PHASE_NOTES = {
    EventType.HALF_TIME: "Half Time",
    EventType.FULL_TIME: "Full Time",
}


class MatchTracker:
    """
    Orchestrates one live match session.

    Usage:
        tracker = MatchTracker.load(store)
        tracker.start()
        tracker.add_goal("Smith", scorer_shirt_number=9)
        tracker.record_event("Yellow Card", team=2)
        tracker.half_time()
        stats = tracker.statistics()
    """

    def __init__(
        self,
        state: Optional[MatchState] = None,
        store: Optional[KeyValueStore] = None,
        config: Optional[Settings] = None,
        time_source: Optional[TimeSource] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        """
        Args:
            state: Aggregate to drive (a fresh one from config when omitted)
            store: Persistence store (in-memory when omitted)
            config: Settings (the module-level settings when omitted)
            time_source: Wall clock in milliseconds (injectable for tests)
            on_tick: Presentation callback fed by the clock ticker
        """
        self.config = config or default_settings
        self.state = state or MatchState(
            regulation_duration=self.config.regulation_duration_seconds,
            team1_name=self.config.default_team1_name,
            team2_name=self.config.default_team2_name,
            **_limits(self.config),
        )
        self._now = time_source or wall_clock_ms
        self._lock = threading.RLock()

        self.clock = ClockEngine(self.state, time_source=self._now)
        self.clock.on_phase(self._append_phase_marker)
        self.stats_cache = StatisticsCache(
            self.state,
            max_age_seconds=self.config.stats_cache_max_age_seconds,
            time_source=lambda: self._now() / 1000.0,
        )
        self.momentum_engine = MomentumEngine(
            self.state, window_seconds=self.config.momentum_window_seconds
        )

        self.store = store if store is not None else MemoryKeyValueStore()
        self.writer = DebouncedWriter(
            self.store, delay_seconds=self.config.persist_debounce_ms / 1000.0
        )

        self._ticker: Optional[ClockTicker] = None
        if on_tick is not None:
            self._ticker = ClockTicker(
                self.clock, on_tick, interval_seconds=self.config.tick_interval_ms / 1000.0
            )

    @classmethod
    def load(
        cls,
        store: KeyValueStore,
        config: Optional[Settings] = None,
        time_source: Optional[TimeSource] = None,
        on_tick: Optional[Callable[[int], None]] = None,
    ) -> "MatchTracker":
        """
        Restore the tracker from the store, or start fresh when nothing is stored.

        A clock that was running when the record was saved keeps running,
        with elapsed time re-derived from its stored anchor.
        """
        config = config or default_settings
        record = store.load(config.storage_key)
        state = None
        if record:
            state = MatchState.from_record(
                record,
                regulation_duration=config.regulation_duration_seconds,
                team1_name=config.default_team1_name,
                team2_name=config.default_team2_name,
                **_limits(config),
            )
            logger.info(
                f"Restored match: {state.goal_count} goals, {state.event_count} events"
            )
        tracker = cls(
            state=state, store=store, config=config, time_source=time_source, on_tick=on_tick
        )
        if state is not None:
            tracker.clock.resume_from_state()
            if tracker.clock.is_running:
                tracker._start_ticker()
        return tracker

    # =========================================================================
    # Persistence
    # =========================================================================

    def _persist(self, critical: bool = False) -> None:
        """
        Snapshot the state to the store.

        Raises:
            PersistenceError: On a failed critical save (state is not rolled back)
        """
        record = self.state.to_record()
        if critical:
            self.writer.save_immediate(self.config.storage_key, record)
        else:
            self.writer.save(self.config.storage_key, record)

    def flush(self) -> None:
        """Write any pending debounced snapshot now."""
        self.writer.flush()

    def close(self) -> None:
        """Stop the ticker and flush pending writes."""
        self._stop_ticker()
        self.writer.close()
        logger.info("Match tracker closed")

    # =========================================================================
    # Clock actions
    # =========================================================================

    def _start_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.start()

    def _stop_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    def current_time(self) -> int:
        """Elapsed match seconds right now."""
        return self.clock.tick()

    def start(self) -> int:
        with self._lock:
            elapsed = self.clock.start()
            self._start_ticker()
            self._persist(critical=True)
            return elapsed

    def pause(self) -> int:
        with self._lock:
            elapsed = self.clock.pause()
            self._stop_ticker()
            self._persist(critical=True)
            return elapsed

    def toggle(self) -> int:
        with self._lock:
            if self.clock.is_running:
                return self.pause()
            return self.start()

    def half_time(self) -> int:
        """Jump to the half boundary, stop, and log the half-time marker."""
        with self._lock:
            self._check_room_for_marker()
            self._check_marker_time(self.state.clock.regulation_duration // 2)
            self._stop_ticker()
            elapsed = self.clock.mark_half_boundary()
            self._persist(critical=True)
            return elapsed

    def full_time(self) -> int:
        """Stop the clock and log the full-time marker."""
        with self._lock:
            self._check_room_for_marker()
            self._check_marker_time(self.clock.tick())
            self._stop_ticker()
            elapsed = self.clock.mark_full_time()
            self._persist(critical=True)
            return elapsed

    def set_regulation_duration(self, seconds: int) -> int:
        with self._lock:
            duration = self.clock.set_regulation_duration(seconds)
            self._persist()
            return duration

    def _check_room_for_marker(self) -> None:
        if self.state.goal_count + self.state.event_count >= self.state.max_entries:
            raise InvariantViolationError(["Maximum number of events reached"])

    def _check_marker_time(self, elapsed: int) -> None:
        # The marker is appended after the clock has stopped, so reject first
        ensure_valid(validate_time(elapsed, self.state.max_event_time))

    def _append_phase_marker(self, phase: EventType, elapsed: int) -> None:
        team1, team2 = self.state.team_names
        marker = MatchEvent(
            raw_time=elapsed,
            type=phase,
            notes=f"{PHASE_NOTES[phase]} - {team1} vs {team2}",
            is_system_event=True,
            score=self.state.score_text(),
            team1_name=team1,
            team2_name=team2,
        )
        self.state.add_event(marker)

    # =========================================================================
    # Ledger actions
    # =========================================================================

    def _entry_time(self, raw_time: Optional[int]) -> int:
        if raw_time is None:
            return self.clock.tick()
        return coerce_optional_int(raw_time, "Time")

    def _team_name(self, team: Optional[int]) -> Optional[str]:
        if team is None:
            return None
        if team not in (1, 2):
            raise LedgerValidationError(["Team must be 1 or 2"])
        return self.state.team_names[team - 1]

    def add_goal(
        self,
        scorer_name: str,
        team: int = 1,
        scorer_shirt_number: Optional[int] = None,
        assist_name: Optional[str] = None,
        assist_shirt_number: Optional[int] = None,
        raw_time: Optional[int] = None,
    ) -> TimelineEntry:
        """
        Record a goal at the current clock time (or raw_time when given).

        Returns:
            The new goal and its index

        Raises:
            LedgerValidationError: On invalid names, shirt numbers, team or time
            InvariantViolationError: If the ledger is full
        """
        with self._lock:
            goal = Goal(
                raw_time=self._entry_time(raw_time),
                scorer_name=sanitize_text(scorer_name),
                team=team,
                team_name=self._team_name(team) or "",
                scorer_shirt_number=coerce_optional_int(scorer_shirt_number, "Scorer shirt number"),
                assist_name=sanitize_text(assist_name) or None,
                assist_shirt_number=coerce_optional_int(assist_shirt_number, "Assist shirt number"),
            )
            index = self.state.add_goal(goal)
            logger.info(f"Goal for team {team} at {goal.display_time}: {goal.scorer_name}")
            self._persist()
            return TimelineEntry(
                kind="goal", index=index, raw_time=goal.raw_time, entry=self.state.get_goal(index)
            )

    def add_opposition_goal(self, raw_time: Optional[int] = None) -> TimelineEntry:
        """Record a goal for team 2, credited to the team itself."""
        with self._lock:
            team2 = self.state.team_names[1]
            return self.add_goal(team2, team=2, raw_time=raw_time)

    def record_event(
        self,
        event_type: Any,
        notes: str = "",
        team: Optional[int] = None,
        raw_time: Optional[int] = None,
    ) -> TimelineEntry:
        """
        Record a match event at the current clock time (or raw_time when given).

        Half time and full time are recorded through the clock actions only.

        Returns:
            The new event and its index
        """
        with self._lock:
            parsed = parse_event_type(event_type)
            if parsed.is_phase_marker:
                raise LedgerValidationError(
                    [f"{parsed.label} is recorded by the match clock"]
                )
            event = MatchEvent(
                raw_time=self._entry_time(raw_time),
                type=parsed,
                notes=sanitize_text(notes, self.state.max_notes_length),
                team=team,
                team_name=self._team_name(team),
            )
            index = self.state.add_event(event)
            logger.info(f"{event.label} recorded at {event.display_time}")
            self._persist()
            return TimelineEntry(
                kind="event", index=index, raw_time=event.raw_time, entry=self.state.get_event(index)
            )

    def update_goal(self, index: int, updates: Dict[str, Any]) -> Goal:
        with self._lock:
            updates = dict(updates)
            if "team" in updates:
                updates["team_name"] = self._team_name(updates["team"]) or ""
            for name in ("scorer_name", "assist_name", "disallowed_reason"):
                if updates.get(name) is not None:
                    updates[name] = sanitize_text(updates[name]) or None
            for name in ("scorer_shirt_number", "assist_shirt_number", "raw_time"):
                if name in updates:
                    updates[name] = coerce_optional_int(updates[name], name)
            goal = self.state.update_goal(index, updates)
            self._persist()
            return goal

    def update_event(self, index: int, updates: Dict[str, Any]) -> MatchEvent:
        with self._lock:
            updates = dict(updates)
            if "type" in updates and parse_event_type(updates["type"]).is_phase_marker:
                raise LedgerValidationError(["Phase events are recorded by the match clock"])
            if "team" in updates:
                updates["team_name"] = self._team_name(updates["team"])
            if "notes" in updates:
                updates["notes"] = sanitize_text(updates["notes"], self.state.max_notes_length)
            if "raw_time" in updates:
                updates["raw_time"] = coerce_optional_int(updates["raw_time"], "Time")
            event = self.state.update_event(index, updates)
            self._persist()
            return event

    def edit_entry_time(self, kind: str, index: int, minutes: int) -> TimelineEntry:
        """
        Move a goal or event to a whole match minute.

        Args:
            kind: "goal" or "event"
            index: Index within that list
            minutes: New match minute (raw time = minutes * 60)
        """
        minutes = coerce_optional_int(minutes, "Minutes")
        if minutes is None:
            raise LedgerValidationError(["Minutes are required"])
        raw_time = minutes * 60
        if kind == "goal":
            entry = self.update_goal(index, {"raw_time": raw_time})
        elif kind == "event":
            entry = self.update_event(index, {"raw_time": raw_time})
        else:
            raise LedgerValidationError([f"Unknown entry kind: {kind}"])
        return TimelineEntry(kind=kind, index=index, raw_time=raw_time, entry=entry)

    def remove_goal(self, index: int) -> Goal:
        with self._lock:
            goal = self.state.remove_goal(index)
            logger.info(f"Goal {index} removed ({goal.scorer_name} at {goal.display_time})")
            self._persist()
            return goal

    def remove_event(self, index: int) -> MatchEvent:
        with self._lock:
            event = self.state.remove_event(index)
            logger.info(f"Event {index} removed ({event.label} at {event.display_time})")
            self._persist()
            return event

    def toggle_goal_disallowed(self, index: int, reason: Optional[str] = None) -> Goal:
        with self._lock:
            if reason is not None:
                reason = sanitize_text(reason)
            goal = self.state.toggle_goal_disallowed(index, reason)
            status = f"disallowed ({goal.disallowed_reason})" if goal.disallowed else "allowed"
            logger.info(f"Goal {index} {status}")
            self._persist()
            return goal

    # =========================================================================
    # Match actions
    # =========================================================================

    def rename_team(self, team: int, name: str) -> str:
        with self._lock:
            renamed = self.state.rename_team(team, name)
            logger.info(f"Team {team} renamed to {renamed}")
            self._persist()
            return renamed

    def set_attendance(self, attendance: List[Any]) -> None:
        with self._lock:
            self.state.set_attendance(attendance)
            self._persist()

    def new_match(
        self,
        team1_name: Optional[str] = None,
        team2_name: Optional[str] = None,
        regulation_duration: Optional[int] = None,
    ) -> None:
        """Clear the ledger and clock for a new match."""
        with self._lock:
            self._stop_ticker()
            self.state.reset(
                team1_name=team1_name,
                team2_name=team2_name,
                regulation_duration=regulation_duration,
            )
            logger.info(f"New match: {' vs '.join(self.state.team_names)}")
            self._persist(critical=True)

    # =========================================================================
    # Views
    # =========================================================================

    def timeline(self) -> List[TimelineEntry]:
        return self.state.ordered_timeline()

    def statistics(self, force_recompute: bool = False) -> StatisticsSnapshot:
        return self.stats_cache.get_statistics(force_recompute=force_recompute)

    def momentum(self, window_seconds: Optional[int] = None) -> MomentumSnapshot:
        return self.momentum_engine.compute_momentum(self.clock.tick(), window_seconds)

    def score(self) -> Tuple[int, int]:
        return self.state.score()

    def summary(self) -> Dict[str, Any]:
        """Full match view for the presentation layer."""
        with self._lock:
            clock = self.state.clock
            elapsed = self.clock.tick()
            team1, team2 = self.state.team_names
            score1, score2 = self.state.score()
            return {
                "clock": {
                    "elapsedSeconds": elapsed,
                    "display": format_clock(elapsed),
                    "matchMinute": format_match_minute(
                        elapsed, clock.regulation_duration, clock.is_second_half
                    ),
                    "isRunning": clock.is_running,
                    "isSecondHalf": clock.is_second_half,
                    "regulationDuration": clock.regulation_duration,
                },
                "teams": {
                    "team1": {"name": team1, "history": self.state.team_history(1), "score": score1},
                    "team2": {"name": team2, "history": self.state.team_history(2), "score": score2},
                },
                "goalBreakdown": self.state.goal_breakdown(),
                "goals": [g.to_dict() for g in self.state.goals],
                "events": [e.to_dict() for e in self.state.events],
                "attendance": self.state.attendance,
            }

    def momentum_view(self, window_seconds: Optional[int] = None) -> Dict[str, Any]:
        snapshot = self.momentum(window_seconds)
        _, dominant = momentum_percentage(snapshot)
        team1, team2 = self.state.team_names
        return {
            **snapshot.to_dict(),
            "team1Name": team1,
            "team2Name": team2,
            "dominantTeam": {"team1": team1, "team2": team2}.get(dominant),
        }


def _limits(config: Settings) -> Dict[str, int]:
    return {
        "max_event_time": config.max_event_time_seconds,
        "max_notes_length": config.max_notes_length,
        "max_entries": config.max_ledger_entries,
    }


# =============================================================================
# Global tracker instance
# =============================================================================

_match_tracker: Optional[MatchTracker] = None
_tracker_lock = threading.Lock()


def get_match_tracker() -> MatchTracker:
    """Get or create the global match tracker, restored from the configured database."""
    global _match_tracker
    with _tracker_lock:
        if _match_tracker is None:
            from matchlog.storage import SQLKeyValueStore

            store = SQLKeyValueStore(default_settings.database_url)
            _match_tracker = MatchTracker.load(store)
        return _match_tracker


def shutdown_match_tracker() -> None:
    """Flush and drop the global tracker."""
    global _match_tracker
    with _tracker_lock:
        if _match_tracker is not None:
            _match_tracker.close()
            _match_tracker = None
