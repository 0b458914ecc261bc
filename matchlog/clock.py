"""
Clock Engine: anchor-based match clock.

Elapsed time is never accumulated from ticks. While running it is always
recomputed as `now - start_anchor`, so a suspended process picks up the
correct time the moment it resumes.
"""
import logging
import threading
import time
from typing import Callable, List, Optional

from matchlog.errors import ClockStateError
from matchlog.ledger.models import EventType
from matchlog.state import MatchState
from matchlog.utils.helpers import round_seconds, format_clock

logger = logging.getLogger("matchlog.clock")

TimeSource = Callable[[], float]
PhaseListener = Callable[[EventType, int], None]


def wall_clock_ms() -> float:
    """Current wall-clock time in milliseconds."""
    return time.time() * 1000.0


class ClockEngine:
    """
    Start/pause/phase transitions over the clock fields of a MatchState.

    States: Idle (0, stopped), Running, Paused. Half-time and full-time
    markers force Paused and notify phase listeners so the ledger can
    append the matching system event.
    """

    def __init__(self, state: MatchState, time_source: Optional[TimeSource] = None):
        self._state = state
        self._now = time_source or wall_clock_ms
        self._phase_listeners: List[PhaseListener] = []

    def on_phase(self, listener: PhaseListener) -> None:
        """Register a callback for half-time / full-time transitions."""
        self._phase_listeners.append(listener)

    @property
    def is_running(self) -> bool:
        return self._state.clock.is_running

    def tick(self) -> int:
        """
        Current elapsed seconds. Read-only; safe to call at any frequency.
        """
        clock = self._state.clock
        if not clock.is_running or clock.start_anchor is None:
            return clock.elapsed_seconds
        return max(0, round_seconds(self._now() - clock.start_anchor))

    def start(self) -> int:
        """
        Start or resume the clock from the current elapsed time.

        Raises:
            ClockStateError: If the clock is already running
        """
        clock = self._state.clock
        if clock.is_running:
            raise ClockStateError(["Clock is already running"])
        anchor = self._now() - clock.elapsed_seconds * 1000
        self._state.set_timer_state(clock.elapsed_seconds, True, anchor)
        action = "resumed" if clock.elapsed_seconds > 0 else "started"
        logger.info(f"Clock {action} at {format_clock(clock.elapsed_seconds)}")
        return clock.elapsed_seconds

    def pause(self) -> int:
        """
        Pause the clock, freezing the elapsed time.

        Raises:
            ClockStateError: If the clock is not running
        """
        if not self._state.clock.is_running:
            raise ClockStateError(["Clock is not running"])
        elapsed = self.tick()
        self._state.set_timer_state(elapsed, False, None)
        logger.info(f"Clock paused at {format_clock(elapsed)}")
        return elapsed

    def toggle(self) -> int:
        """Start when stopped, pause when running."""
        if self._state.clock.is_running:
            return self.pause()
        return self.start()

    def set_regulation_duration(self, seconds: int) -> int:
        """Set the full match length in seconds (clamped to >= 0)."""
        self._state.set_regulation_duration(seconds)
        return self._state.clock.regulation_duration

    def mark_half_boundary(self) -> int:
        """
        Jump to exactly half of regulation, stop, and enter the second half.
        """
        half = self._state.clock.regulation_duration // 2
        self._state.set_timer_state(half, False, None)
        self._state.set_half_state(True)
        logger.info(f"Half time at {format_clock(half)}")
        self._emit(EventType.HALF_TIME, half)
        return half

    def mark_full_time(self) -> int:
        """Stop the clock where it stands and signal full time."""
        elapsed = self.tick()
        self._state.set_timer_state(elapsed, False, None)
        logger.info(f"Full time at {format_clock(elapsed)}")
        self._emit(EventType.FULL_TIME, elapsed)
        return elapsed

    def reset(self) -> None:
        """Return to Idle(0, stopped, first half)."""
        self._state.set_timer_state(0, False, None)
        self._state.set_half_state(False)

    def resume_from_state(self) -> int:
        """
        Re-derive elapsed time after a restore.

        A running clock keeps its stored anchor; an anchor in the future
        (clock skew) is pulled back so elapsed time starts at zero.
        """
        clock = self._state.clock
        if clock.is_running and clock.start_anchor is not None:
            now = self._now()
            if clock.start_anchor > now:
                logger.warning("Stored clock anchor is in the future; re-anchoring at 0")
                self._state.set_timer_state(0, True, now)
            elapsed = self.tick()
            logger.info(f"Clock restored running at {format_clock(elapsed)}")
            return elapsed
        return clock.elapsed_seconds

    def _emit(self, phase: EventType, elapsed: int) -> None:
        for listener in self._phase_listeners:
            listener(phase, elapsed)


class ClockTicker:
    """
    Periodic refresh of a presentation value from ClockEngine.tick().

    Runs on a daemon thread and must be stopped explicitly on pause and
    on teardown.
    """

    def __init__(
        self,
        engine: ClockEngine,
        callback: Callable[[int], None],
        interval_seconds: float = 0.1,
    ):
        self._engine = engine
        self._callback = callback
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_active:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name="matchlog-clock-ticker", daemon=True
        )
        self._thread.start()
        logger.debug(f"Clock ticker started (interval={self._interval}s)")

    def stop(self, timeout: float = 1.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        logger.debug("Clock ticker stopped")

    def _run(self) -> None:
        while not self._stop_event.wait(self._interval):
            try:
                self._callback(self._engine.tick())
            except Exception as e:
                logger.warning(f"Clock tick callback failed: {e}")
