"""
Match Log - FastAPI host for the live match tracker
Single-session local host: the browser UI polls it and posts actions
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from matchlog.errors import (
    ClockStateError,
    InvariantViolationError,
    LedgerIndexError,
    LedgerValidationError,
    MatchLogError,
    PersistenceError,
    SystemEventProtectedError,
)
from matchlog.schemas import (
    AttendanceUpdate,
    CacheConfigUpdate,
    DisallowRequest,
    DurationUpdate,
    EntryTimeUpdate,
    EventCreate,
    EventUpdate,
    GoalCreate,
    GoalUpdate,
    NewMatchRequest,
    OppositionGoalCreate,
    TeamRename,
)
from matchlog.tracker import MatchTracker, get_match_tracker, shutdown_match_tracker

load_dotenv()

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Match Log"

if settings.log_level:
    logging.basicConfig(level=settings.log_level.upper())

logger = logging.getLogger("matchlog.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    shutdown_match_tracker()


app = FastAPI(
    title=APP_NAME,
    description="Live match clock, event log and statistics",
    version=APP_VERSION,
    lifespan=lifespan,
)

ERROR_STATUS = {
    LedgerValidationError: 422,
    LedgerIndexError: 404,
    InvariantViolationError: 409,
    SystemEventProtectedError: 409,
    ClockStateError: 409,
    PersistenceError: 503,
}


@app.exception_handler(MatchLogError)
async def match_log_error_handler(request: Request, exc: MatchLogError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "errors": exc.errors, "type": type(exc).__name__},
    )


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok", "name": APP_NAME, "version": APP_VERSION}


# ===== MATCH VIEWS =====

@app.get("/api/match")
def match_summary(tracker: MatchTracker = Depends(get_match_tracker)):
    """Clock, teams, score and the raw goal/event lists."""
    return tracker.summary()


@app.get("/api/timeline")
def match_timeline(tracker: MatchTracker = Depends(get_match_tracker)):
    """Goals and events merged in chronological order."""
    return {"entries": [entry.to_dict() for entry in tracker.timeline()]}


@app.get("/api/statistics")
def match_statistics(
    force: bool = Query(False, description="Bypass the statistics cache"),
    tracker: MatchTracker = Depends(get_match_tracker),
):
    return tracker.statistics(force_recompute=force).to_dict()


@app.get("/api/statistics/cache")
def statistics_cache_metrics(tracker: MatchTracker = Depends(get_match_tracker)):
    return tracker.stats_cache.get_metrics()


@app.put("/api/statistics/cache")
def configure_statistics_cache(
    body: CacheConfigUpdate, tracker: MatchTracker = Depends(get_match_tracker)
):
    max_age = tracker.stats_cache.configure(body.max_age_seconds)
    return {"maxAgeSeconds": max_age}


@app.get("/api/momentum")
def match_momentum(
    window: Optional[int] = Query(None, ge=1, description="Window length in seconds"),
    tracker: MatchTracker = Depends(get_match_tracker),
):
    return tracker.momentum_view(window)


# ===== CLOCK =====

@app.post("/api/clock/start")
def clock_start(tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.start()
    return tracker.summary()["clock"]


@app.post("/api/clock/pause")
def clock_pause(tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.pause()
    return tracker.summary()["clock"]


@app.post("/api/clock/toggle")
def clock_toggle(tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.toggle()
    return tracker.summary()["clock"]


@app.post("/api/clock/half-time")
def clock_half_time(tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.half_time()
    return tracker.summary()["clock"]


@app.post("/api/clock/full-time")
def clock_full_time(tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.full_time()
    return tracker.summary()["clock"]


@app.put("/api/clock/duration")
def clock_duration(body: DurationUpdate, tracker: MatchTracker = Depends(get_match_tracker)):
    tracker.set_regulation_duration(body.seconds)
    return tracker.summary()["clock"]


# ===== GOALS =====

@app.post("/api/goals", status_code=201)
def create_goal(body: GoalCreate, tracker: MatchTracker = Depends(get_match_tracker)):
    created = tracker.add_goal(**body.model_dump())
    return {"index": created.index, "goal": created.entry.to_dict()}


@app.post("/api/goals/opposition", status_code=201)
def create_opposition_goal(
    body: Optional[OppositionGoalCreate] = None,
    tracker: MatchTracker = Depends(get_match_tracker),
):
    raw_time = body.raw_time if body else None
    created = tracker.add_opposition_goal(raw_time=raw_time)
    return {"index": created.index, "goal": created.entry.to_dict()}


@app.patch("/api/goals/{index}")
def edit_goal(index: int, body: GoalUpdate, tracker: MatchTracker = Depends(get_match_tracker)):
    goal = tracker.update_goal(index, body.model_dump(exclude_unset=True))
    return {"index": index, "goal": goal.to_dict()}


@app.put("/api/goals/{index}/time")
def edit_goal_time(
    index: int, body: EntryTimeUpdate, tracker: MatchTracker = Depends(get_match_tracker)
):
    return tracker.edit_entry_time("goal", index, body.minutes).to_dict()


@app.post("/api/goals/{index}/disallow")
def toggle_goal_disallowed(
    index: int,
    body: Optional[DisallowRequest] = None,
    tracker: MatchTracker = Depends(get_match_tracker),
):
    goal = tracker.toggle_goal_disallowed(index, body.reason if body else None)
    return {"index": index, "goal": goal.to_dict()}


@app.delete("/api/goals/{index}")
def delete_goal(index: int, tracker: MatchTracker = Depends(get_match_tracker)):
    goal = tracker.remove_goal(index)
    return {"removed": goal.to_dict()}


# ===== EVENTS =====

@app.post("/api/events", status_code=201)
def create_event(body: EventCreate, tracker: MatchTracker = Depends(get_match_tracker)):
    created = tracker.record_event(body.type, body.notes, team=body.team, raw_time=body.raw_time)
    return {"index": created.index, "event": created.entry.to_dict()}


@app.patch("/api/events/{index}")
def edit_event(index: int, body: EventUpdate, tracker: MatchTracker = Depends(get_match_tracker)):
    event = tracker.update_event(index, body.model_dump(exclude_unset=True))
    return {"index": index, "event": event.to_dict()}


@app.put("/api/events/{index}/time")
def edit_event_time(
    index: int, body: EntryTimeUpdate, tracker: MatchTracker = Depends(get_match_tracker)
):
    return tracker.edit_entry_time("event", index, body.minutes).to_dict()


@app.delete("/api/events/{index}")
def delete_event(index: int, tracker: MatchTracker = Depends(get_match_tracker)):
    event = tracker.remove_event(index)
    return {"removed": event.to_dict()}


# ===== TEAMS & MATCH =====

@app.put("/api/teams/{team}")
def rename_team(team: int, body: TeamRename, tracker: MatchTracker = Depends(get_match_tracker)):
    name = tracker.rename_team(team, body.name)
    return {"team": team, "name": name, "history": tracker.state.team_history(team)}


@app.put("/api/attendance")
def update_attendance(
    body: AttendanceUpdate, tracker: MatchTracker = Depends(get_match_tracker)
):
    tracker.set_attendance(body.attendance)
    return {"attendance": tracker.state.attendance}


@app.post("/api/match/new")
def new_match(
    body: Optional[NewMatchRequest] = None,
    tracker: MatchTracker = Depends(get_match_tracker),
):
    body = body or NewMatchRequest()
    tracker.new_match(
        team1_name=body.team1_name,
        team2_name=body.team2_name,
        regulation_duration=body.regulation_duration,
    )
    return tracker.summary()
