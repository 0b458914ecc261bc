"""
Pydantic schemas for API request bodies
"""
from pydantic import BaseModel, Field
from typing import Any, List, Optional


# ===== GOAL SCHEMAS =====

class GoalCreate(BaseModel):
    """Goal recorded at the current clock time unless raw_time is given"""
    scorer_name: str
    team: int = 1
    scorer_shirt_number: Optional[int] = None
    assist_name: Optional[str] = None
    assist_shirt_number: Optional[int] = None
    raw_time: Optional[int] = None


class OppositionGoalCreate(BaseModel):
    """Goal credited to team 2 itself"""
    raw_time: Optional[int] = None


class GoalUpdate(BaseModel):
    """Partial goal edit; only fields that are sent are applied"""
    scorer_name: Optional[str] = None
    team: Optional[int] = None
    scorer_shirt_number: Optional[int] = None
    assist_name: Optional[str] = None
    assist_shirt_number: Optional[int] = None
    raw_time: Optional[int] = None


class DisallowRequest(BaseModel):
    """Reason is required to disallow, ignored when reinstating"""
    reason: Optional[str] = None


# ===== EVENT SCHEMAS =====

class EventCreate(BaseModel):
    """Event type by label ('Yellow Card') or name ('YELLOW_CARD')"""
    type: str
    notes: str = ""
    team: Optional[int] = None
    raw_time: Optional[int] = None


class EventUpdate(BaseModel):
    """Partial event edit"""
    type: Optional[str] = None
    notes: Optional[str] = None
    team: Optional[int] = None
    raw_time: Optional[int] = None


class EntryTimeUpdate(BaseModel):
    """Move an entry to a whole match minute"""
    minutes: int


# ===== MATCH SCHEMAS =====

class DurationUpdate(BaseModel):
    seconds: int = Field(..., ge=0)


class TeamRename(BaseModel):
    name: str


class NewMatchRequest(BaseModel):
    """Team names and duration default to the current ones"""
    team1_name: Optional[str] = None
    team2_name: Optional[str] = None
    regulation_duration: Optional[int] = Field(None, ge=0)


class AttendanceUpdate(BaseModel):
    attendance: List[Any] = []


class CacheConfigUpdate(BaseModel):
    max_age_seconds: float = Field(..., gt=0)
