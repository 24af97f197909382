"""
Pydantic schemas for study sessions, study-time tracking and timers
"""
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional
from uuid import UUID
from datetime import datetime


class SessionStart(BaseModel):
    """Open a study session"""
    user_id: UUID
    study_type: str = Field("manual", max_length=50)
    subject: Optional[str] = Field(None, max_length=50)
    start_time: Optional[datetime] = None


class SessionStartResponse(BaseModel):
    session_id: UUID


class SessionEnd(BaseModel):
    """Close an open study session"""
    duration: int = Field(..., ge=0, description="Active time in seconds")
    end_time: Optional[datetime] = None


class SessionCreate(BaseModel):
    """Record an already completed study session"""
    user_id: UUID
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., ge=0, description="Duration in seconds")
    study_type: str = Field("page_presence", max_length=50)
    subject: Optional[str] = Field(None, max_length=50)

    @model_validator(mode="after")
    def check_interval(self):
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        return self


class StudySessionResponse(BaseModel):
    id: UUID
    user_id: UUID
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    study_type: str
    subject: Optional[str] = None

    class Config:
        from_attributes = True


class SessionEndResponse(BaseModel):
    session: StudySessionResponse
    achievements_granted: List[str]


class AchievementResponse(BaseModel):
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    tier: Optional[str] = None
    achieved_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class VisibilityUpdate(BaseModel):
    hidden: bool


class TrackerStatus(BaseModel):
    """Current study-time tracker state"""
    user_id: UUID
    state: str
    is_tracking: bool
    is_paused: bool
    session_start: Optional[str] = None
    base_total_seconds: int
    total_seconds: int
    formatted_time: str


class TimerDuration(BaseModel):
    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)


class TimerStatus(BaseModel):
    """Countdown timer state"""
    user_id: UUID
    hours: int
    minutes: int
    time_display: str
    remaining_seconds: int
    is_running: bool
    is_paused: bool
    completed_sessions: int
