"""
Study session storage endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
from typing import List, Optional
from uuid import UUID
import logging

from gyaan.api.deps import get_clock, get_store
from gyaan.schemas.study import (
    AchievementResponse,
    SessionCreate,
    SessionEnd,
    SessionEndResponse,
    SessionStart,
    SessionStartResponse,
    StudySessionResponse,
)
from gyaan.services.achievement_service import achievement_service
from gyaan.services.persistence import FetchError, PersistenceWriteFailure, SqlPersistence
from gyaan.utils.clock import Clock, as_local, to_utc_naive

router = APIRouter(prefix="/api", tags=["study-sessions"])
logger = logging.getLogger(__name__)


@router.post("/study-sessions/start", response_model=SessionStartResponse, status_code=201)
async def start_session(
    request: SessionStart,
    store: SqlPersistence = Depends(get_store),
    clock: Clock = Depends(get_clock)
):
    """Open a study session and return its id"""
    
    try:
        session_id = store.create_session(
            request.user_id,
            request.start_time or clock(),
            request.study_type,
            subject=request.subject
        )
    except PersistenceWriteFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    
    logger.info(f"Study session opened: {session_id}, user={request.user_id}")
    return SessionStartResponse(session_id=session_id)


@router.post("/study-sessions/{session_id}/end", response_model=SessionEndResponse)
async def end_session(
    session_id: UUID,
    request: SessionEnd,
    store: SqlPersistence = Depends(get_store),
    clock: Clock = Depends(get_clock)
):
    """
    Close a study session
    
    - Stores end time and active duration
    - Evaluates achievements for the user
    """
    
    now = clock()
    end_time = as_local(request.end_time, now) if request.end_time else now
    
    try:
        session = store.close_session(session_id, end_time, request.duration)
    except LookupError:
        raise HTTPException(status_code=404, detail="Study session not found")
    except PersistenceWriteFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    
    granted = achievement_service.check_and_grant(
        store, session.user_id, end_time, request.duration
    )
    
    return SessionEndResponse(
        session=StudySessionResponse.model_validate(session),
        achievements_granted=granted
    )


@router.post("/study-sessions", response_model=StudySessionResponse, status_code=201)
async def create_session(
    request: SessionCreate,
    store: SqlPersistence = Depends(get_store)
):
    """Record a completed study interval"""
    
    try:
        session_id = store.insert_session(
            request.user_id,
            request.start_time,
            request.end_time,
            request.duration,
            request.study_type,
            subject=request.subject
        )
    except PersistenceWriteFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    
    stored = request.model_dump()
    stored["start_time"] = to_utc_naive(request.start_time)
    stored["end_time"] = to_utc_naive(request.end_time)
    return StudySessionResponse(id=session_id, **stored)


@router.get("/study-sessions", response_model=List[StudySessionResponse])
async def list_sessions(
    user_id: UUID,
    since: Optional[datetime] = None,
    store: SqlPersistence = Depends(get_store)
):
    """List a user's study sessions, newest first"""
    
    try:
        sessions = store.list_sessions(user_id, since=since)
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"{str(e)}. Please retry.")
    
    return [StudySessionResponse.model_validate(s) for s in sessions]


@router.get("/users/{user_id}/achievements", response_model=List[AchievementResponse])
async def list_achievements(
    user_id: UUID,
    store: SqlPersistence = Depends(get_store)
):
    """List a user's achievements, most recent first"""
    
    try:
        achievements = store.list_achievements(user_id)
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"{str(e)}. Please retry.")
    
    return [AchievementResponse.model_validate(a) for a in achievements]
