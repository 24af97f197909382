"""
Quiz result recording and lookup endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from typing import List
from uuid import UUID
import logging

from gyaan.api.deps import get_metrics_service, get_store
from gyaan.schemas.metrics import QuizStats
from gyaan.schemas.quiz import QuizResultCreate, QuizResultResponse
from gyaan.services.metrics_service import MetricsService
from gyaan.services.persistence import FetchError, PersistenceWriteFailure, SqlPersistence

router = APIRouter(prefix="/api", tags=["quiz-results"])
logger = logging.getLogger(__name__)


@router.post("/quiz-results", response_model=QuizResultResponse, status_code=201)
async def create_quiz_result(
    result: QuizResultCreate,
    store: SqlPersistence = Depends(get_store),
    metrics: MetricsService = Depends(get_metrics_service)
):
    """
    Record a completed quiz

    Called by the quiz-taking flow once per submission. Invalidates the
    user's cached metrics.
    """
    
    try:
        attempt = store.create_quiz_attempt(result.model_dump(exclude_none=True))
    except PersistenceWriteFailure as e:
        raise HTTPException(status_code=500, detail=str(e))
    
    metrics.invalidate(result.user_id)
    logger.info(f"Quiz result stored: {attempt.id}, user={result.user_id}, score={result.score}")
    
    return QuizResultResponse.model_validate(attempt)


@router.get("/users/{user_id}/quiz-results", response_model=List[QuizResultResponse])
async def list_quiz_results(
    user_id: UUID,
    store: SqlPersistence = Depends(get_store)
):
    """List a user's quiz results, newest first"""
    
    try:
        attempts = store.fetch_quiz_attempts(user_id)
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"{str(e)}. Please retry.")
    
    return [QuizResultResponse.model_validate(a) for a in attempts]


@router.get("/quiz-stats/{user_id}", response_model=QuizStats)
async def get_quiz_stats(
    user_id: UUID,
    store: SqlPersistence = Depends(get_store),
    metrics: MetricsService = Depends(get_metrics_service)
):
    """Quizzes attempted and total questions solved"""
    
    try:
        attempts = store.fetch_quiz_attempts(user_id)
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"{str(e)}. Please retry.")
    
    counts = metrics.compute_quiz_counts(attempts)
    return QuizStats(
        quizzes_attempted=counts["count"],
        total_questions=counts["total_questions"]
    )
