"""
Dashboard metrics API endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
from uuid import UUID
import logging

from gyaan.api.deps import get_clock, get_metrics_service, get_store
from gyaan.schemas.metrics import UserMetrics
from gyaan.services.metrics_service import MetricsService
from gyaan.services.persistence import FetchError, SqlPersistence
from gyaan.utils.clock import Clock

router = APIRouter(prefix="/api", tags=["metrics"])
logger = logging.getLogger(__name__)


@router.get("/users/{user_id}/metrics", response_model=UserMetrics)
async def get_user_metrics(
    user_id: UUID,
    refresh: bool = False,
    store: SqlPersistence = Depends(get_store),
    metrics: MetricsService = Depends(get_metrics_service),
    clock: Clock = Depends(get_clock)
):
    """
    Get dashboard metrics for a user
    
    Returns:
    - Quiz counts and correct/wrong totals
    - Weekly average-score series (last 7 days)
    - Subject-wise average scores
    - Current streak, strongest and weakest subject
    - Week-over-week and day-over-day deltas
    
    Pass refresh=true to bypass the cached snapshot.
    """
    
    try:
        logger.info(f"Fetching metrics for user {user_id} (refresh={refresh})")
        
        snapshot = metrics.get_user_metrics(store, user_id, clock(), refresh=refresh)
        
        return UserMetrics(**snapshot)
        
    except FetchError as e:
        logger.error(f"Failed to fetch metrics: {str(e)}")
        raise HTTPException(
            status_code=503,
            detail="Failed to load metrics. Please retry."
        )
