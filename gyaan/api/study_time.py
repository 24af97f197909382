"""
Study-time tracker and countdown timer endpoints

The client forwards its page lifecycle (mount, visibility, unload) and the
manual timer controls; the server keeps the state machines.
"""
from fastapi import APIRouter, Depends, HTTPException
from uuid import UUID
import logging

from gyaan.api.deps import get_registry
from gyaan.schemas.study import TimerDuration, TimerStatus, TrackerStatus, VisibilityUpdate
from gyaan.services.tracker_registry import TrackerRegistry

router = APIRouter(prefix="/api/study-time", tags=["study-time"])
logger = logging.getLogger(__name__)

TRACKER_ACTIONS = {"start", "stop", "pause", "resume", "tick", "unload"}
TIMER_ACTIONS = {"start", "pause", "resume", "reset", "tick"}


@router.get("/{user_id}", response_model=TrackerStatus)
async def get_tracker(user_id: UUID, registry: TrackerRegistry = Depends(get_registry)):
    """Current month-to-date study time"""
    return TrackerStatus(**registry.peek_tracker(user_id).snapshot())


@router.post("/{user_id}/mount", response_model=TrackerStatus)
async def mount_tracker(
    user_id: UUID,
    visible: bool = True,
    registry: TrackerRegistry = Depends(get_registry)
):
    """
    Load the month-to-date total and begin tracking if the page is visible
    
    Safe to call again after a reload: an open session is kept.
    """
    tracker = registry.tracker(user_id)
    if not tracker.is_mounted:
        tracker.mount(visible=visible)
    elif visible:
        tracker.start()
    return TrackerStatus(**tracker.snapshot())


@router.post("/{user_id}/visibility", response_model=TrackerStatus)
async def update_visibility(
    user_id: UUID,
    update: VisibilityUpdate,
    registry: TrackerRegistry = Depends(get_registry)
):
    """Hidden closes the open session; visible opens a new one"""
    tracker = registry.tracker(user_id)
    tracker.on_visibility_change(update.hidden)
    return TrackerStatus(**tracker.snapshot())


@router.post("/{user_id}/dispose", response_model=TrackerStatus)
async def dispose_tracker(user_id: UUID, registry: TrackerRegistry = Depends(get_registry)):
    """Close any open session and drop the tracker"""
    tracker = registry.tracker(user_id)
    registry.dispose(user_id)
    return TrackerStatus(**tracker.snapshot())


@router.get("/{user_id}/timer", response_model=TimerStatus)
async def get_timer(user_id: UUID, registry: TrackerRegistry = Depends(get_registry)):
    timer = registry.peek_timer(user_id)
    timer.tick()
    return TimerStatus(**timer.snapshot())


@router.post("/{user_id}/timer/duration", response_model=TimerStatus)
async def set_timer_duration(
    user_id: UUID,
    duration: TimerDuration,
    registry: TrackerRegistry = Depends(get_registry)
):
    """Set the countdown length; rejected while the timer runs"""
    timer = registry.timer(user_id)
    if not timer.set_duration(duration.hours, duration.minutes):
        raise HTTPException(status_code=409, detail="Timer is running; reset it first")
    return TimerStatus(**timer.snapshot())


@router.post("/{user_id}/timer/{action}", response_model=TimerStatus)
async def timer_action(
    user_id: UUID,
    action: str,
    registry: TrackerRegistry = Depends(get_registry)
):
    """Start, pause, resume, reset or tick the countdown"""
    if action not in TIMER_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown timer action: {action}")
    
    timer = registry.timer(user_id)
    getattr(timer, action)()
    if action == "reset":
        registry.release_timer(user_id)
    return TimerStatus(**timer.snapshot())


@router.post("/{user_id}/{action}", response_model=TrackerStatus)
async def tracker_action(
    user_id: UUID,
    action: str,
    registry: TrackerRegistry = Depends(get_registry)
):
    """Explicit start, stop, pause, resume, tick or unload"""
    if action not in TRACKER_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown tracker action: {action}")
    
    tracker = registry.tracker(user_id)
    if not tracker.is_mounted and action == "start":
        raise HTTPException(status_code=409, detail="Tracker not mounted")
    
    handler = tracker.on_unload if action == "unload" else getattr(tracker, action)
    handler()
    return TrackerStatus(**tracker.snapshot())
