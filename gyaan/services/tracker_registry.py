"""
Registry of live study-time trackers and countdown timers, one per user
"""
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from gyaan.config import settings
from gyaan.database import SessionLocal
from gyaan.services.achievement_service import AchievementService, achievement_service
from gyaan.services.countdown_timer import CountdownTimer
from gyaan.services.persistence import SqlPersistence
from gyaan.services.study_tracker import Dispatch, StudyTimeTracker
from gyaan.utils.cache import CacheService, cache_service
from gyaan.utils.clock import Clock, local_now

logger = logging.getLogger(__name__)


class SessionWriter:
    """
    Runs session writes on a small thread pool

    Callable as a tracker ``dispatch`` so closing a session never waits on
    the store inside a request handler or the ticker.
    """

    def __init__(self, max_workers: int = 2):
        self.max_workers = max_workers
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="session-writer"
        )

    def __call__(self, fn: Callable[..., Any], *args: Any) -> Future:
        future = self._executor.submit(fn, *args)
        future.add_done_callback(self._log_failure)
        return future

    def drain(self) -> None:
        """Wait for queued writes, then start a fresh pool"""
        self._executor.shutdown(wait=True)
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="session-writer"
        )

    @staticmethod
    def _log_failure(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error(f"Background session write failed: {str(error)}", exc_info=error)


class TrackerRegistry:
    """Creates trackers and timers on first use and keeps them per process"""

    def __init__(
        self,
        store: SqlPersistence,
        cache: CacheService,
        clock: Clock = local_now,
        achievements: Optional[AchievementService] = None,
        dispatch: Optional[Dispatch] = None
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.achievements = achievements
        self.dispatch = dispatch
        self._trackers: Dict[UUID, StudyTimeTracker] = {}
        self._timers: Dict[UUID, CountdownTimer] = {}

    def tracker(self, user_id: UUID) -> StudyTimeTracker:
        """Get the user's tracker, creating it unmounted"""
        tracker = self._trackers.get(user_id)
        if tracker is None:
            tracker = self._new_tracker(user_id)
            self._trackers[user_id] = tracker
        return tracker

    def peek_tracker(self, user_id: UUID) -> StudyTimeTracker:
        """The user's tracker, or an unregistered idle one for unknown users"""
        return self._trackers.get(user_id) or self._new_tracker(user_id)

    def timer(self, user_id: UUID) -> CountdownTimer:
        timer = self._timers.get(user_id)
        if timer is None:
            timer = self._new_timer(user_id)
            self._timers[user_id] = timer
        return timer

    def peek_timer(self, user_id: UUID) -> CountdownTimer:
        return self._timers.get(user_id) or self._new_timer(user_id)

    def release_timer(self, user_id: UUID) -> None:
        """Forget an idle timer that holds nothing but the default duration"""
        timer = self._timers.get(user_id)
        if timer is None or timer.is_running or timer.is_paused:
            return
        if timer.duration_minutes == settings.DEFAULT_TIMER_MINUTES:
            del self._timers[user_id]

    def dispose(self, user_id: UUID) -> None:
        tracker = self._trackers.pop(user_id, None)
        if tracker is not None:
            tracker.dispose()
        self.release_timer(user_id)

    def tick_all(self) -> None:
        """Advance every running timer and refresh due trackers"""
        for timer in list(self._timers.values()):
            timer.tick()
        for tracker in list(self._trackers.values()):
            tracker.maybe_tick()

    def shutdown(self) -> None:
        """Close every open session, e.g. on process exit"""
        for user_id in list(self._trackers):
            self.dispose(user_id)
        if isinstance(self.dispatch, SessionWriter):
            self.dispatch.drain()
        logger.info("Study trackers shut down")

    @property
    def tracker_count(self) -> int:
        return len(self._trackers)

    @property
    def timer_count(self) -> int:
        return len(self._timers)

    def _new_tracker(self, user_id: UUID) -> StudyTimeTracker:
        return StudyTimeTracker(
            user_id,
            self.store,
            self.cache,
            clock=self.clock,
            dispatch=self.dispatch,
            achievements=self.achievements
        )

    def _new_timer(self, user_id: UUID) -> CountdownTimer:
        return CountdownTimer(user_id, self.store, clock=self.clock)


# Global instance
tracker_registry = TrackerRegistry(
    SqlPersistence(SessionLocal),
    cache_service,
    achievements=achievement_service,
    dispatch=SessionWriter()
)
