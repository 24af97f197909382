"""
Manual countdown timer (pomodoro style)

A completed countdown is stored as one ``pomodoro_timer`` study session
whose duration is the configured countdown length.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from gyaan.config import settings
from gyaan.services.persistence import PersistenceWriteFailure, SqlPersistence
from gyaan.utils.clock import Clock, format_hms, local_now

logger = logging.getLogger(__name__)


class CountdownTimer:
    """User-configurable countdown with start/pause/resume/reset"""

    STUDY_TYPE = "pomodoro_timer"

    def __init__(
        self,
        user_id: UUID,
        store: SqlPersistence,
        clock: Clock = local_now,
        minutes: Optional[int] = None
    ):
        self.user_id = user_id
        self.store = store
        self.clock = clock

        minutes = settings.DEFAULT_TIMER_MINUTES if minutes is None else minutes
        self.hours, self.minutes = divmod(minutes, 60)
        self._initial = timedelta(minutes=minutes)
        self._remaining = self._initial
        self._running = False
        self._paused = False
        self._anchor: Optional[datetime] = None  # now - elapsed while running
        self._first_start: Optional[datetime] = None
        self.completed_sessions = 0

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def remaining_seconds(self) -> float:
        return self._remaining.total_seconds()

    @property
    def duration_minutes(self) -> int:
        return int(self._initial.total_seconds() // 60)

    @property
    def time_display(self) -> str:
        return format_hms(self._remaining.total_seconds())

    def set_duration(self, hours: int, minutes: int) -> bool:
        """
        Change the countdown length; ignored while running or paused

        Raises:
            ValueError: hours outside 0-23 or minutes outside 0-59
        """
        if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
            raise ValueError("hours must be 0-23 and minutes 0-59")
        if self._running or self._paused:
            return False

        self.hours, self.minutes = hours, minutes
        self._initial = timedelta(hours=hours, minutes=minutes)
        self._remaining = self._initial
        return True

    def start(self) -> bool:
        if self._running or self._remaining <= timedelta(0):
            return False

        now = self.clock()
        self._anchor = now - (self._initial - self._remaining)
        self._first_start = self._first_start or now
        self._running = True
        self._paused = False
        return True

    def pause(self) -> bool:
        if not self._running or self._paused:
            return False

        self._remaining = self._initial - (self.clock() - self._anchor)
        self._paused = True
        return True

    def resume(self) -> bool:
        if not self._running or not self._paused:
            return False

        self._anchor = self.clock() - (self._initial - self._remaining)
        self._paused = False
        return True

    def reset(self) -> None:
        self._running = False
        self._paused = False
        self._anchor = None
        self._first_start = None
        self._remaining = self._initial

    def tick(self) -> bool:
        """
        Advance the countdown

        Returns:
            True when this tick completed the countdown
        """
        if not self._running or self._paused:
            return False

        now = self.clock()
        self._remaining = self._initial - (now - self._anchor)
        if self._remaining > timedelta(0):
            return False

        self._complete(now)
        return True

    def snapshot(self) -> Dict[str, Any]:
        return {
            "user_id": str(self.user_id),
            "hours": self.hours,
            "minutes": self.minutes,
            "time_display": self.time_display,
            "remaining_seconds": int(self.remaining_seconds),
            "is_running": self._running,
            "is_paused": self._paused,
            "completed_sessions": self.completed_sessions,
        }

    def _complete(self, now: datetime) -> None:
        started = self._first_start or self._anchor
        self._remaining = timedelta(0)
        self._running = False
        self._paused = False
        self._anchor = None
        self._first_start = None
        self.completed_sessions += 1

        try:
            self.store.insert_session(
                user_id=self.user_id,
                start_time=started,
                end_time=now,
                duration=int(self._initial.total_seconds()),
                study_type=self.STUDY_TYPE
            )
        except PersistenceWriteFailure as e:
            logger.error(f"Failed to save timer session for {self.user_id}: {str(e)}")
            return

        logger.info(f"Countdown completed for {self.user_id}: {int(self._initial.total_seconds())}s")
