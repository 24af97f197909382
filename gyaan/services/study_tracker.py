"""
Study-time tracker

Measures month-to-date time on page for one user. Lifecycle signals from the
client (visibility, unload, explicit stop) drive an explicit state machine:

    Idle --start()--> Tracking --stop()--> Idle
                      Tracking --pause()/resume()--> Tracking (paused)

Completed intervals are written to the store as ``page_presence`` sessions.
A per-user cache entry keeps the running total and any open session so a
reload or crash inside the same month loses nothing.
"""
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from gyaan.config import settings
from gyaan.services.achievement_service import AchievementService
from gyaan.services.persistence import (
    PersistenceReadFailure,
    PersistenceWriteFailure,
    SqlPersistence,
)
from gyaan.utils.cache import CacheService
from gyaan.utils.clock import (
    Clock,
    format_hours_minutes,
    local_now,
    month_start,
    parse_iso,
    same_month,
)

logger = logging.getLogger(__name__)

Dispatch = Callable[..., Any]


class TrackerState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"


class StudyTimeTracker:
    """
    Month-to-date study time for one user

    Args:
        user_id: Tracked user
        store: Persistence client for study sessions
        cache: Key/value cache holding the running total
        clock: Returns the current time; its timezone defines calendar months
        tick_seconds: Interval for maybe_tick()
        dispatch: Runs session writes; ``dispatch(fn, *args)``. Defaults to
            calling ``fn`` inline.
        achievements: Evaluated after each successful session write
    """

    STUDY_TYPE = "page_presence"

    def __init__(
        self,
        user_id: UUID,
        store: SqlPersistence,
        cache: CacheService,
        clock: Clock = local_now,
        tick_seconds: Optional[int] = None,
        dispatch: Optional[Dispatch] = None,
        achievements: Optional[AchievementService] = None
    ):
        self.user_id = user_id
        self.store = store
        self.cache = cache
        self.clock = clock
        self.tick_seconds = tick_seconds or settings.TRACKER_TICK_SECONDS
        self.dispatch = dispatch
        self.achievements = achievements

        self._base_total = 0.0  # seconds from completed sessions this month
        self._month: Optional[tuple] = None
        self._session_start: Optional[datetime] = None
        self._segment_start: Optional[datetime] = None  # None while paused
        self._active_seconds = 0.0  # banked before the current segment
        self._last_tick: Optional[datetime] = None
        self._mounted = False

    # ========== State ==========

    @property
    def state(self) -> TrackerState:
        return TrackerState.TRACKING if self._session_start is not None else TrackerState.IDLE

    @property
    def is_tracking(self) -> bool:
        return self._session_start is not None

    @property
    def is_paused(self) -> bool:
        return self._session_start is not None and self._segment_start is None

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    @property
    def base_total_seconds(self) -> float:
        return self._base_total

    def total_seconds(self, now: Optional[datetime] = None) -> float:
        """Completed total plus the active part of the open session"""
        now = now or self.clock()
        return self._base_total + self._open_active_seconds(now)

    @property
    def formatted_time(self) -> str:
        return format_hours_minutes(self.total_seconds())

    def snapshot(self) -> Dict[str, Any]:
        now = self.clock()
        total = self.total_seconds(now)
        return {
            "user_id": str(self.user_id),
            "state": self.state.value,
            "is_tracking": self.is_tracking,
            "is_paused": self.is_paused,
            "session_start": self._session_start.isoformat() if self._session_start else None,
            "base_total_seconds": int(self._base_total),
            "total_seconds": int(total),
            "formatted_time": format_hours_minutes(total),
        }

    # ========== Lifecycle ==========

    def mount(self, visible: bool = True) -> None:
        """
        Seed the running total and start tracking if the page is visible

        The remote total is authoritative but a cached total from the current
        month wins when larger, since it may hold sessions whose write failed.
        A cached open session is resumed rather than dropped.
        """
        self._mounted = True
        now = self.clock()
        remote_total = self._load_remote_total(now)

        self._month = (now.year, now.month)
        base_total = remote_total
        resumed = False

        entry = self._read_cache_entry(now)
        if entry is not None:
            base_total = max(base_total, entry.get("total_millis", 0) / 1000)
            if entry.get("open_session_start") and self._session_start is None:
                resumed = self._restore_open_session(entry)

        self._base_total = base_total
        self._save_cache(now)

        if resumed:
            logger.info(f"Resumed open study session for {self.user_id} from {self._session_start.isoformat()}")
        elif visible:
            self.start()

    def start(self) -> bool:
        """Open a session; no-op when one is already open or not mounted"""
        if not self._mounted or self._session_start is not None:
            return False

        now = self.clock()
        self._rollover(now)
        self._session_start = now
        self._segment_start = now
        self._active_seconds = 0.0
        self._last_tick = now
        self._save_cache(now)

        logger.debug(f"Study tracking started for {self.user_id}")
        return True

    def pause(self) -> bool:
        """Stop accumulating without closing the session"""
        if self._session_start is None or self._segment_start is None:
            return False

        now = self.clock()
        self._active_seconds += _elapsed(self._segment_start, now)
        self._segment_start = None
        self._save_cache(now)
        return True

    def resume(self) -> bool:
        """Continue a paused session"""
        if self._session_start is None or self._segment_start is not None:
            return False

        now = self.clock()
        self._segment_start = now
        self._save_cache(now)
        return True

    def stop(self) -> Optional[int]:
        """
        Close the open session and flush it to the store

        Idempotent: without an open session nothing changes.

        Returns:
            Recorded duration in seconds, or None if no session was open
        """
        if self._session_start is None:
            return None

        now = self.clock()
        duration = round(self._open_active_seconds(now))
        session_start = self._session_start

        self._rollover(now)
        self._base_total += duration
        self._session_start = None
        self._segment_start = None
        self._active_seconds = 0.0
        self._save_cache(now)

        logger.info(f"Study session closed for {self.user_id}: {duration}s")

        if duration > 0:
            record = {
                "user_id": self.user_id,
                "start_time": session_start,
                "end_time": now,
                "duration": duration,
                "study_type": self.STUDY_TYPE,
            }
            if self.dispatch is not None:
                self.dispatch(self._flush, record)
            else:
                self._flush(record)

        return duration

    def on_visibility_change(self, hidden: bool) -> None:
        if hidden:
            self.stop()
        elif self._session_start is None:
            self.start()

    def on_unload(self) -> None:
        self.stop()

    def tick(self) -> float:
        """
        Refresh the cached total while tracking

        Returns:
            Displayed total in seconds
        """
        now = self.clock()
        if self._session_start is not None and self._mounted:
            self._rollover(now)
            self._last_tick = now
            self._save_cache(now)
        return self.total_seconds(now)

    def maybe_tick(self) -> bool:
        """Tick if tick_seconds have passed since the last tick"""
        if self._session_start is None or self._last_tick is None:
            return False
        if _elapsed(self._last_tick, self.clock()) < self.tick_seconds:
            return False
        self.tick()
        return True

    def dispose(self) -> None:
        """Stop and detach; later cache writes and starts are ignored"""
        self.stop()
        self._mounted = False

    # ========== Internals ==========

    def _open_active_seconds(self, now: datetime) -> float:
        if self._session_start is None:
            return 0.0
        active = self._active_seconds
        if self._segment_start is not None:
            active += _elapsed(self._segment_start, now)
        return active

    def _rollover(self, now: datetime) -> None:
        """Reset the completed total when a new calendar month begins"""
        current = (now.year, now.month)
        if self._month is not None and self._month != current:
            logger.info(f"New reporting month for {self.user_id}; resetting study total")
            self._base_total = 0.0
        self._month = current

    def _load_remote_total(self, now: datetime) -> float:
        try:
            sessions = self.store.list_sessions(self.user_id, since=month_start(now))
        except PersistenceReadFailure as e:
            logger.warning(f"Could not load study sessions for {self.user_id}: {str(e)}")
            return 0.0
        return float(sum(s.duration or 0 for s in sessions))

    def _read_cache_entry(self, now: datetime) -> Optional[Dict[str, Any]]:
        entry = self.cache.get(self.cache.study_time_key(self.user_id))
        if not isinstance(entry, dict) or not entry.get("last_updated"):
            return None

        try:
            last_updated = parse_iso(entry["last_updated"])
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed study-time cache entry for {self.user_id}")
            return None

        if not same_month(last_updated, now):
            return None
        return entry

    def _restore_open_session(self, entry: Dict[str, Any]) -> bool:
        try:
            session_start = parse_iso(entry["open_session_start"])
            segment_raw = entry.get("open_segment_start", entry["open_session_start"])
            segment_start = parse_iso(segment_raw) if segment_raw else None
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed open session for {self.user_id}")
            return False

        self._session_start = session_start
        self._segment_start = segment_start
        self._active_seconds = entry.get("open_active_millis", 0) / 1000
        self._last_tick = self.clock()
        return True

    def _save_cache(self, now: datetime) -> None:
        if not self._mounted:
            return

        entry: Dict[str, Any] = {
            "total_millis": int(self._base_total * 1000),
            "last_updated": now.isoformat(),
        }
        if self._session_start is not None:
            entry["open_session_start"] = self._session_start.isoformat()
            entry["open_segment_start"] = (
                self._segment_start.isoformat() if self._segment_start else None
            )
            entry["open_active_millis"] = int(self._active_seconds * 1000)

        self.cache.set(
            self.cache.study_time_key(self.user_id),
            entry,
            ttl=settings.TRACKER_CACHE_TTL
        )

    def _flush(self, record: Dict[str, Any]) -> None:
        try:
            self.store.insert_session(**record)
        except PersistenceWriteFailure as e:
            logger.error(f"Failed to save study session for {self.user_id}: {str(e)}")
            return

        if self.achievements is not None:
            self.achievements.check_and_grant(
                self.store, self.user_id, record["end_time"], record["duration"]
            )


def _elapsed(start: datetime, end: datetime) -> float:
    return max((end - start).total_seconds(), 0.0)
