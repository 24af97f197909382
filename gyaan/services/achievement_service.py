"""
Achievement service - grants study-habit badges after a session closes
"""
import logging
from datetime import datetime, timedelta
from typing import List
from uuid import UUID

from gyaan.services.persistence import FetchError, PersistenceWriteFailure, SqlPersistence
from gyaan.utils.clock import local_date

logger = logging.getLogger(__name__)


ACHIEVEMENTS = {
    "First Study Session": {
        "description": "Completed your first study session!",
        "icon": "🎉",
        "tier": "bronze",
    },
    "1 Hour Club": {
        "description": "Studied for 1 hour in total!",
        "icon": "⏰",
        "tier": "silver",
    },
    "3-Day Streak": {
        "description": "Studied 3 days in a row!",
        "icon": "🔥",
        "tier": "silver",
    },
    "Night Owl": {
        "description": "Studied between 12AM and 3AM!",
        "icon": "🦉",
        "tier": "bronze",
    },
    "Marathon Study": {
        "description": "Studied for 2+ hours in one session!",
        "icon": "🏃",
        "tier": "gold",
    },
    "Weekend Warrior": {
        "description": "Studied on a weekend!",
        "icon": "💪",
        "tier": "bronze",
    },
}


class AchievementService:
    """
    Service for evaluating achievement rules

    Rules:
    - First Study Session: the user has exactly one session
    - 1 Hour Club: 60+ minutes across all sessions
    - 3-Day Streak: sessions on 3 consecutive calendar days
    - Night Owl: session ended between 00:00 and 02:59
    - Marathon Study: a single session of 2+ hours
    - Weekend Warrior: session ended on a Saturday or Sunday
    """

    ONE_HOUR_SECONDS = 3600
    MARATHON_SECONDS = 7200
    STREAK_DAYS = 3

    def check_and_grant(
        self,
        store: SqlPersistence,
        user_id: UUID,
        session_end: datetime,
        session_duration: int
    ) -> List[str]:
        """
        Grant every achievement the user newly qualifies for

        Args:
            store: Persistence client
            user_id: User UUID
            session_end: End of the session that just closed (local time)
            session_duration: Its duration in seconds

        Returns:
            Titles granted by this call; errors are logged, never raised
        """
        granted: List[str] = []

        try:
            sessions = store.list_sessions(user_id)
            earned = self._qualifying_titles(sessions, session_end, session_duration)

            for title in earned:
                if store.has_achievement(user_id, title):
                    continue
                details = ACHIEVEMENTS[title]
                store.grant_achievement(
                    user_id,
                    title,
                    details["description"],
                    details["icon"],
                    details["tier"],
                    achieved_at=session_end
                )
                granted.append(title)
        except (FetchError, PersistenceWriteFailure) as e:
            logger.error(f"Achievement check failed for {user_id}: {str(e)}")

        if granted:
            logger.info(f"Granted achievements to {user_id}: {granted}")
        return granted

    def _qualifying_titles(self, sessions, session_end: datetime, session_duration: int) -> List[str]:
        titles = []

        if len(sessions) == 1:
            titles.append("First Study Session")

        if sum(s.duration or 0 for s in sessions) >= self.ONE_HOUR_SECONDS:
            titles.append("1 Hour Club")

        days = sorted({local_date(s.start_time, session_end) for s in sessions if s.start_time})
        if self._longest_run(days) >= self.STREAK_DAYS:
            titles.append("3-Day Streak")

        if 0 <= session_end.hour < 3:
            titles.append("Night Owl")

        if session_duration >= self.MARATHON_SECONDS:
            titles.append("Marathon Study")

        if session_end.weekday() >= 5:
            titles.append("Weekend Warrior")

        return titles

    def _longest_run(self, days) -> int:
        longest = 0
        run = 0
        previous = None
        for day in days:
            run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
            longest = max(longest, run)
            previous = day
        return longest


# Global instance
achievement_service = AchievementService()
