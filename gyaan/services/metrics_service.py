"""
Metrics service for dashboard and progress-page statistics

Every compute_* method is a pure function of the attempt list and an injected
``now``; only get_user_metrics talks to the store and the cache.
"""
import logging
import math
import re
from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import UUID

from gyaan.config import settings
from gyaan.models import QuizAttempt
from gyaan.services.persistence import PersistenceReadFailure, SqlPersistence
from gyaan.utils.cache import CacheService, cache_service
from gyaan.utils.clock import format_hours_minutes, local_date, month_start

logger = logging.getLogger(__name__)

SUBJECT_SEPARATOR = re.compile(r"[\s\-]+")

SUBJECT_COLORS = [
    "bg-blue-500",
    "bg-green-500",
    "bg-purple-500",
    "bg-orange-500",
    "bg-pink-500",
    "bg-yellow-500",
]

RECENT_QUIZ_LIMIT = 4


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def subject_of(attempt: QuizAttempt) -> Optional[str]:
    """
    Subject label of an attempt

    The explicit ``subject`` column wins; older rows only carry a chapter label
    such as "Math Algebra" or "Science-Physics", whose first token is the subject.
    """
    if attempt.subject and attempt.subject.strip():
        return attempt.subject.strip()

    chapter = (attempt.chapter or "").strip()
    if not chapter:
        return None
    return SUBJECT_SEPARATOR.split(chapter, maxsplit=1)[0]


class MetricsService:
    """Service for deriving dashboard metrics from quiz history"""

    def __init__(self, cache: CacheService = cache_service):
        self.cache = cache

    def compute_quiz_counts(self, attempts: List[QuizAttempt]) -> Dict[str, int]:
        """Totals over the full attempt history"""
        return {
            "count": len(attempts),
            "total_questions": sum(a.total_questions or 0 for a in attempts),
            "total_correct": sum(a.correct_answers or 0 for a in attempts),
            "total_wrong": sum(a.wrong_answers or 0 for a in attempts),
        }

    def compute_weekly_progress(self, attempts: List[QuizAttempt], now: datetime) -> List[int]:
        """
        Average score per calendar day for the 7 days ending today

        Returns:
            Seven integers, oldest day first; 0 for days without attempts
        """
        by_day = self._scores_by_day(attempts, now)
        today = now.date()

        week = []
        for offset in range(6, -1, -1):
            scores = by_day.get(today - timedelta(days=offset), [])
            week.append(round_half_up(sum(scores) / len(scores)) if scores else 0)
        return week

    def compute_subject_progress(self, attempts: List[QuizAttempt]) -> List[Dict[str, Any]]:
        """
        Average score per subject, in first-seen order

        Attempts without a subject are left out of the breakdown.
        """
        subject_scores: Dict[str, List[int]] = {}
        for attempt in attempts:
            subject = subject_of(attempt)
            if subject is None:
                continue
            subject_scores.setdefault(subject, []).append(attempt.score or 0)

        return [
            {
                "subject": subject,
                "progress": round_half_up(sum(scores) / len(scores)),
                "color": SUBJECT_COLORS[i % len(SUBJECT_COLORS)],
            }
            for i, (subject, scores) in enumerate(subject_scores.items())
        ]

    def compute_streak(self, attempts: List[QuizAttempt], now: datetime) -> int:
        """
        Consecutive active days ending today

        No history gives 0. A history whose latest active day is not today
        gives 1, not 0.
        """
        active_days = self._active_days(attempts, now)
        if not active_days:
            return 0

        if active_days[-1] != now.date():
            return 1

        streak = 1
        for i in range(len(active_days) - 1, 0, -1):
            if (active_days[i] - active_days[i - 1]).days != 1:
                break
            streak += 1
        return streak

    def compute_strongest_and_weakest(
        self,
        subject_progress: List[Dict[str, Any]]
    ) -> Tuple[str, str]:
        """
        Subjects with the highest and lowest average score

        Only subjects present in the breakdown (at least one attempt) take
        part; ties go to the subject seen first. Empty strings without data.
        """
        strongest, weakest = "", ""
        best: Optional[int] = None
        worst: Optional[int] = None

        for entry in subject_progress:
            if best is None or entry["progress"] > best:
                best = entry["progress"]
                strongest = entry["subject"]
            if worst is None or entry["progress"] < worst:
                worst = entry["progress"]
                weakest = entry["subject"]

        return strongest, weakest

    def compute_deltas(self, attempts: List[QuizAttempt], now: datetime) -> Dict[str, int]:
        """
        Week-over-week quiz count and day-over-day question count changes
        """
        today = now.date()
        yesterday = today - timedelta(days=1)

        quizzes_this_week = 0
        quizzes_last_week = 0
        questions_today = 0
        questions_yesterday = 0

        for attempt in attempts:
            if attempt.created_at is None:
                continue
            day = local_date(attempt.created_at, now)
            age = (today - day).days

            if 0 <= age <= 6:
                quizzes_this_week += 1
            elif 7 <= age <= 13:
                quizzes_last_week += 1

            if day == today:
                questions_today += attempt.total_questions or 0
            elif day == yesterday:
                questions_yesterday += attempt.total_questions or 0

        return {
            "quizzes_delta_last_week": quizzes_this_week - quizzes_last_week,
            "questions_delta_yesterday": questions_today - questions_yesterday,
        }

    def compute_metrics(
        self,
        attempts: List[QuizAttempt],
        now: datetime,
        total_study_seconds: int = 0
    ) -> Dict[str, Any]:
        """
        Build the full metrics snapshot

        Args:
            attempts: The user's attempts, newest first
            now: Reference time; calendar days follow its timezone
            total_study_seconds: Month-to-date study time

        Returns:
            Dictionary matching the UserMetrics schema, minus user_id
        """
        counts = self.compute_quiz_counts(attempts)
        subject_progress = self.compute_subject_progress(attempts)
        strongest, weakest = self.compute_strongest_and_weakest(subject_progress)
        streak = self.compute_streak(attempts, now)
        deltas = self.compute_deltas(attempts, now)

        average_score = (
            round_half_up(sum(a.score or 0 for a in attempts) / len(attempts))
            if attempts else 0
        )

        return {
            "quizzes_attempted": counts["count"],
            "total_questions": counts["total_questions"],
            "current_streak": streak,
            "weekly_progress": self.compute_weekly_progress(attempts, now),
            "subject_progress": subject_progress,
            "recent_quizzes": self._recent_quizzes(attempts, now),
            "overall_stats": {
                "total_quizzes": counts["count"],
                "average_score": average_score,
                "total_study_time": format_hours_minutes(total_study_seconds),
                "current_streak": streak,
                "strongest_subject": strongest,
                "improvement_needed": weakest,
                "total_questions_solved": counts["total_questions"],
                "total_correct": counts["total_correct"],
                "total_wrong": counts["total_wrong"],
                "chapters_completed": list(dict.fromkeys(a.chapter for a in attempts if a.chapter)),
                "active_days": [d.isoformat() for d in self._active_days(attempts, now)],
            },
            "quizzes_delta_last_week": deltas["quizzes_delta_last_week"],
            "questions_delta_yesterday": deltas["questions_delta_yesterday"],
            "computed_at": now.isoformat(),
        }

    def get_user_metrics(
        self,
        store: SqlPersistence,
        user_id: UUID,
        now: datetime,
        refresh: bool = False
    ) -> Dict[str, Any]:
        """
        Fetch a user's history and return their metrics snapshot

        A cached snapshot is served unless ``refresh`` is set. Refreshing always
        recomputes and overwrites the cache, so overlapping refreshes settle on
        whichever finishes last.

        Raises:
            FetchError: quiz history could not be read
        """
        key = self.cache.metrics_key(user_id)

        if not refresh:
            cached = self.cache.get(key)
            if cached:
                return cached

        attempts = store.fetch_quiz_attempts(user_id)

        try:
            sessions = store.list_sessions(user_id, since=month_start(now))
            total_study_seconds = sum(s.duration or 0 for s in sessions)
        except PersistenceReadFailure as e:
            logger.warning(f"Study time unavailable for {user_id}: {str(e)}")
            total_study_seconds = 0

        metrics = self.compute_metrics(attempts, now, total_study_seconds)
        metrics["user_id"] = str(user_id)

        self.cache.set(key, metrics, ttl=settings.METRICS_CACHE_TTL)
        logger.info(
            f"Metrics computed for {user_id}: {metrics['quizzes_attempted']} quizzes, "
            f"streak={metrics['current_streak']}"
        )
        return metrics

    def invalidate(self, user_id: UUID) -> None:
        """Drop the cached snapshot after new results arrive"""
        self.cache.delete(self.cache.metrics_key(user_id))

    def _scores_by_day(self, attempts: Iterable[QuizAttempt], now: datetime) -> Dict[date, List[int]]:
        by_day = defaultdict(list)
        for attempt in attempts:
            if attempt.created_at is not None:
                by_day[local_date(attempt.created_at, now)].append(attempt.score or 0)
        return by_day

    def _active_days(self, attempts: Iterable[QuizAttempt], now: datetime) -> List[date]:
        return sorted({
            local_date(a.created_at, now) for a in attempts if a.created_at is not None
        })

    def _recent_quizzes(self, attempts: List[QuizAttempt], now: datetime) -> List[Dict[str, Any]]:
        return [
            {
                "id": str(a.id),
                "subject": subject_of(a) or "Unknown",
                "chapter": a.chapter,
                "score": a.score or 0,
                "date": local_date(a.created_at, now).isoformat() if a.created_at else "",
                "time_taken": a.time_taken or 0,
                "questions_correct": a.correct_answers or 0,
                "total_questions": a.total_questions or 0,
            }
            for a in attempts[:RECENT_QUIZ_LIMIT]
        ]


# Global instance
metrics_service = MetricsService()
