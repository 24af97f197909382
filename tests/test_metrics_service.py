"""Unit tests for the dashboard metrics aggregator."""

import uuid
from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from gyaan.models import QuizAttempt
from gyaan.services.metrics_service import MetricsService, subject_of
from gyaan.services.persistence import FetchError, PersistenceReadFailure


USER_ID = uuid.uuid4()
NOW = datetime(2024, 1, 15, 10, 0, 0)


def _attempt(
    created_at: datetime,
    score: int = 0,
    chapter: str | None = None,
    subject: str | None = None,
    total: int = 0,
    correct: int = 0,
    wrong: int = 0,
) -> QuizAttempt:
    return QuizAttempt(
        id=uuid.uuid4(),
        user_id=USER_ID,
        subject=subject,
        chapter=chapter,
        score=score,
        correct_answers=correct,
        wrong_answers=wrong,
        total_questions=total,
        time_taken=60,
        created_at=created_at,
    )


@pytest.fixture
def service(cache):
    return MetricsService(cache=cache)


# ── Counts ─────────────────────────────────────────────────────────────────────


class TestQuizCounts:
    def test_empty_history_is_all_zero(self, service):
        assert service.compute_quiz_counts([]) == {
            "count": 0,
            "total_questions": 0,
            "total_correct": 0,
            "total_wrong": 0,
        }

    def test_sums_every_attempt(self, service):
        attempts = [
            _attempt(NOW, total=10, correct=7, wrong=3),
            _attempt(NOW, total=20, correct=15, wrong=4),
        ]
        counts = service.compute_quiz_counts(attempts)
        assert counts == {"count": 2, "total_questions": 30, "total_correct": 22, "total_wrong": 7}


# ── Weekly progress ────────────────────────────────────────────────────────────


class TestWeeklyProgress:
    def test_empty_history_gives_seven_zeros(self, service):
        assert service.compute_weekly_progress([], NOW) == [0] * 7

    def test_oldest_day_first_with_rounded_averages(self, service):
        attempts = [
            _attempt(datetime(2024, 1, 15, 9, 0), score=80),
            _attempt(datetime(2024, 1, 15, 8, 0), score=91),
            _attempt(datetime(2024, 1, 9, 12, 0), score=60),
            _attempt(datetime(2024, 1, 8, 12, 0), score=100),  # outside the window
        ]
        assert service.compute_weekly_progress(attempts, NOW) == [60, 0, 0, 0, 0, 0, 86]

    def test_uses_calendar_days_not_rolling_hours(self, service):
        # 23:30 yesterday is only 10.5 hours before NOW but belongs to yesterday
        attempts = [_attempt(datetime(2024, 1, 14, 23, 30), score=70)]
        assert service.compute_weekly_progress(attempts, NOW) == [0, 0, 0, 0, 0, 70, 0]

    def test_values_stay_in_percentage_range(self, service):
        attempts = [_attempt(datetime(2024, 1, d, 10, 0), score=s) for d, s in [(10, 0), (11, 100), (12, 55)]]
        week = service.compute_weekly_progress(attempts, NOW)
        assert len(week) == 7
        assert all(0 <= v <= 100 for v in week)
        assert sum(1 for v in week if v > 0) <= len(attempts)

    def test_stored_utc_timestamps_are_bucketed_in_local_time(self, service):
        ist = ZoneInfo("Asia/Kolkata")
        now = datetime(2024, 1, 15, 1, 0, tzinfo=ist)
        # 20:00 UTC on the 14th is 01:30 IST on the 15th
        attempts = [_attempt(datetime(2024, 1, 14, 20, 0), score=90)]
        assert service.compute_weekly_progress(attempts, now)[-1] == 90


# ── Subject progress ───────────────────────────────────────────────────────────


class TestSubjectProgress:
    def test_chapters_of_one_subject_are_grouped(self, service):
        attempts = [
            _attempt(NOW, score=80, chapter="Math Algebra"),
            _attempt(NOW, score=90, chapter="Math Geometry"),
        ]
        assert service.compute_subject_progress(attempts) == [
            {"subject": "Math", "progress": 85, "color": "bg-blue-500"}
        ]

    def test_first_seen_order_is_kept(self, service):
        attempts = [
            _attempt(NOW, score=70, chapter="Science Physics"),
            _attempt(NOW, score=60, chapter="Math Algebra"),
            _attempt(NOW, score=90, chapter="Science Chemistry"),
        ]
        progress = service.compute_subject_progress(attempts)
        assert [p["subject"] for p in progress] == ["Science", "Math"]
        assert progress[0]["progress"] == 80
        assert progress[1]["color"] == "bg-green-500"

    def test_attempts_without_subject_are_excluded(self, service):
        attempts = [
            _attempt(NOW, score=40),
            _attempt(NOW, score=100, chapter="History Revolt"),
        ]
        assert service.compute_subject_progress(attempts) == [
            {"subject": "History", "progress": 100, "color": "bg-blue-500"}
        ]
        assert service.compute_quiz_counts(attempts)["count"] == 2

    def test_subject_of_handles_separators_and_explicit_subject(self):
        assert subject_of(_attempt(NOW, chapter="Science-Physics")) == "Science"
        assert subject_of(_attempt(NOW, chapter="  Math   Algebra")) == "Math"
        assert subject_of(_attempt(NOW, chapter="Grammar Tenses", subject="English")) == "English"
        assert subject_of(_attempt(NOW, chapter="   ")) is None


# ── Streak ─────────────────────────────────────────────────────────────────────


class TestStreak:
    def test_no_history_is_zero(self, service):
        assert service.compute_streak([], NOW) == 0

    def test_three_consecutive_days_ending_today(self, service):
        attempts = [_attempt(datetime(2024, 1, d, 9, 0)) for d in (13, 14, 15)]
        assert service.compute_streak(attempts, NOW) == 3

    def test_broken_streak_resets_to_one(self, service):
        attempts = [_attempt(datetime(2024, 1, d, 9, 0)) for d in (13, 14, 15)]
        assert service.compute_streak(attempts, datetime(2024, 1, 17, 9, 0)) == 1

    def test_counting_stops_at_first_gap(self, service):
        attempts = [_attempt(datetime(2024, 1, d, 9, 0)) for d in (10, 11, 13, 14, 15)]
        assert service.compute_streak(attempts, NOW) == 3

    def test_several_attempts_on_one_day_count_once(self, service):
        attempts = [
            _attempt(datetime(2024, 1, 15, 8, 0)),
            _attempt(datetime(2024, 1, 15, 9, 0)),
            _attempt(datetime(2024, 1, 14, 9, 0)),
        ]
        assert service.compute_streak(attempts, NOW) == 2


# ── Strongest / weakest ────────────────────────────────────────────────────────


class TestStrongestAndWeakest:
    def test_no_subjects(self, service):
        assert service.compute_strongest_and_weakest([]) == ("", "")

    def test_highest_and_lowest_average(self, service):
        progress = [
            {"subject": "Math", "progress": 70, "color": ""},
            {"subject": "Science", "progress": 92, "color": ""},
            {"subject": "Hindi", "progress": 55, "color": ""},
        ]
        assert service.compute_strongest_and_weakest(progress) == ("Science", "Hindi")

    def test_ties_go_to_first_seen(self, service):
        progress = [
            {"subject": "Math", "progress": 80, "color": ""},
            {"subject": "Science", "progress": 80, "color": ""},
        ]
        assert service.compute_strongest_and_weakest(progress) == ("Math", "Math")


# ── Deltas ─────────────────────────────────────────────────────────────────────


class TestDeltas:
    def test_week_over_week_and_day_over_day(self, service):
        attempts = [
            _attempt(datetime(2024, 1, 15, 8, 0), total=10),
            _attempt(datetime(2024, 1, 15, 9, 0), total=5),
            _attempt(datetime(2024, 1, 14, 9, 0), total=20),
            _attempt(datetime(2024, 1, 9, 9, 0), total=10),   # 6 days ago, this week
            _attempt(datetime(2024, 1, 8, 9, 0), total=10),   # 7 days ago, last week
            _attempt(datetime(2024, 1, 1, 9, 0), total=10),   # 14 days ago, ignored
        ]
        assert service.compute_deltas(attempts, NOW) == {
            "quizzes_delta_last_week": 3,
            "questions_delta_yesterday": -5,
        }

    def test_empty_history(self, service):
        assert service.compute_deltas([], NOW) == {
            "quizzes_delta_last_week": 0,
            "questions_delta_yesterday": 0,
        }


# ── Full snapshot ──────────────────────────────────────────────────────────────


class TestComputeMetrics:
    def _history(self):
        return [
            _attempt(datetime(2024, 1, 15, 9, 0), score=90, chapter="Math Geometry", total=10, correct=9, wrong=1),
            _attempt(datetime(2024, 1, 14, 9, 0), score=80, chapter="Math Algebra", total=10, correct=8, wrong=2),
            _attempt(datetime(2024, 1, 13, 9, 0), score=50, chapter="Science Physics", total=10, correct=5, wrong=5),
            _attempt(datetime(2024, 1, 12, 9, 0), score=61, chapter="Math Algebra", total=10, correct=6, wrong=4),
            _attempt(datetime(2024, 1, 5, 9, 0), score=70, total=5, correct=3, wrong=2),
        ]

    def test_snapshot_fields(self, service):
        metrics = service.compute_metrics(self._history(), NOW, total_study_seconds=3900)

        assert metrics["quizzes_attempted"] == 5
        assert metrics["total_questions"] == 45
        assert metrics["current_streak"] == 4
        assert len(metrics["recent_quizzes"]) == 4
        assert metrics["recent_quizzes"][0]["subject"] == "Math"
        assert metrics["recent_quizzes"][0]["date"] == "2024-01-15"

        stats = metrics["overall_stats"]
        assert stats["average_score"] == 70
        assert stats["total_study_time"] == "1h 5m"
        assert stats["strongest_subject"] == "Math"
        assert stats["improvement_needed"] == "Science"
        assert stats["chapters_completed"] == ["Math Geometry", "Math Algebra", "Science Physics"]
        assert stats["active_days"] == ["2024-01-05", "2024-01-12", "2024-01-13", "2024-01-14", "2024-01-15"]
        assert stats["total_correct"] == 31
        assert stats["total_wrong"] == 14

    def test_same_input_same_output(self, service):
        history = self._history()
        assert service.compute_metrics(history, NOW) == service.compute_metrics(history, NOW)

    def test_empty_history_degrades_to_zeros(self, service):
        metrics = service.compute_metrics([], NOW)
        assert metrics["quizzes_attempted"] == 0
        assert metrics["current_streak"] == 0
        assert metrics["weekly_progress"] == [0] * 7
        assert metrics["subject_progress"] == []
        assert metrics["overall_stats"]["strongest_subject"] == ""
        assert metrics["overall_stats"]["total_study_time"] == "0h 0m"


# ── Fetch + cache ──────────────────────────────────────────────────────────────


class TestGetUserMetrics:
    def _store(self, attempts):
        store = MagicMock()
        store.fetch_quiz_attempts.return_value = attempts
        store.list_sessions.return_value = [MagicMock(duration=1800), MagicMock(duration=None)]
        return store

    def test_snapshot_is_cached_until_refresh(self, service):
        store = self._store([_attempt(NOW, score=75, chapter="Math Algebra")])

        first = service.get_user_metrics(store, USER_ID, NOW)
        second = service.get_user_metrics(store, USER_ID, NOW)
        assert first == second
        assert store.fetch_quiz_attempts.call_count == 1
        assert first["overall_stats"]["total_study_time"] == "0h 30m"
        assert first["user_id"] == str(USER_ID)

        store.fetch_quiz_attempts.return_value = []
        refreshed = service.get_user_metrics(store, USER_ID, NOW, refresh=True)
        assert refreshed["quizzes_attempted"] == 0
        assert store.fetch_quiz_attempts.call_count == 2
        # The refresh overwrote the cached snapshot
        assert service.get_user_metrics(store, USER_ID, NOW)["quizzes_attempted"] == 0

    def test_fetch_failure_propagates(self, service):
        store = MagicMock()
        store.fetch_quiz_attempts.side_effect = FetchError("store down")
        with pytest.raises(FetchError):
            service.get_user_metrics(store, USER_ID, NOW, refresh=True)

    def test_study_time_failure_is_tolerated(self, service):
        store = self._store([])
        store.list_sessions.side_effect = PersistenceReadFailure("sessions down")
        metrics = service.get_user_metrics(store, USER_ID, NOW, refresh=True)
        assert metrics["overall_stats"]["total_study_time"] == "0h 0m"
