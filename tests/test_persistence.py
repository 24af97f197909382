"""Tests for the SQLAlchemy persistence client."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest


def _attempt(user_id, created_at, score=70):
    return {
        "user_id": user_id,
        "chapter": "Math Algebra",
        "score": score,
        "correct_answers": 7,
        "wrong_answers": 3,
        "total_questions": 10,
        "time_taken": 120,
        "created_at": created_at,
    }


class TestQuizAttempts:
    def test_newest_first(self, store):
        user_id = uuid.uuid4()
        store.create_quiz_attempt(_attempt(user_id, datetime(2024, 1, 10, 9, 0), score=60))
        store.create_quiz_attempt(_attempt(user_id, datetime(2024, 1, 12, 9, 0), score=90))

        attempts = store.fetch_quiz_attempts(user_id)
        assert [a.score for a in attempts] == [90, 60]

    def test_since_limits_to_the_month(self, store):
        user_id = uuid.uuid4()
        store.create_quiz_attempt(_attempt(user_id, datetime(2023, 12, 31, 23, 0)))
        store.create_quiz_attempt(_attempt(user_id, datetime(2024, 1, 1, 0, 0)))
        store.create_quiz_attempt(_attempt(user_id, datetime(2024, 1, 14, 8, 0)))

        attempts = store.fetch_quiz_attempts(user_id, since=datetime(2024, 1, 1))
        assert [a.created_at for a in attempts] == [
            datetime(2024, 1, 14, 8, 0),
            datetime(2024, 1, 1, 0, 0),
        ]

    def test_since_with_offset_is_compared_in_utc(self, store):
        user_id = uuid.uuid4()
        store.create_quiz_attempt(_attempt(user_id, datetime(2023, 12, 31, 20, 0)))

        ist = timezone(timedelta(hours=5, minutes=30))
        attempts = store.fetch_quiz_attempts(user_id, since=datetime(2024, 1, 1, tzinfo=ist))
        assert len(attempts) == 1  # 2024-01-01 00:00 IST is 2023-12-31 18:30 UTC

    def test_other_users_are_excluded(self, store):
        store.create_quiz_attempt(_attempt(uuid.uuid4(), datetime(2024, 1, 10)))
        assert store.fetch_quiz_attempts(uuid.uuid4()) == []


class TestSessions:
    def test_open_and_close(self, store):
        user_id = uuid.uuid4()
        session_id = store.create_session(user_id, datetime(2024, 1, 15, 9, 0), "manual")

        session = store.close_session(session_id, datetime(2024, 1, 15, 9, 30), 1800)
        assert session.duration == 1800
        assert session.end_time == datetime(2024, 1, 15, 9, 30)

    def test_close_unknown_session(self, store):
        with pytest.raises(LookupError):
            store.close_session(uuid.uuid4(), datetime(2024, 1, 15), 10)
