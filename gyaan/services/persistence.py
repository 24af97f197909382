"""
Persistence client for quiz results, study sessions and achievements

The aggregator and the tracker receive an instance of this client instead of
reaching for a module-level database handle, so tests can pass a fake.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gyaan.models import Achievement, QuizAttempt, StudySession
from gyaan.utils.clock import to_utc_naive

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Reading from the store failed; callers may offer a retry"""


class PersistenceReadFailure(FetchError):
    """Reading study sessions failed"""


class PersistenceWriteFailure(Exception):
    """Writing to the store failed"""


class SqlPersistence:
    """
    Store client backed by SQLAlchemy

    Every call opens its own session, mirroring a request to a hosted store.
    Rows returned by read methods are detached but fully loaded.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    # ========== Quiz results ==========

    def fetch_quiz_attempts(
        self,
        user_id: UUID,
        since: Optional[datetime] = None
    ) -> List[QuizAttempt]:
        """
        Fetch a user's quiz attempts, newest first

        Args:
            user_id: Owner of the attempts
            since: Only return attempts created at or after this time

        Raises:
            FetchError: the store could not be read
        """
        stmt = select(QuizAttempt).where(QuizAttempt.user_id == user_id)
        if since is not None:
            stmt = stmt.where(QuizAttempt.created_at >= to_utc_naive(since))
        stmt = stmt.order_by(QuizAttempt.created_at.desc())

        try:
            with self.session_factory() as db:
                return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch quiz attempts for {user_id}: {str(e)}")
            raise FetchError(f"Failed to fetch quiz attempts: {str(e)}") from e

    def create_quiz_attempt(self, data: Dict[str, Any]) -> QuizAttempt:
        """Append one quiz attempt"""
        attempt = QuizAttempt(**data)
        if attempt.created_at is not None:
            attempt.created_at = to_utc_naive(attempt.created_at)

        try:
            with self.session_factory() as db:
                db.add(attempt)
                db.commit()
                db.refresh(attempt)
                db.expunge(attempt)
                return attempt
        except SQLAlchemyError as e:
            logger.error(f"Failed to store quiz attempt: {str(e)}")
            raise PersistenceWriteFailure(f"Failed to store quiz attempt: {str(e)}") from e

    # ========== Study sessions ==========

    def create_session(
        self,
        user_id: UUID,
        start_time: datetime,
        study_type: str,
        subject: Optional[str] = None
    ) -> UUID:
        """Open a session and return its identifier"""
        session = StudySession(
            user_id=user_id,
            start_time=to_utc_naive(start_time),
            study_type=study_type,
            subject=subject
        )
        return self._write_session(session)

    def close_session(self, session_id: UUID, end_time: datetime, duration: int) -> StudySession:
        """
        Close an open session

        Raises:
            LookupError: no session with this id
            PersistenceWriteFailure: the store rejected the update
        """
        try:
            with self.session_factory() as db:
                session = db.get(StudySession, session_id)
                if session is None:
                    raise LookupError(f"Study session {session_id} not found")

                session.end_time = to_utc_naive(end_time)
                session.duration = duration
                db.commit()
                db.refresh(session)
                db.expunge(session)
                return session
        except SQLAlchemyError as e:
            logger.error(f"Failed to close study session {session_id}: {str(e)}")
            raise PersistenceWriteFailure(f"Failed to close study session: {str(e)}") from e

    def insert_session(
        self,
        user_id: UUID,
        start_time: datetime,
        end_time: datetime,
        duration: int,
        study_type: str,
        subject: Optional[str] = None
    ) -> UUID:
        """Store an already completed session"""
        session = StudySession(
            user_id=user_id,
            start_time=to_utc_naive(start_time),
            end_time=to_utc_naive(end_time),
            duration=duration,
            study_type=study_type,
            subject=subject
        )
        return self._write_session(session)

    def list_sessions(
        self,
        user_id: UUID,
        since: Optional[datetime] = None
    ) -> List[StudySession]:
        """
        List a user's sessions, newest first

        Raises:
            PersistenceReadFailure: the store could not be read
        """
        stmt = select(StudySession).where(StudySession.user_id == user_id)
        if since is not None:
            stmt = stmt.where(StudySession.start_time >= to_utc_naive(since))
        stmt = stmt.order_by(StudySession.start_time.desc())

        try:
            with self.session_factory() as db:
                return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"Failed to list study sessions for {user_id}: {str(e)}")
            raise PersistenceReadFailure(f"Failed to list study sessions: {str(e)}") from e

    def _write_session(self, session: StudySession) -> UUID:
        try:
            with self.session_factory() as db:
                db.add(session)
                db.commit()
                return session.id
        except SQLAlchemyError as e:
            logger.error(f"Failed to write study session: {str(e)}")
            raise PersistenceWriteFailure(f"Failed to write study session: {str(e)}") from e

    # ========== Achievements ==========

    def has_achievement(self, user_id: UUID, title: str) -> bool:
        stmt = select(Achievement.id).where(
            Achievement.user_id == user_id,
            Achievement.title == title
        )
        try:
            with self.session_factory() as db:
                return db.scalars(stmt).first() is not None
        except SQLAlchemyError as e:
            raise FetchError(f"Failed to check achievement: {str(e)}") from e

    def grant_achievement(
        self,
        user_id: UUID,
        title: str,
        description: str,
        icon: str,
        tier: str,
        achieved_at: Optional[datetime] = None
    ) -> None:
        achievement = Achievement(
            user_id=user_id,
            title=title,
            description=description,
            icon=icon,
            tier=tier
        )
        if achieved_at is not None:
            achievement.achieved_at = to_utc_naive(achieved_at)
        try:
            with self.session_factory() as db:
                db.add(achievement)
                db.commit()
        except SQLAlchemyError as e:
            raise PersistenceWriteFailure(f"Failed to grant achievement: {str(e)}") from e

    def list_achievements(self, user_id: UUID) -> List[Achievement]:
        stmt = (
            select(Achievement)
            .where(Achievement.user_id == user_id)
            .order_by(Achievement.achieved_at.desc())
        )
        try:
            with self.session_factory() as db:
                return list(db.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise FetchError(f"Failed to list achievements: {str(e)}") from e
