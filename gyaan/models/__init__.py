"""
Database models package
"""
from gyaan.models.quiz_attempt import QuizAttempt
from gyaan.models.study_session import StudySession
from gyaan.models.achievement import Achievement

__all__ = ["QuizAttempt", "StudySession", "Achievement"]
