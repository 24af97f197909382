"""
Pydantic schemas for dashboard metrics endpoints
"""
from pydantic import BaseModel
from typing import List, Optional
from uuid import UUID


class SubjectProgress(BaseModel):
    """Average score for one subject"""
    subject: str
    progress: int
    color: str


class RecentQuiz(BaseModel):
    """Summary of one recent quiz attempt"""
    id: UUID
    subject: str
    chapter: Optional[str] = None
    score: int
    date: str
    time_taken: int
    questions_correct: int
    total_questions: int


class OverallStats(BaseModel):
    """Headline statistics for the progress page"""
    total_quizzes: int
    average_score: int
    total_study_time: str
    current_streak: int
    strongest_subject: str
    improvement_needed: str
    total_questions_solved: int
    total_correct: int
    total_wrong: int
    chapters_completed: List[str]
    active_days: List[str]


class UserMetrics(BaseModel):
    """Complete dashboard metrics snapshot for a user"""
    user_id: UUID
    quizzes_attempted: int
    total_questions: int
    current_streak: int
    weekly_progress: List[int]
    subject_progress: List[SubjectProgress]
    recent_quizzes: List[RecentQuiz]
    overall_stats: OverallStats
    quizzes_delta_last_week: int
    questions_delta_yesterday: int
    computed_at: str


class QuizStats(BaseModel):
    """Lightweight quiz counters"""
    quizzes_attempted: int
    total_questions: int
