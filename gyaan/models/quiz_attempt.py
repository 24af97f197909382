"""
QuizAttempt model - one row per completed quiz
"""
from sqlalchemy import Column, String, Integer, DateTime, Uuid, func
from gyaan.database import Base
import uuid


class QuizAttempt(Base):
    """
    Quiz results table - append-only log of quiz submissions
    """
    __tablename__ = "quiz_results"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    subject = Column(String(50))  # explicit subject, preferred over chapter prefix
    chapter = Column(String(255))  # "Math Algebra"
    score = Column(Integer, nullable=False, default=0)  # 0 to 100
    correct_answers = Column(Integer, nullable=False, default=0)
    wrong_answers = Column(Integer, nullable=False, default=0)
    total_questions = Column(Integer, nullable=False, default=0)
    time_taken = Column(Integer, nullable=False, default=0)  # seconds
    created_at = Column(DateTime, server_default=func.now(), index=True)
    
    def __repr__(self):
        return f"<QuizAttempt(user_id={self.user_id}, chapter={self.chapter}, score={self.score})>"
