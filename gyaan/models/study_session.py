"""
StudySession model - one row per contiguous interval of tracked study time
"""
from sqlalchemy import Column, String, Integer, DateTime, Uuid
from gyaan.database import Base
import uuid


class StudySession(Base):
    """
    Study sessions table - open while end_time is NULL
    """
    __tablename__ = "study_sessions"
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime)
    duration = Column(Integer)  # seconds, set on close
    study_type = Column(String(50), nullable=False, default="page_presence")
    subject = Column(String(50))
    
    def __repr__(self):
        return f"<StudySession(user_id={self.user_id}, type={self.study_type}, duration={self.duration})>"
