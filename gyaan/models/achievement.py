"""
Achievement model - badges granted for study habits
"""
from sqlalchemy import Column, String, DateTime, Uuid, UniqueConstraint, func
from gyaan.database import Base
import uuid


class Achievement(Base):
    """
    Achievements table - at most one row per (user, title)
    """
    __tablename__ = "achievements"
    __table_args__ = (UniqueConstraint("user_id", "title", name="uq_achievement_user_title"),)
    
    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(String(255))
    icon = Column(String(16))
    tier = Column(String(10))  # bronze, silver, gold
    achieved_at = Column(DateTime, server_default=func.now())
    
    def __repr__(self):
        return f"<Achievement(user_id={self.user_id}, title={self.title})>"
