"""
Pydantic schemas for quiz result requests and responses
"""
from pydantic import BaseModel, Field, model_validator
from typing import Optional
from uuid import UUID
from datetime import datetime


class QuizResultCreate(BaseModel):
    """Schema for recording a completed quiz"""
    user_id: UUID
    subject: Optional[str] = Field(None, max_length=50, description="Subject name")
    chapter: Optional[str] = Field(None, max_length=255, description="Chapter label, e.g. 'Math Algebra'")
    score: int = Field(..., ge=0, le=100, description="Score percentage")
    correct_answers: int = Field(0, ge=0)
    wrong_answers: int = Field(0, ge=0)
    total_questions: int = Field(0, ge=0)
    time_taken: int = Field(0, ge=0, description="Time taken in seconds")
    created_at: Optional[datetime] = None

    @model_validator(mode="after")
    def check_answer_counts(self):
        if self.correct_answers + self.wrong_answers > self.total_questions:
            raise ValueError("correct_answers + wrong_answers cannot exceed total_questions")
        return self


class QuizResultResponse(BaseModel):
    """Stored quiz result"""
    id: UUID
    user_id: UUID
    subject: Optional[str] = None
    chapter: Optional[str] = None
    score: int
    correct_answers: int
    wrong_answers: int
    total_questions: int
    time_taken: int
    created_at: datetime

    class Config:
        from_attributes = True
