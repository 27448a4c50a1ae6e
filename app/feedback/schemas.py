"""Feedback Pydantic schemas"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class SubmitFeedbackRequest(BaseModel):
    """Request to rate a session"""
    rating: int = Field(..., ge=1, le=5, description="Star rating from 1 to 5")
    comments: Optional[str] = Field(None, description="Optional text feedback from patient")


class FeedbackResponse(BaseModel):
    """Feedback response"""
    id: str
    session_id: str
    rating: int
    comments: Optional[str] = None
    satisfaction_level: str
    submitted_at: datetime


class SessionFeedbackResponse(BaseModel):
    """Feedback of a session, null when the patient has not rated it yet"""
    feedback: Optional[FeedbackResponse] = None
