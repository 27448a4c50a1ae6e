"""Feedback database models"""
from app.utils.timezone import utcnow
from sqlalchemy import Column, String, DateTime, Integer, Text, ForeignKey
from app.db.base import Base
from app.db.models import new_id


class SessionFeedback(Base):
    """Patient rating of a session (one per session)"""
    __tablename__ = "session_feedback"

    id = Column(String(36), primary_key=True, default=new_id)
    session_id = Column(String(36), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)
    rating = Column(Integer, nullable=False)  # 1..5
    comments = Column(Text, nullable=True)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
