"""Feedback repository for database operations"""
from datetime import datetime
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from app.db.repository import BaseRepository
from app.feedback.models import SessionFeedback
from app.sessions.models import Session


class FeedbackRepository(BaseRepository):
    """Repository for feedback database operations"""

    async def get_by_session_id(self, session_id: str) -> Optional[SessionFeedback]:
        """Get feedback for a session"""
        stmt = select(SessionFeedback).where(
            SessionFeedback.session_id == session_id
        ).execution_options(populate_existing=True)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(self, session_id: str, rating: int, comments: Optional[str], now: datetime) -> SessionFeedback:
        """Create or replace the session's feedback and flag the session, in one transaction"""
        try:
            feedback = await self.get_by_session_id(session_id)
            if feedback is None:
                feedback = SessionFeedback(session_id=session_id)
                self.db.add(feedback)
            feedback.rating = rating
            feedback.comments = comments
            feedback.submitted_at = now

            await self._execute(
                update(Session)
                .where(Session.id == session_id)
                .values(feedback_submitted=True)
                .execution_options(synchronize_session=False)
            )
            await self._commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise
        self._mirror(Session, session_id, {"feedback_submitted": True})
        return feedback
