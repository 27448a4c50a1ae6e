"""Feedback service layer for business logic"""
import logging
from datetime import datetime
from typing import Callable, Optional

from app.access.guard import AuthorizationGuard, Operation
from app.audit.models import AuditAction
from app.audit.trail import AuditEntry, AuditTrail
from app.auth.models import Actor
from app.feedback.models import SessionFeedback
from app.feedback.repository import FeedbackRepository
from app.sessions.exceptions import SessionNotFoundException
from app.sessions.repository import SessionRepository
from app.utils.post_commit import PostCommitHooks
from app.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class FeedbackService:
    """Service layer for feedback business logic"""

    def __init__(
        self,
        repository: FeedbackRepository,
        sessions: SessionRepository,
        guard: AuthorizationGuard,
        audit: AuditTrail,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.sessions = sessions
        self.guard = guard
        self.audit = audit
        self.clock = clock

    async def submit_feedback(
        self,
        actor: Actor,
        session_id: str,
        rating: int,
        comments: Optional[str] = None,
    ) -> SessionFeedback:
        """
        Rate a session.

        Business rules:
        - Only the patient on the session can submit feedback
        - One feedback per session; submitting again replaces it
        - Rating: 1 (very dissatisfied) to 5 (very satisfied)
        """
        session = await self.sessions.get_by_id(session_id)
        if not session:
            raise SessionNotFoundException(session_id)
        await self.guard.authorize(actor, Operation.SUBMIT_FEEDBACK, session.patient_id, session.operator_id)

        feedback = await self.repository.upsert(session_id, rating, comments, self.clock())
        logger.info(f"Feedback for session {session_id} submitted by {actor.user_id} (rating={rating})")

        hooks = PostCommitHooks()
        hooks.add(
            "audit:CREATE",
            self.audit.record,
            AuditEntry.for_actor(actor, AuditAction.CREATE, "SessionFeedback", feedback.id,
                                 session_id=session_id, rating=rating),
        )
        await hooks.run()
        return feedback

    async def get_feedback(self, actor: Actor, session_id: str) -> Optional[SessionFeedback]:
        """Get the feedback of a session the actor may view, or None"""
        session = await self.sessions.get_by_id(session_id)
        if not session:
            raise SessionNotFoundException(session_id)
        await self.guard.authorize(actor, Operation.VIEW_FEEDBACK, session.patient_id, session.operator_id)
        return await self.repository.get_by_session_id(session_id)
