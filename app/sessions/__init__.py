from app.sessions.models import Session, SessionStatus
from app.sessions.repository import SessionRepository
from app.sessions.service import SessionLifecycleService

__all__ = ["Session", "SessionStatus", "SessionRepository", "SessionLifecycleService"]
