"""FastAPI dependency wiring.

Services are built per request around the request's DB session. Process-wide
collaborators (live connections, push transport, event publisher) are created
once and handed in explicitly.
"""
from functools import lru_cache
from typing import Optional
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.access.guard import AuthorizationGuard
from app.access.repository import AccessGrantRepository
from app.access.service import AccessGrantService
from app.audit.trail import AuditTrail
from app.db.postgres import get_db, get_session_factory
from app.feedback.repository import FeedbackRepository
from app.feedback.service import FeedbackService
from app.notifications.fanout import NotificationFanout
from app.notifications.live import LiveConnectionManager
from app.notifications.push import HttpPushTransport, PushChannel, build_push_transport
from app.sessions.event_publisher import SessionEventPublisher, build_session_event_publisher
from app.sessions.repository import SessionRepository
from app.sessions.service import SessionLifecycleService
from app.storage.files import FileStorage
from app.users.repository import UserDirectory


@lru_cache
def get_live_manager() -> LiveConnectionManager:
    return LiveConnectionManager()


@lru_cache
def get_push_transport() -> Optional[HttpPushTransport]:
    return build_push_transport()


@lru_cache
def get_event_publisher() -> Optional[SessionEventPublisher]:
    return build_session_event_publisher()


@lru_cache
def get_file_storage() -> FileStorage:
    return FileStorage()


def get_audit_trail(session_factory: async_sessionmaker = Depends(get_session_factory)) -> AuditTrail:
    return AuditTrail(session_factory)


def get_notifier(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    live: LiveConnectionManager = Depends(get_live_manager),
    transport: Optional[HttpPushTransport] = Depends(get_push_transport),
) -> NotificationFanout:
    return NotificationFanout(live, PushChannel(session_factory, transport))


def get_guard(db: AsyncSession = Depends(get_db)) -> AuthorizationGuard:
    return AuthorizationGuard(AccessGrantRepository(db))


def get_session_service(
    db: AsyncSession = Depends(get_db),
    guard: AuthorizationGuard = Depends(get_guard),
    audit: AuditTrail = Depends(get_audit_trail),
    notifier: NotificationFanout = Depends(get_notifier),
    files: FileStorage = Depends(get_file_storage),
    events: Optional[SessionEventPublisher] = Depends(get_event_publisher),
) -> SessionLifecycleService:
    return SessionLifecycleService(
        sessions=SessionRepository(db),
        guard=guard,
        users=UserDirectory(db),
        audit=audit,
        notifier=notifier,
        files=files,
        events=events,
    )


def get_feedback_service(
    db: AsyncSession = Depends(get_db),
    guard: AuthorizationGuard = Depends(get_guard),
    audit: AuditTrail = Depends(get_audit_trail),
) -> FeedbackService:
    return FeedbackService(FeedbackRepository(db), SessionRepository(db), guard, audit)


def get_access_service(
    db: AsyncSession = Depends(get_db),
    audit: AuditTrail = Depends(get_audit_trail),
) -> AccessGrantService:
    return AccessGrantService(AccessGrantRepository(db), UserDirectory(db), audit)
