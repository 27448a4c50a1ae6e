"""Append-only audit trail"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.audit.models import AuditAction, AuditLog
from app.auth.models import Actor
from app.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    actor_id: Optional[str]
    actor_type: Optional[str]
    action: AuditAction
    resource_type: str
    resource_id: Optional[str]
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def for_actor(cls, actor: Actor, action: AuditAction, resource_type: str, resource_id: Optional[str], **details):
        return cls(
            actor_id=actor.user_id,
            actor_type=actor.user_type.value,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
        )


class AuditTrail:
    """
    Writes audit entries through its own short-lived DB session, so a failing
    audit store can never poison the business transaction that triggered it.
    ``record`` never raises.
    """

    def __init__(self, session_factory: async_sessionmaker, timeout: Optional[float] = None):
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    async def record(self, entry: AuditEntry) -> bool:
        try:
            async with self.session_factory() as db:
                db.add(AuditLog(
                    user_id=entry.actor_id,
                    user_type=entry.actor_type,
                    action=entry.action.value,
                    resource_type=entry.resource_type,
                    resource_id=entry.resource_id,
                    details=entry.details or None,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                ))
                await asyncio.wait_for(db.commit(), timeout=self.timeout)
            return True
        except Exception as e:
            logger.error(
                f"Failed to write audit entry {entry.action.value} "
                f"{entry.resource_type}:{entry.resource_id}: {e}"
            )
            return False

    async def list_entries(
        self,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        limit: int = 100,
    ) -> List[AuditLog]:
        async with self.session_factory() as db:
            stmt = select(AuditLog)
            if resource_type:
                stmt = stmt.where(AuditLog.resource_type == resource_type)
            if resource_id:
                stmt = stmt.where(AuditLog.resource_id == resource_id)
            if actor_id:
                stmt = stmt.where(AuditLog.user_id == actor_id)
            stmt = stmt.order_by(AuditLog.created_at.desc()).limit(limit)
            result = await asyncio.wait_for(db.execute(stmt), timeout=self.timeout)
            return list(result.scalars().all())
