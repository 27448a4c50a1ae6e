"""Event publisher for sessions"""
import asyncio
import logging
from typing import List, Optional

from app.config import settings
from app.messaging.publisher import RabbitMQPublisher
from app.sessions.models import Session
from app.sessions.schemas import SessionResponse

logger = logging.getLogger(__name__)


class SessionEventPublisher:
    """Publishes session domain events after they committed"""

    def __init__(self, publisher: RabbitMQPublisher):
        self.publisher = publisher

    async def _publish(self, event: str, data) -> None:
        message = {"event": event, "data": data}
        await asyncio.to_thread(self.publisher.publish, event, message)

    async def publish_sessions_created(self, sessions: List[Session], package_id: Optional[str]):
        """Publish session created event"""
        await self._publish("session.created", {
            "package_id": package_id,
            "sessions": [SessionResponse.model_validate(s).model_dump(mode="json") for s in sessions],
        })

    async def publish_session_completed(self, session: Session):
        """Publish session completed event"""
        await self._publish("session.completed", SessionResponse.model_validate(session).model_dump(mode="json"))

    async def publish_session_deleted(self, session_id: str, patient_id: str, deleted_by: str):
        await self._publish("session.deleted", {
            "session_id": session_id,
            "patient_id": patient_id,
            "deleted_by": deleted_by,
        })


def build_session_event_publisher() -> Optional[SessionEventPublisher]:
    if not settings.rabbitmq_host:
        logger.info("RABBITMQ_HOST not configured, session events will not be published")
        return None
    return SessionEventPublisher(RabbitMQPublisher(settings.rabbitmq_session_exchange))
