"""Notification fan-out over the live and durable channels"""
import logging
from typing import Optional

from app.notifications.live import LiveConnectionManager
from app.notifications.push import PushChannel
from app.notifications.schemas import Notification
from app.utils.timezone import utcnow

logger = logging.getLogger(__name__)


class NotificationFanout:
    """
    Sends one logical notification through both channels independently.
    A failure on either channel is logged and never reaches the caller.
    """

    def __init__(self, live: LiveConnectionManager, push: Optional[PushChannel] = None):
        self.live = live
        self.push = push

    async def notify(self, notification: Notification) -> None:
        try:
            await self.live.send(notification.recipient_id, notification.live_message(utcnow()))
        except Exception:
            logger.exception(f"Live notification to user {notification.recipient_id} failed")

        if self.push is not None:
            try:
                await self.push.deliver(notification)
            except Exception:
                logger.exception(f"Push notification to user {notification.recipient_id} failed")

        logger.info(f"Notification sent to user {notification.recipient_id}: {notification.title}")
