"""Durable notification channel: push delivery to registered device tokens"""
import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.config import settings
from app.notifications.repository import DeviceTokenRepository
from app.notifications.schemas import Notification

logger = logging.getLogger(__name__)

# Gateway error codes meaning the token will never work again
INVALID_TOKEN_ERRORS = {"invalid-registration-token", "registration-token-not-registered"}


@dataclass
class PushResult:
    token: str
    success: bool
    error: Optional[str] = None

    @property
    def token_is_dead(self) -> bool:
        if self.success or not self.error:
            return False
        # Gateways report either "messaging/<code>" or the bare code
        return self.error.split("/")[-1] in INVALID_TOKEN_ERRORS


class HttpPushTransport:
    """Posts multicast messages to an HTTP push gateway (FCM-compatible payload)"""

    def __init__(
        self,
        gateway_url: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self._http_transport = http_transport

    async def send_multicast(self, tokens: List[str], notification: Notification) -> List[PushResult]:
        body = {
            "tokens": tokens,
            "notification": {"title": notification.title, "body": notification.body},
            # Push payload values must be strings
            "data": {"type": notification.type.value, **{k: str(v) for k, v in notification.payload.items()}},
            "android": {"priority": "high"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._http_transport) as client:
            response = await client.post(self.gateway_url, json=body, headers=headers)
            response.raise_for_status()
        responses = response.json().get("responses", [])
        return [
            PushResult(token=token, success=bool(item.get("success")), error=item.get("error"))
            for token, item in zip(tokens, responses)
        ]


def build_push_transport() -> Optional[HttpPushTransport]:
    if not settings.push_gateway_url:
        logger.warning("PUSH_GATEWAY_URL not configured, push notifications are disabled")
        return None
    return HttpPushTransport(
        settings.push_gateway_url,
        api_key=settings.push_gateway_api_key,
        timeout=settings.push_timeout_seconds,
    )


class PushChannel:
    """Delivers to every device of the recipient and prunes tokens the gateway rejects"""

    def __init__(self, session_factory: async_sessionmaker, transport: Optional[HttpPushTransport]):
        self.session_factory = session_factory
        self.transport = transport

    async def deliver(self, notification: Notification) -> int:
        async with self.session_factory() as db:
            repository = DeviceTokenRepository(db)
            device_tokens = await repository.list_for_user(notification.recipient_id)
            if not device_tokens:
                logger.debug(f"No device tokens for user {notification.recipient_id}")
                return 0
            if self.transport is None:
                return 0

            tokens = [dt.token for dt in device_tokens]
            results = await self.transport.send_multicast(tokens, notification)
            delivered = sum(1 for r in results if r.success)
            logger.info(f"Push sent to {delivered}/{len(tokens)} devices of user {notification.recipient_id}")

            dead = [r.token for r in results if r.token_is_dead]
            if dead:
                removed = await repository.prune(dead)
                logger.info(f"Removed {removed} invalid device tokens")
            return delivered
