"""Notification channel endpoints: device tokens and the live WebSocket"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.middleware import Actor, authenticate, verify_token, check_permission
from app.core.exceptions import NotFoundException
from app.db.postgres import get_db
from app.dependencies import get_live_manager
from app.notifications.live import LiveConnectionManager
from app.notifications.repository import DeviceTokenRepository
from app.notifications.schemas import DeviceTokenResponse, RegisterDeviceTokenRequest

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)

ws_router = APIRouter(tags=["notifications"])


@router.post("/device-tokens", response_model=DeviceTokenResponse, status_code=status.HTTP_201_CREATED)
async def register_device_token(
    request: RegisterDeviceTokenRequest,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(verify_token),
):
    """
    Register the caller's device for push notifications.

    Required permission: device:register
    """
    check_permission(actor, "device:register")

    repository = DeviceTokenRepository(db)
    device_token = await repository.register(
        user_id=actor.user_id,
        token=request.token,
        platform=request.platform,
        device_id=request.device_id,
    )
    logger.info(f"Device token registered for user {actor.user_id} ({request.platform})")
    return DeviceTokenResponse.model_validate(device_token)


@router.get("/device-tokens", response_model=List[DeviceTokenResponse])
async def list_device_tokens(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(verify_token),
):
    """Required permission: device:register"""
    check_permission(actor, "device:register")

    tokens = await DeviceTokenRepository(db).list_for_user(actor.user_id)
    return [DeviceTokenResponse.model_validate(t) for t in tokens]


@router.delete("/device-tokens/{token}", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_device_token(
    token: str,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(verify_token),
):
    """
    Remove one of the caller's device tokens (logout).

    Required permission: device:register
    """
    check_permission(actor, "device:register")

    if not await DeviceTokenRepository(db).unregister(actor.user_id, token):
        raise NotFoundException("Device token")


@ws_router.websocket("/ws/notifications")
async def notifications_socket(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    live: LiveConnectionManager = Depends(get_live_manager),
):
    """Live notification channel, authenticated with ``?token=<jwt>``"""
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        actor = authenticate(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    logger.info(f"Live channel opened for user {actor.user_id}")
    await live.handle(websocket, actor.user_id)
    logger.info(f"Live channel closed for user {actor.user_id}")
