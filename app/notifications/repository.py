"""Device token repository"""
from typing import List, Optional
from sqlalchemy import select, delete
from app.db.repository import BaseRepository
from app.notifications.models import DeviceToken


class DeviceTokenRepository(BaseRepository):

    async def list_for_user(self, user_id: str) -> List[DeviceToken]:
        stmt = select(DeviceToken).where(DeviceToken.user_id == user_id)
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def register(self, user_id: str, token: str, platform: str, device_id: Optional[str] = None) -> DeviceToken:
        """Register a token; a token seen before moves to the new owner"""
        result = await self._execute(select(DeviceToken).where(DeviceToken.token == token))
        device_token = result.scalar_one_or_none()
        if device_token is None:
            device_token = DeviceToken(token=token)
            self.db.add(device_token)
        device_token.user_id = user_id
        device_token.platform = platform
        device_token.device_id = device_id
        await self._commit()
        return device_token

    async def unregister(self, user_id: str, token: str) -> bool:
        stmt = delete(DeviceToken).where(DeviceToken.token == token, DeviceToken.user_id == user_id)
        result = await self._execute(stmt)
        await self._commit()
        return result.rowcount > 0

    async def prune(self, tokens: List[str]) -> int:
        if not tokens:
            return 0
        result = await self._execute(delete(DeviceToken).where(DeviceToken.token.in_(tokens)))
        await self._commit()
        return result.rowcount
