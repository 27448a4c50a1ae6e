"""Shared repository base helpers."""
import asyncio
import logging
from typing import Any, Awaitable, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.util import identity_key

from app.config import settings
from app.core.exceptions import StoreTimeoutException

logger = logging.getLogger(__name__)


class BaseRepository:
    """Base repository with common DB helpers.

    Every round trip to the store goes through ``_bounded`` so that no call can
    hang past ``STORE_TIMEOUT_SECONDS``. On timeout the open transaction is rolled
    back and the caller gets a ``StoreTimeoutException`` (safe to retry).
    """

    def __init__(self, db: AsyncSession, timeout: Optional[float] = None):
        self.db = db
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    async def _bounded(self, awaitable: Awaitable[Any]) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error(f"Store call exceeded {self.timeout}s, rolling back")
            await self.db.rollback()
            raise StoreTimeoutException(self.timeout)

    async def _execute(self, stmt):
        return await self._bounded(self.db.execute(stmt))

    async def _commit(self) -> None:
        await self._bounded(self.db.commit())

    def _mirror(self, model, pk, values: Dict[str, Any]) -> None:
        """Copy values an UPDATE already committed onto the loaded instance, if there is one.

        Writes never re-read their row after COMMIT.
        """
        instance = self.db.identity_map.get(identity_key(model, pk))
        if instance is None:
            return
        for key, value in values.items():
            set_committed_value(instance, key, value)
