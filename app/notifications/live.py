"""Live notification channel: open WebSocket connections per user"""
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Set

from fastapi import WebSocket
from fastapi.websockets import WebSocketDisconnect

logger = logging.getLogger(__name__)


class LiveConnectionManager:
    """Tracks connected clients; a message for a user with no open socket is dropped."""

    def __init__(self):
        self._clients: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    async def handle(self, websocket: WebSocket, user_id: str) -> None:
        """Accept ``websocket`` and keep it registered until the client disconnects"""
        await websocket.accept()
        async with self._lock:
            self._clients[user_id].add(websocket)
        try:
            await websocket.send_json({"event": "connected"})
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            await self._discard(user_id, [websocket])

    def is_connected(self, user_id: str) -> bool:
        return bool(self._clients.get(user_id))

    async def send(self, user_id: str, message: Mapping[str, Any]) -> int:
        """Send to every socket of ``user_id``; returns how many received it"""
        async with self._lock:
            clients: List[WebSocket] = list(self._clients.get(user_id, set()))
        if not clients:
            logger.debug(f"User {user_id} not connected, live notification dropped")
            return 0
        delivered = 0
        dead: List[WebSocket] = []
        for ws in clients:
            try:
                await ws.send_json(dict(message))
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping broken socket for user {user_id}: {e}")
                dead.append(ws)
        if dead:
            await self._discard(user_id, dead)
        return delivered

    async def _discard(self, user_id: str, sockets: List[WebSocket]) -> None:
        async with self._lock:
            clients = self._clients.get(user_id)
            if not clients:
                return
            for ws in sockets:
                clients.discard(ws)
            if not clients:
                self._clients.pop(user_id, None)
