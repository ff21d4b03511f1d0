"""
WebSocket connection registry for pushing notifications to signed-in users.

Each user may hold several sockets (one per open tab or device). Messages are
JSON objects with a ``type`` key, e.g. ``{"type": "notification", ...}``.
"""

import asyncio
import json
import logging
from typing import Dict, Set, Optional, Iterable
from datetime import timedelta
from fastapi import WebSocket

from academy.utils.datetime_utils import utcnow

logger = logging.getLogger(__name__)

# Sockets idle longer than this are dropped by cleanup_stale_connections
WEBSOCKET_TIMEOUT_SECONDS = 30


class WebSocketManager:
    """Tracks open notification sockets per user."""

    def __init__(self):
        self.active_connections: Dict[int, Set[WebSocket]] = {}
        self.last_seen: Dict[WebSocket, object] = {}
        self._lock = asyncio.Lock()

    async def connect(self, user_id: int, websocket: WebSocket):
        async with self._lock:
            self.active_connections.setdefault(user_id, set()).add(websocket)
            self.last_seen[websocket] = utcnow()
            count = len(self.active_connections[user_id])
        logger.info(f"Notification socket opened for user {user_id} ({count} open)")

    async def disconnect(self, user_id: int, websocket: WebSocket):
        async with self._lock:
            self._remove(user_id, websocket)
        logger.info(f"Notification socket closed for user {user_id}")

    def _remove(self, user_id: int, websocket: WebSocket):
        # Caller must hold the lock
        sockets = self.active_connections.get(user_id)
        if sockets is not None:
            sockets.discard(websocket)
            if not sockets:
                del self.active_connections[user_id]
        self.last_seen.pop(websocket, None)

    async def send_to_user(self, user_id: int, message: dict) -> bool:
        """
        Send a message to every open socket of a user.

        Sockets that fail to receive are dropped.

        Returns:
            True if at least one socket received the message
        """
        async with self._lock:
            sockets = list(self.active_connections.get(user_id, ()))
        if not sockets:
            return False

        payload = json.dumps(message, default=str)
        delivered = False
        dead = []
        for websocket in sockets:
            try:
                await websocket.send_text(payload)
                delivered = True
            except Exception as e:
                logger.warning(f"Dropping notification socket for user {user_id}: {e}")
                dead.append(websocket)

        async with self._lock:
            for websocket in dead:
                self._remove(user_id, websocket)
            if delivered:
                now = utcnow()
                for websocket in sockets:
                    if websocket in self.last_seen:
                        self.last_seen[websocket] = now
        return delivered

    async def broadcast(self, user_ids: Iterable[int], message: dict) -> int:
        """Send a message to several users. Returns how many were reached."""
        reached = 0
        for user_id in set(user_ids):
            if await self.send_to_user(user_id, message):
                reached += 1
        return reached

    async def get_connection_count(self, user_id: int) -> int:
        async with self._lock:
            return len(self.active_connections.get(user_id, ()))

    async def update_activity(self, websocket: WebSocket):
        """Record client activity (ping) on a socket."""
        async with self._lock:
            if websocket in self.last_seen:
                self.last_seen[websocket] = utcnow()

    async def cleanup_stale_connections(self) -> int:
        """
        Drop sockets with no activity within WEBSOCKET_TIMEOUT_SECONDS.

        Returns:
            Number of sockets removed
        """
        threshold = utcnow() - timedelta(seconds=WEBSOCKET_TIMEOUT_SECONDS)
        removed = 0
        async with self._lock:
            for user_id, sockets in list(self.active_connections.items()):
                for websocket in list(sockets):
                    last = self.last_seen.get(websocket)
                    if last is None or last < threshold:
                        self._remove(user_id, websocket)
                        removed += 1
        if removed:
            logger.info(f"Removed {removed} stale notification sockets")
        return removed


_websocket_manager: Optional[WebSocketManager] = None


def get_websocket_manager() -> WebSocketManager:
    """Return the process-wide WebSocketManager."""
    global _websocket_manager
    if _websocket_manager is None:
        _websocket_manager = WebSocketManager()
    return _websocket_manager
