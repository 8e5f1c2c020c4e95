"""
backend/realtime/hub.py
In-memory pubsub hub for badge notifications.

Rooms are keyed by user id; anonymous sockets use ConnectionNotifier instead.
Dead sockets are pruned on broadcast.
"""

from typing import Any, Dict, Optional, Protocol, Set
from fastapi import WebSocket
import asyncio
import logging

from backend.models.badge import BadgeView

logger = logging.getLogger(__name__)


class BadgeNotifier(Protocol):
    async def notify_badge_earned(self, user_id: Optional[str], badge: BadgeView) -> None: ...


class BadgeHub:
    """
    Room-per-user broadcast hub.

    Maps room -> Set[WebSocket]; register, broadcast, unregister.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def register(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._rooms.setdefault(room, set()).add(websocket)
            logger.debug(f"[HUB] Registered socket for {room}. Total: {len(self._rooms[room])}")

    async def unregister(self, room: str, websocket: WebSocket) -> None:
        async with self._lock:
            sockets = self._rooms.get(room)
            if sockets is None:
                return
            sockets.discard(websocket)
            if not sockets:
                del self._rooms[room]
                logger.debug(f"[HUB] Cleaned up empty room {room}")

    async def broadcast(self, room: str, message: Dict[str, Any]) -> int:
        """Send message to every socket in room; returns the number delivered."""
        async with self._lock:
            sockets = self._rooms.get(room, set()).copy()

        delivered = 0
        dead_sockets = []
        for ws in sockets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"[HUB] Failed to send to socket: {e}")
                dead_sockets.append(ws)

        if dead_sockets:
            async with self._lock:
                for ws in dead_sockets:
                    self._rooms.get(room, set()).discard(ws)
                logger.debug(f"[HUB] Pruned {len(dead_sockets)} dead sockets from {room}")
        return delivered

    async def get_room_size(self, room: str) -> int:
        async with self._lock:
            return len(self._rooms.get(room, set()))

    async def notify_badge_earned(self, user_id: Optional[str], badge: BadgeView) -> None:
        if not user_id:
            return
        await self.broadcast(user_id, badge_earned_message(badge))


class ConnectionNotifier:
    """Pushes straight to one socket; used for anonymous connections."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    async def notify_badge_earned(self, user_id: Optional[str], badge: BadgeView) -> None:
        await self._websocket.send_json(badge_earned_message(badge))


def badge_earned_message(badge: BadgeView) -> Dict[str, Any]:
    return {
        "type": "badge.earned",
        "title": "🎉 Achievement Unlocked!",
        "message": f"You've earned the {badge.name} badge!",
        "badge": badge.model_dump(mode="json"),
    }


# Global singleton hub instance
hub = BadgeHub()
