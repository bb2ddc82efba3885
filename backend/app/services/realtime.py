"""
Notification WebSocket Manager

Keeps a room of live connections per user so a notification can be
pushed to everyone it was addressed to:
- A user may hold several connections (tabs, devices)
- Delivery is best effort; offline users read it later over REST
- Connections that fail on send are dropped
"""

import asyncio
from typing import Dict, List, Iterable, Optional, Any
from datetime import datetime
from dataclasses import dataclass, field
from enum import Enum
from fastapi import WebSocket

from app.core.logging_config import logger
from app.models.base import utcnow


class EventType(str, Enum):
    """WebSocket event types"""
    # Client -> server
    REGISTER = "register"
    MARK_NOTIFICATION_READ = "markNotificationRead"
    PING = "ping"

    # Server -> client
    REGISTERED = "registered"
    NEW_NOTIFICATION = "newNotification"
    NOTIFICATION_READ = "notificationRead"
    PONG = "pong"
    ERROR = "error"


@dataclass
class UserConnection:
    """One live socket belonging to a user"""
    websocket: WebSocket
    user_id: str
    school_id: str
    connected_at: datetime = field(default_factory=utcnow)
    last_activity: datetime = field(default_factory=utcnow)


class NotificationConnectionManager:
    """
    Per-user rooms of WebSocket connections.

    Mutations of the room map happen under an asyncio lock; sends happen
    on a snapshot so a slow client never blocks connect/disconnect.
    """

    def __init__(self):
        # user_id -> connections
        self._rooms: Dict[str, List[UserConnection]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str, school_id: str) -> UserConnection:
        """Accept the socket and join the user's room"""
        await websocket.accept()

        connection = UserConnection(websocket=websocket, user_id=user_id, school_id=school_id)
        async with self._lock:
            self._rooms.setdefault(user_id, []).append(connection)

        logger.info(f"[Realtime] User {user_id} connected ({self.connection_count(user_id)} connection(s))")
        return connection

    async def disconnect(self, connection: UserConnection) -> None:
        async with self._lock:
            room = self._rooms.get(connection.user_id)
            if room and connection in room:
                room.remove(connection)
                if not room:
                    del self._rooms[connection.user_id]

        logger.info(f"[Realtime] User {connection.user_id} disconnected")

    def is_user_connected(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))

    def connection_count(self, user_id: str) -> int:
        return len(self._rooms.get(user_id, []))

    @property
    def connected_user_count(self) -> int:
        return sum(1 for room in self._rooms.values() if room)

    @staticmethod
    def build_message(event_type: EventType, data: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "type": event_type.value,
            "data": data,
            "timestamp": utcnow().isoformat(),
        }

    async def _send(self, connections: List[UserConnection], message: Dict[str, Any]) -> int:
        """Send to each connection, dropping the ones that fail. Returns successes."""
        delivered = 0
        dead: List[UserConnection] = []

        for connection in connections:
            try:
                await connection.websocket.send_json(message)
                connection.last_activity = utcnow()
                delivered += 1
            except Exception as e:
                logger.error(f"[Realtime] Error sending to user {connection.user_id}: {e}")
                dead.append(connection)

        for connection in dead:
            await self.disconnect(connection)

        return delivered

    async def send_event(self, user_id: str, event_type: EventType, data: Dict[str, Any]) -> bool:
        """Send an event to every connection of one user"""
        connections = list(self._rooms.get(user_id, []))
        if not connections:
            logger.debug(f"[Realtime] User {user_id} is offline, skipping {event_type.value}")
            return False

        return await self._send(connections, self.build_message(event_type, data)) > 0

    async def send_to_user(self, user_id: str, notification: Dict[str, Any]) -> bool:
        """Push a notification; False when the user has no live connection"""
        payload = {**notification, "delivered_via": "socket", "delivered_at": utcnow().isoformat()}
        delivered = await self.send_event(user_id, EventType.NEW_NOTIFICATION, payload)
        if not delivered:
            logger.info(f"[Realtime] User {user_id} is offline; notification kept for later")
        return delivered

    async def send_to_users(self, user_ids: Iterable[str], notification: Dict[str, Any]) -> int:
        """Push to many users. Returns how many users received it."""
        user_ids = list(dict.fromkeys(user_ids))
        results = await asyncio.gather(*(self.send_to_user(uid, notification) for uid in user_ids))
        delivered = sum(1 for r in results if r)
        logger.info(f"[Realtime] Notification delivered to {delivered}/{len(user_ids)} users")
        return delivered

    async def broadcast(self, notification: Dict[str, Any], school_id: Optional[str] = None) -> int:
        """Push to every connected user, optionally limited to one school"""
        payload = {**notification, "is_broadcast": True, "delivered_via": "broadcast"}
        message = self.build_message(EventType.NEW_NOTIFICATION, payload)

        connections = [
            conn
            for room in list(self._rooms.values())
            for conn in room
            if school_id is None or conn.school_id == school_id
        ]
        await self._send(connections, message)
        return len({conn.user_id for conn in connections})

    async def disconnect_user(self, user_id: str, code: int = 1000) -> int:
        """Close all of a user's sockets. Returns the number closed."""
        async with self._lock:
            connections = self._rooms.pop(user_id, [])

        for connection in connections:
            try:
                await connection.websocket.close(code=code)
            except Exception as e:
                logger.warning(f"[Realtime] Error closing socket for user {user_id}: {e}")

        if connections:
            logger.info(f"[Realtime] Force-disconnected user {user_id} ({len(connections)} socket(s))")
        return len(connections)


# Global manager instance
notification_manager = NotificationConnectionManager()
