"""WebSocket connection manager for the live bidding feed."""

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections organized by rooms.

    A room is an auction ID or a catalog ID.
    Structure: {room_id: {user_id: WebSocket}}
    """

    def __init__(self):
        # {room_id: {user_id: websocket}}
        self.active_connections: dict[str, dict[str, WebSocket]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, room_id: str, user_id: str, websocket: WebSocket) -> None:
        """Accept connection and add to a room.

        Args:
            room_id: Auction or catalog UUID string
            user_id: User UUID string (or an anonymous viewer key)
            websocket: WebSocket connection
        """
        await websocket.accept()

        async with self._lock:
            room = self.active_connections.setdefault(room_id, {})

            # If user already has a connection, close the old one
            old_ws = room.get(user_id)
            if old_ws is not None:
                try:
                    await old_ws.close()
                except RuntimeError as e:
                    logger.debug(f"Old WebSocket for user {user_id} already closed: {e}")

            room[user_id] = websocket
            logger.info(
                f"WebSocket connected: room={room_id}, user={user_id}, "
                f"room_size={len(room)}"
            )

    async def disconnect(
        self, room_id: str, user_id: str, websocket: WebSocket | None = None
    ) -> None:
        """Remove connection from a room.

        Args:
            room_id: Auction or catalog UUID string
            user_id: User UUID string
            websocket: Only remove the entry if it is still this socket; a
                reconnect may already have replaced it
        """
        async with self._lock:
            room = self.active_connections.get(room_id)
            if room is None:
                return
            current = room.get(user_id)
            if current is None or (websocket is not None and current is not websocket):
                return
            del room[user_id]
            logger.info(f"WebSocket disconnected: room={room_id}, user={user_id}")

            # Clean up empty rooms
            if not room:
                del self.active_connections[room_id]

    async def send_to_user(self, room_id: str, user_id: str, message: dict[str, Any]) -> bool:
        """Send message to a specific user in a room.

        Returns:
            True if message was sent, False if user not connected
        """
        websocket = self.active_connections.get(room_id, {}).get(user_id)
        if websocket is None:
            return False

        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"Failed to send to user {user_id}: {e}")
            await self.disconnect(room_id, user_id, websocket)
            return False

    async def broadcast(self, room_id: str, message: dict[str, Any]) -> int:
        """Broadcast message to all users in a room using concurrent sends.

        Args:
            room_id: Auction or catalog UUID string
            message: JSON-serializable message dict

        Returns:
            Number of users successfully sent to
        """
        # Create a copy to avoid modification during iteration
        connections = dict(self.active_connections.get(room_id, {}))
        if not connections:
            return 0

        async def send_to_one(user_id: str, ws: WebSocket) -> tuple[str, bool]:
            try:
                await ws.send_json(message)
                return (user_id, True)
            except Exception as e:
                logger.warning(f"Failed to broadcast to user {user_id}: {e}")
                return (user_id, False)

        results = await asyncio.gather(
            *[send_to_one(uid, ws) for uid, ws in connections.items()],
            return_exceptions=True,
        )

        sent_count = 0
        disconnected_users: list[str] = []

        for result in results:
            if isinstance(result, BaseException):
                continue
            user_id, success = result
            if success:
                sent_count += 1
            else:
                disconnected_users.append(user_id)

        for user_id in disconnected_users:
            await self.disconnect(room_id, user_id, connections[user_id])

        return sent_count

    def get_room_size(self, room_id: str) -> int:
        """Get number of connected users in a room."""
        return len(self.active_connections.get(room_id, {}))

    def get_active_rooms(self) -> list[str]:
        """Get list of room IDs with active connections."""
        return list(self.active_connections.keys())


# Global singleton instance
manager = ConnectionManager()
