"""WebSocket endpoint for the live bidding feed."""

import logging
import uuid
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from salvage_auction.core.config import settings
from salvage_auction.services.ws_manager import manager

logger = logging.getLogger(__name__)

router = APIRouter()


def resolve_watcher(websocket: WebSocket) -> str | None:
    """Watcher key for the socket, taken from the gateway identity header.

    Returns:
        The bidder UUID string, an anonymous viewer key when the header is
        absent, or None when the header is present but malformed
    """
    raw = websocket.headers.get(settings.AUTH_USER_HEADER)
    if not raw:
        return f"viewer:{uuid.uuid4()}"
    try:
        return str(UUID(raw))
    except ValueError:
        return None


@router.websocket("/ws/{room_id}")
async def websocket_endpoint(websocket: WebSocket, room_id: str):
    """WebSocket endpoint for live auction or catalog updates.

    Connection URL: ws://host/ws/{auction_id or catalog_id}

    The bidder is identified by the same gateway header as the REST API;
    without it the socket joins as an anonymous viewer and never receives
    outbid notices.

    Events pushed to client:
    - bid_placed: New highest bid (with the end time after any extension)
    - auction_state / lot_state: Lifecycle transitions and timer changes
    - outbid: Sent only to the bidder who lost the lead

    Client can send:
    - ping: Server responds with pong (heartbeat)
    """
    try:
        UUID(room_id)
    except ValueError:
        await websocket.close(code=4002, reason="Invalid room ID")
        return

    user_id = resolve_watcher(websocket)
    if user_id is None:
        await websocket.close(code=4001, reason="Invalid user identity")
        return

    await manager.connect(room_id, user_id, websocket)

    try:
        while True:
            data = await websocket.receive_text()

            if data == "ping":
                await websocket.send_text("pong")

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: room={room_id}, user={user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: room={room_id}, user={user_id}, error={e}")
    finally:
        await manager.disconnect(room_id, user_id, websocket)
