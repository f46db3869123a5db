"""Fire-and-forget dispatch of domain events and live-feed updates.

Everything here runs after the owning transaction has committed. Failures are
logged and counted, never raised back into the bidding path.
"""

import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from salvage_auction.middleware.metrics import EVENT_PUBLISH_FAILURES
from salvage_auction.models.enums import AuctionStatus, LotStatus
from salvage_auction.schemas.events import DomainEvent
from salvage_auction.schemas.ws import (
    AuctionStateEvent,
    BidPlacedData,
    BidPlacedEvent,
    LotStateEvent,
    OutbidData,
    OutbidEvent,
    StateChangeData,
)
from salvage_auction.services.redis_service import RedisService
from salvage_auction.services.ws_manager import ConnectionManager, manager

logger = logging.getLogger(__name__)


class EventNotifier:
    """Hands domain events to Redis and live updates to WebSocket rooms."""

    def __init__(
        self,
        redis_service: RedisService | None,
        connections: ConnectionManager = manager,
    ):
        self.redis_service = redis_service
        self.connections = connections
        self._tasks: set[asyncio.Task] = set()

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        # Keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    # ==================== Domain Events ====================

    def emit(self, event: DomainEvent) -> None:
        """Publish a domain event without waiting for delivery."""
        logger.info(
            f"Domain event {event.event_type}: auction={event.auction_id}, "
            f"lot={event.lot_id}, user={event.user_id}"
        )
        if self.redis_service is None:
            return
        self._spawn(self._publish(event))

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.redis_service.publish_event(event)
        except Exception as e:
            EVENT_PUBLISH_FAILURES.labels(event_type=event.event_type.value).inc()
            logger.warning(f"Failed to publish {event.event_type} event: {e}")

    # ==================== Live Feed ====================

    def bid_placed(
        self,
        room_id: UUID,
        target_id: UUID,
        amount: Decimal,
        bidder_id: UUID,
        end_time: datetime | None,
        extended: bool = False,
    ) -> None:
        """Push a new highest bid to the room and refresh the cached snapshot."""
        message = BidPlacedEvent(
            data=BidPlacedData(
                room_id=str(room_id),
                target_id=str(target_id),
                amount=amount,
                bidder_id=str(bidder_id),
                end_time=end_time,
                extended=extended,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self._spawn(self._broadcast(str(room_id), message))
        if self.redis_service is not None:
            self._spawn(
                self._cache_highest_bid(
                    str(target_id),
                    amount,
                    str(bidder_id),
                    end_time.isoformat() if end_time else "",
                )
            )

    def outbid(self, room_id: UUID, target_id: UUID, user_id: UUID, amount: Decimal) -> None:
        """Tell the previous leader they lost the lead, if they are watching."""
        message = OutbidEvent(
            data=OutbidData(
                room_id=str(room_id),
                target_id=str(target_id),
                amount=amount,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self._spawn(
            self.connections.send_to_user(
                str(room_id), str(user_id), message.model_dump(mode="json")
            )
        )

    def auction_state(self, auction_id: UUID, status: str, end_time: datetime | None) -> None:
        message = AuctionStateEvent(
            data=StateChangeData(
                room_id=str(auction_id),
                target_id=str(auction_id),
                status=status,
                end_time=end_time,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self._spawn(self._broadcast(str(auction_id), message))
        if status in (AuctionStatus.SETTLED, AuctionStatus.CANCELLED):
            self._forget_snapshot(str(auction_id))

    def lot_state(
        self, catalog_id: UUID, lot_id: UUID, status: str, end_time: datetime | None
    ) -> None:
        message = LotStateEvent(
            data=StateChangeData(
                room_id=str(catalog_id),
                target_id=str(lot_id),
                status=status,
                end_time=end_time,
                timestamp=datetime.now(timezone.utc),
            )
        )
        self._spawn(self._broadcast(str(catalog_id), message))
        if status not in (LotStatus.PENDING, LotStatus.ACTIVE):
            self._forget_snapshot(str(lot_id))

    async def _broadcast(self, room_id: str, message: BaseModel) -> int:
        try:
            return await self.connections.broadcast(room_id, message.model_dump(mode="json"))
        except Exception as e:
            logger.warning(f"Failed to broadcast to room {room_id}: {e}")
            return 0

    async def _cache_highest_bid(self, target_id: str, amount: Decimal, bidder_id: str, end_time: str) -> Any:
        try:
            return await self.redis_service.cache_highest_bid(target_id, amount, bidder_id, end_time)
        except Exception as e:
            logger.warning(f"Failed to cache highest bid for {target_id}: {e}")
            return None

    def _forget_snapshot(self, target_id: str) -> None:
        if self.redis_service is not None:
            self._spawn(self._invalidate_highest_bid(target_id))

    async def _invalidate_highest_bid(self, target_id: str) -> None:
        try:
            await self.redis_service.invalidate_highest_bid(target_id)
        except Exception as e:
            logger.warning(f"Failed to drop highest bid snapshot for {target_id}: {e}")
