"""Lifecycle scheduler: time-driven auction transitions.

Each sweep issues set-based updates guarded by the current status and the
time condition, so running it twice (or on two replicas at once) never
applies a transition twice.
"""

import logging
import time
from datetime import datetime

from sqlalchemy import and_, update
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.core.config import settings
from salvage_auction.core.database import utcnow
from salvage_auction.middleware.metrics import SCHEDULER_SWEEP_LATENCY, record_transition
from salvage_auction.models.auction import Auction
from salvage_auction.models.enums import AuctionStatus
from salvage_auction.schemas.events import DomainEvent, DomainEventType
from salvage_auction.schemas.scheduler import SweepResult
from salvage_auction.services.catalog_service import CatalogService
from salvage_auction.services.notifier import EventNotifier

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service class for the periodic lifecycle sweep."""

    def __init__(self, db: AsyncSession, notifier: EventNotifier):
        self.db = db
        self.notifier = notifier

    async def run_sweep(
        self, now: datetime | None = None, auto_advance_lots: bool | None = None
    ) -> SweepResult:
        """Activate due drafts, end expired auctions, optionally expire lots.

        Args:
            now: Evaluation time (naive UTC), defaults to the current time
            auto_advance_lots: Override for SCHEDULER_AUTO_ADVANCE_LOTS

        Returns:
            Counts and IDs of the auctions activated and ended, and lots closed
        """
        now = now or utcnow()
        if auto_advance_lots is None:
            auto_advance_lots = settings.SCHEDULER_AUTO_ADVANCE_LOTS
        started = time.perf_counter()

        activated = await self.db.execute(
            update(Auction)
            .where(
                and_(
                    Auction.status == AuctionStatus.DRAFT.value,
                    Auction.start_time <= now,
                    Auction.end_time > now,
                )
            )
            .values(status=AuctionStatus.ACTIVE.value, version=Auction.version + 1)
            .returning(Auction.auction_id, Auction.vehicle_id, Auction.starting_price, Auction.end_time)
            .execution_options(synchronize_session=False)
        )
        activated_rows = activated.all()

        ended = await self.db.execute(
            update(Auction)
            .where(
                and_(
                    Auction.status == AuctionStatus.ACTIVE.value,
                    Auction.end_time <= now,
                )
            )
            .values(status=AuctionStatus.ENDED.value, version=Auction.version + 1)
            .returning(
                Auction.auction_id,
                Auction.vehicle_id,
                Auction.highest_bidder_id,
                Auction.current_highest_bid,
                Auction.end_time,
            )
            .execution_options(synchronize_session=False)
        )
        ended_rows = ended.all()
        await self.db.commit()

        for row in activated_rows:
            self.notifier.auction_state(row.auction_id, AuctionStatus.ACTIVE.value, row.end_time)
            self.notifier.emit(
                DomainEvent(
                    event_type=DomainEventType.AUCTION_START,
                    auction_id=row.auction_id,
                    vehicle_id=row.vehicle_id,
                    amount=row.starting_price,
                )
            )
        for row in ended_rows:
            self.notifier.auction_state(row.auction_id, AuctionStatus.ENDED.value, row.end_time)
            if row.highest_bidder_id is not None:
                self.notifier.emit(
                    DomainEvent(
                        event_type=DomainEventType.WON,
                        auction_id=row.auction_id,
                        vehicle_id=row.vehicle_id,
                        user_id=row.highest_bidder_id,
                        amount=row.current_highest_bid,
                    )
                )

        lots_closed = []
        if auto_advance_lots:
            lots_closed = await CatalogService(self.db, self.notifier).expire_due_lots(now)

        record_transition("auction", AuctionStatus.ACTIVE.value, "scheduler", len(activated_rows))
        record_transition("auction", AuctionStatus.ENDED.value, "scheduler", len(ended_rows))
        SCHEDULER_SWEEP_LATENCY.observe(time.perf_counter() - started)

        result = SweepResult(
            activated=len(activated_rows),
            ended=len(ended_rows),
            lots_closed=len(lots_closed),
            activated_ids=[row.auction_id for row in activated_rows],
            ended_ids=[row.auction_id for row in ended_rows],
            lots_closed_ids=lots_closed,
        )
        if not result.is_empty:
            logger.info(
                f"Sweep at {now.isoformat()}: activated={result.activated}, "
                f"ended={result.ended}, lots_closed={result.lots_closed}"
            )
        return result
