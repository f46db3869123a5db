"""Catalog service: sequential lot sessions.

A catalog sells its lots one at a time in ``lot_order``. Exactly one lot is on
the block while the catalog is active; the operator closes it with an outcome
and the next pending lot goes live with a fresh timer. Lots never extend
themselves on late bids, only through ``extend_lot``.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from cachetools import TTLCache
from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salvage_auction.core.config import settings
from salvage_auction.core.database import to_naive_utc, utcnow
from salvage_auction.middleware.metrics import (
    BID_CAS_CONFLICTS,
    record_bid_outcome,
    record_transition,
)
from salvage_auction.models.catalog import Catalog, CatalogBid, CatalogLot
from salvage_auction.models.enums import CatalogStatus, LotOutcome, LotStatus
from salvage_auction.models.user import User
from salvage_auction.models.vehicle import Vehicle
from salvage_auction.schemas.catalog import CatalogCreate
from salvage_auction.schemas.events import DomainEvent, DomainEventType
from salvage_auction.services.auction_service import MAX_CAS_ATTEMPTS, ensure_vehicles_free
from salvage_auction.services.bid_validator import BidOutcome, CatalogLotPolicy, validate_bid
from salvage_auction.services.exceptions import (
    InvalidInputError,
    NotFoundError,
    StateConflictError,
    VehicleAlreadyAuctionedError,
)
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.tier_policy import tier_of

logger = logging.getLogger(__name__)

# Bid increments are fixed once a catalog exists; keep them per process
INCREMENT_CACHE_TTL = 300
_increment_cache: TTLCache = TTLCache(maxsize=1000, ttl=INCREMENT_CACHE_TTL)


class CatalogService:
    """Service class for catalog sessions and their lots."""

    def __init__(self, db: AsyncSession, notifier: EventNotifier):
        self.db = db
        self.notifier = notifier

    @staticmethod
    def lot_duration() -> timedelta:
        return timedelta(seconds=settings.CATALOG_LOT_DURATION_SECONDS)

    async def _release(self) -> None:
        # Nothing was written; end the transaction to drop row locks
        await self.db.commit()

    # ==================== Reads ====================

    async def get_catalog(self, catalog_id: UUID) -> Catalog:
        """Get catalog with its lots in order.

        Raises:
            NotFoundError: Unknown catalog
        """
        result = await self.db.execute(
            select(Catalog)
            .options(selectinload(Catalog.lots))
            .where(Catalog.catalog_id == catalog_id)
            .execution_options(populate_existing=True)
        )
        catalog = result.scalar_one_or_none()
        if catalog is None:
            raise NotFoundError(f"Catalog {catalog_id} not found")
        return catalog

    async def list_catalogs(
        self, status: CatalogStatus | None = None, limit: int = 20, offset: int = 0
    ) -> tuple[list[Catalog], int]:
        query = select(Catalog).options(selectinload(Catalog.lots))
        count_query = select(func.count(Catalog.catalog_id))
        if status is not None:
            query = query.where(Catalog.status == status.value)
            count_query = count_query.where(Catalog.status == status.value)

        result = await self.db.execute(
            query.order_by(Catalog.scheduled_at.asc()).limit(limit).offset(offset)
        )
        total = (await self.db.execute(count_query)).scalar_one()
        return list(result.scalars().all()), total

    async def get_lot(self, lot_id: UUID) -> CatalogLot:
        lot = await self.db.get(CatalogLot, lot_id)
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")
        return lot

    async def list_lot_bids(
        self, lot_id: UUID, limit: int = 50, offset: int = 0
    ) -> tuple[list[CatalogBid], int]:
        """Accepted bids of a lot, newest first."""
        await self.get_lot(lot_id)
        result = await self.db.execute(
            select(CatalogBid)
            .where(CatalogBid.lot_id == lot_id)
            .order_by(CatalogBid.created_at.desc(), CatalogBid.amount.desc())
            .limit(limit)
            .offset(offset)
        )
        total = (
            await self.db.execute(
                select(func.count(CatalogBid.bid_id)).where(CatalogBid.lot_id == lot_id)
            )
        ).scalar_one()
        return list(result.scalars().all()), total

    # ==================== Creation / Deletion ====================

    async def create_catalog(self, data: CatalogCreate) -> Catalog:
        """Create a scheduled catalog with lots numbered 1..N in ``vehicle_ids`` order.

        Args:
            data: Catalog creation data

        Returns:
            Created catalog with its pending lots

        Raises:
            InvalidInputError: Duplicate vehicles or bad starting prices
            NotFoundError: Unknown vehicle
            VehicleAlreadyAuctionedError: A vehicle already backs an open auction or lot
        """
        vehicle_ids = list(data.vehicle_ids)
        if len(set(vehicle_ids)) != len(vehicle_ids):
            raise InvalidInputError("A vehicle can appear only once in a catalog")

        unknown_prices = set(data.starting_prices) - set(vehicle_ids)
        if unknown_prices:
            raise InvalidInputError("Starting prices given for vehicles not in the catalog")
        if any(price < 0 for price in data.starting_prices.values()):
            raise InvalidInputError("Starting prices cannot be negative")

        # Lock in a stable order so concurrent catalog creations cannot deadlock
        result = await self.db.execute(
            select(Vehicle.vehicle_id)
            .where(Vehicle.vehicle_id.in_(vehicle_ids))
            .order_by(Vehicle.vehicle_id)
            .with_for_update()
        )
        found = set(result.scalars().all())
        missing = [vid for vid in vehicle_ids if vid not in found]
        if missing:
            await self._release()
            raise NotFoundError(f"Vehicle {missing[0]} not found")

        try:
            await ensure_vehicles_free(self.db, vehicle_ids)
        except VehicleAlreadyAuctionedError:
            await self._release()
            raise

        catalog = Catalog(
            title=data.title,
            status=CatalogStatus.SCHEDULED.value,
            scheduled_at=to_naive_utc(data.scheduled_at),
            bid_increment=data.bid_increment,
            current_lot_order=0,
            lots=[
                CatalogLot(
                    vehicle_id=vehicle_id,
                    lot_order=index,
                    status=LotStatus.PENDING.value,
                    starting_price=data.starting_prices.get(vehicle_id, Decimal("0.00")),
                    current_bid=Decimal("0.00"),
                )
                for index, vehicle_id in enumerate(vehicle_ids, start=1)
            ],
        )

        try:
            self.db.add(catalog)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise VehicleAlreadyAuctionedError(
                "A vehicle in this catalog is already listed elsewhere"
            )

        catalog = await self.get_catalog(catalog.catalog_id)
        logger.info(
            f"Created catalog {catalog.catalog_id} '{catalog.title}' with {len(catalog.lots)} lots"
        )
        for lot in catalog.lots:
            self.notifier.emit(
                DomainEvent(
                    event_type=DomainEventType.NEW_CAR,
                    catalog_id=catalog.catalog_id,
                    lot_id=lot.lot_id,
                    vehicle_id=lot.vehicle_id,
                    amount=lot.starting_price,
                )
            )
        return catalog

    async def delete_catalog(self, catalog_id: UUID) -> None:
        """Delete a catalog that has not started, together with its lots.

        Raises:
            NotFoundError: Unknown catalog
            StateConflictError: Catalog already started
        """
        catalog = await self._lock_catalog(catalog_id)
        if catalog.status != CatalogStatus.SCHEDULED:
            await self._release()
            raise StateConflictError(
                f"Catalog {catalog_id} is {catalog.status} and cannot be deleted"
            )

        await self.db.delete(catalog)
        _increment_cache.pop(str(catalog_id), None)
        await self.db.commit()
        logger.info(f"Deleted catalog {catalog_id}")

    # ==================== Sequencing ====================

    async def start_catalog(self, catalog_id: UUID, now: datetime | None = None) -> Catalog:
        """Open the catalog and put lot 1 on the block.

        Raises:
            NotFoundError: Unknown catalog
            StateConflictError: Catalog is not scheduled
        """
        now = now or utcnow()
        catalog = await self._lock_catalog(catalog_id)
        if catalog.status != CatalogStatus.SCHEDULED:
            await self._release()
            raise StateConflictError(f"Catalog {catalog_id} is {catalog.status}")

        catalog.status = CatalogStatus.ACTIVE.value
        catalog.version = catalog.version + 1
        first_lot = await self._next_pending_lot(catalog_id, after_order=0)
        if first_lot is None:
            catalog.status = CatalogStatus.ENDED.value
        else:
            self._put_on_block(catalog, first_lot, now)
        await self.db.commit()

        record_transition("catalog", catalog.status, "operator")
        logger.info(f"Catalog {catalog_id} started")
        if first_lot is not None:
            self._announce_lot(catalog, first_lot)
        return await self.get_catalog(catalog_id)

    async def advance_lot(
        self, catalog_id: UUID, outcome: LotOutcome, now: datetime | None = None
    ) -> Catalog:
        """Close the lot on the block with the operator's outcome and move on.

        Args:
            catalog_id: Catalog UUID
            outcome: ``sold`` (requires a highest bidder) or ``no_sale``
            now: Evaluation time (naive UTC), defaults to the current time

        Returns:
            Catalog after the move; ``ended`` when no pending lot remained

        Raises:
            NotFoundError: Unknown catalog
            StateConflictError: Catalog not active, or selling a lot nobody bid on
        """
        now = now or utcnow()
        catalog = await self._lock_catalog(catalog_id)
        if catalog.status != CatalogStatus.ACTIVE:
            await self._release()
            raise StateConflictError(f"Catalog {catalog_id} is {catalog.status}")

        current = await self._active_lot(catalog_id)
        if current is not None and outcome == LotOutcome.SOLD and not current.has_bids:
            await self._release()
            raise StateConflictError(f"Lot {current.lot_id} has no bids and cannot be sold")

        closed_status = LotStatus.SOLD if outcome == LotOutcome.SOLD else LotStatus.NO_SALE
        next_lot = await self._close_and_advance(catalog, current, closed_status, now)
        await self.db.commit()

        self._after_advance(catalog, current, next_lot, "operator")
        return await self.get_catalog(catalog_id)

    async def extend_lot(
        self, catalog_id: UUID, seconds: int, now: datetime | None = None
    ) -> CatalogLot:
        """Give the lot on the block more time.

        The extension counts from the later of the current end time and now,
        so a lot whose timer already ran out reopens for ``seconds``.

        Raises:
            InvalidInputError: Non-positive seconds
            NotFoundError: Unknown catalog
            StateConflictError: Catalog not active or no lot on the block
        """
        if seconds <= 0:
            raise InvalidInputError("Extension must be a positive number of seconds")
        now = now or utcnow()

        catalog = await self._lock_catalog(catalog_id)
        if catalog.status != CatalogStatus.ACTIVE:
            await self._release()
            raise StateConflictError(f"Catalog {catalog_id} is {catalog.status}")

        lot = await self._active_lot(catalog_id)
        if lot is None:
            await self._release()
            raise StateConflictError(f"Catalog {catalog_id} has no lot on the block")

        base = max(lot.end_time or now, now)
        lot.end_time = base + timedelta(seconds=seconds)
        lot.version = lot.version + 1
        await self.db.commit()
        await self.db.refresh(lot)

        logger.info(f"Lot {lot.lot_id} extended by {seconds}s to {lot.end_time.isoformat()}")
        self.notifier.lot_state(catalog_id, lot.lot_id, lot.status, lot.end_time)
        return lot

    async def expire_due_lots(self, now: datetime | None = None) -> list[UUID]:
        """Close lots whose timer ran out: sold to the leader, else passed.

        Only used when SCHEDULER_AUTO_ADVANCE_LOTS is on. Safe to call
        repeatedly; a lot is closed at most once.

        Returns:
            IDs of the lots closed in this call
        """
        now = now or utcnow()
        result = await self.db.execute(
            select(CatalogLot.catalog_id).where(
                and_(
                    CatalogLot.status == LotStatus.ACTIVE.value,
                    CatalogLot.end_time <= now,
                )
            )
        )
        catalog_ids = list(result.scalars().all())
        await self._release()

        closed: list[UUID] = []
        for catalog_id in catalog_ids:
            catalog = await self._lock_catalog(catalog_id)
            current = await self._active_lot(catalog_id)
            # Re-check under the lock; an operator may have moved on already
            if (
                catalog.status != CatalogStatus.ACTIVE
                or current is None
                or current.end_time is None
                or current.end_time > now
            ):
                await self._release()
                continue

            closed_status = LotStatus.SOLD if current.has_bids else LotStatus.PASSED
            next_lot = await self._close_and_advance(catalog, current, closed_status, now)
            await self.db.commit()

            closed.append(current.lot_id)
            self._after_advance(catalog, current, next_lot, "scheduler")
        return closed

    async def _close_and_advance(
        self,
        catalog: Catalog,
        current: CatalogLot | None,
        closed_status: LotStatus,
        now: datetime,
    ) -> CatalogLot | None:
        after_order = catalog.current_lot_order
        if current is not None:
            current.status = closed_status.value
            # A closed lot records when bidding actually stopped
            current.end_time = min(current.end_time, now) if current.end_time else now
            current.version = current.version + 1
            after_order = current.lot_order
            # The closed lot must leave the one-active-lot index before the next enters it
            await self.db.flush()

        next_lot = await self._next_pending_lot(catalog.catalog_id, after_order=after_order)
        catalog.version = catalog.version + 1
        if next_lot is None:
            catalog.status = CatalogStatus.ENDED.value
        else:
            self._put_on_block(catalog, next_lot, now)
        return next_lot

    def _put_on_block(self, catalog: Catalog, lot: CatalogLot, now: datetime) -> None:
        lot.status = LotStatus.ACTIVE.value
        lot.end_time = now + self.lot_duration()
        lot.version = lot.version + 1
        catalog.current_lot_order = lot.lot_order

    def _after_advance(
        self,
        catalog: Catalog,
        closed: CatalogLot | None,
        next_lot: CatalogLot | None,
        source: str,
    ) -> None:
        if closed is not None:
            record_transition("lot", closed.status, source)
            logger.info(f"Lot {closed.lot_id} closed as {closed.status} ({source})")
            self.notifier.lot_state(catalog.catalog_id, closed.lot_id, closed.status, closed.end_time)
            if closed.status == LotStatus.SOLD and closed.highest_bidder_id is not None:
                self.notifier.emit(
                    DomainEvent(
                        event_type=DomainEventType.WON,
                        catalog_id=catalog.catalog_id,
                        lot_id=closed.lot_id,
                        vehicle_id=closed.vehicle_id,
                        user_id=closed.highest_bidder_id,
                        amount=closed.current_bid,
                    )
                )
        if next_lot is not None:
            self._announce_lot(catalog, next_lot)
        else:
            record_transition("catalog", CatalogStatus.ENDED.value, source)
            logger.info(f"Catalog {catalog.catalog_id} ended")

    def _announce_lot(self, catalog: Catalog, lot: CatalogLot) -> None:
        record_transition("lot", LotStatus.ACTIVE.value, "sequencer")
        self.notifier.lot_state(catalog.catalog_id, lot.lot_id, lot.status, lot.end_time)
        self.notifier.emit(
            DomainEvent(
                event_type=DomainEventType.AUCTION_START,
                catalog_id=catalog.catalog_id,
                lot_id=lot.lot_id,
                vehicle_id=lot.vehicle_id,
                amount=lot.starting_price,
            )
        )

    async def _lock_catalog(self, catalog_id: UUID) -> Catalog:
        result = await self.db.execute(
            select(Catalog)
            .where(Catalog.catalog_id == catalog_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        catalog = result.scalar_one_or_none()
        if catalog is None:
            raise NotFoundError(f"Catalog {catalog_id} not found")
        return catalog

    async def _active_lot(self, catalog_id: UUID) -> CatalogLot | None:
        result = await self.db.execute(
            select(CatalogLot)
            .where(
                and_(
                    CatalogLot.catalog_id == catalog_id,
                    CatalogLot.status == LotStatus.ACTIVE.value,
                )
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _next_pending_lot(self, catalog_id: UUID, after_order: int) -> CatalogLot | None:
        result = await self.db.execute(
            select(CatalogLot)
            .where(
                and_(
                    CatalogLot.catalog_id == catalog_id,
                    CatalogLot.status == LotStatus.PENDING.value,
                    CatalogLot.lot_order > after_order,
                )
            )
            .order_by(CatalogLot.lot_order.asc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    # ==================== Bidding ====================

    async def place_catalog_bid(
        self,
        lot_id: UUID,
        bidder_id: UUID,
        amount: Decimal,
        now: datetime | None = None,
    ) -> BidOutcome:
        """Place a bid on a catalog lot.

        Lots have no entry-fee gate; a bid must beat the current price by at
        least the catalog's bid increment and fit the bidder's tier.

        Args:
            lot_id: Lot UUID
            bidder_id: Bidder UUID
            amount: Proposed bid amount
            now: Evaluation time (naive UTC), defaults to the current time

        Returns:
            Accepted outcome with the new highest bid, or a rejection

        Raises:
            NotFoundError: Unknown lot or bidder
            StateConflictError: Compare-and-set kept losing to concurrent writers
        """
        now = now or utcnow()
        amount = Decimal(str(amount))

        bidder = await self.db.get(User, bidder_id)
        if bidder is None:
            raise NotFoundError(f"User {bidder_id} not found")
        tier = tier_of(bidder.deposit_balance)

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            lot = await self._lock_lot(lot_id)
            policy = CatalogLotPolicy(bid_increment=await self._bid_increment(lot.catalog_id))

            reason = validate_bid(lot, amount, tier, policy, now)
            if reason is not None:
                outcome = BidOutcome.rejected(reason, lot, policy)
                await self._release()
                record_bid_outcome("lot", reason.value)
                logger.info(f"Rejected bid {amount} on lot {lot_id} by {bidder_id}: {reason}")
                return outcome

            catalog_id = lot.catalog_id
            previous_bidder_id = lot.highest_bidder_id
            outcome = await self._try_accept(lot, bidder_id, amount, now)
            if outcome is not None:
                break

            BID_CAS_CONFLICTS.labels(kind="lot").inc()
            await self._release()
            logger.info(f"Bid CAS conflict on lot {lot_id} (attempt {attempt}), re-validating")
        else:
            raise StateConflictError(f"Lot {lot_id} is changing too fast, bid not applied")

        record_bid_outcome("lot", "accepted")
        logger.info(f"Accepted bid {amount} on lot {lot_id} by {bidder_id}")

        self.notifier.bid_placed(catalog_id, lot_id, amount, bidder_id, outcome.end_time)
        if previous_bidder_id is not None and previous_bidder_id != bidder_id:
            self.notifier.emit(
                DomainEvent(
                    event_type=DomainEventType.OUTBID,
                    catalog_id=catalog_id,
                    lot_id=lot_id,
                    user_id=previous_bidder_id,
                    amount=amount,
                )
            )
            self.notifier.outbid(catalog_id, lot_id, previous_bidder_id, amount)
        return outcome

    async def _bid_increment(self, catalog_id: UUID) -> Decimal:
        """Catalog bid increment, from the local TTL cache or the database."""
        key = str(catalog_id)
        cached = _increment_cache.get(key)
        if cached is not None:
            return cached

        result = await self.db.execute(
            select(Catalog.bid_increment).where(Catalog.catalog_id == catalog_id)
        )
        increment = Decimal(str(result.scalar_one()))
        _increment_cache[key] = increment
        return increment

    async def _lock_lot(self, lot_id: UUID) -> CatalogLot:
        result = await self.db.execute(
            select(CatalogLot)
            .where(CatalogLot.lot_id == lot_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        lot = result.scalar_one_or_none()
        if lot is None:
            raise NotFoundError(f"Lot {lot_id} not found")
        return lot

    async def _try_accept(
        self, lot: CatalogLot, bidder_id: UUID, amount: Decimal, now: datetime
    ) -> BidOutcome | None:
        """Compare-and-set the lot's current bid against the version that was read."""
        result = await self.db.execute(
            update(CatalogLot)
            .where(CatalogLot.lot_id == lot.lot_id)
            .where(CatalogLot.version == lot.version)
            .where(CatalogLot.status == LotStatus.ACTIVE.value)
            .where(CatalogLot.current_bid < amount)
            .values(
                current_bid=amount,
                highest_bidder_id=bidder_id,
                version=CatalogLot.version + 1,
            )
            .returning(CatalogLot.version, CatalogLot.end_time)
            .execution_options(synchronize_session=False)
        )
        updated = result.first()
        if updated is None:
            return None

        bid = CatalogBid(lot_id=lot.lot_id, bidder_id=bidder_id, amount=amount, created_at=now)
        self.db.add(bid)
        await self.db.commit()
        await self.db.refresh(lot)

        return BidOutcome(
            accepted=True,
            current_highest_bid=amount,
            bid_id=bid.bid_id,
            end_time=updated.end_time,
        )
