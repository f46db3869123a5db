"""Auction service: single-auction lifecycle and bid acceptance.

Bid acceptance uses two layers, both inside one database transaction:
- Layer 1: PostgreSQL row-level lock (SELECT ... FOR UPDATE)
- Layer 2: Optimistic compare-and-set on ``version``

If the compare-and-set loses, the row is re-read and the bid is validated
again against the fresh state, so a bid that is no longer higher comes back
as BID_TOO_LOW instead of overwriting the newer leader.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.core.config import settings
from salvage_auction.core.database import to_naive_utc, utcnow
from salvage_auction.middleware.metrics import (
    ANTI_SNIPE_EXTENSIONS,
    BID_CAS_CONFLICTS,
    record_bid_outcome,
    record_transition,
)
from salvage_auction.models.auction import Auction
from salvage_auction.models.auction_entry import AuctionEntry
from salvage_auction.models.bid import Bid
from salvage_auction.models.catalog import CatalogLot
from salvage_auction.models.enums import (
    OPEN_AUCTION_STATUSES,
    OPEN_LOT_STATUSES,
    AuctionStatus,
)
from salvage_auction.models.user import User
from salvage_auction.models.vehicle import Vehicle
from salvage_auction.schemas.auction import AuctionCreate
from salvage_auction.schemas.events import DomainEvent, DomainEventType
from salvage_auction.services.bid_validator import (
    BidOutcome,
    SingleAuctionPolicy,
    validate_bid,
)
from salvage_auction.services.exceptions import (
    InvalidInputError,
    NotFoundError,
    StateConflictError,
    VehicleAlreadyAuctionedError,
)
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.tier_policy import tier_of

logger = logging.getLogger(__name__)

SINGLE_AUCTION_POLICY = SingleAuctionPolicy()

# Re-validation rounds after losing a compare-and-set before giving up
MAX_CAS_ATTEMPTS = 3

# Operator-driven transitions; the scheduler only does draft->active and active->ended
ALLOWED_TRANSITIONS: dict[AuctionStatus, frozenset[AuctionStatus]] = {
    AuctionStatus.DRAFT: frozenset({AuctionStatus.ACTIVE, AuctionStatus.CANCELLED}),
    AuctionStatus.ACTIVE: frozenset(
        {AuctionStatus.ENDED, AuctionStatus.DRAFT, AuctionStatus.CANCELLED}
    ),
    AuctionStatus.ENDED: frozenset({AuctionStatus.SETTLED}),
    AuctionStatus.SETTLED: frozenset(),
    AuctionStatus.CANCELLED: frozenset(),
}


def compute_anti_snipe(
    end_time: datetime, extension_count: int, now: datetime
) -> tuple[datetime, bool]:
    """Return the end time after a bid accepted at ``now``.

    A bid inside the final window pushes the end back by the extension
    period, measured from the current end time. Every later late bid re-arms
    it, up to ANTI_SNIPE_MAX_EXTENSIONS when that is configured.

    Args:
        end_time: End time before the bid
        extension_count: Extensions already applied
        now: Acceptance time

    Returns:
        Tuple of (new_end_time, extended)
    """
    window = timedelta(seconds=settings.ANTI_SNIPE_WINDOW_SECONDS)
    if end_time - now > window:
        return end_time, False

    cap = settings.ANTI_SNIPE_MAX_EXTENSIONS
    if cap is not None and extension_count >= cap:
        return end_time, False

    return end_time + timedelta(seconds=settings.ANTI_SNIPE_EXTENSION_SECONDS), True


async def ensure_vehicles_free(db: AsyncSession, vehicle_ids: list[UUID]) -> None:
    """Raise if any vehicle already backs an open auction or an open catalog lot.

    Callers hold FOR UPDATE locks on the vehicle rows while checking.

    Raises:
        VehicleAlreadyAuctionedError: First conflicting vehicle found
    """
    open_auction = await db.execute(
        select(Auction.vehicle_id).where(
            and_(
                Auction.vehicle_id.in_(vehicle_ids),
                Auction.status.in_([s.value for s in OPEN_AUCTION_STATUSES]),
            )
        )
    )
    busy = open_auction.scalars().first()
    if busy is not None:
        raise VehicleAlreadyAuctionedError(f"Vehicle {busy} already has an open auction")

    open_lot = await db.execute(
        select(CatalogLot.vehicle_id).where(
            and_(
                CatalogLot.vehicle_id.in_(vehicle_ids),
                CatalogLot.status.in_([s.value for s in OPEN_LOT_STATUSES]),
            )
        )
    )
    busy = open_lot.scalars().first()
    if busy is not None:
        raise VehicleAlreadyAuctionedError(f"Vehicle {busy} is listed in an open catalog")


class AuctionService:
    """Service class for single-auction operations."""

    def __init__(self, db: AsyncSession, notifier: EventNotifier):
        self.db = db
        self.notifier = notifier

    # ==================== Reads ====================

    async def get_auction(self, auction_id: UUID) -> Auction:
        """Get auction by ID.

        Raises:
            NotFoundError: Unknown auction
        """
        auction = await self.db.get(Auction, auction_id)
        if auction is None:
            raise NotFoundError(f"Auction {auction_id} not found")
        return auction

    async def list_auctions(
        self, status: AuctionStatus | None = None, limit: int = 20, offset: int = 0
    ) -> tuple[list[Auction], int]:
        """List auctions, soonest ending first.

        Returns:
            Tuple of (auctions, total matching)
        """
        query = select(Auction)
        count_query = select(func.count(Auction.auction_id))
        if status is not None:
            query = query.where(Auction.status == status.value)
            count_query = count_query.where(Auction.status == status.value)

        result = await self.db.execute(
            query.order_by(Auction.end_time.asc()).limit(limit).offset(offset)
        )
        total = (await self.db.execute(count_query)).scalar_one()
        return list(result.scalars().all()), total

    async def list_bids(
        self, auction_id: UUID, limit: int = 50, offset: int = 0
    ) -> tuple[list[Bid], int]:
        """Accepted bids of an auction, newest first."""
        await self.get_auction(auction_id)
        result = await self.db.execute(
            select(Bid)
            .where(Bid.auction_id == auction_id)
            .order_by(Bid.created_at.desc(), Bid.amount.desc())
            .limit(limit)
            .offset(offset)
        )
        total = (
            await self.db.execute(
                select(func.count(Bid.bid_id)).where(Bid.auction_id == auction_id)
            )
        ).scalar_one()
        return list(result.scalars().all()), total

    # ==================== Creation ====================

    async def create_auction(self, data: AuctionCreate, now: datetime | None = None) -> Auction:
        """Create an auction for a vehicle.

        The vehicle row is locked while checking that it does not already back
        an open auction or an open catalog lot. The partial unique index on
        open auctions catches anything that still slips through.

        Args:
            data: Auction creation data
            now: Evaluation time (naive UTC), defaults to the current time

        Returns:
            Created auction, ``active`` when launched immediately else ``draft``

        Raises:
            InvalidInputError: Bad time window
            NotFoundError: Unknown vehicle
            VehicleAlreadyAuctionedError: Vehicle already has an open auction or lot
        """
        now = now or utcnow()
        start_time = to_naive_utc(data.start_time)
        end_time = to_naive_utc(data.end_time)

        if end_time <= start_time:
            raise InvalidInputError("End time must be after start time")
        if end_time <= now:
            raise InvalidInputError("End time must be in the future")

        status = AuctionStatus.DRAFT
        if data.launch_immediately:
            status = AuctionStatus.ACTIVE
            start_time = min(start_time, now)

        result = await self.db.execute(
            select(Vehicle).where(Vehicle.vehicle_id == data.vehicle_id).with_for_update()
        )
        vehicle = result.scalar_one_or_none()
        if vehicle is None:
            await self._release()
            raise NotFoundError(f"Vehicle {data.vehicle_id} not found")

        try:
            await ensure_vehicles_free(self.db, [vehicle.vehicle_id])
        except VehicleAlreadyAuctionedError:
            await self._release()
            raise

        reserve_price = data.reserve_price
        if reserve_price is None:
            reserve_price = vehicle.reserve_price

        auction = Auction(
            vehicle_id=vehicle.vehicle_id,
            status=status.value,
            start_time=start_time,
            end_time=end_time,
            starting_price=data.starting_price,
            current_highest_bid=Decimal("0.00"),
            reserve_price=reserve_price,
            entry_fee=(
                data.entry_fee
                if data.entry_fee is not None
                else Decimal(settings.ENTRY_FEE_AMOUNT)
            ),
            lot_number=data.lot_number or vehicle.report.lot_number,
        )

        try:
            self.db.add(auction)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise VehicleAlreadyAuctionedError(
                f"Vehicle {data.vehicle_id} already has an open auction"
            )
        await self.db.refresh(auction)

        logger.info(
            f"Created auction {auction.auction_id} for vehicle {vehicle.vehicle_id} "
            f"({auction.status}, ends {auction.end_time.isoformat()})"
        )
        self.notifier.emit(
            DomainEvent(
                event_type=DomainEventType.NEW_CAR,
                auction_id=auction.auction_id,
                vehicle_id=vehicle.vehicle_id,
                amount=auction.starting_price,
            )
        )
        if status == AuctionStatus.ACTIVE:
            record_transition("auction", AuctionStatus.ACTIVE.value, "operator")
            self._announce_start(auction)
        return auction

    # ==================== Bidding ====================

    async def place_bid(
        self,
        auction_id: UUID,
        bidder_id: UUID,
        amount: Decimal,
        now: datetime | None = None,
    ) -> BidOutcome:
        """Place a bid on a single auction.

        Ordinary rejections come back as a ``BidOutcome`` with a reason; only
        unknown IDs raise.

        Args:
            auction_id: Auction UUID
            bidder_id: Bidder UUID
            amount: Proposed bid amount
            now: Evaluation time (naive UTC), defaults to the current time

        Returns:
            Accepted outcome with the new highest bid and end time, or a rejection

        Raises:
            NotFoundError: Unknown auction or bidder
            StateConflictError: Compare-and-set kept losing to concurrent writers
        """
        now = now or utcnow()
        amount = Decimal(str(amount))

        bidder = await self.db.get(User, bidder_id)
        if bidder is None:
            raise NotFoundError(f"User {bidder_id} not found")
        tier = tier_of(bidder.deposit_balance)
        has_entry = await self.has_entry(auction_id, bidder_id)

        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            auction = await self._lock_auction(auction_id)

            reason = validate_bid(
                auction, amount, tier, SINGLE_AUCTION_POLICY, now, has_entry=has_entry
            )
            if reason is not None:
                outcome = BidOutcome.rejected(reason, auction, SINGLE_AUCTION_POLICY)
                await self._release()
                record_bid_outcome("auction", reason.value)
                logger.info(
                    f"Rejected bid {amount} on auction {auction_id} by {bidder_id}: {reason}"
                )
                return outcome

            previous_bidder_id = auction.highest_bidder_id
            outcome = await self._try_accept(auction, bidder_id, amount, now)
            if outcome is not None:
                break

            # Someone committed first; drop the stale snapshot and re-validate
            BID_CAS_CONFLICTS.labels(kind="auction").inc()
            await self._release()
            logger.info(
                f"Bid CAS conflict on auction {auction_id} (attempt {attempt}), re-validating"
            )
        else:
            raise StateConflictError(
                f"Auction {auction_id} is changing too fast, bid not applied"
            )

        record_bid_outcome("auction", "accepted")
        if outcome.extended:
            ANTI_SNIPE_EXTENSIONS.inc()
        logger.info(
            f"Accepted bid {amount} on auction {auction_id} by {bidder_id}"
            + (f", extended to {outcome.end_time.isoformat()}" if outcome.extended else "")
        )

        self.notifier.bid_placed(
            auction_id, auction_id, amount, bidder_id, outcome.end_time, outcome.extended
        )
        if previous_bidder_id is not None and previous_bidder_id != bidder_id:
            self.notifier.emit(
                DomainEvent(
                    event_type=DomainEventType.OUTBID,
                    auction_id=auction_id,
                    user_id=previous_bidder_id,
                    amount=amount,
                )
            )
            self.notifier.outbid(auction_id, auction_id, previous_bidder_id, amount)
        return outcome

    async def _lock_auction(self, auction_id: UUID) -> Auction:
        """Layer 1: SELECT ... FOR UPDATE, bypassing any stale identity-map copy."""
        result = await self.db.execute(
            select(Auction)
            .where(Auction.auction_id == auction_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        auction = result.scalar_one_or_none()
        if auction is None:
            raise NotFoundError(f"Auction {auction_id} not found")
        return auction

    async def _try_accept(
        self, auction: Any, bidder_id: UUID, amount: Decimal, now: datetime
    ) -> BidOutcome | None:
        """Layer 2: compare-and-set the highest bid against the version that was read.

        Args:
            auction: Auction state as read (only its identity, version, end
                time and extension count are used)
            bidder_id: Bidder UUID
            amount: Validated bid amount
            now: Acceptance time

        Returns:
            Accepted outcome, or None if another writer got there first
        """
        new_end_time, extended = compute_anti_snipe(
            auction.end_time, auction.extension_count, now
        )

        result = await self.db.execute(
            update(Auction)
            .where(Auction.auction_id == auction.auction_id)
            .where(Auction.version == auction.version)
            .where(Auction.status == AuctionStatus.ACTIVE.value)
            .where(Auction.current_highest_bid < amount)
            .values(
                current_highest_bid=amount,
                highest_bidder_id=bidder_id,
                end_time=new_end_time,
                extension_count=Auction.extension_count + (1 if extended else 0),
                version=Auction.version + 1,
            )
            .returning(Auction.version, Auction.end_time)
            .execution_options(synchronize_session=False)
        )
        updated = result.first()
        if updated is None:
            return None

        bid = Bid(
            auction_id=auction.auction_id,
            bidder_id=bidder_id,
            amount=amount,
            created_at=now,
        )
        self.db.add(bid)
        await self.db.commit()

        if isinstance(auction, Auction):
            await self.db.refresh(auction)

        return BidOutcome(
            accepted=True,
            current_highest_bid=amount,
            bid_id=bid.bid_id,
            end_time=updated.end_time,
            extended=extended,
        )

    async def _release(self) -> None:
        # Nothing was written; end the transaction to drop row locks
        await self.db.commit()

    # ==================== Entry Fee ====================

    async def has_entry(self, auction_id: UUID, user_id: UUID) -> bool:
        result = await self.db.execute(
            select(AuctionEntry.entry_id).where(
                and_(
                    AuctionEntry.auction_id == auction_id,
                    AuctionEntry.user_id == user_id,
                )
            )
        )
        return result.first() is not None

    async def pay_entry_fee(self, auction_id: UUID, user_id: UUID) -> AuctionEntry:
        """Record that a user paid the entry fee for an auction.

        Idempotent: paying twice returns the existing entry.

        Raises:
            NotFoundError: Unknown auction or user
            StateConflictError: Auction no longer accepts entries
        """
        auction = await self.get_auction(auction_id)
        if auction.status not in OPEN_AUCTION_STATUSES:
            raise StateConflictError(f"Auction {auction_id} is {auction.status}")
        if await self.db.get(User, user_id) is None:
            raise NotFoundError(f"User {user_id} not found")

        existing = await self._get_entry(auction_id, user_id)
        if existing is not None:
            return existing

        entry = AuctionEntry(
            auction_id=auction_id,
            user_id=user_id,
            fee_amount=auction.entry_fee,
        )
        try:
            self.db.add(entry)
            await self.db.commit()
        except IntegrityError:
            # Concurrent double submit
            await self.db.rollback()
            existing = await self._get_entry(auction_id, user_id)
            if existing is None:
                raise
            return existing

        await self.db.refresh(entry)
        logger.info(f"Entry fee {entry.fee_amount} paid on auction {auction_id} by {user_id}")
        return entry

    async def _get_entry(self, auction_id: UUID, user_id: UUID) -> AuctionEntry | None:
        result = await self.db.execute(
            select(AuctionEntry).where(
                and_(
                    AuctionEntry.auction_id == auction_id,
                    AuctionEntry.user_id == user_id,
                )
            )
        )
        return result.scalar_one_or_none()

    # ==================== Operator Transitions ====================

    async def set_auction_status(
        self, auction_id: UUID, status: AuctionStatus, now: datetime | None = None
    ) -> Auction:
        """Apply an operator status change.

        Setting the current status again is a no-op.

        Args:
            auction_id: Auction UUID
            status: Target status
            now: Evaluation time (naive UTC), defaults to the current time

        Returns:
            Updated auction

        Raises:
            NotFoundError: Unknown auction
            StateConflictError: Transition not allowed from the current status
        """
        now = now or utcnow()
        auction = await self._lock_auction(auction_id)
        current = AuctionStatus(auction.status)

        if current == status:
            await self._release()
            return auction
        if status not in ALLOWED_TRANSITIONS[current]:
            await self._release()
            raise StateConflictError(
                f"Cannot move auction {auction_id} from {current} to {status}"
            )

        if status == AuctionStatus.ACTIVE:
            if auction.end_time <= now:
                await self._release()
                raise StateConflictError(
                    f"Auction {auction_id} end time has already passed"
                )
            if auction.start_time > now:
                auction.start_time = now
        elif status == AuctionStatus.DRAFT and auction.has_bids:
            await self._release()
            raise StateConflictError(
                f"Auction {auction_id} already has bids and cannot return to draft"
            )

        auction.status = status.value
        auction.version = auction.version + 1
        await self.db.commit()
        await self.db.refresh(auction)

        record_transition("auction", status.value, "operator")
        logger.info(f"Auction {auction_id}: {current} -> {status} (operator)")

        self.notifier.auction_state(auction.auction_id, auction.status, auction.end_time)
        if status == AuctionStatus.ACTIVE:
            self._announce_start(auction)
        elif status == AuctionStatus.ENDED:
            self._announce_winner(auction)
        return auction

    async def extend_auction_time(
        self, auction_id: UUID, minutes: int, now: datetime | None = None
    ) -> Auction:
        """Push an open auction's end time back by ``minutes``.

        Raises:
            InvalidInputError: Non-positive minutes
            NotFoundError: Unknown auction
            StateConflictError: Auction is not draft or active
        """
        if minutes <= 0:
            raise InvalidInputError("Extension must be a positive number of minutes")

        auction = await self._lock_auction(auction_id)
        if auction.status not in OPEN_AUCTION_STATUSES:
            await self._release()
            raise StateConflictError(f"Auction {auction_id} is {auction.status}")

        auction.end_time = auction.end_time + timedelta(minutes=minutes)
        auction.version = auction.version + 1
        await self.db.commit()
        await self.db.refresh(auction)

        logger.info(
            f"Auction {auction_id} extended by {minutes} min to {auction.end_time.isoformat()}"
        )
        self.notifier.auction_state(auction.auction_id, auction.status, auction.end_time)
        return auction

    # ==================== Event Helpers ====================

    def _announce_start(self, auction: Auction) -> None:
        self.notifier.emit(
            DomainEvent(
                event_type=DomainEventType.AUCTION_START,
                auction_id=auction.auction_id,
                vehicle_id=auction.vehicle_id,
                amount=auction.starting_price,
            )
        )

    def _announce_winner(self, auction: Auction) -> None:
        if auction.highest_bidder_id is None:
            return
        self.notifier.emit(
            DomainEvent(
                event_type=DomainEventType.WON,
                auction_id=auction.auction_id,
                vehicle_id=auction.vehicle_id,
                user_id=auction.highest_bidder_id,
                amount=auction.current_highest_bid,
            )
        )
