"""Auction model for single-vehicle selling windows."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, text

from salvage_auction.core.database import Base
from salvage_auction.models.enums import AuctionStatus

if TYPE_CHECKING:
    from salvage_auction.models.auction_entry import AuctionEntry
    from salvage_auction.models.bid import Bid
    from salvage_auction.models.vehicle import Vehicle

_OPEN_STATUS_CLAUSE = text("status IN ('draft', 'active')")


class Auction(Base):
    """Auction model: one vehicle offered in one selling window."""

    __tablename__ = "auctions"

    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vehicles.vehicle_id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=AuctionStatus.DRAFT.value,
    )
    start_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    end_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    starting_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    current_highest_bid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    highest_bidder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=True,
    )
    reserve_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    entry_fee: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("200.00"),
    )
    lot_number: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
    )
    extension_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    # Optimistic concurrency token, bumped on every bid acceptance
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    vehicle: Mapped["Vehicle"] = relationship("Vehicle", back_populates="auctions")
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="auction")
    entries: Mapped[List["AuctionEntry"]] = relationship(
        "AuctionEntry", back_populates="auction"
    )

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="chk_auction_time"),
        CheckConstraint("starting_price >= 0", name="chk_auction_starting_price"),
        CheckConstraint("current_highest_bid >= 0", name="chk_auction_highest_bid"),
        # One draft/active auction per vehicle; last line of defense for create races
        Index(
            "uq_auctions_vehicle_open",
            "vehicle_id",
            unique=True,
            postgresql_where=_OPEN_STATUS_CLAUSE,
            sqlite_where=_OPEN_STATUS_CLAUSE,
        ),
        Index("idx_auctions_status_start", "status", "start_time"),
        Index("idx_auctions_status_end", "status", "end_time"),
    )

    @property
    def price_to_beat(self) -> Decimal:
        """Effective price to beat: the highest bid, or the starting price before any bid."""
        return max(self.current_highest_bid, self.starting_price)

    @property
    def has_bids(self) -> bool:
        return self.highest_bidder_id is not None

    @property
    def reserve_met(self) -> bool | None:
        """Advisory only; None when the seller set no reserve."""
        if self.reserve_price is None:
            return None
        return self.has_bids and self.current_highest_bid >= self.reserve_price

    def is_open(self, now: datetime) -> bool:
        return self.status == AuctionStatus.ACTIVE and now < self.end_time
