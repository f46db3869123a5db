"""Catalog session models: a catalog, its ordered lots and lot bids."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func, text

from salvage_auction.core.database import Base
from salvage_auction.models.enums import CatalogStatus, LotStatus

_ACTIVE_LOT_CLAUSE = text("status = 'active'")
_OPEN_LOT_CLAUSE = text("status IN ('pending', 'active')")


class Catalog(Base):
    """Catalog model: a scheduled session of lots sold one after another."""

    __tablename__ = "catalogs"

    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    title: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CatalogStatus.SCHEDULED.value,
    )
    scheduled_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    bid_increment: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("500.00"),
    )
    current_lot_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
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

    # Relationships
    lots: Mapped[List["CatalogLot"]] = relationship(
        "CatalogLot",
        back_populates="catalog",
        order_by="CatalogLot.lot_order",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        CheckConstraint("bid_increment > 0", name="chk_catalog_bid_increment"),
        Index("idx_catalogs_status", "status"),
    )


class CatalogLot(Base):
    """One vehicle's turn on the block inside a catalog."""

    __tablename__ = "catalog_lots"

    lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    catalog_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("catalogs.catalog_id", ondelete="CASCADE"),
        nullable=False,
    )
    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("vehicles.vehicle_id"),
        nullable=False,
    )
    lot_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LotStatus.PENDING.value,
    )
    starting_price: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    current_bid: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    highest_bidder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=True,
    )
    end_time: Mapped[datetime | None] = mapped_column(
        DateTime,
        nullable=True,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Relationships
    catalog: Mapped["Catalog"] = relationship("Catalog", back_populates="lots")
    bids: Mapped[List["CatalogBid"]] = relationship(
        "CatalogBid", back_populates="lot", cascade="all, delete-orphan"
    )

    __table_args__ = (
        UniqueConstraint("catalog_id", "lot_order", name="uq_catalog_lots_order"),
        CheckConstraint("lot_order >= 1", name="chk_catalog_lot_order"),
        CheckConstraint("starting_price >= 0", name="chk_catalog_lot_starting_price"),
        # At most one lot on the block per catalog
        Index(
            "uq_catalog_lots_one_active",
            "catalog_id",
            unique=True,
            postgresql_where=_ACTIVE_LOT_CLAUSE,
            sqlite_where=_ACTIVE_LOT_CLAUSE,
        ),
        # A vehicle can wait in or be on the block of only one catalog
        Index(
            "uq_catalog_lots_vehicle_open",
            "vehicle_id",
            unique=True,
            postgresql_where=_OPEN_LOT_CLAUSE,
            sqlite_where=_OPEN_LOT_CLAUSE,
        ),
    )

    @property
    def price_to_beat(self) -> Decimal:
        return max(self.current_bid, self.starting_price)

    @property
    def has_bids(self) -> bool:
        return self.highest_bidder_id is not None

    def is_open(self, now: datetime) -> bool:
        return (
            self.status == LotStatus.ACTIVE
            and self.end_time is not None
            and now < self.end_time
        )


class CatalogBid(Base):
    """Append-only record of a bid accepted on a catalog lot."""

    __tablename__ = "catalog_bids"

    bid_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    lot_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("catalog_lots.lot_id", ondelete="CASCADE"),
        nullable=False,
    )
    bidder_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )

    # Relationships
    lot: Mapped["CatalogLot"] = relationship("CatalogLot", back_populates="bids")

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_catalog_bid_amount_positive"),
        Index("uq_catalog_bids_lot_amount", "lot_id", "amount", unique=True),
        Index("idx_catalog_bids_lot_created", "lot_id", "created_at"),
    )
