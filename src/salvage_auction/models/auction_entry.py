"""Auction entry model: the paid entry-fee gate for single auctions."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from salvage_auction.core.database import Base

if TYPE_CHECKING:
    from salvage_auction.models.auction import Auction
    from salvage_auction.models.user import User


class AuctionEntry(Base):
    """One row per (auction, user) once the entry fee has been paid."""

    __tablename__ = "auction_entries"

    entry_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    auction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("auctions.auction_id"),
        nullable=False,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )
    fee_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )

    # Relationships
    auction: Mapped["Auction"] = relationship("Auction", back_populates="entries")
    user: Mapped["User"] = relationship("User", back_populates="entries")

    __table_args__ = (
        UniqueConstraint("auction_id", "user_id", name="uq_auction_entries_auction_user"),
    )
