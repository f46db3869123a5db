"""User model for bidder and operator accounts."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salvage_auction.core.database import Base
from salvage_auction.models.base import TimestampMixin

if TYPE_CHECKING:
    from salvage_auction.models.auction_entry import AuctionEntry
    from salvage_auction.models.bid import Bid


class User(Base, TimestampMixin):
    """User model representing a bidder (or an operator when is_admin is set)."""

    __tablename__ = "users"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    full_name: Mapped[str] = mapped_column(
        String(150),
        nullable=False,
    )
    phone_number: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
    )
    deposit_balance: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal("0.00"),
    )
    # Denormalized from deposit_balance on every deposit approval
    bidding_tier: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    is_admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
    )

    # Relationships
    bids: Mapped[List["Bid"]] = relationship("Bid", back_populates="bidder")
    entries: Mapped[List["AuctionEntry"]] = relationship(
        "AuctionEntry", back_populates="user"
    )

    __table_args__ = (
        CheckConstraint("deposit_balance >= 0", name="chk_user_deposit_non_negative"),
        CheckConstraint("bidding_tier BETWEEN 0 AND 3", name="chk_user_tier_range"),
        Index("idx_users_status", "status"),
    )
