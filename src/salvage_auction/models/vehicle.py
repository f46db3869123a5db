"""Vehicle model for salvage listings."""

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List

from sqlalchemy import JSON, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from salvage_auction.core.database import Base
from salvage_auction.models.base import TimestampMixin
from salvage_auction.schemas.vehicle import ConditionReport

if TYPE_CHECKING:
    from salvage_auction.models.auction import Auction


class Vehicle(Base, TimestampMixin):
    """Vehicle model representing one listed car.

    The bidding engine only ever reads ``reserve_price`` from it.
    """

    __tablename__ = "vehicles"

    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    make: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
    )
    model: Mapped[str] = mapped_column(
        String(80),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    color: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
    )
    mileage: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    damage_type: Mapped[str | None] = mapped_column(
        String(40),
        nullable=True,
    )
    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    condition_report: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        default=dict,
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="approved",
    )

    # Relationships
    auctions: Mapped[List["Auction"]] = relationship(
        "Auction", back_populates="vehicle"
    )

    __table_args__ = (
        CheckConstraint("mileage >= 0", name="chk_vehicle_mileage_non_negative"),
        Index("idx_vehicles_status", "status"),
    )

    @property
    def report(self) -> ConditionReport:
        return ConditionReport.model_validate(self.condition_report or {})

    @property
    def reserve_price(self) -> Decimal | None:
        return self.report.reserve_price
