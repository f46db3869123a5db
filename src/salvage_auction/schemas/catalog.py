"""Catalog schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from salvage_auction.models.enums import LotOutcome


class CatalogCreate(BaseModel):
    """Schema for catalog creation request.

    Lots are numbered 1..N in the order of ``vehicle_ids``; vehicles missing
    from ``starting_prices`` start at zero.
    """

    title: str = Field(..., min_length=1, max_length=200)
    scheduled_at: datetime
    bid_increment: Decimal = Field(default=Decimal("500"), gt=0)
    vehicle_ids: list[UUID] = Field(..., min_length=1)
    starting_prices: dict[UUID, Decimal] = Field(default_factory=dict)


class CatalogLotResponse(BaseModel):
    """Schema for a catalog lot."""

    lot_id: UUID
    vehicle_id: UUID
    lot_order: int
    status: str
    starting_price: Decimal
    current_bid: Decimal
    price_to_beat: Decimal
    highest_bidder_id: UUID | None = None
    end_time: datetime | None = None

    model_config = {"from_attributes": True}


class CatalogResponse(BaseModel):
    """Schema for catalog response with its lots."""

    catalog_id: UUID
    title: str
    status: str
    scheduled_at: datetime
    bid_increment: Decimal
    current_lot_order: int
    lots: list[CatalogLotResponse]
    created_at: datetime

    model_config = {"from_attributes": True}


class LotAdvance(BaseModel):
    """Schema for closing the lot on the block and moving to the next."""

    outcome: LotOutcome


class LotExtend(BaseModel):
    """Schema for manually extending the lot on the block."""

    seconds: int = Field(..., gt=0, le=3600)
