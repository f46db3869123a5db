"""Auction schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from salvage_auction.models.enums import AuctionStatus


class AuctionCreate(BaseModel):
    """Schema for auction creation request."""

    vehicle_id: UUID
    start_time: datetime
    end_time: datetime
    starting_price: Decimal = Field(default=Decimal("0"), ge=0)
    reserve_price: Decimal | None = Field(default=None, ge=0)
    launch_immediately: bool = False
    lot_number: str | None = Field(default=None, max_length=40)
    entry_fee: Decimal | None = Field(default=None, ge=0)


class AuctionResponse(BaseModel):
    """Schema for auction response."""

    auction_id: UUID
    vehicle_id: UUID
    status: str
    start_time: datetime
    end_time: datetime
    starting_price: Decimal
    current_highest_bid: Decimal
    highest_bidder_id: UUID | None = None
    price_to_beat: Decimal
    reserve_price: Decimal | None = None
    reserve_met: bool | None = None
    entry_fee: Decimal
    lot_number: str | None = None
    extension_count: int
    created_at: datetime

    model_config = {"from_attributes": True}


class AuctionListResponse(BaseModel):
    """Schema for auction list response."""

    auctions: list[AuctionResponse]
    total: int


class AuctionStatusUpdate(BaseModel):
    """Schema for an operator status override."""

    status: AuctionStatus


class AuctionExtend(BaseModel):
    """Schema for manually extending an auction's end time."""

    minutes: int = Field(..., gt=0, le=7 * 24 * 60)


class EntryResponse(BaseModel):
    """Schema for a paid auction entry."""

    entry_id: UUID
    auction_id: UUID
    user_id: UUID
    fee_amount: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class InvoiceResponse(BaseModel):
    """Schema for the buyer invoice of a closed auction."""

    auction_id: UUID
    winner_id: UUID | None
    hammer_price: Decimal
    buyer_premium: Decimal
    admin_fee: Decimal
    total: Decimal
    reserve_met: bool | None = None


class LiveSnapshot(BaseModel):
    """Highest bid as seen by the live feed."""

    auction_id: UUID
    amount: Decimal
    bidder_id: UUID | None = None
    end_time: datetime | None = None
    cached: bool
