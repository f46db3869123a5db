"""Bid schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class BidCreate(BaseModel):
    """Schema for bid placement request (auction or catalog lot)."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)


class BidResultResponse(BaseModel):
    """Schema for the outcome of a bid placement."""

    accepted: bool
    reason: str | None = None
    message: str | None = None
    bid_id: UUID | None = None
    current_highest_bid: Decimal
    minimum_bid: Decimal | None = None
    end_time: datetime | None = None
    extended: bool = False


class BidResponse(BaseModel):
    """Schema for an accepted bid in a history listing."""

    bid_id: UUID
    bidder_id: UUID
    amount: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class BidHistoryResponse(BaseModel):
    """Schema for bid history response."""

    bids: list[BidResponse]
    total: int
