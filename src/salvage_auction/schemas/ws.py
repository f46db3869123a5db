"""WebSocket event schemas for the live bidding feed."""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class BidPlacedData(BaseModel):
    """Data payload for a bid accepted on an auction or a catalog lot."""

    room_id: str
    target_id: str
    amount: Decimal
    bidder_id: str
    end_time: datetime | None = None
    extended: bool = False
    timestamp: datetime


class BidPlacedEvent(BaseModel):
    """New highest bid pushed to everyone watching the auction or catalog."""

    event: Literal["bid_placed"] = "bid_placed"
    data: BidPlacedData


class StateChangeData(BaseModel):
    """Data payload for a lifecycle transition."""

    room_id: str
    target_id: str
    status: str
    end_time: datetime | None = None
    timestamp: datetime


class AuctionStateEvent(BaseModel):
    """Auction went live, ended, settled or was cancelled."""

    event: Literal["auction_state"] = "auction_state"
    data: StateChangeData


class LotStateEvent(BaseModel):
    """A catalog lot changed state or had its timer moved."""

    event: Literal["lot_state"] = "lot_state"
    data: StateChangeData


class OutbidData(BaseModel):
    """Data payload sent to a bidder who lost the lead."""

    room_id: str
    target_id: str
    amount: Decimal
    timestamp: datetime


class OutbidEvent(BaseModel):
    """Personal notice that someone else now holds the highest bid."""

    event: Literal["outbid"] = "outbid"
    data: OutbidData


# Type alias for all WebSocket events
WSEvent = BidPlacedEvent | AuctionStateEvent | LotStateEvent | OutbidEvent
