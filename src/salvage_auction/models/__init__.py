"""SQLAlchemy ORM models."""

from salvage_auction.models.auction import Auction
from salvage_auction.models.auction_entry import AuctionEntry
from salvage_auction.models.base import TimestampMixin
from salvage_auction.models.bid import Bid
from salvage_auction.models.catalog import Catalog, CatalogBid, CatalogLot
from salvage_auction.models.enums import (
    AuctionStatus,
    CatalogStatus,
    LotOutcome,
    LotStatus,
    VehicleStatus,
)
from salvage_auction.models.user import User
from salvage_auction.models.vehicle import Vehicle

__all__ = [
    "TimestampMixin",
    "User",
    "Vehicle",
    "Auction",
    "AuctionEntry",
    "Bid",
    "Catalog",
    "CatalogLot",
    "CatalogBid",
    "AuctionStatus",
    "CatalogStatus",
    "LotStatus",
    "LotOutcome",
    "VehicleStatus",
]
