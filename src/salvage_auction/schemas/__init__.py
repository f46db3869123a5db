"""Pydantic schemas for request/response validation."""

from salvage_auction.schemas.auction import (
    AuctionCreate,
    AuctionExtend,
    AuctionListResponse,
    AuctionResponse,
    AuctionStatusUpdate,
    EntryResponse,
    InvoiceResponse,
)
from salvage_auction.schemas.bid import BidCreate, BidHistoryResponse, BidResponse, BidResultResponse
from salvage_auction.schemas.catalog import (
    CatalogCreate,
    CatalogLotResponse,
    CatalogResponse,
    LotAdvance,
    LotExtend,
)
from salvage_auction.schemas.events import DomainEvent, DomainEventType
from salvage_auction.schemas.scheduler import SweepResult
from salvage_auction.schemas.user import DepositApproval, UserCreate, UserResponse
from salvage_auction.schemas.vehicle import ConditionReport, VehicleCreate, VehicleResponse

__all__ = [
    "UserCreate",
    "UserResponse",
    "DepositApproval",
    "ConditionReport",
    "VehicleCreate",
    "VehicleResponse",
    "AuctionCreate",
    "AuctionResponse",
    "AuctionListResponse",
    "AuctionStatusUpdate",
    "AuctionExtend",
    "EntryResponse",
    "InvoiceResponse",
    "BidCreate",
    "BidResultResponse",
    "BidResponse",
    "BidHistoryResponse",
    "CatalogCreate",
    "CatalogLotResponse",
    "CatalogResponse",
    "LotAdvance",
    "LotExtend",
    "DomainEvent",
    "DomainEventType",
    "SweepResult",
]
