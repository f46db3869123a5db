"""Business logic services."""

from salvage_auction.services.auction_service import AuctionService
from salvage_auction.services.bid_validator import BidOutcome, RejectionReason, validate_bid
from salvage_auction.services.catalog_service import CatalogService
from salvage_auction.services.exceptions import (
    AuctionError,
    AuthorizationGapError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
    VehicleAlreadyAuctionedError,
)
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.redis_service import RedisService
from salvage_auction.services.scheduler_service import SchedulerService
from salvage_auction.services.settlement_service import SettlementService
from salvage_auction.services.tier_policy import Tier, tier_of
from salvage_auction.services.user_service import UserService
from salvage_auction.services.vehicle_service import VehicleService

__all__ = [
    "AuctionService",
    "CatalogService",
    "SchedulerService",
    "SettlementService",
    "UserService",
    "VehicleService",
    "EventNotifier",
    "RedisService",
    "BidOutcome",
    "RejectionReason",
    "validate_bid",
    "Tier",
    "tier_of",
    "AuctionError",
    "AuthorizationGapError",
    "InvalidInputError",
    "NotFoundError",
    "StateConflictError",
    "VehicleAlreadyAuctionedError",
]
