"""Status vocabularies stored in String columns."""

from enum import StrEnum


class AuctionStatus(StrEnum):
    DRAFT = "draft"
    ACTIVE = "active"
    ENDED = "ended"
    SETTLED = "settled"
    CANCELLED = "cancelled"


# A vehicle may be auctioned again only once its previous auction left these.
OPEN_AUCTION_STATUSES = (AuctionStatus.DRAFT, AuctionStatus.ACTIVE)


class CatalogStatus(StrEnum):
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    ENDED = "ended"


class LotStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    SOLD = "sold"
    PASSED = "passed"
    NO_SALE = "no_sale"


OPEN_LOT_STATUSES = (LotStatus.PENDING, LotStatus.ACTIVE)


class LotOutcome(StrEnum):
    """Outcome an operator assigns to the lot on the block when advancing."""

    SOLD = "sold"
    NO_SALE = "no_sale"


class VehicleStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SOLD = "sold"


class UserStatus(StrEnum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
