"""Bid admission rules shared by single auctions and catalog lots.

Both auctions and catalog lots expose the same small ``Biddable`` surface, and
the rules that differ between them (deposit gate, entry-fee gate, minimum
step) live in a policy object handed to ``validate_bid``. The rules are
checked in a fixed order and the first failure wins:

1. the target must be open                      -> NOT_OPEN
2. a deposit tier is required (auctions)         -> DEPOSIT_REQUIRED
3. a paid entry is required (auctions)           -> ENTRY_FEE_REQUIRED
4. the amount must clear the current price       -> BID_TOO_LOW
5. the amount must fit the bidder's tier ceiling -> TIER_LIMIT_EXCEEDED
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Protocol
from uuid import UUID

from salvage_auction.services.tier_policy import Tier


class RejectionReason(StrEnum):
    NOT_OPEN = "NOT_OPEN"
    DEPOSIT_REQUIRED = "DEPOSIT_REQUIRED"
    ENTRY_FEE_REQUIRED = "ENTRY_FEE_REQUIRED"
    BID_TOO_LOW = "BID_TOO_LOW"
    TIER_LIMIT_EXCEEDED = "TIER_LIMIT_EXCEEDED"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.NOT_OPEN: "Bidding is not open",
    RejectionReason.DEPOSIT_REQUIRED: "A deposit is required before bidding",
    RejectionReason.ENTRY_FEE_REQUIRED: "The entry fee for this auction has not been paid",
    RejectionReason.BID_TOO_LOW: "Bid is below the minimum accepted amount",
    RejectionReason.TIER_LIMIT_EXCEEDED: "Bid exceeds the maximum allowed by your bidding tier",
}


class Biddable(Protocol):
    """What the validator needs to know about an auction or a catalog lot."""

    @property
    def price_to_beat(self) -> Decimal: ...

    def is_open(self, now: datetime) -> bool: ...


class BidPolicy(Protocol):
    requires_deposit: bool
    requires_entry: bool

    def is_high_enough(self, amount: Decimal, price_to_beat: Decimal) -> bool: ...

    def minimum_bid(self, price_to_beat: Decimal) -> Decimal: ...


@dataclass(frozen=True)
class SingleAuctionPolicy:
    """Single auctions: deposit and entry fee required, any amount above the current price."""

    requires_deposit: bool = True
    requires_entry: bool = True

    def is_high_enough(self, amount: Decimal, price_to_beat: Decimal) -> bool:
        return amount > price_to_beat

    def minimum_bid(self, price_to_beat: Decimal) -> Decimal:
        # Exclusive floor; the smallest representable step above it
        return price_to_beat + Decimal("0.01")


@dataclass(frozen=True)
class CatalogLotPolicy:
    """Catalog lots: no entry fee, bids must rise by at least the catalog increment."""

    bid_increment: Decimal
    requires_deposit: bool = False
    requires_entry: bool = False

    def is_high_enough(self, amount: Decimal, price_to_beat: Decimal) -> bool:
        return amount >= price_to_beat + self.bid_increment

    def minimum_bid(self, price_to_beat: Decimal) -> Decimal:
        return price_to_beat + self.bid_increment


def validate_bid(
    target: Biddable,
    amount: Decimal,
    tier: Tier,
    policy: BidPolicy,
    now: datetime,
    has_entry: bool = False,
) -> RejectionReason | None:
    """Decide whether a proposed bid is admissible.

    Args:
        target: Auction or catalog lot as currently stored
        amount: Proposed bid amount
        tier: Bidder's tier derived from the deposit balance
        policy: Rules specific to the kind of target
        now: Evaluation time (naive UTC)
        has_entry: Whether the bidder paid the entry fee for this target

    Returns:
        None if the bid is admissible, otherwise the first failing reason
    """
    if not target.is_open(now):
        return RejectionReason.NOT_OPEN
    if policy.requires_deposit and not tier.can_bid:
        return RejectionReason.DEPOSIT_REQUIRED
    if policy.requires_entry and not has_entry:
        return RejectionReason.ENTRY_FEE_REQUIRED
    if not policy.is_high_enough(amount, target.price_to_beat):
        return RejectionReason.BID_TOO_LOW
    if not tier.allows(amount):
        return RejectionReason.TIER_LIMIT_EXCEEDED
    return None


@dataclass(frozen=True)
class BidOutcome:
    """Result of a bid placement: accepted with the new state, or a typed rejection."""

    accepted: bool
    current_highest_bid: Decimal
    reason: RejectionReason | None = None
    minimum_bid: Decimal | None = None
    bid_id: UUID | None = None
    end_time: datetime | None = None
    extended: bool = False

    @property
    def message(self) -> str | None:
        if self.reason is None:
            return None
        return REJECTION_MESSAGES[self.reason]

    @classmethod
    def rejected(
        cls, reason: RejectionReason, target: Biddable, policy: BidPolicy
    ) -> "BidOutcome":
        price = target.price_to_beat
        return cls(
            accepted=False,
            current_highest_bid=price,
            reason=reason,
            minimum_bid=policy.minimum_bid(price),
        )
