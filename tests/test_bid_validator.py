"""Tests for bid admission rules.

The validator only needs ``price_to_beat`` and ``is_open(now)`` from its
target, so plain stand-ins are used instead of ORM rows.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from salvage_auction.services.bid_validator import (
    BidOutcome,
    CatalogLotPolicy,
    RejectionReason,
    SingleAuctionPolicy,
    validate_bid,
)
from salvage_auction.services.tier_policy import tier_of

NOW = datetime(2026, 10, 19, 12, 0, 0)

AUCTION_POLICY = SingleAuctionPolicy()
LOT_POLICY = CatalogLotPolicy(bid_increment=Decimal("500"))


@dataclass
class Target:
    price_to_beat: Decimal
    open_until: datetime | None = NOW + timedelta(minutes=10)

    def is_open(self, now: datetime) -> bool:
        return self.open_until is not None and now < self.open_until


TIER_0 = tier_of(0)
TIER_1 = tier_of(10000)
TIER_3 = tier_of(50000)


class TestSingleAuctionRules:
    """Test validation order and outcomes for single auctions."""

    def test_accepts_bid_above_price(self):
        target = Target(price_to_beat=Decimal("5000"))
        assert validate_bid(target, Decimal("5500"), TIER_1, AUCTION_POLICY, NOW, has_entry=True) is None

    def test_rejects_bid_below_starting_price(self):
        target = Target(price_to_beat=Decimal("5000"))
        reason = validate_bid(target, Decimal("4500"), TIER_1, AUCTION_POLICY, NOW, has_entry=True)
        assert reason == RejectionReason.BID_TOO_LOW

    def test_rejects_equal_bid(self):
        """Test that matching the current price is not enough."""
        target = Target(price_to_beat=Decimal("5000"))
        reason = validate_bid(target, Decimal("5000"), TIER_1, AUCTION_POLICY, NOW, has_entry=True)
        assert reason == RejectionReason.BID_TOO_LOW

    def test_tier_zero_rejected_regardless_of_amount(self):
        target = Target(price_to_beat=Decimal("5000"))
        for amount in (Decimal("1"), Decimal("5500"), Decimal("10000000")):
            reason = validate_bid(target, amount, TIER_0, AUCTION_POLICY, NOW, has_entry=True)
            assert reason == RejectionReason.DEPOSIT_REQUIRED

    def test_entry_fee_required(self):
        target = Target(price_to_beat=Decimal("5000"))
        reason = validate_bid(target, Decimal("5500"), TIER_1, AUCTION_POLICY, NOW, has_entry=False)
        assert reason == RejectionReason.ENTRY_FEE_REQUIRED

    def test_tier_ceiling(self):
        target = Target(price_to_beat=Decimal("90000"))
        reason = validate_bid(target, Decimal("100500"), TIER_1, AUCTION_POLICY, NOW, has_entry=True)
        assert reason == RejectionReason.TIER_LIMIT_EXCEEDED

    def test_unbounded_tier(self):
        target = Target(price_to_beat=Decimal("900000"))
        assert validate_bid(target, Decimal("950000"), TIER_3, AUCTION_POLICY, NOW, has_entry=True) is None

    def test_closed_target_is_not_open(self):
        target = Target(price_to_beat=Decimal("5000"), open_until=None)
        reason = validate_bid(target, Decimal("5500"), TIER_1, AUCTION_POLICY, NOW, has_entry=True)
        assert reason == RejectionReason.NOT_OPEN

    def test_expired_window_is_not_open(self):
        """Test that an active target past its end time takes no bids."""
        target = Target(price_to_beat=Decimal("5000"), open_until=NOW)
        reason = validate_bid(target, Decimal("5500"), TIER_1, AUCTION_POLICY, NOW, has_entry=True)
        assert reason == RejectionReason.NOT_OPEN

    def test_first_failure_wins(self):
        """Test that NOT_OPEN is reported before every other failure."""
        target = Target(price_to_beat=Decimal("5000"), open_until=None)
        reason = validate_bid(target, Decimal("1"), TIER_0, AUCTION_POLICY, NOW, has_entry=False)
        assert reason == RejectionReason.NOT_OPEN

    def test_deposit_checked_before_entry(self):
        target = Target(price_to_beat=Decimal("5000"))
        reason = validate_bid(target, Decimal("5500"), TIER_0, AUCTION_POLICY, NOW, has_entry=False)
        assert reason == RejectionReason.DEPOSIT_REQUIRED


class TestCatalogLotRules:
    """Test increment-based rules for catalog lots."""

    def test_increment_scenario(self):
        """Test 10300 rejected and 10500 accepted at 10000 with increment 500."""
        target = Target(price_to_beat=Decimal("10000"))
        assert validate_bid(target, Decimal("10300"), TIER_1, LOT_POLICY, NOW) == RejectionReason.BID_TOO_LOW
        assert validate_bid(target, Decimal("10500"), TIER_1, LOT_POLICY, NOW) is None

    def test_no_entry_fee_gate(self):
        target = Target(price_to_beat=Decimal("10000"))
        assert validate_bid(target, Decimal("11000"), TIER_1, LOT_POLICY, NOW, has_entry=False) is None

    def test_tier_zero_hits_ceiling(self):
        """Test that a bidder without deposit is stopped by the zero ceiling on lots."""
        target = Target(price_to_beat=Decimal("10000"))
        reason = validate_bid(target, Decimal("10500"), TIER_0, LOT_POLICY, NOW)
        assert reason == RejectionReason.TIER_LIMIT_EXCEEDED

    def test_minimum_bid(self):
        assert LOT_POLICY.minimum_bid(Decimal("10000")) == Decimal("10500")


class TestBidOutcome:
    """Test the rejected-outcome helper."""

    @pytest.mark.parametrize(
        "policy,minimum",
        [(AUCTION_POLICY, Decimal("5000.01")), (LOT_POLICY, Decimal("5500"))],
    )
    def test_rejected_carries_minimum(self, policy, minimum):
        target = Target(price_to_beat=Decimal("5000"))
        outcome = BidOutcome.rejected(RejectionReason.BID_TOO_LOW, target, policy)

        assert outcome.accepted is False
        assert outcome.current_highest_bid == Decimal("5000")
        assert outcome.minimum_bid == minimum
        assert outcome.message == "Bid is below the minimum accepted amount"

    def test_accepted_has_no_message(self):
        outcome = BidOutcome(accepted=True, current_highest_bid=Decimal("5500"))
        assert outcome.message is None
