"""Deposit-based bidding tiers."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Tier:
    """A bidding tier and the largest bid it authorizes (None = unbounded)."""

    level: int
    max_bid: Decimal | None

    @property
    def can_bid(self) -> bool:
        return self.level > 0

    def allows(self, amount: Decimal) -> bool:
        return self.max_bid is None or amount <= self.max_bid


# (minimum deposit, tier), highest first
TIER_TABLE: tuple[tuple[Decimal, Tier], ...] = (
    (Decimal("50000"), Tier(level=3, max_bid=None)),
    (Decimal("25000"), Tier(level=2, max_bid=Decimal("300000"))),
    (Decimal("10000"), Tier(level=1, max_bid=Decimal("100000"))),
)

NO_TIER = Tier(level=0, max_bid=Decimal("0"))


def tier_of(deposit_balance: Decimal | int | float | None) -> Tier:
    """Map a deposit balance to its bidding tier.

    Args:
        deposit_balance: Approved deposit held for the user

    Returns:
        The highest tier whose threshold the balance reaches, or tier 0
    """
    balance = Decimal(str(deposit_balance or 0))
    for threshold, tier in TIER_TABLE:
        if balance >= threshold:
            return tier
    return NO_TIER
