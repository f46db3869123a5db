"""Settlement service: buyer invoices for closed auctions.

Payment collection and escrow happen elsewhere; this only prices the sale.
"""

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.models.auction import Auction
from salvage_auction.models.enums import AuctionStatus
from salvage_auction.schemas.auction import InvoiceResponse
from salvage_auction.services.exceptions import NotFoundError, StateConflictError

ADMIN_FEE = Decimal("750.00")
FLAT_PREMIUM = Decimal("5000.00")
FLAT_PREMIUM_LIMIT = Decimal("100000")
MID_RATE_LIMIT = Decimal("400000")
MID_RATE = Decimal("0.05")
HIGH_RATE = Decimal("0.04")

CENT = Decimal("0.01")


def buyer_premium(hammer_price: Decimal) -> Decimal:
    """Buyer's premium on a hammer price.

    Flat 5,000 below 100,000; 5% up to and including 400,000; 4% above.
    """
    if hammer_price < FLAT_PREMIUM_LIMIT:
        return FLAT_PREMIUM
    rate = MID_RATE if hammer_price <= MID_RATE_LIMIT else HIGH_RATE
    return (hammer_price * rate).quantize(CENT, rounding=ROUND_HALF_UP)


class SettlementService:
    """Service class for settlement pricing."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def build_invoice(self, auction_id: UUID) -> InvoiceResponse:
        """Price the sale of an ended or settled auction.

        The reserve is reported but never blocks the invoice.

        Args:
            auction_id: Auction UUID

        Returns:
            Invoice with hammer price, premium, admin fee and total

        Raises:
            NotFoundError: Unknown auction
            StateConflictError: Auction not closed or closed without bids
        """
        auction = await self.db.get(Auction, auction_id)
        if auction is None:
            raise NotFoundError(f"Auction {auction_id} not found")
        if auction.status not in (AuctionStatus.ENDED, AuctionStatus.SETTLED):
            raise StateConflictError(f"Auction {auction_id} is {auction.status}")
        if not auction.has_bids:
            raise StateConflictError(f"Auction {auction_id} closed without bids")

        hammer_price = auction.current_highest_bid
        premium = buyer_premium(hammer_price)
        return InvoiceResponse(
            auction_id=auction.auction_id,
            winner_id=auction.highest_bidder_id,
            hammer_price=hammer_price,
            buyer_premium=premium,
            admin_fee=ADMIN_FEE,
            total=hammer_price + premium + ADMIN_FEE,
            reserve_met=auction.reserve_met,
        )
