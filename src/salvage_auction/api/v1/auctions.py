"""Single-auction API endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, status
from redis.exceptions import RedisError

from salvage_auction.api.deps import (
    AdminUser,
    AuctionServiceDep,
    CurrentUser,
    DbSession,
    RedisServiceDep,
    raise_for_rejection,
    raise_http_error,
)
from salvage_auction.models.enums import AuctionStatus
from salvage_auction.schemas.auction import (
    AuctionCreate,
    AuctionExtend,
    AuctionListResponse,
    AuctionResponse,
    AuctionStatusUpdate,
    EntryResponse,
    InvoiceResponse,
    LiveSnapshot,
)
from salvage_auction.schemas.bid import BidCreate, BidHistoryResponse, BidResultResponse
from salvage_auction.services.exceptions import AuctionError, AuthorizationGapError
from salvage_auction.services.settlement_service import SettlementService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=AuctionListResponse)
async def list_auctions(
    auction_service: AuctionServiceDep,
    status_filter: AuctionStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """List auctions, optionally filtered by status."""
    auctions, total = await auction_service.list_auctions(
        status=status_filter, limit=limit, offset=skip
    )
    return AuctionListResponse(auctions=auctions, total=total)


@router.get("/{auction_id}", response_model=AuctionResponse)
async def get_auction(auction_id: UUID, auction_service: AuctionServiceDep):
    """Get auction by ID."""
    try:
        return await auction_service.get_auction(auction_id)
    except AuctionError as e:
        raise_http_error(e)


@router.get("/{auction_id}/live", response_model=LiveSnapshot)
async def get_live_snapshot(
    auction_id: UUID,
    auction_service: AuctionServiceDep,
    redis_service: RedisServiceDep,
):
    """Current highest bid, served from the live-feed cache when it is warm."""
    try:
        cached = await redis_service.get_highest_bid(str(auction_id))
    except RedisError as e:
        logger.warning(f"Live snapshot cache unavailable for {auction_id}: {e}")
        cached = None
    if cached is not None:
        return LiveSnapshot(auction_id=auction_id, cached=True, **cached)

    try:
        auction = await auction_service.get_auction(auction_id)
    except AuctionError as e:
        raise_http_error(e)
    return LiveSnapshot(
        auction_id=auction.auction_id,
        amount=auction.current_highest_bid,
        bidder_id=auction.highest_bidder_id,
        end_time=auction.end_time,
        cached=False,
    )


@router.post("", response_model=AuctionResponse, status_code=status.HTTP_201_CREATED)
async def create_auction(
    auction_data: AuctionCreate,
    admin: AdminUser,
    auction_service: AuctionServiceDep,
):
    """Create an auction for a vehicle (admin only)."""
    try:
        return await auction_service.create_auction(auction_data)
    except AuctionError as e:
        raise_http_error(e)


@router.patch("/{auction_id}/status", response_model=AuctionResponse)
async def set_auction_status(
    auction_id: UUID,
    update: AuctionStatusUpdate,
    admin: AdminUser,
    auction_service: AuctionServiceDep,
):
    """Operator status override: go live, end, back to draft, settle or cancel."""
    try:
        return await auction_service.set_auction_status(auction_id, update.status)
    except AuctionError as e:
        raise_http_error(e)


@router.post("/{auction_id}/extend", response_model=AuctionResponse)
async def extend_auction(
    auction_id: UUID,
    extension: AuctionExtend,
    admin: AdminUser,
    auction_service: AuctionServiceDep,
):
    """Push an auction's end time back (admin only)."""
    try:
        return await auction_service.extend_auction_time(auction_id, extension.minutes)
    except AuctionError as e:
        raise_http_error(e)


@router.post("/{auction_id}/entry", response_model=EntryResponse)
async def pay_entry_fee(
    auction_id: UUID,
    current_user: CurrentUser,
    auction_service: AuctionServiceDep,
):
    """Record the caller's entry fee for an auction (idempotent)."""
    try:
        return await auction_service.pay_entry_fee(auction_id, current_user.user_id)
    except AuctionError as e:
        raise_http_error(e)


@router.post(
    "/{auction_id}/bids",
    response_model=BidResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_bid(
    auction_id: UUID,
    bid_data: BidCreate,
    current_user: CurrentUser,
    auction_service: AuctionServiceDep,
):
    """Place a bid on an auction.

    Rejections come back as 409 (not open, too low) or 403 (deposit, entry
    fee, tier ceiling) with the reason code and the current minimum bid.
    """
    try:
        outcome = await auction_service.place_bid(
            auction_id, current_user.user_id, bid_data.amount
        )
    except AuctionError as e:
        raise_http_error(e)

    raise_for_rejection(outcome)
    return BidResultResponse(
        accepted=True,
        bid_id=outcome.bid_id,
        current_highest_bid=outcome.current_highest_bid,
        end_time=outcome.end_time,
        extended=outcome.extended,
    )


@router.get("/{auction_id}/bids", response_model=BidHistoryResponse)
async def get_bid_history(
    auction_id: UUID,
    auction_service: AuctionServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """Accepted bids of an auction, newest first."""
    try:
        bids, total = await auction_service.list_bids(auction_id, limit=limit, offset=skip)
    except AuctionError as e:
        raise_http_error(e)
    return BidHistoryResponse(bids=bids, total=total)


@router.get("/{auction_id}/invoice", response_model=InvoiceResponse)
async def get_invoice(auction_id: UUID, db: DbSession, current_user: CurrentUser):
    """Buyer invoice for an ended or settled auction (winner or admin only)."""
    try:
        invoice = await SettlementService(db).build_invoice(auction_id)
    except AuctionError as e:
        raise_http_error(e)

    if not current_user.is_admin and invoice.winner_id != current_user.user_id:
        raise_http_error(
            AuthorizationGapError("Only the winner can view this invoice")
        )
    return invoice
