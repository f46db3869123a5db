"""Catalog session API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from salvage_auction.api.deps import (
    AdminUser,
    CatalogServiceDep,
    CurrentUser,
    raise_for_rejection,
    raise_http_error,
)
from salvage_auction.models.enums import CatalogStatus
from salvage_auction.schemas.bid import BidCreate, BidHistoryResponse, BidResultResponse
from salvage_auction.schemas.catalog import (
    CatalogCreate,
    CatalogLotResponse,
    CatalogResponse,
    LotAdvance,
    LotExtend,
)
from salvage_auction.services.exceptions import AuctionError

router = APIRouter()


@router.get("", response_model=list[CatalogResponse])
async def list_catalogs(
    catalog_service: CatalogServiceDep,
    status_filter: CatalogStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
):
    """List catalogs by scheduled time."""
    catalogs, _ = await catalog_service.list_catalogs(
        status=status_filter, limit=limit, offset=skip
    )
    return catalogs


@router.get("/{catalog_id}", response_model=CatalogResponse)
async def get_catalog(catalog_id: UUID, catalog_service: CatalogServiceDep):
    """Get catalog with its lots in order."""
    try:
        return await catalog_service.get_catalog(catalog_id)
    except AuctionError as e:
        raise_http_error(e)


@router.post("", response_model=CatalogResponse, status_code=status.HTTP_201_CREATED)
async def create_catalog(
    catalog_data: CatalogCreate,
    admin: AdminUser,
    catalog_service: CatalogServiceDep,
):
    """Create a scheduled catalog (admin only)."""
    try:
        return await catalog_service.create_catalog(catalog_data)
    except AuctionError as e:
        raise_http_error(e)


@router.delete("/{catalog_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_catalog(
    catalog_id: UUID,
    admin: AdminUser,
    catalog_service: CatalogServiceDep,
):
    """Delete a catalog that has not started (admin only)."""
    try:
        await catalog_service.delete_catalog(catalog_id)
    except AuctionError as e:
        raise_http_error(e)


@router.post("/{catalog_id}/start", response_model=CatalogResponse)
async def start_catalog(
    catalog_id: UUID,
    admin: AdminUser,
    catalog_service: CatalogServiceDep,
):
    """Open the catalog and put lot 1 on the block (admin only)."""
    try:
        return await catalog_service.start_catalog(catalog_id)
    except AuctionError as e:
        raise_http_error(e)


@router.post("/{catalog_id}/advance", response_model=CatalogResponse)
async def advance_lot(
    catalog_id: UUID,
    advance: LotAdvance,
    admin: AdminUser,
    catalog_service: CatalogServiceDep,
):
    """Close the lot on the block as sold or no sale and move on (admin only)."""
    try:
        return await catalog_service.advance_lot(catalog_id, advance.outcome)
    except AuctionError as e:
        raise_http_error(e)


@router.post("/{catalog_id}/extend", response_model=CatalogLotResponse)
async def extend_lot(
    catalog_id: UUID,
    extension: LotExtend,
    admin: AdminUser,
    catalog_service: CatalogServiceDep,
):
    """Give the lot on the block more time (admin only)."""
    try:
        return await catalog_service.extend_lot(catalog_id, extension.seconds)
    except AuctionError as e:
        raise_http_error(e)


@router.post(
    "/lots/{lot_id}/bids",
    response_model=BidResultResponse,
    status_code=status.HTTP_201_CREATED,
)
async def place_catalog_bid(
    lot_id: UUID,
    bid_data: BidCreate,
    current_user: CurrentUser,
    catalog_service: CatalogServiceDep,
):
    """Place a bid on the lot currently on the block."""
    try:
        outcome = await catalog_service.place_catalog_bid(
            lot_id, current_user.user_id, bid_data.amount
        )
    except AuctionError as e:
        raise_http_error(e)

    raise_for_rejection(outcome)
    return BidResultResponse(
        accepted=True,
        bid_id=outcome.bid_id,
        current_highest_bid=outcome.current_highest_bid,
        end_time=outcome.end_time,
    )


@router.get("/lots/{lot_id}/bids", response_model=BidHistoryResponse)
async def get_lot_bid_history(
    lot_id: UUID,
    catalog_service: CatalogServiceDep,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
):
    """Accepted bids of a lot, newest first."""
    try:
        bids, total = await catalog_service.list_lot_bids(lot_id, limit=limit, offset=skip)
    except AuctionError as e:
        raise_http_error(e)
    return BidHistoryResponse(bids=bids, total=total)
