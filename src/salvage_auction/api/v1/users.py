"""User account and deposit API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from salvage_auction.api.deps import AdminUser, CurrentUser, DbSession, raise_http_error
from salvage_auction.schemas.user import DepositApproval, UserCreate, UserResponse
from salvage_auction.services.exceptions import AuctionError
from salvage_auction.services.user_service import UserService

router = APIRouter()


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the caller's account, including deposit balance and tier."""
    return current_user


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: UserCreate, db: DbSession, admin: AdminUser):
    """Create a bidder or operator account (admin only)."""
    try:
        return await UserService(db).create_user(user_data)
    except AuctionError as e:
        raise_http_error(e)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: UUID, db: DbSession, admin: AdminUser):
    """Get a user by ID (admin only)."""
    user = await UserService(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": "User not found"},
        )
    return user


@router.post("/{user_id}/deposits", response_model=UserResponse)
async def approve_deposit(
    user_id: UUID,
    deposit: DepositApproval,
    db: DbSession,
    admin: AdminUser,
):
    """Credit an approved deposit and recompute the bidding tier (admin only)."""
    try:
        return await UserService(db).approve_deposit(user_id, deposit.amount)
    except AuctionError as e:
        raise_http_error(e)
