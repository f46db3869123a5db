"""API dependencies for caller identity, database access and services."""

from typing import Annotated, NoReturn
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.core.config import settings
from salvage_auction.core.database import get_db
from salvage_auction.core.redis import get_redis
from salvage_auction.models.enums import UserStatus
from salvage_auction.models.user import User
from salvage_auction.services.auction_service import AuctionService
from salvage_auction.services.bid_validator import BidOutcome, RejectionReason
from salvage_auction.services.catalog_service import CatalogService
from salvage_auction.services.exceptions import (
    AuctionError,
    AuthorizationGapError,
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.redis_service import RedisService
from salvage_auction.services.scheduler_service import SchedulerService
from salvage_auction.services.user_service import UserService


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    header_user_id: Annotated[str | None, Header(alias=settings.AUTH_USER_HEADER)] = None,
) -> User:
    """Resolve the caller from the identity header set by the auth gateway.

    Args:
        db: Database session
        header_user_id: Raw header value

    Returns:
        Current user

    Raises:
        HTTPException: If the header is missing or invalid, or the user is unknown or inactive
    """
    if not header_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "Missing user identity"},
        )

    try:
        user_uuid = UUID(header_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "Invalid user identity"},
        )

    user = await UserService(db).get_by_id(user_uuid)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"code": "UNAUTHENTICATED", "message": "User not found"},
        )

    if user.status != UserStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "USER_INACTIVE", "message": "User account is not active"},
        )
    return user


async def get_current_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are an operator.

    Raises:
        HTTPException: If user is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"code": "ADMIN_REQUIRED", "message": "Admin privileges required"},
        )
    return current_user


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_current_admin_user)]
DbSession = Annotated[AsyncSession, Depends(get_db)]


# =============================================================================
# Service dependency injection
# =============================================================================


async def get_redis_service() -> RedisService:
    """Get RedisService instance with shared Redis connection pool."""
    redis = await get_redis()
    return RedisService(redis)


async def get_notifier(
    redis_service: Annotated[RedisService, Depends(get_redis_service)],
) -> EventNotifier:
    return EventNotifier(redis_service)


async def get_auction_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[EventNotifier, Depends(get_notifier)],
) -> AuctionService:
    """Get AuctionService instance with injected dependencies."""
    return AuctionService(db, notifier)


async def get_catalog_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[EventNotifier, Depends(get_notifier)],
) -> CatalogService:
    """Get CatalogService instance with injected dependencies."""
    return CatalogService(db, notifier)


async def get_scheduler_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[EventNotifier, Depends(get_notifier)],
) -> SchedulerService:
    return SchedulerService(db, notifier)


RedisServiceDep = Annotated[RedisService, Depends(get_redis_service)]
AuctionServiceDep = Annotated[AuctionService, Depends(get_auction_service)]
CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]
SchedulerServiceDep = Annotated[SchedulerService, Depends(get_scheduler_service)]


# =============================================================================
# Error mapping
# =============================================================================

ERROR_STATUS: dict[type[AuctionError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    StateConflictError: status.HTTP_409_CONFLICT,
    InvalidInputError: status.HTTP_400_BAD_REQUEST,
    AuthorizationGapError: status.HTTP_403_FORBIDDEN,
}

REJECTION_STATUS: dict[RejectionReason, int] = {
    RejectionReason.NOT_OPEN: status.HTTP_409_CONFLICT,
    RejectionReason.BID_TOO_LOW: status.HTTP_409_CONFLICT,
    RejectionReason.DEPOSIT_REQUIRED: status.HTTP_403_FORBIDDEN,
    RejectionReason.ENTRY_FEE_REQUIRED: status.HTTP_403_FORBIDDEN,
    RejectionReason.TIER_LIMIT_EXCEEDED: status.HTTP_403_FORBIDDEN,
}


def raise_http_error(error: AuctionError) -> NoReturn:
    """Translate a domain error into an HTTPException with a code/message detail."""
    status_code = status.HTTP_400_BAD_REQUEST
    for error_type, mapped in ERROR_STATUS.items():
        if isinstance(error, error_type):
            status_code = mapped
            break
    raise HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    ) from error


def raise_for_rejection(outcome: BidOutcome) -> None:
    """Raise an HTTPException carrying the rejection reason, if the bid was rejected."""
    if outcome.accepted:
        return
    raise HTTPException(
        status_code=REJECTION_STATUS[outcome.reason],
        detail={
            "code": outcome.reason.value,
            "message": outcome.message,
            "current_highest_bid": str(outcome.current_highest_bid),
            "minimum_bid": str(outcome.minimum_bid) if outcome.minimum_bid is not None else None,
        },
    )
