"""User service for bidder accounts and deposit approval."""

import logging
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.models.enums import UserStatus
from salvage_auction.models.user import User
from salvage_auction.schemas.user import UserCreate
from salvage_auction.services.exceptions import (
    InvalidInputError,
    NotFoundError,
    StateConflictError,
)
from salvage_auction.services.tier_policy import tier_of

logger = logging.getLogger(__name__)


class UserService:
    """Service class for user operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email."""
        result = await self.db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def get_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        result = await self.db.execute(select(User).where(User.user_id == user_id))
        return result.scalar_one_or_none()

    async def create_user(self, user_data: UserCreate) -> User:
        """Create a bidder (or operator) account with no deposit.

        Args:
            user_data: Account data

        Returns:
            Created user

        Raises:
            StateConflictError: If email already exists
        """
        existing = await self.get_by_email(user_data.email)
        if existing:
            raise StateConflictError("Email already registered", code="EMAIL_TAKEN")

        user = User(
            email=user_data.email,
            full_name=user_data.full_name,
            phone_number=user_data.phone_number,
            deposit_balance=Decimal("0.00"),
            bidding_tier=0,
            status=UserStatus.ACTIVE.value,
            is_admin=user_data.is_admin,
        )

        try:
            self.db.add(user)
            await self.db.commit()
            await self.db.refresh(user)
            return user
        except IntegrityError:
            await self.db.rollback()
            raise StateConflictError("Email already registered", code="EMAIL_TAKEN")

    async def approve_deposit(self, user_id: UUID, amount: Decimal) -> User:
        """Credit an approved deposit and recompute the bidding tier.

        Deposit verification itself happens outside this service; this is
        the hook it calls once a transfer has been accepted.

        Args:
            user_id: User UUID
            amount: Approved amount to add

        Returns:
            Updated user

        Raises:
            InvalidInputError: Non-positive amount
            NotFoundError: Unknown user
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise InvalidInputError("Deposit amount must be positive")

        result = await self.db.execute(
            select(User)
            .where(User.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if user is None:
            await self.db.commit()
            raise NotFoundError(f"User {user_id} not found")

        previous_tier = user.bidding_tier
        user.deposit_balance = user.deposit_balance + amount
        user.bidding_tier = tier_of(user.deposit_balance).level
        user.is_verified = True
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(
            f"Deposit {amount} approved for user {user_id}: balance={user.deposit_balance}, "
            f"tier {previous_tier} -> {user.bidding_tier}"
        )
        return user
