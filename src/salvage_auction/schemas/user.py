"""User schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    """Schema for operator-side account creation."""

    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=150)
    phone_number: str | None = Field(default=None, max_length=32)
    is_admin: bool = False


class UserResponse(BaseModel):
    """Schema for user response."""

    user_id: UUID
    email: str
    full_name: str
    phone_number: str | None = None
    deposit_balance: Decimal
    bidding_tier: int
    is_verified: bool
    is_admin: bool = False
    created_at: datetime

    model_config = {"from_attributes": True}


class DepositApproval(BaseModel):
    """Schema for approving a verified deposit top-up."""

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
