"""Vehicle schemas, including the typed condition report."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field


class ConditionReport(BaseModel):
    """Inspection report attached to a vehicle.

    Fixed optional fields plus one tag set per damage category. Unknown keys
    coming from older listings are ignored rather than kept as loose data.
    """

    model_config = {"extra": "ignore"}

    reserve_price: Decimal | None = Field(default=None, ge=0)
    run_drive_status: Literal["starts_drives", "engine_starts", "non_runner"] | None = None
    odometer_actual: bool | None = None
    keys_available: bool | None = None
    chassis_number: str | None = None
    license_status: Literal["active", "expired", "cancelled"] | None = None
    location: str | None = None
    lot_number: str | None = None
    lane: str | None = None
    primary_damage: str | None = None
    secondary_damage: str | None = None
    exterior: set[str] = Field(default_factory=set)
    interior: set[str] = Field(default_factory=set)
    mechanical: set[str] = Field(default_factory=set)
    missing_parts: set[str] = Field(default_factory=set)
    notes: str | None = None


class VehicleCreate(BaseModel):
    """Schema for vehicle listing request."""

    make: str = Field(..., min_length=1, max_length=80)
    model: str = Field(..., min_length=1, max_length=80)
    year: int = Field(..., ge=1950, le=2100)
    color: str | None = None
    mileage: int = Field(default=0, ge=0)
    damage_type: str | None = None
    description: str | None = None
    condition_report: ConditionReport = Field(default_factory=ConditionReport)


class VehicleResponse(BaseModel):
    """Schema for vehicle response."""

    vehicle_id: UUID
    make: str
    model: str
    year: int
    color: str | None = None
    mileage: int
    damage_type: str | None = None
    description: str | None = None
    condition_report: ConditionReport
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
