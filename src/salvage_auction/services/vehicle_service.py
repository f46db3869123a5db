"""Vehicle service for listing and reading vehicles."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.models.enums import VehicleStatus
from salvage_auction.models.vehicle import Vehicle
from salvage_auction.schemas.vehicle import VehicleCreate


class VehicleService:
    """Service class for vehicle operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(
        self, skip: int = 0, limit: int = 100, status: VehicleStatus | None = None
    ) -> tuple[list[Vehicle], int]:
        """Get vehicles with pagination, newest first.

        Returns:
            Tuple of (vehicles list, total count)
        """
        query = select(Vehicle)
        count_query = select(func.count(Vehicle.vehicle_id))
        if status is not None:
            query = query.where(Vehicle.status == status.value)
            count_query = count_query.where(Vehicle.status == status.value)

        total = (await self.db.execute(count_query)).scalar_one()
        result = await self.db.execute(
            query.order_by(Vehicle.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_by_id(self, vehicle_id: UUID) -> Vehicle | None:
        """Get vehicle by ID."""
        return await self.db.get(Vehicle, vehicle_id)

    async def create(self, vehicle_data: VehicleCreate) -> Vehicle:
        """List a new vehicle.

        The condition report is stored as JSON; its tag sets become lists.
        """
        vehicle = Vehicle(
            make=vehicle_data.make,
            model=vehicle_data.model,
            year=vehicle_data.year,
            color=vehicle_data.color,
            mileage=vehicle_data.mileage,
            damage_type=vehicle_data.damage_type,
            description=vehicle_data.description,
            condition_report=vehicle_data.condition_report.model_dump(
                mode="json", exclude_none=True
            ),
            status=VehicleStatus.APPROVED.value,
        )

        self.db.add(vehicle)
        await self.db.commit()
        await self.db.refresh(vehicle)
        return vehicle
