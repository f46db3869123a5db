"""Vehicle listing API endpoints."""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from salvage_auction.api.deps import AdminUser, DbSession
from salvage_auction.schemas.vehicle import VehicleCreate, VehicleResponse
from salvage_auction.services.vehicle_service import VehicleService

router = APIRouter()


@router.get("", response_model=list[VehicleResponse])
async def list_vehicles(
    db: DbSession,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=100),
):
    """Get vehicles with pagination."""
    vehicles, _ = await VehicleService(db).get_all(skip=skip, limit=limit)
    return vehicles


@router.get("/{vehicle_id}", response_model=VehicleResponse)
async def get_vehicle(vehicle_id: UUID, db: DbSession):
    """Get vehicle by ID."""
    vehicle = await VehicleService(db).get_by_id(vehicle_id)
    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "NOT_FOUND", "message": "Vehicle not found"},
        )
    return vehicle


@router.post("", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(vehicle_data: VehicleCreate, db: DbSession, admin: AdminUser):
    """List a new vehicle (admin only)."""
    return await VehicleService(db).create(vehicle_data)
