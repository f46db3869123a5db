"""Lifecycle scheduler API endpoints."""

from fastapi import APIRouter, HTTPException, Query, status
from redis.exceptions import RedisError

from salvage_auction.api.deps import AdminUser, RedisServiceDep, SchedulerServiceDep
from salvage_auction.schemas.scheduler import SweepResult

router = APIRouter()


@router.post("/sweep", response_model=SweepResult)
async def run_sweep(admin: AdminUser, scheduler_service: SchedulerServiceDep):
    """Run one lifecycle sweep now (admin only). Safe to repeat."""
    return await scheduler_service.run_sweep()


@router.get("/events")
async def recent_events(
    admin: AdminUser,
    redis_service: RedisServiceDep,
    count: int = Query(default=50, ge=1, le=500),
) -> list[dict[str, str]]:
    """Most recent domain events from the event stream, newest first."""
    try:
        return await redis_service.read_events(count)
    except RedisError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "EVENT_LOG_UNAVAILABLE", "message": str(e)},
        )
