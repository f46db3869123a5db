import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from salvage_auction.api.v1 import auctions, catalogs, scheduler, users, vehicles, ws
from salvage_auction.core.config import settings
from salvage_auction.core.database import get_db
from salvage_auction.core.redis import close_redis, get_redis, redis_available
from salvage_auction.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.redis_service import RedisService
from salvage_auction.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)

SCHEDULER_LOCK_NAME = "scheduler:sweep"

# Background task control
_scheduler_task: asyncio.Task | None = None
_notifier: EventNotifier | None = None


async def run_locked_sweep(redis_service: RedisService, notifier: EventNotifier) -> None:
    """Run one sweep unless another replica holds the sweep lock.

    The sweep is idempotent on its own; the lock only saves replicas from
    doing the same work at the same time.
    """
    acquired, owner_id = await redis_service.acquire_lock(
        SCHEDULER_LOCK_NAME, ttl=settings.SCHEDULER_LOCK_TTL_SECONDS
    )
    if not acquired:
        logger.debug("Sweep lock held elsewhere, skipping this tick")
        return

    try:
        async for db in get_db():
            await SchedulerService(db, notifier).run_sweep()
            break
    finally:
        await redis_service.release_lock(SCHEDULER_LOCK_NAME, owner_id)


async def scheduler_loop(notifier: EventNotifier) -> None:
    """Background task activating and ending auctions every SCHEDULER_INTERVAL_SECONDS."""
    while True:
        try:
            redis = await get_redis()
            redis_service = RedisService(redis)
            try:
                await run_locked_sweep(redis_service, notifier)
            except RedisError as e:
                # Lock unavailable; the sweep is safe to run unguarded
                logger.warning(f"Sweep lock unavailable ({e}), sweeping without it")
                async for db in get_db():
                    await SchedulerService(db, notifier).run_sweep()
                    break

            await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)

        except asyncio.CancelledError:
            logger.info("Scheduler loop cancelled")
            break
        except Exception as e:
            logger.error(f"Error in scheduler loop: {e}")
            await asyncio.sleep(settings.SCHEDULER_INTERVAL_SECONDS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    global _scheduler_task, _notifier

    # Startup
    logger.info("Starting application...")

    redis = await get_redis()
    if not await redis_available():
        logger.warning("Redis unreachable at startup; events will be dropped until it returns")
    _notifier = EventNotifier(RedisService(redis))

    if settings.SCHEDULER_ENABLED:
        logger.info(
            f"Starting lifecycle scheduler (every {settings.SCHEDULER_INTERVAL_SECONDS}s, "
            f"auto_advance_lots={settings.SCHEDULER_AUTO_ADVANCE_LOTS})"
        )
        _scheduler_task = asyncio.create_task(scheduler_loop(_notifier))

    yield

    # Shutdown
    logger.info("Stopping background tasks")

    if _scheduler_task:
        _scheduler_task.cancel()
        try:
            await _scheduler_task
        except asyncio.CancelledError:
            pass

    if _notifier:
        await _notifier.drain()
    await close_redis()


app = FastAPI(
    title="Salvage Auction Engine",
    version="1.0.0",
    description="Auction and catalog lot bidding for salvage vehicles",
    lifespan=lifespan,
)

# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(users.router, prefix="/api/v1/users", tags=["users"])
app.include_router(vehicles.router, prefix="/api/v1/vehicles", tags=["vehicles"])
app.include_router(auctions.router, prefix="/api/v1/auctions", tags=["auctions"])
app.include_router(catalogs.router, prefix="/api/v1/catalogs", tags=["catalogs"])
app.include_router(scheduler.router, prefix="/api/v1/scheduler", tags=["scheduler"])

# WebSocket router (no prefix, endpoint is /ws/{room_id})
app.include_router(ws.router, tags=["websocket"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
