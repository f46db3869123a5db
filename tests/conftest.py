"""Pytest configuration and fixtures for testing."""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from salvage_auction.core.database import Base
from salvage_auction.models import Auction, AuctionEntry, User, Vehicle
from salvage_auction.models.enums import AuctionStatus
from salvage_auction.services.tier_policy import tier_of

# Fixed evaluation time shared by service tests (naive UTC)
NOW = datetime(2026, 10, 19, 12, 0, 0)


class RecordingNotifier:
    """Stands in for EventNotifier and keeps every call for assertions."""

    def __init__(self):
        self.events = []
        self.bids = []
        self.outbids = []
        self.auction_states = []
        self.lot_states = []

    def emit(self, event):
        self.events.append(event)

    def bid_placed(self, room_id, target_id, amount, bidder_id, end_time, extended=False):
        self.bids.append((room_id, target_id, amount, bidder_id, end_time, extended))

    def outbid(self, room_id, target_id, user_id, amount):
        self.outbids.append((room_id, target_id, user_id, amount))

    def auction_state(self, auction_id, status, end_time):
        self.auction_states.append((auction_id, status, end_time))

    def lot_state(self, catalog_id, lot_id, status, end_time):
        self.lot_states.append((catalog_id, lot_id, status, end_time))

    def event_types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


# Mock Redis client fixture
@pytest.fixture
def mock_redis() -> AsyncMock:
    """Create a mock Redis client."""
    redis = AsyncMock()

    # Mock common Redis operations
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.hgetall = AsyncMock(return_value={})
    redis.xadd = AsyncMock(return_value="1760875200000-0")
    redis.xrevrange = AsyncMock(return_value=[])

    # register_script is synchronous and returns an awaitable script object
    script = AsyncMock(return_value=1)
    redis.register_script = MagicMock(return_value=script)

    return redis


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


# In-memory database shared across the connections of one test
@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


# ==================== Factories ====================


@pytest.fixture
def make_user(session: AsyncSession):
    """Create a bidder holding ``deposit`` (tier derived from it)."""
    counter = {"n": 0}

    async def _make_user(deposit: Decimal | int = 0, is_admin: bool = False) -> User:
        counter["n"] += 1
        balance = Decimal(str(deposit))
        user = User(
            email=f"bidder{counter['n']}@test.com",
            full_name=f"Bidder {counter['n']}",
            deposit_balance=balance,
            bidding_tier=tier_of(balance).level,
            is_verified=balance > 0,
            is_admin=is_admin,
        )
        session.add(user)
        await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_vehicle(session: AsyncSession):
    async def _make_vehicle(reserve_price: Decimal | None = None, lot_number: str | None = None) -> Vehicle:
        report = {}
        if reserve_price is not None:
            report["reserve_price"] = str(reserve_price)
        if lot_number is not None:
            report["lot_number"] = lot_number
        vehicle = Vehicle(
            make="Toyota",
            model="Corolla",
            year=2018,
            mileage=84000,
            condition_report=report,
        )
        session.add(vehicle)
        await session.commit()
        return vehicle

    return _make_vehicle


@pytest.fixture
def make_auction(session: AsyncSession, make_vehicle):
    """Insert an auction directly, bypassing the service checks."""

    async def _make_auction(
        status: AuctionStatus = AuctionStatus.ACTIVE,
        start_time: datetime = NOW - timedelta(hours=1),
        end_time: datetime = NOW + timedelta(hours=1),
        starting_price: Decimal | int = 5000,
        reserve_price: Decimal | None = None,
    ) -> Auction:
        vehicle = await make_vehicle()
        auction = Auction(
            vehicle_id=vehicle.vehicle_id,
            status=status.value,
            start_time=start_time,
            end_time=end_time,
            starting_price=Decimal(str(starting_price)),
            current_highest_bid=Decimal("0.00"),
            reserve_price=reserve_price,
            entry_fee=Decimal("200.00"),
        )
        session.add(auction)
        await session.commit()
        return auction

    return _make_auction


@pytest.fixture
def pay_entry(session: AsyncSession):
    async def _pay_entry(auction: Auction, user: User) -> AuctionEntry:
        entry = AuctionEntry(
            auction_id=auction.auction_id,
            user_id=user.user_id,
            fee_amount=auction.entry_fee,
        )
        session.add(entry)
        await session.commit()
        return entry

    return _pay_entry


@pytest.fixture
def make_bidder(make_user, pay_entry):
    """Tier 1 bidder (10,000 deposit) with the entry fee paid for ``auction``."""

    async def _make_bidder(auction: Auction, deposit: Decimal | int = 10000) -> User:
        user = await make_user(deposit)
        await pay_entry(auction, user)
        return user

    return _make_bidder
