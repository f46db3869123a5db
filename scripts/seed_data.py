"""Seed data script for development and testing.

Creates:
- 1 admin + BIDDER_COUNT bidders spread over the deposit tiers
- 6 vehicles with condition reports
- 1 active single auction (first vehicle)
- 1 scheduled catalog holding the remaining vehicles

Environment Variables:
    AUCTION_DURATION_MINUTES: Single auction duration in minutes (default: 30)
    BIDDER_COUNT: Number of bidder accounts (default: 20)
    RESET_DATA: Set to "true" to clear auctions/catalogs/vehicles before seeding (default: false)

Usage:
    # First time setup
    python -m scripts.seed_data

    # Fresh listings, keep accounts
    RESET_DATA=true python -m scripts.seed_data

Bidders are addressed with the X-User-Id header, so the script prints the IDs
of the admin and of one bidder per tier.
"""

import asyncio
import os
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession

from salvage_auction.core.database import async_session_maker, engine, utcnow
from salvage_auction.models import Auction, Catalog, User, Vehicle
from salvage_auction.schemas.auction import AuctionCreate
from salvage_auction.schemas.catalog import CatalogCreate
from salvage_auction.schemas.user import UserCreate
from salvage_auction.schemas.vehicle import ConditionReport, VehicleCreate
from salvage_auction.services.auction_service import AuctionService
from salvage_auction.services.catalog_service import CatalogService
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.user_service import UserService
from salvage_auction.services.vehicle_service import VehicleService

# Configuration from environment variables
AUCTION_DURATION_MINUTES = int(os.getenv("AUCTION_DURATION_MINUTES", "30"))
BIDDER_COUNT = int(os.getenv("BIDDER_COUNT", "20"))
RESET_DATA = os.getenv("RESET_DATA", "false").lower() == "true"

# Deposits cycled over bidders: no tier, tier 1, tier 2, tier 3
DEPOSIT_LADDER = [None, Decimal("10000"), Decimal("25000"), Decimal("50000")]

VEHICLES = [
    VehicleCreate(
        make="Toyota",
        model="Corolla",
        year=2018,
        color="white",
        mileage=84000,
        damage_type="front",
        condition_report=ConditionReport(
            reserve_price=Decimal("60000"),
            run_drive_status="starts_drives",
            keys_available=True,
            lot_number="A-1001",
            primary_damage="front end",
            exterior={"bumper", "hood"},
        ),
    ),
    VehicleCreate(
        make="Honda",
        model="Civic",
        year=2016,
        color="black",
        mileage=120500,
        damage_type="side",
        condition_report=ConditionReport(
            run_drive_status="engine_starts",
            lot_number="C-2001",
            primary_damage="left side",
            exterior={"doors"},
        ),
    ),
    VehicleCreate(
        make="Nissan",
        model="Sunny",
        year=2015,
        color="silver",
        mileage=150000,
        damage_type="flood",
        condition_report=ConditionReport(
            run_drive_status="non_runner",
            lot_number="C-2002",
            primary_damage="water",
            interior={"seats", "carpet"},
            mechanical={"electrical"},
        ),
    ),
    VehicleCreate(
        make="Hyundai",
        model="Elantra",
        year=2019,
        color="blue",
        mileage=61000,
        damage_type="rear",
        condition_report=ConditionReport(
            run_drive_status="starts_drives",
            lot_number="C-2003",
            primary_damage="rear end",
            exterior={"trunk", "bumper"},
        ),
    ),
    VehicleCreate(
        make="Kia",
        model="Cerato",
        year=2017,
        color="red",
        mileage=98000,
        damage_type="rollover",
        condition_report=ConditionReport(
            run_drive_status="non_runner",
            lot_number="C-2004",
            primary_damage="roof",
            missing_parts={"windshield"},
        ),
    ),
    VehicleCreate(
        make="Mitsubishi",
        model="Lancer",
        year=2014,
        color="grey",
        mileage=175000,
        damage_type="fire",
        condition_report=ConditionReport(
            run_drive_status="non_runner",
            keys_available=False,
            lot_number="C-2005",
            primary_damage="engine bay",
            mechanical={"engine", "wiring"},
        ),
    ),
]


async def reset_listing_data(session: AsyncSession) -> None:
    """Clear bids, auctions, catalogs and vehicles; accounts are kept."""
    print("Resetting listing data...")
    for table in (
        "catalog_bids",
        "catalog_lots",
        "catalogs",
        "bids",
        "auction_entries",
        "auctions",
        "vehicles",
    ):
        await session.execute(text(f"DELETE FROM {table}"))
    await session.commit()
    print("  Cleared bids, entries, auctions, catalogs, vehicles")


async def seed_users(session: AsyncSession) -> list[User]:
    """Create 1 admin + BIDDER_COUNT bidders.

    Users:
    - Admin: admin@test.com (is_admin=True)
    - Bidders: bidder001@test.com to bidderNNN@test.com
    - Deposits cycle through DEPOSIT_LADDER, so every tier is represented
    """
    print("Seeding users...")

    result = await session.execute(select(User).limit(1))
    if result.scalar_one_or_none():
        print("  Users already exist, skipping...")
        result = await session.execute(select(User).order_by(User.email))
        return list(result.scalars().all())

    service = UserService(session)
    admin = await service.create_user(
        UserCreate(email="admin@test.com", full_name="Auction Operator", is_admin=True)
    )
    users = [admin]

    for i in range(1, BIDDER_COUNT + 1):
        user = await service.create_user(
            UserCreate(email=f"bidder{i:03d}@test.com", full_name=f"Bidder {i:03d}")
        )
        deposit = DEPOSIT_LADDER[i % len(DEPOSIT_LADDER)]
        if deposit is not None:
            user = await service.approve_deposit(user.user_id, deposit)
        users.append(user)

    print(f"  Created {len(users)} users (1 admin)")
    return users


async def seed_vehicles(session: AsyncSession) -> list[Vehicle]:
    """Create the demo vehicles unless some are already listed."""
    print("Seeding vehicles...")

    if not RESET_DATA:
        result = await session.execute(select(Vehicle).limit(1))
        if result.scalar_one_or_none():
            print("  Vehicles already exist, skipping...")
            result = await session.execute(select(Vehicle).order_by(Vehicle.created_at))
            return list(result.scalars().all())

    service = VehicleService(session)
    vehicles = []
    for data in VEHICLES:
        vehicle = await service.create(data)
        vehicles.append(vehicle)
        print(f"  {vehicle.year} {vehicle.make} {vehicle.model}: {vehicle.vehicle_id}")
    return vehicles


async def seed_auction(
    session: AsyncSession, notifier: EventNotifier, vehicle: Vehicle
) -> Auction | None:
    """Launch one single auction on the first vehicle."""
    print("Seeding auction...")

    if not RESET_DATA:
        result = await session.execute(select(Auction).limit(1))
        if result.scalar_one_or_none():
            print("  Auction already exists, skipping...")
            return None

    now = utcnow()
    auction = await AuctionService(session, notifier).create_auction(
        AuctionCreate(
            vehicle_id=vehicle.vehicle_id,
            start_time=now,
            end_time=now + timedelta(minutes=AUCTION_DURATION_MINUTES),
            starting_price=Decimal("5000"),
            launch_immediately=True,
        ),
        now=now,
    )

    print(f"  Created auction: {auction.auction_id}")
    print(f"    Vehicle: {vehicle.make} {vehicle.model}")
    print(f"    Duration: {AUCTION_DURATION_MINUTES} minutes")
    print(f"    End: {auction.end_time}")
    print(f"    Reserve: {auction.reserve_price}")
    return auction


async def seed_catalog(
    session: AsyncSession, notifier: EventNotifier, vehicles: list[Vehicle]
) -> Catalog | None:
    """Schedule one catalog with the remaining vehicles, one hour from now."""
    print("Seeding catalog...")

    if not RESET_DATA:
        result = await session.execute(select(Catalog).limit(1))
        if result.scalar_one_or_none():
            print("  Catalog already exists, skipping...")
            return None

    catalog = await CatalogService(session, notifier).create_catalog(
        CatalogCreate(
            title="Weekly Salvage Catalog",
            scheduled_at=utcnow() + timedelta(hours=1),
            bid_increment=Decimal("500"),
            vehicle_ids=[v.vehicle_id for v in vehicles],
            starting_prices={v.vehicle_id: Decimal("10000") for v in vehicles},
        )
    )

    print(f"  Created catalog: {catalog.catalog_id}")
    for lot in catalog.lots:
        print(f"    Lot {lot.lot_order}: vehicle {lot.vehicle_id} from {lot.starting_price}")
    return catalog


async def main():
    """Main seed function."""
    print("=" * 60)
    print("Salvage Auction Engine - Seed Data Script")
    print("=" * 60)
    print(f"  RESET_DATA: {RESET_DATA}")
    print(f"  AUCTION_DURATION_MINUTES: {AUCTION_DURATION_MINUTES}")
    print(f"  BIDDER_COUNT: {BIDDER_COUNT}")
    print("=" * 60)

    # Events are only logged; nothing listens while seeding
    notifier = EventNotifier(None)

    async with async_session_maker() as session:
        if RESET_DATA:
            await reset_listing_data(session)

        users = await seed_users(session)
        vehicles = await seed_vehicles(session)
        auction = None
        catalog = None
        if vehicles:
            auction = await seed_auction(session, notifier, vehicles[0])
            catalog = await seed_catalog(session, notifier, vehicles[1:])

    await notifier.drain()

    print("=" * 60)
    print("Seed data complete!")
    print(f"  Users: {len(users)}")
    for user in users[: len(DEPOSIT_LADDER) + 1]:
        print(f"    {user.email}: {user.user_id} (tier {user.bidding_tier})")
    print(f"  Vehicles: {len(vehicles)}")
    if auction is not None:
        print(f"  Active Auction: {auction.auction_id}")
    if catalog is not None:
        print(f"  Scheduled Catalog: {catalog.catalog_id}")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
