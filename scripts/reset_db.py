"""Reset database to empty state.

Clears all data from:
- catalog_bids
- catalog_lots
- catalogs
- bids
- auction_entries
- auctions
- vehicles
- users

Also clears Redis data (event stream, bid snapshots, locks).

Usage:
    python -m scripts.reset_db
"""

import asyncio

from redis.exceptions import RedisError
from sqlalchemy import text

from salvage_auction.core.database import async_session_maker, engine
from salvage_auction.core.redis import close_redis, get_redis

# Children before parents because of foreign keys
TABLES = [
    "catalog_bids",
    "catalog_lots",
    "catalogs",
    "bids",
    "auction_entries",
    "auctions",
    "vehicles",
    "users",
]


async def reset_database():
    """Clear all data from the database."""
    print("=" * 60)
    print("Resetting database to empty state...")
    print("=" * 60)

    async with async_session_maker() as session:
        for table in TABLES:
            result = await session.execute(text(f"DELETE FROM {table}"))
            print(f"  Deleted {result.rowcount} rows from {table}")

        await session.commit()
        print("\nDatabase cleared successfully!")


async def reset_redis():
    """Clear all Redis data."""
    print("\nResetting Redis...")

    try:
        redis = await get_redis()
        await redis.flushdb()
        print("  Redis flushed successfully!")
    except RedisError as e:
        print(f"  Warning: Could not clear Redis: {e}")
        print("  (This is OK if Redis is not running locally)")
    finally:
        await close_redis()


async def main():
    await reset_database()
    await reset_redis()

    print("\n" + "=" * 60)
    print("Reset complete!")
    print("=" * 60)
    print("\nTo re-seed the database, run:")
    print("  python -m scripts.seed_data")
    print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
