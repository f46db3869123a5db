"""Redis service for domain event streams, bid snapshots and sweep locks."""

import uuid
from decimal import Decimal
from typing import Any

from redis.asyncio import Redis

from salvage_auction.core.config import settings
from salvage_auction.schemas.events import DomainEvent


class RedisService:
    """Service class for Redis operations used around the bidding core.

    Redis is never the source of truth for bids: the database row is. The
    snapshot cache here only serves read-heavy displays.
    """

    # Lua script for safe lock release (only delete own lock)
    RELEASE_LOCK_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    # Only move the snapshot forward; stale writers lose
    UPDATE_HIGHEST_BID_SCRIPT = """
local key = KEYS[1]
local new_amount = tonumber(ARGV[1])
local current = tonumber(redis.call('HGET', key, 'amount') or '-1')
if new_amount > current then
    redis.call('HSET', key, 'amount', ARGV[1], 'bidder_id', ARGV[2], 'end_time', ARGV[3])
    redis.call('EXPIRE', key, ARGV[4])
    return 1
end
return 0
"""

    HIGHEST_BID_TTL = 3600  # 1 hour TTL for bid snapshots

    def __init__(self, redis: Redis):
        """Initialize Redis service with a Redis client.

        Args:
            redis: Async Redis client instance
        """
        self.redis = redis
        self._release_lock_script = None
        self._update_highest_bid_script = None

    async def _get_release_lock_script(self):
        """Get or register the release lock Lua script."""
        if self._release_lock_script is None:
            self._release_lock_script = self.redis.register_script(self.RELEASE_LOCK_SCRIPT)
        return self._release_lock_script

    async def _get_update_highest_bid_script(self):
        if self._update_highest_bid_script is None:
            self._update_highest_bid_script = self.redis.register_script(
                self.UPDATE_HIGHEST_BID_SCRIPT
            )
        return self._update_highest_bid_script

    # ==================== Domain Event Operations ====================

    async def publish_event(self, event: DomainEvent) -> str:
        """Append a domain event to the shared event stream.

        Downstream delivery workers (WhatsApp, email, push) consume the
        stream; the core never waits for them.

        Args:
            event: Event to publish

        Returns:
            Stream entry ID assigned by Redis
        """
        entry_id = await self.redis.xadd(
            settings.EVENT_STREAM_KEY,
            event.to_stream_fields(),
            maxlen=settings.EVENT_STREAM_MAXLEN,
            approximate=True,
        )
        return entry_id

    async def read_events(self, count: int = 100) -> list[dict[str, str]]:
        """Read the most recent events, newest first."""
        entries = await self.redis.xrevrange(settings.EVENT_STREAM_KEY, count=count)
        return [{"id": entry_id, **fields} for entry_id, fields in entries]

    # ==================== Highest Bid Snapshot Operations ====================

    async def cache_highest_bid(
        self,
        target_id: str,
        amount: Decimal,
        bidder_id: str,
        end_time: str = "",
    ) -> bool:
        """Record the latest accepted bid for an auction or lot.

        Key pattern: highest_bid:{target_id}

        Args:
            target_id: Auction or lot UUID string
            amount: Accepted amount
            bidder_id: Bidder UUID string
            end_time: ISO end time after any extension

        Returns:
            True if the snapshot moved forward
        """
        key = f"highest_bid:{target_id}"
        script = await self._get_update_highest_bid_script()
        result = await script(
            keys=[key],
            args=[str(amount), bidder_id, end_time, self.HIGHEST_BID_TTL],
        )
        return int(result) == 1

    async def get_highest_bid(self, target_id: str) -> dict[str, Any] | None:
        """Get the cached bid snapshot with the amount converted back to Decimal.

        Args:
            target_id: Auction or lot UUID string

        Returns:
            Snapshot dict or None if not cached
        """
        key = f"highest_bid:{target_id}"
        data = await self.redis.hgetall(key)
        if not data:
            return None
        return {
            "amount": Decimal(data["amount"]),
            "bidder_id": data.get("bidder_id"),
            "end_time": data.get("end_time") or None,
        }

    async def invalidate_highest_bid(self, target_id: str) -> bool:
        """Drop the snapshot, e.g. when a lot closes or an auction is cancelled."""
        result = await self.redis.delete(f"highest_bid:{target_id}")
        return result > 0

    # ==================== Distributed Lock Operations ====================

    async def acquire_lock(
        self, name: str, owner_id: str | None = None, ttl: int = 30
    ) -> tuple[bool, str]:
        """Acquire a named distributed lock.

        Key pattern: lock:{name}
        Uses SET NX EX for atomic lock acquisition.

        Args:
            name: Lock name, e.g. "scheduler"
            owner_id: Unique identifier for lock owner (auto-generated if None)
            ttl: Lock timeout in seconds

        Returns:
            Tuple of (success, owner_id)
        """
        key = f"lock:{name}"
        if owner_id is None:
            owner_id = str(uuid.uuid4())

        acquired = await self.redis.set(key, owner_id, nx=True, ex=ttl)
        return (acquired is not None and acquired is not False, owner_id)

    async def release_lock(self, name: str, owner_id: str) -> bool:
        """Release a distributed lock (only if owner matches).

        Args:
            name: Lock name passed to acquire_lock
            owner_id: The owner_id returned from acquire_lock

        Returns:
            True if lock was released, False if not owner or not locked
        """
        key = f"lock:{name}"
        script = await self._get_release_lock_script()
        result = await script(keys=[key], args=[owner_id])
        return int(result) == 1

