"""Tests for fire-and-forget event dispatch."""

from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from salvage_auction.middleware.metrics import EVENT_PUBLISH_FAILURES
from salvage_auction.schemas.events import DomainEvent, DomainEventType
from salvage_auction.services.notifier import EventNotifier
from salvage_auction.services.redis_service import RedisService
from salvage_auction.services.ws_manager import ConnectionManager


@pytest.fixture
def connections() -> ConnectionManager:
    """Connection manager with one watcher in a fresh room."""
    return ConnectionManager()


def add_watcher(connections: ConnectionManager, room_id: str, user_id: str) -> AsyncMock:
    websocket = AsyncMock()
    connections.active_connections.setdefault(room_id, {})[user_id] = websocket
    return websocket


class TestEmit:
    """Test domain event publication."""

    @pytest.mark.asyncio
    async def test_emit_publishes_to_stream(self, mock_redis, connections):
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.emit(DomainEvent(event_type=DomainEventType.NEW_CAR, vehicle_id=uuid4()))
        await notifier.drain()

        mock_redis.xadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_publish_failure_is_swallowed_and_counted(self, mock_redis, connections):
        mock_redis.xadd = AsyncMock(side_effect=RedisConnectionError("down"))
        notifier = EventNotifier(RedisService(mock_redis), connections)
        failures = EVENT_PUBLISH_FAILURES.labels(event_type="won")
        before = failures._value.get()

        notifier.emit(DomainEvent(event_type=DomainEventType.WON, user_id=uuid4()))
        await notifier.drain()

        assert failures._value.get() == before + 1

    @pytest.mark.asyncio
    async def test_unexpected_failure_does_not_escape_task(self, mock_redis, connections):
        mock_redis.xadd = AsyncMock(side_effect=ValueError("bad field"))
        mock_redis.register_script.return_value.side_effect = TimeoutError("slow")
        notifier = EventNotifier(RedisService(mock_redis), connections)
        failures = EVENT_PUBLISH_FAILURES.labels(event_type="outbid")
        before = failures._value.get()

        notifier.emit(DomainEvent(event_type=DomainEventType.OUTBID, user_id=uuid4()))
        notifier.bid_placed(uuid4(), uuid4(), Decimal("6000"), uuid4(), None)
        tasks = set(notifier._tasks)
        await notifier.drain()

        assert all(task.exception() is None for task in tasks)
        assert failures._value.get() == before + 1

    @pytest.mark.asyncio
    async def test_without_redis_only_logs(self, connections):
        notifier = EventNotifier(None, connections)

        notifier.emit(DomainEvent(event_type=DomainEventType.NEW_CAR))
        await notifier.drain()

        assert notifier._tasks == set()


class TestLiveFeed:
    """Test WebSocket pushes."""

    @pytest.mark.asyncio
    async def test_bid_placed_broadcasts_and_caches(self, mock_redis, connections):
        room_id = uuid4()
        bidder_id = uuid4()
        watcher = add_watcher(connections, str(room_id), "viewer:1")
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.bid_placed(
            room_id, room_id, Decimal("6000"), bidder_id, datetime(2026, 10, 19, 12, 2), extended=True
        )
        await notifier.drain()

        message = watcher.send_json.call_args[0][0]
        assert message["event"] == "bid_placed"
        assert message["data"]["amount"] == "6000"
        assert message["data"]["bidder_id"] == str(bidder_id)
        assert message["data"]["extended"] is True
        mock_redis.register_script.return_value.assert_called_once()

    @pytest.mark.asyncio
    async def test_outbid_goes_only_to_previous_leader(self, connections):
        room_id = uuid4()
        loser = uuid4()
        loser_ws = add_watcher(connections, str(room_id), str(loser))
        other_ws = add_watcher(connections, str(room_id), str(uuid4()))
        notifier = EventNotifier(None, connections)

        notifier.outbid(room_id, room_id, loser, Decimal("6500"))
        await notifier.drain()

        loser_ws.send_json.assert_called_once()
        assert loser_ws.send_json.call_args[0][0]["event"] == "outbid"
        other_ws.send_json.assert_not_called()

    @pytest.mark.asyncio
    async def test_lot_state_goes_to_catalog_room(self, connections):
        catalog_id = uuid4()
        lot_id = uuid4()
        watcher = add_watcher(connections, str(catalog_id), "viewer:1")
        notifier = EventNotifier(None, connections)

        notifier.lot_state(catalog_id, lot_id, "sold", None)
        await notifier.drain()

        message = watcher.send_json.call_args[0][0]
        assert message["event"] == "lot_state"
        assert message["data"]["target_id"] == str(lot_id)
        assert message["data"]["status"] == "sold"

    @pytest.mark.asyncio
    async def test_dead_socket_is_dropped(self, connections):
        room_id = uuid4()
        dead = add_watcher(connections, str(room_id), "viewer:dead")
        dead.send_json.side_effect = RuntimeError("closed")
        notifier = EventNotifier(None, connections)

        notifier.auction_state(room_id, "ended", None)
        await notifier.drain()

        assert connections.get_room_size(str(room_id)) == 0


class TestSnapshotInvalidation:
    """Test that closed auctions and lots drop their cached snapshot."""

    @pytest.mark.asyncio
    async def test_sold_lot_drops_snapshot(self, mock_redis, connections):
        lot_id = uuid4()
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.lot_state(uuid4(), lot_id, "sold", None)
        await notifier.drain()

        mock_redis.delete.assert_called_once_with(f"highest_bid:{lot_id}")

    @pytest.mark.asyncio
    async def test_active_lot_keeps_snapshot(self, mock_redis, connections):
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.lot_state(uuid4(), uuid4(), "active", None)
        await notifier.drain()

        mock_redis.delete.assert_not_called()

    @pytest.mark.asyncio
    async def test_cancelled_auction_drops_snapshot(self, mock_redis, connections):
        auction_id = uuid4()
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.auction_state(auction_id, "cancelled", None)
        await notifier.drain()

        mock_redis.delete.assert_called_once_with(f"highest_bid:{auction_id}")

    @pytest.mark.asyncio
    async def test_ended_auction_keeps_snapshot(self, mock_redis, connections):
        notifier = EventNotifier(RedisService(mock_redis), connections)

        notifier.auction_state(uuid4(), "ended", None)
        await notifier.drain()

        mock_redis.delete.assert_not_called()
