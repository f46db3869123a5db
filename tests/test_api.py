"""HTTP-level tests: identity header, error mapping and the bid flow."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from salvage_auction.api.deps import get_notifier, get_redis_service
from salvage_auction.core.database import get_db
from salvage_auction.main import app
from salvage_auction.services.redis_service import RedisService


@pytest_asyncio.fixture
async def client(session, notifier, mock_redis):
    async def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_redis_service] = lambda: RedisService(mock_redis)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


def as_user(user) -> dict[str, str]:
    return {"X-User-Id": str(user.user_id)}


async def launch_auction(client, admin, vehicle_id, starting_price="5000") -> dict:
    now = datetime.now(timezone.utc)
    response = await client.post(
        "/api/v1/auctions",
        json={
            "vehicle_id": str(vehicle_id),
            "start_time": now.isoformat(),
            "end_time": (now + timedelta(hours=1)).isoformat(),
            "starting_price": starting_price,
            "launch_immediately": True,
        },
        headers=as_user(admin),
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestIdentity:
    """Test caller resolution from the identity header."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    async def test_missing_header(self, client):
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHENTICATED"

    @pytest.mark.asyncio
    async def test_malformed_header(self, client):
        response = await client.get("/api/v1/users/me", headers={"X-User-Id": "not-a-uuid"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_me(self, client, make_user):
        user = await make_user(25000)

        response = await client.get("/api/v1/users/me", headers=as_user(user))

        assert response.status_code == 200
        assert response.json()["bidding_tier"] == 2

    @pytest.mark.asyncio
    async def test_admin_only(self, client, make_user):
        user = await make_user(0)

        response = await client.post(
            "/api/v1/users",
            json={"email": "new@test.com", "full_name": "New"},
            headers=as_user(user),
        )
        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ADMIN_REQUIRED"


class TestBidFlow:
    """Test the auction bid endpoints end to end."""

    @pytest.mark.asyncio
    async def test_rejections_and_acceptance(self, client, make_user, make_vehicle):
        admin = await make_user(0, is_admin=True)
        bidder = await make_user(10000)
        broke = await make_user(0)
        vehicle = await make_vehicle()
        auction = await launch_auction(client, admin, vehicle.vehicle_id)
        bids_url = f"/api/v1/auctions/{auction['auction_id']}/bids"

        no_entry = await client.post(bids_url, json={"amount": "5500"}, headers=as_user(bidder))
        assert no_entry.status_code == 403
        assert no_entry.json()["detail"]["code"] == "ENTRY_FEE_REQUIRED"

        entry = await client.post(
            f"/api/v1/auctions/{auction['auction_id']}/entry", headers=as_user(bidder)
        )
        assert entry.status_code == 200

        low = await client.post(bids_url, json={"amount": "4500"}, headers=as_user(bidder))
        assert low.status_code == 409
        assert low.json()["detail"]["code"] == "BID_TOO_LOW"

        gated = await client.post(bids_url, json={"amount": "5500"}, headers=as_user(broke))
        assert gated.status_code == 403
        assert gated.json()["detail"]["code"] == "DEPOSIT_REQUIRED"

        accepted = await client.post(bids_url, json={"amount": "5500"}, headers=as_user(bidder))
        assert accepted.status_code == 201
        body = accepted.json()
        assert body["accepted"] is True
        assert float(body["current_highest_bid"]) == 5500

        history = await client.get(bids_url)
        assert history.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, client, make_user, make_vehicle):
        admin = await make_user(0, is_admin=True)
        vehicle = await make_vehicle()
        auction = await launch_auction(client, admin, vehicle.vehicle_id)

        response = await client.post(
            f"/api/v1/auctions/{auction['auction_id']}/bids",
            json={"amount": "-1"},
            headers=as_user(admin),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_auction_conflict(self, client, make_user, make_vehicle):
        admin = await make_user(0, is_admin=True)
        vehicle = await make_vehicle()
        await launch_auction(client, admin, vehicle.vehicle_id)

        now = datetime.now(timezone.utc)
        response = await client.post(
            "/api/v1/auctions",
            json={
                "vehicle_id": str(vehicle.vehicle_id),
                "start_time": now.isoformat(),
                "end_time": (now + timedelta(hours=2)).isoformat(),
            },
            headers=as_user(admin),
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "VEHICLE_ALREADY_AUCTIONED"

    @pytest.mark.asyncio
    async def test_unknown_auction(self, client):
        response = await client.get("/api/v1/auctions/00000000-0000-0000-0000-000000000000")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"


class TestLiveSnapshot:
    """Test the live highest-bid read."""

    @pytest.mark.asyncio
    async def test_cache_miss_reads_database(self, client, make_user, make_vehicle):
        admin = await make_user(0, is_admin=True)
        vehicle = await make_vehicle()
        auction = await launch_auction(client, admin, vehicle.vehicle_id)

        response = await client.get(f"/api/v1/auctions/{auction['auction_id']}/live")

        assert response.status_code == 200
        body = response.json()
        assert body["cached"] is False
        assert float(body["amount"]) == 0
        assert body["bidder_id"] is None

    @pytest.mark.asyncio
    async def test_cache_hit(self, client, mock_redis):
        auction_id = "11111111-1111-1111-1111-111111111111"
        bidder_id = "22222222-2222-2222-2222-222222222222"
        mock_redis.hgetall.return_value = {
            "amount": "7500.00",
            "bidder_id": bidder_id,
            "end_time": "2026-10-19T13:00:00",
        }

        response = await client.get(f"/api/v1/auctions/{auction_id}/live")

        assert response.status_code == 200
        body = response.json()
        assert body["cached"] is True
        assert float(body["amount"]) == 7500
        assert body["bidder_id"] == bidder_id
        mock_redis.hgetall.assert_called_once_with(f"highest_bid:{auction_id}")


class TestSweep:
    """Test the manual sweep trigger."""

    @pytest.mark.asyncio
    async def test_sweep_reports_counts(self, client, make_user):
        admin = await make_user(0, is_admin=True)

        first = await client.post("/api/v1/scheduler/sweep", headers=as_user(admin))
        second = await client.post("/api/v1/scheduler/sweep", headers=as_user(admin))

        assert first.status_code == 200
        body = second.json()
        assert body["activated"] == 0
        assert body["ended"] == 0
        assert body["activated_ids"] == []


class TestEventLog:
    """Test the admin event log read."""

    @pytest.mark.asyncio
    async def test_recent_events(self, client, make_user, mock_redis):
        admin = await make_user(0, is_admin=True)
        mock_redis.xrevrange.return_value = [
            ("1760875200000-0", {"event_type": "won", "user_id": "u1"}),
        ]

        response = await client.get(
            "/api/v1/scheduler/events", params={"count": 5}, headers=as_user(admin)
        )

        assert response.status_code == 200
        assert response.json() == [
            {"id": "1760875200000-0", "event_type": "won", "user_id": "u1"}
        ]
        assert mock_redis.xrevrange.call_args.kwargs["count"] == 5

    @pytest.mark.asyncio
    async def test_requires_admin(self, client, make_user):
        user = await make_user(10000)

        response = await client.get("/api/v1/scheduler/events", headers=as_user(user))

        assert response.status_code == 403


class TestVehicles:
    """Test vehicle listing with a condition report."""

    @pytest.mark.asyncio
    async def test_register_and_read(self, client, make_user):
        admin = await make_user(0, is_admin=True)

        created = await client.post(
            "/api/v1/vehicles",
            json={
                "make": "Honda",
                "model": "Civic",
                "year": 2017,
                "mileage": 120000,
                "condition_report": {
                    "reserve_price": "8000",
                    "run_drive_status": "engine_starts",
                    "exterior": ["front_damage", "hail"],
                    "legacy_field": "dropped",
                },
            },
            headers=as_user(admin),
        )
        assert created.status_code == 201, created.text
        vehicle_id = created.json()["vehicle_id"]

        fetched = await client.get(f"/api/v1/vehicles/{vehicle_id}")
        report = fetched.json()["condition_report"]
        assert report["run_drive_status"] == "engine_starts"
        assert sorted(report["exterior"]) == ["front_damage", "hail"]
        assert "legacy_field" not in report

        listed = await client.get("/api/v1/vehicles")
        assert [v["vehicle_id"] for v in listed.json()] == [vehicle_id]

    @pytest.mark.asyncio
    async def test_unknown_run_drive_status(self, client, make_user):
        admin = await make_user(0, is_admin=True)

        response = await client.post(
            "/api/v1/vehicles",
            json={
                "make": "Honda",
                "model": "Civic",
                "year": 2017,
                "condition_report": {"run_drive_status": "flying"},
            },
            headers=as_user(admin),
        )
        assert response.status_code == 422
