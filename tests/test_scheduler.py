"""Tests for the lifecycle sweep."""

from datetime import timedelta
from decimal import Decimal

import pytest

from salvage_auction.models.enums import AuctionStatus, CatalogStatus, LotStatus
from salvage_auction.schemas.catalog import CatalogCreate
from salvage_auction.services.auction_service import AuctionService
from salvage_auction.services.catalog_service import CatalogService
from salvage_auction.services.scheduler_service import SchedulerService

from tests.conftest import NOW


class TestRunSweep:
    """Test time-driven auction transitions."""

    @pytest.mark.asyncio
    async def test_activates_due_drafts(self, session, notifier, make_auction):
        due = await make_auction(status=AuctionStatus.DRAFT, start_time=NOW - timedelta(minutes=1))
        later = await make_auction(
            status=AuctionStatus.DRAFT,
            start_time=NOW + timedelta(minutes=10),
            end_time=NOW + timedelta(hours=1),
        )

        result = await SchedulerService(session, notifier).run_sweep(now=NOW, auto_advance_lots=False)

        assert result.activated == 1
        assert result.activated_ids == [due.auction_id]
        await session.refresh(due)
        await session.refresh(later)
        assert due.status == AuctionStatus.ACTIVE
        assert due.version == 1
        assert later.status == AuctionStatus.DRAFT
        assert notifier.event_types() == ["auction_start"]

    @pytest.mark.asyncio
    async def test_stale_draft_not_activated(self, session, notifier, make_auction):
        """Test that a draft whose window already closed is left alone."""
        stale = await make_auction(
            status=AuctionStatus.DRAFT,
            start_time=NOW - timedelta(hours=2),
            end_time=NOW - timedelta(hours=1),
        )

        result = await SchedulerService(session, notifier).run_sweep(now=NOW, auto_advance_lots=False)

        assert result.is_empty
        await session.refresh(stale)
        assert stale.status == AuctionStatus.DRAFT

    @pytest.mark.asyncio
    async def test_ends_expired_auctions(self, session, notifier, make_auction, make_bidder):
        auction = await make_auction(end_time=NOW + timedelta(minutes=5))
        bidder = await make_bidder(auction)
        await AuctionService(session, notifier).place_bid(
            auction.auction_id, bidder.user_id, Decimal("6000"), now=NOW
        )
        unsold = await make_auction(end_time=NOW + timedelta(minutes=5))

        later = NOW + timedelta(minutes=5)
        result = await SchedulerService(session, notifier).run_sweep(now=later, auto_advance_lots=False)

        assert result.ended == 2
        assert set(result.ended_ids) == {auction.auction_id, unsold.auction_id}
        await session.refresh(auction)
        assert auction.status == AuctionStatus.ENDED
        won = [e for e in notifier.events if e.event_type == "won"]
        assert [e.auction_id for e in won] == [auction.auction_id]
        assert won[0].user_id == bidder.user_id

    @pytest.mark.asyncio
    async def test_sweep_is_idempotent(self, session, notifier, make_auction):
        await make_auction(status=AuctionStatus.DRAFT, start_time=NOW - timedelta(minutes=1))
        await make_auction(end_time=NOW)
        service = SchedulerService(session, notifier)

        first = await service.run_sweep(now=NOW, auto_advance_lots=False)
        second = await service.run_sweep(now=NOW, auto_advance_lots=False)

        assert (first.activated, first.ended) == (1, 1)
        assert second.model_dump(include={"activated", "ended"}) == {"activated": 0, "ended": 0}
        assert second.is_empty

    @pytest.mark.asyncio
    async def test_terminal_auctions_untouched(self, session, notifier, make_auction):
        cancelled = await make_auction(status=AuctionStatus.CANCELLED, end_time=NOW)
        settled = await make_auction(status=AuctionStatus.SETTLED, end_time=NOW)

        result = await SchedulerService(session, notifier).run_sweep(now=NOW, auto_advance_lots=False)

        assert result.is_empty
        await session.refresh(cancelled)
        await session.refresh(settled)
        assert cancelled.status == AuctionStatus.CANCELLED
        assert settled.status == AuctionStatus.SETTLED


class TestLotAutoAdvance:
    """Test the optional lot expiry step."""

    @pytest.mark.asyncio
    async def test_lots_left_alone_by_default(self, session, notifier, make_vehicle):
        vehicle = await make_vehicle()
        catalogs = CatalogService(session, notifier)
        catalog = await catalogs.create_catalog(
            CatalogCreate(title="One", scheduled_at=NOW, vehicle_ids=[vehicle.vehicle_id])
        )
        await catalogs.start_catalog(catalog.catalog_id, now=NOW)

        result = await SchedulerService(session, notifier).run_sweep(
            now=NOW + timedelta(minutes=5), auto_advance_lots=False
        )

        assert result.lots_closed == 0
        assert result.lots_closed_ids == []
        current = await catalogs.get_catalog(catalog.catalog_id)
        assert current.lots[0].status == LotStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_auto_advance_closes_expired_lots(self, session, notifier, make_vehicle):
        vehicle = await make_vehicle()
        catalogs = CatalogService(session, notifier)
        catalog = await catalogs.create_catalog(
            CatalogCreate(title="One", scheduled_at=NOW, vehicle_ids=[vehicle.vehicle_id])
        )
        await catalogs.start_catalog(catalog.catalog_id, now=NOW)

        result = await SchedulerService(session, notifier).run_sweep(
            now=NOW + timedelta(minutes=5), auto_advance_lots=True
        )

        current = await catalogs.get_catalog(catalog.catalog_id)
        assert result.lots_closed == 1
        assert result.lots_closed_ids == [current.lots[0].lot_id]
        assert current.lots[0].status == LotStatus.PASSED
        assert current.status == CatalogStatus.ENDED
