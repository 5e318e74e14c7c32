"""
Tests for listing creation.

Tests cover:
1. Listing form validation
2. Item and auction created together
3. Draft submission and metadata edits
4. Cleanup of items left without an auction
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from database.models.auction import AuctionStatus
from database.models.item import Item
from services.errors import Forbidden, InvalidTransition, ValidationError
from services.events import ChangeKind
from services.lifecycle import as_utc, get_auction
from services.listing import (
    CUSTOM_MINUTES_MAX,
    cleanup_incomplete_listings,
    duration_to_minutes,
    find_incomplete_listings,
    parse_listing_form,
    submit_listing,
    update_item_metadata,
)
from services.moderation import approve
from services.roles import get_roles


def form_data(**overrides):
    data = {
        "title": "Велосипед",
        "description": "Горный, 21 скорость",
        "condition": "like_new",
        "base_price": "1000",
        "duration_days": 3,
    }
    data.update(overrides)
    return data


class TestDuration:
    """Tests for auction duration choices."""

    @pytest.mark.parametrize("days", [1, 3, 7, 14])
    def test_fixed_days(self, days):
        assert duration_to_minutes(duration_days=days) == days * 24 * 60

    def test_custom_minutes_bounds(self):
        assert duration_to_minutes(custom_minutes=1) == 1
        assert duration_to_minutes(custom_minutes=CUSTOM_MINUTES_MAX) == 43200

    @pytest.mark.parametrize("kwargs", [
        {},
        {"duration_days": 3, "custom_minutes": 60},
        {"duration_days": 2},
        {"custom_minutes": 0},
        {"custom_minutes": 43201},
    ])
    def test_rejects_invalid(self, kwargs):
        with pytest.raises(ValidationError):
            duration_to_minutes(**kwargs)


class TestListingForm:
    """Tests for listing form validation."""

    def test_defaults(self):
        form = parse_listing_form(**form_data())

        assert form.min_increment == Decimal("10")
        assert form.buy_now_price is None
        assert form.images == []
        assert form.duration_minutes == 3 * 24 * 60

    def test_strips_text(self):
        form = parse_listing_form(**form_data(title="  Велосипед  "))
        assert form.title == "Велосипед"

    @pytest.mark.parametrize("overrides", [
        {"title": "   "},
        {"title": "x" * 256},
        {"description": ""},
        {"condition": "broken"},
        {"base_price": "-1"},
        {"base_price": "1000000000001"},
        {"min_increment": "0"},
        {"buy_now_price": "999"},
        {"duration_days": 5},
        {"duration_days": None, "custom_minutes": None},
    ])
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ValidationError):
            parse_listing_form(**form_data(**overrides))

    def test_error_message_is_readable(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_listing_form(**form_data(min_increment="0"))

        assert "min_increment" in str(exc_info.value)
        assert "Value error" not in str(exc_info.value)


class TestCreateListing:
    """Tests for creating item and auction in one step."""

    async def test_submitted_listing_is_pending(self, session, make_listing, seller, now, events, drain):
        drain(events)
        item, auction = await make_listing(buy_now_price="500")

        assert item.seller_id == seller.id
        assert auction.item_id == item.id
        assert auction.status == AuctionStatus.PENDING.value
        assert auction.current_price == Decimal("100.00")
        assert auction.buy_now_price == Decimal("500.00")
        assert auction.bid_count == 0
        assert as_utc(auction.end_time) == now + timedelta(minutes=60)

        [event] = [event for event in drain(events) if event.kind == ChangeKind.AUCTION_UPDATED]
        assert event.payload["status"] == "pending"
        assert event.payload["created"] is True

    async def test_draft_has_no_end_time(self, session, make_listing, events, drain):
        drain(events)
        _, auction = await make_listing(submit=False)

        assert auction.status == AuctionStatus.DRAFT.value
        assert auction.end_time is None
        assert [event for event in drain(events) if event.kind == ChangeKind.AUCTION_UPDATED] == []

    async def test_seller_role_granted(self, session, make_listing, seller):
        await make_listing()
        assert await get_roles(session, seller.id) == ["seller"]


class TestSubmitListing:
    """Tests for submitting a draft."""

    async def test_draft_goes_to_moderation(self, session, make_listing, seller, now):
        _, auction = await make_listing(submit=False)
        submitted_at = now + timedelta(hours=2)

        submitted = await submit_listing(session, auction.id, seller.id, now=submitted_at)

        assert submitted.status == AuctionStatus.PENDING.value
        assert as_utc(submitted.end_time) == submitted_at + timedelta(minutes=60)

    async def test_only_owner_submits(self, session, make_listing, alice):
        _, auction = await make_listing(submit=False)

        with pytest.raises(Forbidden):
            await submit_listing(session, auction.id, alice.id)

    async def test_second_submit_fails(self, session, make_listing, seller):
        _, auction = await make_listing(submit=False)
        await submit_listing(session, auction.id, seller.id)

        with pytest.raises(InvalidTransition):
            await submit_listing(session, auction.id, seller.id)


class TestUpdateItemMetadata:
    """Tests for editing item metadata."""

    async def test_owner_updates_title_of_live_lot(self, session, make_live_auction, seller):
        auction = await make_live_auction()

        item = await update_item_metadata(session, auction.item_id, seller.id, title="Часы «Слава»")

        assert item.title == "Часы «Слава»"

    async def test_draft_price_moves_current_price(self, session, make_listing, seller):
        item, auction = await make_listing(submit=False)

        item = await update_item_metadata(session, item.id, seller.id, base_price="250")

        assert item.base_price == Decimal("250.00")
        assert (await get_auction(session, auction.id)).current_price == Decimal("250.00")

    async def test_price_locked_after_submit(self, session, make_listing, seller):
        item, _ = await make_listing()

        with pytest.raises(ValidationError):
            await update_item_metadata(session, item.id, seller.id, base_price="250")

    async def test_only_owner_edits(self, session, make_listing, alice):
        item, _ = await make_listing()

        with pytest.raises(Forbidden):
            await update_item_metadata(session, item.id, alice.id, title="Чужой")

    async def test_unknown_field(self, session, make_listing, seller):
        item, _ = await make_listing()

        with pytest.raises(ValidationError):
            await update_item_metadata(session, item.id, seller.id, status="live")


class TestIncompleteListings:
    """Tests for cleanup of items without an auction."""

    async def test_removes_only_stale_orphans(self, session, make_listing, seller, now):
        complete, _ = await make_listing()
        stale = Item(
            seller_id=seller.id,
            title="Брошенный",
            description="Публикация не завершена",
            condition="good",
            base_price=Decimal("10"),
            images=[],
            created_at=now - timedelta(hours=1),
        )
        fresh = Item(
            seller_id=seller.id,
            title="Свежий",
            description="Публикация в процессе",
            condition="good",
            base_price=Decimal("10"),
            images=[],
            created_at=now - timedelta(minutes=5),
        )
        session.add_all([stale, fresh])
        await session.commit()

        assert [item.id for item in await find_incomplete_listings(session, now)] == [stale.id]

        removed = await cleanup_incomplete_listings(session, now)

        assert removed == [stale.id]
        assert await session.get(Item, stale.id, populate_existing=True) is None
        assert await session.get(Item, fresh.id) is not None
        assert await session.get(Item, complete.id) is not None

    async def test_nothing_to_remove(self, session, make_listing, now):
        await make_listing()
        assert await cleanup_incomplete_listings(session, now) == []


class TestDraftToLive:
    """Draft flows through moderation into live bidding."""

    async def test_submitted_draft_is_approved(self, session, make_listing, seller, admin, now):
        _, auction = await make_listing(submit=False)
        await submit_listing(session, auction.id, seller.id, now=now)

        approved = await approve(session, auction.id, admin.id, now=now)

        assert approved.status == AuctionStatus.LIVE.value
        assert as_utc(approved.end_time) == now + timedelta(minutes=60)
