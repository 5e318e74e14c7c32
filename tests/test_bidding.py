"""
Tests for bidding.

Tests cover:
1. Amount parsing and bid validation against auction state
2. Atomic acceptance with compare-and-set and one retry
3. Anti-sniping extension
4. Buy-now
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, inspect, select

from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from services import bidding
from services.bidding import (
    accept_bid,
    buy_now,
    get_bid_history,
    min_next_bid,
    place_bid,
    to_money,
    validate_bid,
)
from services.errors import (
    AuctionEnded,
    AuctionNotLive,
    BidTooLow,
    BuyNowUnavailable,
    ConcurrentBidConflict,
    ConflictError,
    Forbidden,
    ValidationError,
)
from services.events import ChangeKind
from services.lifecycle import as_utc, finalize_auction, get_auction


async def bid_count(session, auction_id):
    result = await session.execute(select(func.count(Bid.id)).where(Bid.auction_id == auction_id))
    return result.scalar()


class TestToMoney:
    """Tests for amount parsing."""

    def test_thousands_separators(self):
        """Spaces separate thousands."""
        assert to_money("1 000") == Decimal("1000.00")
        assert to_money("1\u00a0250.50") == Decimal("1250.50")

    @pytest.mark.parametrize("value,expected", [
        ("110,5", Decimal("110.50")),
        ("150,50", Decimal("150.50")),
        ("1 500,25", Decimal("1500.25")),
    ])
    def test_comma_is_decimal_point(self, value, expected):
        assert to_money(value) == expected

    @pytest.mark.parametrize("value", ["1,250.50", "1,000,000"])
    def test_rejects_ambiguous_separators(self, value):
        with pytest.raises(ValidationError):
            to_money(value)

    def test_zero_only_when_allowed(self):
        assert to_money("0", allow_zero=True) == Decimal("0.00")
        with pytest.raises(ValidationError):
            to_money("0")
        with pytest.raises(ValidationError):
            to_money("-1", allow_zero=True)

    def test_quantized_to_cents(self):
        assert to_money(Decimal("7")) == Decimal("7.00")
        assert to_money(7).as_tuple().exponent == -2

    @pytest.mark.parametrize("value", ["abc", "", "0", "-5", "NaN", "10.005"])
    def test_rejects_invalid(self, value):
        with pytest.raises(ValidationError):
            to_money(value)

    def test_rejects_above_max_price(self):
        with pytest.raises(ValidationError):
            to_money("1000000000000.01")


class TestValidateBid:
    """Tests for pure bid validation."""

    @pytest.fixture
    def auction(self, now):
        return Auction(
            id=1,
            status=AuctionStatus.LIVE.value,
            current_price=Decimal("100.00"),
            min_increment=Decimal("10.00"),
            end_time=now + timedelta(hours=1),
            anti_sniping=True,
            bid_count=0,
        )

    def test_minimum_is_price_plus_increment(self, auction):
        assert min_next_bid(auction) == Decimal("110.00")

    def test_accepts_exact_minimum(self, auction, now):
        decision = validate_bid(auction, Decimal("110.00"), now)

        assert decision.new_price == Decimal("110.00")
        assert decision.previous_price == Decimal("100.00")
        assert decision.extended is False
        assert decision.end_time == auction.end_time

    def test_too_low_reports_minimum(self, auction, now):
        with pytest.raises(BidTooLow) as exc_info:
            validate_bid(auction, Decimal("109.99"), now)

        assert exc_info.value.minimum == Decimal("110.00")
        assert isinstance(exc_info.value, ValidationError)

    def test_extends_inside_window(self, auction, now):
        """A bid in the last minutes pushes end_time to now + window."""
        bid_time = auction.end_time - timedelta(minutes=2)

        decision = validate_bid(auction, Decimal("150"), bid_time, window=timedelta(minutes=5))

        assert decision.extended is True
        assert decision.end_time == bid_time + timedelta(minutes=5)

    def test_no_extension_outside_window(self, auction):
        bid_time = auction.end_time - timedelta(minutes=6)

        decision = validate_bid(auction, Decimal("150"), bid_time, window=timedelta(minutes=5))

        assert decision.extended is False
        assert decision.end_time == auction.end_time

    def test_no_extension_when_disabled(self, auction):
        auction.anti_sniping = False
        bid_time = auction.end_time - timedelta(seconds=30)

        decision = validate_bid(auction, Decimal("150"), bid_time, window=timedelta(minutes=5))

        assert decision.extended is False

    @pytest.mark.parametrize("status", [AuctionStatus.DRAFT, AuctionStatus.PENDING])
    def test_not_started(self, auction, now, status):
        auction.status = status.value

        with pytest.raises(AuctionNotLive) as exc_info:
            validate_bid(auction, Decimal("150"), now)

        assert not isinstance(exc_info.value, AuctionEnded)

    @pytest.mark.parametrize("status", [AuctionStatus.ENDED, AuctionStatus.CANCELLED])
    def test_terminal(self, auction, now, status):
        auction.status = status.value

        with pytest.raises(AuctionEnded):
            validate_bid(auction, Decimal("150"), now)

    def test_live_but_expired(self, auction):
        """Status is still live but the clock has run out."""
        with pytest.raises(AuctionEnded):
            validate_bid(auction, Decimal("150"), auction.end_time)


class TestPlaceBid:
    """Tests for placing bids through the database."""

    async def test_accepted_bid_updates_auction(self, session, make_live_auction, alice, now):
        auction = await make_live_auction()

        bid = await place_bid(session, auction.id, alice.id, "110", now=now)

        auction = await get_auction(session, auction.id)
        assert bid.amount == Decimal("110.00")
        assert auction.current_price == Decimal("110.00")
        assert auction.bid_count == 1

    async def test_price_increases_monotonically(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction()
        prices = []

        for minute, (bidder, amount) in enumerate([(alice, "110"), (bob, "125"), (alice, "135"), (bob, "200")]):
            await place_bid(session, auction.id, bidder.id, amount, now=now + timedelta(minutes=minute))
            prices.append((await get_auction(session, auction.id)).current_price)

        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)
        assert prices[-1] == Decimal("200.00")

    async def test_low_bid_leaves_state_unchanged(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction()
        await place_bid(session, auction.id, alice.id, "110", now=now)

        with pytest.raises(BidTooLow) as exc_info:
            await place_bid(session, auction.id, bob.id, "115", now=now)

        auction = await get_auction(session, auction.id)
        assert exc_info.value.minimum == Decimal("120.00")
        assert auction.current_price == Decimal("110.00")
        assert auction.bid_count == 1
        assert await bid_count(session, auction.id) == 1

    async def test_seller_cannot_bid(self, session, make_live_auction, seller, now):
        auction = await make_live_auction()

        with pytest.raises(Forbidden):
            await place_bid(session, auction.id, seller.id, "500", now=now)

    async def test_invalid_amount(self, session, make_live_auction, alice, now):
        auction = await make_live_auction()

        with pytest.raises(ValidationError):
            await place_bid(session, auction.id, alice.id, "сто", now=now)

    async def test_anti_sniping_persists_new_end_time(self, session, make_live_auction, alice, now):
        auction = await make_live_auction()
        bid_time = as_utc(auction.end_time) - timedelta(minutes=2)

        await place_bid(session, auction.id, alice.id, "110", now=bid_time)

        auction = await get_auction(session, auction.id)
        assert as_utc(auction.end_time) == bid_time + bidding.extension_window()

    async def test_early_bid_keeps_end_time(self, session, make_live_auction, alice, now):
        auction = await make_live_auction()
        end_time = as_utc(auction.end_time)

        await place_bid(session, auction.id, alice.id, "110", now=now)

        auction = await get_auction(session, auction.id)
        assert as_utc(auction.end_time) == end_time

    async def test_pending_auction_rejects_bids(self, session, make_listing, alice, now):
        _, auction = await make_listing()

        with pytest.raises(AuctionNotLive):
            await place_bid(session, auction.id, alice.id, "110", now=now)

        assert await bid_count(session, auction.id) == 0

    async def test_expired_unswept_auction_rejects_bids(self, session, make_live_auction, alice):
        auction = await make_live_auction()
        after_end = as_utc(auction.end_time) + timedelta(seconds=1)

        with pytest.raises(AuctionEnded):
            await place_bid(session, auction.id, alice.id, "110", now=after_end)

    async def test_ended_auction_rejects_bids(self, session, make_live_auction, alice, bob):
        auction = await make_live_auction()
        after_end = as_utc(auction.end_time) + timedelta(seconds=1)
        await finalize_auction(session, auction.id, now=after_end)

        with pytest.raises(AuctionEnded):
            await place_bid(session, auction.id, bob.id, "110", now=after_end)

    async def test_publishes_bid_event(self, session, make_live_auction, alice, bob, now, events, drain):
        auction = await make_live_auction()
        await place_bid(session, auction.id, alice.id, "110", now=now)
        drain(events)

        bid = await place_bid(session, auction.id, bob.id, "120", now=now)

        [event] = drain(events)
        assert event.kind == ChangeKind.BID_PLACED
        assert event.auction_id == auction.id
        assert event.payload["bid_id"] == bid.id
        assert event.payload["previous_leader_id"] == alice.id
        assert event.payload["previous_price"] == "110.00"
        assert event.payload["extended"] is False


class TestCompareAndSet:
    """Tests for conflicting writes between read and commit."""

    async def test_stale_expectation_is_not_applied(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction()
        await place_bid(session, auction.id, alice.id, "110", now=now)

        bid = await accept_bid(
            session,
            auction.id,
            bob.id,
            Decimal("120.00"),
            expected_price=Decimal("100.00"),
            expected_bid_count=0,
            end_time=as_utc(auction.end_time),
            now=now,
        )

        auction = await get_auction(session, auction.id)
        assert bid is None
        assert auction.current_price == Decimal("110.00")
        assert auction.bid_count == 1
        assert await bid_count(session, auction.id) == 1
        assert not inspect(bob).expired_attributes

    async def test_retry_succeeds_after_race(self, session, make_live_auction, alice, bob, now, monkeypatch):
        """Another bid lands between read and write; the retry re-reads and wins."""
        auction = await make_live_auction()
        real_accept = bidding.accept_bid
        raced = []

        async def racing_accept(session, auction_id, bidder_id, amount, **kwargs):
            if not raced:
                raced.append(True)
                assert await real_accept(session, auction_id, bob.id, Decimal("110.00"), **kwargs)
            return await real_accept(session, auction_id, bidder_id, amount, **kwargs)

        monkeypatch.setattr(bidding, "accept_bid", racing_accept)

        bid = await place_bid(session, auction.id, alice.id, "150", now=now)

        auction = await get_auction(session, auction.id)
        assert bid.bidder_id == alice.id
        assert auction.current_price == Decimal("150.00")
        assert auction.bid_count == 2

    async def test_retry_revalidates_amount(self, session, make_live_auction, alice, bob, now, monkeypatch):
        """After the race the bid is below the new minimum and is rejected."""
        auction = await make_live_auction()
        real_accept = bidding.accept_bid
        raced = []

        async def racing_accept(session, auction_id, bidder_id, amount, **kwargs):
            if not raced:
                raced.append(True)
                await real_accept(session, auction_id, bob.id, Decimal("200.00"), **kwargs)
            return await real_accept(session, auction_id, bidder_id, amount, **kwargs)

        monkeypatch.setattr(bidding, "accept_bid", racing_accept)

        with pytest.raises(BidTooLow) as exc_info:
            await place_bid(session, auction.id, alice.id, "150", now=now)

        auction = await get_auction(session, auction.id)
        assert exc_info.value.minimum == Decimal("210.00")
        assert auction.current_price == Decimal("200.00")

    async def test_persistent_conflict_is_reported(self, session, make_live_auction, alice, now, monkeypatch):
        auction = await make_live_auction()
        attempts = []

        async def always_stale(*args, **kwargs):
            attempts.append(True)
            return None

        monkeypatch.setattr(bidding, "accept_bid", always_stale)

        with pytest.raises(ConcurrentBidConflict) as exc_info:
            await place_bid(session, auction.id, alice.id, "150", now=now)

        assert len(attempts) == bidding.BID_ATTEMPTS
        assert isinstance(exc_info.value, ConflictError)
        assert exc_info.value.retryable is True
        assert await bid_count(session, auction.id) == 0


class TestBuyNow:
    """Tests for instant purchase."""

    async def test_ends_auction_with_buyer_as_winner(self, session, make_live_auction, alice, now, events, drain):
        auction = await make_live_auction(buy_now_price="500")
        drain(events)

        auction = await buy_now(session, auction.id, alice.id, now=now)

        assert auction.status == AuctionStatus.ENDED.value
        assert auction.winner_id == alice.id
        assert auction.current_price == Decimal("500.00")
        assert auction.winning_bid_id is not None
        winning_bid = await session.get(Bid, auction.winning_bid_id)
        assert winning_bid.is_winning is True

        kinds = [event.kind for event in drain(events)]
        assert kinds == [ChangeKind.BID_PLACED, ChangeKind.AUCTION_UPDATED]

    async def test_bids_after_purchase_are_rejected(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction(buy_now_price="500")
        await buy_now(session, auction.id, alice.id, now=now)

        with pytest.raises(AuctionEnded):
            await place_bid(session, auction.id, bob.id, "600", now=now)
        with pytest.raises(AuctionEnded):
            await buy_now(session, auction.id, bob.id, now=now)

    async def test_unavailable_without_price(self, session, make_live_auction, alice, now):
        auction = await make_live_auction()

        with pytest.raises(BuyNowUnavailable):
            await buy_now(session, auction.id, alice.id, now=now)

    async def test_unavailable_once_bids_reach_price(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction(buy_now_price="150")
        await place_bid(session, auction.id, alice.id, "150", now=now)

        with pytest.raises(BuyNowUnavailable):
            await buy_now(session, auction.id, bob.id, now=now)

    async def test_seller_cannot_buy(self, session, make_live_auction, seller, now):
        auction = await make_live_auction(buy_now_price="500")

        with pytest.raises(Forbidden):
            await buy_now(session, auction.id, seller.id, now=now)


class TestBidHistory:
    """Tests for bid history."""

    async def test_newest_first(self, session, make_live_auction, alice, bob, now):
        auction = await make_live_auction()
        await place_bid(session, auction.id, alice.id, "110", now=now)
        await place_bid(session, auction.id, bob.id, "120", now=now + timedelta(minutes=1))
        await place_bid(session, auction.id, alice.id, "130", now=now + timedelta(minutes=2))

        history = await get_bid_history(session, auction.id)

        assert [bid.amount for bid in history] == [Decimal("130.00"), Decimal("120.00"), Decimal("110.00")]
        assert len(await get_bid_history(session, auction.id, limit=2)) == 2
