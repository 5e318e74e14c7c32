"""
Tests for the watchlist.
"""

import pytest

from services.errors import AuctionNotFound
from services.watchlist import (
    add_to_watchlist,
    get_watchers,
    get_watchlist,
    is_watching,
    remove_from_watchlist,
    toggle_watchlist,
)


class TestWatchlist:
    """Tests for watching auctions."""

    async def test_add_is_idempotent(self, session, make_live_auction, alice):
        auction = await make_live_auction()

        assert await add_to_watchlist(session, alice.id, auction.id) is True
        assert await add_to_watchlist(session, alice.id, auction.id) is False
        assert await get_watchers(session, auction.id) == [alice.id]

    async def test_remove(self, session, make_live_auction, alice):
        auction = await make_live_auction()
        await add_to_watchlist(session, alice.id, auction.id)

        assert await remove_from_watchlist(session, alice.id, auction.id) is True
        assert await remove_from_watchlist(session, alice.id, auction.id) is False
        assert await is_watching(session, alice.id, auction.id) is False

    async def test_toggle(self, session, make_live_auction, alice):
        auction = await make_live_auction()

        assert await toggle_watchlist(session, alice.id, auction.id) is True
        assert await is_watching(session, alice.id, auction.id) is True
        assert await toggle_watchlist(session, alice.id, auction.id) is False
        assert await is_watching(session, alice.id, auction.id) is False

    async def test_unknown_auction(self, session, alice):
        with pytest.raises(AuctionNotFound):
            await add_to_watchlist(session, alice.id, 404)

    async def test_list_returns_lots(self, session, make_live_auction, alice, bob):
        first = await make_live_auction(title="Первый")
        second = await make_live_auction(title="Второй")
        await add_to_watchlist(session, alice.id, first.id)
        await add_to_watchlist(session, alice.id, second.id)
        await add_to_watchlist(session, bob.id, second.id)

        watched = await get_watchlist(session, alice.id)

        assert {item.title for _, item in watched} == {"Первый", "Второй"}
        assert sorted(await get_watchers(session, second.id)) == sorted([alice.id, bob.id])
