"""Сервис списка наблюдения"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database.models.auction import Auction
from database.models.item import Item
from database.models.watchlist import Watchlist
from services.lifecycle import get_auction


async def is_watching(session: AsyncSession, user_id: int, auction_id: int) -> bool:
    """Наблюдает ли пользователь за аукционом"""
    result = await session.execute(
        select(Watchlist.id).where(
            Watchlist.user_id == user_id,
            Watchlist.auction_id == auction_id
        )
    )
    return result.first() is not None


async def add_to_watchlist(session: AsyncSession, user_id: int, auction_id: int) -> bool:
    """Добавить аукцион в список наблюдения. False - уже был в списке"""
    await get_auction(session, auction_id)

    if await is_watching(session, user_id, auction_id):
        return False

    session.add(Watchlist(user_id=user_id, auction_id=auction_id))
    await session.commit()
    return True


async def remove_from_watchlist(session: AsyncSession, user_id: int, auction_id: int) -> bool:
    """Убрать аукцион из списка наблюдения. False - его там не было"""
    result = await session.execute(
        delete(Watchlist).where(
            Watchlist.user_id == user_id,
            Watchlist.auction_id == auction_id
        )
    )
    await session.commit()
    return bool(result.rowcount)


async def toggle_watchlist(session: AsyncSession, user_id: int, auction_id: int) -> bool:
    """Переключить наблюдение, вернуть новое состояние"""
    if await is_watching(session, user_id, auction_id):
        await remove_from_watchlist(session, user_id, auction_id)
        return False
    await add_to_watchlist(session, user_id, auction_id)
    return True


async def get_watchlist(session: AsyncSession, user_id: int) -> list[tuple[Auction, Item]]:
    """Аукционы из списка наблюдения пользователя"""
    result = await session.execute(
        select(Auction, Item)
        .join(Watchlist, Watchlist.auction_id == Auction.id)
        .join(Item, Auction.item_id == Item.id)
        .where(Watchlist.user_id == user_id)
        .order_by(Watchlist.created_at.desc(), Watchlist.id.desc())
        .execution_options(populate_existing=True)
    )
    return [(auction, item) for auction, item in result.all()]


async def get_watchers(session: AsyncSession, auction_id: int) -> list[int]:
    """ID пользователей, наблюдающих за аукционом"""
    result = await session.execute(
        select(Watchlist.user_id).where(Watchlist.auction_id == auction_id)
    )
    return [row[0] for row in result.all()]
