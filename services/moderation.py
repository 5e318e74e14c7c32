"""Сервис модерации: одобрение и отклонение аукционов администратором"""
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import func, select, update
from database.connection import close_unchanged
from database.models.auction import Auction, AuctionStatus
from database.models.item import Item
from services.errors import AlreadyDecided
from services.lifecycle import get_auction, publish_auction_update, utcnow
from services.roles import require_admin

logger = logging.getLogger(__name__)


async def _decide(
    session: AsyncSession,
    auction_id: int,
    actor_id: int,
    target: AuctionStatus,
    values: dict
) -> Auction:
    """Перевести аукцион из pending в target

    Повторное решение с тем же результатом возвращает аукцион без изменений,
    чтобы повтор запроса после сбоя сети не превращался в ошибку.
    """
    await require_admin(session, actor_id)
    auction = await get_auction(session, auction_id)

    if auction.status == target.value:
        return auction
    if auction.status != AuctionStatus.PENDING.value:
        raise AlreadyDecided(auction_id, auction.status)

    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction_id,
            Auction.status == AuctionStatus.PENDING.value
        )
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        # Решение принял другой администратор между чтением и записью
        await close_unchanged(session)
        auction = await get_auction(session, auction_id)
        if auction.status == target.value:
            return auction
        raise AlreadyDecided(auction_id, auction.status)

    await session.commit()

    auction = await get_auction(session, auction_id)
    publish_auction_update(auction, AuctionStatus.PENDING.value, moderator_id=actor_id)
    logger.info(f"Аукцион {auction_id} переведен в {target.value} модератором {actor_id}")
    return auction


async def approve(
    session: AsyncSession,
    auction_id: int,
    actor_id: int,
    now: Optional[datetime] = None
) -> Auction:
    """Одобрить аукцион: pending -> live, start_time = now"""
    return await _decide(
        session,
        auction_id,
        actor_id,
        AuctionStatus.LIVE,
        {"start_time": now or utcnow()}
    )


async def reject(
    session: AsyncSession,
    auction_id: int,
    actor_id: int
) -> Auction:
    """Отклонить аукцион: pending -> cancelled"""
    return await _decide(session, auction_id, actor_id, AuctionStatus.CANCELLED, {})


async def get_pending_auctions(session: AsyncSession) -> list[tuple[Auction, Item]]:
    """Аукционы, ожидающие модерации, новые первыми"""
    result = await session.execute(
        select(Auction, Item)
        .join(Item, Auction.item_id == Item.id)
        .where(Auction.status == AuctionStatus.PENDING.value)
        .order_by(Auction.created_at.desc(), Auction.id.desc())
        .execution_options(populate_existing=True)
    )
    return [(auction, item) for auction, item in result.all()]


async def count_pending_auctions(session: AsyncSession) -> int:
    """Количество аукционов на модерации"""
    result = await session.execute(
        select(func.count(Auction.id)).where(Auction.status == AuctionStatus.PENDING.value)
    )
    return result.scalar() or 0
