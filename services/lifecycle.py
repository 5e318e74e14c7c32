"""Жизненный цикл аукциона: переходы статусов и определение победителя"""
import logging
from datetime import datetime, timezone
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select, update
from database.connection import async_session_maker, close_unchanged
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from services.errors import AuctionNotFound, InvalidTransition
from services.events import feed, ChangeEvent, ChangeKind
from services.roles import require_admin

logger = logging.getLogger(__name__)


TRANSITIONS = {
    AuctionStatus.DRAFT: {AuctionStatus.PENDING},
    AuctionStatus.PENDING: {AuctionStatus.LIVE, AuctionStatus.CANCELLED},
    AuctionStatus.LIVE: {AuctionStatus.ENDED, AuctionStatus.CANCELLED},
    AuctionStatus.ENDED: set(),
    AuctionStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = {AuctionStatus.ENDED, AuctionStatus.CANCELLED}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Привести datetime к UTC (SQLite возвращает naive-значения)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def can_transition(current, target) -> bool:
    return AuctionStatus(target) in TRANSITIONS[AuctionStatus(current)]


def ensure_transition(current, target) -> None:
    """Проверить, что переход статуса разрешен"""
    if not can_transition(current, target):
        raise InvalidTransition(AuctionStatus(current).value, AuctionStatus(target).value)


def effective_status(auction: Auction, now: Optional[datetime] = None) -> AuctionStatus:
    """Статус для отображения: live с истекшим временем показываем как ended

    Хранимый статус меняет только планировщик, см. finalize_auction.
    """
    now = now or utcnow()
    status = AuctionStatus(auction.status)
    if status == AuctionStatus.LIVE and auction.end_time and as_utc(auction.end_time) <= now:
        return AuctionStatus.ENDED
    return status


def select_winning_bid(bids: Iterable[Bid]) -> Optional[Bid]:
    """Максимальная ставка; при равенстве побеждает более ранняя"""
    bids = list(bids)
    if not bids:
        return None
    return min(
        bids,
        key=lambda bid: (-bid.amount, as_utc(bid.created_at), bid.id if bid.id is not None else 0)
    )


async def get_auction(session: AsyncSession, auction_id: int) -> Auction:
    """Получить актуальное состояние аукциона из базы"""
    result = await session.execute(
        select(Auction)
        .where(Auction.id == auction_id)
        .execution_options(populate_existing=True)
    )
    auction = result.scalar_one_or_none()
    if not auction:
        raise AuctionNotFound(auction_id)
    return auction


async def get_winning_bid(session: AsyncSession, auction_id: int) -> Optional[Bid]:
    """Найти выигрышную ставку аукциона"""
    result = await session.execute(
        select(Bid)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.amount.desc(), Bid.created_at.asc(), Bid.id.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def publish_auction_update(auction: Auction, previous_status: str, **payload) -> None:
    feed.publish(ChangeEvent(
        table="auctions",
        kind=ChangeKind.AUCTION_UPDATED,
        auction_id=auction.id,
        payload={"status": auction.status, "previous_status": previous_status, **payload},
    ))


async def finalize_auction(
    session: AsyncSession,
    auction_id: int,
    now: Optional[datetime] = None
) -> Optional[Auction]:
    """Завершить истекший аукцион и зафиксировать победителя

    Условное обновление по статусу, времени и счетчику ставок гарантирует,
    что аукцион завершается ровно один раз. None - аукцион уже завершен
    другим обработчиком, еще не истек или принял ставку после чтения.
    """
    now = now or utcnow()
    auction = await get_auction(session, auction_id)

    if auction.status != AuctionStatus.LIVE.value or not auction.end_time or as_utc(auction.end_time) > now:
        await close_unchanged(session)
        return None

    observed_bid_count = auction.bid_count
    winning_bid = await get_winning_bid(session, auction_id)

    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction_id,
            Auction.status == AuctionStatus.LIVE.value,
            Auction.end_time <= now,
            Auction.bid_count == observed_bid_count
        )
        .values(
            status=AuctionStatus.ENDED.value,
            finished_at=now,
            winner_id=winning_bid.bidder_id if winning_bid else None,
            winning_bid_id=winning_bid.id if winning_bid else None
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        await close_unchanged(session)
        logger.info(f"Аукцион {auction_id} уже обработан другим обработчиком")
        return None

    if winning_bid:
        # Помечаем выигрышную ставку
        await session.execute(
            update(Bid)
            .where(Bid.id == winning_bid.id)
            .values(is_winning=True)
            .execution_options(synchronize_session=False)
        )

    await session.commit()

    auction = await get_auction(session, auction_id)
    publish_auction_update(
        auction,
        AuctionStatus.LIVE.value,
        winner_id=auction.winner_id,
        winning_amount=str(winning_bid.amount) if winning_bid else None,
    )
    logger.info(f"Аукцион {auction_id} завершен. Победитель: {auction.winner_id}")
    return auction


async def get_expired_auction_ids(session: AsyncSession, now: datetime) -> list[int]:
    """ID активных аукционов с истекшим временем"""
    result = await session.execute(
        select(Auction.id)
        .where(
            Auction.status == AuctionStatus.LIVE.value,
            Auction.end_time <= now
        )
        .order_by(Auction.end_time.asc())
    )
    return [row[0] for row in result.all()]


async def sweep_expired_auctions(
    session_maker: async_sessionmaker = None,
    now: Optional[datetime] = None
) -> list[int]:
    """Завершить все истекшие аукционы. Безопасно при нескольких воркерах"""
    session_maker = session_maker or async_session_maker
    now = now or utcnow()

    async with session_maker() as session:
        expired_ids = await get_expired_auction_ids(session, now)

    finished = []
    for auction_id in expired_ids:
        try:
            async with session_maker() as session:
                auction = await finalize_auction(session, auction_id, now)
            if auction:
                finished.append(auction_id)
        except Exception as e:
            logger.error(f"Ошибка при завершении аукциона {auction_id}: {e}")

    return finished


async def cancel_auction(
    session: AsyncSession,
    auction_id: int,
    actor_id: int
) -> Auction:
    """Отменить аукцион (администратор). Повторная отмена - не ошибка"""
    await require_admin(session, actor_id)
    auction = await get_auction(session, auction_id)

    if auction.status == AuctionStatus.CANCELLED.value:
        return auction

    previous_status = auction.status
    ensure_transition(previous_status, AuctionStatus.CANCELLED)

    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction_id,
            Auction.status == previous_status
        )
        .values(status=AuctionStatus.CANCELLED.value)
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        await close_unchanged(session)
        auction = await get_auction(session, auction_id)
        if auction.status == AuctionStatus.CANCELLED.value:
            return auction
        raise InvalidTransition(auction.status, AuctionStatus.CANCELLED.value)

    await session.commit()

    auction = await get_auction(session, auction_id)
    publish_auction_update(auction, previous_status)
    logger.info(f"Аукцион {auction_id} отменен администратором {actor_id}")
    return auction
