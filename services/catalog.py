"""Каталог: списки аукционов, карточка лота, кабинет пользователя"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from database.models.item import Item
from database.models.user import Profile
from services.bidding import min_next_bid
from services.errors import ValidationError
from services.lifecycle import as_utc, effective_status, get_auction, utcnow
from services.watchlist import get_watchlist
from config import settings

SORT_OPTIONS = {
    "ending-soon": Auction.end_time.asc(),
    "newly-listed": Auction.created_at.desc(),
    "price-low": Auction.current_price.asc(),
    "price-high": Auction.current_price.desc(),
}


@dataclass
class AuctionView:
    """Производное состояние аукциона для отображения"""
    auction: Auction
    item: Item
    status: AuctionStatus
    time_remaining: Optional[timedelta]
    leader_id: Optional[int]
    leading_amount: Optional[Decimal]
    bid_count: int
    min_next_bid: Decimal
    ended_recently: bool

    @property
    def is_live(self) -> bool:
        return self.status == AuctionStatus.LIVE


@dataclass
class AuctionDetail:
    view: AuctionView
    seller: Optional[Profile]
    bids: list = field(default_factory=list)  # [(Bid, Profile)]


@dataclass
class Dashboard:
    selling: list = field(default_factory=list)
    bidding: list = field(default_factory=list)
    watchlist: list = field(default_factory=list)


def format_time_left(delta: Optional[timedelta]) -> str:
    """Оставшееся время в виде «2д 3ч 15м»"""
    if delta is None:
        return "—"
    total = int(delta.total_seconds())
    if total <= 0:
        return "Аукцион завершен"

    days, rest = divmod(total, 24 * 3600)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    if days > 0:
        return f"{days}д {hours}ч {minutes}м"
    if hours > 0:
        return f"{hours}ч {minutes}м {seconds}с"
    return f"{minutes}м {seconds}с"


def build_view(
    auction: Auction,
    item: Item,
    leader: Optional[Bid],
    now: datetime
) -> AuctionView:
    status = effective_status(auction, now)
    end_time = as_utc(auction.end_time)

    time_remaining = None
    if status == AuctionStatus.LIVE and end_time:
        time_remaining = end_time - now

    ended_recently = (
        status == AuctionStatus.ENDED
        and end_time is not None
        and now - end_time <= timedelta(hours=settings.RECENTLY_ENDED_HOURS)
    )

    leader_id = auction.winner_id or (leader.bidder_id if leader else None)
    return AuctionView(
        auction=auction,
        item=item,
        status=status,
        time_remaining=time_remaining,
        leader_id=leader_id,
        leading_amount=leader.amount if leader else None,
        bid_count=auction.bid_count,
        min_next_bid=min_next_bid(auction),
        ended_recently=ended_recently,
    )


async def get_leaders(session: AsyncSession, auction_ids: Iterable[int]) -> dict[int, Bid]:
    """Лидирующая ставка по каждому аукциону"""
    auction_ids = list(auction_ids)
    if not auction_ids:
        return {}

    result = await session.execute(
        select(Bid)
        .where(Bid.auction_id.in_(auction_ids))
        .order_by(Bid.auction_id, Bid.amount.desc(), Bid.created_at.asc(), Bid.id.asc())
    )
    leaders: dict[int, Bid] = {}
    for bid in result.scalars().all():
        leaders.setdefault(bid.auction_id, bid)
    return leaders


async def _build_views(session: AsyncSession, rows, now: datetime) -> list[AuctionView]:
    rows = list(rows)
    leaders = await get_leaders(session, [auction.id for auction, _ in rows])
    return [build_view(auction, item, leaders.get(auction.id), now) for auction, item in rows]


async def list_auctions(
    session: AsyncSession,
    now: Optional[datetime] = None,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    sort: str = "ending-soon",
    limit: int = 50
) -> list[AuctionView]:
    """Активные аукционы и завершенные за последние RECENTLY_ENDED_HOURS часов"""
    if sort not in SORT_OPTIONS:
        raise ValidationError(f"Неизвестная сортировка: {sort}")

    now = now or utcnow()
    recent_threshold = now - timedelta(hours=settings.RECENTLY_ENDED_HOURS)

    query = (
        select(Auction, Item)
        .join(Item, Auction.item_id == Item.id)
        .execution_options(populate_existing=True)
        .where(or_(
            Auction.status == AuctionStatus.LIVE.value,
            and_(
                Auction.status == AuctionStatus.ENDED.value,
                Auction.end_time >= recent_threshold
            )
        ))
    )
    if category_id is not None:
        query = query.where(Item.category_id == category_id)
    if search:
        query = query.where(Item.title.ilike(f"%{search.strip()}%"))

    result = await session.execute(query.order_by(SORT_OPTIONS[sort], Auction.id.asc()))
    views = await _build_views(session, result.all(), now)

    # Просроченный, но еще не обработанный планировщиком live показываем как ended
    views = [view for view in views if view.is_live or view.ended_recently]
    return views[:limit]


async def get_bids_with_bidders(
    session: AsyncSession,
    auction_id: int,
    limit: int = 10
) -> list[tuple[Bid, Profile]]:
    """Последние ставки вместе с профилями участников"""
    result = await session.execute(
        select(Bid, Profile)
        .join(Profile, Bid.bidder_id == Profile.id)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.created_at.desc(), Bid.id.desc())
        .limit(limit)
    )
    return [(bid, profile) for bid, profile in result.all()]


async def get_auction_detail(
    session: AsyncSession,
    auction_id: int,
    now: Optional[datetime] = None,
    bids_limit: int = 10
) -> AuctionDetail:
    """Карточка аукциона: состояние, продавец и последние ставки"""
    now = now or utcnow()
    auction = await get_auction(session, auction_id)
    item = await session.get(Item, auction.item_id, populate_existing=True)
    seller = await session.get(Profile, item.seller_id)

    leaders = await get_leaders(session, [auction_id])
    view = build_view(auction, item, leaders.get(auction_id), now)
    bids = await get_bids_with_bidders(session, auction_id, bids_limit)
    return AuctionDetail(view=view, seller=seller, bids=bids)


async def get_dashboard(
    session: AsyncSession,
    user_id: int,
    now: Optional[datetime] = None
) -> Dashboard:
    """Кабинет: мои лоты, аукционы с моими ставками, список наблюдения"""
    now = now or utcnow()

    result = await session.execute(
        select(Auction, Item)
        .join(Item, Auction.item_id == Item.id)
        .where(Item.seller_id == user_id)
        .order_by(Auction.created_at.desc(), Auction.id.desc())
        .execution_options(populate_existing=True)
    )
    selling = await _build_views(session, result.all(), now)

    result = await session.execute(
        select(Auction, Item)
        .join(Item, Auction.item_id == Item.id)
        .where(Auction.id.in_(
            select(Bid.auction_id).where(Bid.bidder_id == user_id)
        ))
        .order_by(Auction.end_time.desc(), Auction.id.desc())
        .execution_options(populate_existing=True)
    )
    bidding = await _build_views(session, result.all(), now)

    watchlist = await _build_views(session, await get_watchlist(session, user_id), now)
    return Dashboard(selling=selling, bidding=bidding, watchlist=watchlist)


def format_money(value) -> str:
    """Сумма для сообщений: «1,250.00 сум»"""
    return f"{Decimal(value):,.2f} {settings.CURRENCY}"
