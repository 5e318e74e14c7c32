"""Сервис ставок: проверка, атомарное принятие, анти-снайпинг, покупка сразу"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from database.connection import close_unchanged
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from database.models.item import Item
from services.errors import (
    AuctionEnded,
    AuctionNotLive,
    BidTooLow,
    BuyNowUnavailable,
    ConcurrentBidConflict,
    Forbidden,
    ValidationError,
)
from services.events import feed, ChangeEvent, ChangeKind
from services.lifecycle import (
    TERMINAL_STATUSES,
    as_utc,
    get_auction,
    get_winning_bid,
    publish_auction_update,
    utcnow,
)
from config import settings

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Сколько раз пытаемся принять ставку при конфликте с параллельной ставкой
BID_ATTEMPTS = 2


def extension_window() -> timedelta:
    return timedelta(minutes=settings.ANTI_SNIPING_WINDOW_MINUTES)


@dataclass(frozen=True)
class BidDecision:
    """Результат проверки ставки"""
    amount: Decimal
    previous_price: Decimal
    end_time: datetime
    extended: bool

    @property
    def new_price(self) -> Decimal:
        return self.amount


def to_money(value, allow_zero: bool = False) -> Decimal:
    """Преобразовать сумму к Decimal с двумя знаками

    Пробелы отделяют тысячи ("100 000"), запятая - десятичный знак ("110,5").
    """
    text = str(value).replace(" ", "").replace("\u00a0", "")
    if "," in text:
        if "." in text or text.count(",") > 1:
            raise ValidationError("Неверный формат суммы. Пример: 1500 или 1500,50")
        text = text.replace(",", ".")
    try:
        amount = Decimal(text)
    except InvalidOperation:
        raise ValidationError("Сумма должна быть числом") from None

    if not amount.is_finite() or amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError("Сумма должна быть положительным числом")
    if amount != amount.quantize(CENT):
        raise ValidationError("Сумма может содержать не более двух знаков после запятой")
    if amount > settings.MAX_PRICE:
        raise ValidationError(f"Сумма не может превышать {settings.MAX_PRICE:,}")
    return amount.quantize(CENT)


def min_next_bid(auction: Auction) -> Decimal:
    """Минимально допустимая следующая ставка"""
    return Decimal(auction.current_price) + Decimal(auction.min_increment)


def check_biddable(auction: Auction, now: datetime) -> None:
    """Аукцион принимает ставки только в статусе live и до end_time"""
    status = AuctionStatus(auction.status)
    if status in TERMINAL_STATUSES:
        raise AuctionEnded(auction.id)
    if status != AuctionStatus.LIVE:
        raise AuctionNotLive(auction.id)
    if not auction.end_time or as_utc(auction.end_time) <= now:
        raise AuctionEnded(auction.id)


def validate_bid(
    auction: Auction,
    amount: Decimal,
    now: datetime,
    window: Optional[timedelta] = None
) -> BidDecision:
    """Проверить ставку против текущего состояния аукциона (без записи в базу)"""
    window = window if window is not None else extension_window()
    check_biddable(auction, now)

    minimum = min_next_bid(auction)
    if amount < minimum:
        raise BidTooLow(minimum)

    end_time = as_utc(auction.end_time)
    extended = False
    if auction.anti_sniping and end_time - now < window:
        end_time = now + window
        extended = True

    return BidDecision(
        amount=amount,
        previous_price=Decimal(auction.current_price),
        end_time=end_time,
        extended=extended
    )


async def _ensure_not_seller(session: AsyncSession, auction: Auction, user_id: int) -> None:
    result = await session.execute(
        select(Item.seller_id).where(Item.id == auction.item_id)
    )
    if result.scalar_one_or_none() == user_id:
        raise Forbidden("Нельзя делать ставки на собственный лот")


async def accept_bid(
    session: AsyncSession,
    auction_id: int,
    bidder_id: int,
    amount: Decimal,
    *,
    expected_price: Decimal,
    expected_bid_count: int,
    end_time: datetime,
    now: datetime
) -> Optional[Bid]:
    """Атомарно записать ставку и новую цену

    Обновление цены выполняется только если цена и счетчик ставок не
    изменились с момента чтения (compare-and-set). None - ставку опередили.
    """
    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction_id,
            Auction.status == AuctionStatus.LIVE.value,
            Auction.end_time > now,
            Auction.current_price == expected_price,
            Auction.bid_count == expected_bid_count
        )
        .values(
            current_price=amount,
            end_time=end_time,
            bid_count=Auction.bid_count + 1
        )
        .execution_options(synchronize_session=False)
    )

    if result.rowcount != 1:
        await close_unchanged(session)
        return None

    bid = Bid(
        auction_id=auction_id,
        bidder_id=bidder_id,
        amount=amount,
        created_at=now
    )
    session.add(bid)
    await session.commit()
    return bid


async def place_bid(
    session: AsyncSession,
    auction_id: int,
    bidder_id: int,
    amount,
    now: Optional[datetime] = None
) -> Bid:
    """Сделать ставку

    При конфликте с параллельной ставкой состояние перечитывается и попытка
    повторяется один раз; повторная проверка может отклонить ставку как
    слишком низкую.
    """
    amount = to_money(amount)

    for attempt in range(BID_ATTEMPTS):
        bid_time = now or utcnow()
        auction = await get_auction(session, auction_id)
        await _ensure_not_seller(session, auction, bidder_id)

        decision = validate_bid(auction, amount, bid_time)
        previous_leader = await get_winning_bid(session, auction_id)

        bid = await accept_bid(
            session,
            auction_id,
            bidder_id,
            amount,
            expected_price=decision.previous_price,
            expected_bid_count=auction.bid_count,
            end_time=decision.end_time,
            now=bid_time
        )
        if bid:
            feed.publish(ChangeEvent(
                table="bids",
                kind=ChangeKind.BID_PLACED,
                auction_id=auction_id,
                payload={
                    "bid_id": bid.id,
                    "bidder_id": bidder_id,
                    "amount": str(amount),
                    "previous_price": str(decision.previous_price),
                    "previous_leader_id": previous_leader.bidder_id if previous_leader else None,
                    "end_time": decision.end_time.isoformat(),
                    "extended": decision.extended,
                },
            ))
            logger.info(
                f"Ставка {amount} принята на аукционе {auction_id} от пользователя {bidder_id}"
                + (" (время продлено)" if decision.extended else "")
            )
            return bid

        logger.info(
            f"Конфликт ставок на аукционе {auction_id}, попытка {attempt + 1} из {BID_ATTEMPTS}"
        )

    raise ConcurrentBidConflict(auction_id)


async def buy_now(
    session: AsyncSession,
    auction_id: int,
    buyer_id: int,
    now: Optional[datetime] = None
) -> Auction:
    """Купить лот по цене «купить сейчас» и сразу завершить аукцион"""
    for attempt in range(BID_ATTEMPTS):
        purchase_time = now or utcnow()
        auction = await get_auction(session, auction_id)
        await _ensure_not_seller(session, auction, buyer_id)
        check_biddable(auction, purchase_time)

        if auction.buy_now_price is None or Decimal(auction.buy_now_price) <= Decimal(auction.current_price):
            raise BuyNowUnavailable(auction_id)

        price = Decimal(auction.buy_now_price)
        previous_price = Decimal(auction.current_price)
        result = await session.execute(
            update(Auction)
            .where(
                Auction.id == auction_id,
                Auction.status == AuctionStatus.LIVE.value,
                Auction.end_time > purchase_time,
                Auction.current_price == previous_price,
                Auction.bid_count == auction.bid_count
            )
            .values(
                current_price=price,
                bid_count=Auction.bid_count + 1,
                status=AuctionStatus.ENDED.value,
                end_time=purchase_time,
                finished_at=purchase_time,
                winner_id=buyer_id
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount != 1:
            await close_unchanged(session)
            logger.info(f"Конфликт покупки сразу на аукционе {auction_id}, попытка {attempt + 1}")
            continue

        bid = Bid(
            auction_id=auction_id,
            bidder_id=buyer_id,
            amount=price,
            is_winning=True,
            created_at=purchase_time
        )
        session.add(bid)
        await session.flush()
        await session.execute(
            update(Auction)
            .where(Auction.id == auction_id)
            .values(winning_bid_id=bid.id)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

        auction = await get_auction(session, auction_id)
        feed.publish(ChangeEvent(
            table="bids",
            kind=ChangeKind.BID_PLACED,
            auction_id=auction_id,
            payload={
                "bid_id": bid.id,
                "bidder_id": buyer_id,
                "amount": str(price),
                "previous_price": str(previous_price),
                "buy_now": True,
            },
        ))
        publish_auction_update(
            auction,
            AuctionStatus.LIVE.value,
            winner_id=buyer_id,
            winning_amount=str(price),
        )
        logger.info(f"Аукцион {auction_id} выкуплен пользователем {buyer_id} за {price}")
        return auction

    raise ConcurrentBidConflict(auction_id)


async def get_bid_history(
    session: AsyncSession,
    auction_id: int,
    limit: int = 10
) -> list[Bid]:
    """Последние ставки аукциона, новые первыми"""
    result = await session.execute(
        select(Bid)
        .where(Bid.auction_id == auction_id)
        .order_by(Bid.created_at.desc(), Bid.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
