"""Сервис публикации лотов: создание товара и аукциона, отправка на модерацию"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ValidationError as PydanticValidationError, field_validator, model_validator
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from sqlalchemy.exc import SQLAlchemyError
from database.connection import close_unchanged
from database.models.auction import Auction, AuctionStatus
from database.models.item import Item, ItemCondition
from database.models.role import AppRole
from services.errors import Forbidden, InvalidTransition, ItemNotFound, ValidationError
from services.lifecycle import ensure_transition, get_auction, publish_auction_update, utcnow
from services.roles import grant_role
from config import settings

logger = logging.getLogger(__name__)

DAY_DURATIONS = (1, 3, 7, 14)
CUSTOM_MINUTES_MIN = 1
CUSTOM_MINUTES_MAX = 43200  # 30 дней

METADATA_FIELDS = {"title", "description", "category_id", "images"}
# Меняются только пока аукцион в черновике
DRAFT_ONLY_FIELDS = {"condition", "base_price"}


def duration_to_minutes(duration_days: Optional[int] = None, custom_minutes: Optional[int] = None) -> int:
    """Длительность аукциона в минутах: фиксированное число дней или свои минуты"""
    if (duration_days is None) == (custom_minutes is None):
        raise ValidationError("Укажите либо длительность в днях, либо свою длительность в минутах")

    if duration_days is not None:
        if duration_days not in DAY_DURATIONS:
            choices = ", ".join(str(days) for days in DAY_DURATIONS)
            raise ValidationError(f"Длительность в днях должна быть одной из: {choices}")
        return duration_days * 24 * 60

    if not CUSTOM_MINUTES_MIN <= custom_minutes <= CUSTOM_MINUTES_MAX:
        raise ValidationError(
            f"Длительность должна быть от {CUSTOM_MINUTES_MIN} до {CUSTOM_MINUTES_MAX} минут (30 дней)"
        )
    return custom_minutes


def compute_end_time(now: datetime, duration_minutes: int) -> datetime:
    return now + timedelta(minutes=duration_minutes)


def _check_price(value: Decimal, label: str, allow_zero: bool = True) -> Decimal:
    if not value.is_finite():
        raise ValueError(f"{label}: некорректное число")
    if value < 0:
        raise ValueError(f"{label}: значение не может быть отрицательным")
    if value == 0 and not allow_zero:
        raise ValueError(f"{label}: значение должно быть больше нуля")
    if value > settings.MAX_PRICE:
        raise ValueError(f"{label} не может превышать {settings.MAX_PRICE:,}")
    return value.quantize(Decimal("0.01"))


class ListingForm(BaseModel):
    """Данные нового лота от продавца"""
    title: str
    description: str
    condition: ItemCondition
    base_price: Decimal
    min_increment: Decimal = Decimal("10")
    buy_now_price: Optional[Decimal] = None
    category_id: Optional[int] = None
    images: List[str] = []
    duration_days: Optional[int] = None
    custom_minutes: Optional[int] = None

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Поле не может быть пустым")
        return value

    @field_validator("title")
    @classmethod
    def title_length(cls, value: str) -> str:
        if len(value) > 255:
            raise ValueError("Название не может быть длиннее 255 символов")
        return value

    @field_validator("base_price")
    @classmethod
    def valid_base_price(cls, value: Decimal) -> Decimal:
        return _check_price(value, "Стартовая цена")

    @field_validator("min_increment")
    @classmethod
    def valid_min_increment(cls, value: Decimal) -> Decimal:
        return _check_price(value, "Минимальный шаг", allow_zero=False)

    @model_validator(mode="after")
    def valid_buy_now_and_duration(self) -> "ListingForm":
        if self.buy_now_price is not None:
            self.buy_now_price = _check_price(self.buy_now_price, "Цена «купить сейчас»")
            if self.buy_now_price < self.base_price:
                raise ValueError("Цена «купить сейчас» не может быть меньше стартовой цены")
        duration_to_minutes(self.duration_days, self.custom_minutes)
        return self

    @property
    def duration_minutes(self) -> int:
        return duration_to_minutes(self.duration_days, self.custom_minutes)


def parse_listing_form(**data) -> ListingForm:
    """Проверить данные лота, ошибки pydantic превращаются в ValidationError"""
    try:
        return ListingForm(**data)
    except PydanticValidationError as e:
        messages = []
        for error in e.errors():
            message = error["msg"].removeprefix("Value error, ")
            field = ".".join(str(part) for part in error["loc"])
            messages.append(f"{field}: {message}" if field else message)
        raise ValidationError("; ".join(messages)) from None


async def create_listing(
    session: AsyncSession,
    seller_id: int,
    form: ListingForm,
    submit: bool = True,
    now: Optional[datetime] = None
) -> tuple[Item, Auction]:
    """Создать товар и аукцион одной транзакцией

    submit=True сразу отправляет лот на модерацию (pending), иначе - черновик.
    """
    now = now or utcnow()
    duration_minutes = form.duration_minutes

    item = Item(
        seller_id=seller_id,
        title=form.title,
        description=form.description,
        category_id=form.category_id,
        condition=form.condition.value,
        base_price=form.base_price,
        images=list(form.images),
        created_at=now
    )
    session.add(item)

    try:
        await session.flush()
        auction = Auction(
            item_id=item.id,
            status=AuctionStatus.PENDING.value if submit else AuctionStatus.DRAFT.value,
            current_price=form.base_price,
            min_increment=form.min_increment,
            buy_now_price=form.buy_now_price,
            end_time=compute_end_time(now, duration_minutes) if submit else None,
            duration_minutes=duration_minutes,
            anti_sniping=True,
            bid_count=0,
            created_at=now
        )
        session.add(auction)
        await session.commit()
    except SQLAlchemyError:
        await session.rollback()
        logger.error(f"Не удалось создать лот «{form.title}» продавца {seller_id}")
        raise

    await grant_role(session, seller_id, AppRole.SELLER)
    if submit:
        publish_auction_update(auction, None, created=True)
    logger.info(f"Создан лот {item.id} / аукцион {auction.id} со статусом {auction.status}")
    return item, auction


async def _get_item(session: AsyncSession, item_id: int) -> Item:
    item = await session.get(Item, item_id, populate_existing=True)
    if not item:
        raise ItemNotFound(item_id)
    return item


async def submit_listing(
    session: AsyncSession,
    auction_id: int,
    seller_id: int,
    now: Optional[datetime] = None
) -> Auction:
    """Отправить черновик на модерацию: draft -> pending"""
    now = now or utcnow()
    auction = await get_auction(session, auction_id)
    item = await _get_item(session, auction.item_id)
    if item.seller_id != seller_id:
        raise Forbidden("Отправить на модерацию может только продавец")

    ensure_transition(auction.status, AuctionStatus.PENDING)

    result = await session.execute(
        update(Auction)
        .where(
            Auction.id == auction_id,
            Auction.status == AuctionStatus.DRAFT.value
        )
        .values(
            status=AuctionStatus.PENDING.value,
            end_time=compute_end_time(now, auction.duration_minutes)
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await close_unchanged(session)
        auction = await get_auction(session, auction_id)
        raise InvalidTransition(auction.status, AuctionStatus.PENDING.value)

    await session.commit()

    auction = await get_auction(session, auction_id)
    publish_auction_update(auction, AuctionStatus.DRAFT.value)
    logger.info(f"Аукцион {auction_id} отправлен на модерацию")
    return auction


async def update_item_metadata(
    session: AsyncSession,
    item_id: int,
    seller_id: int,
    **changes
) -> Item:
    """Изменить описание товара (только владелец)"""
    unknown = set(changes) - METADATA_FIELDS - DRAFT_ONLY_FIELDS
    if unknown:
        raise ValidationError(f"Нельзя изменить поля: {', '.join(sorted(unknown))}")

    item = await _get_item(session, item_id)
    if item.seller_id != seller_id:
        raise Forbidden("Изменить товар может только продавец")

    result = await session.execute(
        select(Auction).where(Auction.item_id == item_id).execution_options(populate_existing=True)
    )
    auction = result.scalar_one_or_none()

    if set(changes) & DRAFT_ONLY_FIELDS and auction and auction.status != AuctionStatus.DRAFT.value:
        raise ValidationError("Состояние и стартовую цену можно менять только в черновике")

    # Проверяем через ту же форму, что и при создании
    current = {
        "title": item.title,
        "description": item.description,
        "condition": item.condition,
        "base_price": item.base_price,
        "category_id": item.category_id,
        "images": item.images or [],
        "min_increment": auction.min_increment if auction else Decimal("10"),
        "buy_now_price": auction.buy_now_price if auction else None,
        "custom_minutes": auction.duration_minutes if auction else CUSTOM_MINUTES_MIN,
    }
    form = parse_listing_form(**{**current, **changes})

    for field in changes:
        value = getattr(form, field)
        setattr(item, field, value.value if isinstance(value, ItemCondition) else value)
    if "base_price" in changes and auction:
        auction.current_price = form.base_price

    await session.commit()
    await session.refresh(item)
    return item


async def find_incomplete_listings(
    session: AsyncSession,
    now: Optional[datetime] = None
) -> list[Item]:
    """Товары без аукциона старше периода ожидания"""
    now = now or utcnow()
    threshold = now - timedelta(minutes=settings.INCOMPLETE_LISTING_GRACE_MINUTES)
    result = await session.execute(
        select(Item)
        .outerjoin(Auction, Auction.item_id == Item.id)
        .where(
            Auction.id.is_(None),
            Item.created_at <= threshold
        )
    )
    return list(result.scalars().all())


async def cleanup_incomplete_listings(
    session: AsyncSession,
    now: Optional[datetime] = None
) -> list[int]:
    """Удалить товары, для которых так и не был создан аукцион"""
    items = await find_incomplete_listings(session, now)
    item_ids = [item.id for item in items]
    if not item_ids:
        return []

    await session.execute(delete(Item).where(Item.id.in_(item_ids)))
    await session.commit()
    logger.info(f"Удалены незавершенные публикации: {item_ids}")
    return item_ids
