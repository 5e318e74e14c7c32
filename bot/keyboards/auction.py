"""Клавиатуры для аукционов"""
from decimal import Decimal
from typing import Optional
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder


def get_auction_keyboard(auction_id: int) -> InlineKeyboardMarkup:
    """Кнопка открытия карточки аукциона"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="🔎 Открыть аукцион",
        callback_data=f"auction:view:{auction_id}"
    ))
    return builder.as_markup()


def get_bid_keyboard(
    auction_id: int,
    min_bid: Decimal,
    min_increment: Decimal,
    buy_now_price: Optional[Decimal] = None,
    is_watching: bool = False
) -> InlineKeyboardMarkup:
    """Клавиатура карточки активного аукциона"""
    builder = InlineKeyboardBuilder()
    # Быстрые ставки: минимальная, +1 шаг, +5 шагов
    for steps in (0, 1, 5):
        amount = min_bid + min_increment * steps
        builder.add(InlineKeyboardButton(
            text=f"💰 {amount:,.2f}",
            callback_data=f"bid:amount:{auction_id}:{amount}"
        ))
    builder.add(InlineKeyboardButton(
        text="✏️ Указать свою сумму",
        callback_data=f"bid:custom:{auction_id}"
    ))
    if buy_now_price is not None:
        builder.add(InlineKeyboardButton(
            text=f"⚡️ Купить сейчас за {buy_now_price:,.2f}",
            callback_data=f"bid:buynow:{auction_id}"
        ))
    builder.add(InlineKeyboardButton(
        text="💔 Не следить" if is_watching else "❤️ Следить",
        callback_data=f"auction:watch:{auction_id}"
    ))
    builder.add(InlineKeyboardButton(
        text="📊 История ставок",
        callback_data=f"auction:bids:{auction_id}"
    ))
    builder.adjust(3, 1)
    return builder.as_markup()


def get_auctions_list_keyboard(auction_ids: list[int], sort: str) -> InlineKeyboardMarkup:
    """Список аукционов и переключатель сортировки"""
    builder = InlineKeyboardBuilder()
    for auction_id in auction_ids:
        builder.add(InlineKeyboardButton(
            text=f"#{auction_id}",
            callback_data=f"auction:view:{auction_id}"
        ))
    sort_labels = {
        "ending-soon": "⏳ Скоро конец",
        "newly-listed": "🆕 Новые",
        "price-low": "⬆️ Дешевле",
        "price-high": "⬇️ Дороже",
    }
    for value, label in sort_labels.items():
        if value == sort:
            continue
        builder.add(InlineKeyboardButton(
            text=label,
            callback_data=f"auctions:sort:{value}"
        ))
    builder.adjust(*([5] * ((len(auction_ids) + 4) // 5)), 3)
    return builder.as_markup()
