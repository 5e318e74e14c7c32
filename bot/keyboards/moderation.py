"""Клавиатуры для модерации"""
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder


def get_moderation_keyboard(auction_id: int) -> InlineKeyboardMarkup:
    """Клавиатура модерации аукциона"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="✅ Одобрить",
        callback_data=f"moderation:approve:{auction_id}"
    ))
    builder.add(InlineKeyboardButton(
        text="❌ Отклонить",
        callback_data=f"moderation:reject:{auction_id}"
    ))
    return builder.as_markup()


def get_cancel_live_keyboard(auction_id: int) -> InlineKeyboardMarkup:
    """Отмена идущего аукциона администратором"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="🛑 Отменить аукцион",
        callback_data=f"moderation:cancel:{auction_id}"
    ))
    return builder.as_markup()
