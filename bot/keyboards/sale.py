"""Клавиатуры для публикации лота"""
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder
from services.listing import DAY_DURATIONS

CONDITION_NAMES = {
    "new": "Новый",
    "like_new": "Как новый",
    "good": "Хорошее",
    "fair": "Удовлетворительное",
    "poor": "Плохое",
}


def get_condition_keyboard() -> InlineKeyboardMarkup:
    """Выбор состояния товара"""
    builder = InlineKeyboardBuilder()
    for value, label in CONDITION_NAMES.items():
        builder.add(InlineKeyboardButton(
            text=label,
            callback_data=f"sell:condition:{value}"
        ))
    builder.adjust(2)
    return builder.as_markup()


def get_duration_keyboard() -> InlineKeyboardMarkup:
    """Выбор длительности аукциона"""
    builder = InlineKeyboardBuilder()
    for days in DAY_DURATIONS:
        builder.add(InlineKeyboardButton(
            text=f"{days} дн.",
            callback_data=f"sell:duration:{days}"
        ))
    builder.add(InlineKeyboardButton(
        text="✏️ Свои минуты",
        callback_data="sell:duration:custom"
    ))
    builder.adjust(len(DAY_DURATIONS), 1)
    return builder.as_markup()


def get_skip_keyboard(step: str) -> InlineKeyboardMarkup:
    """Кнопка пропуска необязательного шага"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="⏭ Пропустить",
        callback_data=f"sell:skip:{step}"
    ))
    return builder.as_markup()


def get_confirm_keyboard() -> InlineKeyboardMarkup:
    """Подтверждение публикации"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="📤 Отправить на модерацию",
        callback_data="sell:confirm:submit"
    ))
    builder.add(InlineKeyboardButton(
        text="📝 Сохранить черновик",
        callback_data="sell:confirm:draft"
    ))
    builder.add(InlineKeyboardButton(
        text="❌ Отмена",
        callback_data="sell:confirm:cancel"
    ))
    builder.adjust(1)
    return builder.as_markup()
