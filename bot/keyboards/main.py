"""Основные клавиатуры"""
from aiogram.types import ReplyKeyboardMarkup, KeyboardButton

MENU_BUTTONS = ("🔨 Аукционы", "➕ Продать", "👤 Мой кабинет", "👮 Модерация")


def get_main_keyboard() -> ReplyKeyboardMarkup:
    """Главная клавиатура"""
    keyboard = [
        [KeyboardButton(text="🔨 Аукционы"), KeyboardButton(text="➕ Продать")],
        [KeyboardButton(text="👤 Мой кабинет")],
    ]
    return ReplyKeyboardMarkup(
        keyboard=keyboard,
        resize_keyboard=True
    )


def get_admin_keyboard() -> ReplyKeyboardMarkup:
    """Клавиатура администратора"""
    keyboard = [
        [KeyboardButton(text="🔨 Аукционы"), KeyboardButton(text="➕ Продать")],
        [KeyboardButton(text="👤 Мой кабинет")],
        [KeyboardButton(text="👮 Модерация")],
    ]
    return ReplyKeyboardMarkup(
        keyboard=keyboard,
        resize_keyboard=True
    )


def get_user_keyboard(is_admin: bool = False) -> ReplyKeyboardMarkup:
    """Клавиатура в зависимости от прав пользователя"""
    return get_admin_keyboard() if is_admin else get_main_keyboard()
