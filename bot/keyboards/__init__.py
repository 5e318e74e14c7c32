"""Клавиатуры бота"""
from .main import get_main_keyboard, get_admin_keyboard, get_user_keyboard
from .auction import get_auction_keyboard, get_bid_keyboard, get_auctions_list_keyboard
from .moderation import get_moderation_keyboard, get_cancel_live_keyboard
from .sale import get_condition_keyboard, get_duration_keyboard, get_skip_keyboard, get_confirm_keyboard

__all__ = [
    "get_main_keyboard",
    "get_admin_keyboard",
    "get_user_keyboard",
    "get_auction_keyboard",
    "get_bid_keyboard",
    "get_auctions_list_keyboard",
    "get_moderation_keyboard",
    "get_cancel_live_keyboard",
    "get_condition_keyboard",
    "get_duration_keyboard",
    "get_skip_keyboard",
    "get_confirm_keyboard",
]
