"""Модели базы данных"""
from .user import Profile
from .role import UserRole, AppRole
from .item import Item, ItemCondition
from .auction import Auction, AuctionStatus
from .bid import Bid
from .watchlist import Watchlist

__all__ = [
    "Profile",
    "UserRole",
    "AppRole",
    "Item",
    "ItemCondition",
    "Auction",
    "AuctionStatus",
    "Bid",
    "Watchlist",
]
