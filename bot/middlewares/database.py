"""Middleware для работы с базой данных"""
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from database.connection import async_session_maker
from services.user import get_or_create_profile


class DatabaseMiddleware(BaseMiddleware):
    """Middleware: сессия БД и профиль автора события"""

    def __init__(self, session_maker=None):
        self.session_maker = session_maker or async_session_maker

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        async with self.session_maker() as session:
            data["session"] = session
            from_user = data.get("event_from_user")
            if from_user:
                data["profile"] = await get_or_create_profile(
                    session,
                    from_user.id,
                    from_user.username,
                    from_user.first_name
                )
            return await handler(event, data)
