"""Обработчики личного кабинета"""
from aiogram import Router, F
from aiogram.types import Message, InlineKeyboardButton
from aiogram.filters import Command
from aiogram.utils.keyboard import InlineKeyboardBuilder
from sqlalchemy.ext.asyncio import AsyncSession
from database.models.auction import AuctionStatus
from database.models.user import Profile
from bot.texts import format_auction_line
from services.catalog import get_dashboard
from services.roles import get_roles

router = Router()

ROLE_NAMES = {
    "user": "Покупатель",
    "seller": "Продавец",
    "admin": "Администратор",
}


def _section(title: str, views) -> list[str]:
    if not views:
        return [title, "Пусто", ""]
    return [title, *(format_auction_line(view) for view in views), ""]


@router.message(F.text == "👤 Мой кабинет")
@router.message(Command("profile"))
async def cmd_profile(message: Message, session: AsyncSession, profile: Profile):
    """Кабинет: мои лоты, мои ставки, избранное"""
    dashboard = await get_dashboard(session, profile.id)
    roles = await get_roles(session, profile.id)

    lines = [
        "👤 Мой кабинет",
        "",
        f"ID: {profile.telegram_id}",
        f"Роли: {', '.join(ROLE_NAMES.get(role, role) for role in roles) or ROLE_NAMES['user']}",
        "",
    ]
    lines += _section("📦 Мои лоты:", dashboard.selling)
    lines += _section("💰 Мои ставки:", dashboard.bidding)
    lines += _section("⭐️ Избранное:", dashboard.watchlist)

    builder = InlineKeyboardBuilder()
    for view in dashboard.selling:
        if view.status == AuctionStatus.DRAFT:
            builder.add(InlineKeyboardButton(
                text=f"📤 Отправить черновик #{view.auction.id}",
                callback_data=f"sell:submit:{view.auction.id}"
            ))
    shown = set()
    for view in dashboard.bidding + dashboard.watchlist:
        if view.is_live and view.auction.id not in shown:
            shown.add(view.auction.id)
            builder.add(InlineKeyboardButton(
                text=f"🔨 Лот #{view.auction.id}",
                callback_data=f"auction:view:{view.auction.id}"
            ))
    builder.adjust(1)

    await message.answer("\n".join(lines).strip(), reply_markup=builder.as_markup())
