"""Обработчики модерации"""
from math import ceil

from aiogram import Router, F
from aiogram.types import CallbackQuery, Message, InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.filters import Command, CommandObject
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.auction import Auction
from database.models.item import Item
from database.models.user import Profile
from bot.keyboards.moderation import get_moderation_keyboard
from bot.keyboards.sale import CONDITION_NAMES
from services.catalog import format_money
from services.lifecycle import cancel_auction
from services.moderation import approve, reject, get_pending_auctions
from services.roles import is_admin

router = Router()

ITEMS_PER_PAGE = 3


def _build_lot_text(auction: Auction, item: Item, status_text: str = "На модерации") -> str:
    """Сформировать текст лота для модерации"""
    text = (
        f"📦 Лот #{auction.id}\n"
        f"Статус: {status_text}\n\n"
        f"Название: {item.title}\n"
        f"Состояние: {CONDITION_NAMES.get(item.condition, item.condition)}\n"
        f"Стартовая цена: {format_money(item.base_price)}\n"
        f"Шаг ставки: {format_money(auction.min_increment)}\n"
    )
    if auction.buy_now_price is not None:
        text += f"Купить сейчас: {format_money(auction.buy_now_price)}\n"
    text += f"Длительность: {auction.duration_minutes} мин.\n\n"
    text += f"Описание: {item.description}"
    return text


async def send_moderation_page(message: Message, session: AsyncSession, page: int = 1) -> None:
    """Отправить администратору страницу лотов (по 3 шт.)"""
    lots = await get_pending_auctions(session)

    if not lots:
        await message.answer("✅ Нет лотов на модерации")
        return

    total_pages = max(1, ceil(len(lots) / ITEMS_PER_PAGE))
    page = max(1, min(page, total_pages))
    page_lots = lots[(page - 1) * ITEMS_PER_PAGE:page * ITEMS_PER_PAGE]

    for auction, item in page_lots:
        text = _build_lot_text(auction, item)
        kb = get_moderation_keyboard(auction.id)
        if item.images:
            await message.answer_photo(item.images[0], caption=text[:1024], reply_markup=kb, parse_mode=None)
        else:
            await message.answer(text, reply_markup=kb, parse_mode=None)

    # Кнопки пагинации
    nav_buttons = []
    if page > 1:
        nav_buttons.append(InlineKeyboardButton(
            text="⬅️ Предыдущие",
            callback_data=f"moderation_page:{page - 1}"
        ))
    if page < total_pages:
        nav_buttons.append(InlineKeyboardButton(
            text="➡️ Следующие",
            callback_data=f"moderation_page:{page + 1}"
        ))

    if nav_buttons:
        await message.answer(
            f"Страница {page} из {total_pages}",
            reply_markup=InlineKeyboardMarkup(inline_keyboard=[nav_buttons])
        )


@router.message(F.text == "👮 Модерация")
@router.message(Command("moderation"))
async def cmd_moderation(message: Message, session: AsyncSession, profile: Profile):
    """Показать лоты на модерации"""
    if not await is_admin(session, profile.id):
        await message.answer("У вас нет прав для модерации")
        return
    await send_moderation_page(message, session, page=1)


@router.callback_query(F.data.startswith("moderation_page:"))
async def handle_moderation_page(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Переключение страниц модерации"""
    if not await is_admin(session, profile.id):
        await callback.answer("У вас нет прав для модерации", show_alert=True)
        return

    page = int(callback.data.split(":")[1])
    await send_moderation_page(callback.message, session, page)
    await callback.answer()


async def _mark_decided(callback: CallbackQuery, status_text: str):
    """Дописать решение в карточку и убрать кнопки"""
    if callback.message.photo:
        text = callback.message.caption or ""
        await callback.message.edit_caption(caption=f"{text}\n\n{status_text}", reply_markup=None, parse_mode=None)
    else:
        text = callback.message.text or ""
        await callback.message.edit_text(f"{text}\n\n{status_text}", reply_markup=None, parse_mode=None)


@router.callback_query(F.data.startswith("moderation:"))
async def handle_moderation(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Обработка действий модерации (approve/reject/cancel)"""
    _, action, auction_id = callback.data.split(":")
    auction_id = int(auction_id)

    try:
        if action == "approve":
            await approve(session, auction_id, profile.id)
            status_text, answer = "✅ Одобрен", "Лот одобрен, торги начались ✅"
        elif action == "reject":
            await reject(session, auction_id, profile.id)
            status_text, answer = "❌ Отклонен", "Лот отклонен"
        elif action == "cancel":
            await cancel_auction(session, auction_id, profile.id)
            status_text, answer = "🛑 Аукцион отменен", "Аукцион отменен"
        else:
            await callback.answer("Неизвестное действие", show_alert=True)
            return
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    await _mark_decided(callback, status_text)
    await callback.answer(answer, show_alert=True)


@router.message(Command("cancel_auction"))
async def cmd_cancel_auction(message: Message, command: CommandObject, session: AsyncSession, profile: Profile):
    """Отменить идущий аукцион: /cancel_auction <id>"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer("Использование: /cancel_auction <id аукциона>", parse_mode=None)
        return

    try:
        auction = await cancel_auction(session, int(command.args.strip()), profile.id)
    except ValueError as e:
        await message.answer(str(e))
        return

    await message.answer(f"🛑 Аукцион #{auction.id} отменен")
