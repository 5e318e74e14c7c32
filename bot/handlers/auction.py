"""Обработчики аукционов и ставок"""
from aiogram import Router, F
from aiogram.types import CallbackQuery, InlineKeyboardMarkup, Message
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from sqlalchemy.ext.asyncio import AsyncSession
from database.models.user import Profile
from bot.keyboards.auction import get_bid_keyboard, get_auctions_list_keyboard
from bot.keyboards.main import MENU_BUTTONS
from bot.keyboards.moderation import get_cancel_live_keyboard
from bot.texts import format_auction_list, format_auction_text, format_bid_history
from services.bidding import place_bid, buy_now
from services.catalog import get_auction_detail, list_auctions, format_money
from services.roles import is_admin
from services.watchlist import is_watching, toggle_watchlist

router = Router()


class BidState(StatesGroup):
    """Состояния для ввода ставки"""
    waiting_amount = State()


async def _card_markup(session: AsyncSession, profile: Profile, detail):
    view = detail.view
    if view.is_live:
        if view.item.seller_id == profile.id:
            if await is_admin(session, profile.id):
                return get_cancel_live_keyboard(view.auction.id)
            return None
        buy_now_price = view.auction.buy_now_price
        if buy_now_price is not None and buy_now_price <= view.auction.current_price:
            buy_now_price = None
        markup = get_bid_keyboard(
            view.auction.id,
            view.min_next_bid,
            view.auction.min_increment,
            buy_now_price,
            await is_watching(session, profile.id, view.auction.id)
        )
        if await is_admin(session, profile.id):
            cancel = get_cancel_live_keyboard(view.auction.id)
            markup = InlineKeyboardMarkup(inline_keyboard=markup.inline_keyboard + cancel.inline_keyboard)
        return markup
    return None


async def send_auction_card(message: Message, session: AsyncSession, profile: Profile, auction_id: int):
    """Отправить карточку аукциона"""
    try:
        detail = await get_auction_detail(session, auction_id)
    except ValueError as e:
        await message.answer(str(e))
        return

    text = format_auction_text(detail, viewer_id=profile.id)
    markup = await _card_markup(session, profile, detail)
    photos = detail.view.item.images or []
    if photos:
        await message.answer_photo(photos[0], caption=text[:1024], reply_markup=markup)
    else:
        await message.answer(text, reply_markup=markup)


async def _refresh_card(callback: CallbackQuery, session: AsyncSession, profile: Profile, auction_id: int):
    """Перечитать аукцион из базы и обновить карточку"""
    detail = await get_auction_detail(session, auction_id)
    text = format_auction_text(detail, viewer_id=profile.id)
    markup = await _card_markup(session, profile, detail)
    try:
        if callback.message.photo:
            await callback.message.edit_caption(caption=text[:1024], reply_markup=markup)
        else:
            await callback.message.edit_text(text, reply_markup=markup)
    except Exception as e:
        # "message is not modified" - карточка не изменилась
        if "message is not modified" not in str(e).lower():
            raise


@router.message(F.text == "🔨 Аукционы")
@router.message(Command("auctions"))
async def cmd_auctions(message: Message, session: AsyncSession):
    """Список активных и недавно завершенных аукционов"""
    views = await list_auctions(session, limit=20)
    await message.answer(
        format_auction_list(views),
        reply_markup=get_auctions_list_keyboard([view.auction.id for view in views], "ending-soon")
    )


@router.message(Command("find"))
async def cmd_find(message: Message, command: CommandObject, session: AsyncSession):
    """Поиск аукционов по названию"""
    if not command.args:
        await message.answer("Использование: /find <текст>", parse_mode=None)
        return
    views = await list_auctions(session, search=command.args, limit=20)
    await message.answer(
        format_auction_list(views, title=f"🔎 Поиск: {command.args}"),
        reply_markup=get_auctions_list_keyboard([view.auction.id for view in views], "ending-soon")
    )


@router.callback_query(F.data.startswith("auctions:sort:"))
async def sort_auctions(callback: CallbackQuery, session: AsyncSession):
    """Пересортировать список аукционов"""
    sort = callback.data.split(":")[2]
    try:
        views = await list_auctions(session, sort=sort, limit=20)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return
    await callback.message.edit_text(
        format_auction_list(views),
        reply_markup=get_auctions_list_keyboard([view.auction.id for view in views], sort)
    )
    await callback.answer()


@router.callback_query(F.data.startswith("auction:view:"))
async def view_auction(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Открыть карточку аукциона"""
    auction_id = int(callback.data.split(":")[2])
    await send_auction_card(callback.message, session, profile, auction_id)
    await callback.answer()


@router.callback_query(F.data.startswith("bid:amount:"))
async def place_bid_amount(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Ставка по кнопке с суммой"""
    _, _, auction_id, amount = callback.data.split(":")
    auction_id = int(auction_id)

    try:
        bid = await place_bid(session, auction_id, profile.id, amount)
        await callback.answer(f"Ставка {format_money(bid.amount)} принята! ✅")
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)

    # После любой попытки показываем актуальное состояние из базы
    await _refresh_card(callback, session, profile, auction_id)


@router.callback_query(F.data.startswith("bid:custom:"))
async def bid_custom_amount(callback: CallbackQuery, state: FSMContext):
    """Запросить ввод своей суммы"""
    auction_id = int(callback.data.split(":")[2])

    await state.set_state(BidState.waiting_amount)
    await state.update_data(auction_id=auction_id)

    await callback.message.answer("Введите сумму ставки (только число):")
    await callback.answer()


@router.message(BidState.waiting_amount, ~F.text.in_(MENU_BUTTONS))
async def process_bid_amount(message: Message, session: AsyncSession, profile: Profile, state: FSMContext):
    """Обработать введенную сумму ставки"""
    data = await state.get_data()
    auction_id = data.get("auction_id")

    if not auction_id:
        await message.answer("Ошибка: не найден ID аукциона")
        await state.clear()
        return

    try:
        bid = await place_bid(session, auction_id, profile.id, message.text or "")
    except ValueError as e:
        await message.answer(str(e))
        return

    await state.clear()
    await message.answer(f"✅ Ваша ставка {format_money(bid.amount)} принята.")
    await send_auction_card(message, session, profile, auction_id)


@router.callback_query(F.data.startswith("bid:buynow:"))
async def buy_now_handler(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Купить лот сразу"""
    auction_id = int(callback.data.split(":")[2])

    try:
        auction = await buy_now(session, auction_id, profile.id)
        await callback.answer(f"Лот ваш за {format_money(auction.current_price)}! 🏆", show_alert=True)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)

    await _refresh_card(callback, session, profile, auction_id)


@router.callback_query(F.data.startswith("auction:watch:"))
async def toggle_watch(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Добавить или убрать аукцион из списка наблюдения"""
    auction_id = int(callback.data.split(":")[2])

    try:
        watching = await toggle_watchlist(session, profile.id, auction_id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    await callback.answer("Добавлено в избранное" if watching else "Убрано из избранного")
    await _refresh_card(callback, session, profile, auction_id)


@router.callback_query(F.data.startswith("auction:bids:"))
async def show_bids(callback: CallbackQuery, session: AsyncSession):
    """История ставок"""
    auction_id = int(callback.data.split(":")[2])

    try:
        detail = await get_auction_detail(session, auction_id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    if not detail.bids:
        await callback.answer("Ставок пока нет", show_alert=True)
        return

    await callback.message.answer(format_bid_history(detail))
    await callback.answer()
