"""Обработчики создания лота"""
from decimal import Decimal
from aiogram import Router, F
from aiogram.types import Message, CallbackQuery
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.fsm.state import State, StatesGroup
from sqlalchemy.ext.asyncio import AsyncSession
from database.models.user import Profile
from bot.keyboards.sale import (
    CONDITION_NAMES,
    get_condition_keyboard,
    get_duration_keyboard,
    get_skip_keyboard,
    get_confirm_keyboard,
)
from services.bidding import to_money
from services.catalog import format_money
from services.listing import (
    CUSTOM_MINUTES_MIN,
    CUSTOM_MINUTES_MAX,
    create_listing,
    parse_listing_form,
    submit_listing,
)

router = Router()

MAX_PHOTOS = 3


class SellStates(StatesGroup):
    """Состояния для создания лота"""
    waiting_title = State()
    waiting_description = State()
    waiting_condition = State()
    waiting_base_price = State()
    waiting_min_increment = State()
    waiting_buy_now = State()
    waiting_duration = State()
    waiting_custom_minutes = State()
    waiting_photos = State()
    confirming = State()


@router.message(F.text == "➕ Продать")
@router.message(Command("sell"))
async def start_sell(message: Message, state: FSMContext):
    """Начать создание лота"""
    await state.clear()
    await state.set_state(SellStates.waiting_title)
    await message.answer("📝 Новый лот\n\nВведите название товара:")


@router.message(SellStates.waiting_title)
async def process_title(message: Message, state: FSMContext):
    title = (message.text or "").strip()
    if not title:
        await message.answer("Название не может быть пустым. Введите название:")
        return
    if len(title) > 255:
        await message.answer("Название слишком длинное (максимум 255 символов). Введите короче:")
        return

    await state.update_data(title=title)
    await state.set_state(SellStates.waiting_description)
    await message.answer("Опишите товар:")


@router.message(SellStates.waiting_description)
async def process_description(message: Message, state: FSMContext):
    description = (message.text or "").strip()
    if not description:
        await message.answer("Описание не может быть пустым. Опишите товар:")
        return

    await state.update_data(description=description)
    await state.set_state(SellStates.waiting_condition)
    await message.answer("Выберите состояние товара:", reply_markup=get_condition_keyboard())


@router.callback_query(F.data.startswith("sell:condition:"), SellStates.waiting_condition)
async def process_condition(callback: CallbackQuery, state: FSMContext):
    condition = callback.data.split(":")[2]
    if condition not in CONDITION_NAMES:
        await callback.answer("Неизвестное состояние", show_alert=True)
        return

    await state.update_data(condition=condition)
    await state.set_state(SellStates.waiting_base_price)
    await callback.message.edit_text(
        f"Состояние: {CONDITION_NAMES[condition]}\n\nВведите стартовую цену (только число):"
    )
    await callback.answer()


@router.message(SellStates.waiting_base_price)
async def process_base_price(message: Message, state: FSMContext):
    try:
        price = to_money(message.text or "", allow_zero=True)
    except ValueError as e:
        await message.answer(f"{e}\n\nВведите стартовую цену:")
        return

    await state.update_data(base_price=str(price))
    await state.set_state(SellStates.waiting_min_increment)
    await message.answer(
        "Введите минимальный шаг ставки или пропустите (по умолчанию 10):",
        reply_markup=get_skip_keyboard("increment")
    )


@router.message(SellStates.waiting_min_increment)
async def process_min_increment(message: Message, state: FSMContext):
    try:
        increment = to_money(message.text or "")
    except ValueError as e:
        await message.answer(f"{e}\n\nВведите минимальный шаг ставки:")
        return

    await state.update_data(min_increment=str(increment))
    await ask_buy_now(message, state)


async def ask_buy_now(message: Message, state: FSMContext):
    await state.set_state(SellStates.waiting_buy_now)
    await message.answer(
        "Введите цену «купить сейчас» или пропустите:",
        reply_markup=get_skip_keyboard("buy_now")
    )


@router.message(SellStates.waiting_buy_now)
async def process_buy_now(message: Message, state: FSMContext):
    data = await state.get_data()
    try:
        price = to_money(message.text or "")
    except ValueError as e:
        await message.answer(f"{e}\n\nВведите цену «купить сейчас»:")
        return

    if price < Decimal(data["base_price"]):
        await message.answer("Цена «купить сейчас» не может быть меньше стартовой цены. Введите другую:")
        return

    await state.update_data(buy_now_price=str(price))
    await ask_duration(message, state)


async def ask_duration(message: Message, state: FSMContext):
    await state.set_state(SellStates.waiting_duration)
    await message.answer("Сколько будут идти торги?", reply_markup=get_duration_keyboard())


@router.callback_query(F.data.startswith("sell:skip:"))
async def process_skip(callback: CallbackQuery, state: FSMContext):
    """Пропуск необязательного шага"""
    step = callback.data.split(":")[2]
    current = await state.get_state()

    if step == "increment" and current == SellStates.waiting_min_increment.state:
        await callback.message.edit_reply_markup(reply_markup=None)
        await ask_buy_now(callback.message, state)
    elif step == "buy_now" and current == SellStates.waiting_buy_now.state:
        await callback.message.edit_reply_markup(reply_markup=None)
        await ask_duration(callback.message, state)
    elif step == "photos" and current == SellStates.waiting_photos.state:
        await callback.message.edit_reply_markup(reply_markup=None)
        await show_confirmation(callback.message, state)
    else:
        await callback.answer("Этот шаг уже пройден", show_alert=True)
        return
    await callback.answer()


@router.callback_query(F.data.startswith("sell:duration:"), SellStates.waiting_duration)
async def process_duration(callback: CallbackQuery, state: FSMContext):
    value = callback.data.split(":")[2]

    if value == "custom":
        await state.set_state(SellStates.waiting_custom_minutes)
        await callback.message.edit_text(
            f"Введите длительность в минутах ({CUSTOM_MINUTES_MIN}-{CUSTOM_MINUTES_MAX}):"
        )
        await callback.answer()
        return

    await state.update_data(duration_days=int(value), custom_minutes=None)
    await callback.message.edit_text(f"Длительность: {value} дн.")
    await ask_photos(callback.message, state)
    await callback.answer()


@router.message(SellStates.waiting_custom_minutes)
async def process_custom_minutes(message: Message, state: FSMContext):
    try:
        minutes = int((message.text or "").strip())
    except ValueError:
        await message.answer("Введите целое число минут:")
        return

    if not CUSTOM_MINUTES_MIN <= minutes <= CUSTOM_MINUTES_MAX:
        await message.answer(
            f"Длительность должна быть от {CUSTOM_MINUTES_MIN} до {CUSTOM_MINUTES_MAX} минут. Введите другую:"
        )
        return

    await state.update_data(duration_days=None, custom_minutes=minutes)
    await ask_photos(message, state)


async def ask_photos(message: Message, state: FSMContext):
    await state.set_state(SellStates.waiting_photos)
    await message.answer(
        f"📸 Отправьте фото товара (до {MAX_PHOTOS} штук) или пропустите:",
        reply_markup=get_skip_keyboard("photos")
    )


@router.message(SellStates.waiting_photos, F.photo)
async def process_photo(message: Message, state: FSMContext):
    data = await state.get_data()
    photos = data.get("images", [])

    # Сохраняем file_id самого большого фото
    largest_photo = max(message.photo, key=lambda p: p.file_size or 0)
    photos.append(largest_photo.file_id)
    await state.update_data(images=photos)

    if len(photos) >= MAX_PHOTOS:
        await show_confirmation(message, state)
        return

    await message.answer(
        f"📸 Фото добавлено ({len(photos)}/{MAX_PHOTOS}). Отправьте еще или продолжите:",
        reply_markup=get_skip_keyboard("photos")
    )


@router.message(SellStates.waiting_photos)
async def process_not_photo(message: Message):
    await message.answer("Отправьте фото или нажмите «Пропустить».", reply_markup=get_skip_keyboard("photos"))


async def show_confirmation(message: Message, state: FSMContext):
    data = await state.get_data()
    await state.set_state(SellStates.confirming)

    if data.get("custom_minutes"):
        duration = f"{data['custom_minutes']} мин."
    else:
        duration = f"{data['duration_days']} дн."

    text = (
        "📋 Проверьте лот\n\n"
        f"Название: {data['title']}\n"
        f"Описание: {data['description']}\n"
        f"Состояние: {CONDITION_NAMES[data['condition']]}\n"
        f"Стартовая цена: {format_money(data['base_price'])}\n"
        f"Шаг ставки: {format_money(data.get('min_increment', '10'))}\n"
    )
    if data.get("buy_now_price"):
        text += f"Купить сейчас: {format_money(data['buy_now_price'])}\n"
    text += f"Длительность: {duration}\n"
    text += f"Фото: {len(data.get('images', []))}"

    await message.answer(text, reply_markup=get_confirm_keyboard(), parse_mode=None)


@router.callback_query(F.data.startswith("sell:confirm:"), SellStates.confirming)
async def process_confirm(callback: CallbackQuery, state: FSMContext, session: AsyncSession, profile: Profile):
    """Отправить лот на модерацию или сохранить черновик"""
    action = callback.data.split(":")[2]

    if action == "cancel":
        await state.clear()
        await callback.message.edit_text("❌ Создание лота отменено")
        await callback.answer()
        return

    data = await state.get_data()
    form_data = {
        key: data[key]
        for key in (
            "title", "description", "condition", "base_price", "min_increment",
            "buy_now_price", "duration_days", "custom_minutes", "images"
        )
        if data.get(key) is not None
    }

    try:
        form = parse_listing_form(**form_data)
        item, auction = await create_listing(session, profile.id, form, submit=action == "submit")
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    await state.clear()
    if action == "submit":
        text = f"📤 Лот #{auction.id} «{item.title}» отправлен на модерацию"
    else:
        text = f"📝 Черновик #{auction.id} «{item.title}» сохранен. Отправить его можно из кабинета."
    await callback.message.edit_text(text, parse_mode=None)
    await callback.answer()


@router.callback_query(F.data.startswith("sell:submit:"))
async def submit_draft(callback: CallbackQuery, session: AsyncSession, profile: Profile):
    """Отправить сохраненный черновик на модерацию"""
    auction_id = int(callback.data.split(":")[2])

    try:
        await submit_listing(session, auction_id, profile.id)
    except ValueError as e:
        await callback.answer(str(e), show_alert=True)
        return

    await callback.message.edit_reply_markup(reply_markup=None)
    await callback.answer("Лот отправлен на модерацию 📤", show_alert=True)
