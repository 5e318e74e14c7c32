"""Обработчики команд /start и /help"""
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command, CommandObject, CommandStart
from sqlalchemy.ext.asyncio import AsyncSession
from database.models.user import Profile
from bot.keyboards.main import get_user_keyboard
from services.roles import is_admin

router = Router()

HELP_TEXT = (
    "🔨 Аукционы - активные торги и недавно завершенные\n"
    "➕ Продать - выставить лот на модерацию\n"
    "👤 Мой кабинет - мои лоты, ставки и избранное\n\n"
    "Команды:\n"
    "/auctions - список аукционов\n"
    "/find <текст> - поиск по названию\n"
    "/sell - выставить лот\n"
    "/profile - мой кабинет\n"
    "/help - эта справка"
)

ADMIN_HELP_TEXT = (
    "\n\nДля администраторов:\n"
    "/moderation - лоты на модерации\n"
    "/cancel_auction <id> - отменить идущий аукцион\n"
    "/grant_admin <telegram_id> - выдать права администратора\n"
    "/revoke_admin <telegram_id> - снять права администратора\n"
    "/admins - список администраторов"
)


@router.message(CommandStart())
async def cmd_start(message: Message, command: CommandObject, session: AsyncSession, profile: Profile):
    """Обработчик команды /start"""
    # Deep-link вида auction_123 сразу открывает карточку аукциона
    if command.args and command.args.startswith("auction_"):
        try:
            auction_id = int(command.args.split("_", 1)[1])
        except ValueError:
            auction_id = None
        if auction_id:
            from bot.handlers.auction import send_auction_card
            await send_auction_card(message, session, profile, auction_id)
            return

    admin = await is_admin(session, profile.id)
    await message.answer(
        "👋 Добро пожаловать на аукцион!\n\nВыберите раздел:",
        reply_markup=get_user_keyboard(admin)
    )


@router.message(Command("help"))
async def cmd_help(message: Message, session: AsyncSession, profile: Profile):
    """Справка по командам"""
    text = HELP_TEXT
    if await is_admin(session, profile.id):
        text += ADMIN_HELP_TEXT
    await message.answer(text, parse_mode=None)
