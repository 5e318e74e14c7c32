"""Главный файл бота"""
import asyncio
import logging
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from config import settings
from bot.handlers import start, auction, profile, moderation, admin, sale
from bot.middlewares.database import DatabaseMiddleware
from database.connection import async_session_maker, init_models
from services.roles import bootstrap_admins
from services.scheduler import start_scheduler
from services.notifications import start_notification_scheduler

# Настройка логирования
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Запуск бота"""
    if not settings.BOT_TOKEN:
        logger.error("BOT_TOKEN не задан, проверьте .env")
        return

    await init_models()
    async with async_session_maker() as session:
        granted = await bootstrap_admins(session, settings.admin_ids_list)
    if granted:
        logger.info(f"Роль администратора выдана из ADMIN_USER_IDS: {granted}")

    # Создаем бот и диспетчер
    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML)
    )
    dp = Dispatcher()

    # Регистрируем middleware
    dp.message.middleware(DatabaseMiddleware())
    dp.callback_query.middleware(DatabaseMiddleware())

    # Кнопки меню и команды раньше шагов создания лота
    dp.include_router(start.router)
    dp.include_router(auction.router)
    dp.include_router(profile.router)
    dp.include_router(moderation.router)
    dp.include_router(admin.router)
    dp.include_router(sale.router)

    # Запускаем планировщик для завершения аукционов,
    # рассылку уведомлений и напоминания о модерации
    tasks = [start_scheduler(), *start_notification_scheduler(bot)]

    logger.info("Бот запущен")

    # Запускаем polling
    try:
        await dp.start_polling(bot)
    finally:
        for task in tasks:
            task.cancel()


if __name__ == "__main__":
    asyncio.run(main())
