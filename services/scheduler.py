"""Планировщик задач для завершения аукционов"""
import asyncio
import logging
from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import async_sessionmaker
from database.connection import async_session_maker
from services.lifecycle import sweep_expired_auctions, utcnow
from services.listing import cleanup_incomplete_listings
from config import settings

logger = logging.getLogger(__name__)

# Очистка незавершенных публикаций выполняется раз в столько циклов
CLEANUP_EVERY_CYCLES = 15


async def check_and_finish_auctions(
    session_maker: async_sessionmaker = None,
    now: Optional[datetime] = None
) -> list[int]:
    """Проверить и завершить истекшие аукционы"""
    finished = await sweep_expired_auctions(session_maker or async_session_maker, now or utcnow())
    if finished:
        logger.info(f"Завершены аукционы: {finished}")
    return finished


async def cleanup_listings(
    session_maker: async_sessionmaker = None,
    now: Optional[datetime] = None
) -> list[int]:
    """Удалить товары без аукциона"""
    async with (session_maker or async_session_maker)() as session:
        return await cleanup_incomplete_listings(session, now)


async def scheduler_loop(session_maker: async_sessionmaker = None):
    """Основной цикл планировщика"""
    cycles_passed = 0

    while True:
        try:
            await check_and_finish_auctions(session_maker)

            if cycles_passed >= CLEANUP_EVERY_CYCLES:
                await cleanup_listings(session_maker)
                cycles_passed = 0

            cycles_passed += 1

        except Exception as e:
            logger.error(f"Ошибка в планировщике: {e}")

        await asyncio.sleep(settings.SWEEP_INTERVAL_SECONDS)


def start_scheduler(session_maker: async_sessionmaker = None) -> asyncio.Task:
    """Запустить планировщик"""
    task = asyncio.create_task(scheduler_loop(session_maker))
    logger.info("Планировщик аукционов запущен")
    return task
