"""Сервис для работы с профилями пользователей"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database.models.user import Profile


async def get_or_create_profile(
    session: AsyncSession,
    telegram_id: int,
    username: str = None,
    first_name: str = None,
) -> Profile:
    """Получить или создать профиль по Telegram ID"""
    result = await session.execute(
        select(Profile).where(Profile.telegram_id == telegram_id)
    )
    profile = result.scalar_one_or_none()

    if not profile:
        profile = Profile(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
        )
        session.add(profile)
        await session.commit()
        await session.refresh(profile)
    elif (username or first_name) and (
        username != profile.username or first_name != profile.first_name
    ):
        # Обновляем данные, если изменились
        profile.username = username
        profile.first_name = first_name
        await session.commit()

    return profile


async def get_profile_by_telegram_id(session: AsyncSession, telegram_id: int) -> Profile | None:
    """Получить профиль по Telegram ID"""
    result = await session.execute(
        select(Profile).where(Profile.telegram_id == telegram_id)
    )
    return result.scalar_one_or_none()
