"""Сервис ролей: единственный источник прав администратора"""
import logging
import time
from typing import Dict, Iterable, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from database.models.role import UserRole, AppRole
from services.errors import Forbidden, ValidationError
from services.events import feed, ChangeEvent, ChangeKind
from services.user import get_or_create_profile
from config import settings

logger = logging.getLogger(__name__)


class CapabilityCache:
    """Кэш проверки прав с TTL и явной инвалидацией при смене ролей"""

    def __init__(self, ttl: float):
        self.ttl = ttl
        self._entries: Dict[int, Tuple[bool, float]] = {}

    def get(self, user_id: int) -> Optional[bool]:
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            del self._entries[user_id]
            return None
        return value

    def set(self, user_id: int, value: bool) -> None:
        self._entries[user_id] = (value, time.monotonic() + self.ttl)

    def invalidate(self, user_id: int) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()


admin_cache = CapabilityCache(settings.ROLE_CACHE_SECONDS)


async def has_role(session: AsyncSession, user_id: int, role: AppRole) -> bool:
    """Проверить наличие роли у пользователя"""
    result = await session.execute(
        select(UserRole.id).where(
            UserRole.user_id == user_id,
            UserRole.role == role.value
        )
    )
    return result.first() is not None


async def is_admin(session: AsyncSession, user_id: Optional[int]) -> bool:
    """Является ли пользователь администратором"""
    if user_id is None:
        return False

    cached = admin_cache.get(user_id)
    if cached is not None:
        return cached

    value = await has_role(session, user_id, AppRole.ADMIN)
    admin_cache.set(user_id, value)
    return value


async def require_admin(session: AsyncSession, actor_id: Optional[int]) -> None:
    """Проверить права администратора или выбросить Forbidden"""
    if not await is_admin(session, actor_id):
        raise Forbidden("Действие доступно только администраторам")


async def get_roles(session: AsyncSession, user_id: int) -> list[str]:
    """Получить все роли пользователя"""
    result = await session.execute(
        select(UserRole.role).where(UserRole.user_id == user_id).order_by(UserRole.role)
    )
    return [row[0] for row in result.all()]


async def get_admin_ids(session: AsyncSession) -> list[int]:
    """ID профилей всех администраторов"""
    result = await session.execute(
        select(UserRole.user_id).where(UserRole.role == AppRole.ADMIN.value)
    )
    return [row[0] for row in result.all()]


def _parse_role(role) -> AppRole:
    try:
        return AppRole(role)
    except ValueError:
        raise ValidationError(f"Неизвестная роль: {role}") from None


def _role_changed(user_id: int, role: AppRole, granted: bool) -> None:
    admin_cache.invalidate(user_id)
    feed.publish(ChangeEvent(
        table="user_roles",
        kind=ChangeKind.ROLE_CHANGED,
        payload={"user_id": user_id, "role": role.value, "granted": granted},
    ))


async def grant_role(
    session: AsyncSession,
    user_id: int,
    role,
    actor_id: Optional[int] = None
) -> bool:
    """Выдать роль. actor_id=None - системная операция (bootstrap).

    Возвращает True, если роль была выдана сейчас.
    """
    role = _parse_role(role)
    if actor_id is not None:
        await require_admin(session, actor_id)

    if await has_role(session, user_id, role):
        return False

    session.add(UserRole(user_id=user_id, role=role.value))
    await session.commit()
    _role_changed(user_id, role, granted=True)
    logger.info(f"Пользователю {user_id} выдана роль {role.value} (actor={actor_id})")
    return True


async def revoke_role(
    session: AsyncSession,
    user_id: int,
    role,
    actor_id: Optional[int] = None
) -> bool:
    """Отозвать роль. Возвращает True, если роль была у пользователя"""
    role = _parse_role(role)
    if actor_id is not None:
        await require_admin(session, actor_id)
        if role == AppRole.ADMIN and actor_id == user_id:
            raise ValidationError("Нельзя снять роль администратора с самого себя")

    result = await session.execute(
        delete(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role == role.value
        )
    )
    await session.commit()

    if not result.rowcount:
        return False

    _role_changed(user_id, role, granted=False)
    logger.info(f"У пользователя {user_id} отозвана роль {role.value} (actor={actor_id})")
    return True


async def bootstrap_admins(session: AsyncSession, telegram_ids: Iterable[int]) -> list[int]:
    """Записать администраторов из настроек в таблицу ролей"""
    granted = []
    for telegram_id in telegram_ids:
        profile = await get_or_create_profile(session, telegram_id)
        if await grant_role(session, profile.id, AppRole.ADMIN):
            granted.append(profile.id)
    return granted
