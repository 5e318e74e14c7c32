"""Обработчики для админов: управление ролями"""
from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command, CommandObject
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database.models.role import AppRole
from database.models.user import Profile
from services.roles import is_admin, get_admin_ids, grant_role, revoke_role
from services.user import get_profile_by_telegram_id

router = Router()


async def _target_profile(message: Message, command: CommandObject, session: AsyncSession):
    """Найти профиль по telegram_id из аргумента команды"""
    if not command.args or not command.args.strip().isdigit():
        await message.answer(f"Использование: /{command.command} <telegram_id>", parse_mode=None)
        return None

    target = await get_profile_by_telegram_id(session, int(command.args.strip()))
    if not target:
        await message.answer("Пользователь не найден. Он должен хотя бы раз запустить бота.")
    return target


@router.message(Command("grant_admin"))
async def cmd_grant_admin(message: Message, command: CommandObject, session: AsyncSession, profile: Profile):
    """Выдать права администратора"""
    if not await is_admin(session, profile.id):
        await message.answer("У вас нет прав администратора")
        return

    target = await _target_profile(message, command, session)
    if not target:
        return

    try:
        granted = await grant_role(session, target.id, AppRole.ADMIN, actor_id=profile.id)
    except ValueError as e:
        await message.answer(str(e))
        return

    if granted:
        await message.answer(f"✅ {target.display_name} теперь администратор", parse_mode=None)
    else:
        await message.answer(f"{target.display_name} уже администратор", parse_mode=None)


@router.message(Command("revoke_admin"))
async def cmd_revoke_admin(message: Message, command: CommandObject, session: AsyncSession, profile: Profile):
    """Снять права администратора"""
    if not await is_admin(session, profile.id):
        await message.answer("У вас нет прав администратора")
        return

    target = await _target_profile(message, command, session)
    if not target:
        return

    try:
        revoked = await revoke_role(session, target.id, AppRole.ADMIN, actor_id=profile.id)
    except ValueError as e:
        await message.answer(str(e))
        return

    if revoked:
        await message.answer(f"✅ {target.display_name} больше не администратор", parse_mode=None)
    else:
        await message.answer(f"{target.display_name} не является администратором", parse_mode=None)


@router.message(Command("admins"))
async def cmd_admins(message: Message, session: AsyncSession, profile: Profile):
    """Список администраторов"""
    if not await is_admin(session, profile.id):
        await message.answer("У вас нет прав администратора")
        return

    admin_ids = await get_admin_ids(session)
    result = await session.execute(
        select(Profile).where(Profile.id.in_(admin_ids)).order_by(Profile.id)
    )
    admins = result.scalars().all()

    lines = ["👮 Администраторы:", ""]
    for admin in admins:
        lines.append(f"• {admin.display_name} (ID: {admin.telegram_id})")
    await message.answer("\n".join(lines), parse_mode=None)
