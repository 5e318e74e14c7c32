"""Сервис уведомлений: рассылка изменений аукционов и напоминания админам"""
import asyncio
import logging
from typing import Iterable, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy import select
from aiogram import Bot, html
from database.connection import async_session_maker
from database.models.auction import Auction, AuctionStatus
from database.models.item import Item
from database.models.user import Profile
from services.catalog import format_money
from services.events import feed, ChangeEvent, ChangeKind
from services.moderation import count_pending_auctions
from services.roles import get_admin_ids
from services.watchlist import get_watchers
from config import settings

logger = logging.getLogger(__name__)


async def _telegram_ids(session: AsyncSession, user_ids: Iterable[int]) -> list[int]:
    user_ids = {user_id for user_id in user_ids if user_id is not None}
    if not user_ids:
        return []
    result = await session.execute(
        select(Profile.telegram_id).where(
            Profile.id.in_(user_ids),
            Profile.telegram_id.is_not(None)
        )
    )
    return [row[0] for row in result.all()]


async def notify_users(
    bot: Bot,
    session: AsyncSession,
    user_ids: Iterable[int],
    text: str,
    reply_markup=None
) -> int:
    """Отправить сообщение пользователям, вернуть число доставленных"""
    delivered = 0
    for telegram_id in await _telegram_ids(session, user_ids):
        try:
            await bot.send_message(telegram_id, text, reply_markup=reply_markup)
            delivered += 1
        except Exception as e:
            logger.error(f"Ошибка отправки уведомления пользователю {telegram_id}: {e}")
    return delivered


async def _load_lot(session: AsyncSession, auction_id: int) -> Optional[tuple[Auction, Item]]:
    result = await session.execute(
        select(Auction, Item)
        .join(Item, Auction.item_id == Item.id)
        .where(Auction.id == auction_id)
        .execution_options(populate_existing=True)
    )
    return result.first()


async def _handle_bid(bot: Bot, session: AsyncSession, event: ChangeEvent, auction: Auction, item: Item):
    from bot.keyboards.auction import get_auction_keyboard

    bidder_id = event.payload.get("bidder_id")
    amount = format_money(event.payload["amount"])

    previous_leader_id = event.payload.get("previous_leader_id")
    if previous_leader_id and previous_leader_id != bidder_id:
        await notify_users(
            bot,
            session,
            [previous_leader_id],
            f"⚡️ Вашу ставку перебили!\n\nЛот: {html.quote(item.title)}\nНовая цена: {amount}",
            reply_markup=get_auction_keyboard(auction.id)
        )

    watchers = set(await get_watchers(session, auction.id))
    recipients = (watchers | {item.seller_id}) - {bidder_id, previous_leader_id}
    text = f"🔔 Новая ставка\n\nЛот: {html.quote(item.title)}\nТекущая цена: {amount}"
    if event.payload.get("extended"):
        text += "\n⏱ Время аукциона продлено"
    await notify_users(bot, session, recipients, text)


async def _handle_auction_update(bot: Bot, session: AsyncSession, event: ChangeEvent, auction: Auction, item: Item):
    status = event.payload.get("status")

    if status == AuctionStatus.PENDING.value:
        admins = await get_admin_ids(session)
        await notify_users(bot, session, admins, f"🆕 Новый лот на модерации: {html.quote(item.title)}\n/moderation")
        return

    if status == AuctionStatus.LIVE.value:
        await notify_users(bot, session, [item.seller_id], f"✅ Ваш лот «{html.quote(item.title)}» одобрен, торги начались")
        return

    watchers = set(await get_watchers(session, auction.id))

    if status == AuctionStatus.CANCELLED.value:
        if event.payload.get("previous_status") == AuctionStatus.PENDING.value:
            seller_text = f"❌ Ваш лот «{html.quote(item.title)}» отклонен модератором"
        else:
            seller_text = f"❌ Аукцион по вашему лоту «{html.quote(item.title)}» отменен администратором"
        await notify_users(bot, session, [item.seller_id], seller_text)
        await notify_users(bot, session, watchers - {item.seller_id}, f"❌ Аукцион «{html.quote(item.title)}» отменен")
        return

    if status == AuctionStatus.ENDED.value:
        winner_id = event.payload.get("winner_id")
        if winner_id:
            amount = format_money(event.payload["winning_amount"])
            await notify_users(bot, session, [winner_id], f"🏆 Вы выиграли аукцион «{html.quote(item.title)}» за {amount}!")
            await notify_users(bot, session, [item.seller_id], f"🏁 Аукцион «{html.quote(item.title)}» завершен. Итоговая цена: {amount}")
        else:
            await notify_users(bot, session, [item.seller_id], f"🏁 Аукцион «{html.quote(item.title)}» завершен без ставок")
        await notify_users(
            bot,
            session,
            watchers - {winner_id, item.seller_id},
            f"🏁 Аукцион «{html.quote(item.title)}» завершен"
        )


async def handle_change(bot: Bot, session: AsyncSession, event: ChangeEvent) -> None:
    """Разослать уведомления по одному событию из ленты изменений"""
    if event.auction_id is None:
        return

    lot = await _load_lot(session, event.auction_id)
    if not lot:
        return
    auction, item = lot

    if event.kind == ChangeKind.BID_PLACED:
        await _handle_bid(bot, session, event, auction, item)
    elif event.kind == ChangeKind.AUCTION_UPDATED:
        await _handle_auction_update(bot, session, event, auction, item)


async def fan_out_changes(bot: Bot, session_maker: async_sessionmaker = None):
    """Подписаться на ленту изменений и рассылать уведомления"""
    session_maker = session_maker or async_session_maker
    async with feed.subscribe() as subscription:
        async for event in subscription:
            try:
                async with session_maker() as session:
                    await handle_change(bot, session, event)
            except Exception as e:
                logger.error(f"Ошибка рассылки события {event.kind.value} для аукциона {event.auction_id}: {e}")


async def check_and_notify_pending_moderations(bot: Bot, session_maker: async_sessionmaker = None):
    """Проверить и уведомить админов о лотах на модерации"""
    async with (session_maker or async_session_maker)() as session:
        pending_count = await count_pending_auctions(session)
        if pending_count == 0:
            return

        text = (
            f"🔔 Напоминание о модерации\n\n"
            f"Лотов на модерации: <b>{pending_count}</b>\n\n"
            "Откройте список командой /moderation."
        )
        await notify_users(bot, session, await get_admin_ids(session), text)


async def notification_scheduler(bot: Bot):
    """Планировщик напоминаний о модерации"""
    while True:
        try:
            await check_and_notify_pending_moderations(bot)
        except Exception as e:
            logger.error(f"Ошибка в планировщике напоминаний: {e}")

        await asyncio.sleep(settings.MODERATION_REMINDER_HOURS * 60 * 60)


def start_notification_scheduler(bot: Bot) -> list[asyncio.Task]:
    """Запустить рассылку изменений и напоминания"""
    tasks = [
        asyncio.create_task(fan_out_changes(bot)),
        asyncio.create_task(notification_scheduler(bot)),
    ]
    logger.info("Рассылка уведомлений запущена")
    return tasks
