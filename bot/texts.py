"""Тексты сообщений бота"""
from aiogram import html
from database.models.auction import AuctionStatus
from bot.keyboards.sale import CONDITION_NAMES
from services.catalog import AuctionDetail, AuctionView, format_money, format_time_left

STATUS_NAMES = {
    AuctionStatus.DRAFT: "📝 Черновик",
    AuctionStatus.PENDING: "⏳ На модерации",
    AuctionStatus.LIVE: "🟢 Идут торги",
    AuctionStatus.ENDED: "🏁 Завершен",
    AuctionStatus.CANCELLED: "❌ Отменен",
}


def format_auction_line(view: AuctionView) -> str:
    """Одна строка списка аукционов"""
    line = f"#{view.auction.id} {html.quote(view.item.title)} — {format_money(view.auction.current_price)}"
    if view.is_live:
        line += f" · ⏳ {format_time_left(view.time_remaining)}"
    else:
        line += f" · {STATUS_NAMES[view.status]}"
    return line


def format_auction_list(views: list[AuctionView], title: str = "🔨 Аукционы") -> str:
    if not views:
        return f"{title}\n\nПока пусто"
    return f"{title}\n\n" + "\n".join(format_auction_line(view) for view in views)


def format_auction_text(detail: AuctionDetail, viewer_id: int = None) -> str:
    """Полный текст карточки аукциона"""
    view = detail.view
    auction, item = view.auction, view.item

    parts = [
        f"📦 {html.bold(html.quote(item.title))}",
        f"Статус: {STATUS_NAMES[view.status]}",
        "",
        html.quote(item.description),
        "",
        f"Состояние: {CONDITION_NAMES.get(item.condition, item.condition)}",
        f"Стартовая цена: {format_money(item.base_price)}",
        f"💰 Текущая цена: {html.bold(format_money(auction.current_price))}",
        f"Шаг ставки: {format_money(auction.min_increment)}",
    ]
    if auction.buy_now_price is not None:
        parts.append(f"⚡️ Купить сейчас: {format_money(auction.buy_now_price)}")
    parts.append(f"👥 Ставок: {view.bid_count}")

    if view.is_live:
        parts.append(f"⏳ Осталось: {format_time_left(view.time_remaining)}")
        parts.append(f"Минимальная ставка: {format_money(view.min_next_bid)}")
        if viewer_id is not None and view.leader_id == viewer_id:
            parts.append("🥇 Ваша ставка лидирует")
    elif view.status == AuctionStatus.ENDED:
        if view.leader_id is None:
            parts.append("Аукцион завершен без ставок")
        elif viewer_id is not None and view.leader_id == viewer_id:
            parts.append("🏆 Вы победили!")
        else:
            parts.append(f"🏆 Победная ставка: {format_money(view.leading_amount or auction.current_price)}")

    if detail.seller:
        parts.append(f"👤 Продавец: {html.quote(detail.seller.display_name)}")
    return "\n".join(parts)


def format_bid_history(detail: AuctionDetail) -> str:
    if not detail.bids:
        return "Ставок пока нет"
    lines = [f"📊 История ставок по лоту #{detail.view.auction.id}", ""]
    for bid, bidder in detail.bids:
        created = bid.created_at.strftime("%d.%m %H:%M")
        lines.append(f"{created} — {html.quote(bidder.display_name)}: {format_money(bid.amount)}")
    return "\n".join(lines)
