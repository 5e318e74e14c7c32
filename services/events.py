"""Лента изменений: уведомления подписчиков о ставках и смене статусов"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set

logger = logging.getLogger(__name__)


class ChangeKind(str, enum.Enum):
    """Тип изменения"""
    BID_PLACED = "bid_placed"
    AUCTION_UPDATED = "auction_updated"
    ROLE_CHANGED = "role_changed"


@dataclass(frozen=True)
class ChangeEvent:
    """Событие изменения записи"""
    table: str
    kind: ChangeKind
    auction_id: Optional[int] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class Subscription:
    """Подписка на события одного аукциона (или всех, если auction_id=None)"""

    def __init__(self, feed: "ChangeFeed", auction_id: Optional[int], maxsize: int):
        self.feed = feed
        self.auction_id = auction_id
        self.queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)

    def matches(self, event: ChangeEvent) -> bool:
        return self.auction_id is None or event.auction_id == self.auction_id

    async def get(self) -> ChangeEvent:
        return await self.queue.get()

    def close(self) -> None:
        self.feed.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()


class ChangeFeed:
    """Рассылка событий всем подписчикам внутри процесса

    Публикация вызывается только после commit, поэтому подписчик, перечитав
    базу, всегда видит изменение. Переполненная очередь медленного подписчика
    теряет событие: подписчики перечитывают состояние из базы, а не из события.
    """

    def __init__(self, maxsize: int = 100):
        self._maxsize = maxsize
        self._subscriptions: Set[Subscription] = set()

    def subscribe(self, auction_id: Optional[int] = None) -> Subscription:
        subscription = Subscription(self, auction_id, self._maxsize)
        self._subscriptions.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def publish(self, event: ChangeEvent) -> int:
        """Отправить событие подписчикам, вернуть число доставок"""
        delivered = 0
        for subscription in list(self._subscriptions):
            if not subscription.matches(event):
                continue
            try:
                subscription.queue.put_nowait(event)
                delivered += 1
            except asyncio.QueueFull:
                logger.warning(
                    f"Очередь подписчика переполнена, событие {event.kind.value} "
                    f"для аукциона {event.auction_id} пропущено"
                )
        return delivered


feed = ChangeFeed()
