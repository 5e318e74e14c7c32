"""Ошибки бизнес-логики маркетплейса

Все ошибки наследуются от ValueError, поэтому обработчики бота ловят их
одним ``except ValueError`` и показывают текст пользователю.
"""
from decimal import Decimal


class MarketplaceError(ValueError):
    """Базовая ошибка маркетплейса"""
    retryable = False


class ValidationError(MarketplaceError):
    """Некорректные входные данные, операция не выполнялась"""


class AuthorizationError(MarketplaceError):
    """У пользователя нет нужной роли или прав владельца"""


class ConflictError(MarketplaceError):
    """Состояние в базе изменилось между чтением и записью"""
    retryable = True


class NotFoundError(MarketplaceError):
    """Запись не найдена"""


class InvalidTransition(ConflictError):
    """Недопустимый переход статуса аукциона"""
    retryable = False

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Нельзя перевести аукцион из статуса «{current}» в «{target}»")


class AuctionNotFound(NotFoundError):
    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__(f"Аукцион #{auction_id} не найден")


class ItemNotFound(NotFoundError):
    def __init__(self, item_id: int):
        self.item_id = item_id
        super().__init__(f"Товар #{item_id} не найден")


# Ошибки ставок

class BidError(MarketplaceError):
    """Ставка отклонена"""


class BidTooLow(BidError, ValidationError):
    def __init__(self, minimum: Decimal):
        self.minimum = minimum
        super().__init__(f"Ставка слишком мала: минимальная ставка {minimum:,.2f}")


class AuctionNotLive(BidError):
    def __init__(self, auction_id: int, message: str = None):
        self.auction_id = auction_id
        super().__init__(message or f"Аукцион #{auction_id} не активен")


class AuctionEnded(AuctionNotLive):
    def __init__(self, auction_id: int):
        super().__init__(auction_id, f"Аукцион #{auction_id} завершен")


class ConcurrentBidConflict(BidError, ConflictError):
    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__("Цена лота изменилась, пока обрабатывалась ставка. Попробуйте еще раз")


class BuyNowUnavailable(BidError):
    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__(f"Покупка сразу недоступна для аукциона #{auction_id}")


# Ошибки модерации

class GateError(MarketplaceError):
    """Действие модерации отклонено"""


class AlreadyDecided(GateError, ConflictError):
    retryable = False

    def __init__(self, auction_id: int, status: str):
        self.auction_id = auction_id
        self.status = status
        super().__init__(f"Аукцион #{auction_id} уже обработан (статус: {status})")


class Forbidden(GateError, AuthorizationError):
    def __init__(self, message: str = "Недостаточно прав для этого действия"):
        super().__init__(message)
