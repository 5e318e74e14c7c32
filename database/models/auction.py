"""Модель аукциона"""
from sqlalchemy import Column, BigInteger, Integer, Numeric, DateTime, ForeignKey, Boolean, String
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class AuctionStatus(str, enum.Enum):
    """Статус аукциона"""
    DRAFT = "draft"  # Черновик продавца
    PENDING = "pending"  # Ожидает модерации
    LIVE = "live"  # Идут торги
    ENDED = "ended"  # Завершен
    CANCELLED = "cancelled"  # Отменен


class Auction(Base):
    """Модель аукциона"""
    __tablename__ = "auctions"

    id = Column(BigIntPK, primary_key=True, index=True)
    item_id = Column(BigInteger, ForeignKey("items.id"), unique=True, nullable=False, index=True)
    status = Column(String(50), default=AuctionStatus.PENDING.value, nullable=False, index=True)
    current_price = Column(Numeric(16, 2), nullable=False)  # Текущая цена
    min_increment = Column(Numeric(16, 2), nullable=False)  # Минимальный шаг ставки
    buy_now_price = Column(Numeric(16, 2), nullable=True)  # Цена "купить сейчас"
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True, index=True)
    duration_minutes = Column(Integer, nullable=False)  # Выбранная продавцом длительность
    anti_sniping = Column(Boolean, default=True, nullable=False)
    bid_count = Column(Integer, default=0, nullable=False)  # Версия для compare-and-set
    winner_id = Column(BigInteger, ForeignKey("profiles.id"), nullable=True, index=True)
    winning_bid_id = Column(BigInteger, nullable=True)
    finished_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Связи
    item = relationship("Item", back_populates="auction")
    winner = relationship("Profile", foreign_keys=[winner_id])
    bids = relationship("Bid", back_populates="auction", order_by="Bid.created_at.desc()")
