"""Модель товара"""
from sqlalchemy import Column, BigInteger, String, Text, Numeric, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class ItemCondition(str, enum.Enum):
    """Состояние товара"""
    NEW = "new"
    LIKE_NEW = "like_new"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class Item(Base):
    """Модель товара, выставленного на аукцион"""
    __tablename__ = "items"

    id = Column(BigIntPK, primary_key=True, index=True)
    seller_id = Column(BigInteger, ForeignKey("profiles.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(BigInteger, nullable=True, index=True)  # Категории ведутся вне сервиса
    condition = Column(String(50), nullable=False)
    base_price = Column(Numeric(16, 2), nullable=False)  # Стартовая цена
    images = Column(JSON, nullable=False, default=list)  # file_id фотографий
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    # Связи
    seller = relationship("Profile", backref="items")
    auction = relationship("Auction", back_populates="item", uselist=False)
