"""Модель ставки"""
from sqlalchemy import Column, BigInteger, Numeric, DateTime, ForeignKey, Boolean
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database.connection import Base, BigIntPK


class Bid(Base):
    """Модель ставки на аукционе"""
    __tablename__ = "bids"

    id = Column(BigIntPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    bidder_id = Column(BigInteger, ForeignKey("profiles.id"), nullable=False, index=True)
    amount = Column(Numeric(16, 2), nullable=False)  # Сумма ставки
    is_winning = Column(Boolean, default=False, nullable=False)  # Является ли выигрышной
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    # Связи
    auction = relationship("Auction", back_populates="bids")
    bidder = relationship("Profile", backref="bids")
