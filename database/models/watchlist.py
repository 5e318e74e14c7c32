"""Модель списка наблюдения"""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from database.connection import Base, BigIntPK


class Watchlist(Base):
    """Аукцион в списке наблюдения пользователя"""
    __tablename__ = "watchlists"

    id = Column(BigIntPK, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.id"), nullable=False, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Один пользователь наблюдает за аукционом не более одного раза
    __table_args__ = (
        UniqueConstraint('user_id', 'auction_id', name='uq_watchlist_user_auction'),
    )

    # Связи
    user = relationship("Profile")
    auction = relationship("Auction")
