"""Модель профиля пользователя"""
from sqlalchemy import Column, BigInteger, String, DateTime
from sqlalchemy.sql import func
from database.connection import Base, BigIntPK


class Profile(Base):
    """Профиль пользователя Telegram

    Роли здесь не хранятся: единственный источник прав - таблица user_roles.
    """
    __tablename__ = "profiles"

    id = Column(BigIntPK, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def display_name(self) -> str:
        if self.username:
            return f"@{self.username}"
        return self.first_name or f"ID: {self.telegram_id or self.id}"
