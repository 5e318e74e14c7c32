"""Модель ролей пользователей"""
from sqlalchemy import Column, BigInteger, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class AppRole(str, enum.Enum):
    """Роль пользователя"""
    USER = "user"
    SELLER = "seller"
    ADMIN = "admin"


class UserRole(Base):
    """Назначение роли пользователю"""
    __tablename__ = "user_roles"

    id = Column(BigIntPK, primary_key=True, index=True)
    user_id = Column(BigInteger, ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(String(50), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'role', name='uq_user_role'),
    )

    # Связи
    user = relationship("Profile", backref="roles")
