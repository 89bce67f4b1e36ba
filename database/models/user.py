"""Модель пользователя"""
from sqlalchemy import Column, BigInteger, String, DateTime, Boolean
from sqlalchemy.sql import func
from database.connection import Base, BigIntPK


class User(Base):
    """Модель пользователя маркетплейса"""
    __tablename__ = "users"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)  # Канал доставки уведомлений
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def display_name(self) -> str:
        """Имя для заказов и сообщений"""
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or self.username or f"ID: {self.id}"
