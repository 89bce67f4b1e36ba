"""Модель заказа"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, String, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class OrderStatus(str, enum.Enum):
    """Статус заказа"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    """Статус оплаты заказа"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderSource(str, enum.Enum):
    """Источник заказа"""
    CART = "cart"
    AUCTION = "auction"


class Order(Base):
    """Модель заказа"""
    __tablename__ = "orders"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    order_number = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    shop_id = Column(BigInteger, ForeignKey("shops.id"), nullable=False, index=True)
    # Один заказ на аукцион
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), unique=True, nullable=True)
    items = Column(JSON, nullable=False)
    subtotal = Column(Integer, nullable=False)
    tax = Column(Integer, nullable=False)
    shipping_fee = Column(Integer, default=0, nullable=False)
    total = Column(Integer, nullable=False)
    customer = Column(JSON, nullable=True)  # Имя, email, телефон покупателя
    shipping_address = Column(JSON, nullable=True)  # None - адрес еще не указан
    billing_address = Column(JSON, nullable=True)
    payment_status = Column(String(50), default=PaymentStatus.PENDING.value, nullable=False)
    status = Column(String(50), default=OrderStatus.PENDING.value, nullable=False, index=True)
    source = Column(String(50), default=OrderSource.CART.value, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    # Связи
    user = relationship("User", backref="orders")
