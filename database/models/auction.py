"""Модель аукциона"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, String, JSON
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class AuctionStatus(str, enum.Enum):
    """Статус аукциона

    Переход только live -> ended. Исход (победа, нет ставок, резерв
    не достигнут) определяется по winner_id/final_bid, а не по статусу.
    """
    LIVE = "live"
    ENDED = "ended"


class Auction(Base):
    """Модель аукциона"""
    __tablename__ = "auctions"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    shop_id = Column(BigInteger, ForeignKey("shops.id"), nullable=False, index=True)
    product_id = Column(BigInteger, ForeignKey("products.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    images = Column(JSON, nullable=True)  # Список URL изображений
    starting_bid = Column(Integer, nullable=False)
    current_bid = Column(Integer, nullable=False)
    reserve_price = Column(Integer, nullable=True)
    status = Column(String(50), default=AuctionStatus.LIVE.value, nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=False, index=True)
    
    # Заполняются только при закрытии
    winner_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    final_bid = Column(Integer, nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)  # Момент захвата закрытия
    settled_at = Column(DateTime(timezone=True), nullable=True, index=True)  # Все побочные эффекты выполнены
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    # Связи
    shop = relationship("Shop")
    product = relationship("Product")
    winner = relationship("User", foreign_keys=[winner_id])
    bids = relationship("Bid", back_populates="auction", order_by="Bid.placed_at.desc()")

    @property
    def primary_image(self):
        """Первое изображение аукциона"""
        return self.images[0] if self.images else None
