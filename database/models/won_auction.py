"""Модель выигранного аукциона"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, String, Boolean
from sqlalchemy.sql import func
from database.connection import Base, BigIntPK


class WonAuction(Base):
    """Денормализованная запись о продаже на аукционе"""
    __tablename__ = "won_auctions"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), unique=True, nullable=False)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    shop_id = Column(BigInteger, ForeignKey("shops.id"), nullable=False, index=True)
    final_bid = Column(Integer, nullable=False)
    auction_name = Column(String(255), nullable=False)
    auction_slug = Column(String(255), nullable=False)
    auction_image = Column(String(1000), nullable=True)
    won_at = Column(DateTime(timezone=True), nullable=False)
    order_created = Column(Boolean, default=False, nullable=False)
    order_id = Column(BigInteger, ForeignKey("orders.id"), nullable=True)
    inventory_adjusted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
