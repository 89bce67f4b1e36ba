"""Модель товара"""
from sqlalchemy import Column, BigInteger, String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum
from database.connection import Base, BigIntPK


class ProductStatus(str, enum.Enum):
    """Статус товара"""
    DRAFT = "draft"
    PUBLISHED = "published"
    OUT_OF_STOCK = "out_of_stock"
    DISCONTINUED = "discontinued"
    SOLD = "sold"


class Product(Base):
    """Модель товара"""
    __tablename__ = "products"
    
    id = Column(BigIntPK, primary_key=True, index=True)
    shop_id = Column(BigInteger, ForeignKey("shops.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    status = Column(String(50), default=ProductStatus.PUBLISHED.value, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    
    # Связи
    shop = relationship("Shop", backref="products")
