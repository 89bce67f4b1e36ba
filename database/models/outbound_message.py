"""Модель исходящего уведомления"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.sql import func
import enum
from database.connection import Base, BigIntPK


class NotificationKind(str, enum.Enum):
    """Тип уведомления о закрытии аукциона"""
    WINNER = "winner"
    SELLER_SOLD = "seller_sold"
    SELLER_NO_BIDS = "seller_no_bids"
    SELLER_RESERVE_NOT_MET = "seller_reserve_not_met"
    BIDDER_RESERVE_NOT_MET = "bidder_reserve_not_met"


class RecipientRole(str, enum.Enum):
    """Роль получателя"""
    WINNER = "winner"
    SELLER = "seller"
    BIDDER = "bidder"


class MessageStatus(str, enum.Enum):
    """Статус доставки"""
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class OutboundMessage(Base):
    """Очередь уведомлений (outbox)"""
    __tablename__ = "outbound_messages"
    __table_args__ = (
        UniqueConstraint("auction_id", "kind", "recipient_role", name="uq_outbound_auction_kind_role"),
    )
    
    id = Column(BigIntPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    kind = Column(String(50), nullable=False)
    recipient_role = Column(String(50), nullable=False)
    recipient_user_id = Column(BigInteger, ForeignKey("users.id"), nullable=True)
    amount = Column(Integer, nullable=True)
    status = Column(String(50), default=MessageStatus.PENDING.value, nullable=False, index=True)
    attempts = Column(Integer, default=0, nullable=False)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
