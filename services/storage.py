"""
Шлюз хранилища для движка закрытия аукционов

Движок работает с хранилищем только через StorageGateway. Каждый метод
SqlStorageGateway открывает собственную сессию, поэтому шлюз можно
безопасно использовать из параллельных задач.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Tuple

from sqlalchemy import select, update, case
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from database.models.address import Address
from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from database.models.order import Order
from database.models.outbound_message import OutboundMessage, MessageStatus
from database.models.product import Product, ProductStatus
from database.models.shop import Shop
from database.models.user import User
from database.models.won_auction import WonAuction
from exceptions import AuctionNotFoundError, WinnerConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuctionRef:
    """Ссылка на аукцион, найденный сканером"""
    id: int
    end_time: datetime


class StorageGateway(Protocol):
    """Операции хранилища, которые нужны движку"""

    async def find_due_auctions(self, now: datetime) -> List[AuctionRef]: ...

    async def claim_auction(self, auction_id: int, now: datetime) -> bool: ...

    async def get_auction(self, auction_id: int) -> Auction: ...

    async def get_bids(self, auction_id: int) -> List[Bid]: ...

    async def record_winner(self, auction_id: int, winner_id: int, final_bid: int) -> None: ...

    async def get_user(self, user_id: int) -> Optional[User]: ...

    async def get_default_address(self, user_id: int) -> Optional[Address]: ...

    async def get_seller_id(self, shop_id: int) -> Optional[int]: ...

    async def create_order(self, order: Order) -> Tuple[Order, bool]: ...

    async def create_won_record(self, record: WonAuction) -> Tuple[WonAuction, bool]: ...

    async def claim_inventory_adjustment(self, auction_id: int) -> bool: ...

    async def decrement_stock(self, product_id: int) -> Optional[int]: ...

    async def mark_settled(self, auction_id: int, now: datetime) -> None: ...

    async def find_unsettled_auctions(self, ended_before: datetime) -> List[AuctionRef]: ...

    async def enqueue_message(self, message: OutboundMessage) -> bool: ...

    async def get_pending_messages(self, limit: int) -> List[OutboundMessage]: ...

    async def mark_message_sent(self, message_id: int, now: datetime) -> None: ...

    async def mark_message_failed(self, message_id: int, error: str, max_attempts: int) -> None: ...


class SqlStorageGateway:
    """Реализация шлюза поверх async SQLAlchemy"""

    def __init__(self, session_maker: async_sessionmaker):
        self._session_maker = session_maker

    # =========================================================================
    # Аукционы
    # =========================================================================

    async def find_due_auctions(self, now: datetime) -> List[AuctionRef]:
        """Активные аукционы, у которых истекло время"""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Auction.id, Auction.end_time)
                .where(
                    Auction.status == AuctionStatus.LIVE.value,
                    Auction.end_time <= now
                )
                .order_by(Auction.end_time.asc())
            )
            return [AuctionRef(id=row.id, end_time=row.end_time) for row in result.all()]

    async def claim_auction(self, auction_id: int, now: datetime) -> bool:
        """
        Атомарно перевести аукцион live -> ended

        Условное обновление по статусу: из нескольких параллельных
        попыток успешной будет ровно одна.
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(Auction)
                .where(
                    Auction.id == auction_id,
                    Auction.status == AuctionStatus.LIVE.value
                )
                .values(status=AuctionStatus.ENDED.value, ended_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def get_auction(self, auction_id: int) -> Auction:
        """Получить аукцион по ID"""
        async with self._session_maker() as session:
            auction = await session.get(Auction, auction_id)
            if not auction:
                raise AuctionNotFoundError(auction_id)
            return auction

    async def get_bids(self, auction_id: int) -> List[Bid]:
        """Ставки аукциона, от старшей к младшей"""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Bid)
                .where(Bid.auction_id == auction_id)
                .order_by(Bid.amount.desc(), Bid.placed_at.asc(), Bid.id.asc())
            )
            return list(result.scalars().all())

    async def record_winner(self, auction_id: int, winner_id: int, final_bid: int) -> None:
        """
        Записать победителя на закрытый аукцион

        Запись возможна только один раз. Повторная запись того же
        победителя допустима (восстановление), другого - ошибка.
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(Auction)
                .where(
                    Auction.id == auction_id,
                    Auction.status == AuctionStatus.ENDED.value,
                    Auction.winner_id.is_(None)
                )
                .values(winner_id=winner_id, final_bid=final_bid, current_bid=final_bid)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 1:
                return

            auction = await session.get(Auction, auction_id)
            if not auction:
                raise AuctionNotFoundError(auction_id)
            if auction.winner_id != winner_id or auction.final_bid != final_bid:
                raise WinnerConflictError(auction_id)

    async def mark_settled(self, auction_id: int, now: datetime) -> None:
        """Отметить, что все побочные эффекты закрытия выполнены"""
        async with self._session_maker() as session:
            await session.execute(
                update(Auction)
                .where(Auction.id == auction_id, Auction.settled_at.is_(None))
                .values(settled_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def find_unsettled_auctions(self, ended_before: datetime) -> List[AuctionRef]:
        """Закрытые, но не доведенные до конца аукционы"""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Auction.id, Auction.end_time)
                .where(
                    Auction.status == AuctionStatus.ENDED.value,
                    Auction.settled_at.is_(None),
                    Auction.ended_at <= ended_before
                )
                .order_by(Auction.ended_at.asc())
            )
            return [AuctionRef(id=row.id, end_time=row.end_time) for row in result.all()]

    # =========================================================================
    # Пользователи и магазины
    # =========================================================================

    async def get_user(self, user_id: int) -> Optional[User]:
        async with self._session_maker() as session:
            return await session.get(User, user_id)

    async def get_default_address(self, user_id: int) -> Optional[Address]:
        """Адрес по умолчанию, если он есть"""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Address)
                .where(Address.user_id == user_id, Address.is_default.is_(True))
                .order_by(Address.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_seller_id(self, shop_id: int) -> Optional[int]:
        """ID владельца магазина"""
        async with self._session_maker() as session:
            result = await session.execute(
                select(Shop.owner_id).where(Shop.id == shop_id)
            )
            return result.scalar_one_or_none()

    # =========================================================================
    # Заказы и записи о выигрыше
    # =========================================================================

    async def create_order(self, order: Order) -> Tuple[Order, bool]:
        """
        Создать заказ для аукциона

        Заказ уникален по auction_id: при повторе возвращается
        существующий заказ и False.
        """
        async with self._session_maker() as session:
            session.add(order)
            try:
                await session.commit()
                return order, True
            except IntegrityError:
                await session.rollback()
                existing = await self._find_one(session, Order, order.auction_id)
                if existing is None:
                    raise
                logger.info(f"Заказ для аукциона {order.auction_id} уже существует: {existing.order_number}")
                return existing, False

    async def create_won_record(self, record: WonAuction) -> Tuple[WonAuction, bool]:
        """Создать запись о выигрыше (одна на аукцион)"""
        async with self._session_maker() as session:
            session.add(record)
            try:
                await session.commit()
                return record, True
            except IntegrityError:
                await session.rollback()
                existing = await self._find_one(session, WonAuction, record.auction_id)
                if existing is None:
                    raise
                return existing, False

    async def claim_inventory_adjustment(self, auction_id: int) -> bool:
        """
        Захватить право списать остаток по выигрышу

        Флаг ставится до списания: остаток не будет уменьшен дважды
        даже при повторной обработке аукциона.
        """
        async with self._session_maker() as session:
            result = await session.execute(
                update(WonAuction)
                .where(
                    WonAuction.auction_id == auction_id,
                    WonAuction.inventory_adjusted.is_(False)
                )
                .values(inventory_adjusted=True)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    @staticmethod
    async def _find_one(session, model, auction_id: int):
        result = await session.execute(
            select(model).where(model.auction_id == auction_id)
        )
        return result.scalar_one_or_none()

    # =========================================================================
    # Склад
    # =========================================================================

    async def decrement_stock(self, product_id: int) -> Optional[int]:
        """
        Уменьшить остаток товара на 1, не ниже нуля

        При остатке 0 статус меняется на out_of_stock. Возвращает новый
        остаток или None, если товара нет.
        """
        async with self._session_maker() as session:
            # В SET используются значения до обновления
            result = await session.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(
                    stock=case((Product.stock > 1, Product.stock - 1), else_=0),
                    status=case(
                        (Product.stock <= 1, ProductStatus.OUT_OF_STOCK.value),
                        else_=Product.status
                    )
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await session.rollback()
                return None

            stock = await session.scalar(
                select(Product.stock).where(Product.id == product_id)
            )
            await session.commit()
            return stock

    # =========================================================================
    # Очередь уведомлений
    # =========================================================================

    async def enqueue_message(self, message: OutboundMessage) -> bool:
        """Поставить уведомление в очередь. False - такое уже есть"""
        async with self._session_maker() as session:
            session.add(message)
            try:
                await session.commit()
                return True
            except IntegrityError:
                await session.rollback()
                return False

    async def get_pending_messages(self, limit: int) -> List[OutboundMessage]:
        async with self._session_maker() as session:
            result = await session.execute(
                select(OutboundMessage)
                .where(OutboundMessage.status == MessageStatus.PENDING.value)
                .order_by(OutboundMessage.id.asc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def mark_message_sent(self, message_id: int, now: datetime) -> None:
        async with self._session_maker() as session:
            await session.execute(
                update(OutboundMessage)
                .where(OutboundMessage.id == message_id)
                .values(
                    status=MessageStatus.SENT.value,
                    sent_at=now,
                    attempts=OutboundMessage.attempts + 1
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def mark_message_failed(self, message_id: int, error: str, max_attempts: int) -> None:
        """Засчитать неудачную попытку; после max_attempts - failed"""
        async with self._session_maker() as session:
            await session.execute(
                update(OutboundMessage)
                .where(OutboundMessage.id == message_id)
                .values(
                    attempts=OutboundMessage.attempts + 1,
                    last_error=error[:1000],
                    status=case(
                        (OutboundMessage.attempts + 1 >= max_attempts, MessageStatus.FAILED.value),
                        else_=MessageStatus.PENDING.value
                    )
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()
