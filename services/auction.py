"""Сервис закрытия аукционов"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

from database.models.auction import Auction, AuctionStatus
from database.models.bid import Bid
from database.models.order import Order
from database.models.outbound_message import NotificationKind, RecipientRole
from database.models.won_auction import WonAuction
from exceptions import ClosureIncompleteError
from services import inventory
from services.notifications import NotificationDispatcher
from services.orders import synthesize_order
from services.storage import StorageGateway
from services.winner import NoBids, ReserveNotMet, Winner, resolve

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Won:
    """Аукцион продан"""
    winner_id: int
    final_bid: int
    order_id: int
    order_number: str


ClosureResult = Union[NoBids, ReserveNotMet, Won]


async def close_auction(
    storage: StorageGateway,
    dispatcher: NotificationDispatcher,
    auction_id: int,
    now: datetime = None
) -> Optional[ClosureResult]:
    """
    Закрыть аукцион: захват, определение исхода, заказ, склад, уведомления

    Возвращает None, если аукцион уже закрывает другой процесс.
    Сбой после захвата не откатывает статус ended: выбрасывается
    ClosureIncompleteError, а аукцион остается без settled_at до сверки.
    """
    now = now or datetime.now(timezone.utc)

    if not await storage.claim_auction(auction_id, now):
        logger.debug(f"Аукцион {auction_id} уже закрыт другим процессом, пропускаем")
        return None

    return await settle_auction(storage, dispatcher, auction_id, now)


async def settle_auction(
    storage: StorageGateway,
    dispatcher: NotificationDispatcher,
    auction_id: int,
    now: datetime = None
) -> ClosureResult:
    """
    Довести закрытие захваченного аукциона до конца

    Все шаги идемпотентны по auction_id, поэтому функция годится и
    для первого закрытия, и для повторной сверки.
    """
    now = now or datetime.now(timezone.utc)
    stage = "resolve"

    try:
        auction = await storage.get_auction(auction_id)
        bids = await storage.get_bids(auction_id)
        result = resolve(bids, auction.reserve_price)

        if isinstance(result, Winner):
            winning_bid = result.bid

            stage = "record_winner"
            await storage.record_winner(auction.id, winning_bid.user_id, winning_bid.amount)

            stage = "order"
            order = await _create_order(storage, auction, winning_bid, now)

            stage = "won_record"
            await _create_won_record(storage, auction, winning_bid, order, now)

            if auction.product_id:
                stage = "inventory"
                # Флаг на записи о выигрыше не дает списать остаток дважды
                if await storage.claim_inventory_adjustment(auction.id):
                    await inventory.decrement(storage, auction.product_id)

            result = Won(
                winner_id=winning_bid.user_id,
                final_bid=winning_bid.amount,
                order_id=order.id,
                order_number=order.order_number,
            )

        stage = "notify"
        await _notify(dispatcher, auction, result)

        stage = "settle"
        await storage.mark_settled(auction_id, now)
    except Exception as e:
        raise ClosureIncompleteError(auction_id, stage, e) from e

    _log_result(auction, result)
    return result


async def _create_order(
    storage: StorageGateway,
    auction: Auction,
    winning_bid: Bid,
    now: datetime
) -> Order:
    """Создать заказ победителю (или вернуть уже созданный)"""
    winner = await storage.get_user(winning_bid.user_id)
    if not winner:
        raise ValueError(f"Победитель {winning_bid.user_id} не найден")

    address = await storage.get_default_address(winner.id)
    if not address:
        logger.warning(f"У победителя {winner.id} аукциона {auction.id} нет адреса по умолчанию")

    order, created = await storage.create_order(
        synthesize_order(auction, winning_bid, winner, address, now)
    )
    if created:
        logger.info(f"Создан заказ {order.order_number} для аукциона {auction.id}")
    return order


async def _create_won_record(
    storage: StorageGateway,
    auction: Auction,
    winning_bid: Bid,
    order: Order,
    now: datetime
) -> None:
    await storage.create_won_record(
        WonAuction(
            auction_id=auction.id,
            user_id=winning_bid.user_id,
            shop_id=auction.shop_id,
            final_bid=winning_bid.amount,
            auction_name=auction.name,
            auction_slug=auction.slug,
            auction_image=auction.primary_image,
            won_at=now,
            order_created=True,
            order_id=order.id,
            inventory_adjusted=False,
        )
    )


async def _notify(
    dispatcher: NotificationDispatcher,
    auction: Auction,
    result: ClosureResult
) -> None:
    """Поставить уведомления по исходу закрытия"""
    if isinstance(result, Won):
        await dispatcher.send(
            NotificationKind.WINNER, RecipientRole.WINNER, auction,
            amount=result.final_bid, recipient_user_id=result.winner_id
        )
        await dispatcher.send(
            NotificationKind.SELLER_SOLD, RecipientRole.SELLER, auction,
            amount=result.final_bid
        )
    elif isinstance(result, ReserveNotMet):
        await dispatcher.send(
            NotificationKind.SELLER_RESERVE_NOT_MET, RecipientRole.SELLER, auction,
            amount=result.amount
        )
        await dispatcher.send(
            NotificationKind.BIDDER_RESERVE_NOT_MET, RecipientRole.BIDDER, auction,
            amount=result.amount, recipient_user_id=result.bidder_id
        )
    else:
        await dispatcher.send(
            NotificationKind.SELLER_NO_BIDS, RecipientRole.SELLER, auction,
            amount=auction.starting_bid
        )


def _log_result(auction: Auction, result: ClosureResult) -> None:
    if isinstance(result, Won):
        logger.info(
            f"Аукцион {auction.id} завершен. Победитель: {result.winner_id}, "
            f"ставка: {result.final_bid}, заказ: {result.order_number}"
        )
    elif isinstance(result, ReserveNotMet):
        logger.info(
            f"Аукцион {auction.id} завершен без продажи: ставка {result.amount} "
            f"ниже резерва {auction.reserve_price}"
        )
    else:
        logger.info(f"Аукцион {auction.id} завершен без ставок")


def describe_closure(auction: Auction) -> str:
    """
    Состояние закрытия по полям аукциона

    Статус только live/ended: продажа определяется по winner_id и
    final_bid, незавершенное закрытие - по отсутствию settled_at.
    """
    if auction.status == AuctionStatus.LIVE.value:
        return "идет"
    if auction.settled_at is None:
        return "закрыт не полностью"
    if auction.winner_id is not None and auction.final_bid is not None:
        return "продан"
    return "завершен без продажи"
