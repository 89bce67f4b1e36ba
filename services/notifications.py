"""
Уведомления о закрытии аукционов

Уведомления не отправляются напрямую из закрытия аукциона: они
ставятся в очередь outbound_messages, а отдельный цикл доставки
отправляет их через Telegram-бота. Ошибки постановки и доставки
только логируются и на результат закрытия не влияют.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from aiogram import Bot

from config import settings
from database.models.auction import Auction
from database.models.outbound_message import (
    MessageStatus,
    NotificationKind,
    OutboundMessage,
    RecipientRole,
)
from services.storage import StorageGateway

logger = logging.getLogger(__name__)


TEMPLATES = {
    NotificationKind.WINNER: (
        "🎉 Поздравляем! Вы выиграли аукцион!\n\n"
        "📦 Лот: <b>{name}</b>\n"
        "💰 Финальная цена: <b>{amount}</b>\n\n"
        "Заказ создан и ожидает оплаты. Проверьте адрес доставки: {url}"
    ),
    NotificationKind.SELLER_SOLD: (
        "✅ Ваш аукцион завершен!\n\n"
        "📦 Лот: <b>{name}</b>\n"
        "💰 Финальная цена: <b>{amount}</b>\n\n"
        "Заказ покупателя создан: {url}"
    ),
    NotificationKind.SELLER_NO_BIDS: (
        "⌛ Аукцион <b>{name}</b> завершен без ставок.\n\n"
        "Можно выставить лот повторно с меньшей начальной ценой "
        "или продать его как обычный товар: {url}"
    ),
    NotificationKind.SELLER_RESERVE_NOT_MET: (
        "⚠️ Аукцион <b>{name}</b> завершен, но резервная цена не достигнута.\n\n"
        "💰 Максимальная ставка: <b>{amount}</b>\n"
        "Продажа не состоялась: {url}"
    ),
    NotificationKind.BIDDER_RESERVE_NOT_MET: (
        "Аукцион <b>{name}</b> завершен.\n\n"
        "Ваша ставка <b>{amount}</b> была максимальной, но не достигла "
        "резервной цены продавца, поэтому продажа не состоялась: {url}"
    ),
}


def format_amount(amount: Optional[int]) -> str:
    """Сумма для сообщения"""
    if amount is None:
        return "-"
    return f"{settings.CURRENCY_SYMBOL}{amount:,}"


def render_message(kind: str, auction: Auction, amount: Optional[int]) -> str:
    """Текст уведомления"""
    template = TEMPLATES[NotificationKind(kind)]
    return template.format(
        name=auction.name,
        amount=format_amount(amount),
        url=f"{settings.APP_BASE_URL}/auctions/{auction.slug}",
    )


@dataclass
class DeliveryReport:
    """Итог одного прохода доставки"""
    sent: int = 0
    failed: int = 0


class NotificationDispatcher:
    """Очередь уведомлений и ее доставка"""

    def __init__(self, storage: StorageGateway, bot: Optional[Bot] = None):
        self._storage = storage
        self._bot = bot

    async def send(
        self,
        kind: NotificationKind,
        recipient_role: RecipientRole,
        auction: Auction,
        amount: Optional[int] = None,
        recipient_user_id: Optional[int] = None
    ) -> bool:
        """
        Поставить уведомление в очередь

        Для продавца получатель определяется по магазину аукциона.
        Повторная постановка того же уведомления игнорируется.
        """
        try:
            if recipient_user_id is None and recipient_role == RecipientRole.SELLER:
                recipient_user_id = await self._storage.get_seller_id(auction.shop_id)

            created = await self._storage.enqueue_message(
                OutboundMessage(
                    auction_id=auction.id,
                    kind=kind.value,
                    recipient_role=recipient_role.value,
                    recipient_user_id=recipient_user_id,
                    amount=amount,
                    status=MessageStatus.PENDING.value,
                    attempts=0,
                )
            )
            if not created:
                logger.debug(f"Уведомление {kind.value} для аукциона {auction.id} уже в очереди")
            return created
        except Exception as e:
            logger.error(f"Ошибка постановки уведомления {kind.value} для аукциона {auction.id}: {e!r}")
            return False

    async def deliver_pending(self, now: datetime = None) -> DeliveryReport:
        """
        Отправить накопившиеся уведомления

        Каждое сообщение обрабатывается независимо: ошибка отправки или
        записи статуса одного сообщения не прерывает остальные.
        """
        report = DeliveryReport()
        messages = await self._storage.get_pending_messages(settings.NOTIFICATION_BATCH_SIZE)

        for message in messages:
            try:
                await self._deliver(message)
            except Exception as e:
                report.failed += 1
                logger.warning(f"Не удалось доставить уведомление {message.id} ({message.kind}): {e!r}")
                await self._record_failure(message, e)
                continue

            report.sent += 1
            try:
                await self._storage.mark_message_sent(message.id, now or datetime.now(timezone.utc))
            except Exception as e:
                # Сообщение уже ушло: статус остается pending, возможна повторная отправка
                logger.error(f"Уведомление {message.id} отправлено, но статус не сохранен: {e!r}")

        if messages:
            logger.info(f"Доставка уведомлений: отправлено {report.sent}, ошибок {report.failed}")
        return report

    async def _record_failure(self, message: OutboundMessage, error: Exception) -> None:
        try:
            await self._storage.mark_message_failed(
                message.id, repr(error), settings.NOTIFICATION_MAX_ATTEMPTS
            )
        except Exception as e:
            logger.error(f"Не удалось сохранить ошибку доставки уведомления {message.id}: {e!r}")

    async def _deliver(self, message: OutboundMessage) -> None:
        auction = await self._storage.get_auction(message.auction_id)
        text = render_message(message.kind, auction, message.amount)

        if self._bot is None:
            logger.info(f"[DEV] Уведомление {message.kind} для пользователя {message.recipient_user_id}:\n{text}")
            return

        if message.recipient_user_id is None:
            raise ValueError("Получатель не определен")

        recipient = await self._storage.get_user(message.recipient_user_id)
        if not recipient or not recipient.telegram_id:
            raise ValueError(f"У пользователя {message.recipient_user_id} нет Telegram ID")

        await self._bot.send_message(
            chat_id=recipient.telegram_id,
            text=text,
            parse_mode="HTML"
        )
        logger.info(f"Уведомление {message.kind} по аукциону {auction.id} отправлено {recipient.telegram_id}")
