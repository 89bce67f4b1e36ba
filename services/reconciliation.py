"""
Сверка незавершенных закрытий аукционов

Аукцион со статусом ended без settled_at - закрытие прервалось после
захвата (сбой записи, таймаут, падение процесса). Сверка повторяет
шаги закрытия: все они идемпотентны по auction_id.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List

from config import settings
from exceptions import ClosureIncompleteError
from services.auction import settle_auction
from services.notifications import NotificationDispatcher
from services.storage import AuctionRef, StorageGateway

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Итог прохода сверки"""
    found: int = 0
    repaired: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


async def find_incomplete_closures(
    storage: StorageGateway,
    now: datetime = None,
    grace_seconds: int = None
) -> List[AuctionRef]:
    """
    Закрытые аукционы без settled_at

    Аукционы, закрытые позже now - grace_seconds, не учитываются:
    их закрытие может еще выполняться.
    """
    now = now or datetime.now(timezone.utc)
    if grace_seconds is None:
        grace_seconds = settings.RECONCILE_GRACE_SECONDS
    return await storage.find_unsettled_auctions(now - timedelta(seconds=grace_seconds))


async def reconcile(
    storage: StorageGateway,
    dispatcher: NotificationDispatcher,
    now: datetime = None,
    grace_seconds: int = None
) -> ReconcileReport:
    """Найти и довести до конца незавершенные закрытия"""
    now = now or datetime.now(timezone.utc)
    report = ReconcileReport()

    incomplete = await find_incomplete_closures(storage, now, grace_seconds)
    report.found = len(incomplete)

    for ref in incomplete:
        logger.warning(f"Аукцион {ref.id} закрыт не полностью, повторяем шаги закрытия")
        try:
            await settle_auction(storage, dispatcher, ref.id, now)
            report.repaired.append(ref.id)
        except ClosureIncompleteError as e:
            report.failed.append(ref.id)
            logger.error(f"Сверка: {e.message}", exc_info=e.cause)

    if report.found:
        logger.info(
            f"Сверка завершена: найдено {report.found}, исправлено {len(report.repaired)}, "
            f"ошибок {len(report.failed)}"
        )
    return report
