"""Планировщик задач для закрытия аукционов"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, List, Optional

from config import settings
from exceptions import ClosureIncompleteError, ScanError
from services.auction import ClosureResult, Won, close_auction
from services.notifications import NotificationDispatcher
from services.reconciliation import reconcile
from services.storage import AuctionRef, StorageGateway
from services.winner import ReserveNotMet

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Счетчики одного прохода закрытия"""
    scanned: int = 0
    won: int = 0
    no_bids: int = 0
    reserve_not_met: int = 0
    skipped: int = 0  # Захвачены другим процессом
    errors: int = 0
    timeouts: int = 0
    scan_failed: bool = False
    incomplete: List[int] = field(default_factory=list)
    # Таймаут мог сработать до захвата: закрытие этих аукционов не подтверждено
    timed_out: List[int] = field(default_factory=list)
    latencies: Dict[int, float] = field(default_factory=dict)

    @property
    def closed(self) -> int:
        return self.won + self.no_bids + self.reserve_not_met

    def record(self, result: Optional[ClosureResult]) -> None:
        if result is None:
            self.skipped += 1
        elif isinstance(result, Won):
            self.won += 1
        elif isinstance(result, ReserveNotMet):
            self.reserve_not_met += 1
        else:
            self.no_bids += 1

    def summary(self) -> str:
        max_latency = max(self.latencies.values(), default=0.0)
        return (
            f"найдено {self.scanned}, продано {self.won}, без ставок {self.no_bids}, "
            f"резерв не достигнут {self.reserve_not_met}, пропущено {self.skipped}, "
            f"ошибок {self.errors}, таймаутов {self.timeouts}, "
            f"макс. время {max_latency:.3f}с"
        )


async def find_due_auctions(storage: StorageGateway, now: datetime) -> List[AuctionRef]:
    """Найти активные аукционы, у которых истекло время"""
    try:
        return await storage.find_due_auctions(now)
    except Exception as e:
        raise ScanError(e) from e


async def check_and_finish_auctions(
    storage: StorageGateway,
    dispatcher: NotificationDispatcher,
    now: datetime = None,
    timeout: float = None,
    concurrency: int = None
) -> CycleReport:
    """
    Проверить и завершить истекшие аукционы

    Аукционы закрываются параллельно и независимо: сбой или таймаут
    одного не влияет на остальные. Повтор внутри прохода не делается,
    незавершенные закрытия подхватывает сверка.
    """
    now = now or datetime.now(timezone.utc)
    timeout = timeout or settings.AUCTION_CLOSE_TIMEOUT_SECONDS
    semaphore = asyncio.Semaphore(concurrency or settings.AUCTION_CLOSE_CONCURRENCY)
    report = CycleReport()

    try:
        due_auctions = await find_due_auctions(storage, now)
    except ScanError as e:
        logger.error(f"{e.message}. Повтор на следующем запуске")
        report.scan_failed = True
        return report

    report.scanned = len(due_auctions)
    if not due_auctions:
        logger.debug("Нет аукционов для закрытия")
        return report

    async def close_one(ref: AuctionRef) -> None:
        async with semaphore:
            started = time.monotonic()
            try:
                result = await asyncio.wait_for(
                    close_auction(storage, dispatcher, ref.id, now),
                    timeout=timeout
                )
                report.record(result)
            except asyncio.TimeoutError:
                report.timeouts += 1
                report.timed_out.append(ref.id)
                logger.error(f"Закрытие аукциона {ref.id} прервано по таймауту {timeout}с")
            except ClosureIncompleteError as e:
                report.errors += 1
                report.incomplete.append(ref.id)
                logger.error(e.message, exc_info=e.cause)
            except Exception as e:
                # Сбой до захвата: аукцион остался live, его найдет следующий запуск
                report.errors += 1
                logger.error(f"Ошибка при завершении аукциона {ref.id}: {e!r}", exc_info=True)
            finally:
                report.latencies[ref.id] = time.monotonic() - started

    await asyncio.gather(*(close_one(ref) for ref in due_auctions))

    logger.info(f"Проход закрытия аукционов: {report.summary()}")
    if report.incomplete:
        logger.warning(f"Аукционы с незавершенным закрытием: {sorted(report.incomplete)}")
    if report.timed_out:
        logger.warning(f"Аукционы с таймаутом закрытия: {sorted(report.timed_out)}")
    return report


class AuctionScheduler:
    """
    Периодические задачи движка: закрытие, сверка, доставка уведомлений

    Владеет своими задачами: процесс-хозяин создает планировщик,
    вызывает start() при запуске и stop() при остановке.
    """

    def __init__(
        self,
        storage: StorageGateway,
        dispatcher: NotificationDispatcher,
        close_interval: float = None,
        reconcile_interval: float = None,
        delivery_interval: float = None
    ):
        self._storage = storage
        self._dispatcher = dispatcher
        self._intervals = {
            "closing": close_interval or settings.AUCTION_SCAN_INTERVAL_SECONDS,
            "reconcile": reconcile_interval or settings.RECONCILE_INTERVAL_SECONDS,
            "delivery": delivery_interval or settings.NOTIFICATION_INTERVAL_SECONDS,
        }
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def run_once(self) -> CycleReport:
        """Один проход закрытия (ручной запуск)"""
        return await check_and_finish_auctions(self._storage, self._dispatcher)

    async def reconcile_once(self):
        return await reconcile(self._storage, self._dispatcher)

    def start(self) -> None:
        """Запустить планировщик"""
        if self._tasks:
            logger.warning("Планировщик аукционов уже запущен")
            return

        jobs = {
            "closing": self.run_once,
            "reconcile": self.reconcile_once,
            "delivery": self._dispatcher.deliver_pending,
        }
        for name, job in jobs.items():
            self._tasks.append(
                asyncio.create_task(self._loop(name, job, self._intervals[name]), name=f"auctions-{name}")
            )
        logger.info("Планировщик аукционов запущен")

    async def stop(self) -> None:
        """Остановить планировщик и дождаться задач"""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            logger.info("Планировщик аукционов остановлен")

    @staticmethod
    async def _loop(name: str, job: Callable[[], Awaitable], interval: float) -> None:
        """Основной цикл задачи"""
        while True:
            try:
                await job()
            except Exception as e:
                logger.error(f"Ошибка в планировщике ({name}): {e!r}", exc_info=True)

            await asyncio.sleep(interval)
