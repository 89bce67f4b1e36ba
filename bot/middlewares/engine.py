"""Middleware для передачи зависимостей движка в обработчики"""
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from services.scheduler import AuctionScheduler
from services.storage import StorageGateway


class EngineMiddleware(BaseMiddleware):
    """Добавляет storage и scheduler в данные обработчика"""

    def __init__(self, storage: StorageGateway, scheduler: AuctionScheduler):
        self.storage = storage
        self.scheduler = scheduler

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        data["storage"] = self.storage
        data["scheduler"] = self.scheduler
        return await handler(event, data)
