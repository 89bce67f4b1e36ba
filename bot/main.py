"""Главный файл процесса движка аукционов"""
import asyncio
import logging
from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from config import settings
from database.connection import async_session_maker, init_models
from bot.handlers import admin
from bot.middlewares.engine import EngineMiddleware
from services.notifications import NotificationDispatcher
from services.scheduler import AuctionScheduler
from services.storage import SqlStorageGateway

# Настройка логирования
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


async def main():
    """Запуск движка"""
    await init_models()

    bot = None
    if settings.BOT_TOKEN:
        bot = Bot(
            token=settings.BOT_TOKEN,
            default=DefaultBotProperties(parse_mode=ParseMode.HTML)
        )
    else:
        logger.warning("BOT_TOKEN не задан: уведомления будут только логироваться")

    storage = SqlStorageGateway(async_session_maker)
    dispatcher = NotificationDispatcher(storage, bot)
    scheduler = AuctionScheduler(storage, dispatcher)

    scheduler.start()
    try:
        if bot is None:
            # Без бота нет polling: работают только периодические задачи
            await asyncio.Event().wait()
            return

        dp = Dispatcher()
        dp.message.middleware(EngineMiddleware(storage, scheduler))
        dp.include_router(admin.router)

        logger.info("Бот запущен")
        await dp.start_polling(bot)
    finally:
        await scheduler.stop()
        if bot is not None:
            await bot.session.close()


if __name__ == "__main__":
    asyncio.run(main())
