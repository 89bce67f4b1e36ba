"""Подключение к базе данных"""
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base
from config import settings


def build_engine(url: str = None, **kwargs) -> AsyncEngine:
    """Создать асинхронный движок"""
    return create_async_engine(
        url or settings.database_url,
        echo=False,
        future=True,
        **kwargs
    )


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker:
    """Создать фабрику сессий для движка"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


# Создаем движок для асинхронной работы
engine = build_engine()

# Создаем фабрику сессий
async_session_maker = build_session_maker(engine)

# Базовый класс для моделей
Base = declarative_base()

# SQLite автоинкрементирует только INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


async def init_models(target: AsyncEngine = None) -> None:
    """Создать таблицы для всех моделей"""
    # Импорт регистрирует модели в Base.metadata
    import database.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
