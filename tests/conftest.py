"""
pytest настройки и общие фикстуры
"""
import os
import sys
from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest

# Проектные модули читают настройки при импорте
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BOT_TOKEN", "")

# Корень проекта в пути Python
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.pool import NullPool  # noqa: E402

from database.connection import build_engine, build_session_maker, init_models  # noqa: E402
from services.notifications import NotificationDispatcher  # noqa: E402
from services.storage import SqlStorageGateway  # noqa: E402
from tests.fixtures.marketplace import Marketplace  # noqa: E402


# =============================================================================
# База данных
# =============================================================================


@pytest.fixture
async def engine(tmp_path):
    """
    Отдельная SQLite база в файле на каждый тест

    Файл, а не :memory:, чтобы параллельные сессии работали через
    разные соединения, как в PostgreSQL.
    """
    test_engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'auctions.db'}",
        poolclass=NullPool
    )
    await init_models(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
def storage(session_maker) -> SqlStorageGateway:
    return SqlStorageGateway(session_maker)


@pytest.fixture
def dispatcher(storage) -> NotificationDispatcher:
    """Диспетчер без бота: доставка только логируется"""
    return NotificationDispatcher(storage)


@pytest.fixture
async def market(session_maker) -> AsyncGenerator[Marketplace, None]:
    yield Marketplace(session_maker)


# =============================================================================
# Mock
# =============================================================================


@pytest.fixture
def mock_bot() -> MagicMock:
    """Mock aiogram Bot"""
    bot = MagicMock()
    bot.send_message = AsyncMock()
    return bot


@pytest.fixture
def mock_admin_message() -> MagicMock:
    """Mock сообщения от администратора"""
    message = MagicMock()
    message.from_user = MagicMock()
    message.from_user.id = 1001
    message.answer = AsyncMock()
    return message
