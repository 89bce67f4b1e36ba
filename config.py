"""Конфигурация приложения"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Настройки приложения"""

    # Telegram Bot (доставка уведомлений). Пустой токен - только логирование
    BOT_TOKEN: str = ""

    # Database
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""
    # Полный URL имеет приоритет над DB_* (например, sqlite+aiosqlite для тестов)
    DATABASE_URL: Optional[str] = None

    # Admin
    ADMIN_USER_IDS: str = ""

    # Закрытие аукционов
    AUCTION_SCAN_INTERVAL_SECONDS: int = 60
    AUCTION_CLOSE_TIMEOUT_SECONDS: float = 30.0
    AUCTION_CLOSE_CONCURRENCY: int = 10

    # Заказы
    ORDER_TAX_RATE: float = 0.18
    CURRENCY_SYMBOL: str = "₹"

    # Сверка незавершенных закрытий
    RECONCILE_INTERVAL_SECONDS: int = 900
    # Аукционы моложе этого порога могут еще закрываться другим процессом
    RECONCILE_GRACE_SECONDS: int = 300

    # Очередь уведомлений
    NOTIFICATION_BATCH_SIZE: int = 50
    NOTIFICATION_MAX_ATTEMPTS: int = 5
    NOTIFICATION_INTERVAL_SECONDS: int = 30

    APP_BASE_URL: str = "https://justforview.in"
    LOG_LEVEL: str = "INFO"

    @property
    def admin_ids_list(self) -> List[int]:
        """Список ID администраторов"""
        if not self.ADMIN_USER_IDS:
            return []
        return [int(uid.strip()) for uid in self.ADMIN_USER_IDS.split(",") if uid.strip()]

    @property
    def database_url(self) -> str:
        """URL подключения к базе данных"""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
