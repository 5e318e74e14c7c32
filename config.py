"""Конфигурация приложения"""
from decimal import Decimal
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Настройки приложения"""

    # Telegram Bot
    BOT_TOKEN: str = ""

    # Database
    # Полный URL имеет приоритет над отдельными DB_* параметрами
    DATABASE_URL: str = ""
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = ""
    DB_PASSWORD: str = ""
    DB_NAME: str = ""

    # Admin
    # Telegram ID, которые получают роль admin при запуске
    ADMIN_USER_IDS: str = ""
    ROLE_CACHE_SECONDS: float = 60.0

    # Auction Settings
    # Окно анти-снайпинга: ставка в последние N минут продлевает аукцион до now + N
    ANTI_SNIPING_WINDOW_MINUTES: float = 5.0
    SWEEP_INTERVAL_SECONDS: int = 60
    # Товар без аукциона старше этого срока считается незавершенной публикацией
    INCOMPLETE_LISTING_GRACE_MINUTES: int = 30
    RECENTLY_ENDED_HOURS: float = 3.0
    MODERATION_REMINDER_HOURS: float = 2.0
    MAX_PRICE: Decimal = Decimal("1000000000000")
    CURRENCY: str = "сум"

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


settings = Settings()
