"""
Конфигурация приложения - загрузка переменных окружения
"""
import logging
import os
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

log = logging.getLogger(__name__)


def normalize_database_url(raw: str) -> str:
    """postgres:// и postgresql:// -> postgresql+asyncpg:// (SQLAlchemy async)."""
    if raw.startswith("postgres://"):
        return raw.replace("postgres://", "postgresql+asyncpg://", 1)
    if raw.startswith("postgresql://"):
        return raw.replace("postgresql://", "postgresql+asyncpg://", 1)
    return raw


class Settings(BaseSettings):
    """Настройки приложения"""

    # Database (PostgreSQL / SQLite fallback)
    database_url: str = "sqlite+aiosqlite:///./salescrm.db"
    db_command_timeout: float = 30.0  # asyncpg command_timeout, секунды
    db_pool_timeout: float = 30.0

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Хостинги отдают DATABASE_URL в формате postgres://, SQLAlchemy требует драйвер
        self.database_url = normalize_database_url(self.database_url)
        if os.getenv("DATABASE_URL"):
            log.info("[CONFIG] Using DATABASE_URL from environment")

    # Application
    app_name: str = "SalesCRM"
    debug: bool = False  # echo SQL
    seed_demo_data: bool = False  # демо-клиенты при пустой БД

    # Session cookie (админка)
    secret_key: str = "CHANGE_THIS_TO_RANDOM_SECRET_KEY_IN_PRODUCTION"
    admin_panel_username: str = "admin"
    admin_panel_password: str = "admin123"

    # CORS: "http://localhost:5173,https://crm.example.com"
    cors_origins: Optional[str] = None

    # Excel import
    import_max_bytes: int = 5 * 1024 * 1024

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Получить настройки приложения (с кешированием)"""
    return Settings()
