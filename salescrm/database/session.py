"""
Подключение к БД (асинхронно + синхронно для админки).

Движки создаёт Database; приложение держит один экземпляр в app.state.db,
открывает его в lifespan (init) и закрывает при остановке (dispose).
"""
import logging

from sqlalchemy import create_engine, event, select, func
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from salescrm.core.config import Settings

log = logging.getLogger(__name__)

# Base для моделей
Base = declarative_base()


def _sync_url(database_url: str) -> str:
    """Синхронный URL для админ-панели (SQLAdmin)."""
    if "+asyncpg" in database_url:
        # PostgreSQL: postgresql+asyncpg:// -> postgresql+psycopg2://
        return database_url.replace("+asyncpg", "+psycopg2")
    if "+aiosqlite" in database_url:
        # SQLite: sqlite+aiosqlite:// -> sqlite://
        return database_url.replace("+aiosqlite", "")
    return database_url


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # ON DELETE CASCADE в SQLite работает только с этим PRAGMA
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Движки и фабрика сессий одного приложения."""

    def __init__(self, settings: Settings, *, with_sync_engine: bool = True):
        self.url = settings.database_url
        self.is_sqlite = self.url.startswith("sqlite")

        engine_kwargs = {"echo": settings.debug, "future": True, "pool_pre_ping": True}
        if "+asyncpg" in self.url:
            engine_kwargs["pool_timeout"] = settings.db_pool_timeout
            engine_kwargs["connect_args"] = {"command_timeout": settings.db_command_timeout}
        elif ":memory:" in self.url:
            # одна in-memory БД на все сессии (тесты)
            engine_kwargs["poolclass"] = StaticPool
            engine_kwargs["connect_args"] = {"check_same_thread": False}
        self.engine = create_async_engine(self.url, **engine_kwargs)

        self.sync_engine = None
        if with_sync_engine:
            self.sync_engine = create_engine(_sync_url(self.url), echo=False, pool_pre_ping=True)

        if self.is_sqlite:
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
            if self.sync_engine is not None:
                event.listen(self.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    async def init(self, *, seed: bool = False) -> None:
        """Создать таблицы (и демо-данные при пустой БД)."""
        # модели должны быть зарегистрированы в Base.metadata до create_all
        from salescrm.database import models

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        log.info("[DB] Tables checked/created (%s)", self.engine.url.get_backend_name())

        from salescrm.database.crud import ensure_default_services
        async with self.session_factory() as session:
            await ensure_default_services(session)

        if seed:
            from salescrm.seed import seed_demo_clients
            async with self.session_factory() as session:
                count = (await session.execute(select(func.count(models.Client.id)))).scalar_one()
                if count == 0:
                    created = await seed_demo_clients(session)
                    log.info("[DB] Seeded %s demo clients", created)

    async def drop_all(self) -> None:
        """Удалить все таблицы (тесты / dev)."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
        if self.sync_engine is not None:
            self.sync_engine.dispose()
        log.info("[DB] Connection pools closed")
