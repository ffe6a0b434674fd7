"""
Главный файл приложения FastAPI (SalesCRM backend)
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.sessions import SessionMiddleware

from salescrm import __version__
from salescrm.admin import setup_admin
from salescrm.api.endpoints import (
    analytics, auth, client_import, clients, reference, reports, services,
)
from salescrm.api.error_handler import register_exception_handlers
from salescrm.core.config import Settings, get_settings
from salescrm.database.session import Database

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _parse_cors_origins(raw: Optional[str]) -> list[str]:
    """CORS_ORIGINS: split by comma, trim spaces, ignore empty."""
    if raw is None:
        return []
    return [o.strip() for o in raw.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения"""
    settings: Settings = app.state.settings
    db: Database = app.state.db
    log.info("[*] Starting %s %s", settings.app_name, __version__)
    await db.init(seed=settings.seed_demo_data)
    yield
    await db.dispose()
    log.info("[*] Shutdown complete")


class _RequestIDMiddleware(BaseHTTPMiddleware):
    """Generate and attach request_id to all requests."""
    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    *,
    enable_admin: bool = True,
) -> FastAPI:
    """
    Собрать приложение. Database создаётся здесь (не при импорте модуля)
    и живёт в app.state.db; тесты передают свою (in-memory SQLite).
    """
    settings = settings or get_settings()
    database = database or Database(settings, with_sync_engine=enable_admin)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description="Sales pipeline CRM: clients, stage history, timeline, Excel import/export.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = database

    origins = _parse_cors_origins(settings.cors_origins) or DEFAULT_CORS_ORIGINS
    log.info("[CORS] Allowed origins: %s", origins)
    app.add_middleware(SessionMiddleware, secret_key=settings.secret_key)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(_RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
    # export/template до /clients/{client_id}
    app.include_router(client_import.router, prefix="/api", tags=["Import / Export"])
    app.include_router(clients.router, prefix="/api", tags=["Clients"])
    app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
    app.include_router(reports.router, prefix="/api/reports", tags=["Reports"])
    app.include_router(services.router, prefix="/api", tags=["Services"])
    app.include_router(reference.router, prefix="/api/reference", tags=["Reference"])

    @app.get("/api/health")
    async def api_health():
        """Health check (без auth)"""
        return {"ok": True, "status": "healthy", "version": __version__}

    if enable_admin and database.sync_engine is not None:
        setup_admin(app, database.sync_engine, settings)

    return app


if __name__ == "__main__":
    import uvicorn

    # uvicorn main:create_app --factory
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
