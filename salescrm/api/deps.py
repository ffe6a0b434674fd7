"""
FastAPI зависимости (dependencies)
"""
from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from itsdangerous import BadSignature, URLSafeSerializer
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.api.error_handler import APIError
from salescrm.core.config import Settings

# Bearer необязателен: API открыт, токен нужен только для /api/auth/me
security = HTTPBearer(auto_error=False)

TOKEN_SALT = "salescrm-auth"


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Асинхронная сессия из Database приложения (app.state.db)

    Использование:
        @router.get("/endpoint")
        async def endpoint(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with request.app.state.db.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_app_settings(request: Request) -> Settings:
    """Settings, с которыми создано приложение (create_app)."""
    return request.app.state.settings


def _serializer(settings: Settings) -> URLSafeSerializer:
    return URLSafeSerializer(settings.secret_key, salt=TOKEN_SALT)


def issue_token(username: str, settings: Settings) -> str:
    """Подписанный токен-заглушка (без срока действия и проверки пароля)."""
    return _serializer(settings).dumps({"sub": username})


async def get_current_username(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_app_settings),
) -> str:
    """Имя пользователя из Bearer токена; 401 если токена нет или подпись неверна."""
    if credentials is None:
        raise APIError("UNAUTHORIZED", "Not authenticated", status_code=401)
    try:
        payload = _serializer(settings).loads(credentials.credentials)
    except BadSignature:
        raise APIError("UNAUTHORIZED", "Could not validate credentials", status_code=401)
    return payload["sub"]
