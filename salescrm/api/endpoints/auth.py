"""
API эндпоинты для авторизации (заглушка: любой логин принимается)
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm

from salescrm.api.deps import get_app_settings, get_current_username, issue_token
from salescrm.core.config import Settings
from salescrm.schemas import Token, CurrentUser

log = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    settings: Settings = Depends(get_app_settings),
):
    """
    Вход (form-urlencoded username, password) -> { access_token, token_type }

    Пароль не проверяется: настоящая аутентификация вне рамок этого сервиса.
    """
    log.info("[AUTH] Login as %s", form_data.username)
    return Token(access_token=issue_token(form_data.username, settings), username=form_data.username)


@router.get("/me", response_model=CurrentUser)
async def me(username: str = Depends(get_current_username)):
    return CurrentUser(username=username)
