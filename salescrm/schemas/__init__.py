"""
Pydantic схемы для валидации данных
"""
from salescrm.schemas.auth import Token, CurrentUser
from salescrm.schemas.client import (
    ClientCreate,
    ClientResponse,
    ActivityCreate,
    ActivityResponse,
    StageHistoryResponse,
)
from salescrm.schemas.service import ServiceCreate, ServiceResponse, UserResponse

__all__ = [
    "Token",
    "CurrentUser",
    "ClientCreate",
    "ClientResponse",
    "ActivityCreate",
    "ActivityResponse",
    "StageHistoryResponse",
    "ServiceCreate",
    "ServiceResponse",
    "UserResponse",
]
