"""
Pydantic схемы для авторизации (заглушка)
"""
from pydantic import BaseModel


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str


class CurrentUser(BaseModel):
    username: str
