"""
Pydantic схемы справочников: услуги и ответственные
"""
from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from salescrm.schemas.client import CAMEL_CONFIG


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    model_config = {"json_schema_extra": {"examples": [{"name": "Cloud Migration"}]}}

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ServiceResponse(BaseModel):
    id: str
    name: str
    created_at: datetime

    model_config = {**CAMEL_CONFIG, "from_attributes": True}


class UserResponse(BaseModel):
    """Ответственный менеджер"""
    id: str
    name: str
    created_at: datetime

    model_config = {**CAMEL_CONFIG, "from_attributes": True}
