"""
Pydantic схемы для Client (сделка в воронке)

Одна схема ClientCreate проверяет и ручное создание/редактирование, и каждую
строку импорта из Excel. JSON API использует camelCase (companyName, ...),
snake_case тоже принимается.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from salescrm.services.reference_data import Stage, Status, Priority, Source
from salescrm.utils.normalizers import normalize_responsible_person, normalize_service, to_naive_utc

# clients.value: INTEGER (int4 в PostgreSQL)
MAX_DEAL_VALUE = 2**31 - 1

CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class ClientCreate(BaseModel):
    """Тело POST /api/clients и PUT /api/clients/{id}"""
    company_name: str = Field(..., min_length=1, description="Company name")
    contact_person: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = Field(..., min_length=1)
    stage: Stage
    status: Optional[Status] = None
    value: int = Field(..., ge=0, le=MAX_DEAL_VALUE, description="Deal value in the local currency of the country")
    priority: Priority
    country: str = Field(..., min_length=1)
    responsible_person: str = Field(default="", description="Free-text name; created on first use")
    service: str = Field(default="", description="Free-text service name; created on first use")
    notes: Optional[str] = None
    linkedin: Optional[str] = None
    source: Optional[Source] = None
    industry: Optional[str] = None
    estimated_close_date: Optional[datetime] = None
    win_probability: Optional[int] = Field(default=None, ge=0, le=100)
    last_follow_up: datetime
    next_follow_up: datetime
    pipeline_start_date: Optional[datetime] = None

    model_config = {
        **CAMEL_CONFIG,
        "use_enum_values": True,
        "json_schema_extra": {
            "examples": [
                {
                    "companyName": "Acme Corporation",
                    "contactPerson": "John Smith",
                    "email": "john@acme.com",
                    "phone": "+1 234-567-8900",
                    "stage": "Qualified",
                    "status": "Under Evaluation",
                    "value": 250000,
                    "priority": "High",
                    "country": "United States",
                    "responsiblePerson": "Sarah Johnson",
                    "service": "CRM",
                    "lastFollowUp": "2025-11-15T00:00:00",
                    "nextFollowUp": "2025-11-22T00:00:00",
                }
            ]
        },
    }

    @field_validator("company_name", "contact_person", "phone", "country", mode="before")
    @classmethod
    def strip_required(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("status", "source", mode="before")
    @classmethod
    def empty_to_none(cls, v):
        """"" из формы = не задано."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("estimated_close_date", "last_follow_up", "next_follow_up", "pipeline_start_date")
    @classmethod
    def naive_utc(cls, v):
        """"2025-11-15T10:00:00+05:00" -> 2025-11-15 05:00 (как в импорте)."""
        return to_naive_utc(v)

    @field_validator("responsible_person", mode="before")
    @classmethod
    def default_responsible_person(cls, v):
        return normalize_responsible_person(v)

    @field_validator("service", mode="before")
    @classmethod
    def default_service(cls, v):
        return normalize_service(v)


class ActivityCreate(BaseModel):
    """POST /api/clients/{id}/activities"""
    action: str = Field(..., min_length=1, description="What happened")
    user: str = Field(..., min_length=1, description="Who did it (created on first use)")

    model_config = {
        "json_schema_extra": {"examples": [{"action": "Follow-up call completed", "user": "Sarah"}]}
    }


class ActivityResponse(BaseModel):
    id: str
    action: str
    user: str
    date: datetime

    model_config = CAMEL_CONFIG


class ClientResponse(BaseModel):
    """Денормализованный клиент: имена вместо id + журнал действий."""
    id: str
    company_name: str
    contact_person: str
    email: str
    phone: str
    stage: str
    status: Optional[str] = None
    value: int
    priority: str
    country: str
    currency: Optional[str] = None
    currency_symbol: Optional[str] = None
    responsible_person: str
    service: str
    notes: str = ""
    linkedin: str = ""
    source: Optional[str] = None
    industry: Optional[str] = None
    estimated_close_date: Optional[datetime] = None
    win_probability: Optional[int] = None
    last_follow_up: datetime
    next_follow_up: datetime
    pipeline_start_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    activity_history: List[ActivityResponse] = []

    model_config = CAMEL_CONFIG


class StageHistoryResponse(BaseModel):
    id: str
    client_id: str
    stage: str
    entered_at: datetime
    exited_at: Optional[datetime] = None
    duration_seconds: Optional[int] = None

    model_config = {**CAMEL_CONFIG, "from_attributes": True}
