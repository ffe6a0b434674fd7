"""
Модели базы данных (PostgreSQL / SQLite)

Хранение нормализовано: клиент ссылается на users/services по id,
имена подставляются при чтении (см. crud.client_to_dict).
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from salescrm.database.session import Base


def utcnow() -> datetime:
    """Naive UTC (колонки DateTime без timezone)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Ответственный менеджер (создаётся по имени при первом упоминании)."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __str__(self) -> str:
        return self.name


class Service(Base):
    """Услуга (CRM, ERP, ...). Уникальна по имени."""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __str__(self) -> str:
        return self.name


class Client(Base):
    """Клиент / сделка в воронке."""
    __tablename__ = "clients"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_name = Column(Text, nullable=False)
    contact_person = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    stage = Column(String(64), nullable=False, index=True)
    status = Column(String(64), nullable=True)  # допустимые значения зависят от stage (только предупреждение)
    value = Column(Integer, nullable=False, default=0)  # в валюте страны клиента
    priority = Column(String(16), nullable=False)
    country = Column(String(128), nullable=False)
    responsible_person_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    service_id = Column(String(36), ForeignKey("services.id", ondelete="RESTRICT"), nullable=True)
    notes = Column(Text, nullable=True)
    linkedin = Column(Text, nullable=True)
    source = Column(String(64), nullable=True)
    industry = Column(String(255), nullable=True)
    estimated_close_date = Column(DateTime, nullable=True)
    win_probability = Column(Integer, nullable=True)  # 0..100
    last_follow_up = Column(DateTime, nullable=False)
    next_follow_up = Column(DateTime, nullable=False)
    pipeline_start_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    # Relationships (удаление каскадом выполняет БД: ON DELETE CASCADE)
    responsible_person = relationship("User", lazy="joined")
    service = relationship("Service", lazy="joined")
    activities = relationship(
        "Activity",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Activity.created_at.desc()",
    )
    stage_history = relationship(
        "ClientStageHistory",
        back_populates="client",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClientStageHistory.entered_at",
    )

    def __str__(self) -> str:
        return self.company_name


class Activity(Base):
    """Запись журнала действий по клиенту (только добавление/удаление)."""
    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True)
    action = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    client = relationship("Client", back_populates="activities")
    user = relationship("User", lazy="joined")


class ClientStageHistory(Base):
    """
    Интервал пребывания клиента в стадии.
    exited_at IS NULL: текущая (открытая) стадия, не более одной на клиента.
    """
    __tablename__ = "client_stage_history"
    __table_args__ = (
        Index("ix_client_stage_history_client_open", "client_id", "exited_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    client_id = Column(String(36), ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    stage = Column(String(64), nullable=False)
    entered_at = Column(DateTime, nullable=False, default=utcnow)
    exited_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Integer, nullable=True)

    client = relationship("Client", back_populates="stage_history")
