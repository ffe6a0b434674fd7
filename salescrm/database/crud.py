"""
CRUD операции для работы с базой данных (Async)

Клиенты хранят ссылки на users/services; наружу отдаются денормализованные
словари (client_to_dict) с именами, журналом действий и валютой страны.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from salescrm.database import crud_stages
from salescrm.database.models import Client, Activity, User, Service, utcnow
from salescrm.schemas.client import ClientCreate
from salescrm.services.countries import get_currency_by_country
from salescrm.services.reference_data import DEFAULT_SERVICES

log = logging.getLogger(__name__)

# Поля ClientCreate, которые не являются колонками clients (ссылки по имени)
_NAME_REFERENCE_FIELDS = {"responsible_person", "service"}


def _insert_for(db: AsyncSession, model):
    """INSERT с поддержкой ON CONFLICT для текущего диалекта."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model)
    if dialect == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported for dialect {dialect!r}")


async def _get_or_create_by_name(db: AsyncSession, model, name: str):
    """Атомарный get-or-create по уникальному name (без commit)."""
    stmt = _insert_for(db, model).values(name=name).on_conflict_do_nothing(index_elements=["name"])
    await db.execute(stmt)
    result = await db.execute(select(model).where(model.name == name))
    return result.scalar_one()


# ========== USERS (ответственные) ==========

async def get_or_create_user(db: AsyncSession, name: str) -> User:
    return await _get_or_create_by_name(db, User, name)


async def get_all_users(db: AsyncSession) -> List[User]:
    result = await db.execute(select(User).order_by(User.name.asc()))
    return list(result.scalars().all())


# ========== SERVICES ==========

async def get_or_create_service(db: AsyncSession, name: str) -> Service:
    return await _get_or_create_by_name(db, Service, name)


async def get_all_services(db: AsyncSession) -> List[Service]:
    result = await db.execute(select(Service).order_by(Service.name.asc()))
    return list(result.scalars().all())


async def get_service_by_name(db: AsyncSession, name: str) -> Optional[Service]:
    result = await db.execute(select(Service).where(Service.name == name))
    return result.scalar_one_or_none()


async def create_service(db: AsyncSession, name: str) -> Optional[Service]:
    """Создать услугу. None, если имя уже занято."""
    if await get_service_by_name(db, name):
        return None
    service = Service(name=name)
    db.add(service)
    try:
        await db.commit()
    except IntegrityError:
        # параллельный запрос успел создать такую же
        await db.rollback()
        return None
    await db.refresh(service)
    log.info("[CLIENTS] Service created: %s", name)
    return service


async def ensure_default_services(db: AsyncSession) -> None:
    """Справочник услуг по умолчанию (идемпотентно)."""
    for name in DEFAULT_SERVICES:
        await get_or_create_service(db, name)
    await db.commit()


# ========== CLIENTS ==========

def _client_query():
    return select(Client).options(selectinload(Client.activities))


async def get_all_clients(db: AsyncSession) -> List[Client]:
    result = await db.execute(_client_query().order_by(Client.created_at.desc()))
    return list(result.scalars().unique().all())


async def get_client(db: AsyncSession, client_id: str) -> Optional[Client]:
    """Клиент со связями; populate_existing обновляет объект после изменений в этой сессии."""
    result = await db.execute(
        _client_query()
        .where(Client.id == client_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().unique().one_or_none()


def _client_columns(data: ClientCreate) -> dict:
    return data.model_dump(exclude=_NAME_REFERENCE_FIELDS)


async def create_client(db: AsyncSession, data: ClientCreate) -> Client:
    """Клиент + первая запись истории стадий одной транзакцией."""
    user = await get_or_create_user(db, data.responsible_person)
    service = await get_or_create_service(db, data.service)
    now = utcnow()
    client = Client(
        **_client_columns(data),
        responsible_person_id=user.id,
        service_id=service.id,
        created_at=now,
        updated_at=now,
    )
    db.add(client)
    await db.flush()
    await crud_stages.record_create(db, client, now=now)
    await db.commit()
    log.info("[CLIENTS] Created %s (%s, stage=%s)", client.id, client.company_name, client.stage)
    return await get_client(db, client.id)


async def update_client(db: AsyncSession, client_id: str, data: ClientCreate) -> Optional[Client]:
    """
    Обновить клиента. Строка клиента блокируется (FOR UPDATE) до commit,
    так что параллельные смены стадии одного клиента выполняются по очереди.
    """
    result = await db.execute(
        select(Client).where(Client.id == client_id).with_for_update(of=Client)
    )
    client = result.unique().scalar_one_or_none()
    if client is None:
        await db.rollback()
        return None

    old_stage = client.stage
    user = await get_or_create_user(db, data.responsible_person)
    service = await get_or_create_service(db, data.service)
    for key, value in _client_columns(data).items():
        setattr(client, key, value)
    client.responsible_person_id = user.id
    client.service_id = service.id
    now = utcnow()
    client.updated_at = now
    await db.flush()

    await crud_stages.record_transition(db, client.id, old_stage, client.stage, now=now)
    await db.commit()
    log.info("[CLIENTS] Updated %s", client_id)
    return await get_client(db, client_id)


async def delete_client(db: AsyncSession, client_id: str) -> bool:
    """Действия и история стадий удаляются каскадом (ON DELETE CASCADE)."""
    result = await db.execute(delete(Client).where(Client.id == client_id))
    await db.commit()
    deleted = result.rowcount > 0
    if deleted:
        log.info("[CLIENTS] Deleted %s", client_id)
    return deleted


# ========== ACTIVITIES ==========

async def add_activity(db: AsyncSession, client_id: str, action: str, user_name: str) -> Optional[Client]:
    """Добавить запись в журнал. None, если клиента нет."""
    exists = await db.execute(select(Client.id).where(Client.id == client_id))
    if exists.scalar_one_or_none() is None:
        return None
    user = await get_or_create_user(db, user_name)
    db.add(Activity(client_id=client_id, user_id=user.id, action=action, created_at=utcnow()))
    await db.commit()
    return await get_client(db, client_id)


async def delete_activity(db: AsyncSession, client_id: str, activity_id: str) -> bool:
    result = await db.execute(
        delete(Activity).where(Activity.id == activity_id, Activity.client_id == client_id)
    )
    await db.commit()
    return result.rowcount > 0


# ========== DTO ==========

def activity_to_dict(activity: Activity) -> dict:
    return {
        "id": activity.id,
        "action": activity.action,
        "user": activity.user.name if activity.user else "",
        "date": activity.created_at,
    }


def client_to_dict(client: Client) -> dict:
    """Денормализованный клиент (ключи совпадают с полями ClientResponse)."""
    currency = get_currency_by_country(client.country) or {}
    activities = sorted(client.activities, key=lambda a: a.created_at, reverse=True)
    return {
        "id": client.id,
        "company_name": client.company_name,
        "contact_person": client.contact_person,
        "email": client.email,
        "phone": client.phone,
        "stage": client.stage,
        "status": client.status,
        "value": client.value,
        "priority": client.priority,
        "country": client.country,
        "currency": currency.get("currency"),
        "currency_symbol": currency.get("symbol"),
        "responsible_person": client.responsible_person.name if client.responsible_person else "",
        "service": client.service.name if client.service else "",
        "notes": client.notes or "",
        "linkedin": client.linkedin or "",
        "source": client.source,
        "industry": client.industry,
        "estimated_close_date": client.estimated_close_date,
        "win_probability": client.win_probability,
        "last_follow_up": client.last_follow_up,
        "next_follow_up": client.next_follow_up,
        "pipeline_start_date": client.pipeline_start_date,
        "created_at": client.created_at,
        "updated_at": client.updated_at,
        "activity_history": [activity_to_dict(a) for a in activities],
    }
