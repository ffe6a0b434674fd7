"""
API эндпоинты для клиентов: CRUD, журнал действий, история стадий, таймлайн
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.api.deps import get_db
from salescrm.api.error_handler import ActivityNotFoundError, ClientNotFoundError
from salescrm.database import crud, crud_stages
from salescrm.database.models import utcnow
from salescrm.schemas import (
    ActivityCreate, ClientCreate, ClientResponse, StageHistoryResponse,
)
from salescrm.services.timeline import timeline

log = logging.getLogger(__name__)

router = APIRouter()


async def _get_client_or_404(db: AsyncSession, client_id: str):
    client = await crud.get_client(db, client_id)
    if client is None:
        raise ClientNotFoundError(client_id)
    return client


@router.get("/clients", response_model=List[ClientResponse])
async def list_clients(db: AsyncSession = Depends(get_db)):
    clients = await crud.get_all_clients(db)
    return [crud.client_to_dict(c) for c in clients]


@router.get("/clients/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, db: AsyncSession = Depends(get_db)):
    client = await _get_client_or_404(db, client_id)
    return crud.client_to_dict(client)


@router.post("/clients", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(data: ClientCreate, db: AsyncSession = Depends(get_db)):
    """Создать клиента; первая запись истории стадий создаётся в той же транзакции."""
    client = await crud.create_client(db, data)
    return crud.client_to_dict(client)


@router.put("/clients/{client_id}", response_model=ClientResponse)
async def update_client(client_id: str, data: ClientCreate, db: AsyncSession = Depends(get_db)):
    """Полное обновление. Смена стадии закрывает текущий интервал истории и открывает новый."""
    client = await crud.update_client(db, client_id, data)
    if client is None:
        raise ClientNotFoundError(client_id)
    return crud.client_to_dict(client)


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: str, db: AsyncSession = Depends(get_db)):
    if not await crud.delete_client(db, client_id):
        raise ClientNotFoundError(client_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========== ACTIVITIES ==========

@router.post("/clients/{client_id}/activities", response_model=ClientResponse)
async def add_activity(client_id: str, data: ActivityCreate, db: AsyncSession = Depends(get_db)):
    client = await crud.add_activity(db, client_id, data.action, data.user)
    if client is None:
        raise ClientNotFoundError(client_id)
    return crud.client_to_dict(client)


@router.delete("/clients/{client_id}/activities/{activity_id}", response_model=ClientResponse)
async def delete_activity(client_id: str, activity_id: str, db: AsyncSession = Depends(get_db)):
    await _get_client_or_404(db, client_id)
    if not await crud.delete_activity(db, client_id, activity_id):
        raise ActivityNotFoundError(activity_id)
    client = await _get_client_or_404(db, client_id)
    return crud.client_to_dict(client)


# ========== STAGE HISTORY ==========

@router.get("/clients/{client_id}/stage-history", response_model=List[StageHistoryResponse])
async def get_stage_history(client_id: str, db: AsyncSession = Depends(get_db)):
    """История стадий, новые записи первыми."""
    await _get_client_or_404(db, client_id)
    return await crud_stages.get_stage_history(db, client_id)


@router.get("/clients/{client_id}/timeline")
async def get_timeline(client_id: str, db: AsyncSession = Depends(get_db)):
    """Стадии с длительностями и оценкой on-track / warning / overdue."""
    client = await _get_client_or_404(db, client_id)
    entries = await crud_stages.get_stage_history(db, client_id)
    return timeline(client, entries, utcnow())
