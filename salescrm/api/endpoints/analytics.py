"""
Аналитика воронки: длительность стадий, обзор, просроченные стадии
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.api.deps import get_db
from salescrm.database import crud, crud_stages
from salescrm.database.models import utcnow
from salescrm.services.pipeline_analytics import overdue_clients, pipeline_overview

log = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stages")
async def stage_analytics(db: AsyncSession = Depends(get_db)):
    """[{stage, averageDurationSeconds, totalClients, completedClients}] в порядке воронки."""
    return await crud_stages.get_stage_analytics(db)


@router.post("/backfill-stage-history")
async def backfill_stage_history(db: AsyncSession = Depends(get_db)):
    """Создать открытую запись истории для клиентов без истории (идемпотентно)."""
    count = await crud_stages.backfill_stage_history(db)
    return {
        "success": True,
        "message": f"Backfilled stage history for {count} clients",
        "count": count,
    }


@router.get("/overview")
async def overview(db: AsyncSession = Depends(get_db)):
    clients = await crud.get_all_clients(db)
    return pipeline_overview([crud.client_to_dict(c) for c in clients], utcnow())


@router.get("/overdue")
async def overdue(db: AsyncSession = Depends(get_db)):
    """Активные клиенты, чья текущая стадия в статусе warning или overdue."""
    clients = await crud.get_all_clients(db)
    open_entries = await crud_stages.get_open_entries_by_client(db)
    return overdue_clients(clients, open_entries, utcnow())
