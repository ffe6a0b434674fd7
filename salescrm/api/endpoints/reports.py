"""
Отчёты
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.api.deps import get_db
from salescrm.database import crud
from salescrm.services.pipeline_analytics import report_summary

router = APIRouter()


@router.get("/summary")
async def summary(db: AsyncSession = Depends(get_db)):
    """Всего клиентов, выиграно, в переговорах, отклонено, сумма воронки (INR)."""
    clients = await crud.get_all_clients(db)
    return report_summary(crud.client_to_dict(c) for c in clients)
