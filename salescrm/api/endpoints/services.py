"""
Справочники: услуги и ответственные
"""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from salescrm.api.deps import get_db
from salescrm.api.error_handler import ConflictError
from salescrm.database import crud
from salescrm.schemas import ServiceCreate, ServiceResponse, UserResponse

router = APIRouter()


@router.get("/services", response_model=List[ServiceResponse])
async def list_services(db: AsyncSession = Depends(get_db)):
    return await crud.get_all_services(db)


@router.post("/services", response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
async def create_service(data: ServiceCreate, db: AsyncSession = Depends(get_db)):
    service = await crud.create_service(db, data.name)
    if service is None:
        raise ConflictError(f'Service "{data.name}" already exists', details={"name": data.name})
    return service


@router.get("/users", response_model=List[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db)):
    """Ответственные менеджеры (создаются автоматически по имени)."""
    return await crud.get_all_users(db)
