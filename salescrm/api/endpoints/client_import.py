"""
Импорт / экспорт клиентов через Excel.

GET  /api/clients/export/template - шаблон .xlsx (пример строки, выпадающие списки, инструкция)
GET  /api/clients/export          - все клиенты в том же формате
POST /api/clients/import          - загрузка .xlsx: каждая строка проверяется ClientCreate
                                    и создаётся отдельно; ошибки строк не прерывают импорт
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from salescrm.api.deps import get_app_settings, get_db
from salescrm.api.error_handler import ValidationError
from salescrm.core.config import Settings
from salescrm.database import crud
from salescrm.schemas import ClientCreate, ClientResponse
from salescrm.services.excel_import import (
    FIELD_HEADERS, TEMPLATE_FILENAME, XLSX_MIME_TYPE, ImportFileError, parse_workbook, validate_upload,
    export_clients, generate_template,
)

log = logging.getLogger(__name__)

router = APIRouter()

# loc в ошибке pydantic может быть как именем поля, так и camelCase-алиасом
_HEADER_BY_LOC = {**FIELD_HEADERS, **{to_camel(k): v for k, v in FIELD_HEADERS.items()}}


def _xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MIME_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _row_error(row: int, exc: PydanticValidationError) -> dict:
    """Первая ошибка строки -> {row, field (заголовок колонки), error}."""
    first = exc.errors()[0]
    loc = first.get("loc") or ("",)
    field_name = str(loc[0])
    return {
        "row": row,
        "field": _HEADER_BY_LOC.get(field_name, field_name),
        "error": first.get("msg", "Invalid value"),
    }


@router.get("/clients/export/template")
async def download_template():
    return _xlsx_response(generate_template(), TEMPLATE_FILENAME)


@router.get("/clients/export")
async def export_all_clients(db: AsyncSession = Depends(get_db)):
    clients = await crud.get_all_clients(db)
    content = export_clients([crud.client_to_dict(c) for c in clients])
    return _xlsx_response(content, "CRM_Clients.xlsx")


@router.post("/clients/import")
async def import_clients(
    file: Optional[UploadFile] = File(None, description="Excel файл (.xlsx)"),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """
    Returns: {success, imported, total, errors: [{row, field, error}],
              warnings: [{row, field, warning}], clients: [...]}
    Номер строки как в Excel: первая строка данных = 2.
    """
    if file is None:
        raise ValidationError("No file provided")
    details = {"filename": file.filename, "content_type": file.content_type}
    problem = validate_upload(file.content_type, file.size or 0, settings.import_max_bytes)
    if problem:
        raise ValidationError(problem, details=details)
    # size может быть неизвестен: читаем не больше лимита + 1 байт
    content = await file.read(settings.import_max_bytes + 1)
    problem = validate_upload(file.content_type, len(content), settings.import_max_bytes)
    if problem:
        raise ValidationError(problem, details=details)

    try:
        parsed = await run_in_threadpool(parse_workbook, content)
    except ImportFileError as e:
        raise ValidationError(str(e))

    created = []
    errors = []
    for candidate in parsed.clients:
        try:
            data = ClientCreate.model_validate(candidate.data)
        except PydanticValidationError as e:
            errors.append(_row_error(candidate.row, e))
            continue
        try:
            client = await crud.create_client(db, data)
        except (SQLAlchemyError, OverflowError) as e:
            # OverflowError: драйвер SQLite на слишком большом INTEGER
            await db.rollback()
            log.error("[IMPORT] Row %s: persistence failed: %s", candidate.row, e)
            errors.append({"row": candidate.row, "field": None, "error": "Persistence failed"})
            continue
        created.append(ClientResponse.model_validate(crud.client_to_dict(client)).model_dump(by_alias=True, mode="json"))

    log.info(
        "[IMPORT] file=%s total=%s imported=%s errors=%s warnings=%s",
        file.filename, parsed.total, len(created), len(errors), len(parsed.warnings),
    )
    return {
        "success": True,
        "imported": len(created),
        "total": parsed.total,
        "errors": errors,
        "warnings": parsed.warnings,
        "clients": created,
    }
