"""
Centralized error handling with consistent response format and request_id tracking.
"""
import logging
import uuid
from typing import Optional, Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

log = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Consistent error response format for all API endpoints."""
    ok: bool = False
    code: str
    message: str
    details: Optional[Any] = None
    request_id: str


class APIError(Exception):
    """
    Ошибка API. Подклассы задают code и status_code на уровне класса;
    handler превращает её в ErrorResponse.
    """
    code = "BAD_REQUEST"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        code: Optional[str] = None,
        message: str = "",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.code
        self.details = details
        super().__init__(self.message)


class ClientNotFoundError(APIError):
    code = "CLIENT_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, client_id: str):
        super().__init__(message=f"Client {client_id} not found", details={"client_id": client_id})


class ActivityNotFoundError(APIError):
    code = "ACTIVITY_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, activity_id: str):
        super().__init__(message=f"Activity {activity_id} not found", details={"activity_id": activity_id})


class _MessageError(APIError):
    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details)


class ConflictError(_MessageError):
    """Unique name already taken (services)."""
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ValidationError(_MessageError):
    code = "VALIDATION_ERROR"


class PersistenceError(_MessageError):
    code = "PERSISTENCE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def get_request_id(request: Request) -> str:
    """Get or generate request_id for the current request."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    return request_id


def create_error_response(
    request: Request,
    code: str,
    message: str,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    details: Optional[Any] = None,
) -> JSONResponse:
    """Create a consistent error response with request_id."""
    request_id = get_request_id(request)
    error = ErrorResponse(
        ok=False,
        code=code,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error.model_dump(mode="json", exclude_none=True),
    )


def validation_details(errors) -> list:
    """pydantic errors -> [{field, message}] (field path without 'body')."""
    out = []
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p != "body"]
        out.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return out


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("[%s] %s: %s", get_request_id(request), exc.code, exc.message)
    return create_error_response(request, exc.code, exc.message, exc.status_code, exc.details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return create_error_response(
        request,
        code="VALIDATION_ERROR",
        message="Invalid request data",
        status_code=status.HTTP_400_BAD_REQUEST,
        details=validation_details(exc.errors()),
    )


async def persistence_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    log.exception("[%s] [DB] Persistence failed: %s", get_request_id(request), type(exc).__name__)
    error = PersistenceError("Persistence failed")
    return create_error_response(request, error.code, error.message, error.status_code)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch all unhandled exceptions and return JSON."""
    log.exception("[%s] [ERROR] Unhandled exception: %s: %s", get_request_id(request), type(exc).__name__, exc)
    return create_error_response(
        request,
        code="INTERNAL_ERROR",
        message=f"Internal server error: {type(exc).__name__}",
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(SQLAlchemyError, persistence_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
