"""JSend response helpers and exception mapping.

Every endpoint answers with ``{"status": "success" | "fail" | "error"}``
plus ``data`` and/or ``message``. ``fail`` means the client can fix the
request; ``error`` means the server could not process it.
"""

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.domain.exceptions import (
    AuthenticationError,
    ConflictError,
    DomainError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from storefront.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Envelopes
# ============================================================================


def success(
    data: Any = None,
    status_code: int = status.HTTP_200_OK,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a ``success`` envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"status": "success", "data": jsonable_encoder(data)},
        headers=headers,
    )


def fail(
    message: str,
    data: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build a ``fail`` envelope for client-correctable problems."""
    content: dict[str, Any] = {"status": "fail", "message": message}
    if data:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def error(
    message: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    data: Any = None,
) -> JSONResponse:
    """Build an ``error`` envelope for server-side failures."""
    content: dict[str, Any] = {"status": "error", "message": message}
    if data:
        content["data"] = jsonable_encoder(data)
    return JSONResponse(status_code=status_code, content=content)


# ============================================================================
# Exception Mapping
# ============================================================================


_FAIL_STATUS: dict[type[DomainError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
}


def status_for(exc: DomainError) -> int:
    """HTTP status code for a domain error."""
    for error_type, status_code in _FAIL_STATUS.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def domain_error_response(request: Request, exc: DomainError) -> JSONResponse:
    """Convert a domain error into its JSend envelope."""
    status_code = status_for(exc)

    if status_code < 500:
        logger.info(
            "Request failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            message=exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return fail(exc.message, data=exc.details, status_code=status_code, headers=headers)

    cause = exc.cause if isinstance(exc, StoreError) else None
    logger.error(
        "Data store error",
        path=request.url.path,
        error_type=type(exc).__name__,
        message=exc.message,
        cause=repr(cause) if cause else None,
    )
    data = {"detail": exc.message, "cause": repr(cause)} if settings.debug else None
    return error("Internal server error", status_code=status_code, data=data)


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return domain_error_response(request, exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return fail(
        "Invalid request data",
        data={"fields": [e["field"] for e in errors], "errors": errors},
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code >= 500:
        return error(message, status_code=exc.status_code)
    return fail(message, status_code=exc.status_code, headers=getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSend exception handlers on an application.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(DomainError, _domain_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
