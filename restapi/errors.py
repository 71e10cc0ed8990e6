"""Mapping of internal error kinds to HTTP responses."""

import logging

import fastapi
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import exc as sa_exc

from components.core import schemas
from components.core.errors import ServiceError, StoreTimeoutError, StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)


def _error_response(error: ServiceError) -> JSONResponse:
    body = schemas.ErrorResponse(error=error.code, detail=error.message)
    headers = None
    if error.status_code == status.HTTP_401_UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=error.status_code, content=body.model_dump(), headers=headers)


async def service_error_handler(request: Request, error: ServiceError) -> JSONResponse:
    if error.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, error.message)
    return _error_response(error)


async def request_validation_handler(request: Request, error: RequestValidationError) -> JSONResponse:
    """Schema failures share the validation_error shape with domain checks."""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "body")
        message = item.get("msg", "invalid value")
        problems.append(f"{location}: {message}" if location else message)
    return _error_response(ValidationError("; ".join(problems) or "Invalid request"))


async def pool_timeout_handler(request: Request, error: sa_exc.TimeoutError) -> JSONResponse:
    logger.error("%s %s timed out waiting for a connection", request.method, request.url.path, exc_info=error)
    return _error_response(StoreTimeoutError("Timed out waiting for the database"))


async def store_error_handler(request: Request, error: sa_exc.DBAPIError) -> JSONResponse:
    logger.error("%s %s hit a database error", request.method, request.url.path, exc_info=error)
    return _error_response(StoreUnavailableError("The database is unavailable; retry later"))


def register_error_handlers(app: fastapi.FastAPI) -> None:
    """Install handlers so every known error kind keeps its own status."""
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(sa_exc.TimeoutError, pool_timeout_handler)
    app.add_exception_handler(sa_exc.OperationalError, store_error_handler)
    app.add_exception_handler(sa_exc.InterfaceError, store_error_handler)
