# backend/utils/errors.py
"""
Typed failures raised by the services and the single place where they are
turned into HTTP responses.

Every error body has the same shape:
    {"timestamp", "status", "error", "message", "path", "details"?}
"""
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


def error_body(status_code: int, message: str, path: str, details: Optional[Dict[str, Any]] = None) -> dict:
    body = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": HTTPStatus(status_code).phrase,
        "message": message,
        "path": path,
    }
    if details:
        body["details"] = details
    return body


def _json_error(request: Request, status_code: int, message: str, details=None, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(error_body(status_code, message, request.url.path, details)),
        headers=headers,
    )


async def app_error_handler(request: Request, exc: AppError):
    return _json_error(request, exc.status_code, exc.message, exc.details)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else HTTPStatus(exc.status_code).phrase
    return _json_error(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        # ("body", "labCode") -> "labCode"
        field = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        details[field or "request"] = err.get("msg")
    return _json_error(request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation error", details)


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity violation on {request.url.path}: {exc.orig}")
    return _json_error(request, status.HTTP_409_CONFLICT, "Resource conflicts with an existing record")


async def stale_data_handler(request: Request, exc: StaleDataError):
    return _json_error(request, status.HTTP_409_CONFLICT, "Resource was modified concurrently, retry the request")


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return _json_error(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Unexpected error",
        {"exception": type(exc).__name__},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(StaleDataError, stale_data_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
