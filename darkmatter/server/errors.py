from __future__ import annotations

import logging
import traceback
import uuid
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from darkmatter.persistence.errors import (
    ArchiveError,
    OperationInProgressError,
    PersistenceError,
    UnresolvedTypesError,
)

_log = logging.getLogger("darkmatter.errors")


def _error_response(
    *, status: int, code: str, message: str, details: Any = None
) -> JSONResponse:
    body = {"ok": False, "code": code, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(body, status_code=status)


def classify(exc: BaseException) -> tuple[int, str]:
    """HTTP status and error code for a persistence failure."""

    if isinstance(exc, OperationInProgressError):
        return 409, "operation_in_progress"
    if isinstance(exc, UnresolvedTypesError):
        return 422, "unresolved_types"
    if isinstance(exc, ArchiveError):
        return 400, "archive_error"
    if isinstance(exc, PersistenceError):
        return 500, "persistence_error"
    if isinstance(exc, OSError):
        return 500, "io_error"
    return 500, "internal_error"


def http_error(status: int, code: str, message: str) -> StarletteHTTPException:
    exc = StarletteHTTPException(status_code=status, detail=message)
    exc.error_code = code  # type: ignore[attr-defined]
    return exc


def register_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def _http_exc(request: Request, exc: StarletteHTTPException):
        detail = exc.detail
        message = str(detail) if detail else "Request failed"
        details = detail if isinstance(detail, (dict, list)) else None
        code = getattr(exc, "error_code", None) or f"http_{exc.status_code}"
        return _error_response(
            status=exc.status_code, code=code, message=message, details=details
        )

    @app.exception_handler(RequestValidationError)
    async def _val_exc(request: Request, exc: RequestValidationError):
        _log.debug("validation error: %s", exc)
        return _error_response(
            status=422,
            code="validation_error",
            message="Request validation failed",
            details=exc.errors(),
        )

    @app.exception_handler(PersistenceError)
    async def _persistence_exc(request: Request, exc: PersistenceError):
        status, code = classify(exc)
        _log.warning("Project request failed (%s): %s", code, exc)
        details = None
        if isinstance(exc, UnresolvedTypesError):
            details = {"types": list(exc.names)}
        return _error_response(
            status=status, code=code, message=str(exc), details=details
        )

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        err_id = uuid.uuid4().hex
        tb = "".join(traceback.format_exception(exc))
        _log.error("Unhandled exception [%s]: %s", err_id, tb)
        return _error_response(
            status=500,
            code="internal_error",
            message="Internal server error",
            details={"error_id": err_id},
        )
