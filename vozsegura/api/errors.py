"""Exception handlers — render every error as one JSON shape.

    {"success": false, "error": "<code>", "message": "...", "errors": {...}}

Expected outcomes (ControlPlaneError) are logged at INFO at most. Anything
else is an Internal error: full traceback to the log, generic message out.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vozsegura.errors import (
    ControlPlaneError,
    Internal,
    InvalidInput,
    TemporarilyLocked,
    Unauthenticated,
)

logger = logging.getLogger(__name__)


def error_body(exc: ControlPlaneError) -> dict[str, Any]:
    body: dict[str, Any] = {"success": False, "error": exc.code, "message": exc.message}
    if isinstance(exc, InvalidInput) and exc.field_errors:
        body["errors"] = exc.field_errors
    existing_id = getattr(exc, "existing_id", None)
    if existing_id is not None:
        body["existing_id"] = existing_id
    return body


def error_response(exc: ControlPlaneError) -> JSONResponse:
    headers: dict[str, str] = {}
    if isinstance(exc, Unauthenticated):
        headers["WWW-Authenticate"] = "Bearer"
    if isinstance(exc, TemporarilyLocked) and exc.retry_after:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=headers or None)


async def handle_control_plane_error(request: Request, exc: ControlPlaneError) -> JSONResponse:
    if isinstance(exc, Internal):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message, exc_info=exc)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return error_response(exc)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # loc is ("body", "email") or ("query", "limit"); keep the field part
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "__root__"
        field_errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return error_response(InvalidInput("Invalid data", field_errors=field_errors))


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(Internal())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ControlPlaneError, handle_control_plane_error)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, handle_unexpected_error)
