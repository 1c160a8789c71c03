"""
Centralized error handling.

Endpoints and services never build error responses themselves: they
raise, and the handlers registered by ``register_error_handlers``
translate the exception into the JSON envelope used by the API::

    {"status": "fail" | "error", "message": "..."}

Operational errors (``AppError``, bad input, duplicate keys, malformed
ids, bad tokens) are reported verbatim.  Anything else is a
programming error: it is logged with its traceback and, outside of
development mode, answered with a generic 500 message.  In development
mode every error body also carries ``stack`` and ``error``.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Operational error carrying an HTTP status and a user-safe message."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.status = "fail" if str(status_code).startswith("4") else "error"
        self.is_operational = True


class InvalidTokenError(Exception):
    """Raised when a JWT cannot be parsed or its signature does not match."""


class TokenExpiredError(InvalidTokenError):
    """Raised when a correctly signed JWT is past its ``exp`` claim."""


class InvalidObjectId(AppError):
    """Raised when a path or body value is not a valid document id."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"Invalid {field}: {value}", 400)


def _status_for(status_code: int) -> str:
    return "fail" if 400 <= status_code < 500 else "error"


def _error_body(status_code: int, message: str, exc: BaseException) -> dict[str, Any]:
    body: dict[str, Any] = {"status": _status_for(status_code), "message": message}
    if settings.is_development:
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        body["error"] = repr(exc)
    return body


def _respond(status_code: int, message: str, exc: BaseException, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_error_body(status_code, message, exc),
        headers=headers,
    )


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        prefix = f"{'.'.join(location)}: " if location else ""
        messages.append(f"{prefix}{error.get('msg', 'invalid value')}")
    return "Invalid input data. " + ". ".join(messages)


def _duplicate_message(exc: DuplicateKeyError) -> str:
    key_value = (exc.details or {}).get("keyValue") or {}
    if key_value:
        field, value = next(iter(key_value.items()))
        return f'Duplicate value "{value}" for field "{field}". Please use another value!'
    return "Duplicate field value. Please use another value!"


def register_error_handlers(app: FastAPI) -> None:
    """Register the global exception handlers on ``app``."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return _respond(exc.status_code, exc.message, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _respond(400, _validation_message(exc), exc)

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError) -> JSONResponse:
        return _respond(400, _duplicate_message(exc), exc)

    @app.exception_handler(InvalidId)
    async def invalid_id_handler(request: Request, exc: InvalidId) -> JSONResponse:
        return _respond(400, f"Invalid id: {exc}", exc)

    @app.exception_handler(TokenExpiredError)
    async def expired_token_handler(request: Request, exc: TokenExpiredError) -> JSONResponse:
        return _respond(401, "Your token has expired. Please log in again!", exc)

    @app.exception_handler(InvalidTokenError)
    async def invalid_token_handler(request: Request, exc: InvalidTokenError) -> JSONResponse:
        return _respond(401, "Invalid token. Please log in again!", exc)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _respond(exc.status_code, str(exc.detail), exc, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        if settings.is_development:
            return _respond(500, str(exc) or exc.__class__.__name__, exc)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Something went wrong!"},
        )
