"""
Application errors and the handlers that render them.

Every failure leaves the API as a JSON envelope:
    {"ok": false, "error": "<message>", ...optional fields}
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


@dataclass
class AppError(Exception):
    """
    Base error for application failures.

    Attributes:
        error: Client-facing error message
        status_code: HTTP status used for the response
        detail: Optional diagnostic string (server-side failures)
    """
    error: str
    status_code: int = 400
    detail: Optional[str] = None

    def __post_init__(self) -> None:
        super().__init__(self.error)

    def to_envelope(self) -> dict:
        body = {"ok": False, "error": self.error}
        if self.detail is not None:
            body["detail"] = self.detail
        return body

    def headers(self) -> dict[str, str]:
        return {}


@dataclass
class InvalidJSONError(AppError):
    """Raised when the request body is not valid JSON."""
    error: str = "Invalid JSON"
    status_code: int = 400


@dataclass
class MessageValidationError(AppError):
    """Raised when normalized message text is empty or too long."""
    error: str = "Text must be 1-50 chars"
    status_code: int = 400


@dataclass
class RateLimitedError(AppError):
    """Raised when a client key posts again inside its window."""
    error: str = "Too many requests"
    status_code: int = 429
    retry_after_ms: int = 0

    def to_envelope(self) -> dict:
        body = super().to_envelope()
        body["retry_after_ms"] = self.retry_after_ms
        return body

    def headers(self) -> dict[str, str]:
        # Retry-After is expressed in whole seconds, rounded up
        return {"Retry-After": str(math.ceil(self.retry_after_ms / 1000))}


@dataclass
class MethodNotAllowedError(AppError):
    """Raised for a routed path requested with an unsupported method."""
    error: str = "Method not allowed"
    status_code: int = 405
    allow: tuple[str, ...] = ()

    def headers(self) -> dict[str, str]:
        return {"Allow": ", ".join(self.allow)} if self.allow else {}


@dataclass
class ConfigurationError(AppError):
    """Raised when the storage binding is absent."""
    error: str = "Server misconfigured"
    status_code: int = 500


@dataclass
class StorageError(AppError):
    """Raised when any database read or write fails."""
    error: str = "Database error"
    status_code: int = 500


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an AppError as a JSON envelope with its status code."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        "Request failed",
        extra={"error": exc.error, "status": exc.status_code, "detail": exc.detail},
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_envelope(),
        headers=exc.headers() or None,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Render routing errors raised by Starlette (404, 405) as envelopes.

    405 becomes a MethodNotAllowedError whose Allow header lists every
    method routed for the path.
    """
    if exc.status_code == 405:
        return await app_error_handler(
            request, MethodNotAllowedError(allow=tuple(_allowed_methods(request)))
        )

    headers = getattr(exc, "headers", None)
    if exc.status_code == 404:
        error = "Not found"
    else:
        error = str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"ok": False, "error": error},
        headers=headers,
    )


def _allowed_methods(request: Request) -> list[str]:
    methods = set()
    for route in request.app.routes:
        path_regex = getattr(route, "path_regex", None)
        if path_regex is not None and path_regex.match(request.url.path):
            methods.update(getattr(route, "methods", None) or ())
    return sorted(methods)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the envelope handlers on the application."""
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
