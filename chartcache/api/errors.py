"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module traduit les erreurs du domaine (validation, fournisseur, stockage) et les erreurs HTTP en
réponses JSON `{code, message, trace_id, details?}`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from chartcache.core.http_constants import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_SERVICE_UNAVAILABLE,
)
from chartcache.domain.errors import ChartValidationError, ProviderError, StorageError

log = structlog.get_logger(__name__)

ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "UNPROCESSABLE_ENTITY",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.details = details


def create_error_response(status_code: int, envelope: ErrorEnvelope) -> JSONResponse:
    """Create a standardized error response."""
    content: dict[str, Any] = {
        "code": envelope.code,
        "message": envelope.message,
        "trace_id": envelope.trace_id,
    }
    if envelope.details:
        content["details"] = envelope.details
    return JSONResponse(status_code=status_code, content=content)


def extract_trace_id(request: Request) -> str | None:
    """Trace ID from the request headers, else the one set by the request-id middleware."""
    trace_id = request.headers.get("X-Trace-ID")
    if trace_id:
        return trace_id
    return getattr(request.state, "request_id", None)


def _respond(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    envelope = ErrorEnvelope(code, message, extract_trace_id(request), details)
    return create_error_response(status_code, envelope)


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    log.warning("api_error", code=exc.code, status_code=exc.status_code)
    return _respond(request, exc.status_code, exc.code, exc.message, exc.details)


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return _respond(request, exc.status_code, code, str(exc.detail))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', 'invalid value')}"
        for err in exc.errors()
    ]
    return _respond(
        request, HTTP_BAD_REQUEST, "VALIDATION_ERROR", "Validation failed", {"errors": errors}
    )


async def handle_chart_validation(request: Request, exc: ChartValidationError) -> JSONResponse:
    return _respond(
        request, HTTP_BAD_REQUEST, "VALIDATION_ERROR", "Validation failed", {"errors": exc.errors}
    )


async def handle_provider_error(request: Request, exc: ProviderError) -> JSONResponse:
    log.error("provider_failure", kind=exc.kind, error=str(exc))
    return _respond(
        request,
        HTTP_BAD_GATEWAY,
        "PROVIDER_ERROR",
        "Failed to calculate birth chart",
        {"kind": exc.kind},
    )


async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
    log.error("storage_failure", error=str(exc))
    return _respond(request, HTTP_SERVICE_UNAVAILABLE, "STORAGE_ERROR", "Chart storage unavailable")


def register_error_handlers(app: FastAPI) -> None:
    """Branche les handlers d'erreurs sur l'application."""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
    app.add_exception_handler(ChartValidationError, handle_chart_validation)
    app.add_exception_handler(ProviderError, handle_provider_error)
    app.add_exception_handler(StorageError, handle_storage_error)
