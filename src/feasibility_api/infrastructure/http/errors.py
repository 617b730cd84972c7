# src/feasibility_api/infrastructure/http/errors.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""HTTP error envelopes and exception handlers.

Every error response uses ``{"error": {code, http_status, message, details?,
trace_id?}}``. Domain errors map to statuses through ``DOMAIN_STATUS`` by
their stable ``code``.
"""

from __future__ import annotations

from typing import Any, Final

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.responses import Response

from feasibility_api.domain.exceptions.base import DomainError
from feasibility_api.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

DOMAIN_STATUS: Final[dict[str, int]] = {
    "REPORT_NOT_READY": 422,
    "STORAGE_UNAVAILABLE": 503,
    "NARRATIVE_UNAVAILABLE": 503,
    "UPSTREAM_FORMAT_ERROR": 502,
}


def _trace_id(request: Request) -> str | None:
    return getattr(getattr(request, "state", None), "request_id", None)


def error_envelope(
    *,
    code: str,
    http_status: int,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    err: dict[str, Any] = {
        "code": code,
        "http_status": http_status,
        "message": message,
    }
    if details is not None:
        err["details"] = details
    if trace_id is not None:
        err["trace_id"] = trace_id
    return {"error": err}


async def handle_domain_error(request: Request, exc: Exception) -> Response:
    """Map a :class:`DomainError` to its status and envelope."""
    code = exc.code if isinstance(exc, DomainError) else "DOMAIN_ERROR"
    status = DOMAIN_STATUS.get(code, 400)
    details = exc.details if isinstance(exc, DomainError) and exc.details else None
    logger.warning(
        "http.domain_error",
        extra={"extra": {"code": code, "status": status, "path": request.url.path}},
    )
    payload = error_envelope(
        code=code,
        http_status=status,
        message=str(exc) or code,
        details=details,
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=status, content=payload)


async def handle_validation_error(request: Request, exc: Exception) -> Response:
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    payload = error_envelope(
        code="VALIDATION_ERROR",
        http_status=422,
        message="Request validation failed",
        details={"errors": errors},
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=422, content=payload)


async def handle_http_exception(request: Request, exc: Exception) -> Response:
    status = exc.status_code if isinstance(exc, HTTPException) else 500
    detail = exc.detail if isinstance(exc, HTTPException) else None
    payload = error_envelope(
        code="HTTP_ERROR",
        http_status=status,
        message=detail if isinstance(detail, str) else "HTTP error",
        details=None if detail is None or isinstance(detail, str) else {"detail": detail},
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=status, content=payload)


async def handle_unhandled_exception(request: Request, exc: Exception) -> Response:
    logger.error(
        "http.unhandled",
        exc_info=exc,
        extra={"extra": {"path": request.url.path}},
    )
    payload = error_envelope(
        code="INTERNAL_ERROR",
        http_status=500,
        message="Internal server error",
        details=None,
        trace_id=_trace_id(request),
    )
    return JSONResponse(status_code=500, content=payload)
