# src/feasibility_api/infrastructure/middleware/request_metrics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Request metrics middleware (Prometheus).

Records per-request count and server-side latency to:
  * ``http_requests_total`` (Counter)
  * ``http_server_request_duration_seconds`` (Histogram)

Collectors come from the registry-aware accessors in
``infrastructure.observability.metrics`` and are bound once per middleware
instance.

Design:
    * Labels: (method, handler, status). Handler prefers the templated route
      path so per-project URLs do not explode cardinality.
    * Errors in metrics code never impact request flow.

Usage:
    app.add_middleware(RequestLatencyMiddleware)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from feasibility_api.infrastructure.observability.metrics import (
    get_http_requests_total,
    get_http_server_request_duration_seconds,
)

__all__ = ["RequestLatencyMiddleware"]

logger = logging.getLogger(__name__)


def _handler_label(request: Request) -> str:
    route_obj = request.scope.get("route")
    return (
        getattr(route_obj, "path_format", None)
        or getattr(route_obj, "path", None)
        or request.url.path
    )


class RequestLatencyMiddleware(BaseHTTPMiddleware):
    """Record request count and latency to Prometheus."""

    def __init__(self, app: Any) -> None:
        """Initialize middleware and bind collectors."""
        super().__init__(app)
        self._prom_hist = get_http_server_request_duration_seconds()
        self._prom_total = get_http_requests_total()

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Measure request latency and record it."""
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start
            labels = (request.method.upper(), _handler_label(request), str(status_code))
            try:
                self._prom_hist.labels(*labels).observe(duration)
            except Exception:
                logger.debug("prom.histogram_observe_failed", exc_info=True)
            try:
                self._prom_total.labels(*labels).inc()
            except Exception:
                logger.debug("prom.counter_inc_failed", exc_info=True)
