# src/feasibility_api/main.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Application Entry (Adapters Bootstrap)

Synopsis:
    FastAPI bootstrap that wires middleware, exception handlers and routers.
    Provides an application factory (``create_app``) for uvicorn
    (``uvicorn feasibility_api.main:create_app --factory``) and tests.

Design:
    • Bootstrap only (no business logic).
    • Lifespan validates the narrative formatter registry (fail fast),
      initializes Redis unless the in-memory store is selected, and starts
      the debounced-write tick and the change-channel listener. On shutdown
      it cancels them and flushes pending answer writes before closing
      clients.
    • Prometheus request metrics middleware and the `/metrics` scrape route.
    • Domain errors are mapped to statuses by their stable ``code``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError

from feasibility_api import __version__
from feasibility_api.adapters.routers import feasibility_router, health_router, metrics_router
from feasibility_api.config.settings import Settings, get_settings
from feasibility_api.dependencies.feasibility import (
    shutdown_dependencies,
    start_background_tasks,
    stop_background_tasks,
)
from feasibility_api.domain.exceptions.base import DomainError
from feasibility_api.domain.services.narrative_formatters import validate_registry
from feasibility_api.infrastructure.caching.redis_client import close_redis, init_redis
from feasibility_api.infrastructure.http.errors import (
    handle_domain_error,
    handle_http_exception,
    handle_unhandled_exception,
    handle_validation_error,
)
from feasibility_api.infrastructure.logging.logger import (
    configure_root_logging,
    get_json_logger,
)
from feasibility_api.infrastructure.middleware.request_id import RequestIdMiddleware
from feasibility_api.infrastructure.middleware.request_metrics import RequestLatencyMiddleware

logger = get_json_logger(__name__)


# -----------------------------------------------------------------------------
# Lifespan
# -----------------------------------------------------------------------------
@asynccontextmanager
async def runtime_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Initialize and tear down shared infrastructure.

    Raises:
        RegistryError: If the narrative formatter registry is malformed.
    """
    settings: Settings = app.state.settings
    validate_registry()
    if not settings.uses_memory_store:
        init_redis(settings)
    logger.info(
        "service_startup",
        extra={"extra": {"env": settings.environment.value, "version": __version__}},
    )
    tasks = start_background_tasks(settings)
    try:
        yield
    finally:
        await stop_background_tasks(tasks)
        await shutdown_dependencies()
        if not settings.uses_memory_store:
            await close_redis()
        logger.info("service_shutdown")


# -----------------------------------------------------------------------------
# Exception handlers
# -----------------------------------------------------------------------------
def _attach_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unhandled_exception)


# -----------------------------------------------------------------------------
# App factory
# -----------------------------------------------------------------------------
def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override (defaults to ``get_settings()``).

    Returns:
        FastAPI: Fully configured application instance.
    """
    resolved = settings or get_settings()
    configure_root_logging(resolved.log_level)

    app = FastAPI(
        title="Feasibility API",
        version=__version__,
        description="Feasibility study answers, financial projection and report generation.",
        lifespan=runtime_lifespan,
    )
    app.state.settings = resolved

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(RequestLatencyMiddleware)
    _attach_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(feasibility_router)
    app.include_router(metrics_router)
    return app


if __name__ == "__main__":  # pragma: no cover
    import uvicorn

    uvicorn.run(
        "feasibility_api.main:create_app",
        factory=True,
        host="127.0.0.1",
        port=int(os.getenv("PORT", "8080")),
    )
