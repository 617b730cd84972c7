# src/feasibility_api/infrastructure/logging/logger.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured JSON logging utilities.

This module exposes an idempotent root configurator and a per-module logger
factory that produce JSON logs suitable for ingestion by log pipelines.

Features:
    * Stable keys: ``ts``, ``level``, ``logger``, ``message``.
    * Automatic enrichment with ``request_id`` via contextvars.
    * Structured fields passed as ``extra={"extra": {...}}`` are merged into
      the payload.

Typical usage:
    configure_root_logging()
    log = get_json_logger(__name__)
    log.info("answers.saved", extra={"extra": {"project_id": pid}})
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

__all__ = [
    "configure_root_logging",
    "get_json_logger",
    "set_request_context",
    "get_request_id",
]

_REQUEST_ID_ENV_KEY = "REQUEST_ID"

# Per-request correlation context (task-local via contextvars).
_REQUEST_ID_CTX: ContextVar[str | None] = ContextVar("feasibility_request_id", default=None)


def set_request_context(*, request_id: str | None = None) -> None:
    """Set the per-request correlation identifier on the current context.

    Args:
        request_id: Correlation identifier from ``X-Request-ID``, if any.
    """
    if request_id is not None:
        _REQUEST_ID_CTX.set(request_id)


def get_request_id() -> str | None:
    """Return the current request id from contextvars, if any."""
    return _REQUEST_ID_CTX.get(None)


class _JsonFormatter(logging.Formatter):
    """JSON log formatter emitting stable keys and optional extras."""

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON object.

        Args:
            record: Logging record.

        Returns:
            JSON-encoded log line.
        """
        payload: dict[str, Any] = {
            "ts": datetime.now(tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Prefer record attribute, then contextvar, then env.
        rid: str | None = (
            getattr(record, "request_id", None)
            or _REQUEST_ID_CTX.get(None)
            or os.getenv(_REQUEST_ID_ENV_KEY)
        )
        if rid:
            payload["request_id"] = rid

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            if exc_type is not None:
                payload["exc_type"] = exc_type.__name__
            if exc_value is not None:
                payload["exc_message"] = str(exc_value)

        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)

        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_root_logging(level: str | int | None = None) -> None:
    """Initialize the root logger with a JSON stream handler (idempotent).

    Args:
        level: Logging level or level name. If ``None``, use env ``LOG_LEVEL`` or ``INFO``.
    """
    root = logging.getLogger()

    env_level = os.getenv("LOG_LEVEL")
    resolved: int | str = (
        level if level is not None else (env_level.upper() if env_level else "INFO")
    )
    root.setLevel(resolved)

    if root.handlers:
        # Already configured; avoid duplicate handlers on hot reload.
        return

    handler = logging.StreamHandler()
    handler.setFormatter(_JsonFormatter())
    root.addHandler(handler)


def get_json_logger(name: str) -> logging.Logger:
    """Return a module-specific logger backed by the JSON root handler.

    This does *not* implicitly configure the root logger. Call
    :func:`configure_root_logging` once at startup for global defaults.

    Args:
        name: Logger name, typically ``__name__`` of the caller.

    Returns:
        Configured logger.
    """
    logger = logging.getLogger(name)
    logger.propagate = True
    return logger
