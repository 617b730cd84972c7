# src/feasibility_api/infrastructure/observability/metrics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus metrics utilities (registry-aware, hot-reload safe).

Collectors are returned by accessor functions bound to the **current**
``prometheus_client.REGISTRY``:

    - Safe under hot reload and tests that swap the default registry.
    - No duplicate-registration errors.
    - Cache automatically resets when the active registry changes.

Families:
    * HTTP server: request count and latency (``RequestLatencyMiddleware``).
    * Answer sessions: persisted batches and remote updates.
    * Reports: strategy attempts (full and chunked fallbacks) and use-case
      latency.

Narrative provider calls live in ``metrics_narrative.py``.

Example:
    get_report_strategy_total().labels(strategy="chunked-2", outcome="success").inc()
"""

from __future__ import annotations

import logging
import threading
from contextlib import suppress
from typing import Final

import prometheus_client as prom
from prometheus_client import Counter, Histogram

_log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Common histogram buckets (seconds)
LATENCY_BUCKETS: Final[tuple[float, ...]] = (
    0.005,
    0.010,
    0.025,
    0.050,
    0.100,
    0.250,
    0.500,
    1.000,
    2.500,
    5.000,
    10.000,
)

# Narrative generation runs for tens of seconds.
SLOW_BUCKETS: Final[tuple[float, ...]] = (0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0)

_registry_id: int | None = None
_hist_cache: dict[str, Histogram] = {}
_counter_cache: dict[str, Counter] = {}
_lock = threading.RLock()


# ---------------------------------------------------------------------------
# Registry-handling primitives


def _ensure_registry() -> None:
    """Reset caches if the active registry changed."""
    global _registry_id
    with _lock:
        rid = id(prom.REGISTRY)
        if _registry_id != rid:
            _hist_cache.clear()
            _counter_cache.clear()
            _registry_id = rid


def _lookup_existing_hist(name: str) -> Histogram | None:
    """Return a previously-registered ``Histogram`` from the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, Histogram):
                return col
    return None


def _lookup_existing_counter(name: str) -> Counter | None:
    """Return a previously-registered ``Counter`` from the active registry."""
    with _lock, suppress(Exception):
        mapping = getattr(prom.REGISTRY, "_names_to_collectors", None)
        if isinstance(mapping, dict):
            col = mapping.get(name)
            if isinstance(col, Counter):
                return col
    return None


# ---------------------------------------------------------------------------
# Get-or-create helpers


def get_or_create_hist(
    name: str,
    help_text: str,
    *,
    buckets: tuple[float, ...] = LATENCY_BUCKETS,
    labelnames: tuple[str, ...] = (),
) -> Histogram:
    """Get or create a registry-bound ``Histogram`` with stable identity.

    1. Return from module cache if present for the active registry.
    2. If the registry already has a collector by this name, reuse it.
    3. Otherwise, register a new collector on the active registry.
    4. If concurrent registration raises a duplication error, retry step 2.
    """
    _ensure_registry()
    with _lock:
        cached = _hist_cache.get(name)
        if cached is not None:
            return cached
        existing = _lookup_existing_hist(name)
        if existing is not None:
            _hist_cache[name] = existing
            return existing
        try:
            hist = Histogram(name, help_text, labelnames, buckets=buckets, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing_hist(name)
                if again is not None:
                    _hist_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus histogram %s", name)
            raise
        _hist_cache[name] = hist
        return hist


def get_or_create_counter(
    name: str,
    help_text: str,
    *,
    labelnames: tuple[str, ...] = (),
) -> Counter:
    """Get or create a registry-bound ``Counter`` with stable identity."""
    _ensure_registry()
    with _lock:
        cached = _counter_cache.get(name)
        if cached is not None:
            return cached
        existing = _lookup_existing_counter(name)
        if existing is not None:
            _counter_cache[name] = existing
            return existing
        try:
            counter = Counter(name, help_text, labelnames, registry=prom.REGISTRY)
        except ValueError as exc:
            if "Duplicated timeseries" in str(exc):
                again = _lookup_existing_counter(name)
                if again is not None:
                    _counter_cache[name] = again
                    return again
            _log.exception("Failed to register Prometheus counter %s", name)
            raise
        _counter_cache[name] = counter
        return counter


# ---------------------------------------------------------------------------
# HTTP server


def get_http_server_request_duration_seconds() -> Histogram:
    """Return the server request-duration histogram.

    Labels:
        method: Uppercased HTTP method.
        handler: Templated route or raw path.
        status: Response code as string.
    """
    return get_or_create_hist(
        "http_server_request_duration_seconds",
        "Request duration (seconds), server side.",
        labelnames=("method", "handler", "status"),
    )


def get_http_requests_total() -> Counter:
    """Return the request counter (labels: method, handler, status)."""
    return get_or_create_counter(
        "http_requests_total",
        "HTTP requests served.",
        labelnames=("method", "handler", "status"),
    )


# ---------------------------------------------------------------------------
# Answer sessions


def get_answer_writes_total() -> Counter:
    """Return the counter of answer batches written.

    Labels:
        result: ``success`` or ``error``.
    """
    return get_or_create_counter(
        "feasibility_answer_writes_total",
        "Answer session batches written to the store.",
        labelnames=("result",),
    )


def get_answer_remote_updates_total() -> Counter:
    """Return the counter of change announcements applied or ignored.

    Labels:
        result: ``applied`` or ``ignored``.
    """
    return get_or_create_counter(
        "feasibility_answer_remote_updates_total",
        "Change announcements from other writers.",
        labelnames=("result",),
    )


# ---------------------------------------------------------------------------
# Reports


def get_report_strategy_total() -> Counter:
    """Return the counter of report generation attempts per strategy.

    Labels:
        strategy: ``full``, ``chunked-2`` or ``chunked-3``.
        outcome: ``success`` or the failing error code.
    """
    return get_or_create_counter(
        "feasibility_report_strategy_total",
        "Report generation attempts by strategy and outcome.",
        labelnames=("strategy", "outcome"),
    )


def get_report_latency_seconds() -> Histogram:
    """Return the report use-case latency histogram (label: outcome)."""
    return get_or_create_hist(
        "feasibility_report_latency_seconds",
        "Latency of the report generation use case (seconds).",
        buckets=SLOW_BUCKETS,
        labelnames=("outcome",),
    )
