# src/feasibility_api/adapters/routers/metrics_router.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Prometheus scrape endpoint (`/metrics`).

Exposes the text exposition format and warms the lazily created histograms
so that classic ``_bucket``/``_count``/``_sum`` series appear on the very
first scrape (cold start):

    * ``http_server_request_duration_seconds`` observed at 0.0s for
      (GET, "/metrics", "200").
    * Report and narrative latency histograms registered with no samples.

Layer:
    adapters/routers
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import suppress

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from feasibility_api.infrastructure.logging.logger import get_json_logger
from feasibility_api.infrastructure.observability.metrics import (
    get_http_server_request_duration_seconds,
    get_report_latency_seconds,
    get_report_strategy_total,
)
from feasibility_api.infrastructure.observability.metrics_narrative import (
    get_narrative_call_latency_seconds,
    get_narrative_errors_total,
)

logger = get_json_logger(__name__)
router = APIRouter()


def _ensure_registered(getter: Callable[[], object], name: str) -> None:
    """Create the collector via ``getter`` so it is listed on first scrape."""
    try:
        getter()
    except Exception as exc:  # pragma: no cover
        logger.debug(
            "metrics_router: failed registering collector",
            extra={"extra": {"metric": name, "error": str(exc)}},
        )


@router.get("/metrics", include_in_schema=False)
async def metrics_endpoint() -> Response:
    """Expose Prometheus metrics; warm histograms so buckets exist on cold scrape."""
    _ensure_registered(get_report_latency_seconds, "feasibility_report_latency_seconds")
    _ensure_registered(get_report_strategy_total, "feasibility_report_strategy_total")
    _ensure_registered(
        get_narrative_call_latency_seconds, "feasibility_narrative_call_latency_seconds"
    )
    _ensure_registered(get_narrative_errors_total, "feasibility_narrative_errors_total")

    with suppress(Exception):
        get_http_server_request_duration_seconds().labels("GET", "/metrics", "200").observe(0.0)

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
