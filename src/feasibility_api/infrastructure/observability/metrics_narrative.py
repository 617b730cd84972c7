# src/feasibility_api/infrastructure/observability/metrics_narrative.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative provider observability helpers and Prometheus metrics.

Collectors (names are part of the public contract):

* ``feasibility_narrative_call_latency_seconds`` (Histogram)
* ``feasibility_narrative_errors_total`` (Counter)
* ``feasibility_narrative_http_status_total`` (Counter)
* ``feasibility_narrative_retries_total`` (Counter)

Helpers:

* :func:`observe_narrative_call`: context manager for one provider call.

All collectors come from the registry-aware accessors in ``metrics.py`` and
are therefore safe under tests that swap ``prometheus_client.REGISTRY``.
"""

from __future__ import annotations

from collections.abc import Generator
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from time import perf_counter

from prometheus_client import Counter, Histogram

from feasibility_api.infrastructure.observability.metrics import (
    SLOW_BUCKETS,
    get_or_create_counter,
    get_or_create_hist,
)


def get_narrative_call_latency_seconds() -> Histogram:
    """Return the provider call latency histogram (labels: model, outcome)."""
    return get_or_create_hist(
        "feasibility_narrative_call_latency_seconds",
        "Latency of narrative provider calls including retries (seconds).",
        buckets=SLOW_BUCKETS,
        labelnames=("model", "outcome"),
    )


def get_narrative_errors_total() -> Counter:
    """Return the provider error counter (labels: model, reason)."""
    return get_or_create_counter(
        "feasibility_narrative_errors_total",
        "Narrative provider calls that failed.",
        labelnames=("model", "reason"),
    )


def get_narrative_http_status_total() -> Counter:
    """Return the provider HTTP status counter (labels: model, status_code)."""
    return get_or_create_counter(
        "feasibility_narrative_http_status_total",
        "HTTP status codes returned by the narrative provider.",
        labelnames=("model", "status_code"),
    )


def get_narrative_retries_total() -> Counter:
    """Return the retry counter (labels: model, reason)."""
    return get_or_create_counter(
        "feasibility_narrative_retries_total",
        "Retries attempted for narrative provider calls.",
        labelnames=("model", "reason"),
    )


@dataclass
class NarrativeObservation:
    """State captured while observing one provider call.

    Attributes:
        model: Model identifier (for labelling).
        start: Monotonic start time in seconds.
        outcome: ``success`` or ``error``.
        error_reason: Short, machine-readable error reason if any.
    """

    model: str
    start: float = field(default_factory=perf_counter)
    outcome: str = "success"
    error_reason: str | None = None

    def mark_error(self, reason: str) -> None:
        """Mark the call as failed with ``reason`` (e.g. ``"circuit_open"``)."""
        self.outcome = "error"
        self.error_reason = reason


@contextmanager
def observe_narrative_call(*, model: str) -> Generator[NarrativeObservation, None, None]:
    """Observe one narrative provider call.

    Records a latency sample and, when :meth:`NarrativeObservation.mark_error`
    was called or the body raised, an error increment.

    Args:
        model: Model identifier.

    Yields:
        NarrativeObservation: Mutable observation for signalling errors.
    """
    obs = NarrativeObservation(model=model)
    try:
        yield obs
    except Exception:
        if obs.error_reason is None:
            obs.mark_error("exception")
        raise
    finally:
        elapsed = perf_counter() - obs.start
        with suppress(Exception):
            get_narrative_call_latency_seconds().labels(
                model=obs.model, outcome=obs.outcome
            ).observe(elapsed)
            if obs.error_reason is not None:
                get_narrative_errors_total().labels(
                    model=obs.model, reason=obs.error_reason
                ).inc()
