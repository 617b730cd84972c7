# src/feasibility_api/infrastructure/external_apis/narrative/client.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Chat-completions transport client for narrative report generation.

This transport implements the application ``NarrativeGenerator`` port:

* Async HTTP (httpx) with per-request timeout.
* Jittered exponential retries (bounded) for transport errors, 429 and 5xx;
  honors ``Retry-After`` seconds.
* Circuit breaker (CLOSED <-> OPEN <-> HALF-OPEN).
* Prometheus metrics: call latency, errors by reason, HTTP status codes
  and retries (``metrics_narrative.py``).
* Every failure is surfaced as ``NarrativeUnavailableError`` so callers can
  fall back to chunked requests or show the "contact support" message.

Request shape: one system message fixing JSON-only output, the prompt as the
first user message, then each context line as its own user message.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from contextlib import suppress
from typing import Any, Final

import httpx

from feasibility_api.domain.exceptions.narrative import NarrativeUnavailableError
from feasibility_api.infrastructure.external_apis.narrative.settings import NarrativeSettings
from feasibility_api.infrastructure.logging.logger import get_json_logger, get_request_id
from feasibility_api.infrastructure.observability.metrics_narrative import (
    NarrativeObservation,
    get_narrative_http_status_total,
    get_narrative_retries_total,
    observe_narrative_call,
)
from feasibility_api.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
)
from feasibility_api.infrastructure.resilience.retry import RetryPolicy, retry_async

logger = get_json_logger(__name__)

SYSTEM_MESSAGE: Final[str] = (
    "You are a professional feasibility report generator. Always return JSON only."
)

_DEFAULT_BASE_BACKOFF: Final[float] = 0.5
_DEFAULT_MAX_BACKOFF: Final[float] = 4.0

_DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
    "User-Agent": "feasibility-narrative-client/1.0",
}


class _RetryableStatus(Exception):
    """Internal marker for 429/5xx responses."""

    def __init__(self, status: int) -> None:
        super().__init__(f"status {status}")
        self.status = status


def _parse_retry_after(val: str | None) -> float | None:
    """Parse the HTTP ``Retry-After`` header (seconds form only)."""
    if not val:
        return None
    try:
        return max(0.0, float(val))
    except ValueError:
        return None


def _extract_content(body: Any) -> str | None:
    if not isinstance(body, Mapping):
        return None
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0] if isinstance(choices[0], Mapping) else {}
    message = first.get("message") if isinstance(first.get("message"), Mapping) else {}
    content = message.get("content")
    return content if isinstance(content, str) and content.strip() else None


class ChatCompletionsClient:
    """Resilient transport client for an OpenAI-compatible chat API."""

    def __init__(
        self,
        settings: NarrativeSettings,
        *,
        http: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Provider settings loaded from environment or DI.
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance.
            retry_policy: Optional retry configuration. When omitted, a
                jittered exponential policy is built from
                ``settings.max_retries``.
            breaker: Circuit breaker instance to use; created if omitted.
        """
        self._settings = settings
        self._url = f"{str(settings.base_url).rstrip('/')}/chat/completions"
        self._timeout = float(settings.timeout_s)
        self._client = http or httpx.AsyncClient(
            timeout=self._timeout, headers=_DEFAULT_HEADERS.copy()
        )
        if http is not None:
            for key, value in _DEFAULT_HEADERS.items():
                self._client.headers.setdefault(key, value)
        self._retry = retry_policy or RetryPolicy(
            total=settings.max_retries,
            base=_DEFAULT_BASE_BACKOFF,
            cap=_DEFAULT_MAX_BACKOFF,
            jitter=True,
        )
        self._breaker = breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout_s=30.0,
            half_open_max_calls=1,
        )
        self._status_total = get_narrative_http_status_total()
        self._retries_total = get_narrative_retries_total()

    async def aclose(self) -> None:
        """Close the underlying HTTP client if open."""
        if not self._client.is_closed:
            await self._client.aclose()

    # ---------------------------- Public API ----------------------------- #

    def build_messages(self, prompt: str, context_lines: Sequence[str]) -> list[dict[str, str]]:
        """Return the chat messages for ``prompt`` and plain-string context lines."""
        messages = [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": prompt},
        ]
        messages.extend(
            {"role": "user", "content": line}
            for line in context_lines
            if isinstance(line, str) and line.strip()
        )
        return messages

    async def generate(self, prompt: str, context_lines: Sequence[str] = ()) -> str:
        """Return the model's raw message content.

        Raises:
            NarrativeUnavailableError: If the client is not configured, the
                circuit is open, retries are exhausted, the provider rejects
                the request, or the response carries no content.
        """
        model = self._settings.model
        with observe_narrative_call(model=model) as obs:
            if not self._settings.configured:
                self._fail(obs, "not_configured", "api key missing")
                raise NarrativeUnavailableError(details={"reason": "not_configured"})

            body = {
                "model": model,
                "temperature": self._settings.temperature,
                "messages": self.build_messages(prompt, context_lines),
            }
            headers = {"Authorization": f"Bearer {self._api_key()}"}
            request_id = get_request_id()
            if request_id:
                headers["X-Request-ID"] = request_id

            async def _call() -> httpx.Response:
                async with self._breaker.guard("narrative"):
                    response = await self._client.post(
                        self._url, json=body, headers=headers, timeout=self._timeout
                    )
                    with suppress(Exception):
                        self._status_total.labels(
                            model=model, status_code=str(response.status_code)
                        ).inc()
                    if response.status_code == 429 or response.status_code >= 500:
                        retry_after = _parse_retry_after(response.headers.get("Retry-After"))
                        if retry_after:
                            await asyncio.sleep(min(retry_after, _DEFAULT_MAX_BACKOFF))
                        raise _RetryableStatus(response.status_code)
                    return response

            def _retryable(exc: Exception) -> bool:
                retry = isinstance(exc, (httpx.TransportError, _RetryableStatus))
                if retry:
                    with suppress(Exception):
                        self._retries_total.labels(model=model, reason=type(exc).__name__).inc()
                return retry

            try:
                response = await retry_async(_call, policy=self._retry, retry_on=_retryable)
            except CircuitOpenError as exc:
                self._fail(obs, "circuit_open", str(exc))
                raise NarrativeUnavailableError(details={"reason": str(exc)}) from exc
            except _RetryableStatus as exc:
                self._fail(obs, "status", str(exc.status))
                raise NarrativeUnavailableError(details={"status": exc.status}) from exc
            except httpx.HTTPError as exc:
                self._fail(obs, "transport", type(exc).__name__)
                raise NarrativeUnavailableError(details={"reason": type(exc).__name__}) from exc

            if response.status_code >= 400:
                self._fail(obs, "status", str(response.status_code))
                raise NarrativeUnavailableError(details={"status": response.status_code})
            try:
                payload = response.json()
            except ValueError as exc:
                self._fail(obs, "non_json", str(exc))
                raise NarrativeUnavailableError(details={"reason": "non_json"}) from exc
            content = _extract_content(payload)
            if content is None:
                self._fail(obs, "empty", "no message content")
                raise NarrativeUnavailableError(details={"reason": "empty"})
            return content

    # --------------------------- Internal helpers ------------------------- #

    def _api_key(self) -> str:
        key = self._settings.api_key
        return key.get_secret_value() if key is not None else ""

    @staticmethod
    def _fail(obs: NarrativeObservation, reason: str, detail: str) -> None:
        obs.mark_error(reason)
        logger.warning(
            "narrative.call.failed",
            extra={"extra": {"reason": reason, "detail": detail, "model": obs.model}},
        )
