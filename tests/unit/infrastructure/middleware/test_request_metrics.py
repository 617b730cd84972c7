# tests/unit/infrastructure/middleware/test_request_metrics.py
from __future__ import annotations

from typing import Any

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from feasibility_api.infrastructure.middleware.request_metrics import RequestLatencyMiddleware


def _make_app() -> FastAPI:
    app = FastAPI()

    @app.get("/projects/{project_id}/ping")
    async def ping(project_id: str) -> PlainTextResponse:
        return PlainTextResponse(project_id)

    @app.get("/bad")
    async def bad() -> None:
        raise HTTPException(status_code=400, detail="bad request")

    app.add_middleware(RequestLatencyMiddleware)
    return app


def _count(handler: str, status: str) -> float:
    labels = {"method": "GET", "handler": handler, "status": status}
    return REGISTRY.get_sample_value("http_requests_total", labels) or 0.0


def test_requests_are_counted_under_the_templated_route() -> None:
    client = TestClient(_make_app())
    handler = "/projects/{project_id}/ping"
    before = _count(handler, "200")

    assert client.get("/projects/p1/ping").text == "p1"
    assert client.get("/projects/p2/ping").text == "p2"

    assert _count(handler, "200") == before + 2
    latency = REGISTRY.get_sample_value(
        "http_server_request_duration_seconds_count",
        {"method": "GET", "handler": handler, "status": "200"},
    )
    assert latency is not None and latency >= 2


def test_client_errors_are_recorded_with_their_status() -> None:
    client = TestClient(_make_app())
    before = _count("/bad", "400")

    assert client.get("/bad").status_code == 400

    assert _count("/bad", "400") == before + 1


class _BadLabels:
    def observe(self, _value: float) -> None:
        raise RuntimeError("observe failed")

    def inc(self) -> None:
        raise RuntimeError("inc failed")


class _BadCollector:
    def labels(self, *_: Any, **__: Any) -> _BadLabels:
        return _BadLabels()


def test_metrics_errors_do_not_break_the_request(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        "feasibility_api.infrastructure.middleware.request_metrics."
        "get_http_server_request_duration_seconds",
        lambda: _BadCollector(),
    )
    monkeypatch.setattr(
        "feasibility_api.infrastructure.middleware.request_metrics.get_http_requests_total",
        lambda: _BadCollector(),
    )

    resp = TestClient(_make_app()).get("/projects/p1/ping")

    assert resp.status_code == 200
    assert resp.text == "p1"
