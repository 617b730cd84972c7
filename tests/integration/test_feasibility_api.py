# tests/integration/test_feasibility_api.py
from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from feasibility_api import __version__
from feasibility_api.dependencies.feasibility import get_narrative_generator
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS
from feasibility_api.main import create_app

pytestmark = pytest.mark.integration


@pytest.fixture
def app() -> FastAPI:
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app) as c:
        yield c


def _use_generator(app: FastAPI, generator: Any) -> None:
    app.dependency_overrides[get_narrative_generator] = lambda: generator


def test_liveness_reports_version_and_echoes_request_id(client: TestClient) -> None:
    response = client.get("/health/liveness", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": __version__}
    assert response.headers["X-Request-ID"] == "req-1"


def test_answers_round_trip_through_completeness_and_analysis(
    client: TestClient, ready_answers: dict[str, Any]
) -> None:
    first = client.put(
        "/v1/projects/harbor-1/answers", json={"answers": {"project-name": "Harbor"}}
    )
    assert first.status_code == 200
    body = first.json()
    assert body["projectId"] == "harbor-1"
    assert body["version"] == 1
    assert body["persisted"] is True
    assert body["completeness"]["reportReady"] is False
    assert body["completeness"]["blocking"]

    second = client.put("/v1/projects/harbor-1/answers", json={"answers": ready_answers})
    assert second.json()["version"] == 2
    assert second.json()["completeness"]["reportReady"] is True

    completeness = client.get("/v1/projects/harbor-1/completeness").json()
    assert completeness["reportReady"] is True
    assert completeness["sections"]["market"] == {"complete": True}

    analysis = client.get("/v1/projects/harbor-1/analysis")
    assert analysis.status_code == 200
    statements = analysis.json()["statements"]
    assert statements["incomeStatement"]["rows"][0][:2] == ["Sales", "15,000.00"]
    assert len(analysis.json()["analysis"]["years"]) == 5


def test_report_generation_returns_validated_report(
    app: FastAPI,
    client: TestClient,
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    full_report_json: str,
) -> None:
    generator = scripted_generator([full_report_json])
    _use_generator(app, generator)
    client.put("/v1/projects/harbor-1/answers", json={"answers": ready_answers})

    response = client.post(
        "/v1/projects/harbor-1/report",
        json={"language": "en", "comparison": ["gold"], "expertPrompt": "Stress exports."},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["meta"]["strategy"] == "full"
    assert body["meta"]["projectName"] == "Harbor Bakery"
    assert [s["id"] for s in body["report"]["sections"]] == list(REQUIRED_SECTION_IDS)
    assert body["report"]["comparison"]["enabled"] is True
    assert "Stress exports." in generator.prompts[0]


def test_incomplete_project_returns_report_not_ready(
    app: FastAPI, client: TestClient, scripted_generator: Any
) -> None:
    generator = scripted_generator([])
    _use_generator(app, generator)
    client.put("/v1/projects/p2/answers", json={"answers": {"project-name": "Harbor"}})

    response = client.post("/v1/projects/p2/report", json={}, headers={"X-Request-ID": "rid-7"})

    assert response.status_code == 422
    err = response.json()["error"]
    assert err["code"] == "REPORT_NOT_READY"
    assert err["http_status"] == 422
    assert err["details"]["missing"]
    assert err["trace_id"] == "rid-7"
    assert generator.prompts == []


def test_generator_outage_returns_503(
    app: FastAPI, client: TestClient, ready_answers: dict[str, Any], scripted_generator: Any
) -> None:
    _use_generator(app, scripted_generator([]))
    client.put("/v1/projects/p3/answers", json={"answers": ready_answers})

    response = client.post("/v1/projects/p3/report", json={})

    assert response.status_code == 503
    err = response.json()["error"]
    assert err["code"] == "NARRATIVE_UNAVAILABLE"
    assert [a["strategy"] for a in err["details"]["attempts"]] == [
        "full",
        "chunked-2",
        "chunked-3",
    ]


def test_unconfigured_generator_returns_503(
    client: TestClient, ready_answers: dict[str, Any]
) -> None:
    client.put("/v1/projects/p4/answers", json={"answers": ready_answers})

    response = client.post("/v1/projects/p4/report", json={})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "NARRATIVE_UNAVAILABLE"


def test_invalid_requests_use_validation_envelope(client: TestClient) -> None:
    bad_id = client.get("/v1/projects/bad id!/completeness")
    assert bad_id.status_code == 422
    assert bad_id.json()["error"]["code"] == "VALIDATION_ERROR"

    unknown_field = client.put("/v1/projects/p1/answers", json={"answers": {}, "extra": 1})
    assert unknown_field.status_code == 422
    assert unknown_field.json()["error"]["code"] == "VALIDATION_ERROR"


def test_metrics_endpoint_exposes_request_and_report_families(client: TestClient) -> None:
    client.get("/health/liveness")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    text = response.text
    assert "http_requests_total" in text
    assert 'method="GET",handler="/metrics",status="200"' in text
    assert "feasibility_report_strategy_total" in text
    assert "feasibility_narrative_call_latency_seconds" in text
