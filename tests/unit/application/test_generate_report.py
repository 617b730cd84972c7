# tests/unit/application/test_generate_report.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any

import pytest
from prometheus_client import REGISTRY

from feasibility_api.application.schemas.dto.answers import SaveAnswersDTO
from feasibility_api.application.schemas.dto.report import AuthorDTO, GenerateReportDTO
from feasibility_api.application.services.report_validation import DEFAULT_EXECUTIVE_SUMMARY
from feasibility_api.application.use_cases.answers.save_answers import AnswerSessionRegistry
from feasibility_api.application.use_cases.reports.generate_report import (
    GenerateReport,
    comparison_selection,
)
from feasibility_api.domain.exceptions.narrative import NarrativeUnavailableError
from feasibility_api.domain.exceptions.report import ReportNotReadyError
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS
from feasibility_api.infrastructure.storage.memory_store import InMemoryKeyValueStore


async def _registry(
    answers: dict[str, Any] | None, initial: dict[str, str] | None = None
) -> tuple[AnswerSessionRegistry, InMemoryKeyValueStore]:
    store = InMemoryKeyValueStore(initial)
    registry = AnswerSessionRegistry(store, debounce_s=0, throttle_s=0)
    if answers:
        await registry.get("p1").save(SaveAnswersDTO(answers=answers))
    return registry, store


def _use_case(registry: AnswerSessionRegistry, generator: Any, now: datetime) -> GenerateReport:
    return GenerateReport(registry, generator, now=lambda: now)


def test_comparison_selection_accepts_lists_and_checkbox_maps() -> None:
    assert comparison_selection(["gold", " ", None, "stocks"]) == ["gold", "stocks"]
    assert comparison_selection({"gold": True, "bonds": False, "stocks": "yes"}) == [
        "gold",
        "stocks",
    ]
    assert comparison_selection("gold") == []


@pytest.mark.asyncio
async def test_full_strategy_produces_validated_report(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    full_report_json: str,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(ready_answers)
    generator = scripted_generator([full_report_json])

    result = await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert result.meta.strategy == "full"
    assert result.meta.project_name == "Harbor Bakery"
    assert result.meta.timestamp == fixed_now.isoformat()
    report = result.report
    assert [s["id"] for s in report["sections"]] == list(REQUIRED_SECTION_IDS)
    financial = next(s for s in report["sections"] if s["id"] == "1-18")
    assert financial["tables"][0]["title"] == "Income Statement"
    assert report["executiveSummary"] == DEFAULT_EXECUTIVE_SUMMARY
    assert report["comparison"] is None
    assert len(generator.prompts) == 1
    assert generator.contexts[0][0] == "Project Name: Harbor Bakery"


@pytest.mark.asyncio
async def test_falls_back_to_two_chunks(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    make_report_json: Any,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(ready_answers)
    ids = list(REQUIRED_SECTION_IDS)
    generator = scripted_generator(
        [
            "The model refused to answer.",
            make_report_json(ids[:10]),
            make_report_json(ids[10:], title="Ignored"),
        ]
    )

    result = await _use_case(registry, generator, fixed_now).execute(
        "p1", GenerateReportDTO(comparison=["gold"])
    )

    assert result.meta.strategy == "chunked-2"
    assert result.report["title"] == "Harbor Bakery Feasibility Study"
    assert all(s["content"] for s in result.report["sections"])
    assert result.report["comparison"]["enabled"] is True
    first_chunk, last_chunk = generator.prompts[1], generator.prompts[2]
    assert "Include every top-level field" in first_chunk
    assert "Omit the comparison block." in first_chunk
    assert 'Include only the "sections" field.' in last_chunk
    assert "Omit the comparison block." not in last_chunk
    assert f"in this order: {', '.join(ids[10:])}" in last_chunk


@pytest.mark.asyncio
async def test_three_chunks_after_transport_failures(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    make_report_json: Any,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(ready_answers)
    ids = list(REQUIRED_SECTION_IDS)
    generator = scripted_generator(
        [
            NarrativeUnavailableError(),
            make_report_json(ids[:7]),
            NarrativeUnavailableError(),
            make_report_json(ids[:7]),
            make_report_json(ids[7:14]),
            make_report_json(ids[14:]),
        ]
    )

    result = await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert result.meta.strategy == "chunked-3"
    assert len(generator.prompts) == 6


@pytest.mark.asyncio
async def test_exhausted_strategies_raise_with_attempts(
    ready_answers: dict[str, Any], scripted_generator: Any, fixed_now: datetime
) -> None:
    registry, _ = await _registry(ready_answers)
    generator = scripted_generator(["no json here"])

    with pytest.raises(NarrativeUnavailableError) as exc_info:
        await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert exc_info.value.details["attempts"] == [
        {"strategy": "full", "code": "UPSTREAM_FORMAT_ERROR"},
        {"strategy": "chunked-2", "code": "NARRATIVE_UNAVAILABLE"},
        {"strategy": "chunked-3", "code": "NARRATIVE_UNAVAILABLE"},
    ]


@pytest.mark.asyncio
async def test_incomplete_project_is_blocked_before_generation(
    scripted_generator: Any, fixed_now: datetime
) -> None:
    registry, _ = await _registry({"project-name": "Harbor"})
    generator = scripted_generator([])

    with pytest.raises(ReportNotReadyError) as exc_info:
        await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert exc_info.value.missing
    assert exc_info.value.details == {"missing": exc_info.value.missing}
    assert generator.prompts == []


@pytest.mark.asyncio
async def test_stored_preferences_fill_language_and_comparison(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    full_report_json: str,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(
        ready_answers,
        {
            "p1:preferredLanguage": "fr",
            "p1:comparisonAnswers": json.dumps({"gold": True, "bonds": False}),
        },
    )
    generator = scripted_generator([full_report_json])

    result = await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert result.meta.language == "fr"
    assert "feasibility study in fr" in generator.prompts[0]
    assert result.report["comparison"]["table"]["rows"][0][0] == "gold"


@pytest.mark.asyncio
async def test_request_overrides_author_and_language(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    full_report_json: str,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(ready_answers, {"p1:preferredLanguage": "fr"})
    generator = scripted_generator([full_report_json])
    request = GenerateReportDTO(language="en", author=AuthorDTO(fullName="Sam Ortiz"))

    result = await _use_case(registry, generator, fixed_now).execute("p1", request)

    assert result.meta.language == "en"
    assert result.meta.author_info == "Author: Sam Ortiz | Email: dana@example.com"


@pytest.mark.asyncio
async def test_flush_failure_does_not_block_generation(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    full_report_json: str,
    fixed_now: datetime,
) -> None:
    store = InMemoryKeyValueStore()
    registry = AnswerSessionRegistry(store, debounce_s=60, throttle_s=60)
    await registry.get("p1").save(SaveAnswersDTO(answers=ready_answers, flush=False))
    store.fail_writes = True
    generator = scripted_generator([full_report_json])

    result = await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert result.meta.strategy == "full"
    assert registry.get("p1").has_pending_writes


def _attempts(strategy: str, outcome: str) -> float:
    labels = {"strategy": strategy, "outcome": outcome}
    return REGISTRY.get_sample_value("feasibility_report_strategy_total", labels) or 0.0


def _latency_count(outcome: str) -> float:
    labels = {"outcome": outcome}
    return REGISTRY.get_sample_value("feasibility_report_latency_seconds_count", labels) or 0.0


@pytest.mark.asyncio
async def test_strategy_fallbacks_and_latency_are_counted(
    ready_answers: dict[str, Any],
    scripted_generator: Any,
    make_report_json: Any,
    fixed_now: datetime,
) -> None:
    registry, _ = await _registry(ready_answers)
    ids = list(REQUIRED_SECTION_IDS)
    generator = scripted_generator(
        ["not json", make_report_json(ids[:10]), make_report_json(ids[10:])]
    )
    full_failed = _attempts("full", "UPSTREAM_FORMAT_ERROR")
    chunked_ok = _attempts("chunked-2", "success")
    succeeded = _latency_count("success")

    await _use_case(registry, generator, fixed_now).execute("p1", GenerateReportDTO())

    assert _attempts("full", "UPSTREAM_FORMAT_ERROR") == full_failed + 1
    assert _attempts("chunked-2", "success") == chunked_ok + 1
    assert _latency_count("success") == succeeded + 1


@pytest.mark.asyncio
async def test_blocked_report_latency_is_labelled_with_the_error_code(
    scripted_generator: Any, fixed_now: datetime
) -> None:
    registry, _ = await _registry({"project-name": "Harbor"})
    blocked = _latency_count("REPORT_NOT_READY")

    with pytest.raises(ReportNotReadyError):
        await _use_case(registry, scripted_generator([]), fixed_now).execute(
            "p1", GenerateReportDTO()
        )

    assert _latency_count("REPORT_NOT_READY") == blocked + 1
