# tests/unit/application/test_analyze_project.py
from __future__ import annotations

from typing import Any

import pytest

from feasibility_api.application.schemas.dto.answers import SaveAnswersDTO
from feasibility_api.application.use_cases.answers.save_answers import AnswerSessionRegistry
from feasibility_api.application.use_cases.reports.analyze_project import (
    AnalyzeProject,
    analyze_answers,
    answer_currency,
)
from feasibility_api.infrastructure.storage.memory_store import InMemoryKeyValueStore


def test_analyze_answers_accepts_raw_keys(ready_answers: dict[str, Any]) -> None:
    analysis, statements = analyze_answers({**ready_answers, "selectedCurrency": "EUR"}, years=3)

    assert len(analysis.years) == 3
    assert analysis.years[0].sales == pytest.approx(15000.0)
    assert statements["currency"] == "EUR"
    assert statements["incomeStatement"]["headers"] == ["Item", "Year 1", "Year 2", "Year 3"]


def test_answer_currency_prefers_selected_currency() -> None:
    assert answer_currency({"selectedCurrency": "USD", "currency": "EUR"}) == "USD"
    assert answer_currency({"currency": " "}) is None


@pytest.mark.asyncio
async def test_use_case_reads_stored_answers(ready_answers: dict[str, Any]) -> None:
    registry = AnswerSessionRegistry(InMemoryKeyValueStore(), debounce_s=0, throttle_s=0)
    await registry.get("p1").save(SaveAnswersDTO(answers=ready_answers))

    result = await AnalyzeProject(registry, years=2).execute("p1")

    assert set(result) == {"analysis", "statements"}
    assert len(result["analysis"]["years"]) == 2
    assert result["statements"]["incomeStatement"]["rows"][0][1] == "15,000.00"


@pytest.mark.asyncio
async def test_unknown_project_yields_sparse_analysis() -> None:
    registry = AnswerSessionRegistry(InMemoryKeyValueStore(), debounce_s=0, throttle_s=0)

    result = await AnalyzeProject(registry).execute("empty")

    assert result["statements"]["incomeStatement"]["rows"][0][1] == "Data required"
