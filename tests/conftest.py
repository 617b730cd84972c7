# tests/conftest.py
from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from datetime import UTC, datetime
from typing import Any

import pytest

from feasibility_api.config.settings import get_settings
from feasibility_api.dependencies.feasibility import reset_dependencies
from feasibility_api.domain.exceptions.narrative import NarrativeUnavailableError
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS

FIXED_NOW = datetime(2025, 3, 4, 9, 30, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Run every test against the in-memory store with fresh singletons."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("WRITE_DEBOUNCE_MS", "0")
    monkeypatch.setenv("WRITE_THROTTLE_MS", "0")
    monkeypatch.delenv("NARRATIVE_API_KEY", raising=False)
    get_settings.cache_clear()
    reset_dependencies()
    yield
    get_settings.cache_clear()
    reset_dependencies()


@pytest.fixture
def ready_answers() -> dict[str, Any]:
    """Raw answers that satisfy the report gate (mixed raw ids and canonical keys)."""
    return {
        "project-name": "Harbor Bakery",
        "project-type": "Bakery",
        "project-sector": "Food & Beverage",
        "project-idea": "Artisan bread and pastries for the old town",
        "market-size": "100,000",
        "competitors-count": "0",
        "marketing-cost": "200",
        "required-area": "120",
        "total-capital": "50000",
        "inventory-value": "4500",
        "fullName": "Dana Reyes",
        "email": "dana@example.com",
    }


def sections_for(ids: Sequence[str]) -> list[dict[str, Any]]:
    return [{"id": sid, "title": "x", "content": f"Narrative for {sid}."} for sid in ids]


def report_json(ids: Sequence[str] = REQUIRED_SECTION_IDS, **extra: Any) -> str:
    body: dict[str, Any] = {
        "title": "Harbor Bakery Feasibility Study",
        "language": "en",
        "executiveSummary": "Short summary.",
        "sections": sections_for(ids),
        "keywords": ["bakery"],
        "disclaimers": [],
    }
    body.update(extra)
    return json.dumps(body)


class ScriptedGenerator:
    """NarrativeGenerator fake replaying scripted outputs (or exceptions) in order."""

    def __init__(self, outputs: Sequence[str | Exception] | None = None) -> None:
        self._outputs = list(outputs or [])
        self.prompts: list[str] = []
        self.contexts: list[list[str]] = []

    async def generate(self, prompt: str, context_lines: Sequence[str] = ()) -> str:
        self.prompts.append(prompt)
        self.contexts.append(list(context_lines))
        if not self._outputs:
            raise NarrativeUnavailableError(details={"reason": "script_exhausted"})
        nxt = self._outputs.pop(0)
        if isinstance(nxt, Exception):
            raise nxt
        return nxt

    async def aclose(self) -> None:
        return None


@pytest.fixture
def scripted_generator() -> type[ScriptedGenerator]:
    return ScriptedGenerator


@pytest.fixture
def full_report_json() -> str:
    return report_json()


@pytest.fixture
def make_report_json() -> Any:
    return report_json


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
