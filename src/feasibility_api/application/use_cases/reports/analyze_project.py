# src/feasibility_api/application/use_cases/reports/analyze_project.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Use Case: Analyze Project Financials

Purpose:
    Run the financial projection over a project's merged answers and return
    both the raw analysis and its rendered statement tables.

Layer: application/use_cases
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from feasibility_api.application.services.financial_tables import build_financial_statements
from feasibility_api.application.use_cases.answers.save_answers import AnswerSessionRegistry
from feasibility_api.domain.entities.financials import FinancialAnalysis
from feasibility_api.domain.services.financial_projection import (
    DEFAULT_PROJECTION_YEARS,
    analyze,
)
from feasibility_api.domain.services.field_mapping import canonicalize_answers
from feasibility_api.domain.services.projection_inputs import ProjectionInputs
from feasibility_api.domain.services.value_parsing import first_present, to_string_or_none


def answer_currency(answers: Mapping[str, Any]) -> str | None:
    """Return the currency label chosen in the answers, if any."""
    return to_string_or_none(first_present(answers, ("selectedCurrency", "currency")))


def analyze_answers(
    answers: Mapping[str, Any], years: int = DEFAULT_PROJECTION_YEARS
) -> tuple[FinancialAnalysis, dict[str, Any]]:
    """Project canonical (or raw) answers.

    Args:
        answers: Answer map; raw keys are canonicalized first.
        years: Projection horizon.

    Returns:
        tuple[FinancialAnalysis, dict[str, Any]]: Analysis and its statement
        mirror.
    """
    canonical = canonicalize_answers(answers)
    analysis = analyze(ProjectionInputs.from_answers(canonical), years)
    statements = build_financial_statements(analysis, currency=answer_currency(canonical))
    return analysis, statements


class AnalyzeProject:
    """Use case returning the projection for a stored project.

    Args:
        sessions: Answer session registry.
        years: Projection horizon.
    """

    def __init__(
        self, sessions: AnswerSessionRegistry, *, years: int = DEFAULT_PROJECTION_YEARS
    ) -> None:
        self._sessions = sessions
        self._years = years

    async def execute(self, project_id: str) -> dict[str, Any]:
        """Return ``{"analysis": ..., "statements": ...}`` for ``project_id``.

        Raises:
            StorageUnavailableError: If the store cannot be initialized.
        """
        session = self._sessions.get(project_id)
        await session.load()
        analysis, statements = analyze_answers(session.snapshot(), self._years)
        return {"analysis": analysis.to_dict(), "statements": statements}
