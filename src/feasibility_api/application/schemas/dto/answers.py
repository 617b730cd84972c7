# src/feasibility_api/application/schemas/dto/answers.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application DTOs for answer persistence.

Purpose:
    Strict Pydantic DTOs for saving survey answers and reading back the
    derived completeness state.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from feasibility_api.application.schemas.dto.base import BaseDTO
from feasibility_api.domain.services.answer_merge import AnswerSource


class SaveAnswersDTO(BaseDTO):
    """Partial answer update.

    Attributes:
        answers: Raw answers keyed by any known field identifier.
        source: Origin of the update; decides merge precedence.
        flush: Persist immediately instead of through the write scheduler.
    """

    answers: dict[str, Any] = Field(default_factory=dict)
    source: AnswerSource = AnswerSource.FORM_FIELDS
    flush: bool = True


class SectionStateDTO(BaseDTO):
    """Completeness flag of one structured section."""

    complete: bool


class CompletenessDTO(BaseDTO):
    """Completeness snapshot plus the report-generation gate."""

    sections: dict[str, SectionStateDTO]
    missing: list[str]
    missing_labels: list[str] = Field(alias="missingLabels")
    is_complete: bool = Field(alias="isComplete")
    report_ready: bool = Field(alias="reportReady")
    blocking: list[str]


class AnswersSavedDTO(BaseDTO):
    """Result of a save: the record version and refreshed completeness."""

    project_id: str = Field(alias="projectId")
    version: int
    persisted: bool
    completeness: CompletenessDTO
