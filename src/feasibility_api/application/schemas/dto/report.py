# src/feasibility_api/application/schemas/dto/report.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Application DTOs for report generation.

Layer:
    application/schemas/dto
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from feasibility_api.application.schemas.dto.base import BaseDTO


class AuthorDTO(BaseDTO):
    """Report author shown on the cover page."""

    full_name: str | None = Field(default=None, alias="fullName")
    email: str | None = None


class GenerateReportDTO(BaseDTO):
    """Report generation request.

    Attributes:
        language: Output language; defaults to the persisted preference.
        author: Optional author override (falls back to ``userInfo``).
        comparison: Optional comparison selection (falls back to the
            persisted ``comparisonAnswers``).
        expert_prompt: Optional extra guidance appended to the instructions.
    """

    language: str | None = Field(default=None, max_length=16)
    author: AuthorDTO | None = None
    comparison: list[str] | None = None
    expert_prompt: str | None = Field(default=None, alias="expertPrompt", max_length=4000)


class ReportMetaDTO(BaseDTO):
    """Metadata handed to the document renderer."""

    language: str
    timestamp: str
    project_name: str = Field(alias="projectName")
    project_info: str = Field(alias="projectInfo")
    author_info: str = Field(alias="authorInfo")
    confidentiality: str
    strategy: str


class GeneratedReportDTO(BaseDTO):
    """Validated narrative report plus renderer metadata."""

    report: dict[str, Any]
    meta: ReportMetaDTO
