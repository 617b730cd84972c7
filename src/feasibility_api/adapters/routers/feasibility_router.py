# src/feasibility_api/adapters/routers/feasibility_router.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Feasibility Router.

Summary:
    Answer capture, completeness, financial analysis and report generation
    for one feasibility project.

Layer:
    adapters/routers

Notes:
    Domain errors propagate to the application-level handlers, which map
    their ``code`` to a status and the standard error envelope.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Path, status

from feasibility_api.application.schemas.dto.answers import (
    AnswersSavedDTO,
    CompletenessDTO,
    SaveAnswersDTO,
)
from feasibility_api.application.schemas.dto.report import (
    GeneratedReportDTO,
    GenerateReportDTO,
)
from feasibility_api.application.use_cases.answers.save_answers import (
    AnswerSessionRegistry,
    completeness_dto,
)
from feasibility_api.application.use_cases.reports.analyze_project import AnalyzeProject
from feasibility_api.application.use_cases.reports.generate_report import GenerateReport
from feasibility_api.dependencies.feasibility import (
    get_analyze_project,
    get_generate_report,
    get_session_registry,
)

router = APIRouter(prefix="/v1/projects", tags=["Feasibility"])

ProjectId = Annotated[
    str, Path(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_.\-]+$")
]


@router.put(
    "/{project_id}/answers",
    response_model=AnswersSavedDTO,
    response_model_by_alias=True,
    status_code=status.HTTP_200_OK,
    summary="Merge a partial answer update",
)
async def save_answers(
    project_id: ProjectId,
    body: SaveAnswersDTO,
    registry: Annotated[AnswerSessionRegistry, Depends(get_session_registry)],
) -> AnswersSavedDTO:
    """Merge ``body.answers`` into the project's record and refresh completeness."""
    return await registry.get(project_id).save(body)


@router.get(
    "/{project_id}/completeness",
    response_model=CompletenessDTO,
    response_model_by_alias=True,
    summary="Section completeness and report readiness",
)
async def get_completeness(
    project_id: ProjectId,
    registry: Annotated[AnswerSessionRegistry, Depends(get_session_registry)],
) -> CompletenessDTO:
    session = registry.get(project_id)
    await session.load()
    return completeness_dto(session.completeness, session.readiness())


@router.get(
    "/{project_id}/analysis",
    summary="Financial projection and statement tables",
)
async def get_analysis(
    project_id: ProjectId,
    uc: Annotated[AnalyzeProject, Depends(get_analyze_project)],
) -> dict[str, Any]:
    return await uc.execute(project_id)


@router.post(
    "/{project_id}/report",
    response_model=GeneratedReportDTO,
    response_model_by_alias=True,
    summary="Generate the narrative feasibility report",
)
async def generate_report(
    project_id: ProjectId,
    body: GenerateReportDTO,
    uc: Annotated[GenerateReport, Depends(get_generate_report)],
) -> GeneratedReportDTO:
    """Generate the report.

    Returns 422 ``REPORT_NOT_READY`` when required sections are incomplete and
    503 ``NARRATIVE_UNAVAILABLE`` when the generator cannot produce a report.
    """
    return await uc.execute(project_id, body)
