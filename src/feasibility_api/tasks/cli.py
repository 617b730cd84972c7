# src/feasibility_api/tasks/cli.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Feasibility CLI: offline commands over an answers file.

Commands:
    analyze FILE        Financial projection and statement tables.
    completeness FILE   Section completeness and report readiness.
    payload FILE        Size-fitted report payload as sent to the generator.

Input:
    FILE is JSON. Either a flat answer map (any known field identifiers), or
    an object keyed by persisted record names (``feasibilityStudyAnswers``,
    ``simulatedFeasibilityAnswers``, ``startFeasibilityForm``,
    ``userInfo``), which are merged by source precedence.

Environment:
    LOG_LEVEL   Root log level (default WARNING so stdout stays pure JSON).
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Annotated, Any

import typer

from feasibility_api.application.services.report_payload import (
    DEFAULT_MAX_CHARS,
    assemble_payload,
    build_cover_page,
    build_section_inputs,
    fit_to_limit,
)
from feasibility_api.application.use_cases.answers.save_answers import (
    RECORD_SOURCES,
    completeness_dto,
)
from feasibility_api.application.use_cases.reports.analyze_project import analyze_answers
from feasibility_api.domain.services.answer_merge import NamedSource, merge_named
from feasibility_api.domain.services.field_mapping import canonicalize_answers
from feasibility_api.domain.services.financial_projection import DEFAULT_PROJECTION_YEARS
from feasibility_api.domain.services.section_completeness import (
    check_report_readiness,
    compute_completeness,
)
from feasibility_api.domain.services.structured_sections import build_structured_sections
from feasibility_api.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging(os.getenv("LOG_LEVEL", "WARNING"))
log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)

FileArg = Annotated[
    Path, typer.Argument(exists=True, dir_okay=False, readable=True, help="Answers JSON file.")
]


def load_answers(path: Path) -> dict[str, Any]:
    """Read ``path`` and return merged canonical answers.

    Raises:
        typer.BadParameter: If the file is not a JSON object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise typer.BadParameter(f"{path} must contain a JSON object")
    records = {key.value: source for key, source in RECORD_SOURCES}
    if any(name in data for name in records):
        return merge_named(
            NamedSource(source, canonicalize_answers(data.get(name) or {}))
            for name, source in records.items()
            if isinstance(data.get(name) or {}, dict)
        )
    return canonicalize_answers(data)


def _emit(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


@app.command("analyze")
def analyze_cmd(
    file: FileArg,
    years: Annotated[
        int, typer.Option(min=1, max=30, help="Projection horizon in years.")
    ] = DEFAULT_PROJECTION_YEARS,
) -> None:
    """Print the financial analysis and its statement tables."""
    analysis, statements = analyze_answers(load_answers(file), years)
    _emit({"analysis": analysis.to_dict(), "statements": statements})


@app.command("completeness")
def completeness_cmd(file: FileArg) -> None:
    """Print section completeness and the report gate."""
    answers = load_answers(file)
    report = compute_completeness(build_structured_sections(answers))
    readiness = check_report_readiness(answers, report)
    _emit(completeness_dto(report, readiness).model_dump(by_alias=True))


@app.command("payload")
def payload_cmd(
    file: FileArg,
    language: Annotated[str, typer.Option(help="Report language.")] = "en",
    max_chars: Annotated[
        int, typer.Option(min=1000, help="Serialized size budget.")
    ] = DEFAULT_MAX_CHARS,
    years: Annotated[int, typer.Option(min=1, max=30)] = DEFAULT_PROJECTION_YEARS,
) -> None:
    """Print the size-fitted report payload."""
    answers = load_answers(file)
    _, statements = analyze_answers(answers, years)
    cover = build_cover_page(answers, language=language)
    payload = assemble_payload(
        cover_page=cover,
        section_inputs=build_section_inputs(answers, statements),
        raw_answers=answers,
        author=cover.get("author") or {},
        comparison=None,
        language=language,
        financial_statements=statements,
    )
    fitted = fit_to_limit(payload, max_chars)
    log.info("cli.payload.built", extra={"extra": {"file": str(file)}})
    _emit(fitted)


if __name__ == "__main__":  # pragma: no cover
    app()
