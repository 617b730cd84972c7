# src/feasibility_api/application/use_cases/reports/generate_report.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Use Case: Generate Narrative Report

Purpose:
    Gate, assemble and request the narrative report for a project, then
    enforce the report contract on whatever the generator returns.

Layer: application/use_cases

Notes:
    - Pending answer writes are flushed first. A failed flush is logged and
      generation continues from the in-memory snapshot.
    - Generation strategy: one full request, then the nineteen sections in
      two batches, then in three batches. Each step runs only when the
      previous one failed to produce a parseable report.
    - Exhausting every strategy raises :class:`NarrativeUnavailableError`.
    - Every strategy attempt is counted by outcome and the use case latency
      is observed via Prometheus.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from contextlib import suppress
from datetime import UTC, datetime
from time import perf_counter
from typing import Any, Final

from feasibility_api.application.interfaces.narrative_port import NarrativeGenerator
from feasibility_api.application.schemas.dto.report import (
    GeneratedReportDTO,
    GenerateReportDTO,
    ReportMetaDTO,
)
from feasibility_api.application.services.prompt_builder import build_prompt
from feasibility_api.application.services.report_parsing import parse_model_json
from feasibility_api.application.services.report_payload import (
    DEFAULT_MAX_CHARS,
    assemble_payload,
    build_context_lines,
    build_cover_page,
    build_section_inputs,
    fit_to_limit,
)
from feasibility_api.application.services.report_validation import (
    build_report_meta,
    finalize_report,
    merge_report_parts,
)
from feasibility_api.application.use_cases.answers.save_answers import (
    DEFAULT_SENTENCE_CAP,
    AnswerSessionRegistry,
)
from feasibility_api.application.use_cases.reports.analyze_project import analyze_answers
from feasibility_api.domain.enums.storage_key import StorageKey
from feasibility_api.domain.exceptions.base import DomainError
from feasibility_api.domain.exceptions.narrative import (
    NarrativeUnavailableError,
    UpstreamFormatError,
)
from feasibility_api.domain.exceptions.report import ReportNotReadyError
from feasibility_api.domain.exceptions.storage import StorageUnavailableError
from feasibility_api.domain.services.financial_projection import DEFAULT_PROJECTION_YEARS
from feasibility_api.domain.services.narrative_formatters import survey_sentences
from feasibility_api.domain.services.report_outline import split_section_ids
from feasibility_api.domain.services.value_parsing import is_truthy, to_string_or_none
from feasibility_api.infrastructure.logging.logger import get_json_logger
from feasibility_api.infrastructure.observability.metrics import (
    get_report_latency_seconds,
    get_report_strategy_total,
)

logger = get_json_logger(__name__)

# Batch counts tried after the full request fails.
CHUNK_STRATEGIES: Final[tuple[int, ...]] = (2, 3)
CHUNK_MAX_CHARS: Final[int] = 30000


def comparison_selection(value: Any) -> list[str]:
    """Normalize a stored comparison selection into option names.

    Lists keep their non-blank string items; mappings keep the keys whose
    value is truthy (checkbox-style records).
    """
    if isinstance(value, list):
        return [s for s in (to_string_or_none(v) for v in value) if s]
    if isinstance(value, dict):
        return [str(k) for k, v in value.items() if v is True or is_truthy(v)]
    return []


def _count_attempt(strategy: str, outcome: str) -> None:
    with suppress(Exception):
        get_report_strategy_total().labels(strategy=strategy, outcome=outcome).inc()


class GenerateReport:
    """Use case producing a validated narrative report.

    Args:
        sessions: Answer session registry (also exposes the store).
        generator: Narrative generator port.
        years: Projection horizon.
        default_language: Language used when neither the request nor the
            stored preference names one.
        payload_max_chars: Size budget for the full request.
        chunk_max_chars: Size budget for each chunked request.
        sentence_cap: Maximum survey sentences sent as context lines.
        now: Clock for the cover-page timestamp.

    Raises:
        ReportNotReadyError: If the readiness gate fails.
        NarrativeUnavailableError: If no strategy yields a report.
    """

    def __init__(
        self,
        sessions: AnswerSessionRegistry,
        generator: NarrativeGenerator,
        *,
        years: int = DEFAULT_PROJECTION_YEARS,
        default_language: str = "en",
        payload_max_chars: int = DEFAULT_MAX_CHARS,
        chunk_max_chars: int = CHUNK_MAX_CHARS,
        sentence_cap: int = DEFAULT_SENTENCE_CAP,
        now: Callable[[], datetime] = lambda: datetime.now(tz=UTC),
    ) -> None:
        self._sessions = sessions
        self._generator = generator
        self._years = years
        self._default_language = default_language
        self._payload_max_chars = payload_max_chars
        self._chunk_max_chars = chunk_max_chars
        self._sentence_cap = sentence_cap
        self._now = now

    async def execute(self, project_id: str, request: GenerateReportDTO) -> GeneratedReportDTO:
        """Generate the report for ``project_id``.

        Args:
            project_id: Project identifier.
            request: Language, author, comparison and guidance overrides.

        Returns:
            GeneratedReportDTO: Validated report and renderer metadata.
        """
        start = perf_counter()
        outcome = "error"
        try:
            result = await self._execute(project_id, request)
            outcome = "success"
            return result
        except DomainError as exc:
            outcome = exc.code
            raise
        finally:
            with suppress(Exception):
                get_report_latency_seconds().labels(outcome=outcome).observe(
                    perf_counter() - start
                )

    async def _execute(self, project_id: str, request: GenerateReportDTO) -> GeneratedReportDTO:
        session = self._sessions.get(project_id)
        await session.load()
        try:
            await session.flush()
        except StorageUnavailableError as exc:
            logger.warning(
                "report.flush.failed",
                extra={"extra": {"project_id": project_id, "reason": str(exc)}},
            )

        readiness = session.readiness()
        if not readiness.ready:
            logger.info(
                "report.blocked",
                extra={"extra": {"project_id": project_id, "missing": list(readiness.missing)}},
            )
            raise ReportNotReadyError(readiness.missing)

        store = self._sessions.store
        answers = session.snapshot()
        language = (
            request.language
            or await store.get_string(session.key(StorageKey.PREFERRED_LANGUAGE))
            or self._default_language
        )
        if request.comparison is not None:
            comparison = comparison_selection(request.comparison)
        else:
            comparison = comparison_selection(
                await store.get_json(session.key(StorageKey.COMPARISON_ANSWERS), None)
            )

        _, statements = analyze_answers(answers, self._years)
        author = request.author.model_dump(by_alias=True) if request.author else None
        cover = build_cover_page(answers, language=language, author=author, now=self._now)
        payload = assemble_payload(
            cover_page=cover,
            section_inputs=build_section_inputs(answers, statements),
            raw_answers=answers,
            author=cover.get("author") or {},
            comparison=comparison,
            language=language,
            financial_statements=statements,
        )
        context = build_context_lines(cover, survey_sentences(answers, self._sentence_cap))

        report, strategy = await self._generate(
            project_id, payload, context, language, request.expert_prompt
        )
        final = finalize_report(
            report,
            language=language,
            cover_page=cover,
            financial_statements=statements,
            comparison=comparison,
        )
        meta = ReportMetaDTO(**build_report_meta(cover, final, language), strategy=strategy)
        logger.info(
            "report.generated",
            extra={"extra": {"project_id": project_id, "strategy": strategy, "language": language}},
        )
        return GeneratedReportDTO(report=final, meta=meta)

    # ------------------------------------------------------------------ #
    # Strategies
    # ------------------------------------------------------------------ #
    async def _generate(
        self,
        project_id: str,
        payload: dict[str, Any],
        context: Sequence[str],
        language: str,
        expert_prompt: str | None,
    ) -> tuple[dict[str, Any], str]:
        failures: list[dict[str, str]] = []
        try:
            prompt = build_prompt(
                language, expert_prompt, fit_to_limit(payload, self._payload_max_chars)
            )
            report = parse_model_json(await self._generator.generate(prompt, context))
            _count_attempt("full", "success")
            return report, "full"
        except (UpstreamFormatError, NarrativeUnavailableError) as exc:
            _count_attempt("full", exc.code)
            failures.append({"strategy": "full", "code": exc.code})
            self._log_failure(project_id, "full", exc)

        chunk_data = fit_to_limit(payload, self._chunk_max_chars)
        for parts in CHUNK_STRATEGIES:
            strategy = f"chunked-{parts}"
            try:
                report = await self._generate_chunked(
                    chunk_data, context, language, expert_prompt, parts
                )
                _count_attempt(strategy, "success")
                return report, strategy
            except (UpstreamFormatError, NarrativeUnavailableError) as exc:
                _count_attempt(strategy, exc.code)
                failures.append({"strategy": strategy, "code": exc.code})
                self._log_failure(project_id, strategy, exc)

        raise NarrativeUnavailableError(details={"attempts": failures})

    async def _generate_chunked(
        self,
        data: dict[str, Any],
        context: Sequence[str],
        language: str,
        expert_prompt: str | None,
        parts: int,
    ) -> dict[str, Any]:
        batches = split_section_ids(parts)
        responses: list[dict[str, Any]] = []
        for index, batch in enumerate(batches):
            prompt = build_prompt(
                language,
                expert_prompt,
                data,
                section_ids=batch,
                include_meta=index == 0,
                include_comparison=index == len(batches) - 1,
            )
            responses.append(parse_model_json(await self._generator.generate(prompt, context)))
        return merge_report_parts(responses, language)

    @staticmethod
    def _log_failure(project_id: str, strategy: str, exc: Exception) -> None:
        logger.warning(
            "report.strategy.failed",
            extra={
                "extra": {
                    "project_id": project_id,
                    "strategy": strategy,
                    "error": type(exc).__name__,
                    "reason": str(exc),
                }
            },
        )
