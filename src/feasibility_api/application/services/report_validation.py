# src/feasibility_api/application/services/report_validation.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative report validation.

Purpose:
    Enforce the report contract on generator output: exactly nineteen
    sections in fixed order with canonical titles, default ``content`` and
    ``tables``, the computed financial tables appended to the financial
    section, a comparison block whenever a comparison selection exists, and
    a usable executive summary.

Layer:
    application/services

Notes:
    - Missing sections are added empty; section prose is never synthesized.
    - Generator-provided tables in the financial section are kept and the
      computed statement tables are appended after them.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final

from feasibility_api.application.services.financial_tables import statements_to_tables
from feasibility_api.domain.services.report_outline import (
    FINANCIAL_SECTION_ID,
    REQUIRED_SECTION_IDS,
    SECTION_TITLES,
)

MIN_SUMMARY_WORDS: Final[int] = 300

COMPARISON_HEADERS: Final[tuple[str, ...]] = (
    "Option",
    "Key Metric",
    "Est. Return",
    "Risk Level",
    "Liquidity",
)
COMPARISON_NOTES: Final[str] = (
    "Comparison analysis: the table contrasts the selected investment options by return "
    "profile, risk exposure and liquidity. Figures are indicative and should be checked "
    "against current market data."
)
DEFAULT_CONFIDENTIALITY: Final[str] = "Confidential: for internal analysis only"

DEFAULT_EXECUTIVE_SUMMARY: Final[str] = (
    "This executive summary presents a structured overview of the proposed project and the "
    "evidence gathered to judge its feasibility. It places the initiative in its sector and "
    "location, restates the objectives declared by the project owner, and explains how the "
    "inputs supplied through the feasibility survey were turned into the analysis that follows. "
    "Where inputs were incomplete the report says so explicitly instead of estimating them, so "
    "that readers can see which conclusions rest on firm data and which still depend on further "
    "research.\n\n"
    "The market assessment considers the size of the addressable market, the number and "
    "strength of existing competitors, and the expected growth of demand over the projection "
    "horizon. It describes the target customers, the positioning the project intends to adopt, "
    "and the marketing channels chosen to reach those customers within the available budget. "
    "Differentiation, pricing and brand choices are reviewed against the competitive landscape "
    "described in the survey.\n\n"
    "The technical and operational review covers the equipment, premises and technology the "
    "project requires, the staffing plan and organizational structure, and the day to day "
    "processes needed to deliver the product or service reliably. Legal, regulatory, "
    "environmental, social and cultural factors are examined for their effect on licensing, "
    "public acceptance and long term sustainability.\n\n"
    "Risks are listed with their likelihood and impact, together with the contingency and "
    "control measures proposed by the owner. The economic section outlines the value the "
    "project is expected to add locally and its wider contribution to employment and trade.\n\n"
    "The financial section reports the projected income statement, balance sheet and cash "
    "flow statement, the main profitability and leverage ratios, and investment measures such "
    "as net present value, internal rate of return and payback period. Sensitivity scenarios "
    "show how results move when project cost, sales price or operating cost change. Taken "
    "together these findings give decision makers a clear basis for approving, revising or "
    "postponing the investment and for planning the next stage of due diligence."
)

# Empty merged report; chunk parts are folded into a copy of this.
_EMPTY_REPORT: Final[dict[str, Any]] = {
    "title": "",
    "language": "",
    "executiveSummary": "",
    "sections": [],
    "comparison": None,
    "keywords": [],
    "disclaimers": [],
}


def word_count(text: Any) -> int:
    """Return the whitespace-delimited word count of ``text`` (0 for non-strings)."""
    return len(text.split()) if isinstance(text, str) else 0


def _is_table(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("headers"), list)
        and isinstance(value.get("rows"), list)
    )


def reorder_and_fill_sections(sections: Any) -> list[dict[str, Any]]:
    """Return exactly the nineteen required sections in order.

    Sections are matched by ``id``; unknown ids are dropped and the first
    occurrence of a duplicate wins. Titles are forced to the canonical
    titles; ``content`` defaults to ``""``, ``tables`` to ``[]`` and
    ``wordCount`` to the content word count.
    """
    by_id: dict[str, Mapping[str, Any]] = {}
    for section in sections if isinstance(sections, list) else []:
        if isinstance(section, Mapping) and section.get("id") and section["id"] not in by_id:
            by_id[str(section["id"])] = section

    out: list[dict[str, Any]] = []
    for sid in REQUIRED_SECTION_IDS:
        given = dict(by_id.get(sid, {}))
        content = given.get("content")
        content = content if isinstance(content, str) else ""
        tables = given.get("tables")
        count = given.get("wordCount")
        out.append(
            {
                **given,
                "id": sid,
                "title": SECTION_TITLES[sid],
                "content": content,
                "tables": [t for t in tables if _is_table(t)] if isinstance(tables, list) else [],
                "wordCount": (
                    count
                    if isinstance(count, int) and not isinstance(count, bool)
                    else word_count(content)
                ),
            }
        )
    return out


def _dedupe(values: Iterable[Any]) -> list[Any]:
    out: list[Any] = []
    for value in values:
        if value not in out:
            out.append(value)
    return out


def merge_report_parts(parts: Sequence[Mapping[str, Any]], language: str) -> dict[str, Any]:
    """Fold chunked generator responses into one report.

    Metadata comes from the first part. Keywords and disclaimers are
    de-duplicated across parts, sections are de-duplicated by id (first
    wins), and the last enabled comparison block is kept.
    """
    merged = copy.deepcopy(_EMPTY_REPORT)
    merged["language"] = language
    seen_ids: set[str] = set()
    for index, part in enumerate(parts):
        if index == 0:
            merged["title"] = part.get("title") or merged["title"]
            merged["language"] = part.get("language") or merged["language"]
            merged["executiveSummary"] = part.get("executiveSummary") or ""
            if isinstance(part.get("coverPage"), Mapping):
                merged["coverPage"] = part["coverPage"]
        for field in ("keywords", "disclaimers"):
            if isinstance(part.get(field), list):
                merged[field] = _dedupe([*merged[field], *part[field]])
        for section in part.get("sections") or []:
            sid = section.get("id") if isinstance(section, Mapping) else None
            if sid and sid not in seen_ids:
                merged["sections"].append(section)
                seen_ids.add(sid)
        comparison = part.get("comparison")
        if isinstance(comparison, Mapping) and comparison.get("enabled"):
            merged["comparison"] = comparison
    return merged


def build_comparison(existing: Any, selection: Sequence[str] | None) -> dict[str, Any] | None:
    """Return the comparison block, or ``None`` without a selection.

    A missing or malformed table is replaced by one row per selected option;
    blank notes get the default note.
    """
    if not selection:
        return None
    comparison = dict(existing) if isinstance(existing, Mapping) else {}
    comparison["enabled"] = True
    if not _is_table(comparison.get("table")):
        comparison["table"] = {
            "headers": list(COMPARISON_HEADERS),
            "rows": [
                [str(option).replace("_", " "), "Representative Index", "Est.", "Medium", "Medium"]
                for option in selection
            ],
        }
    notes = comparison.get("notes")
    if not isinstance(notes, str) or not notes.strip():
        comparison["notes"] = COMPARISON_NOTES
    return comparison


def inject_financial_tables(
    sections: list[dict[str, Any]], statements: Mapping[str, Any] | None
) -> list[dict[str, Any]]:
    """Append the computed statement tables to the financial section."""
    tables = statements_to_tables(statements)
    if not tables:
        return sections
    for section in sections:
        if section.get("id") == FINANCIAL_SECTION_ID:
            section["tables"] = [*section.get("tables", []), *tables]
    return sections


def finalize_report(
    report: Mapping[str, Any],
    *,
    language: str,
    cover_page: Mapping[str, Any],
    financial_statements: Mapping[str, Any] | None,
    comparison: Sequence[str] | None,
) -> dict[str, Any]:
    """Apply every structural guarantee to a parsed or merged report.

    Args:
        report: Parsed generator output.
        language: Report language.
        cover_page: Locally built cover page, used when the generator
            omitted one.
        financial_statements: Statement mirror attached as ``financial``.
        comparison: Comparison selection.

    Returns:
        dict[str, Any]: New report object; ``report`` is not mutated.
    """
    final = copy.deepcopy(dict(report))
    final.setdefault("language", language)
    final["comparison"] = build_comparison(final.get("comparison"), comparison)
    final["sections"] = inject_financial_tables(
        reorder_and_fill_sections(final.get("sections")), financial_statements
    )
    if financial_statements:
        final["financial"] = copy.deepcopy(dict(financial_statements))
    if not isinstance(final.get("coverPage"), Mapping):
        final["coverPage"] = copy.deepcopy(dict(cover_page))
    if word_count(final.get("executiveSummary")) < MIN_SUMMARY_WORDS:
        final["executiveSummary"] = DEFAULT_EXECUTIVE_SUMMARY
    for field in ("keywords", "disclaimers"):
        if not isinstance(final.get(field), list):
            final[field] = []
    return final


def build_report_meta(
    cover_page: Mapping[str, Any], report: Mapping[str, Any], language: str
) -> dict[str, str]:
    """Return renderer metadata derived from the cover page."""
    basic = cover_page.get("basicInfo") or {}
    author = cover_page.get("author") or {}
    location = ", ".join(v for v in (basic.get("country"), basic.get("city")) if v)
    project_info = [
        f"Project: {cover_page['projectName']}" if cover_page.get("projectName") else None,
        f"Sector: {basic['sector']}" if basic.get("sector") else None,
        f"Type: {basic['projectType']}" if basic.get("projectType") else None,
        f"Location: {location}" if location else None,
    ]
    author_info = [
        f"Author: {author['fullName']}" if author.get("fullName") else None,
        f"Email: {author['email']}" if author.get("email") else None,
    ]
    timestamp = (cover_page.get("timestamp") or {}).get("iso", "")
    return {
        "language": language,
        "timestamp": timestamp,
        "projectName": cover_page.get("projectName") or report.get("title") or "Project",
        "projectInfo": " | ".join(p for p in project_info if p),
        "authorInfo": " | ".join(a for a in author_info if a),
        "confidentiality": cover_page.get("confidentiality") or DEFAULT_CONFIDENTIALITY,
    }
