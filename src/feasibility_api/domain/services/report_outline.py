# src/feasibility_api/domain/services/report_outline.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Fixed narrative report outline.

Purpose:
    Declare the nineteen numbered report sections, their canonical titles and
    the page ordering contract shared by the payload assembler, the prompt
    builder and the report validator.

Layer:
    domain/services
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final


@dataclass(frozen=True, slots=True)
class ReportSection:
    """One numbered report section."""

    id: str
    title: str


REPORT_SECTIONS: Final[tuple[ReportSection, ...]] = (
    ReportSection("1-1", "Introduction"),
    ReportSection("1-2", "Project Concept Analysis"),
    ReportSection("1-3", "Market Feasibility Study"),
    ReportSection("1-4", "Marketing Strategy Analysis"),
    ReportSection("1-5", "Technical Feasibility Assessment"),
    ReportSection("1-6", "Technology Infrastructure Analysis"),
    ReportSection("1-7", "Operational Requirements Analysis"),
    ReportSection("1-8", "Organizational Structure Design"),
    ReportSection("1-9", "Legal and Regulatory Compliance"),
    ReportSection("1-10", "Environmental Impact Assessment"),
    ReportSection("1-11", "Social Impact Analysis"),
    ReportSection("1-12", "Cultural Context Analysis"),
    ReportSection("1-13", "Consumer Behavior Analysis"),
    ReportSection("1-14", "Political and Regulatory Environment"),
    ReportSection("1-15", "Project Timeline and Milestones"),
    ReportSection("1-16", "Risk Assessment and Mitigation"),
    ReportSection("1-17", "Economic Viability Analysis"),
    ReportSection("1-18", "Financial Feasibility Study"),
    ReportSection("1-19", "Additional Investment Requirements"),
)

REQUIRED_SECTION_IDS: Final[tuple[str, ...]] = tuple(s.id for s in REPORT_SECTIONS)
SECTION_TITLES: Final[dict[str, str]] = {s.id: s.title for s in REPORT_SECTIONS}

FINANCIAL_SECTION_ID: Final[str] = "1-18"
INVESTMENTS_SECTION_ID: Final[str] = "1-19"

PAGE_ORDER: Final[tuple[str, ...]] = (
    "coverPage",
    "executiveSummary",
    "tableOfContents",
    *(f"section:{sid}" for sid in REQUIRED_SECTION_IDS),
)


def split_section_ids(parts: int) -> list[list[str]]:
    """Split the section ids into ``parts`` contiguous batches.

    Batch size is ``ceil(19 / parts)``; the last batch takes the remainder.

    Args:
        parts: Number of batches (>= 1).

    Returns:
        list[list[str]]: Non-empty batches in report order.
    """
    if parts < 1:
        raise ValueError("parts must be >= 1")
    ids = list(REQUIRED_SECTION_IDS)
    size = -(-len(ids) // parts)
    return [ids[i : i + size] for i in range(0, len(ids), size)]
