# src/feasibility_api/domain/services/section_completeness.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Section completeness evaluator.

Purpose:
    Apply one presence predicate per structured section and report which
    sections are still empty; derive the report-generation gate from it.

Layer:
    domain/services

Notes:
    - A predicate that raises is treated as ``complete=False``; evaluation
      never raises upward.
    - Every predicate is monotone: adding a non-empty value to a section
      never flips it from complete to incomplete.
    - Completeness is advisory for persistence. Only report generation is
      gated, on the cover page plus ``REPORT_GATE_SECTIONS``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Final

from feasibility_api.domain.entities.completeness import CompletenessReport, ReportReadiness
from feasibility_api.domain.enums.section import SectionKey
from feasibility_api.domain.services.structured_sections import has_financial_table_data
from feasibility_api.domain.services.value_parsing import to_string_or_none

type SectionRule = Callable[[Any], bool]

SECTION_LABELS: Final[dict[str, str]] = {
    SectionKey.PROJECT_OVERVIEW.value: "Project Overview",
    SectionKey.MARKET.value: "Market Analysis",
    SectionKey.MARKETING.value: "Marketing Strategy",
    SectionKey.TECHNICAL.value: "Technical & Operational",
    SectionKey.TECHNOLOGY.value: "Technology",
    SectionKey.OPERATIONS.value: "Operations",
    SectionKey.ORGANIZATION.value: "Organization",
    SectionKey.LEGAL.value: "Legal",
    SectionKey.ENVIRONMENTAL.value: "Environmental",
    SectionKey.SOCIAL.value: "Social",
    SectionKey.CULTURAL.value: "Cultural",
    SectionKey.BEHAVIORAL.value: "Behavioral",
    SectionKey.POLITICAL.value: "Political",
    SectionKey.TIMING.value: "Timing",
    SectionKey.RISK.value: "Risk",
    SectionKey.ECONOMIC.value: "Economic",
    SectionKey.FINANCIAL.value: "Financial Feasibility",
    SectionKey.INVESTMENTS.value: "Additional Investments",
}

# Sections that block report generation, with the labels shown to the user.
REPORT_GATE_SECTIONS: Final[tuple[tuple[str, str], ...]] = (
    (SectionKey.PROJECT_OVERVIEW.value, "Project Overview"),
    (SectionKey.MARKET.value, "Market"),
    (SectionKey.MARKETING.value, "Marketing"),
    (SectionKey.TECHNICAL.value, "Technical"),
    (SectionKey.FINANCIAL.value, "Financial"),
)
COVER_PAGE_LABEL: Final[str] = "Cover Page"


# -----------------------------------------------------------------------------
# Predicates
# -----------------------------------------------------------------------------


def _has_text(value: Any) -> bool:
    return to_string_or_none(value) is not None


def _non_empty_list(value: Any) -> bool:
    return isinstance(value, list) and len(value) > 0


def has_populated_leaf(value: Any) -> bool:
    """Return ``True`` when any nested leaf holds a value (``0``/``False`` count)."""
    if value is None:
        return False
    if isinstance(value, Mapping):
        return any(has_populated_leaf(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _project_overview(section: Any) -> bool:
    return bool(section) and _has_text(section["mainProduct"])


def _market(section: Any) -> bool:
    return (
        bool(section)
        and section.get("marketSize") is not None
        and section.get("competitorsCount") is not None
    )


def _marketing(section: Any) -> bool:
    if not section:
        return False
    return (
        _non_empty_list(section.get("channels"))
        or _non_empty_list(section.get("marketingPlan"))
        or section.get("marketingCost") is not None
    )


def _technical(section: Any) -> bool:
    if not section:
        return False
    prop = section.get("property") or {}
    site = section.get("site") or {}
    equipment = section.get("equipment") or {}
    has_property = (
        prop.get("requiredArea") is not None
        or prop.get("propertyPrice") is not None
        or _has_text(prop.get("ownershipType"))
    )
    has_site = (
        _has_text(site.get("traffic"))
        or _has_text(site.get("parking"))
        or _non_empty_list(site.get("attractionPoints"))
    )
    return has_property or has_site or _non_empty_list(equipment.get("items"))


def _financial(section: Any) -> bool:
    if not section:
        return False
    capital = section.get("capital") or {}
    has_capital = any(
        _has_text(capital.get(k))
        for k in ("totalCapital", "operationalCosts", "paybackPeriod", "roiExpectation")
    )
    has_costs = bool(section.get("annualOperationalCosts"))
    return has_capital or has_financial_table_data(section.get("financialStatements")) or has_costs


COMPLETENESS_RULES: Final[dict[str, SectionRule]] = {
    SectionKey.PROJECT_OVERVIEW.value: _project_overview,
    SectionKey.MARKET.value: _market,
    SectionKey.MARKETING.value: _marketing,
    SectionKey.TECHNICAL.value: _technical,
    SectionKey.FINANCIAL.value: _financial,
    **{
        key.value: has_populated_leaf
        for key in SectionKey
        if key
        not in (
            SectionKey.PROJECT_OVERVIEW,
            SectionKey.MARKET,
            SectionKey.MARKETING,
            SectionKey.TECHNICAL,
            SectionKey.FINANCIAL,
        )
    },
}


# -----------------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------------


def compute_completeness(
    sections: Mapping[str, Any] | None,
    rules: Mapping[str, SectionRule] | None = None,
) -> CompletenessReport:
    """Evaluate every section rule, failing closed.

    Args:
        sections: Output of ``build_structured_sections``; anything else is
            treated as an empty mapping.
        rules: Optional rule override (defaults to ``COMPLETENESS_RULES``).

    Returns:
        CompletenessReport: Flags for every rule in ``SectionKey`` order.
    """
    data: Mapping[str, Any] = sections if isinstance(sections, Mapping) else {}
    active = COMPLETENESS_RULES if rules is None else rules
    flags: dict[str, bool] = {}
    missing: list[str] = []
    labels: list[str] = []
    for key, rule in active.items():
        try:
            complete = bool(rule(data.get(key)))
        except Exception:  # noqa: BLE001
            complete = False
        flags[key] = complete
        if not complete:
            missing.append(key)
            labels.append(SECTION_LABELS.get(key, key))
    return CompletenessReport(sections=flags, missing=tuple(missing), missing_labels=tuple(labels))


def has_cover_page(answers: Mapping[str, Any]) -> bool:
    """Return ``True`` when a project name plus a sector or type is present."""

    def has(key: str) -> bool:
        value = answers.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return True
        return _has_text(value)

    return has("projectName") and (has("projectSector") or has("projectType"))


def check_report_readiness(
    answers: Mapping[str, Any], completeness: CompletenessReport
) -> ReportReadiness:
    """Return the labels that block report generation.

    Args:
        answers: Canonical answers (cover-page fields are read from here).
        completeness: Current completeness report.

    Returns:
        ReportReadiness: ``ready`` when nothing is missing.
    """
    missing: list[str] = []
    if not has_cover_page(answers):
        missing.append(COVER_PAGE_LABEL)
    for key, label in REPORT_GATE_SECTIONS:
        if not completeness.is_section_complete(key):
            missing.append(label)
    return ReportReadiness(missing=tuple(missing))
