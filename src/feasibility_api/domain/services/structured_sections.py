# src/feasibility_api/domain/services/structured_sections.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Structured section builder.

Purpose:
    Transform a canonical flat answer map into the eighteen nested sections
    consumed by completeness checks, the payload assembler and the projection
    input extractor.

Layer:
    domain/services

Design:
    - Pure and total: any mapping (even empty) yields the full shape.
    - Every documented key is always present. Absence is ``None`` for scalars
      and ``[]`` for lists, never a placeholder string.
    - When several legacy keys feed one field the first non-empty one wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Final

from feasibility_api.domain.services.value_parsing import (
    dedupe_strings,
    ensure_string_list,
    first_present,
    is_truthy,
    normalize_investment_table,
    normalize_license_table,
    normalize_risk_table,
    normalize_staff_table,
    normalize_technology_table,
    parse_equipment_list,
    to_number_or_none,
    to_string_or_none,
)

BRAND_LABELS: Final[dict[str, str]] = {
    "sustainableFocus": "Sustainable fashion",
    "ecoFriendly": "Eco-friendly",
    "localArtisans": "Supports local artisans",
    "organicMaterials": "Uses organic materials",
    "recycledMaterials": "Uses recycled materials",
    "limitedEditions": "Limited editions",
    "socialMediaFocus": "Social media focused",
    "influencerCollaborations": "Influencer collaborations",
    "popupEvents": "Pop-up events",
    "communityWorkshops": "Community workshops",
    "brandStorytelling": "Brand storytelling",
}

FINANCIAL_TABLE_KEYS: Final[tuple[str, ...]] = ("incomeStatement", "balanceSheet", "cashFlow")
COST_OBJECT_KEYS: Final[tuple[str, ...]] = ("utilities", "operations", "depreciation")


def _s(src: Mapping[str, Any], *keys: str) -> str | None:
    return to_string_or_none(first_present(src, keys))


def _n(src: Mapping[str, Any], *keys: str) -> float | None:
    return to_number_or_none(first_present(src, keys))


def _list(src: Mapping[str, Any], *keys: str) -> list[str]:
    return ensure_string_list(first_present(src, keys))


def brand_attributes(src: Mapping[str, Any]) -> list[str]:
    """Return labels of the brand-identity flags answered truthy."""
    return [label for key, label in BRAND_LABELS.items() if is_truthy(src.get(key))]


def normalize_cost_object(value: Any) -> dict[str, float]:
    """Keep numeric ``utilities``/``operations``/``depreciation`` entries only."""
    if not isinstance(value, Mapping):
        return {}
    out: dict[str, float] = {}
    for key in COST_OBJECT_KEYS:
        number = to_number_or_none(value.get(key))
        if number is not None:
            out[key] = number
    return out


def sanitize_table(table: Any) -> dict[str, list[Any]] | None:
    """Return ``{headers, rows}`` with string cells (``"?"`` for blanks), or ``None``."""
    if not isinstance(table, Mapping):
        return None
    raw_headers = table.get("headers")
    raw_rows = table.get("rows")
    headers = (
        [to_string_or_none(c) or "?" for c in raw_headers]
        if isinstance(raw_headers, (list, tuple))
        else []
    )
    rows = (
        [
            [to_string_or_none(c) or "?" for c in row] if isinstance(row, (list, tuple)) else []
            for row in raw_rows
        ]
        if isinstance(raw_rows, (list, tuple))
        else []
    )
    if not headers and not rows:
        return None
    return {"headers": headers, "rows": rows}


def normalize_financial_statements(value: Any) -> dict[str, Any]:
    """Sanitize user-supplied financial statement tables and ROI figures."""
    out: dict[str, Any] = {}
    if not isinstance(value, Mapping):
        return out
    for key in FINANCIAL_TABLE_KEYS:
        table = sanitize_table(value.get(key))
        if table is not None:
            out[key] = table
    assumptions = value.get("assumptions")
    out["assumptions"] = (
        [a for a in (to_string_or_none(x) for x in assumptions) if a]
        if isinstance(assumptions, (list, tuple))
        else []
    )
    if isinstance(value.get("ratios"), list):
        out["ratios"] = value["ratios"]
    roi = value.get("roi")
    if isinstance(roi, Mapping):
        out["roi"] = {
            "npv": roi.get("npv"),
            "irr": roi.get("irr"),
            "paybackPeriod": roi.get("paybackPeriod"),
        }
    out["currency"] = to_string_or_none(value.get("currency"))
    return out


def has_financial_table_data(statements: Any) -> bool:
    """Return ``True`` when any statement table has both headers and rows."""
    if not isinstance(statements, Mapping):
        return False
    for key in FINANCIAL_TABLE_KEYS:
        table = statements.get(key)
        if isinstance(table, Mapping) and table.get("headers") and table.get("rows"):
            return True
    return False


def build_structured_sections(answers: Mapping[str, Any]) -> dict[str, Any]:
    """Build the eighteen structured sections from canonical answers.

    Args:
        answers: Canonical answer map. Non-mapping input is treated as empty.

    Returns:
        dict[str, Any]: Section key -> nested section object.
    """
    src: Mapping[str, Any] = answers if isinstance(answers, Mapping) else {}
    brand = brand_attributes(src)

    return {
        "projectOverview": {
            "mainProduct": _s(src, "projectIdea"),
            "problemSolved": _s(src, "problemSolution"),
            "businessModel": {
                "models": _list(src, "businessModel"),
                "other": _s(src, "businessModelOther"),
            },
            "distributionChannels": _list(src, "distributionChannels"),
            "brandIdentity": {"businessType": _s(src, "businessType"), "attributes": brand},
        },
        "market": {
            "marketSize": _n(src, "marketSize"),
            "potentialCustomers": _n(src, "potentialCustomers"),
            "growthRate": _n(src, "growthRate"),
            "growthFactors": _s(src, "growthFactors"),
            "competitorsCount": _n(src, "competitorsCount"),
            "marketGap": {
                "status": _s(src, "marketGap"),
                "explanation": _s(src, "gapExplanation"),
            },
            "feasibility": {
                "assessment": _s(src, "marketFeasibility"),
                "notes": _s(src, "marketNotes"),
            },
        },
        "marketing": {
            "targetAge": _s(src, "targetAge"),
            "customerIncome": _n(src, "customerIncome"),
            "channels": dedupe_strings(_list(src, "marketingChannels")),
            "channelsOther": _s(src, "marketingChannelsOther"),
            "marketingPlan": _list(src, "marketingPlan"),
            "marketingCost": _n(src, "marketingCost"),
            "competitiveAdvantage": _s(src, "competitiveAdvantage"),
            "reachability": _s(src, "reachability"),
            "notes": _s(src, "marketingNotes"),
            "brandIdentityFeatures": list(brand),
        },
        "technical": {
            "property": {
                "requiredArea": _n(src, "requiredArea"),
                "ownershipType": _s(src, "ownershipType"),
                "propertyPrice": _n(src, "propertyPrice"),
                "monthlyRent": _n(src, "monthlyRent"),
            },
            "site": {
                "traffic": _s(src, "locationTraffic"),
                "parking": _s(src, "parkingAvailability"),
                "attractionPoints": _list(src, "attractionPoints"),
                "otherAttractions": _s(src, "otherAttractionsText"),
            },
            "equipment": {"items": parse_equipment_list(src.get("equipmentList"))},
            "inventory": {
                "inventoryValue": _n(src, "inventoryValue"),
                "goodsTypes": _s(src, "goodsTypes"),
            },
            "feasibility": _s(src, "technicalFeasibility"),
            "notes": _s(src, "technicalNotes"),
        },
        "technology": {
            "stack": normalize_technology_table(src.get("technologyTable")),
            "modernity": _s(src, "technologyModernity", "technologyMaturity"),
            "maintenance": {
                "difficulties": _s(src, "maintenanceDifficulties"),
                "explanation": _s(src, "maintenanceExplanation"),
            },
            "supplierDependence": _s(src, "supplierDependence"),
            "safety": _s(src, "technologySafety"),
            "notes": _s(src, "technologyNotes"),
        },
        "operations": {
            "staff": {
                "totalEmployees": _n(src, "totalEmployees"),
                "table": normalize_staff_table(src.get("staffTable")),
                "monthlyTotal": _n(src, "staffMonthlyTotal"),
                "annualTotal": _n(src, "staffAnnualTotal"),
            },
            "dailyOperations": _s(src, "dailyOperations"),
            "efficiency": _s(src, "operationalEfficiency"),
            "monthlyUtilities": _n(src, "monthlyUtilities"),
            "notes": _s(src, "operationalNotes"),
        },
        "organization": {
            "structure": _list(src, "adminStructure"),
            "otherStructure": _s(src, "otherStructureText"),
            "decisionMaking": _s(src, "decisionMaking"),
            "governance": {
                "requirements": _s(src, "governanceRequirements", "governance"),
                "explanation": _s(src, "governanceExplanation"),
            },
            "effectiveness": _s(src, "organizationalEffectiveness"),
            "notes": _s(src, "organizationalNotes"),
        },
        "legal": {
            "projectLegality": _s(src, "projectLegality"),
            "licenses": {
                "items": normalize_license_table(src.get("licensesTable")),
                "total": _n(src, "licensesTotal"),
            },
            "risks": {
                "summary": _s(src, "legalRisks"),
                "explanation": _s(src, "risksExplanation"),
            },
            "obstacles": _s(src, "legalObstacles"),
            "notes": _s(src, "legalNotes"),
        },
        "environmental": {
            "impact": _s(src, "environmentalImpact"),
            "explanation": _s(src, "impactExplanation"),
            "approvals": _s(src, "environmentalApprovals"),
            "friendliness": _s(src, "environmentalFriendliness"),
            "notes": _s(src, "environmentalNotes"),
        },
        "social": {
            "communityImpact": _s(src, "communityImpact"),
            "jobOpportunities": _n(src, "jobOpportunities"),
            "alignment": _s(src, "socialImpactAlignment"),
            "notes": _s(src, "socialNotes"),
        },
        "cultural": {
            "alignment": _s(src, "culturalAlignment"),
            "alignmentExplanation": _s(src, "alignmentExplanation"),
            "rejection": _s(src, "culturalRejection"),
            "rejectionExplanation": _s(src, "rejectionExplanation"),
            "acceptability": _s(src, "culturalAcceptability"),
            "notes": _s(src, "culturalNotes"),
        },
        "behavioral": {
            "alignment": _s(src, "behaviorAlignment"),
            "explanation": _s(src, "behaviorExplanation", "alignmentExplanation"),
            "resistance": _s(src, "behaviorResistance"),
            "resistanceExplanation": _s(src, "resistanceExplanation"),
            "customerSupport": _s(src, "customerSupport"),
            "notes": _s(src, "behavioralNotes"),
        },
        "political": {
            "stability": _s(src, "politicalStability"),
            "stabilityExplanation": _s(
                src, "stabilityExplanation", "politicalStabilityExplanation"
            ),
            "regulatoryExposure": _s(src, "regulatoryExposure"),
            "exposureExplanation": _s(src, "exposureExplanation", "regulatoryExplanation"),
            "risk": _s(src, "politicalRisk"),
            "notes": _s(src, "politicalNotes"),
        },
        "timing": {
            "marketTiming": _s(src, "marketTiming"),
            "implementationTiming": _s(src, "implementationTiming"),
            "notes": _s(src, "timeNotes"),
        },
        "risk": {
            "items": normalize_risk_table(src.get("risksTable")),
            "averages": {
                "probability": _n(src, "riskAvgProbability"),
                "impact": _n(src, "riskAvgImpact"),
            },
            "contingencyPlan": {
                "plan": _s(src, "contingencyPlan"),
                "explanation": _s(src, "planExplanation"),
            },
            "control": _s(src, "riskControl"),
            "notes": _s(src, "riskNotes"),
        },
        "economic": {
            "addedValue": _list(src, "economicValue"),
            "otherValue": _s(src, "economicValueOtherText"),
            "gdpImpact": _s(src, "gdpImpact", "gdpContribution"),
            "gdpExplanation": _s(src, "gdpImpactExplanation"),
            "feasibility": _s(src, "economicFeasibility"),
            "notes": _s(src, "economicNotes"),
        },
        "financial": {
            "capital": {
                "totalCapital": _s(src, "totalCapital"),
                "operationalCosts": _s(src, "operationalCostsAssessment", "operationalCosts"),
                "paybackPeriod": _s(src, "paybackPeriod"),
                "roiExpectation": _s(src, "roiExpectation"),
                "feasibility": _s(src, "financialFeasibility"),
                "notes": _s(src, "financialNotes"),
            },
            "financing": {
                "personalContribution": _n(src, "personalContribution"),
                "loanAmount": _n(src, "loanAmount"),
                "interestRate": _n(src, "interestValue"),
                "loanMonths": _n(src, "loanMonths"),
                "taxRate": _n(src, "taxRate"),
            },
            "assumptions": {"currency": _s(src, "selectedCurrency", "currency")},
            "annualOperationalCosts": normalize_cost_object(src.get("annualOperationalCosts")),
            "financialStatements": normalize_financial_statements(
                src.get("financialStatements")
            ),
        },
        "investments": {
            "required": _s(src, "needsAdditionalInvestments", "hasAdditionalInvestments"),
            "purpose": _s(src, "investmentsPurpose"),
            "items": normalize_investment_table(src.get("investmentsTable")),
            "total": _n(src, "investmentsTotal"),
        },
    }
