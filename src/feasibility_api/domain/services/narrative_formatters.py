# src/feasibility_api/domain/services/narrative_formatters.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Narrative formatter registry.

Purpose:
    Map every report section id to its input fields and, for each field, a
    pure function that renders canonical answers into a short descriptive
    value for the narrative generator.

Layer:
    domain/services

Design:
    - The registry is explicit data. ``validate_registry`` is called at
      application startup and raises on a missing section or a
      non-callable entry instead of skipping it at call time.
    - A formatter returns ``None`` (or an empty list) when its inputs are
      absent; callers drop such fields entirely. No placeholder text is
      produced here.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any, Final

from feasibility_api.domain.enums.section import StudyType
from feasibility_api.domain.services.report_outline import REQUIRED_SECTION_IDS
from feasibility_api.domain.services.structured_sections import BRAND_LABELS
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

type Formatter = Callable[[Mapping[str, Any]], Any]


class RegistryError(ValueError):
    """Raised when the formatter registry is incomplete or malformed."""


# -----------------------------------------------------------------------------
# Formatter factories
# -----------------------------------------------------------------------------


def _fmt_number(value: float) -> str:
    return f"{int(value):,}" if float(value).is_integer() else f"{value:,.2f}"


def text(label: str, *keys: str) -> Formatter:
    """Render ``"<label>: <value>"`` from the first present key."""

    def render(answers: Mapping[str, Any]) -> str | None:
        value = to_string_or_none(first_present(answers, keys))
        return f"{label}: {value}" if value else None

    return render


def raw(*keys: str) -> Formatter:
    """Pass the first present value through as a string."""

    def render(answers: Mapping[str, Any]) -> str | None:
        return to_string_or_none(first_present(answers, keys))

    return render


def number(label: str, key: str, *, suffix: str = "") -> Formatter:
    """Render a numeric answer with thousands separators."""

    def render(answers: Mapping[str, Any]) -> str | None:
        value = to_number_or_none(answers.get(key))
        if value is None:
            return None
        return f"{label}: {_fmt_number(value)}{suffix}"

    return render


def with_explanation(label: str, key: str, explanation_key: str, *fallbacks: str) -> Formatter:
    """Render a status answer followed by its free-text explanation."""

    def render(answers: Mapping[str, Any]) -> str | None:
        status = to_string_or_none(answers.get(key))
        explanation = to_string_or_none(first_present(answers, (explanation_key, *fallbacks)))
        if status and explanation:
            return f"{label}: {status}. {explanation}"
        if status:
            return f"{label}: {status}"
        if explanation:
            return f"{label}: {explanation}"
        return None

    return render


def listing(label: str, key: str, other_key: str | None = None) -> Formatter:
    """Render a multi-select answer (plus an optional free-text "other")."""

    def render(answers: Mapping[str, Any]) -> str | None:
        items = ensure_string_list(answers.get(key))
        if other_key:
            other = to_string_or_none(answers.get(other_key))
            if other:
                items.append(other)
        items = dedupe_strings(items)
        return f"{label}: {', '.join(items)}" if items else None

    return render


def table(
    normalizer: Callable[[Any], list[dict[str, Any]]], key: str
) -> Formatter:
    """Return normalized table rows (an empty list when absent)."""

    def render(answers: Mapping[str, Any]) -> list[dict[str, Any]]:
        return normalizer(answers.get(key))

    return render


def table_summary(
    label: str,
    normalizer: Callable[[Any], list[dict[str, Any]]],
    key: str,
    name_field: str,
    cost_field: str | None = None,
) -> Formatter:
    """Summarize a normalized table as a count, names and an optional total."""

    def render(answers: Mapping[str, Any]) -> str | None:
        rows = normalizer(answers.get(key))
        if not rows:
            return None
        names = ", ".join(str(row[name_field]) for row in rows)
        summary = f"{label}: {len(rows)} ({names})"
        if cost_field:
            costs = [row.get(cost_field) for row in rows]
            known = [c for c in costs if isinstance(c, (int, float))]
            if known:
                summary += f"; total {_fmt_number(sum(known))}"
        return summary

    return render


# -----------------------------------------------------------------------------
# Bespoke formatters
# -----------------------------------------------------------------------------


def study_type(answers: Mapping[str, Any]) -> str | None:
    """Humanize ``studyType`` (unknown values pass through unchanged)."""
    value = to_string_or_none(answers.get("studyType"))
    if value is None:
        return None
    try:
        return StudyType(value.lower()).label
    except ValueError:
        return value


def equipment_summary(answers: Mapping[str, Any]) -> str | None:
    """Summarize the equipment list with its total cost."""
    items = parse_equipment_list(answers.get("equipmentList"))
    if not items:
        return None
    parts = [
        f"{item['name']} ({_fmt_number(item['cost'])})" if item.get("cost") is not None
        else str(item["name"])
        for item in items
    ]
    total = sum(item["cost"] for item in items if item.get("cost") is not None)
    return f"Equipment: {', '.join(parts)}; total {_fmt_number(total)}"


def property_summary(answers: Mapping[str, Any]) -> str | None:
    """Summarize required area, ownership, price and rent."""
    parts: list[str] = []
    area = to_number_or_none(answers.get("requiredArea"))
    if area is not None:
        parts.append(f"required area {_fmt_number(area)} m2")
    ownership = to_string_or_none(answers.get("ownershipType"))
    if ownership:
        parts.append(f"ownership {ownership}")
    price = to_number_or_none(answers.get("propertyPrice"))
    if price is not None:
        parts.append(f"price {_fmt_number(price)}")
    rent = to_number_or_none(answers.get("monthlyRent"))
    if rent is not None:
        parts.append(f"monthly rent {_fmt_number(rent)}")
    return f"Property: {', '.join(parts)}" if parts else None


def staffing_summary(answers: Mapping[str, Any]) -> str | None:
    """Summarize headcount and monthly payroll."""
    rows = normalize_staff_table(answers.get("staffTable"))
    total = to_number_or_none(answers.get("totalEmployees"))
    if not rows and total is None:
        return None
    parts: list[str] = []
    if total is not None:
        parts.append(f"{_fmt_number(total)} employees")
    payroll = [
        r["employeeCount"] * r["monthlySalary"]
        for r in rows
        if r.get("employeeCount") is not None and r.get("monthlySalary") is not None
    ]
    if rows:
        parts.append("roles: " + ", ".join(str(r["jobTitle"]) for r in rows))
    if payroll:
        parts.append(f"monthly payroll {_fmt_number(sum(payroll))}")
    return "Staffing: " + "; ".join(parts)


def brand_features(answers: Mapping[str, Any]) -> list[str]:
    """Return the brand-identity labels answered truthy."""
    return [label for key, label in BRAND_LABELS.items() if is_truthy(answers.get(key))]


def positioning(answers: Mapping[str, Any]) -> str | None:
    """Describe brand positioning, falling back to the competitive advantage."""
    features = brand_features(answers)
    if features:
        return f"Brand positioning focused on {', '.join(f.lower() for f in features)}."
    return text("Competitive advantage", "competitiveAdvantage")(answers)


def marketing_plan(answers: Mapping[str, Any]) -> list[str]:
    """Return the marketing plan, falling back to the selected channels."""
    plan = ensure_string_list(answers.get("marketingPlan"))
    return plan or dedupe_strings(ensure_string_list(answers.get("marketingChannels")))


def currency(answers: Mapping[str, Any]) -> str | None:
    value = to_string_or_none(first_present(answers, ("selectedCurrency", "currency")))
    return f"Currency used: {value}" if value else None


def additional_investments(answers: Mapping[str, Any]) -> str | None:
    """Describe whether additional investments are planned and their purpose."""
    required = to_string_or_none(answers.get("needsAdditionalInvestments"))
    rows = normalize_investment_table(answers.get("investmentsTable"))
    purpose = to_string_or_none(answers.get("investmentsPurpose"))
    if not (required or rows or purpose):
        return None
    parts: list[str] = []
    if required:
        parts.append(f"Additional investments required: {required}")
    if rows:
        values = [r["value"] for r in rows if r.get("value") is not None]
        parts.append(
            f"{len(rows)} planned ({', '.join(str(r['type']) for r in rows)})"
            + (f" totalling {_fmt_number(sum(values))}" if values else "")
        )
    if purpose:
        parts.append(f"Purpose: {purpose}")
    return ". ".join(parts)


# -----------------------------------------------------------------------------
# Registry
# -----------------------------------------------------------------------------

FORMATTER_REGISTRY: Final[dict[str, dict[str, Formatter]]] = {
    "1-1": {
        "projectName": raw("projectName"),
        "studyType": study_type,
        "sector": raw("projectSector"),
        "projectType": raw("projectType", "specifiedProjectType"),
        "specifiedProjectType": raw("specifiedProjectType"),
        "projectDescription": raw("projectDescription"),
        "targetAudience": raw("targetAudience"),
        "projectStatus": raw("projectStatus"),
        "duration": raw("duration"),
        "durationUnit": raw("durationUnit"),
    },
    "1-2": {
        "projectName": raw("projectName"),
        "description": raw("projectDescription"),
        "visionMission": raw("visionMission", "notes"),
        "projectIdea": text("Business idea", "projectIdea"),
        "problemSolution": text("Problem solved", "problemSolution"),
        "businessModel": listing("Business model", "businessModel", "businessModelOther"),
        "distributionChannels": listing("Distribution channels", "distributionChannels"),
        "businessType": raw("businessType"),
    },
    "1-3": {
        "marketSize": number("Estimated market size", "marketSize"),
        "potentialCustomers": number("Potential customers", "potentialCustomers"),
        "growthRate": number("Annual market growth", "growthRate", suffix="%"),
        "growthFactors": text("Growth factors", "growthFactors"),
        "competitorsCount": number("Number of competitors", "competitorsCount"),
        "marketGap": with_explanation("Market gap", "marketGap", "gapExplanation"),
        "marketFeasibility": text("Market feasibility", "marketFeasibility"),
        "marketNotes": text("Market notes", "marketNotes"),
    },
    "1-4": {
        "targetAge": text("Target age", "targetAge"),
        "customerIncome": number("Customer income", "customerIncome"),
        "marketingChannels": listing(
            "Marketing channels", "marketingChannels", "marketingChannelsOther"
        ),
        "marketingPlan": marketing_plan,
        "marketingCost": number("Monthly marketing budget", "marketingCost"),
        "competitiveAdvantage": text("Competitive advantage", "competitiveAdvantage"),
        "reachability": text("Customer reachability", "reachability"),
        "marketingNotes": text("Marketing notes", "marketingNotes"),
        "brandIdentityFeatures": brand_features,
        "positioning": positioning,
    },
    "1-5": {
        "equipmentList": equipment_summary,
        "inventoryValue": number("Initial inventory value", "inventoryValue"),
        "goodsTypes": text("Types of goods", "goodsTypes"),
        "propertySummary": property_summary,
        "locationTraffic": text("Location traffic", "locationTraffic"),
        "parkingAvailability": text("Parking", "parkingAvailability"),
        "attractionPoints": listing(
            "Nearby attraction points", "attractionPoints", "otherAttractionsText"
        ),
    },
    "1-6": {
        "technologySummary": table_summary(
            "Technologies", normalize_technology_table, "technologyTable", "type", "cost"
        ),
        "technologyTable": table(normalize_technology_table, "technologyTable"),
        "technologyModernity": text("Technology modernity", "technologyModernity"),
        "maintenanceDifficulties": with_explanation(
            "Maintenance difficulties", "maintenanceDifficulties", "maintenanceExplanation"
        ),
        "supplierDependence": text("Supplier dependence", "supplierDependence"),
        "technologySafety": text("Technology safety", "technologySafety"),
        "technologyNotes": text("Technology notes", "technologyNotes"),
    },
    "1-7": {
        "staffingSummary": staffing_summary,
        "payrollTable": table(normalize_staff_table, "staffTable"),
        "dailyOperations": text("Daily operations", "dailyOperations"),
        "operationalEfficiency": text("Operational efficiency", "operationalEfficiency"),
        "monthlyUtilities": number("Monthly utilities", "monthlyUtilities"),
        "operationalNotes": text("Operational notes", "operationalNotes"),
    },
    "1-8": {
        "adminStructure": listing("Administrative structure", "adminStructure", "otherStructureText"),
        "decisionMaking": text("Decision making", "decisionMaking"),
        "governanceRequirements": with_explanation(
            "Governance requirements", "governanceRequirements", "governanceExplanation"
        ),
        "organizationalEffectiveness": text(
            "Organizational effectiveness", "organizationalEffectiveness"
        ),
        "organizationalNotes": text("Organizational notes", "organizationalNotes"),
    },
    "1-9": {
        "projectLegality": text("Project legality", "projectLegality"),
        "licensesSummary": table_summary(
            "Licenses", normalize_license_table, "licensesTable", "type", "cost"
        ),
        "licensesTable": table(normalize_license_table, "licensesTable"),
        "legalRisks": with_explanation("Legal risks", "legalRisks", "risksExplanation"),
        "legalObstacles": text("Legal obstacles", "legalObstacles"),
        "legalNotes": text("Legal notes", "legalNotes"),
    },
    "1-10": {
        "environmentalImpact": with_explanation(
            "Environmental impact", "environmentalImpact", "impactExplanation"
        ),
        "environmentalApprovals": text("Environmental approvals", "environmentalApprovals"),
        "environmentalFriendliness": text(
            "Environmental friendliness", "environmentalFriendliness"
        ),
        "environmentalNotes": text("Environmental notes", "environmentalNotes"),
    },
    "1-11": {
        "communityImpact": text("Community impact", "communityImpact"),
        "jobOpportunities": number("Job opportunities created", "jobOpportunities"),
        "socialImpactAlignment": text("Social impact alignment", "socialImpactAlignment"),
        "socialNotes": text("Social notes", "socialNotes"),
    },
    "1-12": {
        "culturalAlignment": with_explanation(
            "Cultural alignment", "culturalAlignment", "alignmentExplanation"
        ),
        "culturalRejection": with_explanation(
            "Cultural rejection", "culturalRejection", "rejectionExplanation"
        ),
        "culturalAcceptability": text("Cultural acceptability", "culturalAcceptability"),
        "culturalNotes": text("Cultural notes", "culturalNotes"),
    },
    "1-13": {
        "behaviorAlignment": with_explanation(
            "Behavior alignment", "behaviorAlignment", "behaviorExplanation", "alignmentExplanation"
        ),
        "behaviorResistance": with_explanation(
            "Behavior resistance", "behaviorResistance", "resistanceExplanation"
        ),
        "customerSupport": text("Customer support", "customerSupport"),
        "behavioralNotes": text("Behavioral notes", "behavioralNotes"),
    },
    "1-14": {
        "politicalStability": with_explanation(
            "Political stability", "politicalStability", "stabilityExplanation"
        ),
        "regulatoryExposure": with_explanation(
            "Regulatory exposure", "regulatoryExposure", "exposureExplanation"
        ),
        "politicalRisk": text("Political risk", "politicalRisk"),
        "politicalNotes": text("Political notes", "politicalNotes"),
    },
    "1-15": {
        "marketTiming": text("Market timing", "marketTiming"),
        "implementationTiming": text("Implementation timing", "implementationTiming"),
        "timeNotes": text("Timing notes", "timeNotes"),
    },
    "1-16": {
        "risksSummary": table_summary("Identified risks", normalize_risk_table, "risksTable", "name"),
        "risksTable": table(normalize_risk_table, "risksTable"),
        "contingencyPlan": with_explanation(
            "Contingency plan", "contingencyPlan", "planExplanation"
        ),
        "riskControl": text("Risk control", "riskControl"),
        "riskNotes": text("Risk notes", "riskNotes"),
    },
    "1-17": {
        "economicValue": listing("Economic value added", "economicValue", "economicValueOtherText"),
        "gdpImpact": with_explanation("GDP impact", "gdpImpact", "gdpImpactExplanation"),
        "economicFeasibility": text("Economic feasibility", "economicFeasibility"),
        "economicNotes": text("Economic notes", "economicNotes"),
    },
    "1-18": {
        "totalCapital": text("Total capital", "totalCapital"),
        "operationalCosts": text(
            "Operational costs", "operationalCostsAssessment", "operationalCosts"
        ),
        "paybackPeriod": text("Expected payback period", "paybackPeriod"),
        "roiExpectation": text("ROI expectation", "roiExpectation"),
        "financialFeasibility": text("Financial feasibility", "financialFeasibility"),
        "financialNotes": text("Financial notes", "financialNotes"),
        "currency": currency,
    },
    "1-19": {
        "additionalInvestments": additional_investments,
        "investmentsTable": table(normalize_investment_table, "investmentsTable"),
    },
}


def validate_registry(
    registry: Mapping[str, Mapping[str, Any]] | None = None,
) -> None:
    """Fail fast when a section is missing or an entry is not callable.

    Args:
        registry: Registry to check (defaults to ``FORMATTER_REGISTRY``).

    Raises:
        RegistryError: On the first structural problem found.
    """
    active = FORMATTER_REGISTRY if registry is None else registry
    missing = [sid for sid in REQUIRED_SECTION_IDS if sid not in active]
    if missing:
        raise RegistryError(f"formatter registry is missing sections: {', '.join(missing)}")
    unknown = [sid for sid in active if sid not in REQUIRED_SECTION_IDS]
    if unknown:
        raise RegistryError(f"formatter registry has unknown sections: {', '.join(unknown)}")
    for sid, fields in active.items():
        if not fields:
            raise RegistryError(f"formatter registry section {sid} has no fields")
        for name, formatter in fields.items():
            if not callable(formatter):
                raise RegistryError(f"formatter {sid}.{name} is not callable")


def format_section(section_id: str, answers: Mapping[str, Any]) -> dict[str, Any]:
    """Render one section's inputs, dropping fields whose value is empty."""
    out: dict[str, Any] = {}
    for name, formatter in FORMATTER_REGISTRY[section_id].items():
        value = formatter(answers)
        if value is None or value == [] or value == "":
            continue
        out[name] = value
    return out


def survey_sentences(answers: Mapping[str, Any], cap: int) -> list[str]:
    """Return up to ``cap`` distinct descriptive lines in report-section order.

    Cover-page identifiers (section ``1-1``) are excluded; they travel in the
    cover page.
    """
    lines: list[str] = []
    seen: set[str] = set()
    for sid in REQUIRED_SECTION_IDS[1:]:
        for value in format_section(sid, answers).values():
            if not isinstance(value, str) or value in seen:
                continue
            seen.add(value)
            lines.append(value)
            if len(lines) >= cap:
                return lines
    return lines
