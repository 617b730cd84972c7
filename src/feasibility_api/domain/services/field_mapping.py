# src/feasibility_api/domain/services/field_mapping.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Key canonicalization map.

Purpose:
    Translate every known raw answer identifier (form-field id or legacy name)
    into one canonical camelCase field name, collapse historical synonyms, and
    canonicalize whole answer maps.

Layer:
    domain/services

Notes:
    - ``canonicalize`` is total: unknown keys map to themselves.
    - Adding a raw field requires exactly one entry in ``FIELD_MAPPING``.
    - No mapping target may itself be a raw key, which keeps canonicalization
      idempotent (``canonicalize(canonicalize(k)) == canonicalize(k)``).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Final

from feasibility_api.domain.services.answer_merge import is_empty
from feasibility_api.domain.services.value_parsing import to_number_or_none, to_string_or_none
from feasibility_api.types import AnswerMap

SCHEMA_VERSION: Final[int] = 1
RANGE_PLACEHOLDER: Final[str] = "—"

# -----------------------------------------------------------------------------
# Raw identifier -> canonical key
# -----------------------------------------------------------------------------

FIELD_MAPPING: Final[Mapping[str, str]] = MappingProxyType(
    {
        # Start form / cover page
        "project-name": "projectName",
        "project-type": "projectType",
        "specified-project-type": "specifiedProjectType",
        "project-sector": "projectSector",
        "sector": "projectSector",
        "project-description": "projectDescription",
        "vision-mission": "visionMission",
        "study-type": "studyType",
        "project-country": "country",
        "project-city": "city",
        "project-area": "area",
        "funding-method": "fundingMethod",
        "personal-contribution": "personalContribution",
        "loan-amount": "loanAmount",
        "interest-value": "interestValue",
        "loan-months": "loanMonths",
        "project-currency": "currency",
        "total-capital": "totalCapital",
        "target-audience": "targetAudience",
        "project-status": "projectStatus",
        "project-duration": "duration",
        "duration-unit": "durationUnit",
        "tax-rate": "taxRate",
        "projectTaxRate": "taxRate",
        # Project overview
        "project-idea": "projectIdea",
        "problem-solution": "problemSolution",
        "business-model": "businessModel",
        "bm-other-text": "businessModelOther",
        "distribution-channels": "distributionChannels",
        "business-type": "businessType",
        # Market
        "market-size": "marketSize",
        "potential-customers": "potentialCustomers",
        "growth-rate": "growthRate",
        "growth-factors": "growthFactors",
        "competitors-count": "competitorsCount",
        "competitors": "competitorsCount",
        "market-gap": "marketGap",
        "gap-explanation": "gapExplanation",
        "market-feasibility": "marketFeasibility",
        "market-notes": "marketNotes",
        # Marketing
        "min-age": "targetAgeMin",
        "max-age": "targetAgeMax",
        "customer-income": "customerIncome",
        "marketing-channels": "marketingChannels",
        "marketing-channels-other": "marketingChannelsOther",
        "marketing-plan": "marketingPlan",
        "marketing-cost": "marketingCost",
        "competitive-advantage": "competitiveAdvantage",
        "marketing-notes": "marketingNotes",
        # Technical
        "required-area": "requiredArea",
        "ownership-type": "ownershipType",
        "property-price": "propertyPrice",
        "monthly-rent": "monthlyRent",
        "location-traffic": "locationTraffic",
        "parking-availability": "parkingAvailability",
        "attraction-points": "attractionPoints",
        "other-attractions-text": "otherAttractionsText",
        "equipment-list": "equipmentList",
        "inventory-value": "inventoryValue",
        "goods-types": "goodsTypes",
        "technical-feasibility": "technicalFeasibility",
        "technical-notes": "technicalNotes",
        # Technology
        "technology-modernity": "technologyModernity",
        "maintenance-difficulties": "maintenanceDifficulties",
        "maintenance-explanation": "maintenanceExplanation",
        "supplier-dependence": "supplierDependence",
        "technology-safety": "technologySafety",
        "technology-notes": "technologyNotes",
        # Operations
        "total-employees": "totalEmployees",
        "staff-monthly-total": "staffMonthlyTotal",
        "staff-annual-total": "staffAnnualTotal",
        "daily-operations": "dailyOperations",
        "operational-efficiency": "operationalEfficiency",
        "operational-notes": "operationalNotes",
        "monthly-utilities": "monthlyUtilities",
        # Organization
        "admin-structure": "adminStructure",
        "other-structure-text": "otherStructureText",
        "decision-making": "decisionMaking",
        "governance": "governanceRequirements",
        "governance-requirements": "governanceRequirements",
        "governance-explanation": "governanceExplanation",
        "organizational-effectiveness": "organizationalEffectiveness",
        "organizational-notes": "organizationalNotes",
        # Legal
        "project-legality": "projectLegality",
        "licenses-total": "licensesTotal",
        "legal-risks": "legalRisks",
        "risks-explanation": "risksExplanation",
        "legal-obstacles": "legalObstacles",
        "legal-notes": "legalNotes",
        # Environmental / social / cultural / behavioral / political
        "environmental-impact": "environmentalImpact",
        "impact-explanation": "impactExplanation",
        "environmental-approvals": "environmentalApprovals",
        "environmental-friendliness": "environmentalFriendliness",
        "environmental-notes": "environmentalNotes",
        "community-impact": "communityImpact",
        "job-opportunities": "jobOpportunities",
        "social-impact-alignment": "socialImpactAlignment",
        "social-notes": "socialNotes",
        "cultural-alignment": "culturalAlignment",
        "alignment-explanation": "alignmentExplanation",
        "cultural-rejection": "culturalRejection",
        "rejection-explanation": "rejectionExplanation",
        "cultural-acceptability": "culturalAcceptability",
        "cultural-notes": "culturalNotes",
        "behavior-alignment": "behaviorAlignment",
        "behavior-resistance": "behaviorResistance",
        "resistance-explanation": "resistanceExplanation",
        "customer-support": "customerSupport",
        "behavioral-notes": "behavioralNotes",
        "political-stability": "politicalStability",
        "stability-explanation": "stabilityExplanation",
        "regulatory-exposure": "regulatoryExposure",
        "exposure-explanation": "exposureExplanation",
        "political-risk": "politicalRisk",
        "political-notes": "politicalNotes",
        # Timing / risk / economic
        "market-timing": "marketTiming",
        "implementation-timing": "implementationTiming",
        "time-notes": "timeNotes",
        "risk-avg-probability": "riskAvgProbability",
        "risk-avg-impact": "riskAvgImpact",
        "contingency-plan": "contingencyPlan",
        "plan-explanation": "planExplanation",
        "risk-control": "riskControl",
        "risk-notes": "riskNotes",
        "economic-value": "economicValue",
        "economic-value-other-text": "economicValueOtherText",
        "gdp-impact": "gdpImpact",
        "gdp-impact-explanation": "gdpImpactExplanation",
        "economic-feasibility": "economicFeasibility",
        "economic-notes": "economicNotes",
        # Financial / investments
        "operational-costs": "operationalCostsAssessment",
        "payback-period": "paybackPeriod",
        "roi-expectation": "roiExpectation",
        "financial-feasibility": "financialFeasibility",
        "financial-notes": "financialNotes",
        "selected-currency": "selectedCurrency",
        "investments-purpose": "investmentsPurpose",
        "investments-total": "investmentsTotal",
        "needs-additional-investments": "needsAdditionalInvestments",
    }
)

# -----------------------------------------------------------------------------
# Historical synonym -> canonical key
# -----------------------------------------------------------------------------

ALIAS_TO_CANONICAL: Final[Mapping[str, str]] = MappingProxyType(
    {
        "technologyMaturity": "technologyModernity",
        "politicalStabilityExplanation": "stabilityExplanation",
        "regulatoryExplanation": "exposureExplanation",
        "behaviorExplanation": "alignmentExplanation",
        "environmentExplained": "environmentalImpact",
        "gdpContribution": "gdpImpact",
        "operations": "operationalEfficiency",
        "hasAdditionalInvestments": "needsAdditionalInvestments",
    }
)

# Numeric canonical fields coerced from parseable strings.
NUMERIC_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "marketSize",
        "potentialCustomers",
        "growthRate",
        "competitorsCount",
        "customerIncome",
        "marketingCost",
        "requiredArea",
        "propertyPrice",
        "monthlyRent",
        "monthlyUtilities",
        "inventoryValue",
        "totalEmployees",
        "staffMonthlyTotal",
        "staffAnnualTotal",
        "licensesTotal",
        "jobOpportunities",
        "riskAvgProbability",
        "riskAvgImpact",
        "investmentsTotal",
        "personalContribution",
        "loanAmount",
        "interestValue",
        "loanMonths",
        "taxRate",
    }
)


@dataclass(frozen=True, slots=True)
class CompositeFieldRule:
    """A derived field synthesized from two range bounds.

    Attributes:
        target: Canonical key of the composite value.
        lower: Canonical key of the lower bound.
        upper: Canonical key of the upper bound.
    """

    target: str
    lower: str
    upper: str

    def apply(self, answers: AnswerMap) -> None:
        """Compose ``target`` when absent and always drop both components."""
        lower = to_string_or_none(answers.pop(self.lower, None))
        upper = to_string_or_none(answers.pop(self.upper, None))
        if not is_empty(answers.get(self.target)):
            return
        if lower is None and upper is None:
            return
        answers[self.target] = f"{lower or RANGE_PLACEHOLDER} - {upper or RANGE_PLACEHOLDER}"


COMPOSITE_RULES: Final[tuple[CompositeFieldRule, ...]] = (
    CompositeFieldRule(target="targetAge", lower="targetAgeMin", upper="targetAgeMax"),
)


def canonicalize(raw_key: str) -> str:
    """Map a raw identifier to its canonical key (identity when unknown)."""
    return FIELD_MAPPING.get(raw_key, raw_key)


def collapse_alias(canonical_key: str) -> str:
    """Collapse a historical synonym onto its current canonical key."""
    return ALIAS_TO_CANONICAL.get(canonical_key, canonical_key)


def resolve_key(raw_key: str) -> str:
    """Return ``collapse_alias(canonicalize(raw_key))``."""
    return collapse_alias(canonicalize(raw_key))


def canonicalize_answers(raw: Mapping[str, Any]) -> AnswerMap:
    """Canonicalize a whole answer map.

    Steps:
        1. Resolve every key. When two keys land on the same canonical key,
           a key that was already canonical is kept over a mapped one unless
           it is empty; between mapped keys the first non-empty value wins.
        2. Apply the composite rules once.
        3. Coerce numeric fields from parseable strings; unparseable strings
           are kept untouched.

    Args:
        raw: Raw answers keyed by arbitrary identifiers. Not mutated.

    Returns:
        AnswerMap: A new canonical answer map. Idempotent.
    """
    out: AnswerMap = {}
    direct: set[str] = set()
    for key, value in raw.items():
        target = resolve_key(key)
        is_direct = target == key
        if target not in out:
            out[target] = value
            if is_direct:
                direct.add(target)
            continue
        current = out[target]
        if is_direct and target not in direct:
            if not is_empty(value) or is_empty(current):
                out[target] = value
            direct.add(target)
        elif is_empty(current) and not is_empty(value):
            out[target] = value

    for rule in COMPOSITE_RULES:
        rule.apply(out)

    for key in NUMERIC_FIELDS & out.keys():
        value = out[key]
        if isinstance(value, str):
            number = to_number_or_none(value)
            if number is not None:
                out[key] = number
    return out


def canonical_keys() -> list[str]:
    """Return every canonical destination key, sorted."""
    targets = {collapse_alias(v) for v in FIELD_MAPPING.values()}
    targets.update(ALIAS_TO_CANONICAL.values())
    targets.update(rule.target for rule in COMPOSITE_RULES)
    return sorted(targets)


def unified_schema() -> dict[str, Any]:
    """Return the persisted unified-schema record.

    Returns:
        dict[str, Any]: ``{version, aliasToCanonical, canonicalKeys}`` where the
        alias table combines raw-id mappings and historical synonyms.
    """
    alias_table = {raw: collapse_alias(target) for raw, target in FIELD_MAPPING.items()}
    alias_table.update(ALIAS_TO_CANONICAL)
    return {
        "version": SCHEMA_VERSION,
        "aliasToCanonical": alias_table,
        "canonicalKeys": canonical_keys(),
    }
