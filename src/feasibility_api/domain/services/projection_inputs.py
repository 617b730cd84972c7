# src/feasibility_api/domain/services/projection_inputs.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Projection inputs.

Purpose:
    Extract the sparse numeric inputs of the financial projection from the
    structured sections into one immutable record. Every field is ``None``
    when the user did not supply it; nothing is defaulted here.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

from feasibility_api.domain.services.structured_sections import build_structured_sections
from feasibility_api.domain.services.value_parsing import (
    is_truthy,
    parse_percent,
    to_number_or_none,
    to_string_or_none,
)

_GAP_DENIED: Final[frozenset[str]] = frozenset({"no", "false", "0", "off", "none", "not exists"})
_GAP_AFFIRMED: Final[frozenset[str]] = frozenset({"exists", "available", "present"})


def parse_market_gap(status: Any) -> bool | None:
    """Return ``True`` (affirmed), ``False`` (denied) or ``None`` (unknown)."""
    text = to_string_or_none(status)
    if text is None:
        return None
    normalized = text.lower()
    if is_truthy(normalized) or normalized in _GAP_AFFIRMED:
        return True
    if normalized in _GAP_DENIED:
        return False
    return None


def _get(section: Any, *path: str) -> Any:
    node = section
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def _sum_known(values: Sequence[float | None]) -> float | None:
    known = [v for v in values if v is not None]
    return sum(known) if known else None


@dataclass(frozen=True, slots=True)
class StaffLine:
    """Headcount and monthly salary of one staff table row."""

    count: float | None
    monthly_salary: float | None


@dataclass(frozen=True, slots=True)
class InvestmentLine:
    """Value and expected annual return (percent) of an additional investment."""

    value: float | None
    return_percent: float | None


@dataclass(frozen=True, slots=True)
class ProjectionInputs:
    """Sparse projection inputs; ``None`` always means "not supplied"."""

    market_size: float | None = None
    competitors_count: float | None = None
    market_gap: bool | None = None
    growth_rate: float | None = None
    inventory_value: float | None = None
    staff: tuple[StaffLine, ...] = ()
    staff_annual_total: float | None = None
    monthly_rent: float | None = None
    monthly_marketing_cost: float | None = None
    annual_utilities: float | None = None
    monthly_utilities: float | None = None
    annual_other_operations: float | None = None
    annual_depreciation: float | None = None
    property_price: float | None = None
    license_total: float | None = None
    equipment_total: float | None = None
    additional_investments_total: float | None = None
    investments: tuple[InvestmentLine, ...] = ()
    personal_contribution: float | None = None
    loan_amount: float | None = None
    interest_rate: float | None = None
    loan_months: float | None = None
    tax_rate: float | None = None

    # ------------------------------------------------------------------ #
    # Construction
    # ------------------------------------------------------------------ #
    @classmethod
    def from_sections(cls, sections: Mapping[str, Any]) -> ProjectionInputs:
        """Read projection inputs from structured sections."""
        market = sections.get("market") or {}
        technical = sections.get("technical") or {}
        operations = sections.get("operations") or {}
        financial = sections.get("financial") or {}
        legal = sections.get("legal") or {}
        investments = sections.get("investments") or {}
        marketing = sections.get("marketing") or {}
        costs = financial.get("annualOperationalCosts") or {}
        financing = financial.get("financing") or {}

        staff_rows = tuple(
            StaffLine(
                count=to_number_or_none(row.get("employeeCount")),
                monthly_salary=to_number_or_none(row.get("monthlySalary")),
            )
            for row in _get(operations, "staff", "table") or []
        )
        staff_annual = to_number_or_none(_get(operations, "staff", "annualTotal"))
        if staff_annual is None:
            monthly_total = to_number_or_none(_get(operations, "staff", "monthlyTotal"))
            staff_annual = monthly_total * 12 if monthly_total is not None else None

        license_rows = _get(legal, "licenses", "items") or []
        license_total = to_number_or_none(_get(legal, "licenses", "total"))
        if license_total is None:
            license_total = _sum_known([to_number_or_none(r.get("cost")) for r in license_rows])

        equipment_rows = _get(technical, "equipment", "items") or []
        equipment_total = _sum_known([to_number_or_none(r.get("cost")) for r in equipment_rows])

        investment_rows = investments.get("items") or []
        investment_lines = tuple(
            InvestmentLine(
                value=to_number_or_none(row.get("value")),
                return_percent=parse_percent(row.get("return")),
            )
            for row in investment_rows
        )
        investments_total = to_number_or_none(investments.get("total"))
        if investments_total is None:
            investments_total = _sum_known([line.value for line in investment_lines])

        return cls(
            market_size=to_number_or_none(market.get("marketSize")),
            competitors_count=to_number_or_none(market.get("competitorsCount")),
            market_gap=parse_market_gap(_get(market, "marketGap", "status")),
            growth_rate=to_number_or_none(market.get("growthRate")),
            inventory_value=to_number_or_none(_get(technical, "inventory", "inventoryValue")),
            staff=staff_rows,
            staff_annual_total=staff_annual,
            monthly_rent=to_number_or_none(_get(technical, "property", "monthlyRent")),
            monthly_marketing_cost=to_number_or_none(marketing.get("marketingCost")),
            annual_utilities=to_number_or_none(costs.get("utilities")),
            monthly_utilities=to_number_or_none(operations.get("monthlyUtilities")),
            annual_other_operations=to_number_or_none(costs.get("operations")),
            annual_depreciation=to_number_or_none(costs.get("depreciation")),
            property_price=to_number_or_none(_get(technical, "property", "propertyPrice")),
            license_total=license_total,
            equipment_total=equipment_total,
            additional_investments_total=investments_total,
            investments=investment_lines,
            personal_contribution=to_number_or_none(financing.get("personalContribution")),
            loan_amount=to_number_or_none(financing.get("loanAmount")),
            interest_rate=to_number_or_none(financing.get("interestRate")),
            loan_months=to_number_or_none(financing.get("loanMonths")),
            tax_rate=to_number_or_none(financing.get("taxRate")),
        )

    @classmethod
    def from_answers(cls, answers: Mapping[str, Any]) -> ProjectionInputs:
        """Read projection inputs from canonical answers."""
        return cls.from_sections(build_structured_sections(answers))

    # ------------------------------------------------------------------ #
    # Derived annual figures
    # ------------------------------------------------------------------ #
    @property
    def declares_no_debt(self) -> bool:
        """Return ``True`` when the loan amount is explicitly zero."""
        return self.loan_amount is not None and self.loan_amount == 0

    @property
    def annual_salaries(self) -> float | None:
        """Return ``sum(count * monthly * 12)`` over complete staff rows.

        Falls back to the declared staff totals when the table has no complete
        row.
        """
        complete = [
            line.count * line.monthly_salary * 12
            for line in self.staff
            if line.count is not None and line.monthly_salary is not None
        ]
        if complete:
            return sum(complete)
        return self.staff_annual_total

    @property
    def annual_rent(self) -> float | None:
        """Return the monthly rent annualized."""
        return self.monthly_rent * 12 if self.monthly_rent is not None else None

    @property
    def annual_marketing(self) -> float | None:
        """Return the monthly marketing cost annualized."""
        if self.monthly_marketing_cost is None:
            return None
        return self.monthly_marketing_cost * 12

    @property
    def utilities(self) -> float | None:
        """Return annual utilities, preferring the declared annual figure."""
        if self.annual_utilities is not None:
            return self.annual_utilities
        if self.monthly_utilities is not None:
            return self.monthly_utilities * 12
        return None

    @property
    def depreciable_base(self) -> float | None:
        """Return equipment plus licenses, or ``None`` when neither is known."""
        return _sum_known([self.equipment_total, self.license_total])

    @property
    def investment_income(self) -> float | None:
        """Return annual income from additional investments.

        ``0.0`` without rows; ``None`` when any row lacks a value or a
        parseable return.
        """
        total = 0.0
        for line in self.investments:
            if line.value is None or line.return_percent is None:
                return None
            total += line.value * line.return_percent / 100.0
        return total
