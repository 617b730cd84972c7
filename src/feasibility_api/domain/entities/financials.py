# src/feasibility_api/domain/entities/financials.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Financial projection entities (Domain Layer).

Purpose:
    Immutable value records produced by the financial projection engine:
    amortization rows, income-statement years, cash-flow and balance-sheet
    years, scenario results, break-even rows and the aggregate analysis.

Layer:
    domain/entities

Notes:
    ``None`` always means "unknown because an input is missing". ``0.0`` is a
    computed value. The two are never conflated.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from feasibility_api.domain.entities.base import BaseEntity

NO_DATA = "Data required"


@dataclass(frozen=True, slots=True)
class AmortizationEntry(BaseEntity):
    """One annual row of a fixed-payment loan schedule."""

    year: int
    payment: float
    interest: float
    principal: float
    remaining_principal: float

    def __post_init__(self) -> None:
        if self.year < 1:
            raise ValueError("amortization year must be >= 1")


@dataclass(frozen=True, slots=True)
class FinancialYear(BaseEntity):
    """Income-statement lines for one projected year (1-indexed)."""

    year: int
    sales: float | None = None
    cogs: float | None = None
    gross_profit: float | None = None
    salaries: float | None = None
    rent: float | None = None
    marketing: float | None = None
    utilities: float | None = None
    other_ops: float | None = None
    total_operating_expenses: float | None = None
    depreciation: float | None = None
    ebit: float | None = None
    loan_payment_annual: float | None = None
    interest_expense: float | None = None
    principal_payment: float | None = None
    remaining_principal: float | None = None
    profit_before_tax: float | None = None
    income_tax: float | None = None
    net_profit: float | None = None
    net_profit_margin: float | None = None


@dataclass(frozen=True, slots=True)
class CashFlowYear(BaseEntity):
    """Cash-flow components for one year; year ``0`` holds one-time flows."""

    year: int
    operating: float | None = None
    investing: float | None = None
    financing: float | None = None
    dividends: float = 0.0
    net: float | None = None
    cumulative: float | None = None


@dataclass(frozen=True, slots=True)
class BalanceSheetYear(BaseEntity):
    """Simplified balance sheet at the end of a projected year.

    ``accounting_check`` is ``total_assets - (total_liabilities + total_equity)``
    and is reported as computed, never forced to zero.
    """

    year: int
    equipment: float = 0.0
    property_value: float = 0.0
    startup_costs: float = 0.0
    additional_investments: float = 0.0
    accumulated_depreciation: float = 0.0
    total_non_current_assets: float = 0.0
    cash: float | None = None
    receivables: float = 0.0
    inventory: float = 0.0
    total_current_assets: float = 0.0
    total_assets: float = 0.0
    current_loan: float = 0.0
    non_current_loan: float = 0.0
    total_liabilities: float = 0.0
    paid_in_capital: float = 0.0
    retained_earnings: float | None = None
    total_equity: float | None = None
    accounting_check: float | None = None
    notes: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class InvestmentMetrics(BaseEntity):
    """Discounted-cash-flow metrics over a net cash-flow series."""

    npv: float | None = None
    irr: float | None = None
    payback_period: float | None = None
    benefit_cost_ratio: float | None = None


@dataclass(frozen=True, slots=True)
class ScenarioResult(BaseEntity):
    """Sensitivity outcome for one fixed scenario."""

    key: str
    label: str
    npv: float | None = None
    irr: float | None = None
    benefit_cost_ratio: float | None = None
    payback_period: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Render undefined metrics as ``"Data required"``."""
        out: dict[str, Any] = {"key": self.key, "label": self.label}
        for name, value in (
            ("npv", self.npv),
            ("irr", self.irr),
            ("benefitCostRatio", self.benefit_cost_ratio),
            ("paybackPeriod", self.payback_period),
        ):
            out[name] = NO_DATA if value is None else value
        return out


@dataclass(frozen=True, slots=True)
class BreakEvenYear(BaseEntity):
    """Break-even sales for one projected year."""

    year: int
    fixed_costs: float | None = None
    contribution_margin_ratio: float | None = None
    break_even_sales: float | None = None


@dataclass(frozen=True, slots=True)
class FinancialAnalysis(BaseEntity):
    """Aggregate output of a full projection run.

    Attributes:
        years: Income-statement years ``1..N``.
        amortization: Loan schedule; empty when the loan cannot be modelled.
        cash_flow: Cash-flow years ``0..N``.
        cash_flow_notes: Human-readable notes on missing year-0 components.
        balance_sheet: Five balance-sheet years.
        metrics: NPV/IRR/payback/BCR of the base net cash-flow series.
        scenarios: The seven sensitivity scenarios, base case first.
        break_even: Per-year break-even rows.
        ratios: Year-1 ratio name -> value (``None`` when undefined).
        missing_inputs: Essential inputs that are absent.
        accounting_issues: Balance-sheet years with a non-zero residual.
    """

    years: tuple[FinancialYear, ...] = ()
    amortization: tuple[AmortizationEntry, ...] = ()
    cash_flow: tuple[CashFlowYear, ...] = ()
    cash_flow_notes: tuple[str, ...] = ()
    balance_sheet: tuple[BalanceSheetYear, ...] = ()
    metrics: InvestmentMetrics = field(default_factory=InvestmentMetrics)
    scenarios: tuple[ScenarioResult, ...] = ()
    break_even: tuple[BreakEvenYear, ...] = ()
    ratios: Mapping[str, float | None] = field(default_factory=dict)
    missing_inputs: tuple[str, ...] = ()
    accounting_issues: tuple[str, ...] = ()

    @property
    def is_partial(self) -> bool:
        """Return ``True`` when no projected year could compute sales."""
        return not any(y.sales is not None for y in self.years)

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase analysis including the ``isPartial`` flag."""
        out = BaseEntity.to_dict(self)
        out["isPartial"] = self.is_partial
        return out
