# src/feasibility_api/domain/services/financial_projection.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Financial projection engine.

Purpose:
    Derive an annual income statement, a year-0-plus-N cash-flow statement, a
    five-year balance sheet, discounted metrics, a seven-scenario sensitivity
    table, break-even rows and headline ratios from sparse user inputs.

Layer:
    domain/services

Design:
    - Pure: a function of ``ProjectionInputs`` only. No I/O, no logging.
    - Missing data is never synthesized. A line whose inputs are absent is
      ``None`` and every line depending on it is ``None`` too.
    - The balance-sheet residual is computed and reported, never forced.
    - Cash is always unknown and receivables are fixed at zero (cash-only
      business); no opening-cash input exists to derive a balance from.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from feasibility_api.domain.entities.financials import (
    AmortizationEntry,
    BalanceSheetYear,
    BreakEvenYear,
    CashFlowYear,
    FinancialAnalysis,
    FinancialYear,
    ScenarioResult,
)
from feasibility_api.domain.services.amortization import build_amortization_schedule
from feasibility_api.domain.services.investment_metrics import compute_metrics
from feasibility_api.domain.services.projection_inputs import ProjectionInputs

# Market-share lookup; pinned constants, not tunable parameters.
SHARE_NO_COMPETITORS: Final[float] = 0.15
SHARE_GAP_AFFIRMED: Final[float] = 0.08
SHARE_GAP_DENIED: Final[float] = 0.02
SHARE_DEFAULT: Final[float] = 0.03

COGS_RATIO_MIN: Final[float] = 0.3
COGS_RATIO_MAX: Final[float] = 0.7

DEPRECIATION_YEARS: Final[int] = 5
BALANCE_SHEET_YEARS: Final[int] = 5
DEFAULT_PROJECTION_YEARS: Final[int] = 5
BALANCE_TOLERANCE: Final[float] = 1e-6

MISSING_MARKET_SIZE: Final[str] = "Market size data"
MISSING_STAFFING: Final[str] = "Staffing cost data"
MISSING_PROPERTY: Final[str] = "Property cost data"
MISSING_MARKETING: Final[str] = "Marketing cost data"


@dataclass(frozen=True, slots=True)
class Adjustments:
    """Multiplicative scenario shocks (``1.0`` means unchanged)."""

    sales: float = 1.0
    operating_cost: float = 1.0
    project_cost: float = 1.0


@dataclass(frozen=True, slots=True)
class Scenario:
    """A named sensitivity case."""

    key: str
    label: str
    adjustments: Adjustments


SCENARIOS: Final[tuple[Scenario, ...]] = (
    Scenario("base", "Base case", Adjustments()),
    Scenario("project_cost_plus_10", "Project cost +10%", Adjustments(project_cost=1.10)),
    Scenario("project_cost_plus_20", "Project cost +20%", Adjustments(project_cost=1.20)),
    Scenario("sales_price_minus_5", "Sales price -5%", Adjustments(sales=0.95)),
    Scenario("sales_price_minus_10", "Sales price -10%", Adjustments(sales=0.90)),
    Scenario("operating_cost_plus_10", "Operating cost +10%", Adjustments(operating_cost=1.10)),
    Scenario("operating_cost_plus_20", "Operating cost +20%", Adjustments(operating_cost=1.20)),
)


# -----------------------------------------------------------------------------
# Small helpers
# -----------------------------------------------------------------------------


def _scale(value: float | None, factor: float) -> float | None:
    return None if value is None else value * factor


def _sum_known(values: Sequence[float | None]) -> float | None:
    known = [v for v in values if v is not None]
    return sum(known) if known else None


def _safe_ratio(numerator: float | None, denominator: float | None) -> float | None:
    if numerator is None or denominator is None or denominator == 0:
        return None
    return numerator / denominator


def market_share(inputs: ProjectionInputs) -> float:
    """Return the blended market-share heuristic."""
    if inputs.competitors_count is not None and inputs.competitors_count == 0:
        return SHARE_NO_COMPETITORS
    if inputs.market_gap is True:
        return SHARE_GAP_AFFIRMED
    if inputs.market_gap is False:
        return SHARE_GAP_DENIED
    return SHARE_DEFAULT


def project_sales(inputs: ProjectionInputs, year: int, adjustments: Adjustments) -> float | None:
    """Return ``marketSize * share * growth ** (year - 1)`` or ``None``."""
    if inputs.market_size is None:
        return None
    growth = 1 + inputs.growth_rate / 100 if inputs.growth_rate is not None else 1.0
    return inputs.market_size * market_share(inputs) * growth ** (year - 1) * adjustments.sales


def project_cogs(sales: float | None, inventory_value: float | None) -> float | None:
    """Return ``sales * clamp(inventory / sales, 0.3, 0.7)`` or ``None``."""
    if sales is None or inventory_value is None:
        return None
    if sales == 0:
        return 0.0
    ratio = min(max(inventory_value / sales, COGS_RATIO_MIN), COGS_RATIO_MAX)
    return sales * ratio


def annual_depreciation(inputs: ProjectionInputs) -> float | None:
    """Return declared depreciation, else straight-line over the depreciable base."""
    if inputs.annual_depreciation is not None:
        return inputs.annual_depreciation
    base = inputs.depreciable_base
    return None if base is None else base / DEPRECIATION_YEARS


def depreciation_for_year(inputs: ProjectionInputs, year: int) -> float | None:
    """Return the depreciation charged in ``year``.

    The annual charge stops once the depreciable base is written off. Without
    a known base the annual charge is returned unchanged.
    """
    yearly = annual_depreciation(inputs)
    base = inputs.depreciable_base
    if yearly is None or base is None:
        return yearly
    taken = min(base, yearly * (year - 1))
    return max(0.0, min(yearly, base - taken))


def _debt_service(
    inputs: ProjectionInputs, schedule: Sequence[AmortizationEntry], year: int
) -> tuple[float | None, float | None, float | None, float | None]:
    """Return ``(payment, interest, principal, remaining)`` for ``year``."""
    if schedule:
        if year <= len(schedule):
            row = schedule[year - 1]
            return row.payment, row.interest, row.principal, row.remaining_principal
        return 0.0, 0.0, 0.0, 0.0
    if inputs.declares_no_debt:
        return 0.0, 0.0, 0.0, 0.0
    return None, None, None, None


# -----------------------------------------------------------------------------
# Income statement
# -----------------------------------------------------------------------------


def project_income_statement(
    inputs: ProjectionInputs,
    schedule: Sequence[AmortizationEntry],
    years: int,
    adjustments: Adjustments | None = None,
) -> list[FinancialYear]:
    """Project ``years`` income-statement years.

    Args:
        inputs: Projection inputs.
        schedule: Loan schedule (may be empty).
        years: Horizon in years (>= 1).
        adjustments: Optional scenario shocks; depreciation is never scaled.

    Returns:
        list[FinancialYear]: Years ``1..years``.
    """
    adj = adjustments or Adjustments()
    out: list[FinancialYear] = []
    for year in range(1, years + 1):
        depreciation = depreciation_for_year(inputs, year)
        sales = project_sales(inputs, year, adj)
        cogs = project_cogs(sales, inputs.inventory_value)
        gross = sales - cogs if sales is not None and cogs is not None else None

        salaries = _scale(inputs.annual_salaries, adj.operating_cost)
        rent = _scale(inputs.annual_rent, adj.operating_cost)
        marketing = _scale(inputs.annual_marketing, adj.operating_cost)
        utilities = _scale(inputs.utilities, adj.operating_cost)
        other_ops = _scale(inputs.annual_other_operations, adj.operating_cost)
        total_opex = _sum_known([salaries, rent, marketing, utilities, other_ops])

        ebit = (
            gross - total_opex - depreciation
            if gross is not None and total_opex is not None and depreciation is not None
            else None
        )
        payment, interest, principal, remaining = _debt_service(inputs, schedule, year)
        pbt = ebit - payment if ebit is not None and payment is not None else None
        tax = (
            max(0.0, pbt) * inputs.tax_rate / 100
            if pbt is not None and inputs.tax_rate is not None
            else None
        )
        net = pbt - tax if pbt is not None and tax is not None else None

        out.append(
            FinancialYear(
                year=year,
                sales=sales,
                cogs=cogs,
                gross_profit=gross,
                salaries=salaries,
                rent=rent,
                marketing=marketing,
                utilities=utilities,
                other_ops=other_ops,
                total_operating_expenses=total_opex,
                depreciation=depreciation,
                ebit=ebit,
                loan_payment_annual=payment,
                interest_expense=interest,
                principal_payment=principal,
                remaining_principal=remaining,
                profit_before_tax=pbt,
                income_tax=tax,
                net_profit=net,
                net_profit_margin=_safe_ratio(net, sales),
            )
        )
    return out


# -----------------------------------------------------------------------------
# Cash flow
# -----------------------------------------------------------------------------


def initial_investment(
    inputs: ProjectionInputs, adjustments: Adjustments | None = None
) -> tuple[float, list[str]]:
    """Return the year-0 investing outflow (positive) and the missing components."""
    adj = adjustments or Adjustments()
    components = (
        ("property price", inputs.property_price),
        ("license total", inputs.license_total),
        ("initial inventory", inputs.inventory_value),
        ("equipment total", inputs.equipment_total),
        ("additional investments", inputs.additional_investments_total),
    )
    total = sum(v for _, v in components if v is not None)
    missing = [name for name, v in components if v is None]
    return total * adj.project_cost, missing


def project_cash_flow(
    inputs: ProjectionInputs,
    statement: Sequence[FinancialYear],
    adjustments: Adjustments | None = None,
) -> tuple[list[CashFlowYear], list[str]]:
    """Build the year-0 + N cash-flow statement.

    Args:
        inputs: Projection inputs.
        statement: Income-statement years produced with the same adjustments.
        adjustments: Scenario shocks (project cost scales year-0 investing).

    Returns:
        tuple[list[CashFlowYear], list[str]]: Cash-flow years ``0..N`` and notes
        naming year-0 components that were missing.
    """
    outflow, missing_investing = initial_investment(inputs, adjustments)
    financing_parts = (
        ("personal contribution", inputs.personal_contribution),
        ("loan amount", inputs.loan_amount),
    )
    financing0 = sum(v for _, v in financing_parts if v is not None)
    missing_financing = [name for name, v in financing_parts if v is None]

    notes: list[str] = []
    if missing_investing:
        notes.append("Year 0 investing excludes missing: " + ", ".join(missing_investing))
    if missing_financing:
        notes.append("Year 0 financing excludes missing: " + ", ".join(missing_financing))

    investing0 = -outflow
    net0 = investing0 + financing0
    flows = [
        CashFlowYear(
            year=0,
            operating=0.0,
            investing=investing0,
            financing=financing0,
            net=net0,
            cumulative=net0,
        )
    ]

    income = inputs.investment_income
    cumulative: float | None = net0
    for fy in statement:
        operating: float | None = None
        if (
            fy.sales is not None
            and fy.cogs is not None
            and fy.total_operating_expenses is not None
            and fy.ebit is not None
            and inputs.tax_rate is not None
            and income is not None
        ):
            tax_paid = max(0.0, fy.ebit) * inputs.tax_rate / 100
            operating = fy.sales - fy.cogs - fy.total_operating_expenses - tax_paid + income
        financing = -fy.loan_payment_annual if fy.loan_payment_annual is not None else None
        net = operating + financing if operating is not None and financing is not None else None
        cumulative = cumulative + net if cumulative is not None and net is not None else None
        flows.append(
            CashFlowYear(
                year=fy.year,
                operating=operating,
                investing=0.0,
                financing=financing,
                net=net,
                cumulative=cumulative,
            )
        )
    return flows, notes


# -----------------------------------------------------------------------------
# Balance sheet
# -----------------------------------------------------------------------------


def project_balance_sheet(
    inputs: ProjectionInputs,
    schedule: Sequence[AmortizationEntry],
    statement: Sequence[FinancialYear],
) -> list[BalanceSheetYear]:
    """Build the five-year balance sheet.

    Args:
        inputs: Projection inputs.
        schedule: Loan schedule (may be empty).
        statement: At least five income-statement years (base case).

    Returns:
        list[BalanceSheetYear]: Years ``1..5`` with the residual reported.
    """
    components = (
        ("equipment total", inputs.equipment_total),
        ("property price", inputs.property_price),
        ("license total", inputs.license_total),
        ("additional investments", inputs.additional_investments_total),
        ("initial inventory", inputs.inventory_value),
        ("personal contribution", inputs.personal_contribution),
    )
    missing = [name for name, value in components if value is None]
    equipment = inputs.equipment_total or 0.0
    property_value = inputs.property_price or 0.0
    startup = inputs.license_total or 0.0
    additional = inputs.additional_investments_total or 0.0
    inventory = inputs.inventory_value or 0.0
    paid_in = inputs.personal_contribution or 0.0
    base = equipment + startup

    loan_unknown = not schedule and inputs.loan_amount is not None and inputs.loan_amount > 0

    sheets: list[BalanceSheetYear] = []
    retained: float | None = 0.0
    charged = 0.0
    for year in range(1, BALANCE_SHEET_YEARS + 1):
        net = statement[year - 1].net_profit if year <= len(statement) else None
        retained = retained + net if retained is not None and net is not None else None

        charged += depreciation_for_year(inputs, year) or 0.0
        accumulated = min(base, charged)
        non_current = equipment + property_value + startup + additional - accumulated
        current_assets = 0.0 + inventory
        total_assets = non_current + current_assets

        remaining = schedule[year - 1].remaining_principal if year <= len(schedule) else 0.0
        current_loan = schedule[year].principal if year < len(schedule) else 0.0
        current_loan = min(current_loan, remaining)
        non_current_loan = remaining - current_loan
        liabilities = remaining

        equity = paid_in + retained if retained is not None else None
        check = total_assets - (liabilities + equity) if equity is not None else None

        notes = ["Cash balance: Data required"]
        if missing:
            notes.append("Balance sheet excludes missing: " + ", ".join(missing))
        if retained is None:
            notes.append("Retained earnings unavailable: net profit could not be computed")
        if loan_unknown:
            notes.append("Loan balance unavailable: interest rate or term missing")

        sheets.append(
            BalanceSheetYear(
                year=year,
                equipment=equipment,
                property_value=property_value,
                startup_costs=startup,
                additional_investments=additional,
                accumulated_depreciation=accumulated,
                total_non_current_assets=non_current,
                cash=None,
                receivables=0.0,
                inventory=inventory,
                total_current_assets=current_assets,
                total_assets=total_assets,
                current_loan=current_loan,
                non_current_loan=non_current_loan,
                total_liabilities=liabilities,
                paid_in_capital=paid_in,
                retained_earnings=retained,
                total_equity=equity,
                accounting_check=check,
                notes=tuple(notes),
            )
        )
    return sheets


# -----------------------------------------------------------------------------
# Break-even, ratios, scenarios
# -----------------------------------------------------------------------------


def project_break_even(statement: Sequence[FinancialYear]) -> list[BreakEvenYear]:
    """Return ``fixed / ((sales - cogs) / sales)`` per year when the ratio is > 0."""
    rows: list[BreakEvenYear] = []
    for fy in statement:
        fixed = (
            fy.total_operating_expenses + fy.depreciation
            if fy.total_operating_expenses is not None and fy.depreciation is not None
            else None
        )
        ratio = (
            _safe_ratio(fy.sales - fy.cogs, fy.sales)
            if fy.sales is not None and fy.cogs is not None
            else None
        )
        break_even = (
            fixed / ratio if fixed is not None and ratio is not None and ratio > 0 else None
        )
        rows.append(
            BreakEvenYear(
                year=fy.year,
                fixed_costs=fixed,
                contribution_margin_ratio=ratio,
                break_even_sales=break_even,
            )
        )
    return rows


def compute_ratios(
    inputs: ProjectionInputs, statement: Sequence[FinancialYear]
) -> dict[str, float | None]:
    """Return year-1 headline ratios (``None`` when undefined)."""
    first = statement[0] if statement else FinancialYear(year=1)
    outlay, _ = initial_investment(inputs)
    return {
        "grossMargin": _safe_ratio(first.gross_profit, first.sales),
        "operatingMargin": _safe_ratio(first.ebit, first.sales),
        "netMargin": _safe_ratio(first.net_profit, first.sales),
        "debtToEquity": _safe_ratio(inputs.loan_amount, inputs.personal_contribution),
        "returnOnInvestment": _safe_ratio(first.net_profit, outlay),
    }


def run_scenario(
    inputs: ProjectionInputs,
    schedule: Sequence[AmortizationEntry],
    years: int,
    scenario: Scenario,
) -> ScenarioResult:
    """Recompute income statement and cash flow under ``scenario``."""
    statement = project_income_statement(inputs, schedule, years, scenario.adjustments)
    flows, _ = project_cash_flow(inputs, statement, scenario.adjustments)
    metrics = compute_metrics([cf.net for cf in flows])
    return ScenarioResult(
        key=scenario.key,
        label=scenario.label,
        npv=metrics.npv,
        irr=metrics.irr,
        benefit_cost_ratio=metrics.benefit_cost_ratio,
        payback_period=metrics.payback_period,
    )


def missing_essentials(inputs: ProjectionInputs) -> list[str]:
    """Return the labels of essential inputs that are absent."""
    missing: list[str] = []
    if inputs.market_size is None:
        missing.append(MISSING_MARKET_SIZE)
    if inputs.annual_salaries is None:
        missing.append(MISSING_STAFFING)
    if inputs.property_price is None and inputs.monthly_rent is None:
        missing.append(MISSING_PROPERTY)
    if inputs.monthly_marketing_cost is None:
        missing.append(MISSING_MARKETING)
    return missing


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------


def analyze(inputs: ProjectionInputs, years: int = DEFAULT_PROJECTION_YEARS) -> FinancialAnalysis:
    """Run the full projection.

    Args:
        inputs: Projection inputs.
        years: Income-statement and cash-flow horizon (>= 1).

    Returns:
        FinancialAnalysis: Complete, possibly partial, analysis. Never raises
        for missing business data.
    """
    if years < 1:
        raise ValueError("years must be >= 1")
    schedule = build_amortization_schedule(
        inputs.loan_amount, inputs.interest_rate, inputs.loan_months
    )
    horizon = max(years, BALANCE_SHEET_YEARS)
    long_statement = project_income_statement(inputs, schedule, horizon)
    statement = long_statement[:years]
    flows, notes = project_cash_flow(inputs, statement)
    balance_sheet = project_balance_sheet(inputs, schedule, long_statement)

    issues = [
        f"Year {bs.year}: assets differ from liabilities plus equity by {bs.accounting_check:.2f}"
        for bs in balance_sheet
        if bs.accounting_check is not None and abs(bs.accounting_check) > BALANCE_TOLERANCE
    ]

    return FinancialAnalysis(
        years=tuple(statement),
        amortization=tuple(schedule),
        cash_flow=tuple(flows),
        cash_flow_notes=tuple(notes),
        balance_sheet=tuple(balance_sheet),
        metrics=compute_metrics([cf.net for cf in flows]),
        scenarios=tuple(run_scenario(inputs, schedule, years, s) for s in SCENARIOS),
        break_even=tuple(project_break_even(statement)),
        ratios=compute_ratios(inputs, statement),
        missing_inputs=tuple(missing_essentials(inputs)),
        accounting_issues=tuple(issues),
    )
