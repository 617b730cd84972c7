# src/feasibility_api/application/services/financial_tables.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Financial statement tables.

Purpose:
    Render a :class:`FinancialAnalysis` as ``{headers, rows}`` tables with
    string cells, using ``"Data required"`` wherever a value is unknown, and
    convert statement mirrors into titled report tables.

Layer:
    application/services
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from typing import Any, Final

from feasibility_api.domain.entities.financials import (
    NO_DATA,
    FinancialAnalysis,
    FinancialYear,
)

type Table = dict[str, list[Any]]

RATIO_LABELS: Final[dict[str, str]] = {
    "grossMargin": "Gross margin",
    "operatingMargin": "Operating margin",
    "netMargin": "Net margin",
    "debtToEquity": "Debt to equity",
    "returnOnInvestment": "Return on investment",
}
PERCENT_RATIOS: Final[frozenset[str]] = frozenset(
    {"grossMargin", "operatingMargin", "netMargin", "returnOnInvestment"}
)


def money(value: float | None) -> str:
    """Format an amount with two decimals, or ``"Data required"``."""
    return NO_DATA if value is None else f"{value:,.2f}"


def percent(value: float | None) -> str:
    """Format a ratio as a percentage, or ``"Data required"``."""
    return NO_DATA if value is None else f"{value * 100:.2f}%"


def years_label(value: float | None) -> str:
    return NO_DATA if value is None else f"{value:.2f} years"


def _year_table(
    years: Sequence[Any],
    lines: Sequence[tuple[str, Callable[[Any], str]]],
    *,
    first_header: str = "Item",
) -> Table:
    headers = [first_header, *(f"Year {y.year}" for y in years)]
    rows = [[label, *(render(y) for y in years)] for label, render in lines]
    return {"headers": headers, "rows": rows}


def _line(attr: str) -> Callable[[Any], str]:
    return lambda row: money(getattr(row, attr))


def income_statement_table(years: Sequence[FinancialYear]) -> Table:
    """Return the projected income statement, one column per year."""
    return _year_table(
        years,
        (
            ("Sales", _line("sales")),
            ("Cost of goods sold", _line("cogs")),
            ("Gross profit", _line("gross_profit")),
            ("Salaries", _line("salaries")),
            ("Rent", _line("rent")),
            ("Marketing", _line("marketing")),
            ("Utilities", _line("utilities")),
            ("Other operating costs", _line("other_ops")),
            ("Total operating expenses", _line("total_operating_expenses")),
            ("Depreciation", _line("depreciation")),
            ("EBIT", _line("ebit")),
            ("Loan payment", _line("loan_payment_annual")),
            ("Interest expense", _line("interest_expense")),
            ("Profit before tax", _line("profit_before_tax")),
            ("Income tax", _line("income_tax")),
            ("Net profit", _line("net_profit")),
            ("Net profit margin", lambda y: percent(y.net_profit_margin)),
        ),
    )


def balance_sheet_table(analysis: FinancialAnalysis) -> Table:
    """Return the five-year balance sheet including the accounting check."""
    return _year_table(
        analysis.balance_sheet,
        (
            ("Equipment", _line("equipment")),
            ("Property", _line("property_value")),
            ("Startup costs", _line("startup_costs")),
            ("Additional investments", _line("additional_investments")),
            ("Accumulated depreciation", _line("accumulated_depreciation")),
            ("Total non-current assets", _line("total_non_current_assets")),
            ("Cash", _line("cash")),
            ("Receivables", _line("receivables")),
            ("Inventory", _line("inventory")),
            ("Total current assets", _line("total_current_assets")),
            ("Total assets", _line("total_assets")),
            ("Current portion of loan", _line("current_loan")),
            ("Non-current loan", _line("non_current_loan")),
            ("Total liabilities", _line("total_liabilities")),
            ("Paid-in capital", _line("paid_in_capital")),
            ("Retained earnings", _line("retained_earnings")),
            ("Total equity", _line("total_equity")),
            ("Accounting check", _line("accounting_check")),
        ),
    )


def cash_flow_table(analysis: FinancialAnalysis) -> Table:
    """Return the cash-flow statement from year 0."""
    return _year_table(
        analysis.cash_flow,
        (
            ("Operating cash flow", _line("operating")),
            ("Investing cash flow", _line("investing")),
            ("Financing cash flow", _line("financing")),
            ("Dividends", _line("dividends")),
            ("Net cash flow", _line("net")),
            ("Cumulative cash flow", _line("cumulative")),
        ),
    )


def amortization_table(analysis: FinancialAnalysis) -> Table:
    return {
        "headers": ["Year", "Payment", "Interest", "Principal", "Remaining principal"],
        "rows": [
            [
                str(e.year),
                money(e.payment),
                money(e.interest),
                money(e.principal),
                money(e.remaining_principal),
            ]
            for e in analysis.amortization
        ],
    }


def scenario_table(analysis: FinancialAnalysis) -> Table:
    """Return the sensitivity table (base case first)."""
    return {
        "headers": ["Scenario", "NPV", "IRR", "Benefit/cost ratio", "Payback period"],
        "rows": [
            [
                s.label,
                money(s.npv),
                percent(s.irr),
                NO_DATA if s.benefit_cost_ratio is None else f"{s.benefit_cost_ratio:.2f}",
                years_label(s.payback_period),
            ]
            for s in analysis.scenarios
        ],
    }


def break_even_table(analysis: FinancialAnalysis) -> Table:
    return _year_table(
        analysis.break_even,
        (
            ("Fixed costs", _line("fixed_costs")),
            ("Contribution margin ratio", lambda b: percent(b.contribution_margin_ratio)),
            ("Break-even sales", _line("break_even_sales")),
        ),
    )


def ratio_rows(ratios: Mapping[str, float | None]) -> list[dict[str, str]]:
    """Return ``[{metric, value}]`` rows for the year-1 ratios."""
    rows: list[dict[str, str]] = []
    for key, label in RATIO_LABELS.items():
        value = ratios.get(key)
        if key in PERCENT_RATIOS:
            rendered = percent(value)
        else:
            rendered = NO_DATA if value is None else f"{value:.2f}"
        rows.append({"metric": label, "value": rendered})
    return rows


def build_financial_statements(
    analysis: FinancialAnalysis, *, currency: str | None = None
) -> dict[str, Any]:
    """Return the statement mirror handed to the narrative generator.

    Args:
        analysis: Completed projection.
        currency: Optional currency label carried through unchanged.

    Returns:
        dict[str, Any]: ``assumptions``, the three statements, ``ratios``,
        ``roi`` and the appendix tables (amortization, scenarios, break-even).
    """
    assumptions = [
        "Discount rate for NPV: 10%",
        "Receivables and payables are assumed to be zero",
        "Cash balance is not projected",
        *analysis.cash_flow_notes,
        *(f"Missing input: {label}" for label in analysis.missing_inputs),
        *analysis.accounting_issues,
    ]
    statements: dict[str, Any] = {
        "assumptions": assumptions,
        "incomeStatement": income_statement_table(analysis.years),
        "balanceSheet": balance_sheet_table(analysis),
        "cashFlow": cash_flow_table(analysis),
        "ratios": ratio_rows(analysis.ratios),
        "roi": {
            "npv": money(analysis.metrics.npv),
            "irr": percent(analysis.metrics.irr),
            "paybackPeriod": years_label(analysis.metrics.payback_period),
        },
        "scenarios": scenario_table(analysis),
        "breakEven": break_even_table(analysis),
    }
    if analysis.amortization:
        statements["amortization"] = amortization_table(analysis)
    if currency:
        statements["currency"] = currency
    return statements


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


# Mirror key -> report table title, in rendering order.
STATEMENT_TITLES: Final[tuple[tuple[str, str], ...]] = (
    ("incomeStatement", "Income Statement"),
    ("balanceSheet", "Balance Sheet"),
    ("cashFlow", "Cash Flow Statement"),
    ("amortization", "Loan Amortization Schedule"),
    ("scenarios", "Sensitivity Analysis"),
    ("breakEven", "Break-even Analysis"),
)


def statements_to_tables(statements: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    """Convert a statement mirror into titled report tables.

    Tables with malformed ``headers``/``rows`` are skipped. Ratios and ROI
    become two-column ``Metric``/``Value`` tables.
    """
    if not isinstance(statements, Mapping):
        return []
    tables: list[dict[str, Any]] = []
    for key, title in STATEMENT_TITLES:
        table = statements.get(key)
        if (
            isinstance(table, Mapping)
            and isinstance(table.get("headers"), list)
            and isinstance(table.get("rows"), list)
        ):
            tables.append({"title": title, "headers": table["headers"], "rows": table["rows"]})
    ratios = statements.get("ratios")
    if isinstance(ratios, list):
        tables.append(
            {
                "title": "Key Ratios",
                "headers": ["Metric", "Value"],
                "rows": [
                    [_cell(r.get("metric")), _cell(r.get("value"))]
                    for r in ratios
                    if isinstance(r, Mapping)
                ],
            }
        )
    roi = statements.get("roi")
    if isinstance(roi, Mapping) and any(k in roi for k in ("npv", "irr", "paybackPeriod")):
        tables.append(
            {
                "title": "Return on Investment (ROI)",
                "headers": ["Metric", "Value"],
                "rows": [
                    ["NPV", _cell(roi.get("npv"))],
                    ["IRR", _cell(roi.get("irr"))],
                    ["Payback Period", _cell(roi.get("paybackPeriod"))],
                ],
            }
        )
    return tables
