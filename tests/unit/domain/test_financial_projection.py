# tests/unit/domain/test_financial_projection.py
from __future__ import annotations

import pytest

from feasibility_api.domain.entities.financials import FinancialYear
from feasibility_api.domain.services.amortization import build_amortization_schedule
from feasibility_api.domain.services.financial_projection import (
    MISSING_MARKET_SIZE,
    SCENARIOS,
    analyze,
    depreciation_for_year,
    market_share,
    project_break_even,
    project_cogs,
    project_income_statement,
)
from feasibility_api.domain.services.projection_inputs import (
    InvestmentLine,
    ProjectionInputs,
    StaffLine,
    parse_market_gap,
)


def _bakery(**overrides: object) -> ProjectionInputs:
    values: dict[str, object] = {
        "market_size": 100_000.0,
        "competitors_count": 0.0,
        "growth_rate": 5.0,
        "inventory_value": 4_500.0,
        "annual_other_operations": 5_500.0,
        "annual_depreciation": 0.0,
        "loan_amount": 2_000.0,
        "interest_rate": 0.0,
        "loan_months": 24.0,
    }
    values.update(overrides)
    return ProjectionInputs(**values)  # type: ignore[arg-type]


# -----------------------------------------------------------------------------
# Amortization
# -----------------------------------------------------------------------------


def test_two_year_schedule_closes_at_zero() -> None:
    schedule = build_amortization_schedule(10_000, 10, 24)

    assert len(schedule) == 2
    assert schedule[0].interest == pytest.approx(1_000.0)
    assert schedule[0].payment == pytest.approx(5_761.90, abs=0.01)
    assert schedule[-1].remaining_principal == 0.0
    assert sum(r.principal for r in schedule) == pytest.approx(10_000.0)


def test_zero_rate_splits_principal_evenly() -> None:
    schedule = build_amortization_schedule(2_000, 0, 24)
    assert [r.payment for r in schedule] == [1_000.0, 1_000.0]
    assert all(r.interest == 0 for r in schedule)


def test_partial_year_rounds_up() -> None:
    assert len(build_amortization_schedule(1_000, 5, 13)) == 2


@pytest.mark.parametrize(
    ("amount", "rate", "months"),
    [(None, 5, 12), (0, 5, 12), (1_000, -1, 12), (1_000, 5, 0), (1_000, None, 12)],
)
def test_invalid_loan_inputs_yield_no_schedule(
    amount: float | None, rate: float | None, months: float | None
) -> None:
    assert build_amortization_schedule(amount, rate, months) == []


# -----------------------------------------------------------------------------
# Income statement
# -----------------------------------------------------------------------------


def test_sales_grow_from_market_share() -> None:
    analysis = analyze(_bakery())
    assert analysis.years[0].sales == pytest.approx(15_000.0)
    assert analysis.years[1].sales == pytest.approx(15_750.0)


def test_profit_before_tax_without_tax_rate_leaves_tax_unknown() -> None:
    first = analyze(_bakery()).years[0]

    assert first.cogs == pytest.approx(4_500.0)
    assert first.gross_profit == pytest.approx(10_500.0)
    assert first.ebit == pytest.approx(5_000.0)
    assert first.loan_payment_annual == pytest.approx(1_000.0)
    assert first.profit_before_tax == pytest.approx(4_000.0)
    assert first.income_tax is None
    assert first.net_profit is None


def test_tax_is_never_negative() -> None:
    first = analyze(_bakery(market_size=1_000.0, tax_rate=20.0)).years[0]
    assert first.profit_before_tax is not None and first.profit_before_tax < 0
    assert first.income_tax == 0.0


def test_missing_market_size_propagates_none_and_is_reported() -> None:
    analysis = analyze(_bakery(market_size=None))

    assert analysis.years[0].sales is None
    assert analysis.years[0].net_profit is None
    assert MISSING_MARKET_SIZE in analysis.missing_inputs
    assert analysis.is_partial


def test_cogs_ratio_is_clamped() -> None:
    assert project_cogs(10_000, 100) == pytest.approx(3_000)
    assert project_cogs(10_000, 9_000) == pytest.approx(7_000)
    assert project_cogs(None, 100) is None


def test_market_share_heuristic() -> None:
    assert market_share(ProjectionInputs(competitors_count=0)) == 0.15
    assert market_share(ProjectionInputs(competitors_count=4, market_gap=True)) == 0.08
    assert market_share(ProjectionInputs(competitors_count=4, market_gap=False)) == 0.02
    assert market_share(ProjectionInputs()) == 0.03


def test_market_gap_parsing() -> None:
    assert parse_market_gap("Exists") is True
    assert parse_market_gap("no") is False
    assert parse_market_gap(None) is None


def test_salaries_from_staff_table() -> None:
    inputs = ProjectionInputs(staff=(StaffLine(2, 1_000), StaffLine(None, 500)))
    assert inputs.annual_salaries == 24_000


# -----------------------------------------------------------------------------
# Cash flow, balance sheet, scenarios
# -----------------------------------------------------------------------------


def test_cash_flow_year_zero_notes_missing_components() -> None:
    analysis = analyze(_bakery())

    year0 = analysis.cash_flow[0]
    assert year0.year == 0
    assert year0.investing == pytest.approx(-4_500.0)
    assert any("property price" in note for note in analysis.cash_flow_notes)
    assert any("personal contribution" in note for note in analysis.cash_flow_notes)
    assert len(analysis.cash_flow) == 6


def test_balance_sheet_identity_holds_for_consistent_inputs() -> None:
    inventory, property_price = 3_000.0, 20_000.0
    inputs = ProjectionInputs(
        market_size=0.0,
        inventory_value=inventory,
        property_price=property_price,
        monthly_rent=0.0,
        tax_rate=10.0,
        personal_contribution=property_price + inventory,
        loan_amount=0.0,
        license_total=0.0,
    )

    analysis = analyze(inputs)

    assert len(analysis.balance_sheet) == 5
    for sheet in analysis.balance_sheet:
        assert sheet.cash is None
        assert sheet.receivables == 0.0
        assert sheet.accounting_check == pytest.approx(0.0)
    assert analysis.accounting_issues == ()


def test_balance_sheet_residual_is_reported_not_forced() -> None:
    inputs = ProjectionInputs(
        market_size=0.0,
        inventory_value=1_000.0,
        monthly_rent=0.0,
        tax_rate=10.0,
        personal_contribution=5_000.0,
        loan_amount=0.0,
        license_total=0.0,
    )
    analysis = analyze(inputs)
    assert analysis.balance_sheet[0].accounting_check == pytest.approx(-4_000.0)
    assert analysis.accounting_issues


def test_every_scenario_is_reported() -> None:
    analysis = analyze(_bakery(tax_rate=10.0))
    assert [s.key for s in analysis.scenarios] == [s.key for s in SCENARIOS]


def test_horizon_must_be_positive() -> None:
    with pytest.raises(ValueError):
        analyze(_bakery(), years=0)


def test_analysis_serializes_to_camel_case() -> None:
    data = analyze(_bakery()).to_dict()
    assert "cashFlow" in data
    assert "profitBeforeTax" in data["years"][0]


def test_scenario_shocks_move_npv_below_base() -> None:
    analysis = analyze(_bakery(tax_rate=10.0))
    by_key = {s.key: s for s in analysis.scenarios}

    base = by_key["base"].npv
    assert base is not None
    for key in ("project_cost_plus_10", "project_cost_plus_20", "sales_price_minus_5"):
        shocked = by_key[key].npv
        assert shocked is not None
        assert shocked < base
    assert by_key["base"].npv == pytest.approx(analysis.metrics.npv)


def test_operating_cost_scenario_leaves_depreciation_unscaled() -> None:
    inputs = _bakery(annual_depreciation=1_000.0, tax_rate=10.0)
    shock = next(s for s in SCENARIOS if s.key == "operating_cost_plus_20").adjustments
    schedule = build_amortization_schedule(
        inputs.loan_amount, inputs.interest_rate, inputs.loan_months
    )

    base = project_income_statement(inputs, schedule, 2)[0]
    shocked = project_income_statement(inputs, schedule, 2, shock)[0]

    assert shocked.other_ops == pytest.approx(5_500.0 * 1.2)
    assert shocked.depreciation == base.depreciation == pytest.approx(1_000.0)
    assert shocked.sales == base.sales


def test_unparseable_investment_return_nulls_operating_cash_and_metrics() -> None:
    unparseable = InvestmentLine(value=1_000.0, return_percent=None)
    inputs = _bakery(tax_rate=10.0, investments=(unparseable,))

    analysis = analyze(inputs)

    assert analysis.years[0].net_profit is not None
    assert [cf.operating for cf in analysis.cash_flow[1:]] == [None] * 5
    assert all(cf.net is None for cf in analysis.cash_flow[1:])
    assert analysis.metrics.npv is None
    assert analysis.metrics.irr is None
    assert analysis.metrics.payback_period is None
    assert analysis.metrics.benefit_cost_ratio is None
    assert all(s.npv is None for s in analysis.scenarios)


# -----------------------------------------------------------------------------
# Break-even
# -----------------------------------------------------------------------------


def _year(
    year: int, *, sales: float, cogs: float, opex: float | None, depreciation: float = 0.0
) -> FinancialYear:
    return FinancialYear(
        year=year,
        sales=sales,
        cogs=cogs,
        total_operating_expenses=opex,
        depreciation=depreciation,
    )


def test_break_even_divides_fixed_costs_by_contribution_margin() -> None:
    rows = project_break_even(
        [
            _year(1, sales=10_000.0, cogs=4_000.0, opex=2_000.0, depreciation=400.0),
            _year(2, sales=10_000.0, cogs=10_000.0, opex=2_000.0),
            _year(3, sales=10_000.0, cogs=12_000.0, opex=2_000.0),
            _year(4, sales=0.0, cogs=0.0, opex=2_000.0),
            _year(5, sales=10_000.0, cogs=4_000.0, opex=None),
        ]
    )

    first = rows[0]
    assert first.fixed_costs == pytest.approx(2_400.0)
    assert first.contribution_margin_ratio == pytest.approx(0.6)
    assert first.break_even_sales == pytest.approx(4_000.0)
    assert rows[1].contribution_margin_ratio == 0.0
    assert rows[1].break_even_sales is None
    assert rows[2].break_even_sales is None
    assert rows[3].contribution_margin_ratio is None
    assert rows[3].break_even_sales is None
    assert rows[4].fixed_costs is None
    assert rows[4].break_even_sales is None


def test_analysis_break_even_follows_the_statement() -> None:
    analysis = analyze(_bakery())
    first = analysis.break_even[0]
    # fixed 5,500 opex + 0 depreciation; margin (15,000 - 4,500) / 15,000
    assert first.fixed_costs == pytest.approx(5_500.0)
    assert first.contribution_margin_ratio == pytest.approx(0.7)
    assert first.break_even_sales == pytest.approx(5_500.0 / 0.7)


# -----------------------------------------------------------------------------
# Balance sheet with activity
# -----------------------------------------------------------------------------


def _operating_business() -> ProjectionInputs:
    return ProjectionInputs(
        market_size=100_000.0,
        competitors_count=0.0,
        inventory_value=4_500.0,
        annual_other_operations=2_000.0,
        equipment_total=10_000.0,
        license_total=0.0,
        property_price=0.0,
        additional_investments_total=0.0,
        personal_contribution=5_000.0,
        loan_amount=10_000.0,
        interest_rate=10.0,
        loan_months=36.0,
        tax_rate=10.0,
    )


def test_balance_sheet_tracks_retained_earnings_and_debt_split() -> None:
    inputs = _operating_business()
    analysis = analyze(inputs)
    schedule = analysis.amortization
    assert len(schedule) == 3

    cumulative = 0.0
    for sheet, fy in zip(analysis.balance_sheet, analysis.years, strict=True):
        assert fy.net_profit is not None and fy.net_profit > 0
        cumulative += fy.net_profit
        assert sheet.retained_earnings == pytest.approx(cumulative)
        assert sheet.total_equity == pytest.approx(5_000.0 + cumulative)
        assert sheet.accumulated_depreciation == pytest.approx(2_000.0 * sheet.year)
        assert sheet.current_loan + sheet.non_current_loan == pytest.approx(sheet.total_liabilities)
        assert sheet.accounting_check == pytest.approx(
            sheet.total_assets - (sheet.total_liabilities + sheet.total_equity)
        )

    sheets = analysis.balance_sheet
    assert sheets[0].total_liabilities == pytest.approx(schedule[0].remaining_principal)
    assert sheets[0].current_loan == pytest.approx(schedule[1].principal)
    assert sheets[1].current_loan == pytest.approx(schedule[2].principal)
    assert sheets[1].non_current_loan == pytest.approx(0.0)
    assert sheets[2].current_loan == 0.0
    assert sheets[2].total_liabilities == pytest.approx(0.0)
    assert sheets[4].total_liabilities == 0.0


def test_declared_depreciation_is_shared_by_both_statements() -> None:
    inputs = ProjectionInputs(
        market_size=0.0,
        monthly_rent=0.0,
        inventory_value=2_000.0,
        equipment_total=10_000.0,
        license_total=0.0,
        property_price=0.0,
        additional_investments_total=0.0,
        annual_depreciation=3_000.0,
        personal_contribution=12_000.0,
        loan_amount=0.0,
        tax_rate=10.0,
    )

    analysis = analyze(inputs)

    charges = [fy.depreciation for fy in analysis.years]
    assert charges == pytest.approx([3_000.0, 3_000.0, 3_000.0, 1_000.0, 0.0])
    accumulated = [bs.accumulated_depreciation for bs in analysis.balance_sheet]
    assert accumulated == pytest.approx([3_000.0, 6_000.0, 9_000.0, 10_000.0, 10_000.0])
    for sheet in analysis.balance_sheet:
        assert sheet.accounting_check == pytest.approx(0.0)
    assert analysis.accounting_issues == ()


def test_depreciation_without_known_base_is_not_capped() -> None:
    inputs = ProjectionInputs(annual_depreciation=500.0)
    assert [depreciation_for_year(inputs, year) for year in (1, 6, 10)] == [500.0, 500.0, 500.0]
    assert depreciation_for_year(ProjectionInputs(), 1) is None


def test_balance_sheet_names_missing_components() -> None:
    partial = analyze(_bakery(tax_rate=10.0)).balance_sheet[0]
    complete = analyze(_operating_business()).balance_sheet[0]

    note = next(n for n in partial.notes if n.startswith("Balance sheet excludes missing"))
    for name in ("equipment total", "property price", "license total", "personal contribution"):
        assert name in note
    assert "initial inventory" not in note
    assert partial.equipment == 0.0
    assert not any(n.startswith("Balance sheet excludes missing") for n in complete.notes)
    assert complete.notes[0] == "Cash balance: Data required"
