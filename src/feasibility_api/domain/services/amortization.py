# src/feasibility_api/domain/services/amortization.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Annual loan amortization.

Purpose:
    Build a fixed-annual-payment loan schedule from amount, annual rate and
    repayment months.

Layer:
    domain/services

Notes:
    - Months round up to whole years (``ceil(months / 12)``).
    - The final row forces ``principal = remaining balance`` so the schedule
      closes at exactly zero.
    - Invalid or missing inputs yield an empty schedule; no default loan is
      ever assumed.
"""

from __future__ import annotations

import math

from feasibility_api.domain.entities.financials import AmortizationEntry


def build_amortization_schedule(
    loan_amount: float | None,
    annual_rate_percent: float | None,
    repayment_months: float | None,
) -> list[AmortizationEntry]:
    """Return the annual amortization schedule.

    Args:
        loan_amount: Principal borrowed; must be > 0.
        annual_rate_percent: Annual interest rate in percent; must be >= 0.
        repayment_months: Loan term in months; must be > 0.

    Returns:
        list[AmortizationEntry]: One row per year, or ``[]`` when any input is
        missing or invalid.
    """
    if loan_amount is None or annual_rate_percent is None or repayment_months is None:
        return []
    if not all(math.isfinite(v) for v in (loan_amount, annual_rate_percent, repayment_months)):
        return []
    if loan_amount <= 0 or annual_rate_percent < 0 or repayment_months <= 0:
        return []

    years = math.ceil(repayment_months / 12)
    rate = annual_rate_percent / 100.0
    if rate == 0:
        payment = loan_amount / years
    else:
        payment = rate * loan_amount / (1 - (1 + rate) ** (-years))

    schedule: list[AmortizationEntry] = []
    remaining = loan_amount
    for year in range(1, years + 1):
        interest = remaining * rate
        if year == years:
            principal = remaining
            row_payment = principal + interest
        else:
            principal = payment - interest
            row_payment = payment
        remaining = remaining - principal if year < years else 0.0
        schedule.append(
            AmortizationEntry(
                year=year,
                payment=row_payment,
                interest=interest,
                principal=principal,
                remaining_principal=max(remaining, 0.0),
            )
        )
    return schedule
