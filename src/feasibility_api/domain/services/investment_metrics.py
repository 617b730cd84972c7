# src/feasibility_api/domain/services/investment_metrics.py
# Copyright (c)
# SPDX-License-Identifier: MIT
"""Discounted cash-flow metrics.

Purpose:
    NPV, IRR, payback period and benefit/cost ratio over a net cash-flow series
    indexed from year 0.

Layer:
    domain/services

Notes:
    Any ``None`` in the series makes every metric ``None``; a metric is never
    estimated from a partial series.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Final

from feasibility_api.domain.entities.financials import InvestmentMetrics

DISCOUNT_RATE: Final[float] = 0.10
IRR_INITIAL_GUESS: Final[float] = 0.10
IRR_MAX_ITERATIONS: Final[int] = 100
IRR_TOLERANCE: Final[float] = 1e-7
IRR_STEP: Final[float] = 1e-6

type CashFlowSeries = Sequence[float | None]


def _complete(flows: CashFlowSeries) -> list[float] | None:
    if not flows or any(cf is None or not math.isfinite(cf) for cf in flows):
        return None
    return [float(cf) for cf in flows if cf is not None]


def _npv(rate: float, flows: Sequence[float]) -> float:
    return sum(cf / (1 + rate) ** t for t, cf in enumerate(flows))


def net_present_value(flows: CashFlowSeries, rate: float = DISCOUNT_RATE) -> float | None:
    """Return ``sum(cf_t / (1 + rate) ** t)`` or ``None`` for an incomplete series."""
    values = _complete(flows)
    return None if values is None else _npv(rate, values)


def internal_rate_of_return(flows: CashFlowSeries) -> float | None:
    """Solve ``NPV(r) = 0`` by Newton-Raphson from a 10% guess.

    The derivative is approximated by a central difference. Returns ``None``
    when the series has no sign change, the iteration diverges below -100%, or
    it does not converge.
    """
    values = _complete(flows)
    if values is None:
        return None
    if not (any(v < 0 for v in values) and any(v > 0 for v in values)):
        return None

    rate = IRR_INITIAL_GUESS
    for _ in range(IRR_MAX_ITERATIONS):
        value = _npv(rate, values)
        derivative = (_npv(rate + IRR_STEP, values) - _npv(rate - IRR_STEP, values)) / (
            2 * IRR_STEP
        )
        if derivative == 0 or not math.isfinite(derivative):
            return None
        next_rate = rate - value / derivative
        if not math.isfinite(next_rate) or next_rate <= -1:
            return None
        if abs(next_rate - rate) < IRR_TOLERANCE:
            return next_rate
        rate = next_rate
    return None


def payback_period(flows: CashFlowSeries) -> float | None:
    """Return the interpolated year at which cumulative cash flow turns non-negative.

    ``None`` when the series is incomplete or never recovers.
    """
    values = _complete(flows)
    if values is None:
        return None
    cumulative = 0.0
    for year, cf in enumerate(values):
        previous = cumulative
        cumulative += cf
        if cumulative >= 0:
            if year == 0 or previous >= 0:
                return float(year)
            return (year - 1) + (-previous / cf)
    return None


def benefit_cost_ratio(flows: CashFlowSeries, rate: float = DISCOUNT_RATE) -> float | None:
    """Return discounted inflows over the absolute discounted outflows."""
    values = _complete(flows)
    if values is None:
        return None
    benefits = sum(cf / (1 + rate) ** t for t, cf in enumerate(values) if cf > 0)
    costs = abs(sum(cf / (1 + rate) ** t for t, cf in enumerate(values) if cf < 0))
    if costs == 0:
        return None
    return benefits / costs


def compute_metrics(flows: CashFlowSeries) -> InvestmentMetrics:
    """Compute every metric for ``flows`` at the fixed discount rate."""
    return InvestmentMetrics(
        npv=net_present_value(flows),
        irr=internal_rate_of_return(flows),
        payback_period=payback_period(flows),
        benefit_cost_ratio=benefit_cost_ratio(flows),
    )
