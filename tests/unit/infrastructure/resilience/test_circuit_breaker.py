# tests/unit/infrastructure/resilience/test_circuit_breaker.py
from __future__ import annotations

import pytest

from feasibility_api.infrastructure.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitOpenError,
)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def _fail(breaker: CircuitBreaker) -> None:
    with pytest.raises(RuntimeError, match="boom"):
        async with breaker.guard("narrative"):
            raise RuntimeError("boom")


@pytest.mark.asyncio
async def test_trips_open_after_threshold_and_fails_fast() -> None:
    breaker = CircuitBreaker(
        failure_threshold=2, recovery_timeout_s=30.0, half_open_max_calls=1, clock=_Clock()
    )

    await _fail(breaker)
    assert breaker.state == "CLOSED"
    await _fail(breaker)
    assert breaker.state == "OPEN"

    called = False
    with pytest.raises(CircuitOpenError, match="circuit_open"):
        async with breaker.guard("narrative"):
            called = True
    assert not called


@pytest.mark.asyncio
async def test_half_open_probe_closes_on_success() -> None:
    clock = _Clock()
    breaker = CircuitBreaker(
        failure_threshold=1, recovery_timeout_s=30.0, half_open_max_calls=1, clock=clock
    )
    await _fail(breaker)

    clock.now = 31.0
    async with breaker.guard("narrative"):
        assert breaker.state == "HALF_OPEN"

    assert breaker.state == "CLOSED"


@pytest.mark.asyncio
async def test_half_open_failure_reopens() -> None:
    clock = _Clock()
    breaker = CircuitBreaker(
        failure_threshold=1, recovery_timeout_s=10.0, half_open_max_calls=1, clock=clock
    )
    await _fail(breaker)

    clock.now = 15.0
    await _fail(breaker)

    assert breaker.state == "OPEN"
    with pytest.raises(CircuitOpenError):
        async with breaker.guard("narrative"):
            pass
