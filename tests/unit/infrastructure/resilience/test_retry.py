# tests/unit/infrastructure/resilience/test_retry.py
from __future__ import annotations

import pytest

from feasibility_api.infrastructure.resilience.retry import RetryPolicy, retry_async


class _Sleeps:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def test_backoff_is_exponential_and_capped() -> None:
    policy = RetryPolicy(total=5, base=0.5, cap=2.0, jitter=False)
    assert [policy.backoff(n) for n in range(4)] == [0.5, 1.0, 2.0, 2.0]


def test_jittered_backoff_stays_within_bounds() -> None:
    policy = RetryPolicy(total=1, base=1.0, cap=4.0, jitter=True)
    assert all(0.0 <= policy.backoff(2) <= 4.0 for _ in range(50))


@pytest.mark.asyncio
async def test_retries_until_success() -> None:
    calls = 0
    sleeps = _Sleeps()

    async def flaky() -> str:
        nonlocal calls
        calls += 1
        if calls < 3:
            raise ConnectionError("again")
        return "ok"

    result = await retry_async(
        flaky,
        policy=RetryPolicy(total=3, base=0.1, cap=1.0, jitter=False),
        retry_on=lambda exc: isinstance(exc, ConnectionError),
        sleep=sleeps,
    )

    assert result == "ok"
    assert calls == 3
    assert sleeps.delays == [0.1, 0.2]


@pytest.mark.asyncio
async def test_budget_exhaustion_reraises_last_error() -> None:
    calls = 0

    async def always_fails() -> None:
        nonlocal calls
        calls += 1
        raise ConnectionError(f"attempt {calls}")

    with pytest.raises(ConnectionError, match="attempt 3"):
        await retry_async(
            always_fails,
            policy=RetryPolicy(total=2, base=0, cap=0, jitter=False),
            retry_on=lambda exc: True,
            sleep=_Sleeps(),
        )


@pytest.mark.asyncio
async def test_non_retryable_errors_propagate_immediately() -> None:
    calls = 0

    async def bad_request() -> None:
        nonlocal calls
        calls += 1
        raise ValueError("bad")

    with pytest.raises(ValueError):
        await retry_async(
            bad_request,
            policy=RetryPolicy(total=5, base=0, cap=0, jitter=False),
            retry_on=lambda exc: isinstance(exc, ConnectionError),
            sleep=_Sleeps(),
        )
    assert calls == 1
