"""Retry disciplines: predicates, backoff schedules, elapsed bounds."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from conduit.errors import (
    APIError,
    BackendError,
    ConfigurationError,
    DecodeError,
    RateLimitError,
    TransportError,
)
from conduit.retry import (
    FixedRetry,
    RetryPolicy,
    backoff_delay,
    retry_async,
    should_retry_fixed,
    should_retry_generate,
)

pytestmark = pytest.mark.unit


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr("conduit.retry._sleep", fake_sleep)
    return recorded


def test_policy_validation() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(jitter="sometimes")  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        FixedRetry(max_retries=-1)
    assert FixedRetry(max_retries=2).max_attempts == 3


@pytest.mark.parametrize(
    ("exc", "expected"),
    [
        (TransportError("reset", retryable=True), True),
        (RateLimitError("429", status_code=429), True),
        (APIError("503", status_code=503), True),
        (APIError("400", status_code=400, retryable=False), False),
        (BackendError("quota", retryable=True), False),
        (DecodeError("junk"), False),
        (ConfigurationError("no key"), False),
        (httpx.ConnectError("down"), True),
        (TimeoutError(), True),
        (ValueError("bug"), False),
    ],
)
def test_should_retry_generate(exc: BaseException, expected: bool) -> None:
    assert should_retry_generate(exc) is expected


def test_should_retry_fixed_retries_everything_but_backend_errors() -> None:
    assert should_retry_fixed(ValueError("x")) is True
    assert should_retry_fixed(APIError("x", retryable=False)) is True
    assert should_retry_fixed(BackendError("x")) is False
    assert should_retry_fixed(ConfigurationError("x")) is False
    assert should_retry_fixed(asyncio.CancelledError()) is False


def test_fixed_schedule_is_quadratic() -> None:
    policy = FixedRetry(max_retries=4)
    delays = [backoff_delay(policy, retry_index=n) for n in range(1, 5)]
    assert delays == pytest.approx([0.1, 0.4, 0.9, 1.6])


def test_exponential_schedule_without_jitter_is_capped() -> None:
    policy = RetryPolicy(
        max_attempts=6,
        initial_delay_s=0.5,
        backoff_multiplier=2.0,
        max_delay_s=3.0,
        jitter="none",
    )
    delays = [backoff_delay(policy, retry_index=n) for n in range(1, 6)]
    assert delays == [0.5, 1.0, 2.0, 3.0, 3.0]


@pytest.mark.parametrize("jitter", ["full", "equal"])
def test_jitter_stays_within_bounds(jitter: str) -> None:
    policy = RetryPolicy(initial_delay_s=1.0, jitter=jitter)  # type: ignore[arg-type]
    for _ in range(50):
        delay = backoff_delay(policy, retry_index=1)
        low = 0.5 if jitter == "equal" else 0.0
        assert low <= delay <= 1.0


@pytest.mark.asyncio
async def test_none_policy_runs_once() -> None:
    calls = 0

    async def factory() -> str:
        nonlocal calls
        calls += 1
        raise TransportError("x", retryable=True)

    with pytest.raises(TransportError):
        await retry_async(factory, policy=None)
    assert calls == 1


@pytest.mark.asyncio
async def test_retries_until_success(sleeps: list[float]) -> None:
    outcomes: list[Exception | str] = [
        TransportError("a", retryable=True),
        TransportError("b", retryable=True),
        "done",
    ]

    async def factory() -> str:
        item = outcomes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    policy = RetryPolicy(max_attempts=3, initial_delay_s=0.2, jitter="none")
    assert await retry_async(factory, policy=policy) == "done"
    assert sleeps == [0.2, 0.4]


@pytest.mark.asyncio
async def test_non_retryable_error_is_raised_immediately(sleeps: list[float]) -> None:
    calls = 0

    async def factory() -> str:
        nonlocal calls
        calls += 1
        raise BackendError("bad", retryable=False)

    with pytest.raises(BackendError):
        await retry_async(factory, policy=RetryPolicy(max_attempts=5))
    assert calls == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_fixed_retry_ignores_retry_after(sleeps: list[float]) -> None:
    async def factory() -> str:
        raise RateLimitError("429", retryable=True, retry_after_s=30.0)

    with pytest.raises(RateLimitError):
        await retry_async(factory, policy=FixedRetry(max_retries=1))
    assert sleeps == [pytest.approx(0.1)]


@pytest.mark.asyncio
async def test_elapsed_budget_stops_retrying(sleeps: list[float]) -> None:
    calls = 0

    async def factory() -> str:
        nonlocal calls
        calls += 1
        raise TransportError("x", retryable=True)

    policy = RetryPolicy(max_attempts=10, max_elapsed_s=0.0)
    with pytest.raises(TransportError):
        await retry_async(factory, policy=policy)
    assert calls == 1
