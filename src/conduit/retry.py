"""Bounded async retry with explicit error contracts.

Two disciplines are supported:

- :class:`RetryPolicy`: exponential backoff with jitter, honoring
  ``Retry-After`` and an overall elapsed-time bound. Only errors marked
  retryable (or carrying a retryable HTTP status) are retried.
- :class:`FixedRetry`: the legacy quadratic schedule (``n² × 100 ms`` before
  retry *n*), no jitter. Retries anything except errors the backend reported
  itself.

``None`` means exactly one attempt.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import random
import time
from typing import TYPE_CHECKING, Literal, TypeVar

import httpx

from conduit._http import RETRYABLE_STATUS_CODES
from conduit.errors import (
    APIError,
    BackendError,
    ConduitError,
    DecodeError,
    _walk_exception_chain,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

JitterMode = Literal["full", "equal", "none"]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry policy with exponential backoff and optional jitter."""

    max_attempts: int = 2
    initial_delay_s: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay_s: float = 5.0
    #: "full": uniform in [0, d]; "equal": d/2 + uniform in [0, d/2].
    jitter: JitterMode = "full"
    max_elapsed_s: float | None = 15.0

    def __post_init__(self) -> None:
        """Validate invariants to keep retry behavior predictable."""
        if self.max_attempts < 1:
            raise ValueError("RetryPolicy.max_attempts must be >= 1")
        if self.initial_delay_s < 0:
            raise ValueError("RetryPolicy.initial_delay_s must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("RetryPolicy.backoff_multiplier must be > 0")
        if self.max_delay_s < 0:
            raise ValueError("RetryPolicy.max_delay_s must be >= 0")
        if self.max_elapsed_s is not None and self.max_elapsed_s < 0:
            raise ValueError("RetryPolicy.max_elapsed_s must be >= 0 or None")
        if self.jitter not in ("full", "equal", "none"):
            raise ValueError("RetryPolicy.jitter must be 'full', 'equal' or 'none'")


@dataclass(frozen=True)
class FixedRetry:
    """Legacy retry: ``max_retries + 1`` attempts on a quadratic schedule."""

    max_retries: int = 0

    def __post_init__(self) -> None:
        """Reject negative budgets."""
        if self.max_retries < 0:
            raise ValueError("FixedRetry.max_retries must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


AnyRetry = RetryPolicy | FixedRetry


def _retry_after_from_error(exc: BaseException) -> float | None:
    if isinstance(exc, APIError):
        v = exc.retry_after_s
        if isinstance(v, (int, float)) and v >= 0:
            return float(v)
    return None


def _is_transient_network_error(exc: BaseException) -> bool:
    for e in _walk_exception_chain(exc):
        if isinstance(e, (TimeoutError, httpx.TimeoutException, httpx.RequestError)):
            return True
    return False


def should_retry_generate(exc: BaseException) -> bool:
    """Return True when a *generate* exception should be retried.

    Contract:
    - Cancellation is never retried.
    - Errors the backend reported in the body, and undecodable envelopes,
      are never retried.
    - APIError is retried only when marked retryable or carrying a known
      retryable HTTP status code.
    - Raw timeouts and httpx transport errors are retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, (BackendError, DecodeError)):
        return False

    if isinstance(exc, APIError):
        return (exc.retryable is True) or (
            isinstance(exc.status_code, int)
            and exc.status_code in RETRYABLE_STATUS_CODES
        )
    if isinstance(exc, ConduitError):
        return False

    return _is_transient_network_error(exc)


def should_retry_fixed(exc: BaseException) -> bool:
    """Return True when the legacy schedule should retry *exc*.

    Everything except cancellation, backend-reported errors and local
    (non-API) Conduit errors is retried.
    """
    if isinstance(exc, asyncio.CancelledError):
        return False
    if isinstance(exc, BackendError):
        return False
    return isinstance(exc, APIError) or not isinstance(exc, ConduitError)


def backoff_delay(policy: AnyRetry, *, retry_index: int) -> float:
    """Return the sleep before retry *retry_index* (1 for the first retry)."""
    if isinstance(policy, FixedRetry):
        return (retry_index**2) * 0.1

    base = policy.initial_delay_s * (
        policy.backoff_multiplier ** max(0, retry_index - 1)
    )
    base = min(policy.max_delay_s, base)
    if base <= 0:
        return 0.0
    match policy.jitter:
        case "full":
            return random.random() * base  # noqa: S311
        case "equal":
            return base / 2 + random.random() * (base / 2)  # noqa: S311
        case _:
            return base


async def _sleep(delay: float) -> None:
    await asyncio.sleep(delay)


async def retry_async(
    factory: Callable[[], Awaitable[T]],
    *,
    policy: AnyRetry | None,
    should_retry: Callable[[BaseException], bool] | None = None,
) -> T:
    """Run an async factory with bounded retries.

    The predicate defaults to :func:`should_retry_generate` for
    :class:`RetryPolicy` and :func:`should_retry_fixed` for
    :class:`FixedRetry`. With ``policy=None`` the factory runs once.
    """
    if policy is None:
        return await factory()
    if should_retry is None:
        should_retry = (
            should_retry_fixed
            if isinstance(policy, FixedRetry)
            else should_retry_generate
        )
    max_elapsed_s = policy.max_elapsed_s if isinstance(policy, RetryPolicy) else None

    start = time.monotonic()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await factory()
        except Exception as exc:
            if not should_retry(exc) or attempt >= policy.max_attempts:
                raise

            delay = backoff_delay(policy, retry_index=attempt)
            retry_after = _retry_after_from_error(exc)
            if retry_after is not None and isinstance(policy, RetryPolicy):
                delay = max(delay, retry_after)

            if max_elapsed_s is not None:
                remaining = max_elapsed_s - (time.monotonic() - start)
                if remaining <= 0:
                    raise
                delay = min(delay, remaining)

            logger.debug(
                "Attempt %d/%d failed (%s); retrying in %.2fs",
                attempt,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            if delay > 0:
                await _sleep(delay)

    raise RuntimeError("retry_async exhausted without an exception")  # pragma: no cover
