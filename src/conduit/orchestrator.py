"""Retry-and-fallback orchestration over providers.

One ``execute`` call walks the fallback chain strictly in order. Each model
gets its own attempt budget under the active retry discipline, every attempt
passes through the shared rate-limit gate first, and the first success ends
the chain.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
import copy
from dataclasses import dataclass, field, replace
import logging
import time
from typing import TYPE_CHECKING

from conduit.backends import Backend, as_backend
from conduit.capabilities import check_request
from conduit.errors import (
    APIError,
    ConduitError,
    ConfigurationError,
    DeadlineExceededError,
    ResponseValidationError,
)
from conduit.ratelimit import RateLimitGate, default_gate
from conduit.resolver import resolve
from conduit.results import Citation, ToolCallResult, Usage
from conduit.retry import AnyRetry, retry_async

if TYPE_CHECKING:
    from conduit.providers.base import ChunkCallback, Provider
    from conduit.providers.models import ProviderResponse
    from conduit.request import Request

logger = logging.getLogger(__name__)

#: Inspects the response text. Return ``False`` (or raise
#: ``ResponseValidationError``) to reject it, a string to replace it, or
#: ``None``/``True`` to keep it.
Validator = Callable[[str], "str | bool | None"]


@dataclass(frozen=True)
class Target:
    """A chain entry pinned to a specific backend."""

    backend: Backend
    model: str

    def __post_init__(self) -> None:
        """Coerce backend names."""
        object.__setattr__(self, "backend", as_backend(self.backend))


ChainEntry = str | Target


@dataclass(frozen=True)
class Response:
    """Unified result of one ``execute`` call."""

    text: str
    usage: Usage = field(default_factory=Usage)
    tool_calls: tuple[ToolCallResult, ...] = ()
    citations: tuple[Citation, ...] = ()
    finish_reason: str | None = None
    #: Abstract model that served the call (may be a fallback).
    model: str = ""
    backend: Backend | None = None
    #: Attempts beyond the first within each model, summed over the chain.
    retries: int = 0
    latency_s: float = 0.0
    response_id: str | None = None


class Orchestrator:
    """Drives resolver, providers and retry policy over a fallback chain.

    Example:
        orchestrator = Orchestrator({Backend.OPENAI: provider})
        response = await orchestrator.execute(
            request,
            fallbacks=[catalog.GPT_5_MINI],
            retry=RetryPolicy(max_attempts=3),
        )
    """

    def __init__(
        self,
        providers: Mapping[Backend, Provider],
        *,
        default_backend: Backend | str | None = None,
        gate: RateLimitGate | None = None,
        validators: Sequence[Validator] = (),
    ) -> None:
        """Route bare model strings to *default_backend* (the sole provider if omitted)."""
        if not providers:
            raise ConfigurationError(
                "Orchestrator needs at least one provider",
                hint="Pass providers={Backend.OPENAI: OpenAIProvider(config)}.",
            )
        self._providers = {as_backend(b): p for b, p in providers.items()}
        if default_backend is None:
            if len(self._providers) != 1:
                raise ConfigurationError(
                    "default_backend is required with more than one provider",
                    hint="Pass default_backend=Backend.OPENAI (or another key).",
                )
            default_backend = next(iter(self._providers))
        self._default_backend = as_backend(default_backend)
        if self._default_backend not in self._providers:
            raise ConfigurationError(
                f"No provider registered for default backend {self._default_backend.value}",
            )
        self._gate = gate if gate is not None else default_gate()
        self._validators = tuple(validators)

    @property
    def default_backend(self) -> Backend:
        return self._default_backend

    async def execute(
        self,
        request: Request,
        *,
        fallbacks: Sequence[ChainEntry] = (),
        retry: AnyRetry | None = None,
        on_chunk: ChunkCallback | None = None,
        timeout_s: float | None = None,
    ) -> Response:
        """Run *request* against its model, then each fallback in order.

        Raises:
            APIError: The last error once the chain is exhausted, tagged with
                the primary model.
            DeadlineExceededError: ``timeout_s`` elapsed first.
            ResponseValidationError: A validator rejected the content.
        """
        if timeout_s is not None and timeout_s <= 0:
            raise ConfigurationError("timeout_s must be > 0")
        try:
            async with asyncio.timeout(timeout_s):
                return await self._run_chain(
                    request, fallbacks=fallbacks, retry=retry, on_chunk=on_chunk
                )
        except TimeoutError as e:
            raise DeadlineExceededError(
                f"Deadline of {timeout_s}s exceeded for {request.model}",
                retryable=False,
                model=request.model,
                phase="execute",
            ) from e

    async def _run_chain(
        self,
        request: Request,
        *,
        fallbacks: Sequence[ChainEntry],
        retry: AnyRetry | None,
        on_chunk: ChunkCallback | None,
    ) -> Response:
        start = time.perf_counter()
        chain: list[ChainEntry] = [request.model, *fallbacks]
        primary = request.model
        total_retries = 0
        last_error: Exception | None = None

        for position, entry in enumerate(chain):
            backend, model = self._target(entry)
            provider = self._providers.get(backend)
            if provider is None:
                last_error = ConfigurationError(
                    f"No provider registered for backend {backend.value}",
                    hint="Add it to Orchestrator(providers=...).",
                )
                logger.info("Skipping %s: %s", model, last_error)
                continue

            attempt_request = (
                request if model == request.model else replace(request, model=model)
            )
            check_request(backend, attempt_request)
            model_id = resolve(backend, model)
            attempts = 0

            async def attempt(
                provider: Provider = provider,
                req: Request = attempt_request,
                model_id: str = model_id,
            ) -> ProviderResponse:
                nonlocal attempts
                attempts += 1
                await self._gate.wait()
                logger.debug(
                    "Attempt %d on %s (%s/%s)",
                    attempts,
                    req.model,
                    provider.backend.value,
                    model_id,
                )
                if on_chunk is not None:
                    return await provider.stream(req, model_id, on_chunk)
                return await provider.generate(req, model_id)

            try:
                result = await retry_async(attempt, policy=retry)
            except asyncio.CancelledError:
                raise
            except ConduitError as e:
                if isinstance(e, (ResponseValidationError, DeadlineExceededError)):
                    raise
                last_error = e
            except Exception as e:
                last_error = e
            else:
                total_retries += max(0, attempts - 1)
                text = self._validate(result.text, model)
                logger.info(
                    "Served %s via %s after %d retr%s",
                    model,
                    backend.value,
                    total_retries,
                    "y" if total_retries == 1 else "ies",
                )
                return Response(
                    text=text,
                    usage=result.usage,
                    tool_calls=result.tool_calls,
                    citations=result.citations,
                    finish_reason=result.finish_reason,
                    model=model,
                    backend=backend,
                    retries=total_retries,
                    latency_s=time.perf_counter() - start,
                    response_id=result.response_id,
                )

            total_retries += max(0, attempts - 1)
            if position + 1 < len(chain):
                logger.info(
                    "%s exhausted after %d attempt(s) (%s); falling back",
                    model,
                    attempts,
                    type(last_error).__name__,
                )

        raise _tag_primary(last_error, primary) from last_error

    def _target(self, entry: ChainEntry) -> tuple[Backend, str]:
        if isinstance(entry, Target):
            return entry.backend, entry.model
        return self._default_backend, entry

    def _validate(self, text: str, model: str) -> str:
        for validator in self._validators:
            verdict = validator(text)
            if verdict is False:
                raise ResponseValidationError(
                    f"Response from {model} rejected by {_name(validator)}",
                    hint="The call is not retried on fallback models.",
                )
            if isinstance(verdict, str):
                text = verdict
        return text


def _tag_primary(err: Exception | None, primary: str) -> Exception:
    """Return a copy of *err* attributed to the *primary* model."""
    if err is None:
        return ConfigurationError(f"Fallback chain for {primary} was empty")
    if isinstance(err, APIError):
        tagged = copy.copy(err)
        tagged.model = primary
        return tagged
    return APIError(f"{primary}: {err}", retryable=False, model=primary)


def _name(fn: Callable[..., object]) -> str:
    return getattr(fn, "__name__", type(fn).__name__)
