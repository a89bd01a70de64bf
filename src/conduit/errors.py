"""Exception hierarchy for Conduit."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class ConduitError(Exception):
    """Base exception for all Conduit errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(ConduitError):
    """Configuration validation or resolution failed."""


class InternalError(ConduitError):
    """A Conduit internal error (bug) or invariant violation."""


class ResponseValidationError(ConduitError):
    """A response validator rejected the model output.

    Terminal for the call: the orchestrator does not advance to a fallback
    model when content is rejected.
    """


class APIError(ConduitError):
    """API call failed.

    Providers attach retry metadata so the orchestrator can perform bounded
    retries without brittle substring matching. ``backend`` and ``code``
    identify who failed and why; ``model`` is the abstract model the caller
    asked for.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        backend: str | None = None,
        code: str | None = None,
        phase: str | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.backend = backend
        self.code = code
        self.phase = phase
        self.model = model


class TransportError(APIError):
    """Connection, timeout, or stream failure talking to a backend."""


class RateLimitError(APIError):
    """Rate limit exceeded (HTTP 429)."""


class BackendError(APIError):
    """The backend returned a structured error object.

    Assumed non-transient (bad request, quota, policy refusal): never retried
    locally.
    """


class DecodeError(APIError):
    """The response envelope could not be decoded."""

    def __init__(
        self,
        message: str,
        *,
        body: bytes = b"",
        hint: str | None = None,
        status_code: int | None = None,
        backend: str | None = None,
        phase: str | None = None,
        model: str | None = None,
    ) -> None:
        super().__init__(
            message,
            hint=hint,
            retryable=False,
            status_code=status_code,
            backend=backend,
            phase=phase,
            model=model,
        )
        #: Raw response body, attached for diagnosis.
        self.body = body


class DeadlineExceededError(APIError):
    """The call deadline expired before any model succeeded."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
