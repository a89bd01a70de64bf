"""Conduit: one request shape over many LLM vendor APIs.

Public API:
    - execute(): One-shot call with retry and model fallback
    - Orchestrator: Reusable retry/fallback driver over providers
    - Request / Message: The backend-independent request
    - Config: Per-backend connection settings
    - resolve() / capabilities(): Model ids and feature flags per backend
    - configure_default_gate(): Process-wide spacing between attempt starts
"""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import TYPE_CHECKING

from conduit import catalog
from conduit.backends import Backend
from conduit.capabilities import CapabilitySet, capabilities
from conduit.config import Config
from conduit.errors import (
    APIError,
    BackendError,
    ConduitError,
    ConfigurationError,
    DeadlineExceededError,
    DecodeError,
    InternalError,
    RateLimitError,
    ResponseValidationError,
    TransportError,
)
from conduit.orchestrator import Orchestrator, Response, Target, Validator
from conduit.providers import create_provider
from conduit.ratelimit import (
    MinIntervalGate,
    NoopGate,
    RateLimitGate,
    configure_default_gate,
    default_gate,
)
from conduit.request import Message, Request
from conduit.resolver import resolve
from conduit.results import Citation, DecodedOutput, FunctionCall, Usage
from conduit.retry import FixedRetry, RetryPolicy
from conduit.tools import (
    ApplyPatch,
    CodeInterpreter,
    ComputerUse,
    FileSearch,
    FunctionTool,
    ImageGeneration,
    RemoteToolServer,
    Shell,
    UserLocation,
    WebSearch,
)
from conduit.wire import decode_output, to_wire

if TYPE_CHECKING:
    from conduit.orchestrator import ChainEntry
    from conduit.providers.base import ChunkCallback, Provider
    from conduit.retry import AnyRetry

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("conduit-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("conduit").addHandler(logging.NullHandler())

logger = logging.getLogger(__name__)


async def execute(
    request: Request,
    *,
    config: Config,
    fallbacks: Sequence[ChainEntry] = (),
    fallback_configs: Sequence[Config] = (),
    retry: AnyRetry | None = None,
    validators: Sequence[Validator] = (),
    on_chunk: ChunkCallback | None = None,
    timeout_s: float | None = None,
) -> Response:
    """Run one request with fallbacks, then close the providers it opened.

    Bare model strings in *fallbacks* go to ``config.backend``; a
    :class:`Target` needs a matching entry in *fallback_configs*. *retry*
    defaults to ``config.retry``. A positive
    ``config.min_request_interval_s`` paces this call's attempts with its own
    gate; otherwise the process-wide gate applies (see
    :func:`configure_default_gate`).

    Example:
        config = Config(backend="openai")
        response = await execute(
            Request(catalog.GPT_5_2, (Message("user", "Hi"),)),
            config=config,
            fallbacks=[catalog.GPT_5_MINI],
            retry=RetryPolicy(max_attempts=3),
        )
        print(response.text)
    """
    gate: RateLimitGate = (
        MinIntervalGate(config.min_request_interval_s)
        if config.min_request_interval_s > 0
        else default_gate()
    )

    providers: dict[Backend, Provider] = {}
    for cfg in (config, *fallback_configs):
        backend = Backend(cfg.backend)
        if backend not in providers:
            providers[backend] = create_provider(cfg)

    orchestrator = Orchestrator(
        providers,
        default_backend=config.backend,
        gate=gate,
        validators=validators,
    )
    try:
        return await orchestrator.execute(
            request,
            fallbacks=fallbacks,
            retry=retry if retry is not None else config.retry,
            on_chunk=on_chunk,
            timeout_s=timeout_s,
        )
    finally:
        for provider in providers.values():
            await provider.aclose()


__all__ = [
    "APIError",
    "ApplyPatch",
    "Backend",
    "BackendError",
    "CapabilitySet",
    "Citation",
    "CodeInterpreter",
    "ComputerUse",
    "ConduitError",
    "Config",
    "ConfigurationError",
    "DeadlineExceededError",
    "DecodeError",
    "DecodedOutput",
    "FileSearch",
    "FixedRetry",
    "FunctionCall",
    "FunctionTool",
    "ImageGeneration",
    "InternalError",
    "Message",
    "MinIntervalGate",
    "NoopGate",
    "Orchestrator",
    "RateLimitError",
    "RateLimitGate",
    "RemoteToolServer",
    "Request",
    "Response",
    "ResponseValidationError",
    "RetryPolicy",
    "Shell",
    "Target",
    "TransportError",
    "Usage",
    "UserLocation",
    "Validator",
    "WebSearch",
    "capabilities",
    "catalog",
    "configure_default_gate",
    "decode_output",
    "default_gate",
    "execute",
    "resolve",
    "to_wire",
]
