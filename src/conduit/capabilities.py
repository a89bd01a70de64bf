"""Capability registry: static per-backend feature flags.

Capabilities never block a call. A mismatch only logs a warning; the backend
may still accept the field, and if it rejects it that remote error is what
the caller sees.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, fields
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from conduit.backends import Backend, as_backend

if TYPE_CHECKING:
    from collections.abc import Iterator

    from conduit.request import Request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CapabilitySet:
    """Feature flags exposed by a backend."""

    tools: bool = False
    vision: bool = False
    streaming: bool = False
    json: bool = False
    thinking: bool = False
    pdf: bool = False
    embeddings: bool = False
    tts: bool = False
    stt: bool = False

    # Built-in (server-hosted) tools.
    web_search: bool = False
    file_search: bool = False
    code_interpreter: bool = False
    mcp: bool = False
    image_generation: bool = False
    computer_use: bool = False
    shell: bool = False
    apply_patch: bool = False

    def supports(self, feature: str) -> bool:
        """Return the flag named *feature* (False for unknown names)."""
        if feature not in self.feature_names():
            return False
        return bool(getattr(self, feature))

    @classmethod
    def feature_names(cls) -> tuple[str, ...]:
        """Return every flag name, in declaration order."""
        return tuple(f.name for f in fields(cls))


_OPENAI = CapabilitySet(
    tools=True,
    vision=True,
    streaming=True,
    json=True,
    thinking=True,
    embeddings=True,
    tts=True,
    stt=True,
    web_search=True,
    file_search=True,
    code_interpreter=True,
    mcp=True,
    image_generation=True,
    computer_use=True,
    shell=True,
    apply_patch=True,
)

_REGISTRY: Mapping[Backend, CapabilitySet] = MappingProxyType(
    {
        Backend.OPENAI: _OPENAI,
        # Azure deployments expose the same API surface as OpenAI.
        Backend.AZURE: _OPENAI,
        Backend.OPENROUTER: CapabilitySet(
            tools=True,
            vision=True,
            streaming=True,
            json=True,
            thinking=True,
            pdf=True,
        ),
        Backend.ANTHROPIC: CapabilitySet(
            tools=True,
            vision=True,
            streaming=True,
            json=True,
            thinking=True,
            pdf=True,
        ),
        Backend.GOOGLE: CapabilitySet(
            tools=True,
            vision=True,
            streaming=True,
            json=True,
            thinking=True,
            pdf=True,
            embeddings=True,
        ),
        Backend.OLLAMA: CapabilitySet(
            tools=True,
            vision=True,
            streaming=True,
            json=True,
            embeddings=True,
        ),
    }
)

# Built-in tool kind -> capability flag.
_BUILTIN_FEATURES: Mapping[str, str] = MappingProxyType(
    {
        "web_search": "web_search",
        "file_search": "file_search",
        "code_interpreter": "code_interpreter",
        "mcp": "mcp",
        "image_generation": "image_generation",
        "computer_use_preview": "computer_use",
        "shell": "shell",
        "apply_patch": "apply_patch",
    }
)


def capabilities(backend: Backend | str) -> CapabilitySet:
    """Return the static capability set for *backend*."""
    return _REGISTRY.get(as_backend(backend), CapabilitySet())


def warn_if_unsupported(backend: Backend | str, feature: str, used: bool) -> bool:
    """Log a warning when *feature* is used but *backend* lacks it.

    Returns:
        True when a warning was emitted. Never raises.
    """
    if not used:
        return False
    b = as_backend(backend)
    if capabilities(b).supports(feature):
        return False
    logger.warning("%s does not support %s; sending anyway", b.value, feature)
    return True


def requested_features(request: Request) -> Iterator[tuple[str, bool]]:
    """Yield ``(feature, used)`` pairs for everything *request* asks for."""
    yield "tools", bool(request.tools)
    yield "thinking", request.reasoning_effort is not None
    yield "json", request.json_mode
    for tool in request.builtin_tools:
        yield _BUILTIN_FEATURES[tool.kind], True


def check_request(backend: Backend | str, request: Request) -> list[str]:
    """Warn about every unsupported feature; return the feature names."""
    return [
        feature
        for feature, used in requested_features(request)
        if warn_if_unsupported(backend, feature, used)
    ]
