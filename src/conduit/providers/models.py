"""Domain models for the provider layer."""

from __future__ import annotations

from dataclasses import dataclass, field

from conduit.results import Citation, ToolCallResult, Usage


@dataclass(frozen=True)
class ProviderResponse:
    """A standardized response from one provider call."""

    text: str = ""
    usage: Usage = field(default_factory=Usage)
    tool_calls: tuple[ToolCallResult, ...] = ()
    citations: tuple[Citation, ...] = ()
    finish_reason: str | None = None
    response_id: str | None = None
