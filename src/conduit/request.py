"""The backend-independent request handed to the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from conduit.errors import ConfigurationError
from conduit.results import FunctionCall
from conduit.tools import BUILTIN_TOOL_TYPES, BuiltinTool, FunctionTool

Role = Literal["system", "user", "assistant", "tool"]
ReasoningEffort = Literal["minimal", "low", "medium", "high"]

_ROLES = frozenset({"system", "user", "assistant", "tool"})
_EFFORTS = frozenset({"minimal", "low", "medium", "high"})


@dataclass(frozen=True)
class Message:
    """A conversational message turn."""

    role: Role
    content: str = ""
    #: Set on ``tool`` messages: the call this message answers.
    tool_call_id: str | None = None
    #: Set on ``assistant`` messages that requested function calls.
    tool_calls: tuple[FunctionCall, ...] = ()


@dataclass(frozen=True)
class Request:
    """One abstract LLM call.

    ``model`` is the primary model; the orchestrator tries it first and
    falls back to other models on failure. Instances are immutable so a
    request can be reused across attempts and backends.

    Example:
        request = Request(
            model=catalog.GPT_5_2,
            messages=(Message("user", "Latest AI news?"),),
            builtin_tools=(WebSearch(),),
        )
    """

    model: str
    messages: tuple[Message, ...]
    temperature: float | None = None
    reasoning_effort: ReasoningEffort | None = None
    tools: tuple[FunctionTool, ...] = ()
    builtin_tools: tuple[BuiltinTool, ...] = ()
    #: Ask the backend for a JSON object response.
    json_mode: bool = False

    def __post_init__(self) -> None:
        """Validate request shape early for clear errors."""
        if not isinstance(self.model, str) or not self.model.strip():
            raise ConfigurationError(
                "model must be a non-empty string",
                hint="Pass a catalog constant such as catalog.GPT_5_2.",
            )
        # Accept lists for convenience; store tuples.
        for name in ("messages", "tools", "builtin_tools"):
            value = getattr(self, name)
            if isinstance(value, list):
                object.__setattr__(self, name, tuple(value))

        if not self.messages:
            raise ConfigurationError(
                "messages must not be empty",
                hint="Pass messages=(Message('user', '...'),).",
            )
        for msg in self.messages:
            if not isinstance(msg, Message) or msg.role not in _ROLES:
                raise ConfigurationError(
                    "messages must be Message instances with a known role",
                    hint="Roles: 'system', 'user', 'assistant', 'tool'.",
                )

        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be within [0, 2], got {self.temperature}",
            )
        if self.reasoning_effort is not None and self.reasoning_effort not in _EFFORTS:
            raise ConfigurationError(
                f"Unknown reasoning_effort: {self.reasoning_effort!r}",
                hint="Use 'minimal', 'low', 'medium' or 'high'.",
            )
        for tool in self.builtin_tools:
            if not isinstance(tool, BUILTIN_TOOL_TYPES):
                raise ConfigurationError(
                    f"Unsupported built-in tool: {type(tool).__name__}",
                    hint="Use WebSearch(), FileSearch(...), Shell(), ...",
                )

    @property
    def system_instruction(self) -> str | None:
        """Return the first system message, if any."""
        for msg in self.messages:
            if msg.role == "system":
                return msg.content
        return None

    @property
    def conversation(self) -> tuple[Message, ...]:
        """Return the non-system messages in order."""
        return tuple(msg for msg in self.messages if msg.role != "system")
