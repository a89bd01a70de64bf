"""Typed results decoded from backend output items.

``ToolCallResult`` mirrors the built-in tool variants plus caller function
calls. The ``*Output`` types are what a caller sends back after executing a
computer, shell, patch or function call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal


@dataclass(frozen=True)
class Usage:
    """Token usage counters for one call."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    reasoning_tokens: int | None = None


@dataclass(frozen=True)
class Citation:
    """A URL or file reference attached to a span of the response text."""

    #: "url_citation" or "file_citation".
    type: str
    url: str | None = None
    title: str | None = None
    file_id: str | None = None
    filename: str | None = None
    start_index: int | None = None
    end_index: int | None = None


@dataclass(frozen=True)
class SafetyCheck:
    """A pending computer-use safety check the caller must acknowledge."""

    id: str
    #: "malicious_instructions", "irrelevant_domain" or "sensitive_domain".
    code: str = ""
    message: str = ""


@dataclass(frozen=True)
class ComputerAction:
    """An action the model wants performed on the controlled computer."""

    #: "click", "double_click", "scroll", "keypress", "type", "wait",
    #: "screenshot", "move", "drag".
    type: str
    x: int | None = None
    y: int | None = None
    button: str | None = None
    scroll_x: int | None = None
    scroll_y: int | None = None
    keys: tuple[str, ...] = ()
    text: str | None = None


@dataclass(frozen=True)
class ShellAction:
    """Shell commands the model wants executed (possibly concurrently)."""

    commands: tuple[str, ...]
    timeout_ms: int | None = None
    max_output_length: int | None = None


@dataclass(frozen=True)
class PatchOperation:
    """A single file operation from an apply-patch call."""

    #: "create_file", "update_file" or "delete_file".
    type: str
    path: str
    #: V4A diff; absent for deletions.
    diff: str | None = None


@dataclass(frozen=True)
class HostedToolCall:
    """A call the backend executed itself (search, MCP, code interpreter)."""

    #: "web_search_call", "file_search_call", "mcp_call" or
    #: "code_interpreter_call".
    type: str
    id: str
    status: str | None = None
    call_id: str | None = None
    server_label: str | None = None
    name: str | None = None
    arguments: str | None = None
    output: str | None = None
    error: str | None = None


@dataclass(frozen=True)
class ImageGenerationCall:
    """A generated image."""

    id: str
    status: str | None = None
    call_id: str | None = None
    revised_prompt: str | None = None
    #: Base64-encoded image bytes.
    result: str | None = field(default=None, repr=False)

    type: Literal["image_generation_call"] = "image_generation_call"


@dataclass(frozen=True)
class ComputerCall:
    """A computer-control step the caller must execute."""

    id: str
    status: str | None = None
    call_id: str | None = None
    action: ComputerAction | None = None
    pending_safety_checks: tuple[SafetyCheck, ...] = ()

    type: Literal["computer_call"] = "computer_call"


@dataclass(frozen=True)
class ShellCall:
    """Shell commands the caller must execute."""

    id: str
    status: str | None = None
    call_id: str | None = None
    action: ShellAction | None = None

    type: Literal["shell_call"] = "shell_call"


@dataclass(frozen=True)
class ApplyPatchCall:
    """A file operation the caller must apply."""

    id: str
    status: str | None = None
    call_id: str | None = None
    operation: PatchOperation | None = None

    type: Literal["apply_patch_call"] = "apply_patch_call"


@dataclass(frozen=True)
class FunctionCall:
    """A caller function the model asked to invoke."""

    call_id: str
    name: str
    #: JSON-encoded arguments object.
    arguments: str = "{}"
    id: str | None = None

    type: Literal["function_call"] = "function_call"


ToolCallResult = (
    HostedToolCall
    | ImageGenerationCall
    | ComputerCall
    | ShellCall
    | ApplyPatchCall
    | FunctionCall
)


# --- Follow-up items sent back to the backend ---


@dataclass(frozen=True)
class ComputerCallOutput:
    """Screenshot taken after executing a computer action."""

    call_id: str
    #: Data URL or https URL of the screenshot.
    image_url: str
    current_url: str | None = None
    acknowledged_safety_checks: tuple[SafetyCheck, ...] = ()


@dataclass(frozen=True)
class ShellOutcome:
    """How a shell command completed."""

    type: Literal["exit", "timeout"] = "exit"
    exit_code: int | None = None


@dataclass(frozen=True)
class ShellCommandResult:
    """Captured result of one shell command."""

    stdout: str = ""
    stderr: str = ""
    outcome: ShellOutcome = field(default_factory=ShellOutcome)


@dataclass(frozen=True)
class ShellCallOutput:
    """Results of executing a shell call's commands, in command order."""

    call_id: str
    output: tuple[ShellCommandResult, ...]
    max_output_length: int | None = None


@dataclass(frozen=True)
class ApplyPatchCallOutput:
    """Outcome of applying a patch operation."""

    call_id: str
    status: Literal["completed", "failed"]
    output: str | None = None


@dataclass(frozen=True)
class FunctionCallOutput:
    """Result of running a caller function."""

    call_id: str
    output: str


ToolOutput = (
    ComputerCallOutput
    | ShellCallOutput
    | ApplyPatchCallOutput
    | FunctionCallOutput
)


@dataclass(frozen=True)
class DecodedOutput:
    """Text, citations and tool calls decoded from a list of output items."""

    text: str = ""
    citations: tuple[Citation, ...] = ()
    tool_calls: tuple[ToolCallResult, ...] = ()


def usage_from_mapping(raw: Any, *, input_key: str, output_key: str) -> Usage:
    """Build :class:`Usage` from a vendor usage object, tolerating junk."""
    if not isinstance(raw, dict):
        return Usage()

    def _int(key: str) -> int:
        value = raw.get(key)
        return value if isinstance(value, int) else 0

    input_tokens = _int(input_key)
    output_tokens = _int(output_key)
    total = _int("total_tokens") or input_tokens + output_tokens
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=total,
    )
