"""Wire translation for the built-in tool sub-protocol.

Outbound, :func:`to_wire` turns a built-in tool variant into its wire object:
the discriminator plus only that variant's non-empty fields. Absence (never
``null`` or ``""``) means "use the backend default".

Inbound, :func:`decode_output` walks a list of raw output items and
dispatches on each item's ``type``. Items are validated one at a time, so a
malformed item is dropped without losing the rest of the response. The
``action`` field is shared by ``computer_call`` and ``shell_call`` with
different shapes; it is kept raw and decoded against the shape picked by the
item's own discriminator.
"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass
import json
import logging
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from conduit.errors import BackendError, DecodeError, InternalError
from conduit.results import (
    ApplyPatchCall,
    ApplyPatchCallOutput,
    Citation,
    ComputerAction,
    ComputerCall,
    ComputerCallOutput,
    DecodedOutput,
    FunctionCall,
    FunctionCallOutput,
    HostedToolCall,
    ImageGenerationCall,
    PatchOperation,
    SafetyCheck,
    ShellAction,
    ShellCall,
    ShellCallOutput,
    ShellOutcome,
    ToolCallResult,
    ToolOutput,
    Usage,
)
from conduit.tools import (
    ApplyPatch,
    BuiltinTool,
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

logger = logging.getLogger(__name__)

HOSTED_CALL_TYPES: frozenset[str] = frozenset(
    {"web_search_call", "file_search_call", "mcp_call", "code_interpreter_call"}
)
_MESSAGE_TEXT_TYPES: frozenset[str] = frozenset({"output_text", "text"})


# =============================================================================
# Outbound: tool configuration -> wire
# =============================================================================


def to_wire(tool: BuiltinTool) -> dict[str, Any]:
    """Encode a built-in tool for the Responses API ``tools`` array.

    Raises:
        InternalError: If *tool* is not a known built-in tool variant.
    """
    match tool:
        case WebSearch():
            out: dict[str, Any] = {"type": tool.kind}
            if tool.user_location is not None:
                out["user_location"] = _location_to_wire(tool.user_location)
            if tool.allowed_domains:
                out["filters"] = {"allowed_domains": list(tool.allowed_domains)}
            return out
        case FileSearch():
            return _compact(
                tool.kind,
                vector_store_ids=list(tool.vector_store_ids),
                max_num_results=tool.max_num_results,
                filters=tool.filters,
            )
        case CodeInterpreter():
            container: str | dict[str, Any]
            if tool.container_id:
                container = tool.container_id
            else:
                container = _compact(
                    "auto",
                    memory_limit=tool.memory_limit,
                    file_ids=list(tool.file_ids),
                )
            return {"type": tool.kind, "container": container}
        case RemoteToolServer():
            return _compact(
                tool.kind,
                server_label=tool.server_label,
                server_url=tool.server_url,
                server_description=tool.server_description,
                connector_id=tool.connector_id,
                authorization=tool.authorization,
                require_approval=tool.require_approval,
                allowed_tools=list(tool.allowed_tools),
            )
        case ImageGeneration():
            return _compact(
                tool.kind,
                size=tool.size,
                quality=tool.quality,
                output_format=tool.output_format,
                compression=tool.compression,
                background=tool.background,
                partial_images=tool.partial_images,
            )
        case ComputerUse():
            return _compact(
                tool.kind,
                display_width=tool.display_width,
                display_height=tool.display_height,
                environment=tool.environment,
            )
        case Shell() | ApplyPatch():
            return {"type": tool.kind}
        case _:
            raise InternalError(
                f"Unknown built-in tool type: {type(tool).__name__}",
                hint="This is a Conduit internal error. Please report it.",
            )


def tool_from_wire(payload: Mapping[str, Any]) -> BuiltinTool:
    """Decode a wire tool object back into its built-in tool variant.

    Raises:
        InternalError: If the discriminator is missing or unknown.
    """
    kind = payload.get("type")
    match kind:
        case "web_search":
            loc = payload.get("user_location")
            filters = payload.get("filters") or {}
            return WebSearch(
                user_location=UserLocation(
                    country=loc.get("country"),
                    city=loc.get("city"),
                    region=loc.get("region"),
                    timezone=loc.get("timezone"),
                )
                if isinstance(loc, dict)
                else None,
                allowed_domains=tuple(filters.get("allowed_domains", ())),
            )
        case "file_search":
            return FileSearch(
                vector_store_ids=tuple(payload.get("vector_store_ids", ())),
                max_num_results=payload.get("max_num_results"),
                filters=payload.get("filters"),
            )
        case "code_interpreter":
            container = payload.get("container")
            if isinstance(container, str):
                return CodeInterpreter(container_id=container)
            container = container if isinstance(container, dict) else {}
            return CodeInterpreter(
                memory_limit=container.get("memory_limit"),
                file_ids=tuple(container.get("file_ids", ())),
            )
        case "mcp":
            return RemoteToolServer(
                server_label=payload.get("server_label", ""),
                server_url=payload.get("server_url"),
                server_description=payload.get("server_description"),
                connector_id=payload.get("connector_id"),
                authorization=payload.get("authorization"),
                require_approval=payload.get("require_approval"),
                allowed_tools=tuple(payload.get("allowed_tools", ())),
            )
        case "image_generation":
            return ImageGeneration(
                size=payload.get("size"),
                quality=payload.get("quality"),
                output_format=payload.get("output_format"),
                compression=payload.get("compression"),
                background=payload.get("background"),
                partial_images=payload.get("partial_images"),
            )
        case "computer_use_preview":
            return ComputerUse(
                display_width=payload.get("display_width"),
                display_height=payload.get("display_height"),
                environment=payload.get("environment"),
            )
        case "shell":
            return Shell()
        case "apply_patch":
            return ApplyPatch()
        case _:
            raise InternalError(f"Unknown built-in tool type on the wire: {kind!r}")


def function_tool_to_wire(
    tool: FunctionTool, *, style: Literal["responses", "chat"]
) -> dict[str, Any]:
    """Encode a caller function tool.

    The Responses API uses a flat object; Chat Completions nests the
    definition under ``function``.
    """
    definition: dict[str, Any] = {"name": tool.name}
    if tool.description:
        definition["description"] = tool.description
    parameters = tool.parameters or {"type": "object", "properties": {}}
    if tool.strict:
        definition["parameters"] = to_strict_schema(parameters)
        definition["strict"] = True
    else:
        definition["parameters"] = parameters

    if style == "responses":
        return {"type": "function", **definition}
    return {"type": "function", "function": definition}


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict function calling.

    Every object node gets ``additionalProperties: false`` and, unless it
    already lists them, all of its properties as ``required``.
    """

    def walk(node: Any) -> Any:
        if isinstance(node, list):
            return [walk(item) for item in node]
        if not isinstance(node, dict):
            return node

        updated = {key: walk(value) for key, value in node.items()}
        if updated.get("type") == "object" or "properties" in updated:
            properties = updated.get("properties", {})
            if isinstance(properties, dict):
                updated["additionalProperties"] = False
                updated.setdefault("required", list(properties))
        return updated

    return walk(deepcopy(schema))


def output_to_wire(output: ToolOutput) -> dict[str, Any]:
    """Encode the follow-up item a caller sends after executing a tool call."""
    match output:
        case ComputerCallOutput():
            out: dict[str, Any] = {
                "type": "computer_call_output",
                "call_id": output.call_id,
                "output": {"type": "input_image", "image_url": output.image_url},
            }
            if output.current_url:
                out["current_url"] = output.current_url
            if output.acknowledged_safety_checks:
                out["acknowledged_safety_checks"] = [
                    {"id": sc.id, "code": sc.code, "message": sc.message}
                    for sc in output.acknowledged_safety_checks
                ]
            return out
        case ShellCallOutput():
            out = {
                "type": "shell_call_output",
                "call_id": output.call_id,
                "output": [
                    {
                        "stdout": r.stdout,
                        "stderr": r.stderr,
                        "outcome": _outcome_to_wire(r.outcome),
                    }
                    for r in output.output
                ],
            }
            if output.max_output_length:
                out["max_output_length"] = output.max_output_length
            return out
        case ApplyPatchCallOutput():
            out = {
                "type": "apply_patch_call_output",
                "call_id": output.call_id,
                "status": output.status,
            }
            if output.output:
                out["output"] = output.output
            return out
        case FunctionCallOutput():
            return {
                "type": "function_call_output",
                "call_id": output.call_id,
                "output": output.output,
            }
        case _:
            raise InternalError(f"Unknown tool output type: {type(output).__name__}")


def _outcome_to_wire(outcome: ShellOutcome) -> dict[str, Any]:
    # exit_code 0 must survive.
    out: dict[str, Any] = {"type": outcome.type}
    if outcome.exit_code is not None:
        out["exit_code"] = outcome.exit_code
    return out


def _location_to_wire(loc: UserLocation) -> dict[str, Any]:
    return _compact(
        "approximate",
        country=loc.country,
        city=loc.city,
        region=loc.region,
        timezone=loc.timezone,
    )


def _compact(kind: str, **fields: Any) -> dict[str, Any]:
    """Build ``{"type": kind, ...}`` keeping only non-empty, non-zero values."""
    out: dict[str, Any] = {"type": kind}
    for key, value in fields.items():
        if value is None or value == "" or value == [] or value == {}:
            continue
        if isinstance(value, int) and not isinstance(value, bool) and value <= 0:
            continue
        out[key] = value
    return out


# =============================================================================
# Inbound: output items -> typed results
# =============================================================================


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class _WireAnnotation(_WireModel):
    type: str
    url: str | None = None
    title: str | None = None
    file_id: str | None = None
    filename: str | None = None
    start_index: int | None = None
    end_index: int | None = None


class _WireContentPart(_WireModel):
    type: str
    text: str | None = None
    annotations: list[_WireAnnotation] = []


class _WireMessageItem(_WireModel):
    type: Literal["message"]
    content: list[_WireContentPart] = []


class _WireCallItem(_WireModel):
    type: str
    id: str
    status: str | None = None
    call_id: str | None = None


class _WireHostedCallItem(_WireCallItem):
    server_label: str | None = None
    name: str | None = None
    arguments: str | None = None
    output: str | None = None
    error: str | None = None


class _WireImageItem(_WireCallItem):
    revised_prompt: str | None = None
    result: str | None = None


class _WireSafetyCheck(_WireModel):
    id: str
    code: str = ""
    message: str = ""


class _WireActionItem(_WireCallItem):
    # Shared by computer_call and shell_call; decoded per discriminator.
    action: Any = None
    pending_safety_checks: list[_WireSafetyCheck] = []


class _WirePatchOperation(_WireModel):
    type: str
    path: str
    diff: str | None = None


class _WirePatchItem(_WireCallItem):
    operation: _WirePatchOperation | None = None


class _WireFunctionCallItem(_WireModel):
    type: Literal["function_call"]
    call_id: str
    name: str
    arguments: str | None = None
    id: str | None = None


class _WireComputerAction(_WireModel):
    type: str
    x: int | None = None
    y: int | None = None
    button: str | None = None
    scroll_x: int | None = None
    scroll_y: int | None = None
    keys: list[str] = []
    text: str | None = None


class _WireShellAction(_WireModel):
    commands: list[str]
    timeout_ms: int | None = None
    max_output_length: int | None = None


_ACTION_ADAPTERS: Mapping[str, TypeAdapter[Any]] = MappingProxyType(
    {
        "computer_call": TypeAdapter(_WireComputerAction),
        "shell_call": TypeAdapter(_WireShellAction),
    }
)


def decode_action(discriminator: str, raw: Any) -> ComputerAction | ShellAction | None:
    """Decode a raw ``action`` payload using the owning item's discriminator.

    Returns None when the payload is absent or does not fit the shape
    selected by *discriminator*.
    """
    adapter = _ACTION_ADAPTERS.get(discriminator)
    if adapter is None or raw is None:
        return None
    try:
        parsed = adapter.validate_python(raw)
    except ValidationError as e:
        logger.debug(
            "Dropping %s action that does not match its shape: %s",
            discriminator,
            e.errors(include_url=False),
        )
        return None

    if isinstance(parsed, _WireShellAction):
        return ShellAction(
            commands=tuple(parsed.commands),
            timeout_ms=parsed.timeout_ms,
            max_output_length=parsed.max_output_length,
        )
    return ComputerAction(
        type=parsed.type,
        x=parsed.x,
        y=parsed.y,
        button=parsed.button,
        scroll_x=parsed.scroll_x,
        scroll_y=parsed.scroll_y,
        keys=tuple(parsed.keys),
        text=parsed.text,
    )


def decode_output(items: Any) -> DecodedOutput:
    """Decode raw Responses-API output items into text, citations, tool calls.

    Message text is concatenated in item order, citations keep their order of
    appearance, and unknown or malformed items are skipped.
    """
    if not isinstance(items, list):
        return DecodedOutput()

    text_parts: list[str] = []
    citations: list[Citation] = []
    tool_calls: list[ToolCallResult] = []

    for idx, item in enumerate(items):
        kind = item.get("type") if isinstance(item, dict) else None
        if not isinstance(kind, str):
            logger.debug("Skipping output item %d without a type", idx)
            continue
        try:
            if kind == "message":
                msg = _WireMessageItem.model_validate(item)
                for part in msg.content:
                    if part.type not in _MESSAGE_TEXT_TYPES or part.text is None:
                        continue
                    text_parts.append(part.text)
                    citations.extend(_citation(a) for a in part.annotations)
                continue

            decoded = _decode_call_item(kind, item)
        except ValidationError as e:
            logger.debug(
                "Skipping malformed %s item %d: %s",
                kind,
                idx,
                e.errors(include_url=False),
            )
            continue
        if decoded is not None:
            tool_calls.append(decoded)

    return DecodedOutput(
        text="".join(text_parts),
        citations=tuple(citations),
        tool_calls=tuple(tool_calls),
    )


def _decode_call_item(kind: str, item: dict[str, Any]) -> ToolCallResult | None:
    if kind in HOSTED_CALL_TYPES:
        hosted = _WireHostedCallItem.model_validate(item)
        return HostedToolCall(
            type=kind,
            id=hosted.id,
            status=hosted.status,
            call_id=hosted.call_id,
            server_label=hosted.server_label,
            name=hosted.name,
            arguments=hosted.arguments,
            output=hosted.output,
            error=hosted.error,
        )

    match kind:
        case "image_generation_call":
            img = _WireImageItem.model_validate(item)
            return ImageGenerationCall(
                id=img.id,
                status=img.status,
                call_id=img.call_id,
                revised_prompt=img.revised_prompt,
                result=img.result,
            )
        case "computer_call":
            comp = _WireActionItem.model_validate(item)
            action = decode_action(kind, comp.action)
            return ComputerCall(
                id=comp.id,
                status=comp.status,
                call_id=comp.call_id,
                action=action if isinstance(action, ComputerAction) else None,
                pending_safety_checks=tuple(
                    SafetyCheck(id=sc.id, code=sc.code, message=sc.message)
                    for sc in comp.pending_safety_checks
                ),
            )
        case "shell_call":
            sh = _WireActionItem.model_validate(item)
            action = decode_action(kind, sh.action)
            return ShellCall(
                id=sh.id,
                status=sh.status,
                call_id=sh.call_id,
                action=action if isinstance(action, ShellAction) else None,
            )
        case "apply_patch_call":
            patch = _WirePatchItem.model_validate(item)
            op = patch.operation
            return ApplyPatchCall(
                id=patch.id,
                status=patch.status,
                call_id=patch.call_id,
                operation=PatchOperation(type=op.type, path=op.path, diff=op.diff)
                if op is not None
                else None,
            )
        case "function_call":
            fn = _WireFunctionCallItem.model_validate(item)
            return FunctionCall(
                call_id=fn.call_id,
                name=fn.name,
                arguments=fn.arguments or "{}",
                id=fn.id,
            )
        case _:
            logger.debug("Ignoring output item of type %s", kind)
            return None


def _citation(a: _WireAnnotation) -> Citation:
    return Citation(
        type=a.type,
        url=a.url,
        title=a.title,
        file_id=a.file_id,
        filename=a.filename,
        start_index=a.start_index,
        end_index=a.end_index,
    )


# =============================================================================
# Inbound: response envelope
# =============================================================================


class _WireError(_WireModel):
    message: str = ""
    type: str | None = None
    code: str | int | None = None


class _WireUsage(_WireModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    output_tokens_details: dict[str, Any] | None = None


class _WireIncompleteDetails(_WireModel):
    reason: str | None = None


class _WireResponsesEnvelope(_WireModel):
    id: str | None = None
    status: str | None = None
    output: list[Any] = []
    output_text: str | None = None
    usage: _WireUsage | None = None
    error: _WireError | None = None
    incomplete_details: _WireIncompleteDetails | None = None


@dataclass(frozen=True)
class ResponsesBody:
    """A decoded Responses-API body."""

    output: DecodedOutput
    usage: Usage
    response_id: str | None = None
    finish_reason: str | None = None


def load_json_object(body: bytes, *, backend: str) -> dict[str, Any]:
    """Parse a response body that must be a JSON object.

    Raises:
        DecodeError: With the raw body attached when parsing fails.
    """
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodeError(
            f"{backend} returned a body that is not valid JSON: {e}",
            body=body,
            backend=backend,
            phase="decode",
        ) from e
    if not isinstance(payload, dict):
        raise DecodeError(
            f"{backend} returned a JSON {type(payload).__name__}, expected an object",
            body=body,
            backend=backend,
            phase="decode",
        )
    return payload


def raise_for_error_object(
    payload: Mapping[str, Any], *, backend: str, status_code: int | None = None
) -> None:
    """Raise :class:`BackendError` when *payload* carries an ``error`` object.

    Accepts the ``{"message", "type", "code"}`` shape used by OpenAI-style
    APIs as well as Google's ``{"code", "message", "status"}``; a bare
    string is treated as the message.
    """
    raw = payload.get("error")
    if raw is None or raw is False:
        return

    if isinstance(raw, str):
        message, code = raw, None
    elif isinstance(raw, dict):
        message = str(raw.get("message") or raw.get("type") or "unknown error")
        raw_code = raw.get("code") or raw.get("status") or raw.get("type")
        code = str(raw_code) if raw_code is not None else None
    else:
        message, code = str(raw), None

    code_note = f" [{code}]" if code else ""
    raise BackendError(
        f"{backend}:{code_note} {message}",
        retryable=False,
        status_code=status_code,
        backend=backend,
        code=code,
        phase="generate",
    )


def parse_responses_body(
    body: bytes, *, backend: str, status_code: int | None = None
) -> ResponsesBody:
    """Decode a Responses-API body.

    A top-level ``error`` object short-circuits to :class:`BackendError`
    regardless of what else is present. The ``output_text`` convenience field
    is a fallback only, used when message items produced no text.
    """
    payload = load_json_object(body, backend=backend)
    return parse_responses_payload(
        payload, backend=backend, status_code=status_code, body=body
    )


def parse_responses_payload(
    payload: Mapping[str, Any],
    *,
    backend: str,
    status_code: int | None = None,
    body: bytes = b"",
) -> ResponsesBody:
    """Decode an already-parsed Responses-API object (e.g. a stream's final event)."""
    raise_for_error_object(payload, backend=backend, status_code=status_code)

    try:
        envelope = _WireResponsesEnvelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(
            f"{backend} returned an unexpected response envelope: "
            f"{e.error_count()} validation error(s)",
            body=body,
            backend=backend,
            phase="decode",
        ) from e

    decoded = decode_output(envelope.output)
    if not decoded.text and envelope.output_text:
        decoded = DecodedOutput(
            text=envelope.output_text,
            citations=decoded.citations,
            tool_calls=decoded.tool_calls,
        )

    usage = Usage()
    if envelope.usage is not None:
        details = envelope.usage.output_tokens_details or {}
        reasoning = details.get("reasoning_tokens")
        usage = Usage(
            input_tokens=envelope.usage.input_tokens,
            output_tokens=envelope.usage.output_tokens,
            total_tokens=envelope.usage.total_tokens,
            reasoning_tokens=reasoning if isinstance(reasoning, int) else None,
        )

    return ResponsesBody(
        output=decoded,
        usage=usage,
        response_id=envelope.id,
        finish_reason=_finish_reason(envelope),
    )


def _finish_reason(envelope: _WireResponsesEnvelope) -> str | None:
    """Prefer ``incomplete_details.reason`` over the bare status."""
    status = envelope.status
    if status is None:
        return None
    status = status.lower()
    if status == "incomplete" and envelope.incomplete_details is not None:
        reason = envelope.incomplete_details.reason
        if reason:
            return reason.lower()
    return status
