"""Anthropic Messages API provider."""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from conduit.backends import Backend
from conduit.errors import DecodeError
from conduit.providers.base import ChunkCallback, HttpProvider
from conduit.providers.models import ProviderResponse
from conduit.results import FunctionCall, Usage, usage_from_mapping
from conduit.wire import load_json_object, raise_for_error_object

if TYPE_CHECKING:
    from conduit.request import Request

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
_ANTHROPIC_MAX_TOKENS = 8192
_MANUAL_THINKING_BUDGETS = {
    "minimal": 1024,
    "low": 2048,
    "medium": 4096,
    "high": 6144,
}
_JSON_MODE_SUFFIX = "Respond with a single valid JSON object and nothing else."


class AnthropicProvider(HttpProvider):
    """Anthropic Messages API provider.

    Built-in tools have no Messages API equivalent here and are dropped with
    a warning.
    """

    backend: ClassVar[Backend] = Backend.ANTHROPIC

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Generate a response using Anthropic's Messages API."""
        resp = await self._post("/messages", build_payload(request, model_id))
        return parse_message_body(
            resp.body, backend=self.backend.value, status_code=resp.status_code
        )

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Stream ``text_delta`` events to *on_chunk*."""
        acc = _MessageStreamAccumulator()
        payload = build_payload(request, model_id, stream=True)
        async with aclosing(self._events("/messages", payload)) as events:
            async for event in events:
                raise_for_error_object(event, backend=self.backend.value)
                delta = acc.add(event)
                if delta:
                    on_chunk(delta)
        return acc.build()


def build_payload(
    request: Request, model_id: str, *, stream: bool = False
) -> dict[str, Any]:
    """Build a ``/messages`` body."""
    if request.builtin_tools:
        logger.warning(
            "anthropic: dropping %d built-in tool(s) not available on the Messages API",
            len(request.builtin_tools),
        )

    payload: dict[str, Any] = {
        "model": model_id,
        "messages": _build_messages(request),
        "max_tokens": _ANTHROPIC_MAX_TOKENS,
    }

    system = request.system_instruction
    if request.json_mode:
        system = f"{system}\n\n{_JSON_MODE_SUFFIX}" if system else _JSON_MODE_SUFFIX
    if system:
        payload["system"] = system
    if request.temperature is not None:
        payload["temperature"] = request.temperature

    if request.tools:
        payload["tools"] = [
            {
                "name": t.name,
                **({"description": t.description} if t.description else {}),
                "input_schema": t.parameters or {"type": "object", "properties": {}},
            }
            for t in request.tools
        ]
        payload["tool_choice"] = {"type": "auto"}

    if request.reasoning_effort is not None:
        payload["thinking"] = {
            "type": "enabled",
            "budget_tokens": _MANUAL_THINKING_BUDGETS[request.reasoning_effort],
        }
    if stream:
        payload["stream"] = True
    return payload


def _build_messages(request: Request) -> list[dict[str, Any]]:
    """Encode the conversation, merging consecutive same-role turns."""
    messages: list[dict[str, Any]] = []
    for item in request.conversation:
        if item.role == "tool":
            if not item.tool_call_id:
                continue
            _append_message(
                messages,
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": item.tool_call_id,
                            "content": item.content or "",
                        }
                    ],
                },
            )
        elif item.role == "assistant":
            blocks: list[dict[str, Any]] = []
            if item.content:
                blocks.append({"type": "text", "text": item.content})
            for tc in item.tool_calls:
                try:
                    args = json.loads(tc.arguments)
                except ValueError:
                    args = {}
                blocks.append(
                    {"type": "tool_use", "id": tc.call_id, "name": tc.name, "input": args}
                )
            if blocks:
                _append_message(messages, {"role": "assistant", "content": blocks})
        else:
            _append_message(messages, {"role": "user", "content": item.content})
    return messages


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match.

    Anthropic requires strict user/assistant alternation.
    """
    if messages and messages[-1]["role"] == msg["role"]:
        prev = messages[-1]
        prev_content = prev["content"]
        new_content = msg["content"]
        if isinstance(prev_content, str):
            prev_content = [{"type": "text", "text": prev_content}]
        if isinstance(new_content, str):
            new_content = [{"type": "text", "text": new_content}]
        prev["content"] = prev_content + new_content
    else:
        messages.append(msg)


class _AnthropicModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _ContentBlock(_AnthropicModel):
    type: str
    text: str | None = None
    id: str | None = None
    name: str | None = None
    input: Any = None


class _MessageEnvelope(_AnthropicModel):
    id: str | None = None
    content: list[_ContentBlock]
    stop_reason: str | None = None
    usage: dict[str, Any] | None = None


def parse_message_body(
    body: bytes, *, backend: str, status_code: int | None = None
) -> ProviderResponse:
    """Parse a Messages API body into ProviderResponse."""
    payload = load_json_object(body, backend=backend)
    raise_for_error_object(payload, backend=backend, status_code=status_code)
    try:
        envelope = _MessageEnvelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(
            f"{backend} returned an unexpected message envelope: "
            f"{e.error_count()} validation error(s)",
            body=body,
            backend=backend,
            phase="decode",
        ) from e

    text_parts: list[str] = []
    tool_calls: list[FunctionCall] = []
    for block in envelope.content:
        if block.type == "text" and block.text:
            text_parts.append(block.text)
        elif block.type == "tool_use" and block.id and block.name:
            tool_calls.append(
                FunctionCall(
                    call_id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input if block.input is not None else {}),
                )
            )

    return ProviderResponse(
        text="\n\n".join(text_parts),
        usage=usage_from_mapping(
            envelope.usage, input_key="input_tokens", output_key="output_tokens"
        ),
        tool_calls=tuple(tool_calls),
        finish_reason=_normalize_stop_reason(envelope.stop_reason),
        response_id=envelope.id,
    )


def _normalize_stop_reason(stop_reason: Any) -> str | None:
    """Map Anthropic stop_reason to a normalized lowercase string."""
    if stop_reason is None:
        return None
    reason = str(stop_reason).lower()

    mapping: dict[str, str] = {
        "end_turn": "stop",
        "stop_sequence": "stop",
        "max_tokens": "max_tokens",
        "tool_use": "tool_calls",
    }
    return mapping.get(reason, reason)


@dataclass
class _PendingToolUse:
    call_id: str
    name: str
    partial_json: list[str] = field(default_factory=list)


@dataclass
class _MessageStreamAccumulator:
    text: list[str] = field(default_factory=list)
    response_id: str | None = None
    stop_reason: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    _blocks: dict[int, _PendingToolUse] = field(default_factory=dict)

    def add(self, event: dict[str, Any]) -> str:
        match event.get("type"):
            case "message_start":
                message = event.get("message") or {}
                if isinstance(message.get("id"), str):
                    self.response_id = message["id"]
                usage = message.get("usage") or {}
                self.input_tokens = _int(usage.get("input_tokens"))
            case "content_block_start":
                block = event.get("content_block") or {}
                if block.get("type") == "tool_use":
                    self._blocks[_int(event.get("index"))] = _PendingToolUse(
                        call_id=str(block.get("id", "")),
                        name=str(block.get("name", "")),
                    )
            case "content_block_delta":
                delta = event.get("delta") or {}
                if delta.get("type") == "text_delta":
                    text = delta.get("text")
                    if isinstance(text, str) and text:
                        self.text.append(text)
                        return text
                elif delta.get("type") == "input_json_delta":
                    pending = self._blocks.get(_int(event.get("index")))
                    if pending is not None and isinstance(delta.get("partial_json"), str):
                        pending.partial_json.append(delta["partial_json"])
            case "message_delta":
                delta = event.get("delta") or {}
                if isinstance(delta.get("stop_reason"), str):
                    self.stop_reason = delta["stop_reason"]
                usage = event.get("usage") or {}
                self.output_tokens = _int(usage.get("output_tokens")) or self.output_tokens
        return ""

    def build(self) -> ProviderResponse:
        return ProviderResponse(
            text="".join(self.text),
            usage=Usage(
                input_tokens=self.input_tokens,
                output_tokens=self.output_tokens,
                total_tokens=self.input_tokens + self.output_tokens,
            ),
            tool_calls=tuple(
                FunctionCall(
                    call_id=p.call_id,
                    name=p.name,
                    arguments="".join(p.partial_json) or "{}",
                )
                for _, p in sorted(self._blocks.items())
            ),
            finish_reason=_normalize_stop_reason(self.stop_reason),
            response_id=self.response_id,
        )


def _int(value: Any) -> int:
    return value if isinstance(value, int) else 0
