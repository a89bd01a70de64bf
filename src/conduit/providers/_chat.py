"""Chat Completions wire format shared by OpenAI-compatible backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from conduit.errors import DecodeError
from conduit.providers.models import ProviderResponse
from conduit.results import FunctionCall, Usage, usage_from_mapping
from conduit.wire import function_tool_to_wire, load_json_object, raise_for_error_object

if TYPE_CHECKING:
    from conduit.request import Request

ReasoningStyle = Literal["flat", "nested"]


def chat_messages(request: Request) -> list[dict[str, Any]]:
    """Encode every message, including system turns, as chat messages."""
    out: list[dict[str, Any]] = []
    for msg in request.messages:
        match msg.role:
            case "tool":
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": msg.content,
                    }
                )
            case "assistant" if msg.tool_calls:
                out.append(
                    {
                        "role": "assistant",
                        "content": msg.content or None,
                        "tool_calls": [
                            {
                                "id": tc.call_id,
                                "type": "function",
                                "function": {"name": tc.name, "arguments": tc.arguments},
                            }
                            for tc in msg.tool_calls
                        ],
                    }
                )
            case _:
                out.append({"role": msg.role, "content": msg.content})
    return out


def chat_payload(
    request: Request,
    model_id: str,
    *,
    stream: bool = False,
    reasoning: ReasoningStyle = "flat",
) -> dict[str, Any]:
    """Build a ``/chat/completions`` body.

    ``reasoning="flat"`` sends ``reasoning_effort``; ``"nested"`` sends
    ``reasoning: {"effort": ...}`` (OpenRouter).
    """
    payload: dict[str, Any] = {"model": model_id, "messages": chat_messages(request)}
    if request.temperature is not None:
        payload["temperature"] = request.temperature
    if request.reasoning_effort is not None:
        if reasoning == "nested":
            payload["reasoning"] = {"effort": request.reasoning_effort}
        else:
            payload["reasoning_effort"] = request.reasoning_effort
    if request.tools:
        payload["tools"] = [function_tool_to_wire(t, style="chat") for t in request.tools]
        payload["tool_choice"] = "auto"
    if request.json_mode:
        payload["response_format"] = {"type": "json_object"}
    if stream:
        payload["stream"] = True
        payload["stream_options"] = {"include_usage": True}
    return payload


class _ChatModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _ChatFunction(_ChatModel):
    name: str
    arguments: str = "{}"


class _ChatToolCall(_ChatModel):
    id: str
    function: _ChatFunction


class _ChatMessage(_ChatModel):
    content: str | None = None
    tool_calls: list[_ChatToolCall] | None = None


class _ChatChoice(_ChatModel):
    message: _ChatMessage
    finish_reason: str | None = None


class _ChatEnvelope(_ChatModel):
    id: str | None = None
    choices: list[_ChatChoice]
    usage: dict[str, Any] | None = None


def parse_chat_body(
    body: bytes, *, backend: str, status_code: int | None = None
) -> ProviderResponse:
    """Decode a Chat Completions body; the first choice wins."""
    payload = load_json_object(body, backend=backend)
    raise_for_error_object(payload, backend=backend, status_code=status_code)

    try:
        envelope = _ChatEnvelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(
            f"{backend} returned an unexpected chat completion: "
            f"{e.error_count()} validation error(s)",
            body=body,
            backend=backend,
            phase="decode",
        ) from e
    if not envelope.choices:
        raise DecodeError(
            f"{backend} returned no response choices",
            body=body,
            backend=backend,
            phase="decode",
        )

    choice = envelope.choices[0]
    return ProviderResponse(
        text=choice.message.content or "",
        usage=usage_from_mapping(
            envelope.usage, input_key="prompt_tokens", output_key="completion_tokens"
        ),
        tool_calls=tuple(
            FunctionCall(call_id=tc.id, name=tc.function.name, arguments=tc.function.arguments)
            for tc in choice.message.tool_calls or ()
        ),
        finish_reason=choice.finish_reason,
        response_id=envelope.id,
    )


@dataclass
class _PendingToolCall:
    call_id: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)


@dataclass
class ChatStreamAccumulator:
    """Folds Chat Completions stream chunks into one response."""

    text: list[str] = field(default_factory=list)
    finish_reason: str | None = None
    response_id: str | None = None
    usage: Usage | None = None
    _tool_calls: dict[int, _PendingToolCall] = field(default_factory=dict)

    def add(self, chunk: dict[str, Any]) -> str:
        """Apply one chunk and return its text delta ("" when none)."""
        if self.response_id is None and isinstance(chunk.get("id"), str):
            self.response_id = chunk["id"]
        if isinstance(chunk.get("usage"), dict):
            self.usage = usage_from_mapping(
                chunk["usage"], input_key="prompt_tokens", output_key="completion_tokens"
            )

        choices = chunk.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return ""
        choice = choices[0]
        if isinstance(choice.get("finish_reason"), str):
            self.finish_reason = choice["finish_reason"]

        delta = choice.get("delta")
        if not isinstance(delta, dict):
            return ""
        for raw in delta.get("tool_calls") or ():
            if isinstance(raw, dict):
                self._add_tool_call_delta(raw)
        content = delta.get("content")
        if isinstance(content, str) and content:
            self.text.append(content)
            return content
        return ""

    def _add_tool_call_delta(self, raw: dict[str, Any]) -> None:
        index = raw.get("index", 0)
        pending = self._tool_calls.setdefault(
            index if isinstance(index, int) else 0, _PendingToolCall()
        )
        if isinstance(raw.get("id"), str):
            pending.call_id = raw["id"]
        fn = raw.get("function")
        if isinstance(fn, dict):
            if isinstance(fn.get("name"), str):
                pending.name += fn["name"]
            if isinstance(fn.get("arguments"), str):
                pending.arguments.append(fn["arguments"])

    def build(self) -> ProviderResponse:
        """Return the folded response; usage is estimated when never reported."""
        text = "".join(self.text)
        usage = self.usage
        if usage is None:
            estimated = len(text) // 4
            usage = Usage(output_tokens=estimated, total_tokens=estimated)
        return ProviderResponse(
            text=text,
            usage=usage,
            tool_calls=tuple(
                FunctionCall(
                    call_id=p.call_id,
                    name=p.name,
                    arguments="".join(p.arguments) or "{}",
                )
                for _, p in sorted(self._tool_calls.items())
                if p.name
            ),
            finish_reason=self.finish_reason,
            response_id=self.response_id,
        )
