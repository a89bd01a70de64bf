"""Ollama provider (local ``/api/chat``)."""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from conduit.backends import Backend
from conduit.errors import DecodeError
from conduit.providers._chat import chat_messages
from conduit.providers.base import ChunkCallback, HttpProvider
from conduit.providers.models import ProviderResponse
from conduit.results import FunctionCall, Usage
from conduit.wire import function_tool_to_wire, load_json_object, raise_for_error_object

if TYPE_CHECKING:
    from conduit.request import Request

logger = logging.getLogger(__name__)


class OllamaProvider(HttpProvider):
    """Ollama provider. Needs no API key; streams NDJSON."""

    backend: ClassVar[Backend] = Backend.OLLAMA

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"} if api_key else {}

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Run a non-streaming chat call."""
        resp = await self._post("/api/chat", build_payload(request, model_id, stream=False))
        payload = load_json_object(resp.body, backend=self.backend.value)
        raise_for_error_object(
            payload, backend=self.backend.value, status_code=resp.status_code
        )
        if not isinstance(payload.get("message"), dict):
            raise DecodeError(
                "ollama returned a chat response without a message",
                body=resp.body,
                backend=self.backend.value,
                phase="decode",
            )
        acc = _ChatLineAccumulator()
        acc.add(payload)
        return acc.build()

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Stream message content from NDJSON records to *on_chunk*."""
        acc = _ChatLineAccumulator()
        payload = build_payload(request, model_id, stream=True)
        async with aclosing(self._events("/api/chat", payload, ndjson=True)) as records:
            async for record in records:
                raise_for_error_object(record, backend=self.backend.value)
                delta = acc.add(record)
                if delta:
                    on_chunk(delta)
        return acc.build()


def build_payload(request: Request, model_id: str, *, stream: bool) -> dict[str, Any]:
    """Build an ``/api/chat`` body."""
    if request.builtin_tools:
        logger.warning(
            "ollama: dropping %d built-in tool(s) not available locally",
            len(request.builtin_tools),
        )
    payload: dict[str, Any] = {
        "model": model_id,
        "messages": chat_messages(request),
        "stream": stream,
    }
    if request.temperature is not None:
        payload["options"] = {"temperature": request.temperature}
    if request.json_mode:
        payload["format"] = "json"
    if request.reasoning_effort is not None:
        payload["think"] = True
    if request.tools:
        payload["tools"] = [function_tool_to_wire(t, style="chat") for t in request.tools]
    return payload


@dataclass
class _ChatLineAccumulator:
    text: list[str] = field(default_factory=list)
    calls: list[FunctionCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None

    def add(self, record: dict[str, Any]) -> str:
        message = record.get("message")
        delta = ""
        if isinstance(message, dict):
            content = message.get("content")
            if isinstance(content, str) and content:
                delta = content
                self.text.append(content)
            for raw in message.get("tool_calls") or ():
                fn = raw.get("function") if isinstance(raw, dict) else None
                if not isinstance(fn, dict) or not isinstance(fn.get("name"), str):
                    continue
                args = fn.get("arguments")
                self.calls.append(
                    FunctionCall(
                        call_id=f"call_{len(self.calls)}",
                        name=fn["name"],
                        arguments=args if isinstance(args, str) else json.dumps(args or {}),
                    )
                )
        if record.get("done") is True:
            prompt = record.get("prompt_eval_count")
            completion = record.get("eval_count")
            input_tokens = prompt if isinstance(prompt, int) else 0
            output_tokens = completion if isinstance(completion, int) else 0
            self.usage = Usage(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
            )
            reason = record.get("done_reason")
            self.finish_reason = reason if isinstance(reason, str) else "stop"
        return delta

    def build(self) -> ProviderResponse:
        return ProviderResponse(
            text="".join(self.text),
            usage=self.usage,
            tool_calls=tuple(self.calls),
            finish_reason=self.finish_reason,
        )
