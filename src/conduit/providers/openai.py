"""OpenAI provider: Chat Completions, plus the Responses API for built-in tools."""

from __future__ import annotations

from contextlib import aclosing
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from conduit.backends import Backend
from conduit.errors import BackendError
from conduit.providers._chat import (
    ChatStreamAccumulator,
    ReasoningStyle,
    chat_payload,
    parse_chat_body,
)
from conduit.providers.base import ChunkCallback, HttpProvider
from conduit.providers.models import ProviderResponse
from conduit.results import Usage
from conduit.wire import (
    ResponsesBody,
    function_tool_to_wire,
    parse_responses_body,
    parse_responses_payload,
    raise_for_error_object,
    to_wire,
)

if TYPE_CHECKING:
    from conduit.request import Request

logger = logging.getLogger(__name__)

_RESPONSES_TERMINAL_EVENTS = frozenset(
    {"response.completed", "response.incomplete", "response.failed"}
)


class OpenAIProvider(HttpProvider):
    """OpenAI provider.

    Requests with built-in tools go to ``/responses``; everything else uses
    ``/chat/completions``.
    """

    backend: ClassVar[Backend] = Backend.OPENAI
    supports_responses_api: ClassVar[bool] = True
    reasoning_style: ClassVar[ReasoningStyle] = "flat"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _chat_path(self, model_id: str) -> str:  # noqa: ARG002
        return "/chat/completions"

    def _responses_path(self, model_id: str) -> str:  # noqa: ARG002
        return "/responses"

    def _uses_responses(self, request: Request) -> bool:
        if not request.builtin_tools:
            return False
        if self.supports_responses_api:
            return True
        logger.warning(
            "%s has no Responses API; dropping %d built-in tool(s)",
            self.backend.value,
            len(request.builtin_tools),
        )
        return False

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Run one unary call on the endpoint the request needs."""
        if self._uses_responses(request):
            resp = await self._post(
                self._responses_path(model_id), responses_payload(request, model_id)
            )
            parsed = parse_responses_body(
                resp.body, backend=self.backend.value, status_code=resp.status_code
            )
            return _from_responses(parsed)

        resp = await self._post(
            self._chat_path(model_id),
            chat_payload(request, model_id, reasoning=self.reasoning_style),
        )
        return parse_chat_body(
            resp.body, backend=self.backend.value, status_code=resp.status_code
        )

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Stream text deltas to *on_chunk* and return the folded response."""
        if self._uses_responses(request):
            return await self._stream_responses(request, model_id, on_chunk)

        acc = ChatStreamAccumulator()
        payload = chat_payload(
            request, model_id, stream=True, reasoning=self.reasoning_style
        )
        async with aclosing(self._events(self._chat_path(model_id), payload)) as chunks:
            async for chunk in chunks:
                raise_for_error_object(chunk, backend=self.backend.value)
                delta = acc.add(chunk)
                if delta:
                    on_chunk(delta)
        return acc.build()

    async def _stream_responses(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        payload = responses_payload(request, model_id, stream=True)
        text: list[str] = []
        events = self._events(self._responses_path(model_id), payload)
        async with aclosing(events):
            async for event in events:
                kind = event.get("type")
                if kind == "response.output_text.delta":
                    delta = event.get("delta")
                    if isinstance(delta, str) and delta:
                        text.append(delta)
                        on_chunk(delta)
                elif kind == "error":
                    code = event.get("code")
                    raise BackendError(
                        f"{self.backend.value}: {event.get('message') or 'stream error'}",
                        retryable=False,
                        backend=self.backend.value,
                        code=str(code) if code is not None else None,
                        phase="stream",
                    )
                elif kind in _RESPONSES_TERMINAL_EVENTS and isinstance(
                    event.get("response"), dict
                ):
                    parsed = parse_responses_payload(
                        event["response"], backend=self.backend.value
                    )
                    return _from_responses(parsed)

        # Closed without a terminal event: keep what was streamed.
        streamed = "".join(text)
        estimated = len(streamed) // 4
        return ProviderResponse(
            text=streamed,
            usage=Usage(output_tokens=estimated, total_tokens=estimated),
        )


def responses_input(request: Request) -> str | list[dict[str, Any]]:
    """Encode the conversation as Responses-API input.

    A lone user message is sent as a bare string.
    """
    conversation = request.conversation
    if len(conversation) == 1 and conversation[0].role == "user":
        return conversation[0].content

    items: list[dict[str, Any]] = []
    for msg in conversation:
        if msg.role == "tool":
            items.append(
                {
                    "type": "function_call_output",
                    "call_id": msg.tool_call_id,
                    "output": msg.content,
                }
            )
            continue
        for tc in msg.tool_calls:
            items.append(
                {
                    "type": "function_call",
                    "call_id": tc.call_id,
                    "name": tc.name,
                    "arguments": tc.arguments,
                }
            )
        if msg.content or not msg.tool_calls:
            items.append({"role": msg.role, "content": msg.content})
    return items


def responses_payload(
    request: Request, model_id: str, *, stream: bool = False
) -> dict[str, Any]:
    """Build a ``/responses`` body; the system message becomes ``instructions``."""
    payload: dict[str, Any] = {"model": model_id, "input": responses_input(request)}
    instructions = request.system_instruction
    if instructions:
        payload["instructions"] = instructions

    tools = [to_wire(bt) for bt in request.builtin_tools]
    tools.extend(function_tool_to_wire(t, style="responses") for t in request.tools)
    if tools:
        payload["tools"] = tools
        payload["tool_choice"] = "auto"

    if request.temperature is not None:
        payload["temperature"] = request.temperature
    if request.reasoning_effort is not None:
        payload["reasoning"] = {"effort": request.reasoning_effort}
    if request.json_mode:
        payload["text"] = {"format": {"type": "json_object"}}
    if stream:
        payload["stream"] = True
    return payload


def _from_responses(parsed: ResponsesBody) -> ProviderResponse:
    return ProviderResponse(
        text=parsed.output.text,
        usage=parsed.usage,
        tool_calls=parsed.output.tool_calls,
        citations=parsed.output.citations,
        finish_reason=parsed.finish_reason,
        response_id=parsed.response_id,
    )
