"""Google Gemini provider (``generateContent`` REST API)."""

from __future__ import annotations

from contextlib import aclosing
from dataclasses import dataclass, field
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar
from urllib.parse import quote
import uuid

from pydantic import BaseModel, ConfigDict, ValidationError

from conduit.backends import Backend
from conduit.errors import DecodeError
from conduit.providers.base import ChunkCallback, HttpProvider
from conduit.providers.models import ProviderResponse
from conduit.results import FunctionCall, Usage
from conduit.wire import load_json_object, raise_for_error_object

if TYPE_CHECKING:
    from conduit.request import Request

logger = logging.getLogger(__name__)

_THINKING_BUDGETS = {
    "minimal": 512,
    "low": 1024,
    "medium": 8192,
    "high": 24576,
}


class GoogleProvider(HttpProvider):
    """Gemini provider over the public REST API."""

    backend: ClassVar[Backend] = Backend.GOOGLE

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"x-goog-api-key": api_key}

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Generate content from the Gemini model."""
        resp = await self._post(
            f"/models/{quote(model_id, safe='')}:generateContent",
            build_payload(request),
        )
        return parse_generate_body(
            resp.body, backend=self.backend.value, status_code=resp.status_code
        )

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Stream candidate text parts to *on_chunk*."""
        acc = _GenerateStreamAccumulator()
        path = f"/models/{quote(model_id, safe='')}:streamGenerateContent?alt=sse"
        async with aclosing(self._events(path, build_payload(request))) as events:
            async for event in events:
                raise_for_error_object(event, backend=self.backend.value)
                delta = acc.add(event)
                if delta:
                    on_chunk(delta)
        return acc.build()


def build_payload(request: Request) -> dict[str, Any]:
    """Build a ``generateContent`` body."""
    if request.builtin_tools:
        logger.warning(
            "google: dropping %d built-in tool(s) not available on generateContent",
            len(request.builtin_tools),
        )

    payload: dict[str, Any] = {"contents": _build_contents(request)}
    system = request.system_instruction
    if system:
        payload["systemInstruction"] = {"parts": [{"text": system}]}

    generation: dict[str, Any] = {}
    if request.temperature is not None:
        generation["temperature"] = request.temperature
    if request.json_mode:
        generation["responseMimeType"] = "application/json"
    if request.reasoning_effort is not None:
        generation["thinkingConfig"] = {
            "thinkingBudget": _THINKING_BUDGETS[request.reasoning_effort]
        }
    if generation:
        payload["generationConfig"] = generation

    if request.tools:
        payload["tools"] = [
            {
                "functionDeclarations": [
                    {
                        "name": t.name,
                        "description": t.description or "",
                        **({"parameters": t.parameters} if t.parameters else {}),
                    }
                    for t in request.tools
                ]
            }
        ]
        payload["toolConfig"] = {"functionCallingConfig": {"mode": "AUTO"}}
    return payload


def _build_contents(request: Request) -> list[dict[str, Any]]:
    contents: list[dict[str, Any]] = []
    call_id_to_name: dict[str, str] = {}
    for item in request.conversation:
        if item.role == "tool":
            name = call_id_to_name.get(item.tool_call_id or "", "unknown_tool")
            try:
                response = json.loads(item.content) if item.content else {}
            except ValueError:
                response = {"result": item.content}
            if not isinstance(response, dict):
                response = {"result": item.content}
            contents.append(
                {
                    "role": "user",
                    "parts": [{"functionResponse": {"name": name, "response": response}}],
                }
            )
        elif item.role == "assistant":
            parts: list[dict[str, Any]] = []
            if item.content:
                parts.append({"text": item.content})
            for tc in item.tool_calls:
                call_id_to_name[tc.call_id] = tc.name
                try:
                    args = json.loads(tc.arguments)
                except ValueError:
                    args = {}
                parts.append({"functionCall": {"name": tc.name, "args": args}})
            if parts:
                contents.append({"role": "model", "parts": parts})
        else:
            contents.append({"role": "user", "parts": [{"text": item.content}]})
    return contents


class _GoogleModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _FunctionCallPart(_GoogleModel):
    name: str
    args: dict[str, Any] | None = None
    id: str | None = None


class _Part(_GoogleModel):
    text: str | None = None
    thought: bool = False
    functionCall: _FunctionCallPart | None = None  # noqa: N815


class _Content(_GoogleModel):
    parts: list[_Part] = []


class _Candidate(_GoogleModel):
    content: _Content | None = None
    finishReason: str | None = None  # noqa: N815


class _GenerateEnvelope(_GoogleModel):
    candidates: list[_Candidate] = []
    usageMetadata: dict[str, Any] | None = None  # noqa: N815
    responseId: str | None = None  # noqa: N815


def _usage(raw: dict[str, Any] | None) -> Usage:
    if not raw:
        return Usage()

    def _int(key: str) -> int:
        value = raw.get(key)
        return value if isinstance(value, int) else 0

    thoughts = raw.get("thoughtsTokenCount")
    return Usage(
        input_tokens=_int("promptTokenCount"),
        output_tokens=_int("candidatesTokenCount"),
        total_tokens=_int("totalTokenCount"),
        reasoning_tokens=thoughts if isinstance(thoughts, int) else None,
    )


def _split_parts(parts: list[_Part]) -> tuple[str, list[FunctionCall]]:
    """Return visible text (thought parts excluded) and function calls."""
    text: list[str] = []
    calls: list[FunctionCall] = []
    for part in parts:
        if part.functionCall is not None:
            fc = part.functionCall
            calls.append(
                FunctionCall(
                    call_id=fc.id or f"call_{uuid.uuid4().hex[:8]}",
                    name=fc.name,
                    arguments=json.dumps(fc.args or {}),
                )
            )
        elif part.text and not part.thought:
            text.append(part.text)
    return "".join(text), calls


def _finish_reason(raw: str | None) -> str | None:
    return raw.lower() if raw else None


def parse_generate_body(
    body: bytes, *, backend: str, status_code: int | None = None
) -> ProviderResponse:
    """Parse a ``generateContent`` body; the first candidate wins."""
    payload = load_json_object(body, backend=backend)
    raise_for_error_object(payload, backend=backend, status_code=status_code)
    try:
        envelope = _GenerateEnvelope.model_validate(payload)
    except ValidationError as e:
        raise DecodeError(
            f"{backend} returned an unexpected generateContent body: "
            f"{e.error_count()} validation error(s)",
            body=body,
            backend=backend,
            phase="decode",
        ) from e

    text, calls = "", []
    finish_reason = None
    if envelope.candidates:
        first = envelope.candidates[0]
        if first.content is not None:
            text, calls = _split_parts(first.content.parts)
        finish_reason = _finish_reason(first.finishReason)

    return ProviderResponse(
        text=text,
        usage=_usage(envelope.usageMetadata),
        tool_calls=tuple(calls),
        finish_reason=finish_reason,
        response_id=envelope.responseId,
    )


@dataclass
class _GenerateStreamAccumulator:
    text: list[str] = field(default_factory=list)
    calls: list[FunctionCall] = field(default_factory=list)
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None
    response_id: str | None = None

    def add(self, event: dict[str, Any]) -> str:
        try:
            chunk = _GenerateEnvelope.model_validate(event)
        except ValidationError:
            logger.debug("Skipping malformed generateContent stream chunk")
            return ""
        if chunk.usageMetadata:
            self.usage = _usage(chunk.usageMetadata)
        if chunk.responseId:
            self.response_id = chunk.responseId
        if not chunk.candidates:
            return ""
        first = chunk.candidates[0]
        if first.finishReason:
            self.finish_reason = _finish_reason(first.finishReason)
        if first.content is None:
            return ""
        delta, calls = _split_parts(first.content.parts)
        self.calls.extend(calls)
        if delta:
            self.text.append(delta)
        return delta

    def build(self) -> ProviderResponse:
        return ProviderResponse(
            text="".join(self.text),
            usage=self.usage,
            tool_calls=tuple(self.calls),
            finish_reason=self.finish_reason,
            response_id=self.response_id,
        )
