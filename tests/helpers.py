"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: it exists to prevent test suites from
growing lots of one-off provider subclasses as coverage expands.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import json
from typing import Any

import httpx

from conduit.providers.models import ProviderResponse
from conduit.request import Message, Request
from tests.conftest import FakeProvider


def user_request(model: str = "gpt-5.2", prompt: str = "hi", **kwargs: Any) -> Request:
    """Build a single-user-message request."""
    return Request(model=model, messages=(Message("user", prompt),), **kwargs)


@dataclass
class ScriptedProvider(FakeProvider):
    """FakeProvider that returns a scripted sequence of results/exceptions.

    Once the script runs out every call succeeds with ``ok``.
    """

    script: list[ProviderResponse | BaseException] = field(default_factory=list)
    generate_calls: int = 0

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        self.requests.append(request)
        self.model_ids.append(model_id)
        self.generate_calls += 1
        if not self.script:
            return ProviderResponse(text="ok")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@dataclass
class FailingProvider(FakeProvider):
    """FakeProvider whose every call raises a fresh error from *make_error*."""

    make_error: Callable[[], BaseException] = lambda: RuntimeError("boom")
    generate_calls: int = 0

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        self.requests.append(request)
        self.model_ids.append(model_id)
        self.generate_calls += 1
        raise self.make_error()


@dataclass
class BlockingProvider(FakeProvider):
    """FakeProvider that parks inside ``generate`` until cancelled."""

    started: asyncio.Event = field(default_factory=asyncio.Event)
    cancelled: bool = False
    generate_calls: int = 0

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        self.generate_calls += 1
        self.started.set()
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        raise AssertionError("unreachable")  # pragma: no cover


@dataclass
class RecordingGate:
    """Rate-limit gate that counts waits and never blocks."""

    waits: int = 0

    async def wait(self) -> float:
        self.waits += 1
        return 0.0


@dataclass
class RecordedCall:
    method: str
    url: httpx.URL
    headers: httpx.Headers
    body: dict[str, Any]


@dataclass
class MockBackend:
    """``httpx.MockTransport`` handler that records requests and replays responses.

    Each entry in *responses* is an ``httpx.Response`` or an exception to raise.
    The last entry repeats once the list is exhausted.
    """

    responses: list[httpx.Response | Exception]
    calls: list[RecordedCall] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        self.calls.append(
            RecordedCall(request.method, request.url, request.headers, body)
        )
        item = self.responses[0] if len(self.responses) == 1 else self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        # Fresh copy: a response object is bound to a single request.
        return httpx.Response(
            item.status_code, headers=item.headers, content=item.content
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last(self) -> RecordedCall:
        return self.calls[-1]


def sse(*events: dict[str, Any] | str) -> bytes:
    """Encode events as a server-sent-events body."""
    lines = []
    for event in events:
        data = event if isinstance(event, str) else json.dumps(event)
        lines.append(f"data: {data}\n\n")
    return "".join(lines).encode()


def ndjson(*records: dict[str, Any]) -> bytes:
    """Encode records as newline-delimited JSON."""
    return "".join(json.dumps(r) + "\n" for r in records).encode()
