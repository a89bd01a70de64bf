"""HttpTransport: unary calls and SSE/NDJSON streams over a mock transport."""

from __future__ import annotations

import json

import httpx
import pytest

from conduit.transport import HttpTransport
from tests.helpers import MockBackend, ndjson, sse

pytestmark = pytest.mark.unit


def _transport(backend: MockBackend, **kwargs) -> HttpTransport:
    return HttpTransport(
        base_url="https://api.example/v1/",
        headers={"Authorization": "Bearer k"},
        transport=backend.transport,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_send_posts_json_and_returns_raw_body() -> None:
    backend = MockBackend([httpx.Response(200, json={"ok": True})])
    http = _transport(backend, params={"api-version": "1"})

    resp = await http.send("/chat", {"model": "m"})
    await http.aclose()

    assert resp.status_code == 200
    assert json.loads(resp.body) == {"ok": True}
    call = backend.last
    assert call.url.path == "/v1/chat"
    assert call.url.params["api-version"] == "1"
    assert call.headers["authorization"] == "Bearer k"
    assert call.body == {"model": "m"}


@pytest.mark.asyncio
async def test_send_raises_status_error_with_body() -> None:
    backend = MockBackend([httpx.Response(503, json={"error": {"message": "busy"}})])
    http = _transport(backend)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await http.send("/chat", {})

    assert excinfo.value.response.status_code == 503
    assert b"busy" in excinfo.value.response.content


@pytest.mark.asyncio
async def test_stream_yields_data_payloads_until_done() -> None:
    body = (
        b": keep-alive\n\n"
        b"event: message\n"
        + sse({"n": 1}, {"n": 2}, "[DONE]", {"n": 3})
    )
    backend = MockBackend([httpx.Response(200, content=body)])
    http = _transport(backend)

    events = [e async for e in http.stream("/chat", {"stream": True})]

    assert events == ['{"n": 1}', '{"n": 2}']


@pytest.mark.asyncio
async def test_stream_ends_on_connection_close_without_marker() -> None:
    backend = MockBackend([httpx.Response(200, content=sse({"n": 1}))])
    http = _transport(backend)

    assert [e async for e in http.stream("/chat", {})] == ['{"n": 1}']


@pytest.mark.asyncio
async def test_stream_lines_yields_ndjson_records() -> None:
    backend = MockBackend([httpx.Response(200, content=ndjson({"a": 1}, {"b": 2}) + b"\n")])
    http = _transport(backend)

    assert [line async for line in http.stream_lines("/api/chat", {})] == [
        '{"a": 1}',
        '{"b": 2}',
    ]


@pytest.mark.asyncio
async def test_stream_error_status_is_read_before_raising() -> None:
    backend = MockBackend([httpx.Response(429, json={"error": "slow down"})])
    http = _transport(backend)

    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        async for _ in http.stream("/chat", {}):
            pass

    assert excinfo.value.response.status_code == 429
    assert b"slow down" in excinfo.value.response.content
