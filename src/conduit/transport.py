"""HTTP transport: one unary call and two streaming shapes per backend.

The transport knows nothing about payload semantics. It posts JSON, returns
raw bytes for unary calls, and yields raw event payloads for streams. HTTP
error statuses surface as :class:`httpx.HTTPStatusError` (with the body
already read) so providers can map them in one place.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass, field
import logging
from types import MappingProxyType
from typing import Any

import httpx

from conduit._http import SSE_DATA_PREFIX, SSE_DONE_MARKER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Raw result of a unary call."""

    status_code: int
    body: bytes = field(repr=False)
    headers: Mapping[str, str] = field(default_factory=dict, repr=False)


class HttpTransport:
    """Thin wrapper over :class:`httpx.AsyncClient` bound to one base URL.

    Cancelling the awaiting task aborts the in-flight request and closes its
    connection.
    """

    def __init__(
        self,
        *,
        base_url: str,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, str] | None = None,
        timeout_s: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a client; pass ``transport`` to inject a mock in tests."""
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=dict(headers or {}),
            params=dict(params or {}),
            timeout=timeout_s,
            transport=transport,
        )

    async def send(self, path: str, payload: Mapping[str, Any]) -> TransportResponse:
        """POST *payload* as JSON and return the raw response.

        Raises:
            httpx.HTTPStatusError: For 4xx/5xx responses.
            httpx.RequestError: For connection and timeout failures.
        """
        response = await self._client.post(path, json=payload)
        if response.is_error:
            response.raise_for_status()
        return TransportResponse(
            status_code=response.status_code,
            body=response.content,
            headers=MappingProxyType(dict(response.headers)),
        )

    async def stream(
        self, path: str, payload: Mapping[str, Any]
    ) -> AsyncIterator[str]:
        """POST *payload* and yield server-sent ``data:`` payloads in order.

        Ends at the ``[DONE]`` marker or when the server closes the stream.
        Non-data lines (``event:``, comments, blanks) are skipped.
        """
        async for line in self._lines(path, payload):
            if not line.startswith(SSE_DATA_PREFIX):
                continue
            data = line[len(SSE_DATA_PREFIX) :].strip()
            if data == SSE_DONE_MARKER:
                return
            if data:
                yield data

    async def stream_lines(
        self, path: str, payload: Mapping[str, Any]
    ) -> AsyncIterator[str]:
        """POST *payload* and yield newline-delimited JSON records in order."""
        async for line in self._lines(path, payload):
            if line:
                yield line

    async def _lines(
        self, path: str, payload: Mapping[str, Any]
    ) -> AsyncIterator[str]:
        async with self._client.stream("POST", path, json=payload) as response:
            if response.is_error:
                await response.aread()
                response.raise_for_status()
            async for line in response.aiter_lines():
                yield line.strip()

    async def aclose(self) -> None:
        await self._client.aclose()
