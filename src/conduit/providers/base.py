"""Provider protocol and the shared HTTP provider scaffolding."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from conduit.capabilities import CapabilitySet, capabilities
from conduit.providers._errors import wrap_provider_error
from conduit.transport import HttpTransport, TransportResponse

if TYPE_CHECKING:
    import httpx

    from conduit.backends import Backend
    from conduit.config import Config
    from conduit.providers.models import ProviderResponse
    from conduit.request import Request

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]


@runtime_checkable
class Provider(Protocol):
    """Minimal provider protocol: one backend, unary and streaming calls.

    ``model_id`` is already resolved into the backend's namespace.
    """

    @property
    def backend(self) -> Backend:
        """Backend identity used for resolution and capability checks."""
        ...

    @property
    def capabilities(self) -> CapabilitySet:
        """Static feature flags for warning about unsupported options."""
        ...

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Run one unary call."""
        ...

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Run one streaming call, invoking *on_chunk* per text delta."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


class HttpProvider:
    """Base for providers that talk JSON over :class:`HttpTransport`.

    Subclasses set ``backend`` and implement ``_headers``; the transport is
    created lazily so a missing API key surfaces as ``ConfigurationError``
    before any network I/O.
    """

    backend: ClassVar[Backend]

    def __init__(
        self,
        config: Config,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize from a backend config; ``transport`` is for tests."""
        self.config = config
        self._inner_transport = transport
        self._http: HttpTransport | None = None

    @property
    def capabilities(self) -> CapabilitySet:
        return capabilities(self.backend)

    def _headers(self, api_key: str) -> dict[str, str]:
        raise NotImplementedError

    def _base_url(self) -> str:
        return self.config.require_base_url()

    def _params(self) -> dict[str, str]:
        return {}

    def _get_transport(self) -> HttpTransport:
        if self._http is None:
            api_key = self.config.require_api_key()
            headers = {"Content-Type": "application/json", **self._headers(api_key)}
            headers.update(self.config.headers)
            self._http = HttpTransport(
                base_url=self._base_url(),
                headers=headers,
                params=self._params(),
                timeout_s=self.config.timeout_s,
                transport=self._inner_transport,
            )
        return self._http

    async def _post(self, path: str, payload: Mapping[str, Any]) -> TransportResponse:
        http = self._get_transport()
        logger.debug("%s POST %s", self.backend.value, path)
        try:
            return await http.send(path, payload)
        except Exception as e:
            raise wrap_provider_error(
                e, backend=self.backend.value, phase="generate"
            ) from e

    async def _events(
        self, path: str, payload: Mapping[str, Any], *, ndjson: bool = False
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield decoded JSON events from an SSE or NDJSON stream.

        Undecodable events are skipped.
        """
        http = self._get_transport()
        logger.debug("%s POST %s (stream)", self.backend.value, path)
        source = http.stream_lines(path, payload) if ndjson else http.stream(path, payload)
        try:
            async for data in source:
                try:
                    event = json.loads(data)
                except ValueError:
                    logger.debug("Skipping undecodable stream event from %s", self.backend.value)
                    continue
                if isinstance(event, dict):
                    yield event
        except Exception as e:
            raise wrap_provider_error(
                e, backend=self.backend.value, phase="stream"
            ) from e

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None
