"""Mock provider for testing without API calls."""

from __future__ import annotations

from typing import TYPE_CHECKING

from conduit.backends import Backend, as_backend
from conduit.capabilities import CapabilitySet, capabilities
from conduit.providers.models import ProviderResponse
from conduit.results import Usage

if TYPE_CHECKING:
    from conduit.providers.base import ChunkCallback
    from conduit.request import Request


class MockProvider:
    """Deterministic provider that echoes the last user message.

    Impersonates *backend* for resolution and capability checks.
    """

    def __init__(self, backend: Backend | str = Backend.OPENAI) -> None:
        """Initialize for the backend being impersonated."""
        self._backend = as_backend(backend)

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def capabilities(self) -> CapabilitySet:
        return capabilities(self._backend)

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        """Return ``echo: <last user message>``, truncated to 100 characters."""
        prompt = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        )
        return ProviderResponse(
            text=f"echo: {prompt[:100]}",
            usage=Usage(input_tokens=10, output_tokens=10, total_tokens=20),
            finish_reason="stop",
            response_id=f"mock-{model_id}",
        )

    async def stream(
        self, request: Request, model_id: str, on_chunk: ChunkCallback
    ) -> ProviderResponse:
        """Deliver the echo one word at a time."""
        response = await self.generate(request, model_id)
        words = response.text.split(" ")
        for i, word in enumerate(words):
            on_chunk(word if i == len(words) - 1 else f"{word} ")
        return response

    async def aclose(self) -> None:
        return None
