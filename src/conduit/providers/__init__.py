"""Provider implementations."""

from __future__ import annotations

from typing import TYPE_CHECKING

from conduit.backends import Backend

from .anthropic import AnthropicProvider
from .azure import AzureOpenAIProvider
from .base import ChunkCallback, HttpProvider, Provider
from .google import GoogleProvider
from .mock import MockProvider
from .models import ProviderResponse
from .ollama import OllamaProvider
from .openai import OpenAIProvider
from .openrouter import OpenRouterProvider

if TYPE_CHECKING:
    import httpx

    from conduit.config import Config

_PROVIDER_CLASSES: dict[Backend, type[HttpProvider]] = {
    Backend.OPENROUTER: OpenRouterProvider,
    Backend.OPENAI: OpenAIProvider,
    Backend.ANTHROPIC: AnthropicProvider,
    Backend.GOOGLE: GoogleProvider,
    Backend.OLLAMA: OllamaProvider,
    Backend.AZURE: AzureOpenAIProvider,
}


def create_provider(
    config: Config, *, transport: httpx.AsyncBaseTransport | None = None
) -> Provider:
    """Build the provider for ``config.backend`` (a mock when ``use_mock``)."""
    backend = Backend(config.backend)
    if config.use_mock:
        return MockProvider(backend)
    return _PROVIDER_CLASSES[backend](config, transport=transport)


__all__ = [
    "AnthropicProvider",
    "AzureOpenAIProvider",
    "ChunkCallback",
    "GoogleProvider",
    "HttpProvider",
    "MockProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "OpenRouterProvider",
    "Provider",
    "ProviderResponse",
    "create_provider",
]
