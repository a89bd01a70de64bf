"""OpenRouter provider: Chat Completions with vendor-namespaced model slugs."""

from __future__ import annotations

from typing import ClassVar

from conduit.backends import Backend
from conduit.providers._chat import ReasoningStyle
from conduit.providers.openai import OpenAIProvider


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter provider.

    OpenRouter speaks Chat Completions only: built-in tools are dropped with
    a warning, and reasoning effort travels as ``reasoning.effort``.
    """

    backend: ClassVar[Backend] = Backend.OPENROUTER
    supports_responses_api: ClassVar[bool] = False
    reasoning_style: ClassVar[ReasoningStyle] = "nested"
