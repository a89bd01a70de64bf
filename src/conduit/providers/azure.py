"""Azure OpenAI provider: OpenAI wire formats on deployment-scoped URLs."""

from __future__ import annotations

from typing import ClassVar
from urllib.parse import quote

from conduit.backends import Backend
from conduit.providers.openai import OpenAIProvider


class AzureOpenAIProvider(OpenAIProvider):
    """Azure OpenAI provider.

    The resolved model id names the deployment. Authentication uses the
    ``api-key`` header and every call carries ``api-version``.
    """

    backend: ClassVar[Backend] = Backend.AZURE

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"api-key": api_key}

    def _params(self) -> dict[str, str]:
        return {"api-version": self.config.azure_api_version}

    def _chat_path(self, model_id: str) -> str:
        return f"/openai/deployments/{quote(model_id, safe='')}/chat/completions"

    def _responses_path(self, model_id: str) -> str:  # noqa: ARG002
        return "/openai/responses"
