"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and automatic API test
skipping. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
from dataclasses import dataclass, field
import logging
import os

import pytest

from conduit.backends import Backend
from conduit.capabilities import CapabilitySet, capabilities
from conduit.providers.models import ProviderResponse
from conduit.ratelimit import NoopGate
from conduit.request import Request
from conduit.results import Usage

# =============================================================================
# Test Doubles
# =============================================================================


@dataclass
class FakeProvider:
    """Provider test double that answers ``ok:<last user message>``.

    Records every request and resolved model id it sees.
    """

    backend: Backend = Backend.OPENAI
    requests: list[Request] = field(default_factory=list)
    model_ids: list[str] = field(default_factory=list)
    closed: bool = False

    @property
    def capabilities(self) -> CapabilitySet:
        return capabilities(self.backend)

    async def generate(self, request: Request, model_id: str) -> ProviderResponse:
        self.requests.append(request)
        self.model_ids.append(model_id)
        prompt = next(
            (m.content for m in reversed(request.messages) if m.role == "user"), ""
        )
        return ProviderResponse(
            text=f"ok:{prompt}",
            usage=Usage(input_tokens=1, output_tokens=1, total_tokens=2),
            finish_reason="stop",
        )

    async def stream(self, request: Request, model_id: str, on_chunk) -> ProviderResponse:
        response = await self.generate(request, model_id)
        for ch in response.text:
            on_chunk(ch)
        return response

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def noop_gate() -> NoopGate:
    """Rate-limit gate that never waits (not autouse)."""
    return NoopGate()


# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================

_PROVIDER_ENV_PREFIXES = (
    "OPENAI_",
    "OPENROUTER_",
    "ANTHROPIC_",
    "GEMINI_",
    "GOOGLE_",
    "AZURE_OPENAI_",
    "OLLAMA_",
)


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears every backend's key and endpoint variables.
    Opt-out: @pytest.mark.allow_env_pollution or @pytest.mark.api
    """
    if request.node.get_closest_marker("allow_env_pollution") or (
        "api" in request.node.keywords
    ):
        return

    for key in list(os.environ.keys()):
        if key.startswith(_PROVIDER_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_default_gate(monkeypatch):
    """Give each test a fresh process-wide rate-limit gate."""
    monkeypatch.setattr("conduit.ratelimit._DEFAULT_GATE", None)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Pytest Hooks
# =============================================================================

API_TESTS_REASON = "API tests require ENABLE_API_TESTS=1"


def _api_tests_enabled() -> bool:
    return bool(os.getenv("ENABLE_API_TESTS"))


def pytest_collection_modifyitems(items):
    """Automatically skip API tests when not explicitly enabled."""
    if _api_tests_enabled():
        return
    skip_api = pytest.mark.skip(reason=API_TESTS_REASON)
    for item in items:
        if "api" in item.keywords:
            item.add_marker(skip_api)


# =============================================================================
# API Test Configuration
# =============================================================================

# Cheapest models that still exercise the full request path.
_OPENAI_TEST_MODEL = "gpt-5-nano"
_ANTHROPIC_TEST_MODEL = "claude-haiku-4.5"


@pytest.fixture
def openai_api_key():
    """Return OPENAI_API_KEY or skip the test if unavailable."""
    key = os.getenv("OPENAI_API_KEY")
    if not key:
        pytest.skip("OPENAI_API_KEY not set")
    return key


@pytest.fixture
def openai_test_model():
    """Return the model to use for OpenAI API tests."""
    return _OPENAI_TEST_MODEL


@pytest.fixture
def anthropic_api_key():
    """Return ANTHROPIC_API_KEY or skip the test if unavailable."""
    key = os.getenv("ANTHROPIC_API_KEY")
    if not key:
        pytest.skip("ANTHROPIC_API_KEY not set")
    return key


@pytest.fixture
def anthropic_test_model():
    """Return the model to use for Anthropic API tests."""
    return _ANTHROPIC_TEST_MODEL
