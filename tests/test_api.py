"""Top-level ``conduit.execute`` tests.

Mock-backed tests run by default. The real API tests at the bottom are
intentionally compact and need ENABLE_API_TESTS=1 plus the backend's key.
"""

from __future__ import annotations

import pytest

import conduit
from conduit import (
    APIError,
    Config,
    ConfigurationError,
    Message,
    Request,
    ResponseValidationError,
    Target,
    catalog,
)
from conduit.backends import Backend
from conduit.ratelimit import configure_default_gate, default_gate
from tests.helpers import user_request

# =============================================================================
# Mock-backed execution
# =============================================================================


@pytest.mark.asyncio
async def test_execute_with_mock_config_returns_echo() -> None:
    response = await conduit.execute(
        user_request(model=catalog.GPT_5_2, prompt="hello"),
        config=Config(backend="openai", use_mock=True),
    )

    assert response.text == "echo: hello"
    assert response.model == catalog.GPT_5_2
    assert response.backend is Backend.OPENAI
    assert response.retries == 0
    assert response.usage.total_tokens == 20
    assert response.response_id is not None
    assert response.response_id.startswith("mock-")


@pytest.mark.asyncio
async def test_execute_streams_chunks_through_on_chunk() -> None:
    chunks: list[str] = []

    response = await conduit.execute(
        user_request(prompt="one two three"),
        config=Config(backend="openai", use_mock=True),
        on_chunk=chunks.append,
    )

    assert len(chunks) == 4
    assert "".join(chunks) == response.text == "echo: one two three"


@pytest.mark.asyncio
async def test_execute_falls_back_to_target_on_another_backend() -> None:
    """An unconfigured primary fails locally and the chain moves on."""
    response = await conduit.execute(
        user_request(model=catalog.GPT_5_2),
        config=Config(backend="openai"),
        fallbacks=[Target("anthropic", catalog.CLAUDE_SONNET_4_5)],
        fallback_configs=[Config(backend="anthropic", use_mock=True)],
    )

    assert response.backend is Backend.ANTHROPIC
    assert response.model == catalog.CLAUDE_SONNET_4_5
    assert response.response_id == "mock-claude-sonnet-4-5-20250929"


@pytest.mark.asyncio
async def test_execute_exhausted_chain_reports_primary_model() -> None:
    with pytest.raises(APIError) as exc:
        await conduit.execute(
            user_request(model=catalog.GPT_5_2),
            config=Config(backend="openai"),
            fallbacks=[catalog.GPT_5_MINI],
        )

    assert exc.value.model == catalog.GPT_5_2
    assert isinstance(exc.value.__cause__, ConfigurationError)


@pytest.mark.asyncio
async def test_execute_validator_rejection_is_terminal() -> None:
    with pytest.raises(ResponseValidationError):
        await conduit.execute(
            user_request(),
            config=Config(backend="openai", use_mock=True),
            fallbacks=[catalog.GPT_5_MINI],
            validators=[lambda text: False],
        )


@pytest.mark.asyncio
async def test_execute_validator_can_rewrite_text() -> None:
    response = await conduit.execute(
        user_request(prompt="quiet"),
        config=Config(backend="openai", use_mock=True),
        validators=[str.upper],
    )

    assert response.text == "ECHO: QUIET"


@pytest.mark.asyncio
async def test_execute_request_interval_stays_local_to_the_call() -> None:
    mock = Config(backend="openai", use_mock=True)
    shared = default_gate()
    delays: list[float] = []

    async def record(delay: float) -> None:
        delays.append(delay)

    shared.sleep = record

    await conduit.execute(
        user_request(),
        config=Config(backend="openai", use_mock=True, min_request_interval_s=5.0),
    )
    # A later call with no interval is not paced by the earlier one.
    await conduit.execute(user_request(), config=mock)
    await conduit.execute(user_request(), config=mock)

    assert shared.min_interval_s == 0.0
    assert delays == []


@pytest.mark.asyncio
async def test_execute_honours_configured_default_gate() -> None:
    delays: list[float] = []

    async def record(delay: float) -> None:
        delays.append(delay)

    mock = Config(backend="openai", use_mock=True)
    configure_default_gate(5.0).sleep = record

    await conduit.execute(user_request(), config=mock)
    await conduit.execute(user_request(), config=mock)

    assert len(delays) == 1
    assert 0.0 < delays[0] <= 5.0


@pytest.mark.asyncio
async def test_execute_rejects_non_positive_timeout() -> None:
    with pytest.raises(ConfigurationError):
        await conduit.execute(
            user_request(),
            config=Config(backend="openai", use_mock=True),
            timeout_s=0,
        )


def test_public_api_exports_are_importable() -> None:
    for name in conduit.__all__:
        assert hasattr(conduit, name), name
    assert isinstance(conduit.__version__, str)


# =============================================================================
# Real API (ENABLE_API_TESTS=1)
# =============================================================================


@pytest.mark.api
@pytest.mark.asyncio
async def test_openai_real_call_returns_text(openai_api_key, openai_test_model) -> None:
    response = await conduit.execute(
        Request(
            model=openai_test_model,
            messages=(Message("user", "Reply with the single word: pong"),),
        ),
        config=Config(backend="openai", api_key=openai_api_key),
    )

    assert "pong" in response.text.lower()
    assert response.usage.total_tokens > 0


@pytest.mark.api
@pytest.mark.asyncio
async def test_anthropic_real_stream_delivers_chunks(
    anthropic_api_key, anthropic_test_model
) -> None:
    chunks: list[str] = []

    response = await conduit.execute(
        Request(
            model=anthropic_test_model,
            messages=(Message("user", "Count from 1 to 5, digits only."),),
        ),
        config=Config(backend="anthropic", api_key=anthropic_api_key),
        on_chunk=chunks.append,
    )

    assert chunks
    assert "".join(chunks) == response.text
