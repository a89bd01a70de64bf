"""Model resolution: abstract model ids to backend-native ids.

``resolve()`` is total. Exact table entries always win; otherwise each
backend applies its own normalization (namespace stripping, vendor-prefix
inference, snapshot mapping) and anything left over passes through verbatim.
"""

from __future__ import annotations

from collections.abc import Mapping
import re
from types import MappingProxyType

from conduit import catalog as m
from conduit.backends import Backend, as_backend

# Canonical tables, keyed by abstract model. Read-only after import.
_OPENAI_TABLE: Mapping[str, str] = MappingProxyType(
    {model: model for model in m.OPENAI_MODELS}
)

_OPENROUTER_TABLE: Mapping[str, str] = MappingProxyType(
    {
        **{model: f"openai/{model}" for model in m.OPENAI_MODELS},
        m.SORA_2: "openai/sora-2",
        m.SORA_2_PRO: "openai/sora-2-pro",
        m.CLAUDE_OPUS_4_5: "anthropic/claude-opus-4.5",
        m.CLAUDE_SONNET_4_5: "anthropic/claude-sonnet-4.5",
        m.CLAUDE_HAIKU_4_5: "anthropic/claude-haiku-4.5",
        m.CLAUDE_OPUS_4_1: "anthropic/claude-opus-4.1",
        m.CLAUDE_OPUS_4: "anthropic/claude-opus-4",
        m.CLAUDE_SONNET_4: "anthropic/claude-sonnet-4",
        m.CLAUDE_SONNET_3_7: "anthropic/claude-3.7-sonnet",
        m.CLAUDE_HAIKU_3_5: "anthropic/claude-3.5-haiku",
        m.CLAUDE_HAIKU_3: "anthropic/claude-3-haiku",
        m.CLAUDE_OPUS_3: "anthropic/claude-3-opus",
        m.CLAUDE_SONNET_3: "anthropic/claude-3-sonnet",
        m.GEMINI_3_PRO: "google/gemini-3-pro-preview",
        m.GEMINI_3_FLASH: "google/gemini-3-flash-preview",
        m.GEMINI_2_5_PRO: "google/gemini-2.5-pro",
        m.GEMINI_2_5_FLASH: "google/gemini-2.5-flash",
        m.GEMINI_2_5_FLASH_LITE: "google/gemini-2.5-flash-lite",
        m.GEMINI_2_FLASH: "google/gemini-2.0-flash-001",
        m.GEMINI_2_FLASH_LITE: "google/gemini-2.0-flash-lite-001",
        m.GROK_4_1_FAST: "x-ai/grok-4.1-fast",
        m.GROK_3: "x-ai/grok-3",
        m.GROK_3_MINI: "x-ai/grok-3-mini",
        m.QWEN_3_NEXT: "qwen/qwen3-next",
        m.QWEN_3: "qwen/qwen-3-235b",
        m.LLAMA_4: "meta-llama/llama-4-maverick",
        m.MISTRAL_LARGE: "mistralai/mistral-large",
    }
)

# Stable snapshots, not floating aliases, for deterministic behavior.
_ANTHROPIC_TABLE: Mapping[str, str] = MappingProxyType(
    {
        m.CLAUDE_SONNET_4_5: "claude-sonnet-4-5-20250929",
        m.CLAUDE_HAIKU_4_5: "claude-haiku-4-5-20251001",
        m.CLAUDE_OPUS_4_5: "claude-opus-4-5-20251101",
        m.CLAUDE_OPUS_4_1: "claude-opus-4-1-20250805",
        m.CLAUDE_SONNET_4: "claude-sonnet-4-20250514",
        m.CLAUDE_OPUS_4: "claude-opus-4-20250514",
        m.CLAUDE_SONNET_3_7: "claude-3-7-sonnet-20250219",
        m.CLAUDE_HAIKU_3_5: "claude-3-5-haiku-20241022",
        m.CLAUDE_HAIKU_3: "claude-3-haiku-20240307",
        m.CLAUDE_OPUS_3: "claude-3-opus-20240229",
        m.CLAUDE_SONNET_3: "claude-3-sonnet-20240229",
    }
)

_GOOGLE_TABLE: Mapping[str, str] = MappingProxyType(
    {
        m.GEMINI_3_PRO: "gemini-3-pro-preview",
        m.GEMINI_3_FLASH: "gemini-3-flash-preview",
        m.GEMINI_2_5_PRO: "gemini-2.5-pro",
        m.GEMINI_2_5_FLASH: "gemini-2.5-flash",
        m.GEMINI_2_5_FLASH_LITE: "gemini-2.5-flash-lite",
        m.GEMINI_2_FLASH: "gemini-2.0-flash",
        m.GEMINI_2_FLASH_LITE: "gemini-2.0-flash-lite",
    }
)

_CANONICAL_TABLES: Mapping[Backend, Mapping[str, str]] = MappingProxyType(
    {
        Backend.OPENROUTER: _OPENROUTER_TABLE,
        Backend.OPENAI: _OPENAI_TABLE,
        Backend.ANTHROPIC: _ANTHROPIC_TABLE,
        Backend.GOOGLE: _GOOGLE_TABLE,
    }
)

#: Backends that share another backend's identifier namespace.
#: Azure OpenAI routes by deployment but accepts OpenAI model ids.
TABLE_ALIASES: Mapping[Backend, Backend] = MappingProxyType(
    {Backend.AZURE: Backend.OPENAI}
)

_EMPTY_TABLE: Mapping[str, str] = MappingProxyType({})

# Dotted shorthand (OpenRouter style) to Anthropic snapshot ids.
ANTHROPIC_SNAPSHOTS: Mapping[str, str] = MappingProxyType(
    {
        "claude-sonnet-4.5": "claude-sonnet-4-5-20250929",
        "claude-haiku-4.5": "claude-haiku-4-5-20251001",
        "claude-opus-4.5": "claude-opus-4-5-20251101",
        "claude-opus-4.1": "claude-opus-4-1-20250805",
        "claude-opus-4": "claude-opus-4-20250514",
        "claude-sonnet-4": "claude-sonnet-4-20250514",
        "claude-3.7-sonnet": "claude-3-7-sonnet-20250219",
        "claude-3.5-haiku": "claude-3-5-haiku-20241022",
        "claude-3-haiku": "claude-3-haiku-20240307",
        "claude-3-opus": "claude-3-opus-20240229",
        "claude-3-sonnet": "claude-3-sonnet-20240229",
    }
)

# Bare-id prefixes that identify OpenAI model families.
OPENAI_FAMILY_PREFIXES: tuple[str, ...] = (
    "gpt-",
    "chatgpt-",
    "sora-",
    "whisper-",
    "tts-",
    "text-embedding-",
)
_O_SERIES_RE = re.compile(r"^o\d")
_DOTTED_VERSION_RE = re.compile(r"\.(\d)")


def table_for(backend: Backend | str) -> Mapping[str, str]:
    """Return the (read-only) lookup table used for *backend*."""
    b = as_backend(backend)
    b = TABLE_ALIASES.get(b, b)
    return _CANONICAL_TABLES.get(b, _EMPTY_TABLE)


def resolve(backend: Backend | str, model: str) -> str:
    """Convert an abstract *model* into the id *backend* expects.

    Never raises for a known backend; unknown shapes pass through unchanged.

    Example:
        resolve(Backend.ANTHROPIC, "claude-sonnet-4.5")
        # -> "claude-sonnet-4-5-20250929"
        resolve(Backend.OPENROUTER, "o3-mini")
        # -> "openai/o3-mini"
    """
    b = as_backend(backend)
    resolved = table_for(b).get(model)
    if resolved is not None:
        return resolved

    raw = str(model)
    match b:
        case Backend.OPENAI | Backend.AZURE:
            return raw.removeprefix("openai/")
        case Backend.GOOGLE:
            return raw.removeprefix("google/")
        case Backend.OPENROUTER:
            # Only OpenAI families are inferred; other bare ids are not guessed.
            if "/" not in raw and looks_like_openai_model(raw):
                return f"openai/{raw}"
            return raw
        case Backend.ANTHROPIC:
            return normalize_anthropic_model(raw)
        case _:
            return raw


def normalize_anthropic_model(raw: str) -> str:
    """Map OpenRouter-style Claude ids onto Anthropic-native ids.

    Strips the ``anthropic/`` namespace and any ``:variant`` routing suffix,
    maps known dotted shorthands to snapshots, and otherwise rewrites dotted
    versions with dashes (``claude-4.9-x`` -> ``claude-4-9-x``). The last
    step is approximate: some names only exist as full snapshot ids.
    """
    name = raw.removeprefix("anthropic/")
    name = name.split(":", 1)[0]

    snapshot = ANTHROPIC_SNAPSHOTS.get(name)
    if snapshot is not None:
        return snapshot
    return _DOTTED_VERSION_RE.sub(r"-\1", name)


def looks_like_openai_model(model_id: str) -> bool:
    """Return True when a bare id belongs to a known OpenAI family."""
    if model_id.startswith(OPENAI_FAMILY_PREFIXES):
        return True
    return bool(_O_SERIES_RE.match(model_id))
