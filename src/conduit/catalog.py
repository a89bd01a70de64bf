"""Abstract model identifiers.

These are the caller-facing names the resolver tables are keyed by. Aliases
are plain re-bindings of a canonical constant (``GPT_5 = GPT_5_2``) so two
names can never become two table keys for the same backend id.

The list is not exhaustive: any string is a valid model and unknown ids go
through the resolver's normalization heuristics instead of a table.
"""

from __future__ import annotations

# --- OpenAI: GPT-5 family ---
GPT_5_2 = "gpt-5.2"
GPT_5_2_PRO = "gpt-5.2-pro"
GPT_5_1 = "gpt-5.1"
GPT_5_BASE = "gpt-5"
GPT_5_PRO = "gpt-5-pro"
GPT_5_MINI = "gpt-5-mini"
GPT_5_NANO = "gpt-5-nano"
GPT_5_1_CODEX = "gpt-5.1-codex"
GPT_5_1_CODEX_MAX = "gpt-5.1-codex-max"
GPT_5_CODEX_BASE = "gpt-5-codex"
GPT_5_1_CODEX_MINI = "gpt-5.1-codex-mini"
CODEX_MINI_LATEST = "codex-mini-latest"
GPT_5_SEARCH_API = "gpt-5-search-api"
COMPUTER_USE_PREVIEW = "computer-use-preview"
GPT_5_2_CHAT_LATEST = "gpt-5.2-chat-latest"
GPT_5_1_CHAT_LATEST = "gpt-5.1-chat-latest"
GPT_5_CHAT_LATEST = "gpt-5-chat-latest"

# --- OpenAI: GPT-4 family ---
CHATGPT_4O_LATEST = "chatgpt-4o-latest"
GPT_4_1 = "gpt-4.1"
GPT_4_1_MINI = "gpt-4.1-mini"
GPT_4_1_NANO = "gpt-4.1-nano"
GPT_4O = "gpt-4o"
GPT_4O_2024_05_13 = "gpt-4o-2024-05-13"
GPT_4O_MINI = "gpt-4o-mini"

# --- OpenAI: reasoning (o-series) ---
O1 = "o1"
O1_MINI = "o1-mini"
O1_PRO = "o1-pro"
O1_PREVIEW = "o1-preview"
O3 = "o3"
O3_MINI = "o3-mini"
O3_PRO = "o3-pro"
O3_DEEP_RESEARCH = "o3-deep-research"
O4_MINI = "o4-mini"
O4_MINI_DEEP_RESEARCH = "o4-mini-deep-research"

# --- OpenAI: realtime, audio, search, speech ---
GPT_REALTIME = "gpt-realtime"
GPT_REALTIME_MINI = "gpt-realtime-mini"
GPT_4O_REALTIME_PREVIEW = "gpt-4o-realtime-preview"
GPT_4O_MINI_REALTIME_PREVIEW = "gpt-4o-mini-realtime-preview"
GPT_AUDIO = "gpt-audio"
GPT_AUDIO_MINI = "gpt-audio-mini"
GPT_4O_AUDIO_PREVIEW = "gpt-4o-audio-preview"
GPT_4O_MINI_AUDIO_PREVIEW = "gpt-4o-mini-audio-preview"
GPT_4O_MINI_SEARCH_PREVIEW = "gpt-4o-mini-search-preview"
GPT_4O_SEARCH_PREVIEW = "gpt-4o-search-preview"
GPT_4O_MINI_TTS = "gpt-4o-mini-tts"
GPT_4O_TRANSCRIBE = "gpt-4o-transcribe"
GPT_4O_TRANSCRIBE_DIARIZE = "gpt-4o-transcribe-diarize"
GPT_4O_MINI_TRANSCRIBE = "gpt-4o-mini-transcribe"

# --- OpenAI: image and video ---
GPT_IMAGE_1_5 = "gpt-image-1.5"
CHATGPT_IMAGE_LATEST = "chatgpt-image-latest"
GPT_IMAGE_1 = "gpt-image-1"
GPT_IMAGE_1_MINI = "gpt-image-1-mini"
SORA_2 = "sora-2"
SORA_2_PRO = "sora-2-pro"

# --- Anthropic ---
CLAUDE_OPUS_4_5 = "claude-opus-4.5"
CLAUDE_SONNET_4_5 = "claude-sonnet-4.5"
CLAUDE_HAIKU_4_5 = "claude-haiku-4.5"
CLAUDE_OPUS_4_1 = "claude-opus-4.1"
CLAUDE_OPUS_4 = "claude-opus-4"
CLAUDE_SONNET_4 = "claude-sonnet-4"
CLAUDE_SONNET_3_7 = "claude-3.7-sonnet"
CLAUDE_HAIKU_3_5 = "claude-3.5-haiku"
CLAUDE_HAIKU_3 = "claude-3-haiku"
CLAUDE_OPUS_3 = "claude-3-opus"
CLAUDE_SONNET_3 = "claude-3-sonnet"

# --- Google ---
GEMINI_3_PRO = "gemini-3-pro"
GEMINI_3_FLASH = "gemini-3-flash"
GEMINI_2_5_PRO = "gemini-2.5-pro"
GEMINI_2_5_FLASH = "gemini-2.5-flash"
GEMINI_2_5_FLASH_LITE = "gemini-2.5-flash-lite"
GEMINI_2_FLASH = "gemini-2.0-flash"
GEMINI_2_FLASH_LITE = "gemini-2.0-flash-lite"

# --- Other vendors (OpenRouter only) ---
GROK_4_1_FAST = "grok-4.1-fast"
GROK_3 = "grok-3"
GROK_3_MINI = "grok-3-mini"
QWEN_3_NEXT = "qwen3-next"
QWEN_3 = "qwen3-235b"
LLAMA_4 = "llama-4-maverick"
MISTRAL_LARGE = "mistral-large"

# --- Aliases (same value as their canonical model) ---
GPT_5 = GPT_5_2
GPT_5_CODEX = GPT_5_1_CODEX
CLAUDE_OPUS = CLAUDE_OPUS_4_5
CLAUDE_SONNET = CLAUDE_SONNET_4_5
CLAUDE_HAIKU = CLAUDE_HAIKU_4_5
GEMINI_PRO = GEMINI_2_5_PRO
GEMINI_FLASH = GEMINI_2_5_FLASH

#: OpenAI models also served natively by OpenAI and Azure OpenAI.
OPENAI_MODELS: tuple[str, ...] = (
    GPT_5_2,
    GPT_5_2_PRO,
    GPT_5_1,
    GPT_5_BASE,
    GPT_5_PRO,
    GPT_5_MINI,
    GPT_5_NANO,
    GPT_5_1_CODEX,
    GPT_5_1_CODEX_MAX,
    GPT_5_CODEX_BASE,
    GPT_5_1_CODEX_MINI,
    CODEX_MINI_LATEST,
    GPT_5_SEARCH_API,
    COMPUTER_USE_PREVIEW,
    GPT_5_2_CHAT_LATEST,
    GPT_5_1_CHAT_LATEST,
    GPT_5_CHAT_LATEST,
    CHATGPT_4O_LATEST,
    GPT_4_1,
    GPT_4_1_MINI,
    GPT_4_1_NANO,
    GPT_4O,
    GPT_4O_2024_05_13,
    GPT_4O_MINI,
    O1,
    O1_MINI,
    O1_PRO,
    O1_PREVIEW,
    O3,
    O3_MINI,
    O3_PRO,
    O3_DEEP_RESEARCH,
    O4_MINI,
    O4_MINI_DEEP_RESEARCH,
    GPT_REALTIME,
    GPT_REALTIME_MINI,
    GPT_4O_REALTIME_PREVIEW,
    GPT_4O_MINI_REALTIME_PREVIEW,
    GPT_AUDIO,
    GPT_AUDIO_MINI,
    GPT_4O_AUDIO_PREVIEW,
    GPT_4O_MINI_AUDIO_PREVIEW,
    GPT_4O_MINI_SEARCH_PREVIEW,
    GPT_4O_SEARCH_PREVIEW,
    GPT_4O_MINI_TTS,
    GPT_4O_TRANSCRIBE,
    GPT_4O_TRANSCRIBE_DIARIZE,
    GPT_4O_MINI_TRANSCRIBE,
    GPT_IMAGE_1_5,
    CHATGPT_IMAGE_LATEST,
    GPT_IMAGE_1,
    GPT_IMAGE_1_MINI,
)
