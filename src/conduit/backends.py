"""Backend identities: one per vendor integration."""

from __future__ import annotations

from enum import Enum


class Backend(str, Enum):
    """Vendor API integration a request can be routed to."""

    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    OLLAMA = "ollama"
    AZURE = "azure"

    def __str__(self) -> str:
        return self.value


def as_backend(value: Backend | str) -> Backend:
    """Coerce a backend name into :class:`Backend`.

    Raises:
        ValueError: If *value* names no known backend.
    """
    if isinstance(value, Backend):
        return value
    return Backend(value.lower())
