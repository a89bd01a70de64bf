"""Configuration: frozen per-backend connection settings."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import os
from types import MappingProxyType

from dotenv import load_dotenv

from conduit.backends import Backend, as_backend
from conduit.errors import ConfigurationError
from conduit.retry import AnyRetry

load_dotenv()

# Backend-specific API key environment variable names, first match wins.
_API_KEY_ENV_VARS: Mapping[Backend, tuple[str, ...]] = MappingProxyType(
    {
        Backend.OPENROUTER: ("OPENROUTER_API_KEY",),
        Backend.OPENAI: ("OPENAI_API_KEY",),
        Backend.ANTHROPIC: ("ANTHROPIC_API_KEY",),
        Backend.GOOGLE: ("GEMINI_API_KEY", "GOOGLE_API_KEY"),
        Backend.AZURE: ("AZURE_OPENAI_API_KEY",),
    }
)

_BASE_URL_ENV_VARS: Mapping[Backend, str] = MappingProxyType(
    {
        Backend.AZURE: "AZURE_OPENAI_ENDPOINT",
        Backend.OLLAMA: "OLLAMA_HOST",
    }
)

DEFAULT_BASE_URLS: Mapping[Backend, str] = MappingProxyType(
    {
        Backend.OPENROUTER: "https://openrouter.ai/api/v1",
        Backend.OPENAI: "https://api.openai.com/v1",
        Backend.ANTHROPIC: "https://api.anthropic.com/v1",
        Backend.GOOGLE: "https://generativelanguage.googleapis.com/v1beta",
        Backend.OLLAMA: "http://localhost:11434",
    }
)

DEFAULT_AZURE_API_VERSION = "2024-10-21"


@dataclass(frozen=True)
class Config:
    """Immutable connection settings for one backend.

    API keys and endpoints are auto-resolved from standard environment
    variables (``.env`` files are loaded on import). A missing key is not an
    error until a real request needs it; see :meth:`require_api_key`.

    Example:
        config = Config(backend="anthropic")
        # API key is resolved from ANTHROPIC_API_KEY
    """

    backend: Backend | str
    #: Auto-resolved from the backend's environment variable when *None*.
    api_key: str | None = None
    #: Auto-resolved from ``AZURE_OPENAI_ENDPOINT`` / ``OLLAMA_HOST`` or a
    #: public default when *None*.
    base_url: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    timeout_s: float = 60.0
    use_mock: bool = False
    azure_api_version: str = DEFAULT_AZURE_API_VERSION
    #: Default retry discipline for calls built from this config.
    retry: AnyRetry | None = None
    #: Minimum spacing between attempt starts within one ``execute`` call.
    #: 0 defers to the process-wide gate.
    min_request_interval_s: float = 0.0

    def __post_init__(self) -> None:
        """Normalize the backend and auto-resolve credentials."""
        try:
            backend = as_backend(self.backend)
        except ValueError as e:
            raise ConfigurationError(
                f"Unknown backend: {self.backend!r}",
                hint="Supported backends: "
                + ", ".join(repr(b.value) for b in Backend),
            ) from e
        object.__setattr__(self, "backend", backend)

        if self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="This bounds each HTTP request, in seconds.",
            )
        if self.min_request_interval_s < 0:
            raise ConfigurationError(
                f"min_request_interval_s must be >= 0, got {self.min_request_interval_s}",
            )

        if self.api_key is None and not self.use_mock:
            for env_var in _API_KEY_ENV_VARS.get(backend, ()):
                resolved_key = os.environ.get(env_var)
                if resolved_key:
                    object.__setattr__(self, "api_key", resolved_key)
                    break

        if self.base_url is None:
            env_var = _BASE_URL_ENV_VARS.get(backend)
            url = os.environ.get(env_var) if env_var else None
            object.__setattr__(self, "base_url", url or DEFAULT_BASE_URLS.get(backend))

        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))

    @property
    def needs_api_key(self) -> bool:
        return not self.use_mock and self.backend in _API_KEY_ENV_VARS

    def require_api_key(self) -> str:
        """Return the API key, or raise before any network I/O happens.

        Backends that need no key (Ollama, mock) get an empty string.
        """
        if not self.needs_api_key:
            return self.api_key or ""
        if not self.api_key:
            env_var = _API_KEY_ENV_VARS[Backend(self.backend)][0]
            raise ConfigurationError(
                f"API key required for {self.backend}",
                hint=f"Set {env_var} environment variable or pass api_key=...",
            )
        return self.api_key

    def require_base_url(self) -> str:
        """Return the base URL, or raise when none could be resolved."""
        if not self.base_url:
            raise ConfigurationError(
                f"base_url required for {self.backend}",
                hint="Set AZURE_OPENAI_ENDPOINT or pass base_url=...",
            )
        return self.base_url.rstrip("/")

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(backend={str(self.backend)!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None}, "
            f"base_url={self.base_url!r}, use_mock={self.use_mock})"
        )

    __repr__ = __str__
