"""Shared provider-side error helpers.

Providers attach retry metadata via APIError so core retry logic can be
bounded and deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import json
import re
from typing import Any

import httpx

from conduit._http import RETRYABLE_STATUS_CODES
from conduit.errors import (
    APIError,
    BackendError,
    RateLimitError,
    TransportError,
    _walk_exception_chain,
)

_PROTO_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)s$")

_AUTH_ENV_VARS: Mapping[str, str] = {
    "openrouter": "OPENROUTER_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GEMINI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
}


def _retry_info_seconds(payload: Any) -> float | None:
    """Extract the delay from a Google API-style ``RetryInfo`` error detail.

    Shaped like::

        {"error": {"details": [{"@type": "...RetryInfo", "retryDelay": "8s"}]}}
    """
    if not isinstance(payload, dict):
        return None
    error: Any = payload.get("error")
    if not isinstance(error, dict):
        return None
    details: Any = error.get("details")
    if not isinstance(details, list):
        return None
    for entry in details:
        if not isinstance(entry, dict):
            continue
        at_type = entry.get("@type", "")
        if not isinstance(at_type, str) or "RetryInfo" not in at_type:
            continue
        delay_raw = entry.get("retryDelay")
        if not isinstance(delay_raw, str):
            continue
        m = _PROTO_DURATION_RE.match(delay_raw)
        if m:
            return float(m.group(1))
    return None


def retry_after_seconds(headers: Mapping[str, str], payload: Any = None) -> float | None:
    """Return a retry delay from ``Retry-After`` or a ``RetryInfo`` detail."""
    raw = headers.get("retry-after") or headers.get("Retry-After")
    if isinstance(raw, str) and raw.strip():
        try:
            seconds = float(raw)
        except ValueError:
            seconds = None
        if seconds is not None and seconds >= 0:
            return seconds
    return _retry_info_seconds(payload)


def _error_object(payload: Any) -> tuple[str | None, str | None]:
    """Return ``(message, code)`` from a vendor error body, if any."""
    if not isinstance(payload, dict):
        return None, None
    raw = payload.get("error")
    if isinstance(raw, str):
        return raw, None
    if not isinstance(raw, dict):
        return None, None
    message = raw.get("message")
    code = raw.get("code") or raw.get("status") or raw.get("type")
    return (
        str(message) if message is not None else None,
        str(code) if code is not None else None,
    )


def _auth_hint(backend: str, status_code: int | None) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if status_code in {401, 403}:
        env_var = _AUTH_ENV_VARS.get(backend, "API key")
        return f"Check credentials/permissions (try setting {env_var} or Config.api_key)."
    return None


def error_from_status(
    status_code: int,
    body: bytes,
    headers: Mapping[str, str],
    *,
    backend: str,
    phase: str,
) -> APIError:
    """Map an HTTP error status into the matching APIError subclass.

    Retryable statuses stay retryable even when the body carries an error
    object; other statuses with an error object become :class:`BackendError`.
    """
    try:
        payload: Any = json.loads(body) if body else None
    except (ValueError, UnicodeDecodeError):
        payload = None

    message, code = _error_object(payload)
    retry_after_s = retry_after_seconds(headers, payload)
    detail = message or body[:200].decode("utf-8", errors="replace").strip()
    text = f"{backend} {phase} failed (status={status_code})"
    if detail:
        text = f"{text}: {detail}"

    common: dict[str, Any] = {
        "hint": _auth_hint(backend, status_code),
        "status_code": status_code,
        "retry_after_s": retry_after_s,
        "backend": backend,
        "code": code,
        "phase": phase,
    }
    if status_code == 429:
        return RateLimitError(text, retryable=True, **common)
    if status_code in RETRYABLE_STATUS_CODES:
        return APIError(text, retryable=True, **common)
    if message is not None:
        return BackendError(text, retryable=False, **common)
    return APIError(text, retryable=retry_after_s is not None, **common)


def wrap_provider_error(
    exc: BaseException,
    *,
    backend: str,
    phase: str,
    message: str | None = None,
) -> APIError:
    """Map httpx and transport exceptions into APIError with retry metadata."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    # Already wrapped: fill in missing context only.
    if isinstance(exc, APIError):
        if exc.backend is None:
            exc.backend = backend
        if exc.phase is None:
            exc.phase = phase
        return exc

    if isinstance(exc, httpx.HTTPStatusError):
        response = exc.response
        return error_from_status(
            response.status_code,
            response.content,
            response.headers,
            backend=backend,
            phase=phase,
        )

    msg = message or f"{backend} {phase} failed"
    cause = str(exc) or type(exc).__name__
    for e in _walk_exception_chain(exc):
        if isinstance(e, (httpx.TimeoutException, httpx.RequestError, TimeoutError)):
            return TransportError(
                f"{msg}: {cause}",
                retryable=True,
                backend=backend,
                phase=phase,
            )

    return APIError(
        f"{msg}: {cause}",
        retryable=False,
        backend=backend,
        phase=phase,
    )
