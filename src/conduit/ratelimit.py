"""Process-wide request pacing.

Every network attempt passes through a :class:`RateLimitGate` first. The
default gate enforces a minimum interval between consecutive request starts
across all callers in the process; it is the one piece of shared mutable
state in Conduit. A caller reserves its start slot under a
:class:`threading.Lock` and sleeps outside it, so one gate serves any number
of event loops and threads.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import logging
import threading
import time
from typing import Protocol

from conduit.errors import ConfigurationError

logger = logging.getLogger(__name__)


class RateLimitGate(Protocol):
    """Awaited before every network attempt."""

    async def wait(self) -> float:
        """Block until the next request may start; return the wait applied."""
        ...


@dataclass
class MinIntervalGate:
    """Minimal limiter using a monotonic clock.

    Consecutive ``wait()`` calls return at least ``min_interval_s`` apart.
    A non-positive interval disables pacing.
    """

    min_interval_s: float = 0.0
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _last_time: float | None = field(default=None, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    async def wait(self) -> float:
        with self._lock:
            interval = self.min_interval_s
            if interval <= 0:
                return 0.0
            now = self.clock()
            wait_time = 0.0
            if self._last_time is not None:
                wait_time = max(0.0, self._last_time + interval - now)
            # Reserve the slot before sleeping; later callers queue behind it.
            self._last_time = now + wait_time

        if wait_time > 0:
            logger.debug("Rate limit gate: waiting %.3fs", wait_time)
            await self.sleep(wait_time)
        return wait_time

    def set_interval(self, min_interval_s: float) -> None:
        """Change the spacing; applies from the next ``wait()``."""
        if min_interval_s < 0:
            raise ConfigurationError(
                f"min_interval_s must be >= 0, got {min_interval_s}",
                hint="Use 0 to disable pacing.",
            )
        with self._lock:
            self.min_interval_s = min_interval_s


class NoopGate:
    """Gate that never waits."""

    async def wait(self) -> float:
        return 0.0


_DEFAULT_GATE: MinIntervalGate | None = None
_DEFAULT_GATE_LOCK = threading.Lock()


def default_gate() -> MinIntervalGate:
    """Return the process-wide gate shared by orchestrators that get no gate."""
    global _DEFAULT_GATE
    with _DEFAULT_GATE_LOCK:
        if _DEFAULT_GATE is None:
            _DEFAULT_GATE = MinIntervalGate()
        return _DEFAULT_GATE


def configure_default_gate(min_interval_s: float) -> MinIntervalGate:
    """Set the process-wide spacing between attempt starts (0 disables).

    Call once at startup; it affects every orchestrator that uses the
    default gate.
    """
    gate = default_gate()
    gate.set_interval(min_interval_s)
    logger.debug("Default rate limit gate interval set to %.3fs", min_interval_s)
    return gate
