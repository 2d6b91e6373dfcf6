"""
Liveness monitoring for an open connection.

Periodically pings the peer through the protocol engine and tracks
consecutive failures. The first ping after a connection opens is sent
almost immediately so that a new connection is validated quickly; later
pings wait ``ping_interval`` after the previous ping settled.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from jsonrpc_ws._core.timers import Timers

if TYPE_CHECKING:
    from jsonrpc_ws.config import ClientConfig

logger = logging.getLogger(__name__)

# Delay (ms) of the first ping after a connection opens
FIRST_PROBE_DELAY = 1


class LivenessMonitor:
    """
    Issues pings and reports their outcome.

    Args:
        probe: Coroutine function taking a timeout (ms) and returning the
            round trip time (ms); raises if the ping failed
        timers: Timer facade
        config: Live configuration; ``ping_interval``, ``ping_timeout`` and
            ``consecutive_ping_fail_close`` are read on every use
        on_success: Called with the round trip time
        on_failure: Called with the consecutive failure count and the error
        on_exhausted: Called with the failure count once it reaches
            ``consecutive_ping_fail_close``
    """

    def __init__(
        self,
        probe: Callable[[float], Awaitable[float]],
        timers: Timers,
        config: "ClientConfig",
        on_success: Callable[[float], Any],
        on_failure: Callable[[int, BaseException], Any],
        on_exhausted: Callable[[int], Any],
    ) -> None:
        self._probe = probe
        self._timers = timers
        self._config = config
        self._on_success = on_success
        self._on_failure = on_failure
        self._on_exhausted = on_exhausted

        self.consecutive_failures = 0
        self._running = False
        self._generation = 0
        self._timer: Any = None
        self._task: Optional[asyncio.Future] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, first_delay: float = FIRST_PROBE_DELAY) -> None:
        """
        Start pinging.

        ``first_delay`` only applies to the first ping; it does not change
        the configured ``ping_interval``.
        """
        self.stop()
        self._running = True
        self.consecutive_failures = 0
        self._schedule(first_delay)

    def stop(self) -> None:
        """Cancel the pending ping; a ping in flight is abandoned."""
        self._generation += 1
        self._running = False
        if self._timer is not None:
            self._timers.cancel_timer(self._timer)
            self._timer = None
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def reset(self) -> None:
        self.consecutive_failures = 0

    def _schedule(self, delay: float) -> None:
        generation = self._generation
        self._timer = self._timers.set_timer(lambda: self._fire(generation), delay)

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._timer = None
        task = asyncio.ensure_future(self._probe(self._config.ping_timeout))
        self._task = task
        task.add_done_callback(lambda done: self._settled(generation, done))

    def _settled(self, generation: int, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if generation != self._generation:
            return
        self._task = None

        if error is None:
            self.consecutive_failures = 0
            self._on_success(task.result())
        else:
            self.consecutive_failures += 1
            failures = self.consecutive_failures
            logger.warning(f"Ping failed ({failures} consecutive): {error!r}")
            self._on_failure(failures, error)
            if generation == self._generation and failures >= self._config.consecutive_ping_fail_close:
                self._on_exhausted(failures)

        # callbacks above may have stopped or restarted us
        if generation == self._generation:
            self._schedule(self._config.ping_interval)
