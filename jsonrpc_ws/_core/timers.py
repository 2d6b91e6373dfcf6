"""
Timer facade used by the connection supervisor and liveness monitor.

Every delay in the core goes through a ``Timers`` implementation so that
tests can inject a fake and fire timers deterministically.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol


class Timers(Protocol):
    """Schedules and cancels delayed callbacks. Delays are in milliseconds."""

    def set_timer(self, callback: Callable[[], Any], delay: float) -> Any:
        ...

    def cancel_timer(self, handle: Any) -> None:
        ...


class LoopTimers:
    """
    ``Timers`` backed by an asyncio event loop.

    If no loop is given, the running loop at the time ``set_timer`` is
    called is used.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def set_timer(self, callback: Callable[[], Any], delay: float) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, float(delay)) / 1000.0, callback)

    def cancel_timer(self, handle: Any) -> None:
        if handle is not None:
            handle.cancel()
