"""
Tests for jsonrpc_ws._core.timers module.
"""

import asyncio

import pytest

from jsonrpc_ws._core.timers import LoopTimers


class TestLoopTimers:
    """Tests for LoopTimers class."""

    @pytest.mark.asyncio
    async def test_fires_after_delay(self):
        """Callback runs once the delay (ms) has passed."""
        timers = LoopTimers()
        fired = asyncio.Event()

        timers.set_timer(fired.set, 5)
        assert not fired.is_set()

        await asyncio.wait_for(fired.wait(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_delay_is_milliseconds(self):
        """A 200ms timer has not fired after 20ms."""
        timers = LoopTimers()
        calls = []

        handle = timers.set_timer(lambda: calls.append(1), 200)
        await asyncio.sleep(0.02)

        assert calls == []
        timers.cancel_timer(handle)

    @pytest.mark.asyncio
    async def test_cancel(self):
        """A cancelled timer never fires."""
        timers = LoopTimers()
        calls = []

        handle = timers.set_timer(lambda: calls.append(1), 1)
        timers.cancel_timer(handle)
        await asyncio.sleep(0.02)

        assert calls == []

    @pytest.mark.asyncio
    async def test_negative_delay_fires_immediately(self):
        timers = LoopTimers()
        calls = []

        timers.set_timer(lambda: calls.append(1), -50)
        await asyncio.sleep(0.01)

        assert calls == [1]

    def test_cancel_none_is_noop(self):
        LoopTimers().cancel_timer(None)

    @pytest.mark.asyncio
    async def test_explicit_loop(self):
        """An explicitly given loop is used instead of the running loop."""
        loop = asyncio.get_running_loop()
        timers = LoopTimers(loop)

        handle = timers.set_timer(lambda: None, 1000)
        assert isinstance(handle, asyncio.TimerHandle)
        timers.cancel_timer(handle)
