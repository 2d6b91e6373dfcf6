"""
Pytest configuration for jsonrpc-ws tests.
"""

import asyncio
import itertools
import json

import pytest
from unittest.mock import MagicMock

from jsonrpc_ws.types import ReadyState

# Note: With pytest-asyncio in auto mode, no event_loop fixture needed


class FakeTimers:
    """Timer facade that only fires when a test tells it to."""

    def __init__(self):
        self._ids = itertools.count(1)
        self.timers = {}
        self.cancelled = set()
        self.created = []

    def set_timer(self, callback, delay):
        handle = next(self._ids)
        self.timers[handle] = (callback, delay)
        self.created.append((handle, delay))
        return handle

    def cancel_timer(self, handle):
        self.cancelled.add(handle)
        self.timers.pop(handle, None)

    def pending(self):
        return dict(self.timers)

    def delays(self):
        return [delay for _, delay in self.timers.values()]

    def fire(self, handle):
        callback, _ = self.timers.pop(handle)
        callback()

    def fire_all(self):
        for handle in list(self.timers):
            if handle in self.timers:
                self.fire(handle)


class FakeTransport:
    """Transport double; tests drive its events by hand."""

    def __init__(self, url):
        self.url = url
        self.ready_state = ReadyState.CONNECTING
        self.listeners = {"open": [], "error": [], "close": [], "message": []}
        self.sent = []
        self.close_calls = []

    def add_listener(self, event, callback):
        self.listeners[event].append(callback)

    def send(self, frame):
        self.sent.append(frame)

    def close(self, code, reason):
        self.close_calls.append((code, reason))
        self.ready_state = ReadyState.CLOSING

    # test helpers

    def _fire(self, event, *args):
        for callback in list(self.listeners[event]):
            callback(*args)

    def open(self):
        self.ready_state = ReadyState.OPEN
        self._fire("open")

    def error(self, exc):
        self._fire("error", exc)

    def remote_close(self, code=1006, reason=""):
        self.ready_state = ReadyState.CLOSED
        self._fire("close", code, reason)

    def message(self, data):
        self._fire("message", data)

    def sent_messages(self):
        return [json.loads(frame) for frame in self.sent]


@pytest.fixture
def fake_timers():
    return FakeTimers()


@pytest.fixture
def transport_factory():
    """MagicMock factory recording every FakeTransport it creates."""
    transports = []

    def create(url):
        transport = FakeTransport(url)
        transports.append(transport)
        return transport

    factory = MagicMock(side_effect=create)
    factory.transports = transports
    return factory


@pytest.fixture
def settle():
    """Coroutine function that lets pending callbacks and tasks run."""
    async def _settle(rounds=10):
        for _ in range(rounds):
            await asyncio.sleep(0)
    return _settle
