"""
Transport interface and the default WebSocket transport.

The connection supervisor only needs four events and three operations from a
transport:

    transport.add_listener("open", callback)      # callback()
    transport.add_listener("error", callback)     # callback(error)
    transport.add_listener("close", callback)     # callback(code, reason)
    transport.add_listener("message", callback)   # callback(data: str | bytes)
    transport.send(frame)
    transport.close(code, reason)
    transport.ready_state                         # ReadyState

``WebSocketTransport`` adapts a ``websockets`` client connection to that
shape by driving it from an asyncio task.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List, Optional, Protocol, Union

import websockets
from websockets.exceptions import ConnectionClosed

from jsonrpc_ws.errors import IllegalStateError, TransportError
from jsonrpc_ws.types import CloseCode, ReadyState

logger = logging.getLogger(__name__)

TRANSPORT_EVENTS = ("open", "error", "close", "message")

Frame = Union[str, bytes]


class Transport(Protocol):
    """A single session-oriented connection to the peer."""

    ready_state: ReadyState

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        ...

    def send(self, frame: Frame) -> None:
        ...

    def close(self, code: int, reason: str) -> None:
        ...


class WebSocketTransport:
    """
    Event-style wrapper around a ``websockets`` client connection.

    The connection attempt starts as soon as the object is created, so it
    must be created while an event loop is running.

    Attributes:
        url: The URL to connect to
        ready_state: CONNECTING, OPEN, CLOSING or CLOSED
    """

    def __init__(self, url: str, **connect_kwargs: Any) -> None:
        self.url = url
        self.ready_state = ReadyState.CONNECTING
        self._listeners: DefaultDict[str, List[Callable[..., Any]]] = defaultdict(list)
        # Liveness is checked with application level pings; keep the
        # protocol level keepalive and open timeout out of the way.
        connect_kwargs.setdefault("ping_interval", None)
        connect_kwargs.setdefault("open_timeout", None)
        self._connect_kwargs = connect_kwargs
        self._ws: Any = None
        self._outbox: "asyncio.Queue[Frame]" = asyncio.Queue()
        self._close_code: int = CloseCode.ABNORMAL_CLOSURE
        self._close_reason: str = ""
        self._writer: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Future] = None
        self._task = asyncio.ensure_future(self._run())

    def add_listener(self, event: str, callback: Callable[..., Any]) -> None:
        if event not in TRANSPORT_EVENTS:
            raise ValueError(f"Unknown transport event: {event}")
        self._listeners[event].append(callback)

    def send(self, frame: Frame) -> None:
        """Queue a frame; frames are written in the order they were sent."""
        if self.ready_state != ReadyState.OPEN:
            raise IllegalStateError(
                f"send(): Transport is not open (ready_state={self.ready_state.name})"
            )
        self._outbox.put_nowait(frame)

    def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        """Start the closing handshake, or abort a pending connection attempt."""
        if self.ready_state in (ReadyState.CLOSING, ReadyState.CLOSED):
            return

        self._close_code = code
        self._close_reason = reason
        previous = self.ready_state
        self.ready_state = ReadyState.CLOSING

        if previous == ReadyState.CONNECTING:
            self._task.cancel()
        else:
            self._closing = asyncio.ensure_future(self._ws.close(code, reason))
            self._closing.add_done_callback(self._close_done)

    def _close_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning(f"Closing handshake with {self.url} failed: {error!r}")
            self._fire("error", TransportError(f"Failed to close connection to {self.url}: {error}", error))

    def _fire(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners[event]):
            callback(*args)

    async def _run(self) -> None:
        try:
            self._ws = await websockets.connect(self.url, **self._connect_kwargs)
        except asyncio.CancelledError:
            logger.debug(f"Connection attempt to {self.url} aborted")
            self._closed(self._close_code, self._close_reason)
            return
        except Exception as e:
            logger.debug(f"Connection attempt to {self.url} failed: {e}")
            self.ready_state = ReadyState.CLOSED
            self._fire("error", TransportError(f"Failed to connect to {self.url}: {e}", e))
            self._closed(CloseCode.ABNORMAL_CLOSURE, str(e))
            return

        self.ready_state = ReadyState.OPEN
        self._writer = asyncio.ensure_future(self._write_loop())
        self._fire("open")

        try:
            async for message in self._ws:
                self._fire("message", message)
        except ConnectionClosed:
            pass
        except Exception as e:
            self._fire("error", TransportError(f"Connection to {self.url} failed: {e}", e))
            await self._ws.close(CloseCode.INTERNAL_ERROR)
        finally:
            self._writer.cancel()

        code = self._ws.close_code
        reason = self._ws.close_reason or ""
        self._closed(CloseCode.ABNORMAL_CLOSURE if code is None else code, reason)

    async def _write_loop(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self._ws.send(frame)
            except ConnectionClosed:
                return
            except Exception as e:
                self._fire("error", TransportError(f"Failed to send frame: {e}", e))

    def _closed(self, code: int, reason: str) -> None:
        self.ready_state = ReadyState.CLOSED
        self._fire("close", code, reason)


def default_create_connection(url: str) -> WebSocketTransport:
    """Default transport factory: a ``WebSocketTransport`` for ``url``."""
    return WebSocketTransport(url)
