"""
JSON-RPC client over a self-healing WebSocket connection.

If the connection closes or stops answering pings, a new connection is made
after a delay. The delay slowly increases while connections keep failing and
decreases again while the connection is healthy. Calls made while there is
no connection are queued and sent once the next connection opens.

Usage:
    client = WebSocketClient(url="wss://example.com/rpc")
    client.on(EventKind.CLOSE, lambda event: print("closed", event.code))
    client.start()

    result = await client.call("subtract", 10, 3)

    # Or as an async context manager
    async with WebSocketClient(url="wss://example.com/rpc") as client:
        await client.notify("hello")
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any, Callable, Optional

from jsonrpc_ws._core.lifecycle import NORMAL_CLOSURE_REASON, ConnectionSupervisor
from jsonrpc_ws._core.timers import LoopTimers, Timers
from jsonrpc_ws.config import (
    ClientConfig,
    require_callable,
    to_bool,
    to_count,
    to_milliseconds,
    validate_close_code,
)
from jsonrpc_ws.errors import ConfigError
from jsonrpc_ws.events import EventEmitter, Listener
from jsonrpc_ws.rpc import DEFAULT_PING_METHOD, JsonRpcEngine
from jsonrpc_ws.types import CloseCode, ConnectionState, EventKind

logger = logging.getLogger(__name__)

_ENGINE_OPTIONS = frozenset({
    "receive_error_stack",
    "send_error_stack",
    "default_timeout",
    "ping_method",
    "ping_receive",
    "first_request_id",
})


class WebSocketClient:
    """
    JSON-RPC 2.0 client with automatic reconnects.

    Options are documented at the property with the same name. They can be
    given as a ``ClientConfig``, as keyword arguments, or both (keyword
    arguments win). Protocol engine options (``receive_error_stack``,
    ``send_error_stack``, ``default_timeout``, ``ping_method``,
    ``ping_receive``, ``first_request_id``) are keyword arguments only.

    Args:
        config: Base configuration
        timers: Timer facade; defaults to the running asyncio loop
        **options: Configuration overrides

    Raises:
        ConfigError: If an option is unknown or invalid
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        timers: Optional[Timers] = None,
        **options: Any,
    ) -> None:
        engine_options = {k: options.pop(k) for k in list(options) if k in _ENGINE_OPTIONS}
        unknown = set(options) - ClientConfig.field_names()
        if unknown:
            raise ConfigError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        if config is None:
            config = ClientConfig(**options)
        else:
            config = dataclasses.replace(config, **options)

        self._config = config
        self._events = EventEmitter()
        self._timers = timers or LoopTimers()
        self.rpc = JsonRpcEngine(
            receive_error_stack=to_bool(engine_options.get("receive_error_stack", False)),
            send_error_stack=to_bool(engine_options.get("send_error_stack", False)),
            default_timeout=to_milliseconds(
                engine_options.get("default_timeout", 0), "default_timeout"
            ),
            ping_method=str(engine_options.get("ping_method", DEFAULT_PING_METHOD)),
            ping_receive=to_bool(engine_options.get("ping_receive", True)),
            first_request_id=to_count(
                engine_options.get("first_request_id", 0), "first_request_id"
            ),
        )
        self._supervisor = ConnectionSupervisor(config, self.rpc, self._events, self._timers)

    def __repr__(self) -> str:
        return f"WebSocketClient(url={self.url!r}, state={self.state.value})"

    # =========================================================================
    # Configuration
    # =========================================================================

    @property
    def config(self) -> ClientConfig:
        """
        Copy of the current configuration.

        Changes to the copy do not affect the client; set options through
        the properties below, which validate them.
        """
        return dataclasses.replace(self._config)

    @property
    def url(self) -> str:
        """The URL to connect to."""
        return self._config.url

    @url.setter
    def url(self, value: Any) -> None:
        self._config.url = str(value)

    @property
    def create_connection(self) -> Callable[[str], Any]:
        """
        Called with ``url`` whenever a new connection is needed.

        Must return a transport (see ``jsonrpc_ws._core.transport.Transport``).
        Defaults to a ``websockets`` based transport.
        """
        return self._config.create_connection

    @create_connection.setter
    def create_connection(self, value: Callable[[str], Any]) -> None:
        self._config.create_connection = require_callable(value, "create_connection")

    @property
    def reconnect(self) -> bool:
        """Reconnect (after a delay) whenever the connection closes for any reason."""
        return self._config.reconnect

    @reconnect.setter
    def reconnect(self, value: Any) -> None:
        self._config.reconnect = to_bool(value)

    @property
    def reconnect_delay(self) -> Callable[[int], float]:
        """
        Returns the delay (ms) before the next connection attempt.

        Called with the reconnect counter, which is always between 0 and
        ``reconnect_counter_max`` inclusive. The counter increases by one
        whenever a connection closes and decreases by one whenever a ping
        succeeds.
        """
        return self._config.reconnect_delay

    @reconnect_delay.setter
    def reconnect_delay(self, value: Callable[[int], float]) -> None:
        self._config.reconnect_delay = require_callable(value, "reconnect_delay")

    @property
    def reconnect_counter_max(self) -> int:
        """
        Upper bound of the reconnect counter.

        With the default ``reconnect_delay`` and a maximum of 8, the longest
        delay is between 12800 and 25600 ms.
        """
        return self._config.reconnect_counter_max

    @reconnect_counter_max.setter
    def reconnect_counter_max(self, value: Any) -> None:
        self._config.reconnect_counter_max = to_count(value, "reconnect_counter_max")

    @property
    def connect_timeout(self) -> float:
        """Abort a connection attempt that takes longer than this (ms)."""
        return self._config.connect_timeout

    @connect_timeout.setter
    def connect_timeout(self, value: Any) -> None:
        self._config.connect_timeout = to_milliseconds(value, "connect_timeout")

    @property
    def consecutive_ping_fail_close(self) -> int:
        """Close the connection once this many pings failed in a row."""
        return self._config.consecutive_ping_fail_close

    @consecutive_ping_fail_close.setter
    def consecutive_ping_fail_close(self, value: Any) -> None:
        self._config.consecutive_ping_fail_close = to_count(value, "consecutive_ping_fail_close")

    @property
    def timeout_close_code(self) -> int:
        """Close code sent when closing because of a timeout."""
        return self._config.timeout_close_code

    @timeout_close_code.setter
    def timeout_close_code(self, value: Any) -> None:
        self._config.timeout_close_code = validate_close_code(
            value, "Invalid value for timeout_close_code:"
        )

    @property
    def internal_error_close_code(self) -> int:
        """Close code sent when closing because the protocol engine failed."""
        return self._config.internal_error_close_code

    @internal_error_close_code.setter
    def internal_error_close_code(self, value: Any) -> None:
        self._config.internal_error_close_code = validate_close_code(
            value, "Invalid value for internal_error_close_code:"
        )

    @property
    def ping_interval(self) -> float:
        """Time (ms) between pings, after the previous ping settled."""
        return self._config.ping_interval

    @ping_interval.setter
    def ping_interval(self, value: Any) -> None:
        self._config.ping_interval = to_milliseconds(value, "ping_interval")

    @property
    def ping_timeout(self) -> float:
        """Maximum time (ms) to wait for a ping to resolve."""
        return self._config.ping_timeout

    @ping_timeout.setter
    def ping_timeout(self, value: Any) -> None:
        self._config.ping_timeout = to_milliseconds(value, "ping_timeout")

    @property
    def receive_error_stack(self) -> bool:
        """Read the peer's stack trace from ``error.data.stack`` into ``RpcError.remote_stack``."""
        return self.rpc.receive_error_stack

    @receive_error_stack.setter
    def receive_error_stack(self, value: Any) -> None:
        self.rpc.receive_error_stack = to_bool(value)

    @property
    def send_error_stack(self) -> bool:
        """Send the stack trace of exceptions raised by our methods to the peer."""
        return self.rpc.send_error_stack

    @send_error_stack.setter
    def send_error_stack(self, value: Any) -> None:
        self.rpc.send_error_stack = to_bool(value)

    @property
    def default_timeout(self) -> float:
        """Timeout (ms) for calls that do not specify one; 0 waits forever."""
        return self.rpc.default_timeout

    @default_timeout.setter
    def default_timeout(self, value: Any) -> None:
        self.rpc.default_timeout = to_milliseconds(value, "default_timeout")

    # =========================================================================
    # State
    # =========================================================================

    @property
    def started(self) -> bool:
        """True while connecting, connected or waiting to reconnect."""
        return self._supervisor.started

    @property
    def has_active_connection(self) -> bool:
        """
        True if there is an open connection.

        Calls are then sent immediately and the peer may call our methods;
        otherwise calls are queued until the next connection opens.
        """
        return self._supervisor.has_active_connection

    @property
    def reconnect_counter(self) -> int:
        return self._supervisor.reconnect_counter

    @property
    def state(self) -> ConnectionState:
        return self._supervisor.state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Connect, and reconnect automatically after a network error or timeout.

        Raises:
            IllegalStateError: If already started
        """
        self._supervisor.start()

    def stop(self, code: int = CloseCode.NORMAL, reason: str = NORMAL_CLOSURE_REASON) -> None:
        """
        Close the active connection and stop reconnecting.

        Args:
            code: 1000 or in the range 3000 to 4999 inclusive
            reason: At most 123 bytes (utf-8)
        """
        self._supervisor.stop(code, reason)

    def close_connection(self, code: int, reason: str) -> bool:
        """
        Close the active connection, and reconnect if enabled.

        Args:
            code: 1000 or in the range 3000 to 4999 inclusive
            reason: At most 123 bytes (utf-8)

        Returns:
            True if there was a connection to close
        """
        return self._supervisor.close_connection(code, reason)

    async def __aenter__(self) -> "WebSocketClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, kind: EventKind, listener: Optional[Listener] = None) -> Any:
        """Register a listener for one event kind; usable as a decorator."""
        return self._events.on(kind, listener)

    def off(self, kind: EventKind, listener: Listener) -> None:
        self._events.off(kind, listener)

    def add_listener(self, listener: Listener) -> Listener:
        """Register a listener for every event."""
        return self._events.add_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._events.remove_listener(listener)

    # =========================================================================
    # Remote procedure calls
    # =========================================================================

    def method(self, name: str, func: Callable[..., Any]) -> None:
        """Register a method the peer may call; later registrations override."""
        self.rpc.method(name, func)

    def methods(self, object_or_mapping: Any) -> None:
        """Register every callable of a mapping, or public callable of an object."""
        self.rpc.methods(object_or_mapping)

    def notification(self, name: str, func: Callable[..., Any]) -> None:
        """
        Register a notification handler.

        The return value (or exception) of a notification handler is
        ignored. Every handler registered for a name is called, in
        registration order.
        """
        self.rpc.notification(name, func)

    def notifications(self, object_or_mapping: Any) -> None:
        self.rpc.notifications(object_or_mapping)

    async def call(self, name: str, *args: Any, timeout: Optional[float] = None) -> Any:
        """
        Call a method on the peer.

        If there is no active connection, the call is queued until there is.

        Args:
            name: Method name
            *args: Positional params
            timeout: Milliseconds to wait for a response (default
                ``default_timeout``)

        Returns:
            The value returned by the remote method
        """
        return await self.rpc.call(name, *args, timeout=timeout)

    def bind_call(self, name: str, timeout: Optional[float] = None) -> Callable[..., Any]:
        """
        Return a coroutine function calling ``name``.

        Example:
            subtract = client.bind_call("subtract")
            await subtract(10, 3)  # 7
        """
        return self.rpc.bind_call(name, timeout=timeout)

    async def notify(self, name: str, *args: Any) -> None:
        """Send a notification; resolves once it has been queued."""
        await self.rpc.notify(name, *args)

    def bind_notify(self, name: str) -> Callable[..., Any]:
        return self.rpc.bind_notify(name)
