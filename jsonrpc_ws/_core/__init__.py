"""
Connection core for jsonrpc-ws.

This module handles:
- Connection lifecycle: connect timeout, close handling, reconnects
  (jsonrpc_ws._core.lifecycle)
- Liveness probing of open connections (jsonrpc_ws._core.health)
- Reconnect backoff policy
- Timer and transport abstractions
"""

from jsonrpc_ws._core.version import CLIENT_VERSION, JSONRPC_VERSION
from jsonrpc_ws._core.timers import LoopTimers, Timers
from jsonrpc_ws._core.backoff import (
    DEFAULT_RECONNECT_COUNTER_MAX,
    decay_reconnect_counter,
    default_reconnect_delay,
    next_reconnect_counter,
)
from jsonrpc_ws._core.transport import (
    Transport,
    WebSocketTransport,
    default_create_connection,
)

__all__ = [
    # Version
    "CLIENT_VERSION",
    "JSONRPC_VERSION",
    # Timers
    "Timers",
    "LoopTimers",
    # Backoff
    "DEFAULT_RECONNECT_COUNTER_MAX",
    "default_reconnect_delay",
    "next_reconnect_counter",
    "decay_reconnect_counter",
    # Transport
    "Transport",
    "WebSocketTransport",
    "default_create_connection",
]
