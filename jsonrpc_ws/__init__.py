"""
jsonrpc-ws: JSON-RPC 2.0 over a self-healing WebSocket connection.

This package provides:
- WebSocketClient, which keeps a connection open: connect timeouts,
  liveness pings, and reconnects with increasing backoff
- Queuing of calls made while the connection is down
- Typed lifecycle events (connecting, open, close, ping outcomes, errors)
- A pluggable transport factory and timer facade for testing

Installation:
    pip install jsonrpc-ws

Quickstart:
    from jsonrpc_ws import WebSocketClient, EventKind, CloseCode

    client = WebSocketClient(url="wss://example.com/rpc")
    client.method("ping_back", lambda text: text)

    @client.on(EventKind.CLOSE)
    def on_close(event):
        if event.code == CloseCode.POLICY_VIOLATION:
            client.stop()  # stop reconnecting

    client.start()
    print(await client.call("subtract", 10, 3))
"""

from jsonrpc_ws.types import (
    CloseCode,
    ConnectionState,
    EventKind,
    ReadyState,
)
from jsonrpc_ws.errors import (
    JsonRpcWsError,
    ConfigError,
    IllegalStateError,
    TransportError,
    ProtocolError,
    RpcError,
    CallTimeoutError,
)
from jsonrpc_ws.config import ClientConfig
from jsonrpc_ws.events import (
    ClientEvent,
    CloseEvent,
    ConnectingEvent,
    ErrorEvent,
    OpenEvent,
    ProbeFailureEvent,
    ProbeSuccessEvent,
    ProtocolErrorEvent,
    TransportErrorEvent,
)
from jsonrpc_ws.rpc import JsonRpcEngine
from jsonrpc_ws.client import WebSocketClient
from jsonrpc_ws._core.backoff import default_reconnect_delay
from jsonrpc_ws._core.transport import WebSocketTransport
from jsonrpc_ws._core.version import CLIENT_VERSION

__version__ = CLIENT_VERSION

__all__ = [
    # Version
    "__version__",
    # Types
    "CloseCode",
    "ConnectionState",
    "EventKind",
    "ReadyState",
    # Errors
    "JsonRpcWsError",
    "ConfigError",
    "IllegalStateError",
    "TransportError",
    "ProtocolError",
    "RpcError",
    "CallTimeoutError",
    # Configuration
    "ClientConfig",
    "default_reconnect_delay",
    # Events
    "ClientEvent",
    "CloseEvent",
    "ConnectingEvent",
    "ErrorEvent",
    "OpenEvent",
    "ProbeFailureEvent",
    "ProbeSuccessEvent",
    "ProtocolErrorEvent",
    "TransportErrorEvent",
    # Client
    "WebSocketClient",
    "JsonRpcEngine",
    "WebSocketTransport",
]
