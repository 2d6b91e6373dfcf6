"""
Type definitions for jsonrpc-ws.

Defines enums used across the package for:
- Outgoing and incoming close codes
- Transport ready states
- Supervisor connection states
- Lifecycle event kinds
"""

from __future__ import annotations

from enum import Enum, IntEnum


class CloseCode(IntEnum):
    """
    Well known close codes (RFC 6455 §7.4.1).

    Only ``NORMAL`` and codes in the range 3000-4999 may be sent by this
    library; the others are listed so that incoming close codes can be
    compared by name. 4000-4999 is reserved for private use.
    """
    NORMAL = 1000
    GOING_AWAY = 1001
    PROTOCOL_ERROR = 1002
    UNSUPPORTED_DATA = 1003
    # 1004 is reserved
    # 1005 and 1006 are internal status codes, never sent over the wire
    NO_STATUS = 1005
    ABNORMAL_CLOSURE = 1006
    INVALID_PAYLOAD_DATA = 1007
    POLICY_VIOLATION = 1008
    MESSAGE_TOO_BIG = 1009
    MANDATORY_EXTENSION = 1010
    INTERNAL_ERROR = 1011
    SERVICE_RESTART = 1012
    TRY_AGAIN_LATER = 1013


class ReadyState(IntEnum):
    """Transport ready state, numbered like the browser WebSocket API."""
    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


class ConnectionState(str, Enum):
    """
    Connection supervisor state.

    - IDLE: Not started, or stopped
    - CONNECTING: A transport was requested but is not open yet
    - OPEN: The transport is open and liveness probing is active
    - RECONNECTING: The previous session closed and a reconnect is scheduled
    """
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"


class EventKind(str, Enum):
    """Lifecycle event kinds emitted by ``WebSocketClient``."""
    CONNECTING = "connecting"
    OPEN = "open"
    TRANSPORT_ERROR = "transport_error"
    CLOSE = "close"
    PROBE_SUCCESS = "probe_success"
    PROBE_FAILURE = "probe_failure"
    ERROR = "error"
    PROTOCOL_ERROR = "protocol_error"
