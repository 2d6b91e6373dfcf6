"""
Client configuration for jsonrpc-ws.

Usage:
    from jsonrpc_ws import ClientConfig, WebSocketClient

    config = ClientConfig(url="wss://example.com/rpc", connect_timeout=5000)
    client = WebSocketClient(config)

    # Or from the environment (JSONRPC_WS_URL, JSONRPC_WS_CONNECT_TIMEOUT, ...)
    client = WebSocketClient(ClientConfig.from_env())
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Mapping, Optional

from jsonrpc_ws._core.backoff import (
    DEFAULT_RECONNECT_COUNTER_MAX,
    default_reconnect_delay,
)
from jsonrpc_ws._core.transport import default_create_connection
from jsonrpc_ws.errors import ConfigError
from jsonrpc_ws.types import CloseCode

logger = logging.getLogger(__name__)

ENV_PREFIX = "JSONRPC_WS_"

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"0", "false", "no", "off", ""})


# =============================================================================
# Validators
# =============================================================================


def validate_close_code(value: Any, label: str) -> int:
    """
    Validate an outgoing close code.

    The browser WebSocket API only accepts 1000 or 3000-4999 for
    ``close()``. Other libraries accept more, but we restrict ourselves to
    these for compatibility with every peer.

    Args:
        value: Close code, or something that casts to one (e.g. "4100")
        label: Prefix for the error message

    Returns:
        The close code as an int

    Raises:
        ConfigError: If the value is not 1000 or an integer in 3000-4999
    """
    number = _to_number(value)
    if number is None or not number.is_integer() or not (
        number == CloseCode.NORMAL or 3000 <= number <= 4999
    ):
        raise ConfigError(
            f"{label} Invalid close code ({value!r}). "
            "It must be 1000 or in the range 3000 and 4999 inclusive"
        )
    return int(number)


def require_callable(value: Any, name: str) -> Callable[..., Any]:
    """Raise ConfigError unless ``value`` is callable."""
    if not callable(value):
        raise ConfigError(f"{name} must be a function, got {type(value).__name__}")
    return value


def to_milliseconds(value: Any, name: str) -> float:
    """Cast a duration option to a non-negative number of milliseconds."""
    number = _to_number(value)
    if number is None or number < 0:
        raise ConfigError(f"{name} must be a non-negative number, got {value!r}")
    return int(number) if number.is_integer() else number


def to_count(value: Any, name: str) -> int:
    """Cast a counter option to a non-negative int."""
    number = _to_number(value)
    if number is None or number < 0 or not number.is_integer():
        raise ConfigError(f"{name} must be a non-negative integer, got {value!r}")
    return int(number)


def to_bool(value: Any) -> bool:
    """Cast an option to bool; strings such as "false" and "0" are False."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return bool(value)


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class ClientConfig:
    """
    Configuration for ``WebSocketClient``.

    Durations are in milliseconds.

    Attributes:
        url: The URL to connect to
        create_connection: Called with the url whenever a new transport is
            needed; must return a transport
        reconnect: Reconnect (after a delay) whenever the connection closes
        reconnect_delay: Called with the reconnect counter, returns the
            delay before the next connection attempt
        reconnect_counter_max: Upper bound of the reconnect counter
        connect_timeout: Abort a connection attempt that takes longer
        consecutive_ping_fail_close: Close the connection after this many
            consecutive failed pings
        timeout_close_code: Close code sent when closing because of a timeout
        internal_error_close_code: Close code sent when closing because of
            an internal protocol engine error
        ping_interval: Time between pings, in addition to the time spent
            waiting for the previous ping to settle
        ping_timeout: Maximum time to wait for a ping to resolve
    """
    url: str = ""
    create_connection: Callable[[str], Any] = field(default=default_create_connection)
    reconnect: bool = True
    reconnect_delay: Callable[[int], float] = field(default=default_reconnect_delay)
    reconnect_counter_max: int = DEFAULT_RECONNECT_COUNTER_MAX
    connect_timeout: float = 10000
    consecutive_ping_fail_close: int = 4
    timeout_close_code: int = 4100
    internal_error_close_code: int = 4101
    ping_interval: float = 2000
    ping_timeout: float = 1000

    def __post_init__(self) -> None:
        """Validate and cast configuration on creation."""
        self.validate()

    def validate(self) -> None:
        """Validate configuration values, casting primitives in place."""
        self.url = str(self.url)
        require_callable(self.create_connection, "create_connection")
        self.reconnect = to_bool(self.reconnect)
        require_callable(self.reconnect_delay, "reconnect_delay")
        self.reconnect_counter_max = to_count(
            self.reconnect_counter_max, "reconnect_counter_max"
        )
        self.connect_timeout = to_milliseconds(self.connect_timeout, "connect_timeout")
        self.consecutive_ping_fail_close = to_count(
            self.consecutive_ping_fail_close, "consecutive_ping_fail_close"
        )
        self.timeout_close_code = validate_close_code(
            self.timeout_close_code, "Invalid value for timeout_close_code:"
        )
        self.internal_error_close_code = validate_close_code(
            self.internal_error_close_code, "Invalid value for internal_error_close_code:"
        )
        self.ping_interval = to_milliseconds(self.ping_interval, "ping_interval")
        self.ping_timeout = to_milliseconds(self.ping_timeout, "ping_timeout")

    @classmethod
    def field_names(cls) -> frozenset:
        return frozenset(f.name for f in fields(cls))

    @classmethod
    def from_env(
        cls,
        prefix: str = ENV_PREFIX,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "ClientConfig":
        """
        Build a configuration from environment variables.

        Environment Variables (with the default prefix):
            JSONRPC_WS_URL
            JSONRPC_WS_RECONNECT
            JSONRPC_WS_RECONNECT_COUNTER_MAX
            JSONRPC_WS_CONNECT_TIMEOUT
            JSONRPC_WS_CONSECUTIVE_PING_FAIL_CLOSE
            JSONRPC_WS_TIMEOUT_CLOSE_CODE
            JSONRPC_WS_INTERNAL_ERROR_CLOSE_CODE
            JSONRPC_WS_PING_INTERVAL
            JSONRPC_WS_PING_TIMEOUT

        Callback options can not come from the environment; pass them as
        keyword overrides.

        Args:
            prefix: Environment variable prefix
            environ: Mapping to read instead of ``os.environ``
            **overrides: Values that take precedence over the environment

        Returns:
            Validated ClientConfig

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        environ = os.environ if environ is None else environ
        values: dict = {}
        for name in cls.field_names():
            if name in ("create_connection", "reconnect_delay"):
                continue
            env_name = f"{prefix}{name.upper()}"
            if env_name in environ:
                logger.debug(f"Reading {name} from {env_name}")
                values[name] = environ[env_name]
        values.update(overrides)
        return cls(**values)
