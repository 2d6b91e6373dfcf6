"""
Exception types for jsonrpc-ws.

Provides typed exceptions for:
- Configuration errors (invalid close codes, non-callable callbacks)
- Lifecycle errors (starting twice, sending without a connection)
- Transport and protocol errors
- Remote call errors
"""

from __future__ import annotations

from typing import Any, Optional


class JsonRpcWsError(Exception):
    """Base exception for all jsonrpc-ws errors."""
    pass


# =============================================================================
# Configuration & Lifecycle Errors
# =============================================================================


class ConfigError(JsonRpcWsError, ValueError):
    """
    Raised when a configuration value is rejected.

    This includes:
    - Close codes other than 1000 or 3000-4999
    - Callback options that are not callable
    - Numeric options that can not be cast to a number
    - Unknown option names
    """
    pass


class IllegalStateError(JsonRpcWsError, RuntimeError):
    """
    Raised when an operation is not valid in the current lifecycle state.

    Example:
        client.start()
        client.start()  # IllegalStateError: start(): Already started
    """
    pass


# =============================================================================
# Transport & Protocol Errors
# =============================================================================


class TransportError(JsonRpcWsError):
    """
    Raised (or reported) when the underlying transport fails.

    Transport errors are observability only: the session ends when the
    transport reports that it closed, not when it reports an error.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class ProtocolError(JsonRpcWsError):
    """
    Raised when the peer sent a frame that could not be parsed.

    Protocol errors are reported through ``ProtocolErrorEvent`` and never
    close the connection.
    """

    def __init__(self, message: str, frame: Any = None):
        self.frame = frame
        super().__init__(message)


# =============================================================================
# Remote Call Errors
# =============================================================================


class RpcError(JsonRpcWsError):
    """
    Raised when a remote method call resolved with a JSON-RPC error object.

    Example:
        try:
            await client.call("subtract", 10, 3)
        except RpcError as e:
            logger.warning(f"Remote call failed: {e.code} {e.message}")
    """

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        remote_stack: Optional[str] = None,
    ):
        self.code = code
        self.message = message
        self.data = data
        self.remote_stack = remote_stack
        super().__init__(f"{message} (code={code})")

    def __repr__(self) -> str:
        return f"RpcError(code={self.code!r}, message={self.message!r})"


class CallTimeoutError(JsonRpcWsError, TimeoutError):
    """Raised when a remote method call did not resolve within its timeout."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(
            f"Remote method call {method!r} timed out after {timeout}ms"
        )
