"""
Tests for jsonrpc_ws.errors module.
"""

import pytest

from jsonrpc_ws.errors import (
    CallTimeoutError,
    ConfigError,
    IllegalStateError,
    JsonRpcWsError,
    ProtocolError,
    RpcError,
    TransportError,
)


class TestErrorHierarchy:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize("error_class", [
        ConfigError,
        IllegalStateError,
        TransportError,
        ProtocolError,
        CallTimeoutError,
    ])
    def test_errors_share_base(self, error_class):
        """Every library error derives from JsonRpcWsError."""
        assert issubclass(error_class, JsonRpcWsError)
        assert issubclass(RpcError, JsonRpcWsError)

    def test_config_error_is_value_error(self):
        """ConfigError can be caught as ValueError."""
        with pytest.raises(ValueError):
            raise ConfigError("bad option")

    def test_illegal_state_error_is_runtime_error(self):
        """IllegalStateError can be caught as RuntimeError."""
        with pytest.raises(RuntimeError, match="Already started"):
            raise IllegalStateError("start(): Already started")

    def test_call_timeout_error_is_timeout_error(self):
        """CallTimeoutError can be caught as the builtin TimeoutError."""
        with pytest.raises(TimeoutError):
            raise CallTimeoutError("slow", 50)


class TestErrorAttributes:
    """Tests for the attributes carried by errors."""

    def test_transport_error_cause(self):
        """TransportError keeps the underlying exception."""
        cause = OSError("connection refused")
        error = TransportError("Failed to connect", cause)

        assert error.cause is cause
        assert str(error) == "Failed to connect"

    def test_protocol_error_frame(self):
        """ProtocolError keeps the offending frame."""
        error = ProtocolError("Unable to parse frame", "{not json")
        assert error.frame == "{not json"

    def test_rpc_error_fields(self):
        """RpcError exposes the JSON-RPC error object members."""
        error = RpcError(-32601, "Method not found", data={"x": 1}, remote_stack="trace")

        assert error.code == -32601
        assert error.message == "Method not found"
        assert error.data == {"x": 1}
        assert error.remote_stack == "trace"
        assert "code=-32601" in str(error)
        assert repr(error) == "RpcError(code=-32601, message='Method not found')"

    def test_call_timeout_error_message(self):
        """CallTimeoutError names the method and the timeout."""
        error = CallTimeoutError("subtract", 250)

        assert error.method == "subtract"
        assert error.timeout == 250
        assert "'subtract'" in str(error)
        assert "250ms" in str(error)
