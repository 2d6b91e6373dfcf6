"""
Tests for jsonrpc_ws.types module.
"""

from jsonrpc_ws.types import CloseCode, ConnectionState, EventKind, ReadyState


class TestCloseCode:
    """Tests for CloseCode enum."""

    def test_values(self):
        assert CloseCode.NORMAL == 1000
        assert CloseCode.GOING_AWAY == 1001
        assert CloseCode.ABNORMAL_CLOSURE == 1006
        assert CloseCode.POLICY_VIOLATION == 1008
        assert CloseCode.INTERNAL_ERROR == 1011

    def test_compares_with_int(self):
        """Incoming close codes are plain ints and compare by value."""
        assert 1008 == CloseCode.POLICY_VIOLATION
        assert CloseCode(1013) is CloseCode.TRY_AGAIN_LATER


class TestReadyState:
    """Tests for ReadyState enum."""

    def test_numbering(self):
        """Numbered like the browser WebSocket API."""
        assert [s.value for s in ReadyState] == [0, 1, 2, 3]
        assert ReadyState.OPEN.name == "OPEN"


class TestConnectionState:
    """Tests for ConnectionState enum."""

    def test_values(self):
        assert ConnectionState.IDLE.value == "idle"
        assert ConnectionState.CONNECTING.value == "connecting"
        assert ConnectionState.OPEN.value == "open"
        assert ConnectionState.RECONNECTING.value == "reconnecting"

    def test_is_str(self):
        assert ConnectionState.OPEN == "open"


class TestEventKind:
    """Tests for EventKind enum."""

    def test_all_kinds(self):
        assert {k.value for k in EventKind} == {
            "connecting",
            "open",
            "transport_error",
            "close",
            "probe_success",
            "probe_failure",
            "error",
            "protocol_error",
        }

    def test_lookup_by_value(self):
        assert EventKind("close") is EventKind.CLOSE
