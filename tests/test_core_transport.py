"""
Tests for jsonrpc_ws._core.transport module.

``websockets.connect`` is replaced by a fake connection; see
test_integration.py for tests against a real server.
"""

import asyncio
import logging

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from jsonrpc_ws._core.transport import WebSocketTransport, default_create_connection
from jsonrpc_ws.errors import IllegalStateError, TransportError
from jsonrpc_ws.types import ReadyState


class FakeConnection:
    """Stands in for a websockets client connection."""

    def __init__(self):
        self.incoming = asyncio.Queue()
        self.sent = []
        self.close_code = None
        self.close_reason = None
        self.closed_with = None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        while True:
            message = await self.incoming.get()
            if message is None:
                return
            yield message

    async def send(self, frame):
        self.sent.append(frame)

    async def close(self, code=1000, reason=""):
        self.closed_with = (code, reason)
        self.remote_close(code, reason)

    def remote_close(self, code, reason):
        self.close_code = code
        self.close_reason = reason
        self.incoming.put_nowait(None)


@pytest.fixture
async def connection(settle):
    conn = FakeConnection()
    with patch(
        "jsonrpc_ws._core.transport.websockets.connect",
        new=AsyncMock(return_value=conn),
    ) as connect:
        conn.connect = connect
        yield conn
        # let transports created by the test finish
        conn.incoming.put_nowait(None)
        await settle()


def record(transport):
    events = MagicMock()
    for name in ("open", "error", "close", "message"):
        transport.add_listener(name, getattr(events, name))
    return events


class TestWebSocketTransportOpen:
    """Tests for connecting and exchanging frames."""

    @pytest.mark.asyncio
    async def test_connects_and_opens(self, connection, settle):
        transport = WebSocketTransport("ws://test.local/rpc")
        events = record(transport)
        assert transport.ready_state == ReadyState.CONNECTING

        await settle()

        connection.connect.assert_awaited_once_with(
            "ws://test.local/rpc", ping_interval=None, open_timeout=None
        )
        assert transport.ready_state == ReadyState.OPEN
        events.open.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_connect_kwargs_override_defaults(self, connection, settle):
        WebSocketTransport("ws://a", ping_interval=20, max_size=2 ** 20)
        await settle()

        connection.connect.assert_awaited_once_with(
            "ws://a", ping_interval=20, max_size=2 ** 20, open_timeout=None
        )

    @pytest.mark.asyncio
    async def test_receives_messages(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()

        connection.incoming.put_nowait('{"jsonrpc":"2.0"}')
        connection.incoming.put_nowait(b"binary")
        await settle()

        assert [c.args for c in events.message.call_args_list] == [('{"jsonrpc":"2.0"}',), (b"binary",)]

    @pytest.mark.asyncio
    async def test_send_in_order(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        await settle()

        transport.send("one")
        transport.send("two")
        await settle()

        assert connection.sent == ["one", "two"]

    @pytest.mark.asyncio
    async def test_send_before_open(self, connection):
        transport = WebSocketTransport("ws://a")

        with pytest.raises(IllegalStateError, match="not open"):
            transport.send("too early")

    @pytest.mark.asyncio
    async def test_unknown_event(self, connection):
        transport = WebSocketTransport("ws://a")
        with pytest.raises(ValueError, match="Unknown transport event"):
            transport.add_listener("closed", print)

    @pytest.mark.asyncio
    async def test_default_create_connection(self, connection, settle):
        transport = default_create_connection("ws://a")
        assert isinstance(transport, WebSocketTransport)
        assert transport.url == "ws://a"
        await settle()


class TestWebSocketTransportClose:
    """Tests for closing."""

    @pytest.mark.asyncio
    async def test_remote_close(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()

        connection.remote_close(4000, "bye")
        await settle()

        events.close.assert_called_once_with(4000, "bye")
        assert transport.ready_state == ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_abnormal_close_without_code(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()

        connection.remote_close(None, None)
        await settle()

        events.close.assert_called_once_with(1006, "")

    @pytest.mark.asyncio
    async def test_local_close(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()

        transport.close(4100, "Timeout")
        assert transport.ready_state == ReadyState.CLOSING
        await settle()

        assert connection.closed_with == (4100, "Timeout")
        events.close.assert_called_once_with(4100, "Timeout")
        assert transport.ready_state == ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_failed_closing_handshake_is_reported(self, connection, settle, caplog):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()
        reset = ConnectionResetError("reset by peer")
        connection.close = AsyncMock(side_effect=reset)

        with caplog.at_level(logging.WARNING, logger="jsonrpc_ws._core.transport"):
            transport.close(4000, "bye")
            await settle()

        assert "Closing handshake with ws://a failed" in caplog.text
        error = events.error.call_args.args[0]
        assert isinstance(error, TransportError)
        assert error.cause is reset

    @pytest.mark.asyncio
    async def test_close_twice(self, connection, settle):
        transport = WebSocketTransport("ws://a")
        events = record(transport)
        await settle()

        transport.close(4000, "first")
        transport.close(4001, "second")
        await settle()

        events.close.assert_called_once_with(4000, "first")

    @pytest.mark.asyncio
    async def test_close_while_connecting(self, settle):
        async def hang(*args, **kwargs):
            await asyncio.Event().wait()

        with patch("jsonrpc_ws._core.transport.websockets.connect", new=hang):
            transport = WebSocketTransport("ws://a")
            events = record(transport)
            await settle()

            transport.close(4100, "Timeout: Opening the connection took longer than 10ms")
            await settle()

        events.close.assert_called_once_with(4100, "Timeout: Opening the connection took longer than 10ms")
        events.open.assert_not_called()
        assert transport.ready_state == ReadyState.CLOSED

    @pytest.mark.asyncio
    async def test_connect_failure(self, settle):
        refused = ConnectionRefusedError("connection refused")
        with patch(
            "jsonrpc_ws._core.transport.websockets.connect",
            new=AsyncMock(side_effect=refused),
        ):
            transport = WebSocketTransport("ws://a")
            events = record(transport)
            await settle()

        error = events.error.call_args.args[0]
        assert isinstance(error, TransportError)
        assert error.cause is refused
        events.close.assert_called_once_with(1006, "connection refused")
        events.open.assert_not_called()
        assert transport.ready_state == ReadyState.CLOSED
