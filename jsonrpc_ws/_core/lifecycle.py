"""
Connection lifecycle management for jsonrpc-ws.

Handles:
- Transport creation and the connect timeout
- Open / close handling, exactly once per session
- Reconnect scheduling with backoff
- Liveness probing of open connections

Every transport callback and timer is bound to the session that created
it. Callbacks for a session that is no longer the active one do nothing,
so events from a superseded transport can never affect the current one.
"""

from __future__ import annotations

import functools
import itertools
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

from jsonrpc_ws._core.backoff import (
    decay_reconnect_counter,
    default_reconnect_delay,
    next_reconnect_counter,
)
from jsonrpc_ws._core.health import LivenessMonitor
from jsonrpc_ws._core.timers import Timers
from jsonrpc_ws._core.transport import Frame, Transport
from jsonrpc_ws.config import validate_close_code
from jsonrpc_ws.errors import IllegalStateError
from jsonrpc_ws.events import (
    CloseEvent,
    ConnectingEvent,
    ErrorEvent,
    EventEmitter,
    OpenEvent,
    ProbeFailureEvent,
    ProbeSuccessEvent,
    ProtocolErrorEvent,
    TransportErrorEvent,
)
from jsonrpc_ws.types import CloseCode, ConnectionState, ReadyState

if TYPE_CHECKING:
    from jsonrpc_ws.config import ClientConfig
    from jsonrpc_ws.rpc import JsonRpcEngine

logger = logging.getLogger(__name__)

NORMAL_CLOSURE_REASON = "Normal Closure"
PING_TIMEOUT_REASON = "Timeout: No responses received to ping calls"
INTERNAL_ERROR_REASON = "Internal JSON-RPC error"


@dataclass(eq=False)
class _Session:
    """One connection attempt, from transport creation until its close is handled."""
    token: int
    transport: Transport
    close_handled: bool = False
    connect_timer: Any = None


@dataclass
class _SupervisorState:
    started: bool = False
    session: Optional[_Session] = None
    reconnect_counter: int = 0
    reconnect_timer: Any = None


class ConnectionSupervisor:
    """
    Keeps a connection to the peer open.

    The protocol engine is paused whenever no connection is open, so calls
    made in the meantime are queued and flushed when the next connection
    opens.
    """

    def __init__(
        self,
        config: "ClientConfig",
        engine: "JsonRpcEngine",
        events: EventEmitter,
        timers: Timers,
    ) -> None:
        self._config = config
        self._engine = engine
        self._events = events
        self._timers = timers
        self._state = _SupervisorState()
        self._tokens = itertools.count(1)

        self._monitor = LivenessMonitor(
            probe=engine.ping,
            timers=timers,
            config=config,
            on_success=self._guarded(self._handle_probe_success),
            on_failure=self._guarded(self._handle_probe_failure),
            on_exhausted=self._guarded(self._handle_probe_exhausted),
        )

        engine.set_listeners(
            on_frame=self._send_frame,
            on_error=self._guarded(self._handle_engine_error),
            on_protocol_error=self._guarded(self._handle_protocol_error),
        )
        engine.pause()

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._state.started

    @property
    def reconnect_counter(self) -> int:
        return self._state.reconnect_counter

    @property
    def has_active_connection(self) -> bool:
        """True if calls are flushed to the peer immediately."""
        session = self._state.session
        return bool(
            self._state.started
            and session is not None
            and session.transport.ready_state == ReadyState.OPEN
            and not self._engine.is_paused()
        )

    @property
    def state(self) -> ConnectionState:
        if not self._state.started:
            return ConnectionState.IDLE
        if self._state.session is None:
            return ConnectionState.RECONNECTING
        if self.has_active_connection:
            return ConnectionState.OPEN
        return ConnectionState.CONNECTING

    @property
    def monitor(self) -> LivenessMonitor:
        return self._monitor

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """
        Connect, and keep reconnecting after network errors or timeouts.

        Raises:
            IllegalStateError: If already started
        """
        if self._state.started:
            raise IllegalStateError("start(): Already started")
        self._state.started = True
        logger.info(f"Starting connection supervisor for {self._config.url}")
        self._connect()

    def stop(self, code: int = CloseCode.NORMAL, reason: str = NORMAL_CLOSURE_REASON) -> None:
        """
        Close the active connection and stop reconnecting.

        Safe to call multiple times. ``code`` and ``reason`` are ignored if
        there is no active connection.
        """
        code = validate_close_code(code, "stop():")
        self._halt()
        self.close_connection(code, reason)

    def close_connection(self, code: int, reason: str) -> bool:
        """
        Close the active connection; reconnect if started and enabled.

        Returns:
            True if there was a connection to close
        """
        code = validate_close_code(code, "close_connection():")
        session = self._state.session
        if session is None:
            return False

        # detach first, so that close events fired synchronously by the
        # transport are ignored
        self._state.session = None
        try:
            session.transport.close(code, reason)
        except Exception as e:
            logger.debug(f"Transport close raised: {e!r}")
            self._events.emit(ErrorEvent(e))
        self._session_closed(session, code, reason, closed_by_remote=False)
        return True

    # -------------------------------------------------------------------------
    # Connecting
    # -------------------------------------------------------------------------

    def _connect(self) -> None:
        if not self._state.started:
            raise IllegalStateError("_connect(): Should be started")
        if self._state.session is not None:
            raise IllegalStateError("_connect(): There already is an active connection")

        self._clear_reconnect_timer()
        url = self._config.url
        connect_timeout = self._config.connect_timeout

        try:
            transport = self._config.create_connection(url)
        except Exception as e:
            logger.warning(f"create_connection failed for {url}: {e!r}")
            self._events.emit(ErrorEvent(e))
            self._connect_failed()
            return

        session = _Session(token=next(self._tokens), transport=transport)
        self._state.session = session
        logger.debug(f"Session {session.token}: connecting to {url}")

        transport.add_listener("open", self._bind(session, self._handle_open))
        transport.add_listener("error", self._bind(session, self._handle_transport_error))
        transport.add_listener("close", self._bind(session, self._handle_transport_close))
        transport.add_listener("message", self._bind(session, self._handle_message))

        session.connect_timer = self._timers.set_timer(
            self._bind(session, self._handle_connect_timeout, connect_timeout),
            connect_timeout,
        )

        self._events.emit(ConnectingEvent(url=url))

    def _connect_failed(self) -> None:
        # No session was created, so there is no close to report; retry
        # according to the same policy as a closed session.
        if self._state.started and self._config.reconnect:
            self._schedule_reconnect()
        else:
            self._halt()

    def _handle_connect_timeout(self, session: _Session, connect_timeout: float) -> None:
        session.connect_timer = None
        logger.info(f"Session {session.token}: connect timeout after {connect_timeout}ms")
        self.close_connection(
            self._config.timeout_close_code,
            f"Timeout: Opening the connection took longer than {connect_timeout}ms",
        )

    # -------------------------------------------------------------------------
    # Transport events
    # -------------------------------------------------------------------------

    def _handle_open(self, session: _Session) -> None:
        self._clear_connect_timer(session)
        self._clear_reconnect_timer()
        logger.info(f"Session {session.token}: connection to {self._config.url} open")
        self._engine.resume()
        self._monitor.start()
        self._events.emit(OpenEvent(url=self._config.url))

    def _handle_transport_error(self, session: _Session, error: BaseException) -> None:
        logger.debug(f"Session {session.token}: transport error {error!r}")
        self._events.emit(TransportErrorEvent(error))

    def _handle_transport_close(self, session: _Session, code: int, reason: str) -> None:
        self._state.session = None
        self._session_closed(session, code, reason, closed_by_remote=True)

    def _handle_message(self, session: _Session, data: Frame) -> None:
        self._engine.write(data)

    def _send_frame(self, frame: str) -> None:
        session = self._state.session
        if session is None:
            raise IllegalStateError("_send_frame(): Expected an active connection")
        if session.transport.ready_state != ReadyState.OPEN:
            raise IllegalStateError("_send_frame(): Expected an open connection")
        session.transport.send(frame)

    # -------------------------------------------------------------------------
    # Closing
    # -------------------------------------------------------------------------

    def _session_closed(
        self,
        session: _Session,
        code: int,
        reason: str,
        closed_by_remote: bool,
    ) -> None:
        if session.close_handled:
            return
        session.close_handled = True

        self._clear_connect_timer(session)
        self._engine.pause()
        self._monitor.stop()

        if self._state.started and self._config.reconnect:
            delay = self._schedule_reconnect()
            logger.warning(
                f"Session {session.token}: closed ({code} {reason!r}), "
                f"reconnecting in {delay:.0f}ms"
            )
            event = CloseEvent(
                code=code,
                reason=reason,
                closed_by_remote=closed_by_remote,
                reconnect=True,
                reconnect_delay=delay,
            )
        else:
            self._halt()
            logger.info(f"Session {session.token}: closed ({code} {reason!r})")
            event = CloseEvent(
                code=code,
                reason=reason,
                closed_by_remote=closed_by_remote,
                reconnect=False,
            )

        self._events.emit(event)

    def _schedule_reconnect(self) -> float:
        counter = self._state.reconnect_counter
        try:
            delay = float(self._config.reconnect_delay(counter))
        except Exception as e:
            logger.warning(f"reconnect_delay raised, using the default policy: {e!r}")
            self._events.emit(ErrorEvent(e))
            delay = default_reconnect_delay(counter)

        self._state.reconnect_counter = next_reconnect_counter(
            counter, self._config.reconnect_counter_max
        )
        self._clear_reconnect_timer()
        self._state.reconnect_timer = self._timers.set_timer(
            self._guarded(self._reconnect), delay
        )
        return delay

    def _reconnect(self) -> None:
        self._state.reconnect_timer = None
        if self._state.started and self._state.session is None:
            self._connect()

    def _halt(self) -> None:
        self._state.started = False
        self._clear_reconnect_timer()
        self._monitor.stop()

    # -------------------------------------------------------------------------
    # Protocol engine & liveness events
    # -------------------------------------------------------------------------

    def _handle_probe_success(self, delay: float) -> None:
        self._state.reconnect_counter = decay_reconnect_counter(self._state.reconnect_counter)
        self._events.emit(ProbeSuccessEvent(delay=delay))

    def _handle_probe_failure(self, consecutive_fails: int, error: BaseException) -> None:
        self._events.emit(ProbeFailureEvent(consecutive_fails=consecutive_fails, error=error))

    def _handle_probe_exhausted(self, consecutive_fails: int) -> None:
        self.close_connection(self._config.timeout_close_code, PING_TIMEOUT_REASON)

    def _handle_engine_error(self, error: BaseException) -> None:
        self.close_connection(self._config.internal_error_close_code, INTERNAL_ERROR_REASON)
        self._events.emit(ErrorEvent(error))

    def _handle_protocol_error(self, error: BaseException) -> None:
        self._events.emit(ProtocolErrorEvent(error))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _clear_reconnect_timer(self) -> None:
        if self._state.reconnect_timer is not None:
            self._timers.cancel_timer(self._state.reconnect_timer)
        self._state.reconnect_timer = None

    def _clear_connect_timer(self, session: _Session) -> None:
        if session.connect_timer is not None:
            self._timers.cancel_timer(session.connect_timer)
        session.connect_timer = None

    def _guarded(self, func: Callable[..., Any]) -> Callable[..., None]:
        """Wrap a callback so that exceptions become ErrorEvents."""
        @functools.wraps(func)
        def wrapper(*args: Any) -> None:
            try:
                func(*args)
            except Exception as e:
                self._events.emit(ErrorEvent(e))
        return wrapper

    def _bind(self, session: _Session, func: Callable[..., Any], *bound: Any) -> Callable[..., None]:
        """Guarded callback that only runs while ``session`` is the active session."""
        def callback(*args: Any) -> None:
            if self._state.session is session:
                func(session, *bound, *args)
        return self._guarded(callback)
