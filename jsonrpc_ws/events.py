"""
Lifecycle events emitted by ``WebSocketClient``.

Every event is a frozen dataclass with a ``kind`` class attribute, so
listeners can either subscribe to one kind or receive all events and
dispatch on the type:

    client.on(EventKind.CLOSE, lambda event: print(event.code, event.reason))

    def on_event(event: ClientEvent) -> None:
        if isinstance(event, CloseEvent) and event.code == CloseCode.POLICY_VIOLATION:
            client.stop()  # stop reconnecting

    client.add_listener(on_event)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, DefaultDict, List, Optional, Union

from jsonrpc_ws.types import EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConnectingEvent:
    """A transport was requested but is not open yet."""
    kind: ClassVar[EventKind] = EventKind.CONNECTING
    url: str


@dataclass(frozen=True)
class OpenEvent:
    """The transport is open; queued calls are being flushed to the peer."""
    kind: ClassVar[EventKind] = EventKind.OPEN
    url: str


@dataclass(frozen=True)
class TransportErrorEvent:
    """
    The transport reported an error.

    This never ends the session by itself; a ``CloseEvent`` follows if the
    transport closed.
    """
    kind: ClassVar[EventKind] = EventKind.TRANSPORT_ERROR
    error: BaseException


@dataclass(frozen=True)
class CloseEvent:
    """
    The connection closed.

    Attributes:
        code: Close code, sent by us or received from the peer
        reason: Close reason
        closed_by_remote: True if the peer (or the network) closed it
        reconnect: True if a new connection attempt is scheduled
        reconnect_delay: Milliseconds until that attempt, None if
            ``reconnect`` is False
    """
    kind: ClassVar[EventKind] = EventKind.CLOSE
    code: int
    reason: str
    closed_by_remote: bool
    reconnect: bool
    reconnect_delay: Optional[float] = None


@dataclass(frozen=True)
class ProbeSuccessEvent:
    """The most recent ping succeeded after ``delay`` milliseconds."""
    kind: ClassVar[EventKind] = EventKind.PROBE_SUCCESS
    delay: float


@dataclass(frozen=True)
class ProbeFailureEvent:
    """The most recent ping timed out or resulted in an error."""
    kind: ClassVar[EventKind] = EventKind.PROBE_FAILURE
    consecutive_fails: int
    error: BaseException


@dataclass(frozen=True)
class ErrorEvent:
    """
    An unexpected error occurred.

    Most errors end up at the caller of a function or at the remote peer
    instead; this event carries the rest, including exceptions raised by
    listeners and by user supplied callbacks.
    """
    kind: ClassVar[EventKind] = EventKind.ERROR
    error: BaseException


@dataclass(frozen=True)
class ProtocolErrorEvent:
    """The peer sent something that could not be parsed."""
    kind: ClassVar[EventKind] = EventKind.PROTOCOL_ERROR
    error: BaseException


ClientEvent = Union[
    ConnectingEvent,
    OpenEvent,
    TransportErrorEvent,
    CloseEvent,
    ProbeSuccessEvent,
    ProbeFailureEvent,
    ErrorEvent,
    ProtocolErrorEvent,
]

Listener = Callable[[ClientEvent], object]


class EventEmitter:
    """
    Delivers events to listeners synchronously, in registration order.

    A listener that raises does not stop delivery to the other listeners.
    Its exception is re-emitted as an ``ErrorEvent``; an exception raised
    while handling an ``ErrorEvent`` is logged instead.
    """

    def __init__(self) -> None:
        self._listeners: DefaultDict[Optional[EventKind], List[Listener]] = defaultdict(list)

    def on(self, kind: EventKind, listener: Optional[Listener] = None) -> Any:
        """
        Register ``listener`` for one event kind. Returns the listener.

        Without a listener, returns a decorator that registers the
        decorated function.
        """
        if listener is None:
            return lambda func: self.on(kind, func)
        self._listeners[EventKind(kind)].append(listener)
        return listener

    def off(self, kind: EventKind, listener: Listener) -> None:
        """Remove a listener registered with ``on``. Unknown listeners are ignored."""
        listeners = self._listeners.get(EventKind(kind), [])
        if listener in listeners:
            listeners.remove(listener)

    def add_listener(self, listener: Listener) -> Listener:
        """Register ``listener`` for every event kind. Returns the listener."""
        self._listeners[None].append(listener)
        return listener

    def remove_listener(self, listener: Listener) -> None:
        listeners = self._listeners.get(None, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, kind: EventKind) -> int:
        return len(self._listeners.get(EventKind(kind), [])) + len(self._listeners.get(None, []))

    def emit(self, event: ClientEvent) -> None:
        listeners = list(self._listeners.get(event.kind, [])) + list(self._listeners.get(None, []))

        if isinstance(event, ErrorEvent) and not listeners:
            logger.error(f"Unhandled error event: {event.error!r}", exc_info=event.error)
            return

        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                if isinstance(event, ErrorEvent):
                    logger.exception(f"Error event listener raised: {e}")
                else:
                    self.emit(ErrorEvent(e))
