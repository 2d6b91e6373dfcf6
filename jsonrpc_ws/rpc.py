"""
JSON-RPC 2.0 protocol engine.

The engine knows nothing about connections. It turns calls into frames,
hands outbound frames to a sink one at a time, and consumes inbound frames
through ``write()``. While paused, outbound frames are queued and flushed in
order on ``resume()``; the connection supervisor pauses the engine whenever
no connection is open, so calls made during an outage are not lost.

Usage:
    engine = JsonRpcEngine()
    engine.set_listeners(on_frame=transport.send)
    engine.method("add", lambda a, b: a + b)

    result = await engine.call("subtract", 10, 3)
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import json
import logging
import time
import traceback
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Mapping, Optional, Set, Union

from jsonrpc_ws._core.version import JSONRPC_VERSION
from jsonrpc_ws.errors import CallTimeoutError, ProtocolError, RpcError

logger = logging.getLogger(__name__)

DEFAULT_PING_METHOD = "rpc.ping"

# JSON-RPC 2.0 §5.1 error codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


def _ignore(*args: Any) -> None:
    pass


class JsonRpcEngine:
    """
    Bidirectional JSON-RPC 2.0 endpoint over an opaque frame channel.

    Attributes:
        receive_error_stack: Read stack trace information sent by the peer
            in ``error.data.stack`` into ``RpcError.remote_stack``
        send_error_stack: Include the stack trace of exceptions raised by
            our methods in ``error.data.stack``
        default_timeout: Timeout (ms) for calls that do not specify one;
            0 waits forever
        ping_method: Method name used for liveness pings
        ping_receive: Answer pings from the peer
    """

    def __init__(
        self,
        *,
        receive_error_stack: bool = False,
        send_error_stack: bool = False,
        default_timeout: float = 0,
        ping_method: str = DEFAULT_PING_METHOD,
        ping_receive: bool = True,
        first_request_id: int = 0,
    ) -> None:
        self.receive_error_stack = receive_error_stack
        self.send_error_stack = send_error_stack
        self.default_timeout = default_timeout
        self.ping_method = ping_method

        self._ids = itertools.count(first_request_id)
        self._pending: Dict[Any, asyncio.Future] = {}
        self._methods: Dict[str, Callable[..., Any]] = {}
        self._notifications: Dict[str, List[Callable[..., Any]]] = {}
        self._outbox: Deque[str] = deque()
        self._paused = False
        self._flushing = False
        self._tasks: Set[asyncio.Future] = set()

        self._on_frame: Callable[[str], None] = _ignore
        self._on_error: Callable[[BaseException], None] = _ignore
        self._on_protocol_error: Callable[[BaseException], None] = _ignore

        if ping_receive:
            self.method(ping_method, lambda: True)

    def set_listeners(
        self,
        on_frame: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        on_protocol_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        """Set the outbound frame sink and the error callbacks."""
        if on_frame is not None:
            self._on_frame = on_frame
        if on_error is not None:
            self._on_error = on_error
        if on_protocol_error is not None:
            self._on_protocol_error = on_protocol_error

    # -------------------------------------------------------------------------
    # Flow control
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False
        self._flush()

    def is_paused(self) -> bool:
        return self._paused

    @property
    def queued_frames(self) -> int:
        return len(self._outbox)

    @property
    def pending_calls(self) -> int:
        return len(self._pending)

    def _send(self, message: Union[dict, list]) -> None:
        self._outbox.append(json.dumps(message, separators=(",", ":")))
        self._flush()

    def _flush(self) -> None:
        # The sink may pause us (e.g. the connection closes while sending),
        # or send more frames; keep strict ordering in both cases.
        if self._flushing:
            return
        self._flushing = True
        try:
            while self._outbox and not self._paused:
                frame = self._outbox.popleft()
                try:
                    self._on_frame(frame)
                except Exception as e:
                    logger.debug(f"Frame sink raised: {e}")
                    self._on_error(e)
        finally:
            self._flushing = False

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def method(self, name: str, func: Callable[..., Any]) -> None:
        """Register a method; registering the same name again overrides it."""
        self._methods[name] = func

    def methods(self, object_or_mapping: Any) -> None:
        """
        Register every callable of a mapping or object as a method.

        For objects, public attributes (not starting with an underscore)
        are used. Values that are not callable are ignored.
        """
        for name, func in _callables(object_or_mapping):
            self.method(name, func)

    def notification(self, name: str, func: Callable[..., Any]) -> None:
        """Register a notification handler; all handlers for a name are called."""
        self._notifications.setdefault(name, []).append(func)

    def notifications(self, object_or_mapping: Any) -> None:
        for name, func in _callables(object_or_mapping):
            self.notification(name, func)

    # -------------------------------------------------------------------------
    # Outbound calls
    # -------------------------------------------------------------------------

    async def call(self, name: str, *args: Any, timeout: Optional[float] = None) -> Any:
        """
        Call a method on the peer.

        Args:
            name: Method name
            *args: Positional params
            timeout: Milliseconds to wait for the response; defaults to
                ``default_timeout``, 0 waits forever

        Returns:
            The result sent by the peer

        Raises:
            RpcError: If the peer responded with an error
            CallTimeoutError: If no response arrived in time
        """
        timeout = self.default_timeout if timeout is None else timeout
        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        message = {"jsonrpc": JSONRPC_VERSION, "id": request_id, "method": name}
        if args:
            message["params"] = list(args)

        try:
            self._send(message)
            if timeout and timeout > 0:
                try:
                    return await asyncio.wait_for(future, timeout / 1000.0)
                except asyncio.TimeoutError:
                    raise CallTimeoutError(name, timeout) from None
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, name: str, *args: Any) -> None:
        """Send a notification; resolves once the frame has been queued."""
        message = {"jsonrpc": JSONRPC_VERSION, "method": name}
        if args:
            message["params"] = list(args)
        self._send(message)

    def bind_call(self, name: str, timeout: Optional[float] = None) -> Callable[..., Any]:
        """Return a coroutine function that calls ``name`` with its arguments."""
        async def bound(*args: Any) -> Any:
            return await self.call(name, *args, timeout=timeout)
        bound.__name__ = f"call_{name}"
        return bound

    def bind_notify(self, name: str) -> Callable[..., Any]:
        async def bound(*args: Any) -> None:
            await self.notify(name, *args)
        bound.__name__ = f"notify_{name}"
        return bound

    async def ping(self, timeout: float) -> float:
        """
        Call the ping method on the peer.

        Returns:
            Round trip time in milliseconds
        """
        start = time.monotonic()
        await self.call(self.ping_method, timeout=timeout)
        return (time.monotonic() - start) * 1000.0

    # -------------------------------------------------------------------------
    # Inbound frames
    # -------------------------------------------------------------------------

    def write(self, data: Union[str, bytes, bytearray]) -> None:
        """Consume one inbound frame (text or utf-8 encoded binary)."""
        try:
            text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
            message = json.loads(text)
        except (UnicodeDecodeError, ValueError) as e:
            self._protocol_error(f"Unable to parse frame: {e}", data)
            self._send(_error_response(None, PARSE_ERROR, "Parse error"))
            return

        if isinstance(message, list):
            if not message:
                self._protocol_error("Received an empty batch", data)
                self._send(_error_response(None, INVALID_REQUEST, "Invalid Request"))
                return
            self._spawn(self._handle_batch(message))
        else:
            self._spawn(self._handle_single(message))

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _handle_single(self, message: Any) -> None:
        try:
            response = await self._handle_message(message)
            if response is not None:
                self._send(response)
        except Exception as e:
            logger.error(f"Failed to handle inbound message: {e!r}")
            self._on_error(e)

    async def _handle_batch(self, messages: List[Any]) -> None:
        try:
            responses = await asyncio.gather(*(self._handle_message(m) for m in messages))
            responses = [r for r in responses if r is not None]
            if responses:
                self._send(responses)
        except Exception as e:
            logger.error(f"Failed to handle inbound batch: {e!r}")
            self._on_error(e)

    async def _handle_message(self, message: Any) -> Optional[dict]:
        if not isinstance(message, dict) or message.get("jsonrpc") != JSONRPC_VERSION:
            self._protocol_error("Invalid JSON-RPC message", message)
            return _error_response(None, INVALID_REQUEST, "Invalid Request")

        if "method" in message:
            if not isinstance(message["method"], str):
                self._protocol_error("Invalid method name", message)
                return _error_response(message.get("id"), INVALID_REQUEST, "Invalid Request")
            if "id" in message:
                return await self._handle_request(message)
            await self._handle_notification(message)
            return None

        if "result" in message or "error" in message:
            self._handle_response(message)
            return None

        self._protocol_error("Message is neither a request nor a response", message)
        return _error_response(message.get("id"), INVALID_REQUEST, "Invalid Request")

    async def _handle_request(self, message: dict) -> dict:
        request_id = message["id"]
        name = message["method"]
        func = self._methods.get(name)
        if func is None:
            return _error_response(request_id, METHOD_NOT_FOUND, f"Method not found: {name}")

        args, kwargs = _split_params(message.get("params"))
        if not _accepts(func, args, kwargs):
            return _error_response(request_id, INVALID_PARAMS, f"Invalid params for {name}")

        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            json.dumps(result)
        except Exception as e:
            logger.debug(f"Method {name} raised: {e!r}")
            data = {"stack": traceback.format_exc()} if self.send_error_stack else None
            return _error_response(request_id, SERVER_ERROR, f"{type(e).__name__}: {e}", data)

        return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}

    async def _handle_notification(self, message: dict) -> None:
        name = message["method"]
        handlers = self._notifications.get(name)
        if not handlers:
            logger.debug(f"No handler for notification {name}")
            return

        args, kwargs = _split_params(message.get("params"))
        for func in list(handlers):
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Notification handler for {name} raised: {e!r}")

    def _handle_response(self, message: dict) -> None:
        request_id = message.get("id")
        if not isinstance(request_id, (str, int, float, type(None))):
            self._protocol_error(f"Invalid response id {request_id!r}", message)
            return
        future = self._pending.get(request_id)
        if future is None:
            self._protocol_error(f"Response for unknown request id {message.get('id')!r}", message)
            return
        if future.done():
            return

        error = message.get("error")
        if error is None:
            future.set_result(message.get("result"))
            return

        if not isinstance(error, dict):
            error = {"code": INTERNAL_ERROR, "message": str(error)}
        data = error.get("data")
        remote_stack = None
        if self.receive_error_stack and isinstance(data, dict) and isinstance(data.get("stack"), str):
            remote_stack = data["stack"]
        future.set_exception(RpcError(
            code=error.get("code", INTERNAL_ERROR),
            message=str(error.get("message", "")),
            data=data,
            remote_stack=remote_stack,
        ))

    def _protocol_error(self, message: str, frame: Any) -> None:
        logger.debug(f"Protocol error: {message}")
        self._on_protocol_error(ProtocolError(message, frame))


def _error_response(request_id: Any, code: int, message: str, data: Any = None) -> dict:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def _split_params(params: Any) -> tuple:
    if params is None:
        return (), {}
    if isinstance(params, list):
        return params, {}
    if isinstance(params, dict):
        return (), params
    return (params,), {}


def _accepts(func: Callable[..., Any], args: Any, kwargs: dict) -> bool:
    try:
        inspect.signature(func).bind(*args, **kwargs)
    except TypeError:
        return False
    except ValueError:
        # no signature available (some builtins); let the call decide
        pass
    return True


def _callables(object_or_mapping: Any):
    if isinstance(object_or_mapping, Mapping):
        items = object_or_mapping.items()
    else:
        items = (
            (name, getattr(object_or_mapping, name))
            for name in dir(object_or_mapping)
            if not name.startswith("_")
        )
    for name, value in items:
        if callable(value):
            yield name, value
