"""
Clogwench Client - application side of the compositor connection

Handles:
- Connecting to the compositor and the AppConnect handshake
- Correlating requests with replies (send_and_wait)
- Opening windows and routing their input events
- Typed database helpers
- A shutdown signal for embedding run loops

Usage::

    async with Client() as client:
        await client.hello()
        win = await client.open_window(Rect(50, 50, 300, 200))
        win.on(EventKind.MOUSE_DOWN, on_click)
        await client.wait_for_shutdown()
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .config import ClientConfig
from .connection import Connection
from .correlator import Correlator
from .dispatcher import WindowRegistry
from .errors import ConnectionClosed, MalformedMessage, UnexpectedReply
from .graphics import RectLike
from .logs.logger import JsonlTraceLogger
from .protocol import (
    PUSH_EVENT_KINDS,
    Message,
    MessageKind,
    OpenWindowResponse,
    app_connect,
    as_message,
    db_add_request,
    db_delete_request,
    db_query_request,
    db_update_request,
    open_window_command,
)
from .window import DrawMode, Window

logger = logging.getLogger(__name__)

__all__ = ["Client", "PLACEHOLDER_DB_ID"]

# Id given to new database objects; the compositor assigns the real one
PLACEHOLDER_DB_ID = "unknown-random-id"

_DEFAULT = object()


class Client:
    """
    Thin client of a remote compositor.
    All methods run on one asyncio event loop.
    """

    def __init__(self, config: Optional[ClientConfig] = None, **overrides: Any):
        self.config = (config or ClientConfig()).with_overrides(**overrides)
        self.id: Optional[str] = None

        tracer = JsonlTraceLogger(self.config.trace_path) if self.config.trace_path else None
        self._connection = Connection(
            framing=self.config.framing,
            connect_timeout=self.config.connect_timeout,
            max_message_bytes=self.config.max_message_bytes,
            tracer=tracer,
        )
        self._connection.set_message_callback(self._handle_message)
        self._connection.set_close_callback(self._handle_close)

        self._correlator = Correlator()
        self._windows = WindowRegistry()

        # Close-window callback (at most one)
        self._on_close_window: Optional[Callable[[Dict[str, Any]], Any]] = None

        self._shutdown = asyncio.Event()
        self._tasks: set = set()

    @property
    def connected(self) -> bool:
        return self._connection.connected

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def windows(self) -> List[Window]:
        return self._windows.windows()

    def get_window(self, window_id: str) -> Optional[Window]:
        return self._windows.get(window_id)

    @property
    def pending_requests(self) -> int:
        return self._correlator.pending

    async def __aenter__(self) -> "Client":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    # ── Lifecycle ────────────────────────────────────────────────

    async def connect(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """
        Open the transport. Inbound handling starts as soon as the socket is open.

        Raises:
            ConnectError: refused, unreachable or timed out
        """
        await self._connection.connect(host or self.config.host, port or self.config.port)

    async def hello(self, timeout: Any = _DEFAULT) -> str:
        """AppConnect handshake; returns (and stores) the assigned app id."""
        reply = await self.send_and_wait(app_connect(), timeout=timeout)
        self._expect(reply, MessageKind.APP_CONNECT_RESPONSE)
        if self.id is None:
            raise MalformedMessage("AppConnectResponse without app_id", raw=reply.raw)
        return self.id

    async def disconnect(self) -> None:
        """Close the connection; pending requests fail, windows are dropped."""
        await self._connection.disconnect()
        # already-closed connections do not call back again
        self._handle_close(None)

    # ── Shutdown signal ──────────────────────────────────────────

    def request_shutdown(self) -> None:
        """Ask the embedding run loop to finish (e.g. from a quit button)."""
        if not self._shutdown.is_set():
            logger.info("[Client] Shutdown requested")
            self._shutdown.set()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown.is_set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown.wait()

    # ── Messaging ────────────────────────────────────────────────

    def send(self, msg: Union[Message, Mapping[str, Any]]) -> None:
        """Fire-and-forget send. Raises ConnectionClosed when not connected."""
        self._connection.send(as_message(msg))

    async def send_and_wait(
        self,
        msg: Union[Message, Mapping[str, Any]],
        timeout: Any = _DEFAULT,
    ) -> Message:
        """
        Send ``msg`` and wait for its reply.

        Args:
            msg: Message or raw tagged dict
            timeout: seconds; ``None`` waits forever; default from config

        Raises:
            RequestTimeout: no reply in time
            ConnectionClosed: connection closed before the reply
        """
        msg = as_message(msg)
        if timeout is _DEFAULT:
            timeout = self.config.request_timeout

        fut = self._correlator.register(msg)
        request_id = msg.request_id
        wire = msg if self.config.correlation_ids else Message(kind=msg.kind, payload=msg.payload, raw=msg.raw)
        try:
            self._connection.send(wire)
        except ConnectionClosed:
            self._correlator.discard(request_id)
            raise
        return await self._correlator.wait(request_id, fut, timeout)

    # ── Windows ──────────────────────────────────────────────────

    async def open_window(
        self,
        rect: RectLike,
        window_type: str = "plain",
        title: str = "some-window",
        draw_mode: Union[DrawMode, str] = DrawMode.IMMEDIATE,
        timeout: Any = _DEFAULT,
    ) -> Window:
        """Ask the compositor for a window and register it."""
        reply = await self.send_and_wait(open_window_command(rect, window_type, title), timeout=timeout)
        self._expect(reply, MessageKind.OPEN_WINDOW_RESPONSE)
        info = reply.parse_payload()
        if not isinstance(info, OpenWindowResponse):
            raise MalformedMessage(f"bad OpenWindowResponse payload: {type(info).__name__}", raw=reply.raw)

        window = Window(self, info, draw_mode=draw_mode)
        self._windows.register(window)
        logger.info(f"[Client] Opened {window!r}")
        return window

    def on_close_window(self, callback: Callable[[Dict[str, Any]], Any]) -> None:
        """Set the callback fired on CloseWindowResponse (replaces any previous one)."""
        self._on_close_window = callback

    def _forget_window(self, window_id: str) -> None:
        self._windows.unregister(window_id)

    # ── Database helpers ─────────────────────────────────────────

    async def db_query(self, query: Any, timeout: Any = _DEFAULT) -> Any:
        reply = await self.send_and_wait(db_query_request(self.id, query), timeout=timeout)
        return self._expect(reply, MessageKind.DB_QUERY_RESPONSE).payload.get("results")

    async def db_add(self, obj: Mapping[str, Any], timeout: Any = _DEFAULT) -> Dict[str, Any]:
        item = dict(obj)
        if not item.get("id"):
            item["id"] = PLACEHOLDER_DB_ID
        reply = await self.send_and_wait(db_add_request(self.id, item), timeout=timeout)
        return self._expect(reply, MessageKind.DB_ADD_RESPONSE).payload

    async def db_update(self, obj: Mapping[str, Any], timeout: Any = _DEFAULT) -> Any:
        reply = await self.send_and_wait(db_update_request(self.id, obj), timeout=timeout)
        return self._expect(reply, MessageKind.DB_UPDATE_RESPONSE).payload.get("results")

    async def db_delete(self, obj: Mapping[str, Any], timeout: Any = _DEFAULT) -> Any:
        reply = await self.send_and_wait(db_delete_request(self.id, obj), timeout=timeout)
        return self._expect(reply, MessageKind.DB_DELETE_RESPONSE).payload.get("results")

    @staticmethod
    def _expect(reply: Message, kind: MessageKind) -> Message:
        if reply.kind is not kind:
            raise UnexpectedReply(kind.value, reply.kind.value)
        return reply

    # ── Inbound routing ──────────────────────────────────────────

    def _handle_message(self, msg: Message) -> None:
        """Classify one inbound message: connect-ack, push event, close, or reply."""
        if msg.kind is MessageKind.APP_CONNECT_RESPONSE:
            try:
                self.id = msg.parse_payload().app_id  # type: ignore[attr-defined]
                logger.info(f"[Client] Connected as app {self.id}")
            except MalformedMessage as e:
                logger.warning(f"[Client] {e}")
            self._correlator.resolve(msg)

        elif msg.kind in PUSH_EVENT_KINDS:
            self._windows.dispatch(msg)

        elif msg.kind is MessageKind.CLOSE_WINDOW_RESPONSE:
            self._handle_close_window(msg)

        else:
            if msg.kind is MessageKind.UNKNOWN:
                logger.warning(f"[Client] Unrecognized message, treating as reply: {str(msg.raw)[:200]}")
            self._correlator.resolve(msg)

    def _handle_close_window(self, msg: Message) -> None:
        window_id = msg.window_id
        if window_id is not None:
            window = self._windows.unregister(window_id)
            if window is not None:
                window._mark_closed()

        if msg.request_id is not None and self._correlator.is_pending(msg.request_id):
            self._correlator.resolve(msg)

        callback = self._on_close_window
        if callback is None:
            return
        try:
            result = callback(dict(msg.payload))
        except Exception as e:
            logger.exception(f"[Client] Close-window callback error: {e}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    def _handle_close(self, cause: Optional[BaseException]) -> None:
        """Connection gone: fail waiters, drop windows, signal shutdown."""
        if cause is not None:
            logger.warning(f"[Client] Connection lost: {cause}")
        self._correlator.fail_all(ConnectionClosed("Connection closed before reply"))
        for window in self._windows.clear():
            window._mark_closed()
        self.request_shutdown()
