"""
Clogwench Connection - transport side of the client

Handles:
- TCP connect with timeout
- Framing inbound bytes into JSON documents and decoding them
- Fire-and-forget outbound writes
- Half-close on disconnect

Decoded messages are handed to ``on_message``; a lost or closed stream is
reported once through ``on_close``.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Mapping, Optional, Union

from .errors import ConnectError, ConnectionClosed, MalformedMessage
from .framing import DEFAULT_MAX_DOCUMENT, Framing, make_framer
from .logs.logger import JsonlTraceLogger
from .protocol import Message, as_message, decode_document, encode_message, parse_message

logger = logging.getLogger(__name__)

__all__ = ["Connection", "ConnectionState"]


class ConnectionState(str, Enum):
    CREATED = "created"
    CONNECTED = "connected"
    CLOSED = "closed"


class Connection:
    """
    One persistent stream to the compositor.
    Not shared outside its owning Client.
    """

    # Read chunk size (bytes)
    READ_CHUNK = 64 * 1024

    def __init__(
        self,
        framing: Union[Framing, str] = Framing.STREAM,
        connect_timeout: float = 5.0,
        max_message_bytes: int = DEFAULT_MAX_DOCUMENT,
        tracer: Optional[JsonlTraceLogger] = None,
    ):
        self.framing = Framing(framing)
        self.connect_timeout = connect_timeout
        self.max_message_bytes = max_message_bytes
        self.tracer = tracer

        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._state = ConnectionState.CREATED
        self._framer = make_framer(self.framing, max_message_bytes)

        # Callbacks
        self._on_message: Optional[Callable[[Message], None]] = None
        self._on_close: Optional[Callable[[Optional[BaseException]], None]] = None

        # Receive task
        self._receive_task: Optional[asyncio.Task] = None

        # Counters (debugging/monitoring)
        self.messages_in = 0
        self.messages_out = 0
        self.malformed = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        """Check if the stream is open."""
        return self._state is ConnectionState.CONNECTED and self._writer is not None

    def set_message_callback(self, callback: Callable[[Message], None]) -> None:
        """Set callback for every decoded inbound message."""
        self._on_message = callback

    def set_close_callback(self, callback: Callable[[Optional[BaseException]], None]) -> None:
        """Set callback for connection loss/close (receives the cause, if any)."""
        self._on_close = callback

    async def connect(self, host: str, port: int) -> None:
        """
        Open the stream and start receiving.

        Raises:
            ConnectError: refused, unreachable or timed out
        """
        if self._state is ConnectionState.CONNECTED:
            return
        if self._state is ConnectionState.CLOSED:
            raise ConnectError("Connection already closed; create a new one", host=host, port=port)

        logger.debug(f"[Connection] Connecting to {host}:{port}")
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(host, port),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ConnectError(f"Connection timeout after {self.connect_timeout}s", host=host, port=port) from e
        except OSError as e:
            raise ConnectError(f"Connection failed: {e}", host=host, port=port) from e

        self._state = ConnectionState.CONNECTED
        self._framer.reset()
        logger.info(f"[Connection] Connected to {host}:{port}")

        self._receive_task = asyncio.create_task(self._receive_loop())

    def send(self, msg: Union[Message, Mapping]) -> None:
        """
        Encode and write one message. Fire-and-forget: no drain.

        Raises:
            ConnectionClosed: not connected
        """
        writer = self._writer
        if not self.connected or writer is None or writer.is_closing():
            raise ConnectionClosed("Not connected, cannot send")

        data = encode_message(msg, newline=self.framing is Framing.JSONL)
        writer.write(data)
        self.messages_out += 1
        self._trace("out", msg, len(data))
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"[Connection] Sent {msg!r} ({len(data)} bytes)")

    async def send_async(self, msg: Union[Message, Mapping]) -> None:
        """Send, then wait for the transport buffer to drain."""
        self.send(msg)
        writer = self._writer
        if writer is None:
            raise ConnectionClosed("Connection closed while sending")
        try:
            await writer.drain()
        except (ConnectionError, OSError) as e:
            await self._handle_lost(e)
            raise ConnectionClosed(f"Connection lost while sending: {e}") from e

    async def disconnect(self) -> None:
        """Half-close the stream, then release it. Later sends fail."""
        if self._state is ConnectionState.CLOSED:
            return
        logger.info("[Connection] Disconnecting")
        await self._close_transport(half_close=True)
        self._notify_closed(None)

    # --- Internal methods ---

    async def _receive_loop(self) -> None:
        """Receive, frame and decode inbound messages."""
        while self.connected:
            try:
                if not self._reader:
                    break

                chunk = await self._reader.read(self.READ_CHUNK)

                if not chunk:
                    logger.warning("[Connection] Connection closed by server")
                    await self._handle_lost(None)
                    break

                for document in self._framer.feed(chunk):
                    self._handle_document(document)

            except asyncio.CancelledError:
                break
            except (ConnectionError, OSError) as e:
                logger.error(f"[Connection] Receive error: {e}")
                await self._handle_lost(e)
                break

    def _handle_document(self, document: bytes) -> None:
        try:
            msg = parse_message(decode_document(document))
        except MalformedMessage as e:
            self.malformed += 1
            logger.warning(f"[Connection] Dropping malformed message: {e}")
            return

        self.messages_in += 1
        self._trace("in", msg, len(document))
        logger.debug(f"[Connection] Received {msg!r}")

        if self._on_message:
            try:
                self._on_message(msg)
            except Exception as e:
                logger.exception(f"[Connection] Message callback error: {e}")

    async def _handle_lost(self, cause: Optional[BaseException]) -> None:
        """Handle unexpected disconnection."""
        if self._state is ConnectionState.CLOSED:
            return
        await self._close_transport(half_close=False)
        self._notify_closed(cause)

    async def _close_transport(self, half_close: bool) -> None:
        self._state = ConnectionState.CLOSED
        writer = self._writer
        self._writer = None
        self._reader = None

        task = self._receive_task
        self._receive_task = None
        if task and task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if writer is None:
            return
        try:
            if half_close and writer.can_write_eof():
                writer.write_eof()
            writer.close()
            await writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug(f"[Connection] Error while closing: {e}")

    def _notify_closed(self, cause: Optional[BaseException]) -> None:
        callback = self._on_close
        self._on_close = None
        if callback:
            try:
                callback(cause)
            except Exception as e:
                logger.exception(f"[Connection] Close callback error: {e}")

    def _trace(self, direction: str, msg: Union[Message, Mapping], size: int) -> None:
        if self.tracer is None:
            return
        try:
            self.tracer.log(direction, as_message(msg), size)
        except OSError as e:
            logger.warning(f"[Connection] Trace write failed, disabling trace: {e}")
            self.tracer = None
