"""Client-side handle for one compositor window.

A window draws either immediately (one wire message per primitive) or into
a local :class:`~clogwench.pixel_buffer.PixelBuffer` that ``flush()`` uploads
as a single ``DrawImageCommand``. Input events routed to the window fan out
to listeners registered per :class:`EventKind`, in registration order.

Usage::

    win = await client.open_window(Rect(0, 0, 200, 100), draw_mode=DrawMode.BUFFERED)
    win.on(EventKind.MOUSE_DOWN, lambda e: print(e.x, e.y))
    win.clear()
    win.draw_rect(Rect(10, 10, 50, 20), "#3366ff")
    win.flush()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Set, Union

from .errors import InvalidRect, WindowClosed
from .graphics import WHITE, ColorLike, Rect, RectLike, as_rect
from .pixel_buffer import PixelBuffer
from .protocol import (
    Message,
    MessageKind,
    OpenWindowResponse,
    SizeModel,
    draw_image_command,
    draw_rect_command,
)

if TYPE_CHECKING:
    from .client import Client

logger = logging.getLogger(__name__)

__all__ = ["Window", "EventKind", "DrawMode", "WindowState", "Listener"]

Listener = Callable[[Any], Any]


class EventKind(str, Enum):
    """Listener channels on a window."""

    MOUSE_DOWN = "mousedown"
    MOUSE_MOVE = "mousemove"
    MOUSE_UP = "mouseup"
    KEY_DOWN = "keydown"
    RESIZE = "resize"
    CLOSE = "close"


class DrawMode(str, Enum):
    IMMEDIATE = "immediate"
    BUFFERED = "buffered"


class WindowState(str, Enum):
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


_EVENT_FOR_KIND = {
    MessageKind.MOUSE_DOWN: EventKind.MOUSE_DOWN,
    MessageKind.MOUSE_MOVE: EventKind.MOUSE_MOVE,
    MessageKind.MOUSE_UP: EventKind.MOUSE_UP,
    MessageKind.KEY_DOWN: EventKind.KEY_DOWN,
}


class Window:
    """One remote compositor surface, identified by a server-issued id."""

    def __init__(
        self,
        client: "Client",
        info: OpenWindowResponse,
        draw_mode: Union[DrawMode, str] = DrawMode.IMMEDIATE,
    ):
        self._client = client
        self.window_id: str = info.window_id
        self.app_id: Optional[str] = info.app_id or client.id
        self.window_type: str = info.window_type
        self.bounds: Rect = info.bounds.to_rect()
        self.state = WindowState.OPEN
        self.draw_mode = DrawMode(draw_mode)
        self._listeners: Dict[EventKind, List[Listener]] = {}
        self._buffer: Optional[PixelBuffer] = None
        self._tasks: Set[asyncio.Task] = set()
        if self.draw_mode is DrawMode.BUFFERED:
            self._buffer = self._new_buffer()

    def __repr__(self) -> str:
        b = self.bounds
        return f"Window({self.window_id!r}, {b.w}x{b.h}@{b.x},{b.y}, {self.draw_mode.value}, {self.state.value})"

    # ── State ────────────────────────────────────────────────────

    @property
    def buffered(self) -> bool:
        return self.draw_mode is DrawMode.BUFFERED

    @property
    def buffer(self) -> Optional[PixelBuffer]:
        """The local pixel buffer (buffered mode only)."""
        return self._buffer

    @property
    def is_open(self) -> bool:
        return self.state is WindowState.OPEN

    def set_draw_mode(self, mode: Union[DrawMode, str]) -> None:
        """Switch drawing mode. Entering buffered mode starts a fresh buffer."""
        mode = DrawMode(mode)
        if mode is self.draw_mode:
            return
        self.draw_mode = mode
        self._buffer = self._new_buffer() if mode is DrawMode.BUFFERED else None

    def _new_buffer(self) -> PixelBuffer:
        return PixelBuffer(max(0, int(self.bounds.w)), max(0, int(self.bounds.h)))

    def _check_open(self) -> None:
        if self.state is not WindowState.OPEN:
            raise WindowClosed(f"window {self.window_id} is {self.state.value}", window_id=self.window_id)

    # ── Drawing ──────────────────────────────────────────────────

    def draw_rect(self, rect: RectLike, color: ColorLike) -> None:
        """Fill ``rect`` (floored to whole pixels) with ``color``."""
        self._check_open()
        rect = as_rect(rect).floored()
        if self._buffer is not None:
            self._buffer.draw_rect(rect, color)
        else:
            self._client.send(draw_rect_command(self.app_id, self.window_id, rect, color))

    def draw_image(self, rect: RectLike, image: PixelBuffer) -> None:
        """Draw ``image`` into ``rect``.

        Raises InvalidRect for NaN/infinite coordinates; nothing is sent or
        painted in that case. In buffered mode the local buffer cannot
        composite images and paints a MAGENTA placeholder instead.
        """
        self._check_open()
        rect = as_rect(rect)
        if not rect.is_valid():
            logger.error(f"[Window] invalid rect, cannot send: {rect!r}")
            raise InvalidRect(f"invalid rect, cannot send: {rect!r}", window_id=self.window_id)
        rect = rect.floored()
        if self._buffer is not None:
            self._buffer.draw_image(rect, image)
        else:
            self._client.send(draw_image_command(self.app_id, self.window_id, rect, image))

    def stroke_rect(self, rect: RectLike, color: ColorLike, width: int = 1) -> None:
        """Outline ``rect`` with four ``width``-pixel bars."""
        r = as_rect(rect).floored()
        self.draw_rect(Rect(r.x, r.y, r.w, width), color)
        self.draw_rect(Rect(r.x, r.bottom - width, r.w, width), color)
        self.draw_rect(Rect(r.x, r.y, width, r.h), color)
        self.draw_rect(Rect(r.right - width, r.y, width, r.h), color)

    def clear(self, color: ColorLike = WHITE) -> None:
        """Fill the whole window."""
        self.draw_rect(Rect(0, 0, self.bounds.w, self.bounds.h), color)

    def flush(self) -> None:
        """Upload the whole buffer as one DrawImageCommand. No-op when immediate."""
        if self._buffer is None:
            return
        self._check_open()
        buf = self._buffer
        logger.debug(f"[Window] Flushing {buf.width}x{buf.height} buffer of {self.window_id}")
        self._client.send(
            draw_image_command(self.app_id, self.window_id, Rect(0, 0, buf.width, buf.height), buf)
        )

    # ── Listeners ────────────────────────────────────────────────

    def on(self, kind: Union[EventKind, str], callback: Listener) -> Listener:
        """Register an additional listener for ``kind``; returns ``callback``."""
        self._listeners.setdefault(EventKind(kind), []).append(callback)
        return callback

    def off(self, kind: Union[EventKind, str], callback: Listener) -> bool:
        """Remove one registration of ``callback``. Returns False if absent."""
        listeners = self._listeners.get(EventKind(kind), [])
        try:
            listeners.remove(callback)
        except ValueError:
            return False
        return True

    def listeners(self, kind: Union[EventKind, str]) -> List[Listener]:
        return list(self._listeners.get(EventKind(kind), []))

    def fire(self, kind: Union[EventKind, str], payload: Any) -> int:
        """Call every listener of ``kind`` in order; returns how many ran.

        A failing listener is logged and does not stop the others. Coroutine
        listeners are scheduled on the running loop.
        """
        kind = EventKind(kind)
        called = 0
        for callback in list(self._listeners.get(kind, [])):
            called += 1
            try:
                result = callback(payload)
            except Exception as e:
                logger.exception(f"[Window] {kind.value} listener error on {self.window_id}: {e}")
                continue
            if inspect.isawaitable(result):
                self._schedule(kind, result)
        return called

    def _schedule(self, kind: EventKind, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(f"[Window] async {kind.value} listener error on {self.window_id}: {t.exception()}")

        task.add_done_callback(_done)

    # ── Inbound events ───────────────────────────────────────────

    def dispatch(self, msg: Message) -> None:
        """Demultiplex one routed push event.

        Raises MalformedMessage if the payload does not fit its schema.
        """
        if msg.kind is MessageKind.WINDOW_RESIZED:
            self._set_size(msg.parse_payload().size)
            return

        event_kind = _EVENT_FOR_KIND.get(msg.kind)
        if event_kind is None:
            logger.debug(f"[Window] {self.window_id} ignoring {msg!r}")
            return
        self.fire(event_kind, msg.parse_payload())

    def _set_size(self, size: SizeModel) -> None:
        self.bounds = Rect(self.bounds.x, self.bounds.y, size.w, size.h)
        if self._buffer is not None:
            self._buffer = self._new_buffer()
        logger.debug(f"[Window] {self.window_id} resized to {size.w}x{size.h}")
        self.fire(EventKind.RESIZE, self)

    # ── Close ────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close locally without waiting for the compositor to confirm."""
        if self.state is not WindowState.OPEN:
            return
        self.state = WindowState.CLOSING
        self._client._forget_window(self.window_id)
        self._mark_closed()

    def _mark_closed(self) -> None:
        if self.state is WindowState.CLOSED:
            return
        self.state = WindowState.CLOSED
        self._buffer = None
        logger.debug(f"[Window] {self.window_id} closed")
        self.fire(EventKind.CLOSE, self)
        self._listeners.clear()
