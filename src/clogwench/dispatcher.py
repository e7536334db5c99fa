"""WindowRegistry - maps window ids to windows and routes push events.

Routing failures (unknown window id, bad payload) are logged and dropped;
they never propagate into the receive loop.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from .errors import MalformedMessage, UnknownWindow
from .protocol import Message
from .window import Window

logger = logging.getLogger(__name__)

__all__ = ["WindowRegistry"]


class WindowRegistry:
    """``window_id → Window``; insertion order is irrelevant."""

    def __init__(self) -> None:
        self._windows: Dict[str, Window] = {}
        self.dropped = 0

    def register(self, window: Window) -> None:
        if window.window_id in self._windows:
            logger.warning(f"[WindowRegistry] Replacing window {window.window_id}")
        self._windows[window.window_id] = window

    def unregister(self, window_id: str) -> Optional[Window]:
        return self._windows.pop(window_id, None)

    def get(self, window_id: str) -> Optional[Window]:
        return self._windows.get(window_id)

    def lookup(self, window_id: Optional[str], kind: str = "") -> Window:
        """Like ``get`` but raises UnknownWindow."""
        window = self._windows.get(window_id) if window_id is not None else None
        if window is None:
            raise UnknownWindow(window_id, kind)
        return window

    def windows(self) -> List[Window]:
        return list(self._windows.values())

    def clear(self) -> List[Window]:
        """Drop every window; returns what was registered."""
        windows = list(self._windows.values())
        self._windows.clear()
        return windows

    def __contains__(self, window_id: object) -> bool:
        return window_id in self._windows

    def __len__(self) -> int:
        return len(self._windows)

    def __iter__(self) -> Iterator[Window]:
        return iter(list(self._windows.values()))

    def dispatch(self, msg: Message) -> bool:
        """Route a push event to its window. Returns False if it was dropped."""
        try:
            window = self.lookup(msg.window_id, msg.kind.value)
            window.dispatch(msg)
        except UnknownWindow as e:
            self.dropped += 1
            logger.warning(f"[WindowRegistry] Dropping {msg.kind.value}: {e}")
            return False
        except MalformedMessage as e:
            self.dropped += 1
            logger.warning(f"[WindowRegistry] Dropping {msg.kind.value}: {e}")
            return False
        return True
