"""Typed exceptions for the clogwench client.

Exception hierarchy::

    ClogwenchError
    ├── ConnectError       - TCP connect refused / unreachable / timed out
    ├── ConnectionClosed   - send or wait on a closed connection
    ├── MalformedMessage   - inbound document could not be decoded
    ├── UnknownWindow      - push event for a window id we do not know
    ├── InvalidRect        - NaN geometry handed to draw_image
    ├── WindowClosed       - drawing on a window that was closed
    ├── RequestTimeout     - send_and_wait gave up waiting for a reply
    └── UnexpectedReply    - typed helper got the wrong reply variant

``MalformedMessage`` and ``UnknownWindow`` are contained by the receive
loop: they are logged and the message is dropped. The rest reach the caller.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "ClogwenchError",
    "ConnectError",
    "ConnectionClosed",
    "MalformedMessage",
    "UnknownWindow",
    "InvalidRect",
    "WindowClosed",
    "RequestTimeout",
    "UnexpectedReply",
]


class ClogwenchError(Exception):
    """Base exception for all clogwench client errors.

    Keyword context (``window_id``, ``request_id`` ...) is kept on
    :attr:`context` for structured logging.
    """

    def __init__(self, message: str = "", **context: Any) -> None:
        self.message = message
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        super().__init__(message)

    def to_log_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"error": type(self).__name__, "message": self.message}
        d.update(self.context)
        return d

    def __str__(self) -> str:
        if not self.context:
            return self.message
        ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items() if k != "raw")
        return f"{self.message} ({ctx})" if ctx else self.message


class ConnectError(ClogwenchError):
    """Transport-level connect failure."""

    def __init__(self, message: str = "", *, host: Optional[str] = None, port: Optional[int] = None) -> None:
        super().__init__(message, host=host, port=port)


class ConnectionClosed(ClogwenchError):
    """The connection is not open (never connected, disconnected, or lost)."""
    pass


class MalformedMessage(ClogwenchError):
    """An inbound document was not valid UTF-8 JSON or had a bad payload."""

    def __init__(self, message: str = "", *, raw: Any = None) -> None:
        super().__init__(message, raw=raw)

    @property
    def raw(self) -> Any:
        return self.context.get("raw")


class UnknownWindow(ClogwenchError):
    """A push event referenced a window id that is not registered."""

    def __init__(self, window_id: Optional[str], kind: str = "") -> None:
        super().__init__(f"No window registered for event {kind or '?'}", window_id=window_id)
        self.window_id = window_id


class InvalidRect(ClogwenchError, ValueError):
    """Caller-supplied geometry cannot be sent (NaN coordinates)."""
    pass


class WindowClosed(ClogwenchError):
    """Drawing or listening on a window that is already closed."""
    pass


class RequestTimeout(ClogwenchError, TimeoutError):
    """No reply arrived for a correlated request within its timeout."""

    def __init__(self, message: str = "", *, request_id: Optional[str] = None, timeout: Optional[float] = None) -> None:
        super().__init__(message, request_id=request_id, timeout=timeout)


class UnexpectedReply(ClogwenchError):
    """A correlated reply did not carry the expected message variant."""

    def __init__(self, expected: str, got: str) -> None:
        super().__init__(f"Expected {expected} reply, got {got}", expected=expected, got=got)
        self.expected = expected
        self.got = got
