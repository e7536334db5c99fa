"""Request/reply correlation for ``send_and_wait``.

Each outstanding request owns a future in a table keyed by ``request_id``.
A reply that echoes a known id resolves that request, and one echoing an
id that is no longer pending (timed out, cancelled) is dropped. A reply
with no id (compositors that do not echo) resolves the oldest outstanding
request.
Nothing is ever silently orphaned: requests either get a reply, time out,
or fail when the connection closes.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Optional

from .errors import ConnectionClosed, RequestTimeout
from .protocol import Message, generate_request_id

logger = logging.getLogger(__name__)

__all__ = ["Correlator"]


class Correlator:
    """Table of pending replies, in send order."""

    def __init__(self) -> None:
        self._pending: "OrderedDict[str, asyncio.Future]" = OrderedDict()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        return request_id in self._pending

    def register(self, msg: Message) -> asyncio.Future:
        """Tag ``msg`` with a request id (if untagged) and create its future."""
        if msg.request_id is None or msg.request_id in self._pending:
            msg.request_id = generate_request_id()
        fut = asyncio.get_running_loop().create_future()
        self._pending[msg.request_id] = fut
        logger.debug(f"[Correlator] Waiting on {msg.kind.value} as {msg.request_id} ({len(self._pending)} pending)")
        return fut

    def resolve(self, reply: Message) -> bool:
        """Deliver a reply. Returns False when nothing was waiting for it."""
        request_id = reply.request_id
        if request_id is not None:
            fut = self._pending.pop(request_id, None)
            if fut is None:
                logger.warning(f"[Correlator] Reply for unknown or expired request {request_id} dropped: {reply!r}")
                return False
        elif self._pending:
            request_id, fut = self._pending.popitem(last=False)
        else:
            logger.warning(f"[Correlator] Unsolicited reply dropped: {reply!r}")
            return False

        if fut.done():
            return False
        fut.set_result(reply)
        logger.debug(f"[Correlator] Resolved {request_id} with {reply.kind.value}")
        return True

    def discard(self, request_id: Optional[str]) -> None:
        if request_id is None:
            return
        fut = self._pending.pop(request_id, None)
        if fut is not None and not fut.done():
            fut.cancel()

    async def wait(self, request_id: str, fut: asyncio.Future, timeout: Optional[float] = None) -> Message:
        """Await a registered future, optionally bounded by ``timeout`` seconds."""
        try:
            if timeout is None:
                return await fut
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError as e:
            self._pending.pop(request_id, None)
            raise RequestTimeout(f"No reply within {timeout}s", request_id=request_id, timeout=timeout) from e
        except asyncio.CancelledError:
            self._pending.pop(request_id, None)
            raise

    def fail_all(self, exc: Optional[BaseException] = None) -> int:
        """Fail every pending request (default: ConnectionClosed)."""
        count = 0
        while self._pending:
            request_id, fut = self._pending.popitem(last=False)
            if not fut.done():
                fut.set_exception(exc or ConnectionClosed("Connection closed before reply", request_id=request_id))
                count += 1
        if count:
            logger.info(f"[Correlator] Failed {count} pending request(s)")
        return count
