"""Inbound message framing.

The compositor writes JSON objects back to back with no delimiter, and TCP
is free to split one object across reads or pack several into one. Two
framers turn the byte stream back into documents:

- ``StreamFramer`` (default): scans brace/bracket depth outside strings and
  cuts a document whenever depth returns to zero.
- ``LineFramer``: newline-delimited JSON (JSONL), for compositors started in
  line mode.

Framers only cut bytes; decoding (and MalformedMessage) happens later.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Union

logger = logging.getLogger(__name__)

__all__ = ["Framing", "StreamFramer", "LineFramer", "make_framer"]

DEFAULT_MAX_DOCUMENT = 64 * 1024 * 1024

_OPEN = frozenset(b"{[")
_CLOSE = frozenset(b"}]")
_WHITESPACE = frozenset(b" \t\r\n")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")


class Framing(str, Enum):
    STREAM = "stream"
    JSONL = "jsonl"


class StreamFramer:
    """Cuts concatenated JSON objects/arrays out of a byte stream."""

    def __init__(self, max_document: int = DEFAULT_MAX_DOCUMENT):
        self.max_document = max_document
        self._buf = bytearray()
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._discarding = False
        self.dropped_bytes = 0

    @property
    def pending(self) -> int:
        """Bytes buffered towards an incomplete document."""
        return len(self._buf) - self._start if self._start >= 0 else 0

    def reset(self) -> None:
        self._buf.clear()
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False
        self._discarding = False

    def feed(self, data: bytes) -> List[bytes]:
        """Add received bytes; return every document completed by them."""
        self._buf.extend(data)
        docs: List[bytes] = []
        buf = self._buf
        i = self._pos
        n = len(buf)
        garbage = 0
        skipped = 0

        while i < n:
            b = buf[i]
            if self._discarding:
                skipped += 1
            if self._start < 0 and not self._discarding:
                if b in _OPEN:
                    self._start = i
                    self._depth = 1
                elif b not in _WHITESPACE:
                    garbage += 1
            elif self._in_string:
                if self._escape:
                    self._escape = False
                elif b == _BACKSLASH:
                    self._escape = True
                elif b == _QUOTE:
                    self._in_string = False
            elif b == _QUOTE:
                self._in_string = True
            elif b in _OPEN:
                self._depth += 1
            elif b in _CLOSE:
                self._depth -= 1
                if self._depth == 0:
                    if self._discarding:
                        self._discarding = False
                    else:
                        docs.append(bytes(buf[self._start:i + 1]))
                    self._start = -1
            i += 1

        if garbage:
            self.dropped_bytes += garbage
            logger.warning(f"[StreamFramer] Discarded {garbage} byte(s) outside any JSON document")
        self.dropped_bytes += skipped

        # Keep only the unfinished document
        if self._start < 0:
            buf.clear()
            self._pos = 0
        else:
            del buf[:self._start]
            self._pos = len(buf)
            self._start = 0
            if len(buf) > self.max_document:
                logger.warning(
                    f"[StreamFramer] Document exceeds {self.max_document} bytes, skipping to its end"
                )
                self.dropped_bytes += len(buf)
                # depth and string state still describe the dropped document
                buf.clear()
                self._pos = 0
                self._start = -1
                self._discarding = True

        return docs


class LineFramer:
    """Newline-delimited JSON framing (JSONL)."""

    def __init__(self, max_document: int = DEFAULT_MAX_DOCUMENT):
        self.max_document = max_document
        self._buf = bytearray()
        self._discarding = False
        self.dropped_bytes = 0

    @property
    def pending(self) -> int:
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()
        self._discarding = False

    def feed(self, data: bytes) -> List[bytes]:
        self._buf.extend(data)
        *lines, rest = self._buf.split(b"\n")
        if self._discarding and lines:
            # tail of an oversized line
            self.dropped_bytes += len(lines.pop(0))
            self._discarding = False
        self._buf = bytearray(rest)
        if len(self._buf) > self.max_document:
            logger.warning(f"[LineFramer] Line exceeds {self.max_document} bytes, dropping it")
            self.dropped_bytes += len(self._buf)
            self._buf.clear()
            self._discarding = True
        elif self._discarding:
            self.dropped_bytes += len(self._buf)
            self._buf.clear()
        return [bytes(line) for line in lines if line.strip()]


def make_framer(framing: Union[Framing, str], max_document: int = DEFAULT_MAX_DOCUMENT):
    """Return a fresh framer for the given framing mode."""
    mode = Framing(framing)
    if mode is Framing.JSONL:
        return LineFramer(max_document)
    return StreamFramer(max_document)
