"""Frame buffers: turn arbitrarily chunked bytes into complete frames.

Two framing strategies are supported:

* :class:`EventStreamBuffer` -- server-sent events, frames separated by a
  blank line.
* :class:`JSONObjectBuffer` -- a bare sequence of JSON objects (typically the
  elements of a JSON array streamed incrementally).

Both keep raw bytes until a frame is complete, so a multi-byte UTF-8 sequence
split across two reads is never decoded half-way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Frame:
    """One complete unit of the wire protocol, decoded to text."""

    raw: str


class FrameBuffer(Protocol):
    """Accumulates bytes and yields complete frames."""

    def append(self, chunk: bytes) -> None: ...

    def next_frame(self) -> Frame | None: ...

    def flush(self) -> Frame | None: ...


def _decode(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        _logger.warning("Frame is not valid UTF-8 (%s); replacing bad bytes", e)
        return raw.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Event-stream framing
# ---------------------------------------------------------------------------

class EventStreamBuffer:
    """Blank-line delimited frames (``text/event-stream``)."""

    _DELIMITERS = (b"\n\n", b"\r\n\r\n")
    # Longest delimiter minus one: a partial delimiter may straddle reads
    _OVERLAP = 3

    def __init__(self) -> None:
        self._buf = bytearray()
        self._scan_from = 0

    def __len__(self) -> int:
        return len(self._buf)

    def append(self, chunk: bytes) -> None:
        self._buf.extend(chunk)

    def _find_delimiter(self) -> tuple[int, int]:
        """Return ``(index, length)`` of the earliest delimiter, or ``(-1, 0)``."""
        best, best_len = -1, 0
        for delim in self._DELIMITERS:
            idx = self._buf.find(delim, self._scan_from)
            if idx >= 0 and (best < 0 or idx < best):
                best, best_len = idx, len(delim)
        return best, best_len

    def next_frame(self) -> Frame | None:
        while True:
            idx, length = self._find_delimiter()
            if idx < 0:
                self._scan_from = max(0, len(self._buf) - self._OVERLAP)
                return None
            raw = bytes(self._buf[:idx])
            del self._buf[:idx + length]
            self._scan_from = 0
            # Consecutive blank lines produce empty frames; skip them
            if raw.strip():
                return Frame(_decode(raw))

    def flush(self) -> Frame | None:
        """Surface any residual bytes at end of stream."""
        raw = bytes(self._buf)
        self._buf.clear()
        self._scan_from = 0
        if not raw.strip():
            return None
        return Frame(_decode(raw).strip())


# ---------------------------------------------------------------------------
# JSON object-stream framing
# ---------------------------------------------------------------------------

# Whitespace and the punctuation of an enclosing JSON array
_SEPARATORS = frozenset(b" \t\r\n[],")
_OPEN, _CLOSE, _QUOTE, _BACKSLASH = ord("{"), ord("}"), ord('"'), ord("\\")


class JSONObjectBuffer:
    """Frames are complete top-level JSON objects.

    A brace-depth scan that understands strings and escapes finds the end of
    each object.  The scan state survives across :meth:`append` calls, so an
    object, string or escape split by a chunk boundary simply waits for more
    bytes and no byte is scanned twice.
    """

    def __init__(self) -> None:
        self._buf = bytearray()
        self._reset_scan()

    def __len__(self) -> int:
        return len(self._buf)

    def _reset_scan(self) -> None:
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False

    def append(self, chunk: bytes) -> None:
        self._buf.extend(chunk)

    def _take(self, start: int, end: int) -> Frame:
        raw = bytes(self._buf[start:end])
        del self._buf[:end]
        self._reset_scan()
        return Frame(_decode(raw).strip())

    def _seek_object(self) -> Frame | None | bool:
        """Position the scan at the next object start.

        Returns ``True`` when an object start was found, a :class:`Frame` for
        stray text preceding it, or ``None`` if more bytes are needed.
        """
        buf = self._buf
        i = self._pos
        n = len(buf)
        while i < n and buf[i] in _SEPARATORS:
            i += 1
        if i >= n:
            del buf[:i]
            self._pos = 0
            return None
        if buf[i] != _OPEN:
            nxt = self._resync(i)
            if nxt < 0:
                self._pos = i
                return None
            return self._take(i, nxt)
        self._start = i
        self._pos = i
        return True

    def _resync(self, start: int) -> int:
        """Offset of the next '{' after *start* that follows a separator, or -1.

        A brace glued to stray text (a quoted fragment, say) is taken to be
        part of that text.
        """
        buf = self._buf
        j = buf.find(b"{", start + 1)
        while j >= 0 and buf[j - 1] not in _SEPARATORS:
            j = buf.find(b"{", j + 1)
        return j

    def next_frame(self) -> Frame | None:
        if self._start < 0:
            found = self._seek_object()
            if found is not True:
                return found

        buf = self._buf
        for i in range(self._pos, len(buf)):
            ch = buf[i]
            if self._escape:
                self._escape = False
                continue
            if self._in_string:
                if ch == _BACKSLASH:
                    self._escape = True
                elif ch == _QUOTE:
                    self._in_string = False
                continue
            if ch == _QUOTE:
                self._in_string = True
            elif ch == _OPEN:
                self._depth += 1
            elif ch == _CLOSE:
                self._depth -= 1
                if self._depth == 0:
                    return self._take(self._start, i + 1)
        self._pos = len(buf)
        return None

    def flush(self) -> Frame | None:
        """Surface residual bytes (an incomplete object or stray text)."""
        raw = bytes(self._buf).strip(b" \t\r\n[],")
        self._buf.clear()
        self._reset_scan()
        if not raw:
            return None
        return Frame(_decode(raw))
