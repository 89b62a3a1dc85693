from __future__ import annotations

import json
import logging
from typing import Callable, List, Optional

from .errors import DecodeError
from .log_record import LogRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_FRAME_BYTES = 1024 * 1024

_OPEN = ord("{")
_CLOSE = ord("}")
_QUOTE = ord('"')
_BACKSLASH = ord("\\")


class FrameDecoder:
    """
    Incremental decoder for back-to-back JSON object frames.

    - A frame starts at '{' and ends at its matching '}'.
    - Braces inside string values (including escaped quotes) do not count.
    - Bytes before a frame's '{' are dropped.
    - An unfinished frame stays buffered; the scan resumes where it stopped
      when more bytes arrive.

    Works on raw bytes: the structural characters are ASCII and never occur
    inside a multi-byte UTF-8 sequence, so splits inside a character are safe.
    """

    def __init__(
        self,
        *,
        on_error: Optional[Callable[[DecodeError], None]] = None,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self._on_error = on_error
        self._max_frame_bytes = max(2, int(max_frame_bytes))

        self._buf = bytearray()
        # Scan state for the frame starting at _buf[0] (only valid while _depth > 0).
        self._pos = 0
        self._depth = 0
        self._in_string = False
        self._escape = False

        self.frames_ok = 0
        self.frames_failed = 0

    def pending_bytes(self) -> int:
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()
        self._reset_scan()

    def _reset_scan(self) -> None:
        self._pos = 0
        self._depth = 0
        self._in_string = False
        self._escape = False

    def _resync(self, start: int) -> bool:
        """Drop everything before the next '{' at or after `start`. False if none."""
        idx = self._buf.find(b"{", start)
        if idx == -1:
            self._buf.clear()
            self._reset_scan()
            return False
        del self._buf[:idx]
        self._reset_scan()
        return True

    def feed(self, data: bytes) -> List[LogRecord]:
        """Append `data` and return every record completed by it, in order."""
        out: List[LogRecord] = []
        if data:
            self._buf.extend(data)

        while True:
            if self._depth == 0 and self._pos == 0:
                if not self._resync(0):
                    break

            end = self._scan()
            if end < 0:
                if len(self._buf) > self._max_frame_bytes:
                    self._fail(
                        DecodeError(
                            f"frame exceeds {self._max_frame_bytes} bytes without closing brace",
                            bytes(self._buf[:64]),
                        )
                    )
                    # Skip the oversized frame's opening brace and look for the next one.
                    if not self._resync(1):
                        break
                    continue
                break

            frame = bytes(self._buf[: end + 1])
            del self._buf[: end + 1]
            self._reset_scan()

            rec = self._decode(frame)
            if rec is not None:
                out.append(rec)

        return out

    def _scan(self) -> int:
        """Continue the brace scan; return the index of the closing '}' or -1."""
        buf = self._buf
        n = len(buf)
        i = self._pos
        depth = self._depth
        in_string = self._in_string
        escape = self._escape

        while i < n:
            c = buf[i]
            if in_string:
                if escape:
                    escape = False
                elif c == _BACKSLASH:
                    escape = True
                elif c == _QUOTE:
                    in_string = False
            elif c == _QUOTE:
                in_string = True
            elif c == _OPEN:
                depth += 1
            elif c == _CLOSE:
                depth -= 1
                if depth == 0:
                    return i
            i += 1

        self._pos = i
        self._depth = depth
        self._in_string = in_string
        self._escape = escape
        return -1

    def _decode(self, frame: bytes) -> Optional[LogRecord]:
        try:
            obj = json.loads(frame)
        except ValueError as e:
            # json.JSONDecodeError and UnicodeDecodeError are both ValueErrors.
            self._fail(DecodeError(f"invalid JSON frame: {e}", frame))
            return None

        try:
            rec = LogRecord.from_json(obj)
        except DecodeError as e:
            e.frame = frame
            self._fail(e)
            return None

        self.frames_ok += 1
        return rec

    def _fail(self, err: DecodeError) -> None:
        self.frames_failed += 1
        snippet = err.frame[:200].decode("utf-8", errors="replace")
        logger.warning("Dropped frame: %s (%s)", err, snippet)
        if self._on_error is not None:
            self._on_error(err)
