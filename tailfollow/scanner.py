from __future__ import annotations

import logging
from typing import BinaryIO, Callable

from tailfollow.errors import ReadError

logger = logging.getLogger(__name__)

Emit = Callable[[bytes], bool]


class LineScanner:
    """Incremental line splitter over a growing byte stream.

    `_buf[:_nbytes]` always holds the bytes read but not yet emitted as a
    complete line. The buffer only ever doubles, so a line longer than the
    initial size is still captured whole.
    """

    def __init__(self, path: str, initial_size: int = 2048) -> None:
        if initial_size < 1:
            raise ValueError("initial_size must be positive")
        self.path = path
        self._buf = bytearray(initial_size)
        self._nbytes = 0

    @property
    def capacity(self) -> int:
        return len(self._buf)

    @property
    def pending(self) -> bytes:
        """Bytes after the last terminator, not yet known to be a complete line."""
        return bytes(self._buf[: self._nbytes])

    def reset(self) -> None:
        self._nbytes = 0

    def take_pending(self) -> bytes:
        data = self.pending
        self._nbytes = 0
        return data

    def scan(self, fp: BinaryIO, emit: Emit) -> bool:
        """Read `fp` to its current end, emitting every complete line.

        Returns True once no more data is available, False when `emit`
        reports that the session was cancelled. Read failures raise
        `ReadError`.
        """
        while True:
            if self._nbytes == len(self._buf):
                self._buf.extend(bytes(len(self._buf)))
                logger.debug("buffer for %s grown to %d bytes", self.path, len(self._buf))

            start = self._nbytes
            try:
                with memoryview(self._buf) as view, view[start:] as free:
                    n = fp.readinto(free)
            except OSError as exc:
                raise ReadError(self.path) from exc
            if not n:
                return True
            self._nbytes += n

            line_start = 0
            i = self._buf.find(b"\n", start, self._nbytes)
            while i != -1:
                end = i
                if end > line_start and self._buf[end - 1] == 0x0D:
                    end -= 1
                if not emit(bytes(self._buf[line_start:end])):
                    return False
                line_start = i + 1
                i = self._buf.find(b"\n", line_start, self._nbytes)

            if line_start:
                remaining = self._nbytes - line_start
                self._buf[:remaining] = self._buf[line_start : self._nbytes]
                self._nbytes = remaining
