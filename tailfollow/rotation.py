"""File rotation handling: flush, reopen with backoff, re-arm the watch."""

from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO, Callable, Hashable, Iterator

from tailfollow.channel import CancelSignal
from tailfollow.errors import PathNotFoundError, ReopenExhaustedError, WatchInitError
from tailfollow.scanner import Emit, LineScanner
from tailfollow.watch import EventKind, WatchEvent, Watcher

logger = logging.getLogger(__name__)

Opener = Callable[[str], BinaryIO]
Sleep = Callable[[float], bool]


class TailState(enum.Enum):
    NORMAL = "normal"
    FLUSHING = "flushing"
    REOPENING = "reopening"
    CLOSED = "closed"


@dataclass(frozen=True)
class Backoff:
    """Exponential delays, capped at `maximum`, never exhausted."""

    initial: float = 1.0
    maximum: float = 30.0
    factor: float = 2.0

    def __iter__(self) -> Iterator[float]:
        delay = min(self.initial, self.maximum)
        while True:
            yield delay
            delay = min(delay * self.factor, self.maximum)


def open_file(path: str) -> BinaryIO:
    return open(path, "rb", buffering=0)


class RotationMachine:
    """Own the open file and its watch for one path across rotations.

    `start()` and `handle()` return False once the session is cancelled
    while emitting or backing off; fatal conditions raise `TailError`.
    """

    def __init__(
        self,
        path: str,
        scanner: LineScanner,
        watcher: Watcher,
        emit: Emit,
        cancel: CancelSignal,
        *,
        opener: Opener = open_file,
        sleep: Sleep | None = None,
        backoff: Backoff | None = None,
        reopen_attempts: int | None = None,
    ) -> None:
        self.path = path
        self.scanner = scanner
        self.watcher = watcher
        self.emit = emit
        self.cancel = cancel
        self.opener = opener
        self.sleep = sleep if sleep is not None else cancel.wait
        self.backoff = backoff if backoff is not None else Backoff()
        self.reopen_attempts = reopen_attempts
        self.state = TailState.NORMAL
        self.last_known_size: int | None = None
        self._file: BinaryIO | None = None
        self._watch: Hashable | None = None

    def _open(self) -> BinaryIO:
        fp = self.opener(self.path)
        try:
            self.last_known_size = os.fstat(fp.fileno()).st_size
        except (OSError, ValueError):
            self.last_known_size = None
        logger.info("opened %s (size=%s)", self.path, self.last_known_size)
        return fp

    def _arm(self) -> None:
        try:
            self._watch = self.watcher.watch(self.path)
        except OSError as exc:
            raise WatchInitError(self.path) from exc

    def _scan(self) -> bool:
        if self._file is None or not self.scanner.scan(self._file, self.emit):
            self.state = TailState.CLOSED
            return False
        return True

    def _release(self) -> None:
        if self._watch is not None:
            handle, self._watch = self._watch, None
            self.watcher.unwatch(handle)
        if self._file is not None:
            fp, self._file = self._file, None
            fp.close()

    def _replaced(self) -> bool:
        """True unless the path still names the file we hold open."""
        if self._file is None:
            return True
        try:
            held = os.fstat(self._file.fileno())
            current = os.stat(self.path)
        except (OSError, ValueError):
            return True
        return (held.st_dev, held.st_ino) != (current.st_dev, current.st_ino)

    def start(self) -> bool:
        try:
            self._file = self._open()
        except OSError as exc:
            raise PathNotFoundError(self.path) from exc
        if not self._scan():
            return False
        self._arm()
        return self._scan()

    def handle(self, event: WatchEvent) -> bool:
        if self.state is TailState.CLOSED:
            return False
        if event.kind is EventKind.WRITE:
            return self._scan()
        if not self._replaced():
            logger.debug("%s event for %s but file unchanged", event.kind.value, self.path)
            if event.kind is EventKind.WATCH_ERROR:
                self.rearm()
            return self._scan()
        return self.rotate()

    def rearm(self) -> None:
        if self._watch is not None:
            handle, self._watch = self._watch, None
            self.watcher.unwatch(handle)
        self._arm()

    def rotate(self) -> bool:
        logger.info("rotation detected for %s", self.path)
        self.state = TailState.FLUSHING
        # Drain whatever was appended to the old file before it was replaced.
        if not self._scan():
            return False
        pending = self.scanner.take_pending()
        if pending and not self.emit(pending):
            self.state = TailState.CLOSED
            return False
        self._release()

        self.state = TailState.REOPENING
        fp = self._reopen()
        if fp is None:
            self.state = TailState.CLOSED
            return False
        self._file = fp
        self.scanner.reset()
        self._arm()
        self.state = TailState.NORMAL
        return self._scan()

    def _reopen(self) -> BinaryIO | None:
        attempts = 0
        for delay in self.backoff:
            if self.cancel.is_set():
                return None
            try:
                return self._open()
            except OSError as exc:
                attempts += 1
                if self.reopen_attempts is not None and attempts >= self.reopen_attempts:
                    raise ReopenExhaustedError(self.path, attempts) from exc
                logger.warning("reopen of %s failed (%s), retrying in %.3gs", self.path, exc, delay)
            if self.sleep(delay):
                return None
        return None

    def close(self) -> None:
        self._release()
        self.state = TailState.CLOSED
