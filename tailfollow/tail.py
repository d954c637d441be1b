"""Tail session controller.

A `Tail` follows one path from a dedicated worker thread. The worker owns
the file handle, the line buffer and the watch; the caller only reads the
output queues and may set the cancel signal through `close()`.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Union

from tailfollow.channel import CancellableQueue, CancelSignal, ChannelClosed
from tailfollow.config import TailConfig
from tailfollow.errors import WatchFeedClosedError, WatchInitError
from tailfollow.rotation import Opener, RotationMachine, Sleep, open_file
from tailfollow.scanner import LineScanner
from tailfollow.watch import EventFeed, Watcher, WatcherFactory, WatchdogWatcher

logger = logging.getLogger(__name__)

Line = Union[str, bytes]


class Tail:
    def __init__(
        self,
        path: str,
        config: TailConfig | None = None,
        *,
        watcher_factory: WatcherFactory | None = None,
        opener: Opener | None = None,
        sleep: Sleep | None = None,
    ) -> None:
        self.path = str(path)
        self.config = config if config is not None else TailConfig()
        self._cancel = CancelSignal()
        self.lines: CancellableQueue[Line] = CancellableQueue(self.config.queue_size, self._cancel)
        self.errors: CancellableQueue[BaseException] = CancellableQueue(1, self._cancel)
        self._events: EventFeed = CancellableQueue(0, self._cancel)
        self._watcher_factory = watcher_factory if watcher_factory is not None else WatchdogWatcher
        self._opener = opener if opener is not None else open_file
        self._sleep = sleep
        self._machine: RotationMachine | None = None
        self._error: BaseException | None = None
        self._thread = threading.Thread(
            target=self._run, name=f"tailfollow:{self.path}", daemon=True
        )

    def start(self) -> "Tail":
        self._thread.start()
        return self

    def close(self) -> None:
        """Stop following. Safe to call any number of times, from any thread."""
        if self._cancel.set():
            logger.debug("close requested for %s", self.path)
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(self.config.close_timeout)

    def is_closed(self) -> bool:
        return self._cancel.is_set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker to finish. Returns True if it has."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def last_known_size(self) -> int | None:
        return None if self._machine is None else self._machine.last_known_size

    def __enter__(self) -> "Tail":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _emit(self, line: bytes) -> bool:
        return self.lines.put(self.config.decode(line))

    def _run(self) -> None:
        watcher: Watcher | None = None
        error: BaseException | None = None
        try:
            try:
                watcher = self._watcher_factory(self._events)
            except (OSError, RuntimeError) as exc:
                raise WatchInitError(self.path) from exc
            self._machine = RotationMachine(
                self.path,
                LineScanner(self.path, self.config.buffer_size),
                watcher,
                self._emit,
                self._cancel,
                opener=self._opener,
                sleep=self._sleep,
                backoff=self.config.backoff,
                reopen_attempts=self.config.reopen_attempts,
            )
            if self._machine.start():
                self._loop(self._machine)
        except Exception as exc:
            error = exc
        finally:
            if self._machine is not None:
                self._machine.close()
            if watcher is not None:
                watcher.close()
            if error is not None:
                logger.error("tail of %s failed: %s", self.path, error)
                if self.errors.offer(error):
                    self._error = error
            self._cancel.set()
            logger.debug("tail of %s stopped", self.path)

    def _loop(self, machine: RotationMachine) -> None:
        while True:
            try:
                event = self._events.get()
            except ChannelClosed:
                if self._cancel.is_set():
                    return
                raise WatchFeedClosedError(self.path)
            if self._cancel.is_set() or not machine.handle(event):
                return


def start(
    path: str,
    config: TailConfig | None = None,
    *,
    watcher_factory: WatcherFactory | None = None,
    opener: Opener | None = None,
    sleep: Sleep | None = None,
) -> Tail:
    """Start following `path` in the background and return the session."""
    return Tail(
        path, config, watcher_factory=watcher_factory, opener=opener, sleep=sleep
    ).start()
