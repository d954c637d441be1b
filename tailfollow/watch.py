"""Change notifications for a single watched file.

The tail worker depends only on the `Watcher` protocol and four event kinds.
`WatchdogWatcher` is the default implementation on top of `watchdog`.
"""

from __future__ import annotations

import enum
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from tailfollow.channel import CancellableQueue

logger = logging.getLogger(__name__)


class EventKind(enum.Enum):
    WRITE = "write"
    RENAME = "rename"
    REMOVE = "remove"
    WATCH_ERROR = "watch_error"


@dataclass(frozen=True)
class WatchEvent:
    kind: EventKind
    path: str


EventFeed = CancellableQueue[WatchEvent]


class Watcher(Protocol):
    def watch(self, path: str) -> Hashable: ...

    def unwatch(self, handle: Hashable) -> None: ...

    def close(self) -> None: ...


WatcherFactory = Callable[[EventFeed], Watcher]


def _normalize(path: Any) -> str:
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    # Resolve the directory only; the file itself may be a symlink being replaced.
    directory, name = os.path.split(os.path.abspath(path))
    return os.path.join(os.path.realpath(directory), name)


class _PathEventHandler(FileSystemEventHandler):
    """Translate directory events into `WatchEvent`s for one file."""

    def __init__(self, path: str, feed: EventFeed) -> None:
        super().__init__()
        self.path = path
        self.directory = os.path.dirname(path)
        self.feed = feed

    def _send(self, kind: EventKind) -> None:
        event = WatchEvent(kind, self.path)
        if kind is EventKind.WRITE:
            # One pending WRITE already triggers a scan to the current end.
            self.feed.offer_coalesced(event)
        else:
            self.feed.offer(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and _normalize(event.src_path) == self.path:
            self._send(EventKind.WRITE)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and _normalize(event.src_path) == self.path:
            self._send(EventKind.RENAME)

    def on_moved(self, event: FileSystemEvent) -> None:
        src = _normalize(event.src_path)
        if event.is_directory:
            if src == self.directory:
                self._send(EventKind.WATCH_ERROR)
            return
        if src == self.path or _normalize(event.dest_path) == self.path:
            self._send(EventKind.RENAME)

    def on_deleted(self, event: FileSystemEvent) -> None:
        src = _normalize(event.src_path)
        if event.is_directory:
            if src == self.directory:
                self._send(EventKind.WATCH_ERROR)
            return
        if src == self.path:
            self._send(EventKind.REMOVE)


class WatchdogWatcher:
    """Watch files through a `watchdog` observer.

    - Each watched file schedules its parent directory non-recursively and
      filters events down to the file itself, so renames and re-creations
      of the path are seen as well as writes.
    - `unwatch` is idempotent.
    """

    def __init__(self, feed: EventFeed, *, observer: Any = None) -> None:
        self.feed = feed
        self._observer = observer if observer is not None else Observer()
        self._lock = threading.Lock()
        self._watches: set[Hashable] = set()
        self._observer.daemon = True
        self._observer.start()

    def watch(self, path: str) -> Hashable:
        path = _normalize(path)
        handler = _PathEventHandler(path, self.feed)
        handle = self._observer.schedule(handler, handler.directory, recursive=False)
        with self._lock:
            self._watches.add(handle)
        logger.debug("watching %s via %s", path, handler.directory)
        return handle

    def unwatch(self, handle: Hashable) -> None:
        with self._lock:
            if handle not in self._watches:
                return
            self._watches.discard(handle)
        try:
            self._observer.unschedule(handle)
        except KeyError:
            pass

    def close(self) -> None:
        with self._lock:
            self._watches.clear()
        self._observer.stop()
        if self._observer.is_alive() and threading.current_thread() is not self._observer:
            self._observer.join(timeout=5)
        self.feed.close()
