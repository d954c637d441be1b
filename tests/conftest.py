from __future__ import annotations

import threading
from typing import Hashable

import pytest

from tailfollow.watch import EventFeed, EventKind, WatchEvent


class FakeWatcher:
    """In-process stand-in for the change notification service."""

    def __init__(self, feed: EventFeed) -> None:
        self.feed = feed
        self.watched: list[str] = []
        self.unwatched: list[Hashable] = []
        self.closed = False
        self._active: set[Hashable] = set()
        self._next = 0
        self._lock = threading.Lock()
        self.armed = threading.Event()

    def watch(self, path: str) -> Hashable:
        with self._lock:
            self._next += 1
            handle = ("watch", self._next)
            self._active.add(handle)
            self.watched.append(path)
        self.armed.set()
        return handle

    def unwatch(self, handle: Hashable) -> None:
        with self._lock:
            if handle in self._active:
                self._active.discard(handle)
                self.unwatched.append(handle)

    def close(self) -> None:
        self.closed = True

    @property
    def active(self) -> int:
        with self._lock:
            return len(self._active)

    def emit(self, kind: EventKind, path: str = "") -> None:
        event = WatchEvent(kind, path)
        if kind is EventKind.WRITE:
            self.feed.offer_coalesced(event)
        else:
            self.feed.offer(event)


class FakeWatcherFactory:
    def __init__(self) -> None:
        self.instances: list[FakeWatcher] = []
        self.created = threading.Event()

    def __call__(self, feed: EventFeed) -> FakeWatcher:
        watcher = FakeWatcher(feed)
        self.instances.append(watcher)
        self.created.set()
        return watcher

    @property
    def watcher(self) -> FakeWatcher:
        assert self.created.wait(2), "watcher was never created"
        return self.instances[-1]


@pytest.fixture()
def fake_watchers() -> FakeWatcherFactory:
    return FakeWatcherFactory()
