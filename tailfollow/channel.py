"""Cancellation-aware hand-off between the tail worker and its consumer."""

from __future__ import annotations

import queue
import threading
import time
from collections import deque
from typing import Callable, Deque, Generic, Iterator, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised by `CancellableQueue.get` once the queue is closed and drained."""


class CancelSignal:
    """One-shot flag marking the end of a tail session.

    Once set it stays set. Subscribed callbacks run exactly once, on the
    first `set()`, so blocked waiters can be woken without polling.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: list[Callable[[], None]] = []

    def set(self) -> bool:
        """Set the flag. Returns True only for the call that actually set it."""
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)

    def subscribe(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()


class CancellableQueue(Generic[T]):
    """Ordered queue whose blocking operations give up on cancellation.

    `maxsize <= 0` means unbounded. Items queued before cancellation remain
    readable; only producers are turned away.
    """

    def __init__(self, maxsize: int, cancel: CancelSignal) -> None:
        self.maxsize = maxsize
        self._cancel = cancel
        self._items: Deque[T] = deque()
        self._closed = False
        self._cond = threading.Condition()
        cancel.subscribe(self._wake)

    def _wake(self) -> None:
        with self._cond:
            self._cond.notify_all()

    def _is_closed(self) -> bool:
        return self._closed or self._cancel.is_set()

    def _is_full(self) -> bool:
        return 0 < self.maxsize <= len(self._items)

    @property
    def closed(self) -> bool:
        return self._is_closed()

    def put(self, item: T) -> bool:
        """Append `item`, waiting for room. Returns False if the queue closed first."""
        with self._cond:
            while self._is_full() and not self._is_closed():
                self._cond.wait()
            if self._is_closed():
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def offer(self, item: T) -> bool:
        with self._cond:
            if self._is_closed() or self._is_full():
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def offer_coalesced(self, item: T) -> bool:
        """Like `offer`, but an item equal to the newest queued one is merged into it."""
        with self._cond:
            if self._is_closed():
                return False
            if self._items and self._items[-1] == item:
                return True
            if self._is_full():
                return False
            self._items.append(item)
            self._cond.notify_all()
            return True

    def get(self, timeout: float | None = None) -> T:
        """Remove and return the oldest item.

        Raises `queue.Empty` when `timeout` expires and `ChannelClosed` when
        the queue is closed with nothing left to read.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._cond:
            while not self._items:
                if self._is_closed():
                    raise ChannelClosed()
                if deadline is None:
                    self._cond.wait()
                    continue
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise queue.Empty
                self._cond.wait(remaining)
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    def __iter__(self) -> Iterator[T]:
        while True:
            try:
                yield self.get()
            except ChannelClosed:
                return
