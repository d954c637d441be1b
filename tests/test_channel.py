from __future__ import annotations

import queue
import threading
import time

import pytest

from tailfollow.channel import CancellableQueue, CancelSignal, ChannelClosed


def test_cancel_signal_is_one_shot():
    cancel = CancelSignal()
    assert not cancel.is_set()
    assert cancel.set() is True
    assert cancel.set() is False
    assert cancel.is_set()
    assert cancel.wait(0)


def test_subscribe_after_set_runs_immediately():
    cancel = CancelSignal()
    calls: list[str] = []
    cancel.subscribe(lambda: calls.append("early"))
    cancel.set()
    cancel.set()
    cancel.subscribe(lambda: calls.append("late"))
    assert calls == ["early", "late"]


def test_put_then_get_preserves_order():
    q: CancellableQueue[str] = CancellableQueue(3, CancelSignal())
    for item in ("a", "b", "c"):
        assert q.put(item)
    assert len(q) == 3
    assert [q.get(), q.get(), q.get()] == ["a", "b", "c"]


def test_blocked_put_returns_false_on_cancel():
    cancel = CancelSignal()
    q: CancellableQueue[str] = CancellableQueue(1, cancel)
    assert q.put("line1")

    results: list[bool] = []
    t = threading.Thread(target=lambda: results.append(q.put("line2")), daemon=True)
    t.start()

    time.sleep(0.1)
    assert results == []
    cancel.set()
    t.join(timeout=2)
    assert results == [False]


def test_items_queued_before_cancel_stay_readable():
    cancel = CancelSignal()
    q: CancellableQueue[str] = CancellableQueue(2, cancel)
    q.put("kept")
    cancel.set()
    assert q.put("dropped") is False
    assert q.get() == "kept"
    with pytest.raises(ChannelClosed):
        q.get()


def test_get_times_out_with_queue_empty():
    q: CancellableQueue[str] = CancellableQueue(1, CancelSignal())
    with pytest.raises(queue.Empty):
        q.get(timeout=0.05)


def test_blocked_get_wakes_on_cancel():
    cancel = CancelSignal()
    q: CancellableQueue[str] = CancellableQueue(1, cancel)
    raised: list[type] = []

    def _consumer():
        try:
            q.get()
        except ChannelClosed as e:
            raised.append(type(e))

    t = threading.Thread(target=_consumer, daemon=True)
    t.start()
    time.sleep(0.05)
    cancel.set()
    t.join(timeout=2)
    assert raised == [ChannelClosed]


def test_offer_is_single_slot_and_never_blocks():
    cancel = CancelSignal()
    slot: CancellableQueue[Exception] = CancellableQueue(1, cancel)
    first, second = RuntimeError("first"), RuntimeError("second")
    assert slot.offer(first)
    assert not slot.offer(second)
    assert slot.get() is first


def test_offer_after_cancel_is_noop():
    cancel = CancelSignal()
    slot: CancellableQueue[Exception] = CancellableQueue(1, cancel)
    cancel.set()
    assert not slot.offer(RuntimeError("late"))
    assert len(slot) == 0


def test_unbounded_queue_and_close_ends_iteration():
    q: CancellableQueue[int] = CancellableQueue(0, CancelSignal())
    for i in range(500):
        assert q.offer(i)
    q.close()
    assert q.closed
    assert list(q) == list(range(500))


def test_offer_coalesced_merges_only_with_newest_item():
    cancel = CancelSignal()
    q: CancellableQueue[str] = CancellableQueue(0, cancel)
    for item in ("write", "write", "rename", "write", "write"):
        assert q.offer_coalesced(item)
    assert len(q) == 3
    assert [q.get(), q.get(), q.get()] == ["write", "rename", "write"]

    cancel.set()
    assert not q.offer_coalesced("write")


def test_offer_coalesced_on_full_queue_merges_or_refuses():
    q: CancellableQueue[str] = CancellableQueue(1, CancelSignal())
    assert q.offer_coalesced("write")
    assert q.offer_coalesced("write")
    assert not q.offer_coalesced("rename")
    assert len(q) == 1
