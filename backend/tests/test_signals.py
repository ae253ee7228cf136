"""Tests for the publish/subscribe signal."""

from mediasync.services.signals import Signal


def test_emit_reaches_all_subscribers():
    signal = Signal("test")
    a, b = [], []
    signal.subscribe(a.append)
    signal.subscribe(b.append)

    signal.emit(1)

    assert a == [1]
    assert b == [1]


def test_same_callback_twice_gets_two_handles():
    signal = Signal("test")
    seen = []
    first = signal.subscribe(seen.append)
    signal.subscribe(seen.append)

    first()
    signal.emit("x")

    assert seen == ["x"]


def test_unsubscribe_is_idempotent():
    signal = Signal("test")
    unsubscribe = signal.subscribe(lambda value: None)
    unsubscribe()
    unsubscribe()
    assert len(signal) == 0


def test_failing_subscriber_does_not_block_others():
    signal = Signal("test")
    seen = []

    def broken(value):
        raise RuntimeError("bug")

    signal.subscribe(broken)
    signal.subscribe(seen.append)

    signal.emit(42)

    assert seen == [42]


def test_unsubscribe_during_emit():
    signal = Signal("test")
    seen = []
    handles = {}

    def once(value):
        seen.append(value)
        handles["once"]()

    handles["once"] = signal.subscribe(once)
    signal.emit(1)
    signal.emit(2)

    assert seen == [1]
