"""Tests for EventStream — the delta stream with operator chaining."""

from cellspace import Delta, EventStream


class TestEmitSubscribe:
    """Core emit/subscribe behavior."""

    def test_subscribe_receives_emitted_values(self):
        stream = EventStream()
        received = []
        stream.subscribe(lambda v: received.append(v))
        stream.emit(1)
        stream.emit(2)
        assert received == [1, 2]

    def test_multiple_subscribers(self):
        stream = EventStream()
        a, b = [], []
        stream.subscribe(lambda v: a.append(v))
        stream.subscribe(lambda v: b.append(v))
        stream.emit("x")
        assert a == ["x"]
        assert b == ["x"]

    def test_unsubscribe(self):
        stream = EventStream()
        received = []
        unsub = stream.subscribe(lambda v: received.append(v))
        stream.emit(1)
        unsub()
        stream.emit(2)
        assert received == [1]

    def test_unsubscribe_idempotent(self):
        stream = EventStream()
        unsub = stream.subscribe(lambda v: None)
        unsub()
        unsub()  # should not raise


class TestOperators:
    def test_map(self):
        stream = EventStream()
        received = []
        stream.map(lambda d: d.value).subscribe(received.append)
        stream.emit(Delta("a.plot", 3))
        assert received == [3]

    def test_filter_then_map(self):
        stream = EventStream()
        result = stream.filter(lambda v: v > 0).map(lambda v: v * 10)
        received = []
        result.subscribe(lambda v: received.append(v))
        stream.emit(-1)
        stream.emit(3)
        assert received == [30]

    def test_within_scope(self):
        stream = EventStream()
        received = []
        stream.within("a").subscribe(received.append)
        stream.emit(Delta("a.plot", 1))
        stream.emit(Delta("ab.plot", 2))
        stream.emit(Delta("a.inner.plot", 3))
        assert [d.value for d in received] == [1, 3]


class TestDispose:
    """dispose() tears down streams and children."""

    def test_emit_after_dispose_is_noop(self):
        stream = EventStream()
        received = []
        stream.subscribe(lambda v: received.append(v))
        stream.dispose()
        stream.emit(1)
        assert received == []

    def test_dispose_propagates_to_children(self):
        parent = EventStream()
        child = parent.map(lambda v: v)
        grandchild = child.filter(lambda v: True)

        parent.dispose()

        assert child.disposed
        assert grandchild.disposed

    def test_child_dispose_detaches_from_parent(self):
        parent = EventStream()
        child = parent.map(lambda v: v)
        received_parent = []
        parent.subscribe(lambda v: received_parent.append(v))

        child.dispose()

        parent.emit(1)
        assert received_parent == [1]
        assert not parent.disposed
        assert len(parent._subscribers) == 1
