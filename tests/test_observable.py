"""Tests for Observable source cells."""

import pytest

from cellspace import CellState, NoActiveSession, Observable, Session, autorun


class TestObservable:
    def test_get_set(self, session):
        o = Observable(42)
        assert o.get() == 42
        o.set(100)
        assert o.get() == 100

    def test_dedup(self, session):
        """Setting the same value should not trigger observers."""
        o = Observable(42)
        log = []
        autorun(lambda: log.append(o.get()))
        assert log == [42]
        o.set(42)
        assert log == [42]  # no re-run

    def test_notifies_observers(self, session):
        o = Observable("hello")
        log = []
        autorun(lambda: log.append(o.get()))
        assert log == ["hello"]
        o.set("world")
        assert log == ["hello", "world"]

    def test_peek_does_not_track(self, session):
        o = Observable(1)
        log = []
        autorun(lambda: log.append(o.peek()))
        o.set(2)
        assert log == [1]

    def test_invalidate_reruns_observers(self, session):
        """In-place mutation plus invalidate() reaches readers."""
        items = Observable([1])
        log = []
        autorun(lambda: log.append(list(items.get())))
        items.peek().append(2)
        items.invalidate()
        assert log == [[1], [1, 2]]

    def test_state_is_clean(self, session):
        assert Observable(0).state is CellState.CLEAN

    def test_repr(self, session):
        o = Observable(5, name="count")
        assert "count=5" in repr(o)


class TestOwnership:
    def test_requires_active_session(self):
        with pytest.raises(NoActiveSession):
            Observable(1)

    def test_explicit_session(self):
        s = Session()
        o = Observable(1, session=s)
        assert o.session is s
        s.close()

    def test_belongs_to_active_session(self, session):
        assert Observable(1).session is session
