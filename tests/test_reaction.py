"""Tests for Reaction, autorun, and reaction."""

import logging

import pytest

from cellspace import Computed, Observable, autorun, reaction, transaction


class TestAutorun:
    def test_runs_immediately(self, session):
        o = Observable(10)
        log = []
        autorun(lambda: log.append(o.get()))
        assert log == [10]

    def test_reruns_on_change(self, session):
        o = Observable(10)
        log = []
        autorun(lambda: log.append(o.get()))
        o.set(20)
        assert log == [10, 20]

    def test_dispose_stops(self, session):
        o = Observable(10)
        log = []
        r = autorun(lambda: log.append(o.get()))
        r.dispose()
        assert r.disposed
        o.set(20)
        assert log == [10]  # no additional run

    def test_writes_from_effects_run_in_a_later_round(self, session):
        """An effect that writes a source cell triggers another flush round."""
        celsius = Observable(0)
        fahrenheit = Observable(32)
        log = []
        autorun(lambda: fahrenheit.set(celsius.get() * 9 / 5 + 32))
        autorun(lambda: log.append(fahrenheit.get()))
        celsius.set(100)
        assert log == [32, 212]


class TestReaction:
    def test_no_initial_effect(self, session):
        """Without fire_immediately, effect doesn't run on setup."""
        o = Observable("a")
        effects = []
        reaction(lambda: o.get(), lambda v: effects.append(v))
        assert effects == []

    def test_fires_on_change(self, session):
        o = Observable("a")
        effects = []
        reaction(lambda: o.get(), lambda v: effects.append(v))
        o.set("b")
        assert effects == ["b"]

    def test_fire_immediately(self, session):
        o = Observable("a")
        effects = []
        reaction(lambda: o.get(), lambda v: effects.append(v), fire_immediately=True)
        assert effects == ["a"]

    def test_dedup_effect(self, session):
        """Effect only fires when data_fn result actually changes."""
        o = Observable(1)
        effects = []
        reaction(
            lambda: "even" if o.get() % 2 == 0 else "odd",
            lambda v: effects.append(v),
        )
        o.set(3)  # still odd
        assert effects == []
        o.set(4)  # now even
        assert effects == ["even"]

    def test_dispose(self, session):
        o = Observable(1)
        effects = []
        r = reaction(lambda: o.get(), lambda v: effects.append(v))
        o.set(2)
        assert effects == [2]
        r.dispose()
        o.set(3)
        assert effects == [2]  # no more effects

    def test_effects_run_after_all_data_is_collected(self, session):
        """No effect fires until every queued sink has pulled its data."""
        o = Observable(1)
        doubled = Computed(lambda: o.get() * 2)
        order = []
        reaction(lambda: o.get(), lambda v: order.append(("first", v, doubled.state.value)))
        reaction(lambda: doubled.get(), lambda v: order.append(("second", v)))
        with transaction():
            o.set(5)
        assert order == [("first", 5, "clean"), ("second", 10)]


class TestFlushErrors:
    def test_sibling_sinks_run_when_one_raises(self, session):
        o = Observable(1)
        log = []
        autorun(lambda: 10 // o.get())
        autorun(lambda: log.append(o.get()))
        with pytest.raises(ZeroDivisionError):
            o.set(0)
        assert log == [1, 0]
        assert not session.closed

    def test_first_error_raised_later_ones_logged(self, session, caplog):
        o = Observable(1)
        autorun(lambda: 10 // o.get())
        autorun(lambda: {1: "one"}[o.get()])
        with caplog.at_level(logging.ERROR, logger="cellspace.tracking"):
            with pytest.raises(ZeroDivisionError):
                o.set(0)
        assert "failed during the same flush" in caplog.text

    def test_failing_effect_does_not_stop_siblings(self, session):
        o = Observable(1)
        log = []

        def boom(value):
            raise ValueError(value)

        reaction(lambda: o.get(), boom)
        reaction(lambda: o.get(), log.append)
        with pytest.raises(ValueError):
            o.set(2)
        with pytest.raises(ValueError):
            o.set(3)
        assert log == [2, 3]

    def test_effect_write_supersedes_queued_effect(self, session):
        """A sink re-queued by an earlier effect only emits its fresh value."""
        o = Observable(1)
        seen = []
        reaction(lambda: o.get(), lambda v: o.set(10) if v == 2 else None)
        reaction(lambda: o.get(), seen.append)
        o.set(2)
        assert seen == [10]
        assert o.peek() == 10
