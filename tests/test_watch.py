"""Tests for watch() — background work delivered back as cell updates."""

import queue
import threading

import pytest

from cellspace import NoActiveSession, Observable, Session, reaction, watch


def _drain(pending, until, timeout=2.0):
    """Run marshaled callbacks on this thread until `until` is set."""
    while not until.is_set() or not pending.empty():
        try:
            fn = pending.get(timeout=timeout)
        except queue.Empty:
            break
        fn()


class TestAutoMarshal:
    """Observable.set() marshals from background threads."""

    def test_background_thread_marshals(self, session):
        pending = queue.Queue()
        session.set_scheduler(pending.put)
        v = Observable(0)
        done = threading.Event()

        def bg():
            v.set(99)
            done.set()

        threading.Thread(target=bg).start()
        done.wait(timeout=2)
        assert v.get() == 0  # not applied until the owner thread runs it
        _drain(pending, done)
        assert v.get() == 99

    def test_no_scheduler_is_direct(self, session):
        v = Observable(0)
        t = threading.Thread(target=lambda: v.set(42))
        t.start()
        t.join()
        assert v.get() == 42


class TestWatch:
    """watch() runs a function in a daemon thread."""

    def test_function_runs(self, session):
        ran = threading.Event()
        watch(lambda: ran.set())
        assert ran.wait(timeout=2)

    def test_requires_session(self):
        with pytest.raises(NoActiveSession):
            watch(lambda: None)

    def test_sees_active_session(self, session):
        from cellspace._tracking import current_session

        seen = []
        done = threading.Event()

        def work():
            seen.append(current_session.get())
            done.set()

        watch(work)
        done.wait(timeout=2)
        assert seen == [session]

    def test_dispose_flag(self, session):
        handle = watch(lambda: None)
        assert not handle.disposed
        handle.dispose()
        assert handle.disposed

    def test_session_close_disposes_handles(self):
        s = Session()
        handle = watch(lambda: None, session=s)
        s.close()
        assert handle.disposed


class TestWatchWithReaction:
    def test_reaction_fires_on_owner_thread(self, session):
        pending = queue.Queue()
        session.set_scheduler(pending.put)
        health = Observable(True)
        effects = []
        done = threading.Event()

        reaction(lambda: health.get(), lambda v: effects.append((v, threading.current_thread())))

        def check():
            health.set(False)
            done.set()

        watch(check)
        _drain(pending, done)
        assert effects == [(False, threading.current_thread())]
