"""Actions and transactions — batched writes on the active session.

Wrapping writes in an @action or `with transaction()` defers every sink
until the outermost scope exits, so sinks see all the writes at once and
never an intermediate state.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import Callable, ParamSpec, TypeVar

from cellspace._tracking import current_session
from cellspace.errors import NoActiveSession

P = ParamSpec("P")
R = TypeVar("R")


def _active():
    session = current_session.get()
    if session is None:
        raise NoActiveSession("transaction() needs an active session")
    return session


def action(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: batch all writes inside fn on the active session.

    Usage:
        counter_a = Observable(0)
        counter_b = Observable(0)

        @action
        def swap():
            a, b = counter_a.get(), counter_b.get()
            counter_a.set(b)
            counter_b.set(a)
            # sinks see both changes at once, not one at a time
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with _active().transaction():
            return fn(*args, **kwargs)

    return wrapper


@contextmanager
def transaction():
    """Context manager for batching writes on the active session.

    Usage:
        with transaction():
            counter_a.set(1)
            counter_b.set(2)
            # sinks fire here, after both are set
    """
    with _active().transaction():
        yield
