"""watch() — run long work outside the reactive graph, in a daemon thread.

Recompute functions must stay fast and side-effect free. Anything slow is
handed to watch(): the thread runs with a copy of the caller's context (so
the active session is visible to it) and delivers its result back as an
ordinary Observable.set(), which the session scheduler marshals to the
owning thread. Handles are disposed when their session closes.
"""

from __future__ import annotations

import contextvars
from threading import Thread
from typing import TYPE_CHECKING, Callable

from cellspace._tracking import current_session
from cellspace.errors import NoActiveSession

if TYPE_CHECKING:
    from cellspace.session import Session


class WatchHandle:
    """Disposable handle for a managed daemon thread."""

    __slots__ = ("_disposed", "thread")

    def __init__(self) -> None:
        self._disposed = False
        self.thread: Thread | None = None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        """Signal the thread to stop. Check .disposed in your loop."""
        self._disposed = True


def watch(fn: Callable[[], None], *, session: Session | None = None) -> WatchHandle:
    """Run fn in a daemon thread owned by session. Returns WatchHandle.

    Usage:
        result = Observable(None)

        def load():
            rows = slow_query()
            if not handle.disposed:
                result.set(rows)

        handle = watch(load)
    """
    if session is None:
        session = current_session.get()
    if session is None:
        raise NoActiveSession("watch() needs a session to own the thread")
    session._check_open()

    handle = WatchHandle()
    session.adopt(handle)
    context = contextvars.copy_context()
    handle.thread = Thread(target=context.run, args=(fn,), daemon=True)
    handle.thread.start()
    return handle
