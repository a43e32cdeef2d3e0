"""Observable values — source cells that track their readers.

When an Observable is read inside a Computed or sink evaluation, the
dependency is registered automatically. When it changes, dependents are
invalidated and the session flushes once the write's batch closes.

All state lives in the session's Anchor — instances are thin handles
holding an _id and the owning session.

Thread safety: call session.set_scheduler() once from the thread that owns
the session. After that, any .set() from a background thread is marshaled.
Owner-thread .set() remains synchronous.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING, Generic, TypeVar

from cellspace import namespace
from cellspace._anchor import CellState
from cellspace._tracking import begin_batch, current_session, end_batch, notify, track
from cellspace.errors import CellDestroyed, NoActiveSession

if TYPE_CHECKING:
    from cellspace._anchor import Anchor
    from cellspace.session import Session

T = TypeVar("T")


def _resolve_session(session: Session | None) -> Session:
    if session is None:
        session = current_session.get()
    if session is None:
        raise NoActiveSession("cells must be created inside an active session")
    session._check_open()
    return session


class Cell:
    """Handle shared by every node of the reactive graph."""

    __slots__ = ("_id", "_session")

    def __init__(self, session: Session | None, name: str | None) -> None:
        self._session = _resolve_session(session)
        scope = namespace.current_scope()
        owner = scope.id if scope is not None else ""
        self._id = self._anchor.register(self, owner, name or type(self).__name__)

    @property
    def _anchor(self) -> Anchor:
        return self._session._anchor

    @property
    def name(self) -> str:
        return self._anchor.names.get(self._id, "<destroyed>")

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> CellState:
        return self._anchor.states.get(self._id, CellState.DESTROYED)

    def _check(self) -> None:
        self._session._check_open()
        if self.state is CellState.DESTROYED:
            raise CellDestroyed(f"{self.name} was destroyed with its module instance")

    def _remove_observer(self, observer) -> None:
        observers = self._anchor.observers.get(self._id)
        if observers is not None:
            observers.pop(observer, None)

    def invalidate(self) -> None:
        """Mark this cell's dependents stale. Nothing recomputes until read."""
        with self._session.guard():
            self._check()
            anchor = self._anchor
            begin_batch(anchor)
            try:
                self._invalidate()
            finally:
                end_batch(anchor)

    def _invalidate(self) -> None:
        notify(self._anchor, self._id)

    def dispose(self) -> None:
        """Destroy the cell. Dependents reading it afterwards get CellDestroyed."""
        if self._session.closed:
            return
        self._anchor.forget(self._id)


class Observable(Cell, Generic[T]):
    """A source cell holding a single value."""

    __slots__ = ()

    def __init__(self, value: T, *, session: Session | None = None, name: str | None = None) -> None:
        super().__init__(session, name)
        self._anchor.values[self._id] = value
        self._anchor.states[self._id] = CellState.CLEAN

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        with self._session.guard():
            self._check()
            track(self)
            return self._anchor.values[self._id]

    def peek(self) -> T:
        """Read the value without registering a dependency."""
        self._check()
        return self._anchor.values[self._id]

    def set(self, value: T) -> None:
        """Write a new value. Marshals through the session scheduler off-thread."""
        self._check()
        anchor = self._anchor
        if anchor.scheduler is not None and threading.current_thread() != anchor.scheduler_thread:
            anchor.scheduler(lambda v=value: self._set_direct(v))
        else:
            self._set_direct(value)

    def _set_direct(self, value: T) -> None:
        """Set value and invalidate dependents. Always runs on the owning thread."""
        if self._session.closed or self.state is CellState.DESTROYED:
            return
        with self._session.guard():
            anchor = self._anchor
            old = anchor.values[self._id]
            if old is value or old == value:
                return
            begin_batch(anchor)
            try:
                anchor.values[self._id] = value
                notify(anchor, self._id)
            finally:
                end_batch(anchor)

    def __repr__(self) -> str:
        if self._session.closed or self.state is CellState.DESTROYED:
            return f"Observable({self.name}, destroyed)"
        return f"Observable({self.name}={self._anchor.values[self._id]!r})"


def is_reactive(value: object) -> bool:
    """True for anything that must be read through its .get() accessor."""
    return isinstance(value, Cell)
