"""Session — the isolated runtime context for one live interface connection.

A Session owns its Anchor (every cell, observer registration and queued
sink), the root of its namespace tree and the source cells behind the
interface controls. Nothing here is shared between sessions: two sessions
may run on separate workers without any locking.

Lifecycle: created open, torn down once by close(). After close every
operation on the session or any of its cells raises SessionClosed.
"""

from __future__ import annotations

import itertools
import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from cellspace import namespace
from cellspace._anchor import Anchor
from cellspace._tracking import begin_batch, current_session, end_batch
from cellspace.errors import CellspaceError, DuplicateIdentifier, SessionClosed, UnknownControl
from cellspace.namespace import Scope
from cellspace.observable import Observable

logger = logging.getLogger("cellspace.session")

_session_counter = itertools.count(1)


class Session:
    """Per-connection owner of a reactive graph."""

    def __init__(self, name: str | None = None) -> None:
        self.name = name or f"session-{next(_session_counter)}"
        self.scope = Scope()
        self._anchor = Anchor()
        self._controls: dict[str, Observable] = {}
        self._handles: list = []
        self._tokens: list = []
        self._depth = 0
        self._closed = False
        logger.debug("Opened %s", self.name)

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise SessionClosed(f"{self.name} is closed")

    # ─── Activation ─────────────────────────────────────────────────────────

    @contextmanager
    def activate(self) -> Iterator[Session]:
        """Make this the session new cells belong to for the duration of the block."""
        self._check_open()
        token = current_session.set(self)
        try:
            yield self
        finally:
            current_session.reset(token)

    def __enter__(self) -> Session:
        self._check_open()
        self._tokens.append(current_session.set(self))
        return self

    def __exit__(self, *exc_info) -> None:
        current_session.reset(self._tokens.pop())
        self.close()

    # ─── Error boundary and batching ────────────────────────────────────────

    @contextmanager
    def guard(self) -> Iterator[None]:
        """Entry point wrapper for every public operation on this session.

        A fatal error (cyclic dependency, duplicate identifier) reaching the
        outermost guard closes the session after it propagates, since the
        graph or namespace can no longer be trusted.
        """
        self._check_open()
        self._depth += 1
        try:
            yield
        except CellspaceError as exc:
            if exc.fatal and self._depth == 1 and not self._closed:
                logger.error("Closing %s after fatal error: %s", self.name, exc)
                self.close()
            raise
        finally:
            self._depth -= 1

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Batch writes; sinks run once when the outermost transaction exits."""
        with self.guard():
            begin_batch(self._anchor)
            try:
                yield
            finally:
                end_batch(self._anchor)

    def set_scheduler(self, scheduler) -> None:
        """Marshal cross-thread Observable.set() calls through scheduler.

        Call once from the thread that drives the session:
            session.set_scheduler(app.call_from_thread)
        """
        self._check_open()
        self._anchor.scheduler = scheduler
        self._anchor.scheduler_thread = threading.current_thread()

    # ─── Controls ───────────────────────────────────────────────────────────

    def register_control(self, qualified: str, value: object = None) -> Observable:
        """Create the source cell behind an interface control."""
        self._check_open()
        namespace.split(qualified)
        if qualified in self._controls:
            raise DuplicateIdentifier(qualified)
        cell = Observable(value, session=self, name=qualified)
        self._controls[qualified] = cell
        return cell

    def control(self, qualified: str) -> Observable:
        self._check_open()
        try:
            return self._controls[qualified]
        except KeyError:
            raise UnknownControl(qualified) from None

    def has_control(self, qualified: str) -> bool:
        return qualified in self._controls

    def controls(self) -> dict[str, object]:
        """Snapshot of current control values, keyed by qualified id."""
        self._check_open()
        return {key: cell.peek() for key, cell in self._controls.items()}

    # ─── Teardown ───────────────────────────────────────────────────────────

    def adopt(self, handle) -> None:
        """Dispose handle when the session closes."""
        self._handles.append(handle)

    def destroy_scope(self, scope_id: str) -> int:
        """Destroy every cell and control created under scope_id. Returns the count."""
        self._check_open()
        anchor = self._anchor
        doomed = [
            cell_id for cell_id, owner in anchor.owners.items()
            if namespace.is_within(scope_id, owner)
        ]
        for key in [k for k in self._controls if namespace.is_within(scope_id, k)]:
            cell = self._controls.pop(key)
            if cell._id not in doomed:
                doomed.append(cell._id)
        for cell_id in doomed:
            anchor.forget(cell_id)
        return len(doomed)

    def close(self) -> None:
        """Release every cell and observer registration, then mark closed."""
        if self._closed:
            return
        cell_count = len(self._anchor.cells)
        for handle in self._handles:
            handle.dispose()
        self._handles.clear()
        self._anchor.clear()
        self._controls.clear()
        self.scope = Scope()
        self._closed = True
        logger.debug("Closed %s (%d cells released)", self.name, cell_count)

    def __repr__(self) -> str:
        return f"Session({self.name!r}, {'closed' if self._closed else 'open'})"
