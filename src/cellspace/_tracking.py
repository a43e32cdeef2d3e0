"""Dependency tracking engine — the heart of cellspace.

Uses contextvars to track which cells are read during a computed/sink
evaluation, building the dependency graph automatically at first read.

Batching: every write happens inside a batch on its session's Anchor.
Invalidation only marks cells stale and queues sinks. When the outermost
batch exits, the flush runs in two phases: first every queued sink pulls
its data (recomputing stale cells lazily, once each) until nothing is
queued, then side effects fire. No effect ever observes a half-invalidated
graph.
"""

from __future__ import annotations

import contextvars
import logging
from typing import TYPE_CHECKING

from cellspace.errors import SessionIsolationError

if TYPE_CHECKING:
    from cellspace._anchor import Anchor
    from cellspace.session import Session

logger = logging.getLogger("cellspace.tracking")

# The currently-evaluating derivation (computed or sink).
# When set, any cell .get() registers itself as a dependency.
current_derivation: contextvars.ContextVar = contextvars.ContextVar(
    "current_derivation", default=None
)

# Computed cells on the current evaluation path, outermost first.
evaluation_stack: contextvars.ContextVar[tuple] = contextvars.ContextVar(
    "evaluation_stack", default=()
)

# The session new cells belong to when none is passed explicitly.
current_session: contextvars.ContextVar[Session | None] = contextvars.ContextVar(
    "current_session", default=None
)


def track(cell) -> None:
    """Register cell as an upstream dependency of the current derivation."""
    derivation = current_derivation.get()
    if derivation is None:
        return
    if derivation._session is not cell._session:
        raise SessionIsolationError(
            f"{derivation!r} cannot read {cell!r}: cells belong to different sessions"
        )
    anchor = cell._session._anchor
    anchor.observers[cell._id][derivation] = None
    anchor.dependencies[derivation._id][cell] = None


def notify(anchor: Anchor, cell_id: int) -> None:
    """Invalidate every downstream observer of cell_id."""
    for observer in list(anchor.observers.get(cell_id, ())):
        observer._invalidate()


def begin_batch(anchor: Anchor) -> None:
    """Enter a batching scope. Nested batches are supported."""
    anchor.batch_depth += 1


def end_batch(anchor: Anchor) -> None:
    """Exit a batching scope. When the outermost scope exits, flush queued sinks."""
    anchor.batch_depth -= 1
    if anchor.batch_depth == 0:
        _flush(anchor)


def _flush(anchor: Anchor) -> None:
    # Writes made by effects land in a new round of the same flush. A sink
    # that raises does not stop its siblings; the first error is re-raised
    # once the queues are drained.
    anchor.batch_depth += 1
    first_error: Exception | None = None
    try:
        while anchor.pending or anchor.effects:
            while anchor.pending:
                batch = list(anchor.pending)
                anchor.pending.clear()
                for sink in batch:
                    try:
                        if sink._collect():
                            anchor.effects[sink] = None
                    except Exception as exc:
                        first_error = _record(first_error, exc, sink)
            effects = list(anchor.effects)
            anchor.effects.clear()
            for sink in effects:
                # Re-queued by an earlier effect: its data is already outdated
                if sink in anchor.pending:
                    continue
                try:
                    sink._emit()
                except Exception as exc:
                    first_error = _record(first_error, exc, sink)
    except BaseException:
        anchor.pending.clear()
        anchor.effects.clear()
        raise
    finally:
        anchor.batch_depth -= 1
    if first_error is not None:
        raise first_error


def _record(first_error: Exception | None, exc: Exception, sink) -> Exception:
    if getattr(exc, "fatal", False):
        raise exc
    if first_error is None:
        return exc
    logger.error("Sink %r failed during the same flush: %s", sink, exc)
    return first_error


def get_pending_count(anchor: Anchor) -> int:
    """Number of sinks waiting to run. Useful for testing."""
    return len(anchor.pending) + len(anchor.effects)
