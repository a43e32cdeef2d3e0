"""Computed values — derived cells with automatic dependency tracking.

A Computed wraps a function. When evaluated, it records exactly the cells
the function read on this run (the previous set is discarded, so a branch
that stops reading a cell also stops depending on it) and caches the
result. When any dependency changes the cell only goes stale; the next
read recomputes it.

    UNINITIALIZED -> COMPUTING -> CLEAN -> STALE -> COMPUTING -> CLEAN ...
                                    any -> DESTROYED

Reading a cell that is already COMPUTING means the graph has a cycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from cellspace._anchor import CellState
from cellspace._tracking import current_derivation, evaluation_stack, notify, track
from cellspace.errors import CyclicDependency
from cellspace.observable import Cell

if TYPE_CHECKING:
    from cellspace.session import Session

T = TypeVar("T")


class Computed(Cell, Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ()

    def __init__(
        self,
        fn: Callable[[], T],
        *,
        session: Session | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(session, name or getattr(fn, "__name__", None))
        anchor = self._anchor
        anchor.derivation_fns[self._id] = fn
        anchor.dependencies[self._id] = {}
        anchor.states[self._id] = CellState.UNINITIALIZED

    @property
    def _fn(self) -> Callable[[], T]:
        return self._anchor.derivation_fns[self._id]

    @property
    def _dependencies(self) -> dict:
        return self._anchor.dependencies[self._id]

    def get(self) -> T:
        """Read the computed value. Recomputes if stale."""
        with self._session.guard():
            self._check()
            anchor = self._anchor
            if anchor.states[self._id] is CellState.COMPUTING:
                stack = evaluation_stack.get()
                start = stack.index(self) if self in stack else 0
                path = [cell.name for cell in stack[start:]] + [self.name]
                raise CyclicDependency(path)

            track(self)
            if anchor.states[self._id] is not CellState.CLEAN:
                self._recompute()
            return anchor.values[self._id]

    def _recompute(self) -> None:
        """Re-evaluate the function, replacing the tracked dependency set."""
        anchor = self._anchor
        for dep in anchor.dependencies[self._id]:
            dep._remove_observer(self)
        anchor.dependencies[self._id] = {}
        anchor.states[self._id] = CellState.COMPUTING

        token = current_derivation.set(self)
        stack_token = evaluation_stack.set(evaluation_stack.get() + (self,))
        try:
            value = self._fn()
        except BaseException:
            if anchor.states.get(self._id) is CellState.COMPUTING:
                anchor.states[self._id] = CellState.STALE
                anchor.errored[self._id] = None
            raise
        finally:
            evaluation_stack.reset(stack_token)
            current_derivation.reset(token)

        anchor.values[self._id] = value
        anchor.states[self._id] = CellState.CLEAN
        anchor.errored.pop(self._id, None)

    def _invalidate(self) -> None:
        """Called when a dependency changed.

        Marks stale and propagates to our own observers. We don't recompute
        eagerly — that happens on next .get(). A cell whose last run raised
        is already stale but its readers still need the news.
        """
        anchor = self._anchor
        if anchor.states.get(self._id) is CellState.CLEAN or self._id in anchor.errored:
            anchor.errored.pop(self._id, None)
            anchor.states[self._id] = CellState.STALE
            notify(anchor, self._id)

    def __repr__(self) -> str:
        state = self._anchor.states.get(self._id)
        if state is CellState.CLEAN:
            return f"Computed({self.name}, cached={self._anchor.values[self._id]!r})"
        return f"Computed({self.name}, {state.value if state else 'destroyed'})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        counter = Observable(0)

        @computed
        def doubled():
            return counter.get() * 2

        doubled.get()  # 0
        counter.set(5)
        doubled.get()  # 10
    """
    return Computed(fn)
