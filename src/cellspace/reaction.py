"""Reactions — sinks that turn cell changes into side effects.

Computed cells are lazy; sinks are what pull them. An invalidated sink is
queued on its session and runs when the current batch flushes: the data
side of every queued sink is evaluated first, then effects fire.

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any cell it read changes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, TypeVar

from cellspace._anchor import CellState
from cellspace._tracking import begin_batch, current_derivation, end_batch
from cellspace.observable import Cell

if TYPE_CHECKING:
    from cellspace.session import Session

T = TypeVar("T")

_UNSET = object()


class Reaction(Cell):
    """A reactive side effect that re-runs when its dependencies change."""

    __slots__ = ()

    def __init__(
        self,
        fn: Callable[[], None],
        *,
        session: Session | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(session, name or getattr(fn, "__name__", None))
        anchor = self._anchor
        anchor.derivation_fns[self._id] = fn
        anchor.dependencies[self._id] = {}
        anchor.states[self._id] = CellState.CLEAN

    @property
    def disposed(self) -> bool:
        return self._session.closed or self.state is CellState.DESTROYED

    def _invalidate(self) -> None:
        if not self.disposed:
            self._anchor.pending[self] = None

    def _collect(self) -> bool:
        return not self.disposed

    def _emit(self) -> None:
        if not self.disposed:
            self._track_run(self._anchor.derivation_fns[self._id])

    def _track_run(self, fn: Callable[[], T]) -> T:
        """Run fn as this sink, replacing its dependency set."""
        anchor = self._anchor
        for dep in anchor.dependencies[self._id]:
            dep._remove_observer(self)
        anchor.dependencies[self._id] = {}

        token = current_derivation.set(self)
        try:
            return fn()
        finally:
            current_derivation.reset(token)

    def _start(self) -> None:
        with self._session.guard():
            anchor = self._anchor
            begin_batch(anchor)
            try:
                self._emit()
            finally:
                end_batch(anchor)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name}, {'disposed' if self.disposed else 'active'})"


class DataReaction(Reaction):
    """reaction(data_fn, effect_fn) implementation.

    Tracks data_fn's dependencies. When they change, re-runs data_fn during
    the collect phase; if the result differs from last time, effect_fn fires
    during the effect phase.
    """

    __slots__ = ("_effect_fn", "_last_value", "_next_value")

    def __init__(
        self,
        data_fn: Callable[[], T],
        effect_fn: Callable[[T], None],
        *,
        session: Session | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(data_fn, session=session, name=name)
        self._effect_fn = effect_fn
        self._last_value = _UNSET
        self._next_value = _UNSET

    def _collect(self) -> bool:
        if self.disposed:
            return False
        value = self._track_run(self._anchor.derivation_fns[self._id])
        if self._last_value is not _UNSET and value == self._last_value:
            return False
        self._next_value = value
        return True

    def _emit(self) -> None:
        if self.disposed or self._next_value is _UNSET:
            return
        value, self._next_value = self._next_value, _UNSET
        self._last_value = value
        self._effect_fn(value)

    def _start(self, fire_immediately: bool) -> None:
        with self._session.guard():
            if fire_immediately:
                anchor = self._anchor
                begin_batch(anchor)
                try:
                    if self._collect():
                        anchor.effects[self] = None
                finally:
                    end_batch(anchor)
            else:
                # Establish dependencies but suppress the initial effect
                self._last_value = self._track_run(self._anchor.derivation_fns[self._id])


def autorun(fn: Callable[[], None], *, session: Session | None = None) -> Reaction:
    """Run fn immediately, then re-run whenever any cell it reads changes.

    Returns the Reaction (call .dispose() to stop).

    Usage:
        counter = Observable(0)
        log = []

        r = autorun(lambda: log.append(counter.get()))
        # log == [0] — ran immediately

        counter.set(1)
        # log == [0, 1] — re-ran because counter changed

        r.dispose()
        counter.set(2)
        # log == [0, 1] — stopped
    """
    r = Reaction(fn, session=session)
    r._start()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
    session: Session | None = None,
) -> DataReaction:
    """Track data_fn's cells; call effect_fn when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value*
    changes, not on every invalidation.

    Usage:
        first = Observable("Alice")
        last = Observable("Smith")

        effects = []
        r = reaction(
            lambda: f"{first.get()} {last.get()}",
            lambda name: effects.append(name),
        )
        # effects == [] — data_fn ran to establish deps, effect held back

        first.set("Bob")
        # effects == ["Bob Smith"]

        r.dispose()
    """
    r = DataReaction(data_fn, effect_fn, session=session)
    r._start(fire_immediately)
    return r
