"""Render sinks — the terminal nodes that fill output slots.

A Render is a reaction whose effect is an interface delta. Only rendered
sinks pull the graph: a Render for a slot that is not on screen is
suspended, holds no dependencies and never causes a recompute.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from cellspace import namespace
from cellspace.reaction import _UNSET, DataReaction

if TYPE_CHECKING:
    from cellspace.session import Session


@dataclass(frozen=True)
class Delta:
    """One interface update: the output slot id and its new content."""

    id: str
    value: object


class Render(DataReaction):
    __slots__ = ("slot", "_host", "_active")

    def __init__(self, slot: str, fn: Callable[[], object], host, *, session: Session | None = None) -> None:
        super().__init__(fn, self._deliver, session=session, name=slot)
        self.slot = slot
        self._host = host
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def _deliver(self, value: object) -> None:
        self._host.apply(Delta(self.slot, value))

    def _invalidate(self) -> None:
        if self._active:
            super()._invalidate()

    def activate(self) -> None:
        """Start pulling: render now and whenever a dependency changes."""
        if self._active or self.disposed:
            return
        self._active = True
        self._last_value = _UNSET
        self._start(fire_immediately=True)

    def suspend(self) -> None:
        """Stop pulling and drop every dependency until activated again."""
        if not self._active:
            return
        self._active = False
        if self._session.closed:
            return
        anchor = self._anchor
        if self._id in anchor.dependencies:
            for dep in anchor.dependencies[self._id]:
                dep._remove_observer(self)
            anchor.dependencies[self._id] = {}
        anchor.pending.pop(self, None)
        anchor.effects.pop(self, None)


class LocalHost:
    """Sink host for module instances used without a composition root.

    Every slot renders immediately; the latest value per slot is kept in
    `rendered`.
    """

    def __init__(self) -> None:
        self.rendered: dict[str, object] = {}
        self.renders: dict[str, Render] = {}

    def attach(self, render: Render) -> None:
        self.renders[render.slot] = render
        render.activate()

    def apply(self, delta: Delta) -> None:
        self.rendered[delta.id] = delta.value

    def detach(self, scope_id: str) -> None:
        for slot in [s for s in self.renders if namespace.is_within(scope_id, s)]:
            del self.renders[slot]
            self.rendered.pop(slot, None)
