"""Composition root — assembles module instances and drives the event loop.

The root is the only writer of source cells. Each external event
`(qualified_id, value)` is applied inside one batch: the control's cell is
updated, its dependents go stale, and the flush recomputes only what the
rendered output slots pull. The resulting deltas are returned to the
caller and pushed to `deltas` for the renderer.

Usage:
    root = CompositionRoot()
    root.mount(picker, "a")
    root.mount(picker, "b")
    root.dispatch("a.choice", "red")   # -> [Delta("a.summary", ...)]
    root.close()
"""

from __future__ import annotations

import logging
from typing import Iterable

from cellspace import namespace
from cellspace.module import Module, ModuleInstance, instantiate
from cellspace.render import Delta, Render
from cellspace.session import Session
from cellspace.stream import EventStream
from cellspace.ui import OUTPUT, Element, check_unique

logger = logging.getLogger("cellspace.root")


class CompositionRoot:
    """Top-level assembly of one session's module instances."""

    def __init__(self, session: Session | None = None, *, name: str | None = None) -> None:
        self.session = session if session is not None else Session(name)
        self.tree = Element("body")
        self.instances: dict[str, ModuleInstance] = {}
        self.renders: dict[str, Render] = {}
        self.rendered: dict[str, object] = {}
        self.deltas: EventStream[Delta] = EventStream()
        self._elements: dict[str, Element] = {}
        self._hidden: set[str] = set()
        self._collecting: list[Delta] | None = None

    # ─── Sink host ──────────────────────────────────────────────────────────

    def attach(self, render: Render) -> None:
        self.renders[render.slot] = render
        if self.is_rendered(render.slot):
            render.activate()

    def apply(self, delta: Delta) -> None:
        self.rendered[delta.id] = delta.value
        if self._collecting is not None:
            self._collecting.append(delta)
        self.deltas.emit(delta)

    def detach(self, scope_id: str) -> None:
        for slot in [s for s in self.renders if namespace.is_within(scope_id, s)]:
            self.renders.pop(slot).suspend()
            self.rendered.pop(slot, None)
        self._hidden = {s for s in self._hidden if not namespace.is_within(scope_id, s)}

    def is_rendered(self, slot: str) -> bool:
        """True when slot is an output element of the tree and not hidden."""
        element = self._elements.get(slot)
        return element is not None and element.kind == OUTPUT and slot not in self._hidden

    # ─── Composition ────────────────────────────────────────────────────────

    def mount(self, module: Module, id: str, **args) -> ModuleInstance:
        """Instantiate module under id at the top level and render its outputs."""
        with self.session.guard():
            instance = instantiate(module, id, session=self.session, host=self, **args)
            self.tree.children.append(instance.tree)
            try:
                check_unique(self.tree)
                self.instances[id] = instance
                self._index()
                collected = self._collect(self._activate_within, instance.id)
            except BaseException:
                self._rollback(id, instance)
                raise
            logger.info(
                "Mounted %s as %r: %d output slots rendered",
                module.name, instance.id, len(collected),
            )
            return instance

    def _rollback(self, id: str, instance: ModuleInstance) -> None:
        self.tree.children = [c for c in self.tree.children if c is not instance.tree]
        if self.instances.get(id) is instance:
            del self.instances[id]
        instance.destroy()
        self._index()
        logger.debug("Rolled back mount of %r", id)

    def unmount(self, id: str) -> None:
        """Tear down a top-level instance and remove its tree."""
        with self.session.guard():
            instance = self.instances.pop(id)
            instance.destroy()
            self.tree.children.remove(instance.tree)
            self._index()
            logger.debug("Unmounted %r", id)

    def _index(self) -> None:
        self._elements = {el.id: el for el in self.tree.walk() if el.id is not None}

    def _activate_within(self, scope_id: str) -> None:
        with self.session.transaction():
            for slot, render in self.renders.items():
                if namespace.is_within(scope_id, slot) and self.is_rendered(slot):
                    render.activate()

    # ─── Events ─────────────────────────────────────────────────────────────

    def dispatch(self, qualified: str, value: object) -> list[Delta]:
        """Apply one interface event. Returns the deltas it produced."""
        return self.dispatch_many([(qualified, value)])

    def dispatch_many(self, events: Iterable[tuple[str, object]]) -> list[Delta]:
        """Apply several events as one batch; sinks see only the final state."""
        events = list(events)
        with self.session.guard():
            cells = [(self.session.control(q), q, v) for q, v in events]
            return self._collect(self._write, cells)

    def _write(self, cells) -> None:
        with self.session.transaction():
            for cell, qualified, value in cells:
                cell._set_direct(value)
                element = self._elements.get(qualified)
                if element is not None:
                    element.value = value

    def set_visible(self, slot: str, visible: bool) -> list[Delta]:
        """Show or hide an output slot. Hidden slots never pull the graph."""
        with self.session.guard():
            namespace.split(slot)
            if visible:
                self._hidden.discard(slot)
                render = self.renders.get(slot)
                if render is None or not self.is_rendered(slot):
                    return []
                return self._collect(self._activate_render, render)
            self._hidden.add(slot)
            render = self.renders.get(slot)
            if render is not None:
                render.suspend()
            return []

    def _activate_render(self, render: Render) -> None:
        with self.session.transaction():
            render.activate()

    def _collect(self, fn, arg) -> list[Delta]:
        previous, self._collecting = self._collecting, []
        try:
            fn(arg)
            return self._collecting
        finally:
            self._collecting = previous

    # ─── Lifecycle ──────────────────────────────────────────────────────────

    def close(self) -> None:
        """Release every cell and observer of the session in one pass."""
        if self.session.closed:
            return
        self.deltas.dispose()
        self.session.close()
        self.instances.clear()
        self.renders.clear()
        logger.debug("Closed root of %s", self.session.name)

    def __enter__(self) -> CompositionRoot:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"CompositionRoot({self.session.name!r}, {len(self.instances)} instances)"
