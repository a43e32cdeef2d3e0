"""Textual integration for cellspace. Opt-in — requires textual.

The composition root never renders; this module lets a Textual app be the
renderer. Deltas are applied to widgets only while the widget tree is
queryable, are marshaled onto the app thread, and tolerate widgets that
have not been mounted yet. Widget change messages go the other way as
dispatched events.

Qualified ids contain "." which Textual ids cannot; use widget_id() when
composing widgets and forward() translates back.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable

from textual.css.query import NoMatches

from cellspace.namespace import from_widget_id, widget_id
from cellspace.render import Delta
from cellspace.root import CompositionRoot

logger = logging.getLogger("cellspace.textual")

__all__ = ["bind", "forward", "is_safe", "pause", "widget_id"]

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend delta delivery during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def bind(app, root: CompositionRoot, apply: Callable[[str, object], None]) -> Callable[[], None]:
    """Deliver root's deltas to apply(widget_id, value) on the app thread.

    Returns a disposer that unsubscribes.

    Usage:
        def apply(wid, value):
            app.query_one(f"#{wid}", Static).update(str(value))

        unbind = stx.bind(app, root, apply)
    """
    _main = threading.get_ident()

    def _guarded(delta: Delta) -> None:
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, delta)
        else:
            _safe(delta)

    def _safe(delta: Delta) -> None:
        try:
            apply(widget_id(delta.id), delta.value)
        except NoMatches:
            logger.debug("No widget for %s yet; delta dropped", delta.id)

    return root.deltas.subscribe(_guarded)


def forward(root: CompositionRoot, wid: str, value: object) -> list[Delta]:
    """Dispatch a widget change (e.g. Input.Changed) to the root.

    Usage:
        def on_input_changed(self, event):
            stx.forward(self.root, event.input.id, event.value)
    """
    return root.dispatch(from_widget_id(wid), value)
