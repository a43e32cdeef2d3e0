"""Push-based stream of interface deltas.

The composition root pushes every Delta it applies into an EventStream; an
external renderer subscribes to it. Operators return new streams chained
to their parent, and dispose() tears down the whole downstream chain.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from cellspace import namespace

T = TypeVar("T")
U = TypeVar("U")

Disposer = Callable[[], None]


class EventStream(Generic[T]):
    """Push-based event stream with operator chaining."""

    def __init__(self) -> None:
        self._subscribers: list[Callable[[T], None]] = []
        self._children: list[EventStream] = []
        self._disposed = False
        self._detach: Disposer | None = None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def emit(self, value: T) -> None:
        """Push a value to all subscribers, in subscription order."""
        if self._disposed:
            return
        for callback in list(self._subscribers):
            callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Register a callback. Returns a function that removes it."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def _derive(self, forward: Callable[[EventStream, T], None]) -> EventStream:
        child: EventStream = EventStream()
        self._children.append(child)
        unsubscribe = self.subscribe(lambda value: forward(child, value))

        def _detach() -> None:
            unsubscribe()
            if child in self._children:
                self._children.remove(child)

        child._detach = _detach
        return child

    def map(self, fn: Callable[[T], U]) -> EventStream[U]:
        """Transform events through fn."""
        return self._derive(lambda child, value: child.emit(fn(value)))

    def filter(self, fn: Callable[[T], bool]) -> EventStream[T]:
        """Only pass events where fn returns True."""
        return self._derive(lambda child, value: child.emit(value) if fn(value) else None)

    def within(self, scope_id: str) -> EventStream[T]:
        """Only deltas addressed to scope_id or anything nested under it."""
        return self.filter(lambda delta: namespace.is_within(scope_id, delta.id))

    def dispose(self) -> None:
        """Tear down this stream and all downstream children."""
        self._disposed = True
        self._subscribers.clear()
        for child in list(self._children):
            child.dispose()
        self._children.clear()
        if self._detach is not None:
            self._detach()
            self._detach = None
