"""Data anchor — plain Python structures that hold one session's reactive state.

Cells are thin handles; everything they know lives here, keyed by cell id.
Each Session owns exactly one Anchor, so no cell state is shared between
sessions and teardown is a single pass over these dicts.
"""

from __future__ import annotations

import enum
import itertools


class CellState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    STALE = "stale"
    COMPUTING = "computing"
    CLEAN = "clean"
    DESTROYED = "destroyed"


class Anchor:
    __slots__ = (
        "values",
        "observers",
        "dependencies",
        "states",
        "errored",
        "derivation_fns",
        "owners",
        "names",
        "cells",
        "batch_depth",
        "pending",
        "effects",
        "scheduler",
        "scheduler_thread",
        "_id_counter",
    )

    def __init__(self) -> None:
        # Source and computed values (computed: the cached result)
        self.values: dict[int, object] = {}
        # cell_id -> ordered set of downstream derivations (dict keys)
        self.observers: dict[int, dict] = {}
        # deriv_id -> ordered set of upstream cells
        self.dependencies: dict[int, dict] = {}
        self.states: dict[int, CellState] = {}
        # Computed cells whose last run raised; they still propagate invalidation
        self.errored: dict[int, None] = {}
        self.derivation_fns: dict[int, object] = {}
        # cell_id -> qualified id of the scope that created it
        self.owners: dict[int, str] = {}
        self.names: dict[int, str] = {}
        # cell_id -> handle, so teardown can reach every cell
        self.cells: dict[int, object] = {}

        # Batching
        self.batch_depth: int = 0
        self.pending: dict = {}
        self.effects: dict = {}

        # Cross-thread marshaling for source writes
        self.scheduler = None
        self.scheduler_thread = None

        self._id_counter = itertools.count(1)

    def new_id(self) -> int:
        return next(self._id_counter)

    def register(self, cell, owner: str, name: str) -> int:
        cell_id = self.new_id()
        self.cells[cell_id] = cell
        self.owners[cell_id] = owner
        self.names[cell_id] = name
        self.observers[cell_id] = {}
        return cell_id

    def forget(self, cell_id: int) -> None:
        """Drop every trace of a cell. Its handle now reports DESTROYED."""
        for dep in self.dependencies.pop(cell_id, {}):
            dep._remove_observer(self.cells[cell_id])
        self.observers.pop(cell_id, None)
        self.values.pop(cell_id, None)
        self.derivation_fns.pop(cell_id, None)
        self.owners.pop(cell_id, None)
        self.names.pop(cell_id, None)
        cell = self.cells.pop(cell_id, None)
        self.pending.pop(cell, None)
        self.effects.pop(cell, None)
        self.errored.pop(cell_id, None)
        # Ids are never reused, so a missing state means DESTROYED
        self.states.pop(cell_id, None)

    def clear(self) -> None:
        self.values.clear()
        self.observers.clear()
        self.dependencies.clear()
        self.derivation_fns.clear()
        self.owners.clear()
        self.names.clear()
        self.cells.clear()
        self.pending.clear()
        self.effects.clear()
        self.errored.clear()
        self.states.clear()
