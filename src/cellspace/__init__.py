"""cellspace: reactive cells, namespaced modules and per-session composition."""

from importlib.metadata import version as _version

__version__ = _version("cellspace")

from cellspace._anchor import CellState
from cellspace.errors import (
    ArgumentKindMismatch,
    CellDestroyed,
    CellspaceError,
    CyclicDependency,
    DuplicateIdentifier,
    InvalidIdentifier,
    NoActiveSession,
    SessionClosed,
    SessionIsolationError,
    UnknownControl,
)
from cellspace.namespace import SEPARATOR, Scope, qualify, unqualify
from cellspace.observable import Observable
from cellspace.computed import Computed, computed
from cellspace.reaction import Reaction, autorun, reaction
from cellspace.action import action, transaction
from cellspace.session import Session
from cellspace.ui import Element, input_control, output_slot, tag
from cellspace.render import Delta
from cellspace.module import Module, ModuleContext, ModuleInstance, instantiate
from cellspace.root import CompositionRoot
from cellspace.watch import watch, WatchHandle
from cellspace.stream import EventStream
# textual bridge NOT auto-imported — opt-in only

__all__ = [
    "ArgumentKindMismatch",
    "CellDestroyed",
    "CellState",
    "CellspaceError",
    "CompositionRoot",
    "Computed",
    "CyclicDependency",
    "Delta",
    "DuplicateIdentifier",
    "Element",
    "EventStream",
    "InvalidIdentifier",
    "Module",
    "ModuleContext",
    "ModuleInstance",
    "NoActiveSession",
    "Observable",
    "Reaction",
    "SEPARATOR",
    "Scope",
    "Session",
    "SessionClosed",
    "SessionIsolationError",
    "UnknownControl",
    "WatchHandle",
    "action",
    "autorun",
    "computed",
    "input_control",
    "instantiate",
    "output_slot",
    "qualify",
    "reaction",
    "tag",
    "transaction",
    "unqualify",
    "watch",
]
