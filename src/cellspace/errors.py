"""Error taxonomy for cellspace.

Every error is raised synchronously to the caller that triggered it.
`fatal` marks errors that leave the session's dependency graph or namespace
inconsistent; the session closes itself after one of those propagates.
"""

from __future__ import annotations


class CellspaceError(Exception):
    """Base class for all cellspace errors."""

    fatal = False


class InvalidIdentifier(CellspaceError, ValueError):
    """A local name is empty or contains characters outside [A-Za-z0-9_]."""

    def __init__(self, name: str, reason: str = "must match [A-Za-z0-9_]+") -> None:
        super().__init__(f"invalid identifier {name!r}: {reason}")
        self.name = name


class DuplicateIdentifier(CellspaceError, ValueError):
    """Two siblings claimed the same identifier at one namespace level."""

    fatal = True

    def __init__(self, qualified: str) -> None:
        super().__init__(f"duplicate identifier {qualified!r}")
        self.qualified = qualified


class ArgumentKindMismatch(CellspaceError, TypeError):
    """A reactive handle was passed where a static value is required, or vice versa."""

    def __init__(self, module: str, argument: str, expected: str) -> None:
        super().__init__(f"{module}: argument {argument!r} must be {expected}")
        self.module = module
        self.argument = argument
        self.expected = expected


class CyclicDependency(CellspaceError, RuntimeError):
    """A computed cell was read again while it was computing."""

    fatal = True

    def __init__(self, path: list[str]) -> None:
        super().__init__("cyclic dependency: " + " -> ".join(path))
        self.path = path


class SessionClosed(CellspaceError, RuntimeError):
    """The session was torn down; its cells are no longer usable."""


class NoActiveSession(CellspaceError, RuntimeError):
    """A cell was created outside any active session."""


class SessionIsolationError(CellspaceError, RuntimeError):
    """A derivation tried to read a cell owned by a different session."""


class CellDestroyed(CellspaceError, ReferenceError):
    """The cell belonged to a module instance that has been torn down."""


class UnknownControl(CellspaceError, KeyError):
    """An event addressed an identifier with no source cell behind it."""

    def __str__(self) -> str:
        return f"no control with identifier {self.args[0]!r}"
