"""Identifier namespacing — local names to globally unique qualified names.

A module author only ever writes local names ("choice", "plot"). Each
module instance runs under a Scope whose id is the chain of instance ids
from the root ("outer.inner"); qualifying a local name joins it onto that
chain with SEPARATOR. Because local names can never contain SEPARATOR,
qualification is injective: no two (scope, local) pairs share a result.

The active scope lives in a ContextVar so descriptors and behaviors can
resolve local names without threading the scope id through every call.
"""

from __future__ import annotations

import contextvars
import re
from contextlib import contextmanager
from typing import Iterator

from cellspace.errors import DuplicateIdentifier, InvalidIdentifier

SEPARATOR = "."

_LOCAL_NAME = re.compile(r"[A-Za-z0-9_]+")


def validate(local_name: str) -> str:
    """Return local_name unchanged, or raise InvalidIdentifier."""
    if not isinstance(local_name, str) or not local_name:
        raise InvalidIdentifier(str(local_name), "must not be empty")
    if _LOCAL_NAME.fullmatch(local_name) is None:
        raise InvalidIdentifier(local_name)
    return local_name


def split(qualified: str) -> tuple[str, ...]:
    """Break a qualified identifier into its segments. The root scope is ()."""
    if qualified == "":
        return ()
    segments = tuple(qualified.split(SEPARATOR))
    for segment in segments:
        validate(segment)
    return segments


def qualify(scope_id: str, local_name: str) -> str:
    """Join local_name onto scope_id.

    >>> qualify("", "choice")
    'choice'
    >>> qualify("a", "choice")
    'a.choice'
    """
    split(scope_id)
    validate(local_name)
    if not scope_id:
        return local_name
    return f"{scope_id}{SEPARATOR}{local_name}"


def unqualify(scope_id: str, qualified: str) -> str:
    """Recover the local name of a direct member of scope_id."""
    segments = split(qualified)
    parent = split(scope_id)
    if len(segments) != len(parent) + 1 or segments[: len(parent)] != parent:
        raise InvalidIdentifier(qualified, f"not a member of scope {scope_id!r}")
    return segments[-1]


def is_within(scope_id: str, qualified: str) -> bool:
    """True if qualified is scope_id itself or lies anywhere beneath it."""
    if not scope_id:
        return True
    return qualified == scope_id or qualified.startswith(scope_id + SEPARATOR)


class Scope:
    """One level of the namespace tree.

    Calling a scope qualifies a local name, which makes it usable as the
    `ns` argument module authors expect.
    """

    __slots__ = ("id", "parent", "_children")

    def __init__(self, id: str = "", parent: Scope | None = None) -> None:
        split(id)
        self.id = id
        self.parent = parent
        self._children: dict[str, Scope] = {}

    def __call__(self, local_name: str) -> str:
        return qualify(self.id, local_name)

    def child(self, local_name: str) -> Scope:
        """Register and return a nested scope. Siblings must be unique."""
        qualified = qualify(self.id, local_name)
        if local_name in self._children:
            raise DuplicateIdentifier(qualified)
        scope = Scope(qualified, self)
        self._children[local_name] = scope
        return scope

    def derive(self, local_name: str) -> Scope:
        """A nested scope that is not registered, for pure descriptor calls."""
        return Scope(qualify(self.id, local_name), self)

    def release(self, local_name: str) -> None:
        self._children.pop(local_name, None)

    def unqualify(self, qualified: str) -> str:
        return unqualify(self.id, qualified)

    def __contains__(self, local_name: str) -> bool:
        return local_name in self._children

    def __repr__(self) -> str:
        return f"Scope({self.id!r})"


# The scope a descriptor or behavior is currently running under.
_current_scope: contextvars.ContextVar[Scope | None] = contextvars.ContextVar(
    "current_scope", default=None
)


def current_scope() -> Scope | None:
    return _current_scope.get()


def resolve(name: str) -> str:
    """Qualify name against the active scope (root scope when none is active)."""
    scope = _current_scope.get()
    return qualify(scope.id if scope is not None else "", name)


@contextmanager
def entered(scope: Scope) -> Iterator[Scope]:
    """Make scope the active scope for the duration of the block."""
    token = _current_scope.set(scope)
    try:
        yield scope
    finally:
        _current_scope.reset(token)


# ─── Textual widget ids ─────────────────────────────────────────────────────
# Textual ids match [A-Za-z_-][A-Za-z0-9_-]*. Local names never contain "-",
# so "-" stands in for SEPARATOR and a leading "-" marks an id that would
# otherwise start with a digit. Both directions are exact inverses.


def widget_id(qualified: str) -> str:
    split(qualified)
    encoded = qualified.replace(SEPARATOR, "-")
    if encoded[:1].isdigit():
        encoded = "-" + encoded
    return encoded


def from_widget_id(encoded: str) -> str:
    if encoded.startswith("-"):
        encoded = encoded[1:]
    qualified = encoded.replace("-", SEPARATOR)
    split(qualified)
    return qualified
