"""Interface elements — the abstract tree a descriptor returns.

cellspace never renders. A descriptor builds a tree of Elements; every id
it gives is a local name, qualified against the active scope the moment
the element is constructed. An external renderer turns the tree into a
visual surface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from cellspace import namespace
from cellspace.errors import DuplicateIdentifier

LAYOUT = "layout"
INPUT = "input"
OUTPUT = "output"
MODULE = "module"


@dataclass
class Element:
    tag: str
    id: str | None = None
    kind: str = LAYOUT
    attrs: dict = field(default_factory=dict)
    children: list = field(default_factory=list)
    value: object = None

    def walk(self) -> Iterator[Element]:
        """Depth-first, this element first."""
        yield self
        for child in self.children:
            if isinstance(child, Element):
                yield from child.walk()

    def ids(self) -> list[str]:
        return [el.id for el in self.walk() if el.id is not None]

    def find(self, qualified: str) -> Element | None:
        for el in self.walk():
            if el.id == qualified:
                return el
        return None

    def inputs(self) -> list[Element]:
        return [el for el in self.walk() if el.kind == INPUT]

    def outputs(self) -> list[Element]:
        return [el for el in self.walk() if el.kind == OUTPUT]

    def to_dict(self) -> dict:
        """Plain-data form for renderers that want JSON-ish input."""
        data: dict = {"tag": self.tag, "kind": self.kind}
        if self.id is not None:
            data["id"] = self.id
        if self.attrs:
            data["attrs"] = dict(self.attrs)
        if self.kind == INPUT:
            data["value"] = self.value
        if self.children:
            data["children"] = [
                c.to_dict() if isinstance(c, Element) else c for c in self.children
            ]
        return data


def tag(name: str, *children, id: str | None = None, **attrs) -> Element:
    """A layout element. Strings and Elements may be mixed as children."""
    return Element(
        name,
        id=namespace.resolve(id) if id is not None else None,
        attrs=attrs,
        children=list(children),
    )


def input_control(id: str, value: object = None, *, tag: str = "input", **attrs) -> Element:
    """A control whose value arrives as events; backed by a source cell."""
    return Element(tag, id=namespace.resolve(id), kind=INPUT, attrs=attrs, value=value)


def output_slot(id: str, *, tag: str = "div", **attrs) -> Element:
    """A placeholder a render sink fills in."""
    return Element(tag, id=namespace.resolve(id), kind=OUTPUT, attrs=attrs)


def check_unique(tree: Element) -> None:
    seen: set[str] = set()
    for qualified in tree.ids():
        if qualified in seen:
            raise DuplicateIdentifier(qualified)
        seen.add(qualified)
