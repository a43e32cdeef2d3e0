"""Modules — namespaced pairs of interface descriptor and behavior.

A Module bundles a pure descriptor `ui(**static) -> Element` with a
behavior `server(ctx, **args)`. Instantiating it under an id derives a
child Scope, builds the element tree under that scope, creates the source
cells for its controls and runs the behavior with the scope active, so
the author only ever writes local names.

Arguments are declared by kind. Static arguments are plain values fixed
for the instance's lifetime; reactive arguments are handles the behavior
reads through .get(). Passing one kind where the other is declared raises
ArgumentKindMismatch before anything is registered, so the caller can
retry with corrected arguments.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterator

from cellspace import namespace
from cellspace._tracking import current_session
from cellspace.computed import Computed
from cellspace.errors import (
    ArgumentKindMismatch,
    DuplicateIdentifier,
    InvalidIdentifier,
    NoActiveSession,
    SessionIsolationError,
)
from cellspace.namespace import Scope
from cellspace.observable import Observable, is_reactive
from cellspace.render import LocalHost, Render
from cellspace.ui import MODULE, Element, check_unique

if TYPE_CHECKING:
    from cellspace.session import Session

logger = logging.getLogger("cellspace.module")


class Module:
    """Interface descriptor plus behavior, instantiable any number of times."""

    def __init__(
        self,
        ui: Callable[..., Element],
        server: Callable[..., Mapping | None] | None = None,
        *,
        static: tuple[str, ...] = (),
        reactive: tuple[str, ...] = (),
        name: str | None = None,
    ) -> None:
        overlap = set(static) & set(reactive)
        if overlap:
            raise ValueError(f"arguments declared both static and reactive: {sorted(overlap)}")
        self.ui = ui
        self.server = server
        self.static = frozenset(static)
        self.reactive = frozenset(reactive)
        self.name = name or getattr(server or ui, "__name__", "module")

    def check_args(self, args: Mapping[str, object]) -> tuple[dict, dict]:
        """Split args into (static, reactive), enforcing the declared kinds."""
        static_args: dict = {}
        reactive_args: dict = {}
        for key, value in args.items():
            if key in self.static:
                if is_reactive(value):
                    raise ArgumentKindMismatch(self.name, key, "a static value, not a reactive handle")
                static_args[key] = value
            elif key in self.reactive:
                if not is_reactive(value):
                    raise ArgumentKindMismatch(self.name, key, "a reactive handle")
                reactive_args[key] = value
            else:
                raise TypeError(f"{self.name}() got an unexpected argument {key!r}")
        return static_args, reactive_args

    def describe(self, scope: Scope, **static) -> Element:
        """Run the descriptor under scope, wrapped in an element carrying the scope id."""
        with namespace.entered(scope):
            body = self.ui(**static)
        return Element("div", id=scope.id, kind=MODULE, attrs={"module": self.name}, children=[body])

    def ui_for(self, id: str, **static) -> Element:
        """Embed this module's interface inside a parent descriptor.

        The parent's behavior is expected to call ctx.instantiate(module, id)
        with the same id to wire the behavior to the embedded controls.
        """
        static_args, _ = self.check_args(static)
        parent = namespace.current_scope() or Scope()
        return self.describe(parent.derive(id), **static_args)

    def __repr__(self) -> str:
        return f"Module({self.name})"


class ScopedInputs(Mapping):
    """Control values of one module instance, keyed by local name.

    Reads go through the source cell, so using this inside a computed or
    render function registers the dependency.
    """

    def __init__(self, session: Session, scope: Scope) -> None:
        self._session = session
        self._scope = scope

    def cell(self, local_name: str) -> Observable:
        return self._session.control(self._scope(local_name))

    def __getitem__(self, local_name: str) -> object:
        return self.cell(local_name).get()

    def _locals(self) -> list[str]:
        prefix = self._scope.id
        names = []
        for qualified in self._session._controls:
            try:
                names.append(namespace.unqualify(prefix, qualified))
            except InvalidIdentifier:
                continue
        return names

    def __iter__(self) -> Iterator[str]:
        return iter(self._locals())

    def __len__(self) -> int:
        return len(self._locals())


class ModuleContext:
    """What a behavior function sees as `ctx`."""

    def __init__(self, instance: ModuleInstance) -> None:
        self._instance = instance
        self.inputs = ScopedInputs(instance.session, instance.scope)

    @property
    def id(self) -> str:
        return self._instance.id

    @property
    def scope(self) -> Scope:
        return self._instance.scope

    @property
    def session(self) -> Session:
        return self._instance.session

    def ns(self, local_name: str) -> str:
        return self._instance.scope(local_name)

    def input(self, local_name: str) -> Observable:
        """The source cell behind a control of this instance."""
        return self.inputs.cell(local_name)

    def output(self, local_name: str) -> Callable[[Callable[[], object]], Render]:
        """Decorator: fill the output slot local_name with fn's result.

        Usage:
            @ctx.output("total")
            def _():
                return ctx.inputs["a"] + ctx.inputs["b"]
        """
        slot = self.ns(local_name)

        def register(fn: Callable[[], object]) -> Render:
            if slot in self._instance.renders:
                raise DuplicateIdentifier(slot)
            render = Render(slot, fn, self._instance.host, session=self.session)
            self._instance.renders[slot] = render
            return render

        return register

    def instantiate(self, module: Module, id: str, **args) -> ModuleInstance:
        """Nest a child module under this instance's scope."""
        child = instantiate(
            module, id, session=self.session, parent=self.scope, host=self._instance.host, **args
        )
        self._instance.children[id] = child
        return child


class ModuleInstance:
    """A live module: its tree, its declared outputs and its children."""

    def __init__(self, module: Module, scope: Scope, tree: Element, session: Session, host) -> None:
        self.module = module
        self.scope = scope
        self.tree = tree
        self.session = session
        self.host = host
        self.children: dict[str, ModuleInstance] = {}
        self.renders: dict[str, Render] = {}
        self._outputs: dict[str, Computed | Observable] = {}
        self.outputs: Mapping[str, Computed | Observable] = MappingProxyType(self._outputs)
        self.destroyed = False

    @property
    def id(self) -> str:
        """The qualified identifier of this instance."""
        return self.scope.id

    @property
    def rendered(self) -> dict[str, object]:
        """Latest value of each output slot owned by this instance."""
        return {
            slot: value for slot, value in self.host.rendered.items()
            if namespace.is_within(self.scope.id, slot)
        }

    def _bind_outputs(self, result: Mapping | None) -> None:
        if result is None:
            return
        if not isinstance(result, Mapping):
            raise TypeError(f"{self.module.name} behavior must return a mapping of outputs or None")
        for name, value in result.items():
            namespace.validate(name)
            if is_reactive(value):
                self._outputs[name] = value
            elif callable(value):
                self._outputs[name] = Computed(value, session=self.session, name=self.scope(name))
            else:
                raise TypeError(
                    f"{self.module.name} output {name!r} must be a reactive handle or a function"
                )

    def __getitem__(self, name: str) -> Computed | Observable:
        return self._outputs[name]

    def destroy(self) -> None:
        """Tear down every cell, control, sink and child under this instance's scope."""
        if self.destroyed:
            return
        self.destroyed = True
        if self.session.closed:
            return
        for child in list(self.children.values()):
            child.destroy()
        self.children.clear()
        count = self.session.destroy_scope(self.scope.id)
        self.host.detach(self.scope.id)
        self.renders.clear()
        if self.scope.parent is not None:
            self.scope.parent.release(namespace.split(self.scope.id)[-1])
        logger.debug("Destroyed %s (%d cells)", self.scope.id, count)

    def __repr__(self) -> str:
        state = "destroyed" if self.destroyed else "live"
        return f"ModuleInstance({self.module.name}, {self.scope.id!r}, {state})"


def instantiate(
    module: Module,
    id: str,
    *,
    session: Session | None = None,
    parent: Scope | None = None,
    host=None,
    **args,
) -> ModuleInstance:
    """Build a module instance: tree, controls, behavior and outputs.

    Usage:
        with Session() as session:
            counter = instantiate(counter_module, "a", step=2)
            counter.outputs["count"].get()
    """
    if session is None:
        session = current_session.get()
    if session is None:
        raise NoActiveSession("instantiate() needs a session")

    with session.guard():
        static_args, reactive_args = module.check_args(args)
        namespace.validate(id)
        for value in reactive_args.values():
            if value.session is not session:
                raise SessionIsolationError(f"{module.name}: {value!r} belongs to another session")
        parent = parent if parent is not None else session.scope
        scope = parent.child(id)
        host = host if host is not None else LocalHost()

        try:
            with session.activate(), namespace.entered(scope):
                tree = module.describe(scope, **static_args)
                check_unique(tree)
                instance = ModuleInstance(module, scope, tree, session, host)
                for el in tree.inputs():
                    if not session.has_control(el.id):
                        session.register_control(el.id, el.value)
                if module.server is not None:
                    result = module.server(ModuleContext(instance), **static_args, **reactive_args)
                    instance._bind_outputs(result)
            # Sinks start only once the whole behavior has declared its cells.
            with session.transaction():
                for render in instance.renders.values():
                    host.attach(render)
        except BaseException:
            if not session.closed:
                host.detach(scope.id)
                session.destroy_scope(scope.id)
            parent.release(id)
            raise

        logger.debug(
            "Instantiated %s as %r: %d controls, %d outputs",
            module.name, scope.id, len(tree.inputs()), len(instance.outputs),
        )
        return instance
