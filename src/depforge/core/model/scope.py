"""Scopes (configurations) and their inheritance.

A ``Scope`` names a usage context -- compile, runtime, test -- and lists
the scopes it *extends*. Resolving a scope pulls in every dependency
declared for any scope it transitively extends, so ``TEST`` (extending
``RUNTIME``, itself extending ``COMPILE``) sees compile dependencies.

Scopes compare and hash by name. Scope objects built directly cannot form
cycles, but definitions loaded by name (see ``scopes_from_mapping``) can;
both the loader and ``scopes_inherited_by`` fail fast with
``ScopeCycleError`` instead of looping.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from depforge.exceptions import ConfigError, ScopeCycleError


@dataclass(frozen=True, eq=False)
class Scope:
    """A named configuration.

    Attributes:
        name: Unique scope name.
        extends: Scopes this one inherits dependencies from.
        transitive: Whether dependencies found in a module's own descriptor
            under this scope are followed further down the graph.
        description: Free text shown in reports.
    """

    name: str
    extends: tuple[Scope, ...] = field(default=())
    transitive: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name or not isinstance(self.name, str):
            raise ValueError(f"Invalid scope name: {self.name!r}")
        object.__setattr__(self, "extends", tuple(self.extends))

    @classmethod
    def of(
        cls,
        name: str,
        *extends: Scope,
        transitive: bool = True,
        description: str = "",
    ) -> Scope:
        return cls(name, tuple(extends), transitive, description)

    def is_in_or_extends(self, names: Iterable[str]) -> bool:
        """True if this scope, or one it inherits, is among *names*."""
        wanted = set(names)
        return any(s.name in wanted for s in scopes_inherited_by(self))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scope):
            return NotImplemented
        return self.name == other.name

    def __hash__(self) -> int:
        return hash(self.name)

    def __repr__(self) -> str:
        return f"Scope({self.name!r})"

    def __str__(self) -> str:
        return self.name


def scopes_inherited_by(scope: Scope) -> list[Scope]:
    """Reflexive-transitive closure of the *extends* edges from *scope*.

    Returns the scopes in depth-first discovery order, *scope* first.

    Raises:
        ScopeCycleError: If a scope is met again on its own extension path.
    """
    result: dict[str, Scope] = {}
    path: list[str] = []

    def _visit(current: Scope) -> None:
        if current.name in path:
            raise ScopeCycleError(path[path.index(current.name):] + [current.name])
        if current.name in result:
            return
        result[current.name] = current
        path.append(current.name)
        for parent in current.extends:
            _visit(parent)
        path.pop()

    _visit(scope)
    return list(result.values())


def closure(scopes: Iterable[Scope]) -> set[Scope]:
    """Union of ``scopes_inherited_by`` over *scopes*."""
    result: set[Scope] = set()
    for scope in scopes:
        result.update(scopes_inherited_by(scope))
    return result


def is_selected(declared: Iterable[Scope], requested: Iterable[Scope]) -> bool:
    """Scope filter for one dependency declaration.

    A dependency declared with *declared* scopes is included for a request
    on *requested* iff some requested scope, or a scope it extends, is
    among the declared ones. An empty request selects everything.
    """
    requested = list(requested)
    if not requested:
        return True
    return bool(closure(requested) & set(declared))


# ---------------------------------------------------------------------------
# Standard scopes
# ---------------------------------------------------------------------------

COMPILE = Scope.of(
    "compile",
    description="Dependencies needed to compile and run the production code.",
)
PROVIDED = Scope.of(
    "provided",
    transitive=False,
    description="Needed to compile, but supplied by the runtime environment.",
)
RUNTIME = Scope.of(
    "runtime",
    COMPILE,
    description="Dependencies needed to run, but not to compile, the production code.",
)
TEST = Scope.of(
    "test",
    RUNTIME,
    PROVIDED,
    transitive=False,
    description="Dependencies needed to compile and run the tests.",
)

COMPILE_AND_RUNTIME: tuple[Scope, ...] = (COMPILE, RUNTIME)

STANDARD_SCOPES: dict[str, Scope] = {
    s.name: s for s in (COMPILE, PROVIDED, RUNTIME, TEST)
}


def scopes_from_mapping(
    definitions: Mapping[str, Mapping[str, object]],
    base: Mapping[str, Scope] | None = None,
) -> dict[str, Scope]:
    """Build scopes from name-based definitions.

    Each definition may carry ``extends`` (list of names), ``transitive``
    and ``description``. Names may refer to *base* scopes (the standard
    scopes by default) or to other definitions.

    Raises:
        ScopeCycleError: If the definitions extend each other cyclically.
        ConfigError: If a definition extends an unknown scope name.
    """
    known: dict[str, Scope] = dict(STANDARD_SCOPES if base is None else base)
    built: dict[str, Scope] = {}
    path: list[str] = []

    def _build(name: str) -> Scope:
        if name in path:
            raise ScopeCycleError(path[path.index(name):] + [name])
        if name in built:
            return built[name]
        if name not in definitions:
            if name in known:
                return known[name]
            raise ConfigError(f"Unknown scope {name!r}")
        spec = definitions[name] or {}
        path.append(name)
        extends = spec.get("extends") or []
        if isinstance(extends, str):
            extends = [extends]
        parents = tuple(_build(str(parent)) for parent in extends)
        path.pop()
        scope = Scope(
            name,
            parents,
            bool(spec.get("transitive", True)),
            str(spec.get("description", "")),
        )
        built[name] = scope
        return scope

    for name in definitions:
        _build(name)
    known.update(built)
    return known
