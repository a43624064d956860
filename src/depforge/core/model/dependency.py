"""Dependency declarations and the immutable ``DependencySet``.

A dependency is one of three kinds:

- ``ModuleDependency`` -- a coordinate fetched from a repository, tagged
  with scopes and transitive exclusions;
- ``FileDependency`` -- local files used as-is;
- ``ProjectDependency`` -- another buildable unit of the same build. Its
  ``exported_dependencies`` stand in for a repository descriptor, so a
  multi-project build resolves without publishing intermediate artifacts.

A ``DependencySet`` is an ordered sequence of those (duplicates kept,
insertion order preserved), plus a version override table
(``VersionProvider``) and global exclusions. Every ``and_*`` / ``with_*``
call returns a new set.

Example::

    deps = (
        DependencySet.of()
        .and_("com.google.guava:guava:33.0.0-jre")
        .and_("junit:junit:4.13.2", TEST)
        .and_version_provider(VersionProvider.of({"org.slf4j:slf4j-api": "2.0.9"}))
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Union

from depforge.core.model.coordinate import Coordinate, ModuleId
from depforge.core.model.scope import Scope, is_selected
from depforge.core.model.version import Version


def _to_module_id(value: ModuleId | str) -> ModuleId:
    return value if isinstance(value, ModuleId) else ModuleId.of(value)


# ---------------------------------------------------------------------------
# Dependency kinds
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleDependency:
    """A dependency on a repository module.

    Attributes:
        coordinate: Module, requested version and artifact selection.
        scopes: Declared scopes. Empty means "not yet defaulted".
        exclusions: Modules pruned from the graph beneath this dependency.
        transitive: Whether the module's own dependencies are followed.
    """

    coordinate: Coordinate
    scopes: tuple[Scope, ...] = ()
    exclusions: frozenset[ModuleId] = frozenset()
    transitive: bool = True

    def __post_init__(self) -> None:
        if self.coordinate is None:
            raise TypeError("module dependency coordinate cannot be None")
        object.__setattr__(self, "scopes", tuple(dict.fromkeys(self.scopes)))
        object.__setattr__(self, "exclusions", frozenset(self.exclusions))

    @classmethod
    def of(cls, coordinate: Coordinate | str, *scopes: Scope) -> ModuleDependency:
        if isinstance(coordinate, str):
            coordinate = Coordinate.parse(coordinate)
        return cls(coordinate, tuple(scopes))

    @property
    def module_id(self) -> ModuleId:
        return self.coordinate.module_id

    @property
    def version(self) -> Version:
        return self.coordinate.version

    def with_scopes(self, *scopes: Scope) -> ModuleDependency:
        return replace(self, scopes=tuple(scopes))

    def with_default_scopes(self, scopes: Iterable[Scope]) -> ModuleDependency:
        return self if self.scopes else replace(self, scopes=tuple(scopes))

    def and_exclusions(self, *module_ids: ModuleId | str) -> ModuleDependency:
        extra = {_to_module_id(m) for m in module_ids}
        return replace(self, exclusions=self.exclusions | extra)

    def with_transitive(self, transitive: bool) -> ModuleDependency:
        return replace(self, transitive=transitive)

    def __str__(self) -> str:
        scopes = ",".join(s.name for s in self.scopes)
        return f"{self.coordinate}" + (f" [{scopes}]" if scopes else "")


@dataclass(frozen=True)
class FileDependency:
    """Local files used directly, without any repository round trip."""

    paths: tuple[Path, ...]
    scopes: tuple[Scope, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(Path(p) for p in self.paths))
        object.__setattr__(self, "scopes", tuple(dict.fromkeys(self.scopes)))

    def with_default_scopes(self, scopes: Iterable[Scope]) -> FileDependency:
        return self if self.scopes else replace(self, scopes=tuple(scopes))

    def __str__(self) -> str:
        return ", ".join(str(p) for p in self.paths)


@dataclass(frozen=True)
class ProjectDependency:
    """A dependency on another project of the same build.

    Attributes:
        name: Project name, unique within the build.
        exported_dependencies: What the project hands to its dependents.
            Resolved recursively in place of a repository descriptor.
        output_paths: Files the project itself contributes (its packaged
            artifact or class directory).
        base_dir: Project root, for reporting.
        scopes: Declared scopes of the dependency on this project.
    """

    name: str
    exported_dependencies: DependencySet = field(default_factory=lambda: DependencySet())
    output_paths: tuple[Path, ...] = ()
    base_dir: Path | None = None
    scopes: tuple[Scope, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("project dependency needs a name")
        object.__setattr__(self, "output_paths", tuple(Path(p) for p in self.output_paths))
        object.__setattr__(self, "scopes", tuple(dict.fromkeys(self.scopes)))

    def with_default_scopes(self, scopes: Iterable[Scope]) -> ProjectDependency:
        return self if self.scopes else replace(self, scopes=tuple(scopes))

    def __str__(self) -> str:
        return f"project:{self.name}"


Dependency = Union[ModuleDependency, FileDependency, ProjectDependency]


# ---------------------------------------------------------------------------
# VersionProvider: version override table
# ---------------------------------------------------------------------------


class VersionProvider:
    """Immutable ``ModuleId -> Version`` override table.

    Overrides are applied when a coordinate is about to be resolved, not
    when it is declared, so one table can govern direct and transitive
    declarations alike.
    """

    __slots__ = ("_versions",)

    def __init__(self, versions: Mapping[ModuleId, Version] | None = None) -> None:
        self._versions: dict[ModuleId, Version] = dict(versions or {})

    @classmethod
    def of(cls, versions: Mapping[ModuleId | str, Version | str]) -> VersionProvider:
        return cls({_to_module_id(k): Version.of(v) for k, v in versions.items()})

    def get(self, module_id: ModuleId) -> Version | None:
        return self._versions.get(module_id)

    def and_(self, other: VersionProvider) -> VersionProvider:
        """Merge, letting *other* win on shared modules."""
        merged = dict(self._versions)
        merged.update(other._versions)
        return VersionProvider(merged)

    def apply(self, coordinate: Coordinate) -> Coordinate:
        return coordinate.with_version(self._versions.get(coordinate.module_id))

    def __contains__(self, module_id: object) -> bool:
        return module_id in self._versions

    def __iter__(self) -> Iterator[ModuleId]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    def items(self):
        return self._versions.items()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionProvider):
            return NotImplemented
        return self._versions == other._versions

    def __hash__(self) -> int:
        return hash(frozenset(self._versions.items()))

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v}" for k, v in self._versions.items())
        return f"VersionProvider({inner})"


# ---------------------------------------------------------------------------
# DependencySet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DependencySet:
    """Ordered, immutable collection of dependency declarations.

    Attributes:
        dependencies: Declarations in insertion order. Not deduplicated.
        version_provider: Version overrides applied at resolution time.
        global_exclusions: Modules pruned everywhere in the graph.
    """

    dependencies: tuple[Dependency, ...] = ()
    version_provider: VersionProvider = field(default_factory=VersionProvider)
    global_exclusions: frozenset[ModuleId] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "global_exclusions", frozenset(self.global_exclusions))

    @classmethod
    def of(cls, *items: Dependency | Coordinate | str) -> DependencySet:
        return cls(tuple(_to_dependency(item, ()) for item in items))

    # -- Combination --------------------------------------------------------

    def and_(
        self,
        other: DependencySet | Dependency | Coordinate | str,
        *scopes: Scope,
    ) -> DependencySet:
        """Append *other*: a whole set, or one declaration with *scopes*.

        Concatenation is associative and keeps duplicates. When appending a
        set, its version overrides win over ours and exclusions are merged.
        """
        if isinstance(other, DependencySet):
            return DependencySet(
                self.dependencies + other.dependencies,
                self.version_provider.and_(other.version_provider),
                self.global_exclusions | other.global_exclusions,
            )
        return replace(
            self, dependencies=self.dependencies + (_to_dependency(other, scopes),)
        )

    def __add__(self, other: DependencySet) -> DependencySet:
        if not isinstance(other, DependencySet):
            return NotImplemented
        return self.and_(other)

    def and_files(self, *paths: Path | str, scopes: Iterable[Scope] = ()) -> DependencySet:
        return self.and_(FileDependency(tuple(Path(p) for p in paths), tuple(scopes)))

    def and_exclusions(self, *module_ids: ModuleId | str) -> DependencySet:
        """Add global exclusions."""
        extra = {_to_module_id(m) for m in module_ids}
        return replace(self, global_exclusions=self.global_exclusions | extra)

    def and_version_provider(self, provider: VersionProvider) -> DependencySet:
        return replace(self, version_provider=self.version_provider.and_(provider))

    def with_version_provider(self, provider: VersionProvider) -> DependencySet:
        return replace(self, version_provider=provider)

    def with_default_scopes(self, *scopes: Scope) -> DependencySet:
        """Give *scopes* to every declaration that has none.

        Already scoped declarations are untouched, so applying this twice
        is the same as applying it once. The receiver is not modified.
        """
        return replace(
            self,
            dependencies=tuple(d.with_default_scopes(scopes) for d in self.dependencies),
        )

    # -- Queries ------------------------------------------------------------

    def __iter__(self) -> Iterator[Dependency]:
        return iter(self.dependencies)

    def __len__(self) -> int:
        return len(self.dependencies)

    @property
    def module_dependencies(self) -> list[ModuleDependency]:
        return [d for d in self.dependencies if isinstance(d, ModuleDependency)]

    @property
    def declared_scopes(self) -> set[Scope]:
        return {s for d in self.dependencies for s in d.scopes}

    @property
    def module_ids(self) -> list[ModuleId]:
        return list(dict.fromkeys(d.module_id for d in self.module_dependencies))

    def selected(self, requested: Iterable[Scope]) -> list[Dependency]:
        """Declarations included for a request on *requested* scopes.

        Declarations without scopes are only matched by an empty request;
        call ``with_default_scopes`` first to give them defaults.
        """
        requested = tuple(requested)
        return [d for d in self.dependencies if is_selected(d.scopes, requested)]

    def effective_coordinate(self, coordinate: Coordinate) -> Coordinate:
        """Apply the version override table to *coordinate*."""
        return self.version_provider.apply(coordinate)


def _to_dependency(item: Dependency | Coordinate | str, scopes: Iterable[Scope]) -> Dependency:
    scopes = tuple(scopes)
    if isinstance(item, str):
        item = Coordinate.parse(item)
    if isinstance(item, Coordinate):
        return ModuleDependency(item, scopes)
    if isinstance(item, (ModuleDependency, FileDependency, ProjectDependency)):
        return replace(item, scopes=scopes) if scopes else item
    if item is None:
        raise TypeError("dependency cannot be None")
    raise TypeError(f"Unsupported dependency type: {type(item).__name__}")
