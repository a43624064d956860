"""Transitive dependency resolution engine.

``DependencyResolver.resolve(dependencies, *scopes)`` turns a declarative
``DependencySet`` into a ``ResolveResult``:

1. **Scope filtering** -- root declarations are kept when a requested
   scope, or one it extends, is among their declared scopes. Declarations
   found in a module's own descriptor are followed only through
   *transitive* scopes.
2. **Declaration querying** -- each module's descriptor comes from the
   repository (optionally fanned out over a bounded thread pool, one wave
   of the breadth-first walk at a time). Project dependencies substitute
   their exported dependencies instead, with no repository round trip.
3. **Caller-edge collection** -- the walk records, for every visited
   module, the parents that asked for it and at which version.
4. **Conflict resolution** -- every module's requested versions are folded
   pairwise through the configured ``ConflictStrategy``. Because the
   selected version decides which descriptor is expanded, the walk is
   repeated until the selection stops changing.
5. **Tree reconstruction** -- ``TreeBuilder`` rebuilds the tree from the
   final caller edges; an edge whose request lost is marked evicted.
6. **Error aggregation** -- unresolvable modules, conflicts (``FAIL``) and
   artifact failures become report entries; the rest of the graph is
   still resolved.

Only programming misuse and, when ``fail_on_conflict`` is set, ``FAIL``
strategy violations raise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TypeVar

from depforge.core.model.coordinate import (
    ArtifactSpec,
    ConflictStrategy,
    Coordinate,
    ModuleId,
    resolve_conflict,
)
from depforge.core.model.dependency import (
    Dependency,
    DependencySet,
    FileDependency,
    ModuleDependency,
    ProjectDependency,
)
from depforge.core.model.scope import COMPILE_AND_RUNTIME, Scope, closure, is_selected
from depforge.core.model.version import UNSPECIFIED, Version, highest
from depforge.core.resolution.cache import ResolutionCache
from depforge.core.resolution.graph import (
    CallerEdge,
    FileNodeInfo,
    ModuleNodeInfo,
    NodeKey,
    ProjectKey,
    TreeBuilder,
)
from depforge.core.resolution.repository import ModuleDescriptor, Repository
from depforge.core.resolution.result import (
    ErrorReport,
    ModuleProblem,
    ProblemKind,
    ResolveResult,
)
from depforge.exceptions import RepositoryError, ResolutionError, VersionConflictError

logger = logging.getLogger(__name__)

ROOT_MODULE = ModuleId("depforge.anonymous", "root")

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class ResolutionParameters:
    """Tuning knobs of the resolution engine.

    Attributes:
        conflict_strategy: How competing versions of a module are reconciled.
        fail_on_conflict: Raise ``ResolutionError`` on a ``FAIL`` strategy
            violation instead of reporting it.
        max_workers: Size of the pool querying the repository. ``1`` keeps
            every call on the calling thread.
        default_scopes: Scopes given to declarations that have none.
        max_passes: Upper bound of walk/select rounds before giving up on
            a stable selection.
        root_module: Identity of the synthetic root node.
    """

    conflict_strategy: ConflictStrategy = ConflictStrategy.TAKE_HIGHEST
    fail_on_conflict: bool = False
    max_workers: int = 1
    default_scopes: tuple[Scope, ...] = COMPILE_AND_RUNTIME
    max_passes: int = 16
    root_module: ModuleId = ROOT_MODULE

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be >= 1, got {self.max_passes}")


class DependencyResolver:
    """Resolves dependency sets against a repository.

    Results are memoized in a ``ResolutionCache`` owned by this resolver,
    keyed on the dependency set and the requested scope set. Call
    ``cache.invalidate()`` when the dependency set the results were
    computed for is replaced (``DependencyManagement`` does it for you).

    Args:
        repository: Where module metadata and artifacts come from.
        parameters: Engine parameters; defaults apply when omitted.
        use_cache: Set to False to resolve from scratch on every call.
    """

    def __init__(
        self,
        repository: Repository,
        parameters: ResolutionParameters | None = None,
        use_cache: bool = True,
    ) -> None:
        if repository is None:
            raise TypeError("repository cannot be None")
        self._repository = repository
        self._parameters = parameters or ResolutionParameters()
        self._cache: ResolutionCache[ResolveResult] | None = (
            ResolutionCache() if use_cache else None
        )

    @property
    def repository(self) -> Repository:
        return self._repository

    @property
    def parameters(self) -> ResolutionParameters:
        return self._parameters

    @property
    def cache(self) -> ResolutionCache[ResolveResult] | None:
        return self._cache

    def with_parameters(self, **changes: object) -> DependencyResolver:
        """A resolver on the same repository with some parameters changed."""
        return DependencyResolver(
            self._repository,
            replace(self._parameters, **changes),
            use_cache=self._cache is not None,
        )

    def resolve(self, dependencies: DependencySet, *scopes: Scope) -> ResolveResult:
        """Resolve *dependencies* for the requested *scopes*.

        With no scope, every scope declared in the set is requested.

        Raises:
            TypeError: If *dependencies* is None.
            ResolutionError: On a ``FAIL`` conflict with ``fail_on_conflict``.
            ScopeCycleError: If the scopes involved extend each other cyclically.
        """
        if dependencies is None:
            raise TypeError("dependencies cannot be None")
        if any(s is None for s in scopes):
            raise TypeError("scopes cannot contain None")
        if self._cache is None:
            return self._resolve(dependencies, scopes)
        key = (dependencies, frozenset(scopes))
        return self._cache.get_or_compute(key, lambda: self._resolve(dependencies, scopes))

    def _resolve(self, dependencies: DependencySet, scopes: Sequence[Scope]) -> ResolveResult:
        result = _Resolution(self._repository, self._parameters, dependencies, scopes).run()
        logger.info(
            "Resolved %d module(s) for scopes [%s] with %d problem(s)",
            len(result.resolved_versions),
            ", ".join(s.name for s in result.requested_scopes),
            len(result.error_report),
        )
        return result


# ---------------------------------------------------------------------------
# One resolution run
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _State:
    """Accumulated facts about a graph node over every path reaching it."""

    exclusions: frozenset[ModuleId]
    root_scopes: frozenset[Scope]
    transitive: bool

    def merge(self, other: _State) -> _State:
        return _State(
            self.exclusions & other.exclusions,
            self.root_scopes | other.root_scopes,
            self.transitive or other.transitive,
        )


@dataclass(frozen=True)
class _Edge:
    parent: NodeKey
    dependency: Dependency
    # Requested version after overrides and dynamic-version resolution.
    requested: Version = UNSPECIFIED
    # Set for edges coming from a module descriptor rather than the root
    # or a project export list.
    via_module: bool = False


@dataclass
class _Walk:
    edges: list[_Edge] = field(default_factory=list)
    states: dict[NodeKey, _State] = field(default_factory=dict)
    requests: dict[ModuleId, list[Version]] = field(default_factory=dict)
    seen: set[_Edge] = field(default_factory=set)

    def add(self, edge: _Edge) -> bool:
        """Record *edge* once; re-expanding a node repeats its edges."""
        if edge in self.seen:
            return False
        self.seen.add(edge)
        self.edges.append(edge)
        return True


class _Resolution:
    def __init__(
        self,
        repository: Repository,
        parameters: ResolutionParameters,
        dependencies: DependencySet,
        scopes: Sequence[Scope],
    ) -> None:
        self._repository = repository
        self._params = parameters
        self._deps = dependencies.with_default_scopes(*parameters.default_scopes)
        self._requested: tuple[Scope, ...] = tuple(dict.fromkeys(scopes)) or tuple(
            sorted(self._deps.declared_scopes, key=lambda s: s.name)
        )
        # Fails fast on cyclic scope definitions.
        closure(self._requested)
        self._root = parameters.root_module
        self._descriptors: dict[Coordinate, ModuleDescriptor | RepositoryError] = {}
        self._versions: dict[ModuleId, list[Version] | RepositoryError] = {}
        self._unresolved: dict[ModuleId, ModuleProblem] = {}
        self._conflicts: dict[ModuleId, ModuleProblem] = {}
        self._projects: dict[ProjectKey, ProjectDependency] = {}

    # -- Driver -------------------------------------------------------------

    def run(self) -> ResolveResult:
        selected: dict[ModuleId, Version] = {}
        walk = self._walk(selected)
        for _ in range(self._params.max_passes):
            new_selected = self._select(walk)
            if new_selected == selected:
                break
            selected = new_selected
            walk = self._walk(selected)
        else:
            logger.warning(
                "Version selection did not settle after %d passes; using the last one",
                self._params.max_passes,
            )
            selected = self._select(walk)
        return self._assemble(walk, selected)

    # -- Pass: walk the graph ----------------------------------------------

    def _walk(self, selected: dict[ModuleId, Version]) -> _Walk:
        walk = _Walk()
        self._unresolved = {}
        root_state = _State(self._deps.global_exclusions, frozenset(self._requested), True)
        walk.states[self._root] = root_state
        wave: list[NodeKey] = [self._root]
        while wave:
            self._prefetch(
                [self._coordinate_to_expand(k, walk, selected) for k in wave
                 if isinstance(k, ModuleId) and k != self._root]
            )
            pending: dict[NodeKey, None] = {}
            for key in wave:
                for child in self._expand(key, walk, selected):
                    pending[child] = None
            wave = list(pending)
        return walk

    def _expand(self, key: NodeKey, walk: _Walk, selected: dict[ModuleId, Version]) -> list[NodeKey]:
        state = walk.states[key]
        if key == self._root:
            return self._declare(key, self._deps.dependencies, state, walk, via_module=False)
        if isinstance(key, ProjectKey):
            exported = self._projects[key].exported_dependencies
            declared = [
                self._overridden(d, exported)
                for d in exported.with_default_scopes(*self._params.default_scopes)
            ]
            return self._declare(key, declared, state, walk, via_module=False)
        if not state.transitive:
            return []
        coordinate = self._coordinate_to_expand(key, walk, selected)
        if coordinate is None:
            return []
        descriptor = self._descriptors.get(coordinate)
        if not isinstance(descriptor, ModuleDescriptor):
            return []
        declared = descriptor.dependencies.with_default_scopes(*self._params.default_scopes)
        managed = [
            self._managed(d, descriptor.dependencies) for d in declared.dependencies
        ]
        return self._declare(key, managed, state, walk, via_module=True)

    def _declare(
        self,
        parent: NodeKey,
        dependencies: Iterable[Dependency],
        parent_state: _State,
        walk: _Walk,
        via_module: bool,
    ) -> list[NodeKey]:
        """Record the caller edges of *parent* and return keys to (re)expand."""
        to_expand: list[NodeKey] = []
        for dep in dependencies:
            roots = _child_root_scopes(parent_state.root_scopes, dep.scopes, via_module)
            if not roots:
                continue
            if isinstance(dep, FileDependency):
                walk.add(_Edge(parent, dep, via_module=via_module))
                continue
            if isinstance(dep, ProjectDependency):
                key: NodeKey = ProjectKey(dep.name, dep.base_dir)
                self._projects.setdefault(key, dep)
                walk.add(_Edge(parent, dep, via_module=via_module))
                state = _State(parent_state.exclusions, roots, True)
            else:
                module_id = dep.module_id
                if module_id in parent_state.exclusions or module_id == self._root:
                    continue
                requested = self._requested_version(dep)
                if walk.add(_Edge(parent, dep, requested, via_module)):
                    walk.requests.setdefault(module_id, []).append(requested)
                key = module_id
                state = _State(
                    parent_state.exclusions | dep.exclusions, roots, dep.transitive
                )
            previous = walk.states.get(key)
            merged = state if previous is None else previous.merge(state)
            if merged != previous:
                walk.states[key] = merged
                to_expand.append(key)
        return to_expand

    def _managed(self, dep: Dependency, declared: DependencySet) -> Dependency:
        """Fill an unspecified version from the descriptor's own overrides."""
        if isinstance(dep, ModuleDependency) and dep.version.is_unspecified():
            return self._overridden(dep, declared)
        return dep

    @staticmethod
    def _overridden(dep: Dependency, declared: DependencySet) -> Dependency:
        if isinstance(dep, ModuleDependency):
            return replace(dep, coordinate=declared.effective_coordinate(dep.coordinate))
        return dep

    def _requested_version(self, dep: ModuleDependency) -> Version:
        version = self._deps.effective_coordinate(dep.coordinate).version
        if not version.is_dynamic():
            return version
        available = self._available_versions(dep.module_id)
        match = highest([v for v in available if version.matches(v)])
        if match is None:
            self._unresolved.setdefault(
                dep.module_id,
                ModuleProblem(
                    dep.module_id,
                    version.value,
                    f"no available version matches '{version.value}'",
                ),
            )
            return version
        return match

    # -- Pass: select versions ---------------------------------------------

    def _select(self, walk: _Walk) -> dict[ModuleId, Version]:
        selected: dict[ModuleId, Version] = {}
        self._conflicts = {}
        strategy = self._params.conflict_strategy
        for module_id, requests in walk.requests.items():
            concrete = [v for v in requests if not v.is_dynamic()]
            if not concrete:
                continue
            winner = concrete[0]
            for other in concrete[1:]:
                try:
                    winner = resolve_conflict(winner, other, strategy, module_id)
                except VersionConflictError as exc:
                    if self._params.fail_on_conflict:
                        raise ResolutionError(str(exc)) from exc
                    logger.warning("%s", exc)
                    self._conflicts.setdefault(
                        module_id,
                        ModuleProblem(module_id, other.value, str(exc), ProblemKind.CONFLICT),
                    )
            if winner.is_unspecified():
                winner = highest(self._available_versions(module_id)) or UNSPECIFIED
            if winner.is_concrete():
                selected[module_id] = winner
        return selected

    # -- Repository access --------------------------------------------------

    def _coordinate_to_expand(
        self, key: NodeKey, walk: _Walk, selected: dict[ModuleId, Version]
    ) -> Coordinate | None:
        if not isinstance(key, ModuleId):
            return None
        version = selected.get(key)
        requests = walk.requests.get(key, [])
        if version is None:
            # First pass: the first concrete request stands in until selection.
            concrete = [v for v in requests if v.is_concrete()]
            version = concrete[0] if concrete else None
        if version is None and all(v.is_unspecified() for v in requests):
            version = highest(self._available_versions(key))
        if version is None:
            return None
        return Coordinate(key, version)

    def _prefetch(self, coordinates: list[Coordinate | None]) -> None:
        missing = list(dict.fromkeys(
            c for c in coordinates if c is not None and c not in self._descriptors
        ))
        for coordinate, descriptor in zip(missing, self._fan_out(self._describe, missing)):
            self._descriptors[coordinate] = descriptor

    def _describe(self, coordinate: Coordinate) -> ModuleDescriptor | RepositoryError:
        logger.debug("Describing %s", coordinate)
        try:
            return self._repository.describe(coordinate)
        except RepositoryError as exc:
            logger.warning("Cannot resolve %s: %s", coordinate, exc)
            return exc

    def _available_versions(self, module_id: ModuleId) -> list[Version]:
        if module_id not in self._versions:
            logger.debug("Listing versions of %s", module_id)
            try:
                self._versions[module_id] = list(self._repository.list_versions(module_id))
            except RepositoryError as exc:
                logger.warning("Cannot list versions of %s: %s", module_id, exc)
                self._versions[module_id] = exc
        versions = self._versions[module_id]
        return [] if isinstance(versions, RepositoryError) else versions

    def _fan_out(self, func: Callable[[T], R], items: list[T]) -> list[R]:
        """Apply *func* to *items*, in parallel when configured, keeping order."""
        if self._params.max_workers <= 1 or len(items) <= 1:
            return [func(item) for item in items]
        workers = min(self._params.max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(func, items))

    # -- Assembly -----------------------------------------------------------

    def _assemble(self, walk: _Walk, selected: dict[ModuleId, Version]) -> ResolveResult:
        problems = self._module_problems(walk, selected)
        files, artifact_problems = self._materialize(walk, selected, problems)

        evictions = self._evictions(walk, selected, problems)

        edges: list[CallerEdge] = []
        for edge, evicted in zip(walk.edges, evictions):
            dep = edge.dependency
            parent_roots = walk.states[edge.parent].root_scopes
            if isinstance(dep, ModuleDependency):
                module_id = dep.module_id
                resolved = selected.get(module_id, edge.requested)
                problem = problems.get(module_id)
                if problem and problem.kind is ProblemKind.CONFLICT:
                    # The winner still stands; the conflict lives in the report.
                    problem = None
                info = ModuleNodeInfo(
                    module_id=module_id,
                    declared_version=edge.requested,
                    declared_scopes=dep.scopes,
                    root_scopes=walk.states[module_id].root_scopes,
                    resolved_version=resolved,
                    files=() if evicted else files.get(module_id, ()),
                    evicted=evicted,
                    problem=problem.message if problem else None,
                )
                edges.append(CallerEdge(edge.parent, info, module_id))
            elif isinstance(dep, ProjectDependency):
                key = ProjectKey(dep.name, dep.base_dir)
                info = FileNodeInfo(
                    dep.output_paths, dep.scopes, walk.states[key].root_scopes, dep.name
                )
                edges.append(CallerEdge(edge.parent, info, key))
            else:
                roots = _child_root_scopes(parent_roots, dep.scopes, edge.via_module)
                edges.append(CallerEdge(edge.parent, FileNodeInfo(dep.paths, dep.scopes, roots)))

        root_info = ModuleNodeInfo(
            module_id=self._root,
            declared_version=UNSPECIFIED,
            root_scopes=frozenset(self._requested),
            resolved_version=UNSPECIFIED,
        )
        tree = TreeBuilder(edges).build(root_info, self._root)
        report = ErrorReport(tuple(problems.values()) + tuple(artifact_problems))
        return ResolveResult(tree, report, self._requested)

    def _evictions(
        self,
        walk: _Walk,
        selected: dict[ModuleId, Version],
        problems: dict[ModuleId, ModuleProblem],
    ) -> list[bool]:
        """Eviction flag of every walk edge, in edge order.

        An edge is evicted when it asked for a concrete version other than
        the selected one. A winning request can hide beneath its own losing
        edge (a module depending on a newer version of itself through a
        cycle); the first losing edge from a reachable parent is then kept
        so the module still expands at its selected version.
        """
        evicted = [
            isinstance(edge.dependency, ModuleDependency)
            and edge.requested.is_concrete()
            and edge.dependency.module_id in selected
            and edge.requested != selected[edge.dependency.module_id]
            for edge in walk.edges
        ]
        while True:
            reached = self._reachable(walk, evicted, problems)
            stranded = next(
                (
                    i
                    for i, edge in enumerate(walk.edges)
                    if evicted[i]
                    and edge.parent in reached
                    and edge.dependency.module_id not in reached
                ),
                None,
            )
            if stranded is None:
                return evicted
            logger.debug(
                "Keeping %s under %s: no other request reaches its selected version",
                walk.edges[stranded].dependency,
                walk.edges[stranded].parent,
            )
            evicted[stranded] = False

    def _reachable(
        self,
        walk: _Walk,
        evicted: list[bool],
        problems: dict[ModuleId, ModuleProblem],
    ) -> set[NodeKey]:
        """Keys expanded in the tree when walking down from the root."""
        children: dict[NodeKey, list[NodeKey]] = {}
        for edge, lost in zip(walk.edges, evicted):
            dep = edge.dependency
            if lost or isinstance(dep, FileDependency):
                continue
            if isinstance(dep, ProjectDependency):
                child: NodeKey = ProjectKey(dep.name, dep.base_dir)
            else:
                problem = problems.get(dep.module_id)
                if problem and problem.kind is not ProblemKind.CONFLICT:
                    continue
                child = dep.module_id
            children.setdefault(edge.parent, []).append(child)
        reached: set[NodeKey] = {self._root}
        stack: list[NodeKey] = [self._root]
        while stack:
            for child in children.get(stack.pop(), ()):
                if child not in reached:
                    reached.add(child)
                    stack.append(child)
        return reached

    def _module_problems(
        self, walk: _Walk, selected: dict[ModuleId, Version]
    ) -> dict[ModuleId, ModuleProblem]:
        problems: dict[ModuleId, ModuleProblem] = {}
        for module_id, requests in walk.requests.items():
            requested = next((v.value for v in requests if not v.is_unspecified()), "")
            if module_id in self._unresolved:
                problems[module_id] = self._unresolved[module_id]
            elif module_id not in selected:
                versions = self._versions.get(module_id)
                if isinstance(versions, RepositoryError):
                    message = str(versions)
                else:
                    message = "no version specified and none available"
                problems[module_id] = ModuleProblem(module_id, requested, message)
            else:
                descriptor = self._descriptors.get(Coordinate(module_id, selected[module_id]))
                if isinstance(descriptor, RepositoryError):
                    problems[module_id] = ModuleProblem(
                        module_id, selected[module_id].value, str(descriptor)
                    )
                elif module_id in self._conflicts:
                    problems[module_id] = self._conflicts[module_id]
        return problems

    def _materialize(
        self,
        walk: _Walk,
        selected: dict[ModuleId, Version],
        problems: dict[ModuleId, ModuleProblem],
    ) -> tuple[dict[ModuleId, tuple[Path, ...]], list[ModuleProblem]]:
        wanted: dict[ModuleId, dict[ArtifactSpec, None]] = {}
        for edge in walk.edges:
            dep = edge.dependency
            if not isinstance(dep, ModuleDependency) or dep.module_id not in selected:
                continue
            module_problem = problems.get(dep.module_id)
            if module_problem and module_problem.kind is ProblemKind.UNRESOLVED:
                continue
            specs = wanted.setdefault(dep.module_id, {})
            specs.update(dict.fromkeys(dep.coordinate.effective_artifact_specs))

        jobs: list[tuple[Coordinate, ArtifactSpec]] = []
        for module_id, specs in wanted.items():
            coordinate = Coordinate(module_id, selected[module_id])
            descriptor = self._descriptors.get(coordinate)
            for spec in specs:
                if (
                    isinstance(descriptor, ModuleDescriptor)
                    and not descriptor.artifact_specs
                    and spec.is_main
                ):
                    continue
                jobs.append((coordinate, spec))

        outcomes = self._fan_out(self._fetch_artifact, jobs)
        files: dict[ModuleId, tuple[Path, ...]] = {}
        artifact_problems: list[ModuleProblem] = []
        for (coordinate, spec), outcome in zip(jobs, outcomes):
            if isinstance(outcome, RepositoryError):
                artifact_problems.append(ModuleProblem(
                    coordinate.module_id,
                    coordinate.version.value,
                    str(outcome),
                    ProblemKind.ARTIFACT,
                    spec,
                ))
                continue
            files[coordinate.module_id] = files.get(coordinate.module_id, ()) + (outcome,)
        return files, artifact_problems

    def _fetch_artifact(self, job: tuple[Coordinate, ArtifactSpec]) -> Path | RepositoryError:
        coordinate, spec = job
        try:
            return self._repository.materialize(coordinate, spec)
        except RepositoryError as exc:
            logger.warning("Cannot fetch %s %s: %s", coordinate, spec, exc)
            return exc


def _child_root_scopes(
    parent_roots: Iterable[Scope], declared: Sequence[Scope], via_module: bool
) -> frozenset[Scope]:
    """Requested root scopes that still pull in a child declared with
    *declared* scopes, given the root scopes of its parent.

    Declarations from a module descriptor only count through transitive
    scopes.
    """
    if via_module:
        declared = [s for s in declared if s.transitive]
    return frozenset(r for r in parent_roots if is_selected(declared, [r]))


def resolve(
    repository: Repository,
    dependencies: DependencySet,
    *scopes: Scope,
    parameters: ResolutionParameters | None = None,
) -> ResolveResult:
    """One-off, uncached resolution."""
    resolver = DependencyResolver(repository, parameters, use_cache=False)
    return resolver.resolve(dependencies, *scopes)


__all__ = [
    "DependencyResolver",
    "ROOT_MODULE",
    "ResolutionParameters",
    "resolve",
]

