"""Property-based tests for whole-graph resolution.

Random module graphs are resolved against an in-memory repository and the
result is checked for structural invariants:

    - Every non-evicted module node agrees with the resolved version index.
    - An evicted node's request differs from the selected version.
    - Under TAKE_HIGHEST, no request in the tree beats the selected version.
    - Resolution is deterministic, with or without a thread pool.
"""
from __future__ import annotations

import tempfile
from dataclasses import dataclass

from hypothesis import given, settings
from hypothesis import strategies as st

from depforge.core.model import ConflictStrategy, DependencySet, ModuleId
from depforge.core.resolution import (
    InMemoryRepository,
    ResolutionParameters,
    ResolveResult,
    resolve,
)
from depforge.core.resolution.graph import ModuleNodeInfo

VERSIONS = ["1.0", "1.1", "2.0", "2.1-SNAPSHOT"]


@dataclass(frozen=True)
class Graph:
    """A random module graph: per module version, the coordinates it needs."""

    modules: dict[str, dict[str, list[str]]]
    roots: list[str]

    def repository(self, cache_root: str) -> InMemoryRepository:
        repo = InMemoryRepository(cache_root)
        for name, versions in self.modules.items():
            for version, dependencies in versions.items():
                repo.add(f"g:{name}:{version}", dependencies)
        return repo

    def dependencies(self) -> DependencySet:
        return DependencySet.of(*self.roots)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


@st.composite
def graphs(draw: st.DrawFn, max_modules: int = 6) -> Graph:
    """Generate a module graph; edges may point anywhere, cycles included."""
    names = [f"m{i}" for i in range(draw(st.integers(min_value=1, max_value=max_modules)))]
    coordinate = st.builds(
        lambda n, v: f"g:{n}:{v}", st.sampled_from(names), st.sampled_from(VERSIONS)
    )
    modules = {
        name: {
            version: draw(st.lists(coordinate, max_size=3))
            for version in VERSIONS
        }
        for name in names
    }
    roots = draw(st.lists(coordinate, min_size=1, max_size=4))
    return Graph(modules, roots)


def _resolve(graph: Graph, strategy: ConflictStrategy, max_workers: int = 1) -> ResolveResult:
    with tempfile.TemporaryDirectory() as cache:
        parameters = ResolutionParameters(conflict_strategy=strategy, max_workers=max_workers)
        return resolve(graph.repository(cache), graph.dependencies(), parameters=parameters)


def _module_nodes(result: ResolveResult) -> list[ModuleNodeInfo]:
    return [n.info for n in result.tree.descendants() if isinstance(n.info, ModuleNodeInfo)]


strategies = st.sampled_from(
    [ConflictStrategy.TAKE_FIRST, ConflictStrategy.TAKE_HIGHEST, ConflictStrategy.TAKE_LOWEST]
)


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestTreeInvariants:
    """The tree and the version index tell the same story."""

    @settings(max_examples=50, deadline=None)
    @given(graph=graphs(), strategy=strategies)
    def test_nodes_agree_with_index(self, graph: Graph, strategy: ConflictStrategy) -> None:
        result = _resolve(graph, strategy)
        for info in _module_nodes(result):
            if not info.evicted and info.problem is None:
                assert result.version_of(info.module_id) == info.resolved_version

    @settings(max_examples=50, deadline=None)
    @given(graph=graphs(), strategy=strategies)
    def test_evicted_nodes_lost(self, graph: Graph, strategy: ConflictStrategy) -> None:
        result = _resolve(graph, strategy)
        for info in _module_nodes(result):
            if info.evicted:
                assert info.declared_version != result.version_of(info.module_id)
                assert info.files == ()

    @settings(max_examples=50, deadline=None)
    @given(graph=graphs())
    def test_take_highest_selects_a_maximum(self, graph: Graph) -> None:
        result = _resolve(graph, ConflictStrategy.TAKE_HIGHEST)
        for info in _module_nodes(result):
            selected = result.version_of(info.module_id)
            if selected is None or info.declared_version.is_snapshot():
                continue
            if not selected.is_snapshot():
                assert not info.declared_version.is_greater_than(selected)

    @settings(max_examples=50, deadline=None)
    @given(graph=graphs())
    def test_every_module_is_resolved(self, graph: Graph) -> None:
        result = _resolve(graph, ConflictStrategy.TAKE_HIGHEST)
        assert not result.error_report.has_errors
        for root in graph.roots:
            assert result.contains(ModuleId.of(":".join(root.split(":")[:2])))


class TestDeterminism:
    """Same input, same output."""

    @settings(max_examples=30, deadline=None)
    @given(graph=graphs(), strategy=strategies)
    def test_repeatable(self, graph: Graph, strategy: ConflictStrategy) -> None:
        first = _resolve(graph, strategy)
        second = _resolve(graph, strategy)
        assert list(first.resolved_versions.items()) == list(second.resolved_versions.items())
        assert first.tree.to_string_tree() == second.tree.to_string_tree()

    @settings(max_examples=30, deadline=None)
    @given(graph=graphs(), strategy=strategies)
    def test_thread_pool_does_not_change_the_result(
        self, graph: Graph, strategy: ConflictStrategy
    ) -> None:
        serial = _resolve(graph, strategy)
        parallel = _resolve(graph, strategy, max_workers=4)
        assert serial.resolved_versions == parallel.resolved_versions
        assert serial.tree.to_string_tree() == parallel.tree.to_string_tree()
