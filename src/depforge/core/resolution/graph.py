"""Resolved dependency tree and its reconstruction from caller edges.

Resolution does not build the tree directly. It records, for every module
visited, the *caller edges* that reached it: which parent asked for it, at
which version and under which scopes. Conflict resolution needs all of
those constraints before it can commit to one version per module, so the
tree is rebuilt afterwards in two passes:

1. **Adjacency** -- group the edges into a ``parent -> children`` map. A
   parent never lists the same child key twice; the first edge wins unless
   it was evicted and a later one was not.
2. **Instantiation** -- depth-first from the root. Each edge becomes its
   own node instance, so a module reached from two parents appears twice
   with its own resolved/evicted status. Evicted nodes, nodes with a
   problem, and nodes already on the current path (dependency cycles) are
   emitted as leaves.

The resulting ``ResolvedNode`` structure is a tree, not a DAG.
"""

from __future__ import annotations

from collections.abc import Hashable, Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

from depforge.core.model.coordinate import Coordinate, ModuleId
from depforge.core.model.scope import Scope
from depforge.core.model.version import Version


@dataclass(frozen=True)
class ProjectKey:
    """Graph key of a project dependency (projects have no ModuleId).

    Two projects may share a name when they live in different directories.
    """

    name: str
    base_dir: Path | None = None

    def __str__(self) -> str:
        return f"project:{self.name}"


NodeKey = Union[ModuleId, ProjectKey]


# ---------------------------------------------------------------------------
# Node infos
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ModuleNodeInfo:
    """A module as seen from one caller.

    Attributes:
        module_id: The module.
        declared_version: Version the caller asked for (after overrides).
        declared_scopes: Scopes of the caller's declaration.
        root_scopes: Requested scopes that pull this module in.
        resolved_version: Version selected by conflict resolution.
        files: Materialized artifact paths (empty when evicted).
        evicted: True if this caller's request lost conflict resolution.
        problem: Message if the module could not be resolved.
    """

    module_id: ModuleId
    declared_version: Version
    declared_scopes: tuple[Scope, ...] = ()
    root_scopes: frozenset[Scope] = frozenset()
    resolved_version: Version = field(default_factory=lambda: Version(""))
    files: tuple[Path, ...] = ()
    evicted: bool = False
    problem: str | None = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.module_id, self.resolved_version)

    def __str__(self) -> str:
        text = f"{self.module_id}:{self.declared_version}"
        if self.evicted:
            text += f" (evicted -> {self.resolved_version})"
        elif self.declared_version != self.resolved_version:
            text += f" -> {self.resolved_version}"
        if self.problem:
            text += f" !! {self.problem}"
        return text


@dataclass(frozen=True)
class FileNodeInfo:
    """Local files, either declared directly or produced by a project.

    Attributes:
        files: The file paths.
        declared_scopes: Scopes of the declaration.
        root_scopes: Requested scopes that pull these files in.
        project: Project name when the node stands for a project dependency.
    """

    files: tuple[Path, ...]
    declared_scopes: tuple[Scope, ...] = ()
    root_scopes: frozenset[Scope] = frozenset()
    project: str | None = None

    def __str__(self) -> str:
        files = ", ".join(str(f) for f in self.files)
        if self.project:
            return f"project:{self.project}" + (f" ({files})" if files else "")
        return files


NodeInfo = Union[ModuleNodeInfo, FileNodeInfo]


# ---------------------------------------------------------------------------
# ResolvedNode
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedNode:
    """One node of the resolved dependency tree. Owns its children."""

    info: NodeInfo
    children: tuple[ResolvedNode, ...] = ()

    @property
    def is_module_node(self) -> bool:
        return isinstance(self.info, ModuleNodeInfo)

    @property
    def module_id(self) -> ModuleId | None:
        return self.info.module_id if isinstance(self.info, ModuleNodeInfo) else None

    @property
    def is_evicted(self) -> bool:
        return isinstance(self.info, ModuleNodeInfo) and self.info.evicted

    def descendants(self) -> Iterator[ResolvedNode]:
        """Pre-order walk of every node below this one."""
        for child in self.children:
            yield child
            yield from child.descendants()

    def find(self, module_id: ModuleId) -> list[ResolvedNode]:
        """All nodes below this one standing for *module_id*."""
        return [n for n in self.descendants() if n.module_id == module_id]

    def child_modules(self) -> list[ModuleId]:
        return [c.module_id for c in self.children if c.module_id is not None]

    def resolved_versions(self) -> dict[ModuleId, Version]:
        """Module -> selected version over non-evicted, resolved nodes,
        in traversal order."""
        result: dict[ModuleId, Version] = {}
        for node in self.descendants():
            info = node.info
            if isinstance(info, ModuleNodeInfo) and not info.evicted and not info.problem:
                result.setdefault(info.module_id, info.resolved_version)
        return result

    def files(self, scope: Scope | None = None) -> list[Path]:
        """Artifact and local files below this node, in traversal order.

        With *scope*, only nodes pulled in by that requested scope count.
        """
        result: dict[Path, None] = {}
        for node in self.descendants():
            info = node.info
            if scope is not None and scope not in info.root_scopes:
                continue
            if isinstance(info, ModuleNodeInfo) and (info.evicted or info.problem):
                continue
            result.update(dict.fromkeys(info.files))
        return list(result)

    def to_string_tree(self, indent: str = "    ") -> str:
        lines: list[str] = []
        self._render(lines, 0, indent)
        return "\n".join(lines)

    def _render(self, lines: list[str], depth: int, indent: str) -> None:
        lines.append(f"{indent * depth}{self.info}")
        for child in self.children:
            child._render(lines, depth + 1, indent)

    def __str__(self) -> str:
        return str(self.info)


# ---------------------------------------------------------------------------
# Tree reconstruction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CallerEdge:
    """A child as seen from one parent.

    Attributes:
        parent: Key of the calling node.
        child: Node info of the child for this caller.
        child_key: Graph key of the child, or None for plain file nodes.
    """

    parent: Hashable
    child: NodeInfo
    child_key: Hashable | None = None


class TreeBuilder:
    """Rebuilds the resolved tree from a flat list of caller edges."""

    def __init__(self, edges: Iterable[CallerEdge]) -> None:
        self._children: dict[Hashable, list[CallerEdge]] = {}
        placed: dict[Hashable, dict[Hashable, int]] = {}
        for edge in edges:
            siblings = self._children.setdefault(edge.parent, [])
            if edge.child_key is not None:
                seen = placed.setdefault(edge.parent, {})
                index = seen.get(edge.child_key)
                if index is not None:
                    if _evicted(siblings[index].child) and not _evicted(edge.child):
                        siblings[index] = edge
                    continue
                seen[edge.child_key] = len(siblings)
            siblings.append(edge)

    def children_of(self, key: Hashable) -> list[CallerEdge]:
        return list(self._children.get(key, ()))

    def build(self, root_info: NodeInfo, root_key: Hashable) -> ResolvedNode:
        return self._instantiate(root_info, root_key, frozenset())

    def _instantiate(
        self,
        info: NodeInfo,
        key: Hashable | None,
        ancestors: frozenset[Hashable],
    ) -> ResolvedNode:
        if key is None or key in ancestors or not self._expandable(info):
            return ResolvedNode(info)
        path = ancestors | {key}
        children = tuple(
            self._instantiate(edge.child, edge.child_key, path)
            for edge in self._children.get(key, ())
        )
        return ResolvedNode(info, children)

    @staticmethod
    def _expandable(info: NodeInfo) -> bool:
        if isinstance(info, ModuleNodeInfo):
            return not info.evicted and info.problem is None
        return info.project is not None


def _evicted(info: NodeInfo) -> bool:
    return isinstance(info, ModuleNodeInfo) and info.evicted
