"""Resolve results and error reports.

A ``ResolveResult`` bundles the resolved dependency tree, a flattened
``ModuleId -> Version`` index and an ``ErrorReport``. It is created once by
the resolution engine and never modified afterwards.

Problems are classified so callers can tell a module that could not be
resolved at all from a module whose metadata resolved but whose artifact
could not be fetched.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from typing import Any

from depforge.core.model.coordinate import ArtifactSpec, ModuleId
from depforge.core.model.scope import Scope
from depforge.core.model.version import Version
from depforge.core.resolution.graph import FileNodeInfo, ModuleNodeInfo, ResolvedNode
from depforge.exceptions import ResolutionError


class ProblemKind(Enum):
    """Category of a resolution problem."""

    UNRESOLVED = "unresolved"
    CONFLICT = "conflict"
    ARTIFACT = "artifact"


@dataclass(frozen=True)
class ModuleProblem:
    """One entry of the error report.

    Attributes:
        module_id: The module concerned.
        requested_version: Version text that was asked for.
        message: Human-readable cause.
        kind: Problem category.
        artifact: The failed artifact, for ``ARTIFACT`` problems.
    """

    module_id: ModuleId
    requested_version: str
    message: str
    kind: ProblemKind = ProblemKind.UNRESOLVED
    artifact: ArtifactSpec | None = None

    def __str__(self) -> str:
        version = f":{self.requested_version}" if self.requested_version else ""
        artifact = f" {self.artifact}" if self.artifact else ""
        return f"{self.module_id}{version}{artifact} -> {self.message}"


@dataclass(frozen=True)
class ErrorReport:
    """Problems met during a resolution, in the order they were found."""

    problems: tuple[ModuleProblem, ...] = ()

    @classmethod
    def all_fine(cls) -> ErrorReport:
        return cls()

    @property
    def has_errors(self) -> bool:
        return bool(self.problems)

    @property
    def module_problems(self) -> list[ModuleProblem]:
        """Modules that failed to resolve, or conflicted."""
        return [p for p in self.problems if p.kind is not ProblemKind.ARTIFACT]

    @property
    def artifact_problems(self) -> list[ModuleProblem]:
        """Modules that resolved but whose artifact could not be fetched."""
        return [p for p in self.problems if p.kind is ProblemKind.ARTIFACT]

    def for_module(self, module_id: ModuleId) -> list[ModuleProblem]:
        return [p for p in self.problems if p.module_id == module_id]

    def __iter__(self) -> Iterator[ModuleProblem]:
        return iter(self.problems)

    def __len__(self) -> int:
        return len(self.problems)

    def __str__(self) -> str:
        if not self.problems:
            return "No resolution errors."
        lines = ["Errors with dependencies:"]
        for problem in self.module_problems:
            lines.append(f"  {problem}")
        if self.artifact_problems:
            lines.append("Artifacts that could not be fetched:")
            for problem in self.artifact_problems:
                lines.append(f"  {problem}")
        return "\n".join(lines)


class ResolvedVersions(Mapping[ModuleId, Version]):
    """Read-only ``ModuleId -> Version`` index in tree traversal order."""

    def __init__(self, versions: Mapping[ModuleId, Version]) -> None:
        self._versions = dict(versions)

    def __getitem__(self, module_id: ModuleId) -> Version:
        return self._versions[module_id]

    def __iter__(self) -> Iterator[ModuleId]:
        return iter(self._versions)

    def __len__(self) -> int:
        return len(self._versions)

    @property
    def module_ids(self) -> list[ModuleId]:
        return list(self._versions)

    def version_of(self, module_id: ModuleId) -> Version | None:
        return self._versions.get(module_id)

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}:{v}" for k, v in self._versions.items())
        return f"ResolvedVersions({inner})"


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of one resolution.

    Attributes:
        tree: Root of the resolved dependency tree.
        error_report: Problems met while resolving.
        requested_scopes: The scopes the resolution was requested for.
    """

    tree: ResolvedNode
    error_report: ErrorReport = field(default_factory=ErrorReport)
    requested_scopes: tuple[Scope, ...] = ()

    @cached_property
    def resolved_versions(self) -> ResolvedVersions:
        return ResolvedVersions(self.tree.resolved_versions())

    @property
    def module_ids(self) -> list[ModuleId]:
        return self.resolved_versions.module_ids

    def contains(self, module_id: ModuleId | str) -> bool:
        if isinstance(module_id, str):
            module_id = ModuleId.of(module_id)
        return module_id in self.resolved_versions

    def version_of(self, module_id: ModuleId) -> Version | None:
        return self.resolved_versions.version_of(module_id)

    def files(self, scope: Scope | None = None) -> list[Path]:
        """Resolved files, in tree order. With *scope*, only those that
        requested scope pulls in."""
        return self.tree.files(scope)

    @property
    def files_by_scope(self) -> dict[Scope, list[Path]]:
        return {scope: self.files(scope) for scope in self.requested_scopes}

    def assert_no_error(self) -> ResolveResult:
        """Return self, or raise ``ResolutionError`` with the report text."""
        if self.error_report.has_errors:
            raise ResolutionError(str(self.error_report))
        return self

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly rendering of the whole result."""
        return {
            "requested_scopes": [s.name for s in self.requested_scopes],
            "resolved_versions": {
                str(k): str(v) for k, v in self.resolved_versions.items()
            },
            "files": {
                s.name: [str(p) for p in paths] for s, paths in self.files_by_scope.items()
            },
            "tree": _node_to_dict(self.tree),
            "problems": [
                {
                    "module": str(p.module_id),
                    "requested_version": p.requested_version,
                    "kind": p.kind.value,
                    "message": p.message,
                }
                for p in self.error_report
            ],
        }


def _node_to_dict(node: ResolvedNode) -> dict[str, Any]:
    info = node.info
    if isinstance(info, ModuleNodeInfo):
        data: dict[str, Any] = {
            "module": str(info.module_id),
            "declared_version": str(info.declared_version),
            "resolved_version": str(info.resolved_version),
            "scopes": [s.name for s in info.declared_scopes],
            "evicted": info.evicted,
        }
        if info.problem:
            data["problem"] = info.problem
    else:
        assert isinstance(info, FileNodeInfo)
        data = {"files": [str(f) for f in info.files]}
        if info.project:
            data["project"] = info.project
    data["files"] = [str(f) for f in info.files]
    data["children"] = [_node_to_dict(c) for c in node.children]
    return data
