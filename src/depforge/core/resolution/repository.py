"""The repository capability consumed by the resolution engine.

A repository answers three questions:

- ``list_versions(module_id)`` -- which versions of a module exist;
- ``describe(coordinate)`` -- the module's own declared dependencies and
  the artifacts it publishes;
- ``materialize(coordinate, spec)`` -- a local path for one artifact,
  fetching it if needed. Repeated calls return the same path without
  fetching again.

Failures are raised as ``RepositoryError`` subclasses; the engine turns
them into report entries. Concrete repositories live in
``depforge.repository``; this module holds the interface, the descriptor
type, an in-memory implementation and the ``RepositorySet`` chain.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from depforge.core.model.coordinate import MAIN_ARTIFACT, ArtifactSpec, Coordinate, ModuleId
from depforge.core.model.dependency import DependencySet
from depforge.core.model.version import Version
from depforge.exceptions import ArtifactNotFound, ModuleNotFoundInRepository, RepositoryError

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "DEPFORGE_CACHE_DIR"


def default_cache_root() -> Path:
    """Artifact cache root: ``$DEPFORGE_CACHE_DIR`` or ``~/.depforge/cache``."""
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".depforge" / "cache"


@dataclass(frozen=True)
class ModuleDescriptor:
    """What a repository knows about one module version.

    Attributes:
        coordinate: The described module and version.
        dependencies: The module's own declared dependencies.
        artifact_specs: Artifacts published for this version. Empty for
            metadata-only modules (e.g. a Maven ``pom`` packaging).
    """

    coordinate: Coordinate
    dependencies: DependencySet = field(default_factory=DependencySet)
    artifact_specs: tuple[ArtifactSpec, ...] = (MAIN_ARTIFACT,)


class Repository(ABC):
    """Abstract source of module metadata and artifacts."""

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def list_versions(self, module_id: ModuleId) -> list[Version]:
        """Return the available versions of *module_id* (empty if unknown).

        Raises:
            RepositoryError: If the repository cannot be queried.
        """

    @abstractmethod
    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        """Return the descriptor of a concrete coordinate.

        Raises:
            ModuleNotFoundInRepository: If the module version is unknown.
            RepositoryError: If the descriptor cannot be read.
        """

    @abstractmethod
    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        """Return a local file for one artifact of *coordinate*.

        Raises:
            ArtifactNotFound: If the artifact does not exist.
            RepositoryError: On transport or I/O failure.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


# ---------------------------------------------------------------------------
# InMemoryRepository
# ---------------------------------------------------------------------------


class InMemoryRepository(Repository):
    """Repository backed by descriptors registered in code.

    Artifacts are written into *cache_root* using the coordinate cache
    layout the first time they are materialized.

    Example::

        repo = InMemoryRepository(tmp_path)
        repo.add("org.acme:core:1.0", dependencies=DependencySet.of("org.acme:util:2.0"))
        repo.add("org.acme:util:2.0")
    """

    def __init__(self, cache_root: Path | None = None) -> None:
        self._cache_root = Path(cache_root) if cache_root else default_cache_root()
        self._descriptors: dict[ModuleId, dict[Version, ModuleDescriptor]] = {}
        self._contents: dict[tuple[Coordinate, ArtifactSpec], bytes] = {}

    @property
    def cache_root(self) -> Path:
        return self._cache_root

    def add(
        self,
        coordinate: Coordinate | str,
        dependencies: DependencySet | Iterable[str] = (),
        artifact_specs: Sequence[ArtifactSpec] = (MAIN_ARTIFACT,),
        content: bytes = b"",
    ) -> InMemoryRepository:
        """Register one module version. Returns self for chaining."""
        if isinstance(coordinate, str):
            coordinate = Coordinate.parse(coordinate)
        if not coordinate.version.is_concrete():
            raise ValueError(f"Cannot register {coordinate} without a concrete version")
        if not isinstance(dependencies, DependencySet):
            dependencies = DependencySet.of(*dependencies)
        base = Coordinate(coordinate.module_id, coordinate.version)
        descriptor = ModuleDescriptor(base, dependencies, tuple(artifact_specs))
        self._descriptors.setdefault(base.module_id, {})[base.version] = descriptor
        for spec in descriptor.artifact_specs:
            self._contents[(base, spec)] = content or f"{base}{spec}".encode()
        return self

    def list_versions(self, module_id: ModuleId) -> list[Version]:
        return list(self._descriptors.get(module_id, {}))

    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        descriptor = self._descriptors.get(coordinate.module_id, {}).get(coordinate.version)
        if descriptor is None:
            raise ModuleNotFoundInRepository(
                f"{coordinate.module_id}:{coordinate.version} not found"
            )
        return descriptor

    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        base = Coordinate(coordinate.module_id, coordinate.version)
        content = self._contents.get((base, spec))
        if content is None:
            raise ArtifactNotFound(f"{base} has no artifact {spec}")
        target = base.cache_path(self._cache_root, spec)
        if not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        return target


# ---------------------------------------------------------------------------
# RepositorySet
# ---------------------------------------------------------------------------


class RepositorySet(Repository):
    """Ordered chain of repositories.

    ``list_versions`` merges every repository's answer. ``describe`` and
    ``materialize`` ask each repository in turn and return the first
    answer; if all fail, the last error is raised.
    """

    def __init__(self, repositories: Iterable[Repository] = ()) -> None:
        self._repositories: tuple[Repository, ...] = tuple(repositories)

    @property
    def repositories(self) -> tuple[Repository, ...]:
        return self._repositories

    def and_(self, repository: Repository) -> RepositorySet:
        return RepositorySet(self._repositories + (repository,))

    def list_versions(self, module_id: ModuleId) -> list[Version]:
        versions: dict[Version, None] = {}
        errors: list[RepositoryError] = []
        for repo in self._repositories:
            try:
                versions.update(dict.fromkeys(repo.list_versions(module_id)))
            except RepositoryError as exc:
                logger.warning("%s cannot list versions of %s: %s", repo.name, module_id, exc)
                errors.append(exc)
        if not versions and errors:
            raise errors[-1]
        return list(versions)

    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        last_error: RepositoryError = ModuleNotFoundInRepository(
            f"{coordinate.module_id}:{coordinate.version} not found in any repository"
        )
        for repo in self._repositories:
            try:
                return repo.describe(coordinate)
            except RepositoryError as exc:
                logger.debug("%s cannot describe %s: %s", repo.name, coordinate, exc)
                if not isinstance(exc, ModuleNotFoundInRepository):
                    last_error = exc
        raise last_error

    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        last_error: RepositoryError = ArtifactNotFound(
            f"{coordinate} {spec} not found in any repository"
        )
        for repo in self._repositories:
            try:
                return repo.materialize(coordinate, spec)
            except RepositoryError as exc:
                logger.debug("%s cannot materialize %s %s: %s", repo.name, coordinate, spec, exc)
                if not isinstance(exc, (ModuleNotFoundInRepository, ArtifactNotFound)):
                    last_error = exc
        raise last_error

    def __repr__(self) -> str:
        return f"RepositorySet({', '.join(repr(r) for r in self._repositories)})"
