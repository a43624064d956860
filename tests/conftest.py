"""Shared fixtures for depforge tests."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from depforge.core.model import ArtifactSpec, Coordinate, ModuleId, Version
from depforge.core.resolution.repository import (
    InMemoryRepository,
    ModuleDescriptor,
    Repository,
)


class RecordingRepository(Repository):
    """Wraps a repository and records every call made to it."""

    def __init__(self, delegate: Repository) -> None:
        self.delegate = delegate
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def _record(self, method: str, target: object) -> None:
        with self._lock:
            self.calls.append((method, str(target)))

    def count(self, method: str | None = None) -> int:
        return sum(1 for m, _ in self.calls if method is None or m == method)

    def targets(self) -> list[str]:
        return [t for _, t in self.calls]

    def list_versions(self, module_id: ModuleId) -> list[Version]:
        self._record("list_versions", module_id)
        return self.delegate.list_versions(module_id)

    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        self._record("describe", coordinate)
        return self.delegate.describe(coordinate)

    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        self._record("materialize", coordinate)
        return self.delegate.materialize(coordinate, spec)


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Artifact cache root inside the test's temporary directory."""
    return tmp_path / "cache"


@pytest.fixture
def repo(cache_root: Path) -> InMemoryRepository:
    """An empty in-memory repository writing into ``cache_root``."""
    return InMemoryRepository(cache_root)


@pytest.fixture
def recording(repo: InMemoryRepository) -> RecordingRepository:
    """``repo`` wrapped so tests can count repository round trips."""
    return RecordingRepository(repo)


@pytest.fixture
def diamond_repo(repo: InMemoryRepository) -> InMemoryRepository:
    """Diamond graph: a:1.0 -> c:1.0 and b:1.0 -> c:2.0 -> d:1.0."""
    repo.add("org.acme:a:1.0", ["org.acme:c:1.0"])
    repo.add("org.acme:b:1.0", ["org.acme:c:2.0"])
    repo.add("org.acme:c:1.0")
    repo.add("org.acme:c:2.0", ["org.acme:d:1.0"])
    repo.add("org.acme:d:1.0")
    return repo
