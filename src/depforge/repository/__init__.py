"""Concrete repositories and the registry of repository kinds."""

from depforge.core.resolution.repository import InMemoryRepository, RepositorySet
from depforge.repository.local import LocalRepository
from depforge.repository.maven import MavenRepository
from depforge.repository.registry import RepositoryRegistry, default_registry

__all__ = [
    "InMemoryRepository",
    "LocalRepository",
    "MavenRepository",
    "RepositoryRegistry",
    "RepositorySet",
    "default_registry",
]
