"""Registry of repository kinds for the build configuration.

The ``RepositoryRegistry`` maps a repository ``type`` name, as written in
``depforge.yaml``, to a factory building the repository from its
configuration entry:

.. code-block:: yaml

    repositories:
      - type: local
        path: ./repo
      - type: maven
        url: https://repo1.maven.org/maven2

Kinds are registered explicitly; ``default_registry()`` pre-registers the
built-in ones. Custom kinds are added with ``register()``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from pathlib import Path
from typing import Any

from depforge.core.model.scope import Scope
from depforge.core.resolution.repository import Repository, RepositorySet
from depforge.exceptions import ConfigError
from depforge.repository.local import LocalRepository
from depforge.repository.maven import MAVEN_CENTRAL, MavenRepository

RepositoryFactory = Callable[..., Repository]
"""``factory(entry, base_dir=..., cache_root=..., scopes=...) -> Repository``."""


class RepositoryRegistry:
    """Registry of repository factories keyed by type name.

    Attributes:
        factories: Registered factories, in registration order.
    """

    def __init__(self) -> None:
        self.factories: dict[str, RepositoryFactory] = {}

    def register(self, kind: str, factory: RepositoryFactory) -> None:
        """Add (or replace) the factory for *kind*.

        Args:
            kind: The ``type`` value used in configuration entries.
            factory: Callable building the repository from an entry.
        """
        self.factories[kind] = factory

    @property
    def kinds(self) -> list[str]:
        return list(self.factories)

    def create(
        self,
        entry: Mapping[str, Any],
        base_dir: Path,
        cache_root: Path | None = None,
        scopes: Mapping[str, Scope] | None = None,
    ) -> Repository:
        """Build one repository from a configuration entry.

        Raises:
            ConfigError: If the entry has no known ``type``.
        """
        if not isinstance(entry, Mapping):
            raise ConfigError(f"Invalid repository entry: {entry!r}")
        kind = str(entry.get("type", ""))
        factory = self.factories.get(kind)
        if factory is None:
            raise ConfigError(
                f"Unknown repository type '{kind}'; expected one of: {', '.join(self.kinds)}"
            )
        return factory(entry, base_dir=base_dir, cache_root=cache_root, scopes=scopes)

    def create_all(
        self,
        entries: Iterable[Mapping[str, Any]],
        base_dir: Path,
        cache_root: Path | None = None,
        scopes: Mapping[str, Scope] | None = None,
    ) -> RepositorySet:
        """Build a ``RepositorySet`` from configuration entries, in order."""
        return RepositorySet(
            self.create(entry, base_dir, cache_root, scopes) for entry in entries
        )


def _resolve_path(value: Any, base_dir: Path) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base_dir / path


def _local_factory(
    entry: Mapping[str, Any],
    base_dir: Path,
    cache_root: Path | None = None,
    scopes: Mapping[str, Scope] | None = None,
) -> Repository:
    if "path" not in entry:
        raise ConfigError("A 'local' repository needs a 'path'")
    return LocalRepository(_resolve_path(entry["path"], base_dir), cache_root, scopes)


def _maven_factory(
    entry: Mapping[str, Any],
    base_dir: Path,
    cache_root: Path | None = None,
    scopes: Mapping[str, Scope] | None = None,
) -> Repository:
    if "path" in entry:
        return MavenRepository(_resolve_path(entry["path"], base_dir), cache_root)
    return MavenRepository(str(entry.get("url", MAVEN_CENTRAL)), cache_root)


def default_registry() -> RepositoryRegistry:
    """Create a RepositoryRegistry pre-loaded with the built-in kinds.

    1. ``local`` -- ``LocalRepository`` (``path``)
    2. ``maven`` -- ``MavenRepository`` (``path`` or ``url``; Maven Central
       when neither is given)

    Returns:
        A RepositoryRegistry with both built-in kinds registered.
    """
    registry = RepositoryRegistry()
    registry.register("local", _local_factory)
    registry.register("maven", _maven_factory)
    return registry
