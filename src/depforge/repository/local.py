"""File-system repository with YAML module descriptors.

Layout::

    root/
      org.acme/            # group
        core/              # name
          1.0/             # version
            module.yaml    # descriptor
            core-1.0.jar
            core-1.0-sources.jar

``module.yaml`` lists the module's own dependencies and, optionally, the
artifacts it publishes:

.. code-block:: yaml

    dependencies:
      - org.acme:util:2.0
      - coordinate: org.acme:log:1.1
        scopes: [runtime]
        exclusions: [org.legacy:shim]
        transitive: false
    version_overrides:
      org.acme:json: "3.2"
    artifacts:
      - type: jar
      - classifier: sources

Without an ``artifacts`` key the module publishes its main jar. An empty
list declares a metadata-only module.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from depforge.core.model.coordinate import MAIN_ARTIFACT, ArtifactSpec, Coordinate, ModuleId
from depforge.core.model.dependency import DependencySet, ModuleDependency, VersionProvider
from depforge.core.model.scope import STANDARD_SCOPES, Scope
from depforge.core.model.version import Version
from depforge.core.resolution.repository import (
    ModuleDescriptor,
    Repository,
    default_cache_root,
)
from depforge.exceptions import (
    ArtifactNotFound,
    ConfigError,
    CoordinateParseError,
    ModuleNotFoundInRepository,
    RepositoryError,
)

logger = logging.getLogger(__name__)

DESCRIPTOR_NAME = "module.yaml"


# ---------------------------------------------------------------------------
# Shared YAML entry parsing (also used by the build config loader)
# ---------------------------------------------------------------------------


def scope_lookup(scopes: Mapping[str, Scope] | None = None) -> dict[str, Scope]:
    """Standard scopes by name, extended (or shadowed) by *scopes*."""
    lookup = dict(STANDARD_SCOPES)
    lookup.update(scopes or {})
    return lookup


def scopes_from_names(names: Any, lookup: Mapping[str, Scope]) -> tuple[Scope, ...]:
    if names is None:
        return ()
    if isinstance(names, str):
        names = [names]
    result = []
    for name in names:
        scope = lookup.get(str(name))
        if scope is None:
            raise ConfigError(f"Unknown scope '{name}'")
        result.append(scope)
    return tuple(result)


def dependency_from_entry(
    entry: str | Mapping[str, Any],
    lookup: Mapping[str, Scope],
) -> ModuleDependency:
    """Build a ``ModuleDependency`` from a YAML list entry.

    An entry is either a coordinate string or a mapping with a
    ``coordinate`` key and optional ``scopes``, ``exclusions`` and
    ``transitive`` keys.

    Raises:
        ConfigError: If the entry is malformed or names an unknown scope.
    """
    try:
        if isinstance(entry, str):
            return ModuleDependency(Coordinate.parse(entry))
        if not isinstance(entry, Mapping) or "coordinate" not in entry:
            raise ConfigError(f"Invalid dependency entry: {entry!r}")
        dependency = ModuleDependency(
            Coordinate.parse(str(entry["coordinate"])),
            scopes_from_names(entry.get("scopes"), lookup),
            frozenset(ModuleId.of(str(m)) for m in entry.get("exclusions") or ()),
            bool(entry.get("transitive", True)),
        )
    except CoordinateParseError as exc:
        raise ConfigError(str(exc)) from exc
    return dependency


def version_provider_from(mapping: Mapping[str, Any] | None) -> VersionProvider:
    if not mapping:
        return VersionProvider()
    if not isinstance(mapping, Mapping):
        raise ConfigError("version_overrides must be a mapping of 'group:name' to version")
    return VersionProvider.of({str(k): str(v) for k, v in mapping.items()})


def _artifact_specs_from(entries: Any) -> tuple[ArtifactSpec, ...]:
    if entries is None:
        return (MAIN_ARTIFACT,)
    specs = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            raise ConfigError(f"Invalid artifact entry: {entry!r}")
        specs.append(ArtifactSpec.of(entry.get("classifier"), entry.get("type")))
    return tuple(specs)


# ---------------------------------------------------------------------------
# LocalRepository
# ---------------------------------------------------------------------------


class LocalRepository(Repository):
    """Repository reading ``module.yaml`` descriptors from a directory tree.

    Args:
        root: Repository root directory.
        cache_root: Where materialized artifacts are copied to.
        scopes: Custom scopes descriptors may refer to, by name.
    """

    def __init__(
        self,
        root: Path | str,
        cache_root: Path | str | None = None,
        scopes: Mapping[str, Scope] | None = None,
    ) -> None:
        self._root = Path(root).expanduser()
        self._cache_root = Path(cache_root) if cache_root else default_cache_root()
        self._scopes = scope_lookup(scopes)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def name(self) -> str:
        return f"local:{self._root}"

    def _module_dir(self, module_id: ModuleId) -> Path:
        return self._root / module_id.group / module_id.name

    def _version_dir(self, coordinate: Coordinate) -> Path:
        return self._module_dir(coordinate.module_id) / coordinate.version.value

    def list_versions(self, module_id: ModuleId) -> list[Version]:
        module_dir = self._module_dir(module_id)
        if not module_dir.is_dir():
            return []
        return [
            Version.of(child.name)
            for child in sorted(module_dir.iterdir())
            if (child / DESCRIPTOR_NAME).is_file()
        ]

    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        path = self._version_dir(coordinate) / DESCRIPTOR_NAME
        if not path.is_file():
            raise ModuleNotFoundInRepository(
                f"{coordinate.module_id}:{coordinate.version} not found in {self._root}"
            )
        logger.debug("Reading %s", path)
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise RepositoryError(f"Cannot read {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise RepositoryError(f"{path} must contain a mapping")
        try:
            dependencies = DependencySet(
                tuple(
                    dependency_from_entry(entry, self._scopes)
                    for entry in data.get("dependencies") or ()
                ),
                version_provider_from(data.get("version_overrides")),
            )
            specs = _artifact_specs_from(data.get("artifacts"))
        except ConfigError as exc:
            raise RepositoryError(f"Invalid descriptor {path}: {exc}") from exc
        return ModuleDescriptor(
            Coordinate(coordinate.module_id, coordinate.version), dependencies, specs
        )

    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        base = Coordinate(coordinate.module_id, coordinate.version)
        target = base.cache_path(self._cache_root, spec)
        if target.exists():
            return target
        source = self._version_dir(base) / base.cache_file_name(spec)
        if not source.is_file():
            raise ArtifactNotFound(f"{source} does not exist")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)
        except OSError as exc:
            raise RepositoryError(f"Cannot copy {source} to {target}: {exc}") from exc
        logger.debug("Materialized %s", target)
        return target

    def __repr__(self) -> str:
        return f"LocalRepository({str(self._root)!r})"
