"""Build descriptor (``depforge.yaml``) loading.

A build descriptor declares where modules come from and what the project
depends on:

.. code-block:: yaml

    name: webapp
    repositories:
      - type: local
        path: ./repo
      - type: maven
        url: https://repo1.maven.org/maven2
    cache_dir: ~/.depforge/cache
    conflict_strategy: take_highest     # take_first | take_highest | take_lowest | fail
    fail_on_error: true
    max_workers: 4
    default_scopes: [compile, runtime]
    scopes:
      integration:
        extends: [test]
        transitive: false
    version_overrides:
      org.acme:json: "3.2"
    exclusions: [commons-logging:commons-logging]
    dependencies:
      - org.acme:core:1.0
      - coordinate: org.acme:testkit:2.1
        scopes: [test]
    files:
      - path: lib/vendor.jar
        scopes: [compile]
    projects:
      - ../shared
    outputs: [build/classes]

``projects`` name directories holding their own ``depforge.yaml``; each
becomes a project dependency whose dependencies are the sub-project's
declared dependencies, resolved in place without publishing anything.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from depforge.core.management import DependencyManagement
from depforge.core.model.coordinate import ConflictStrategy, ModuleId
from depforge.core.model.dependency import DependencySet, FileDependency, ProjectDependency
from depforge.core.model.scope import COMPILE_AND_RUNTIME, Scope, scopes_from_mapping
from depforge.core.resolution.engine import ResolutionParameters
from depforge.core.resolution.repository import RepositorySet, default_cache_root
from depforge.exceptions import ConfigError
from depforge.repository.local import (
    dependency_from_entry,
    scopes_from_names,
    version_provider_from,
)
from depforge.repository.registry import RepositoryRegistry, default_registry

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "depforge.yaml"

_KNOWN_KEYS = frozenset({
    "name", "repositories", "cache_dir", "conflict_strategy", "fail_on_error",
    "max_workers", "default_scopes", "scopes", "version_overrides", "exclusions",
    "dependencies", "files", "projects", "outputs",
})


@dataclass
class BuildConfig:
    """A loaded build descriptor.

    Attributes:
        path: The descriptor file.
        name: Project name (defaults to the directory name).
        repositories: Repositories, in lookup order.
        cache_root: Artifact cache root.
        parameters: Resolution engine parameters.
        fail_on_error: Whether a non-empty error report stops the build.
        scopes: Every scope usable by name (standard plus custom).
        dependencies: Declared dependencies, project dependencies included.
        outputs: Files this project hands to its dependents.
    """

    path: Path
    name: str
    repositories: RepositorySet
    cache_root: Path
    parameters: ResolutionParameters = field(default_factory=ResolutionParameters)
    fail_on_error: bool = True
    scopes: dict[str, Scope] = field(default_factory=dict)
    dependencies: DependencySet = field(default_factory=DependencySet)
    outputs: tuple[Path, ...] = ()

    @property
    def base_dir(self) -> Path:
        return self.path.parent

    def scope(self, name: str) -> Scope:
        """Look up a scope by name.

        Raises:
            ConfigError: If no such scope is defined.
        """
        try:
            return self.scopes[name]
        except KeyError:
            raise ConfigError(
                f"Unknown scope '{name}'; expected one of: {', '.join(sorted(self.scopes))}"
            ) from None

    def management(self) -> DependencyManagement:
        """A ``DependencyManagement`` for this project's dependencies."""
        management = DependencyManagement(
            self.repositories, self.parameters, self.fail_on_error
        )
        return management.set_dependencies(self.dependencies)

    def as_project_dependency(self) -> ProjectDependency:
        return ProjectDependency(
            self.name, self.dependencies, self.outputs, self.base_dir
        )


def find_config(path: Path | str) -> Path:
    """Return the descriptor for *path* (a file, or a directory holding one).

    Raises:
        ConfigError: If no descriptor exists there.
    """
    candidate = Path(path).expanduser()
    if candidate.is_dir():
        candidate = candidate / CONFIG_FILE_NAME
    if not candidate.is_file():
        raise ConfigError(f"No build descriptor found at {candidate}")
    return candidate


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{path} must contain a mapping at top level")
    unknown = set(data) - _KNOWN_KEYS
    if unknown:
        logger.warning("Ignoring unknown keys in %s: %s", path, ", ".join(sorted(unknown)))
    return dict(data)


def _strategy(value: Any) -> ConflictStrategy:
    if value is None:
        return ConflictStrategy.TAKE_HIGHEST
    try:
        return ConflictStrategy(str(value).lower())
    except ValueError:
        choices = ", ".join(s.value for s in ConflictStrategy)
        raise ConfigError(f"Unknown conflict_strategy '{value}'; expected one of: {choices}") from None


def _list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ConfigError(f"'{key}' must be a list")
    return value


def _resolve(base_dir: Path, value: Any) -> Path:
    path = Path(str(value)).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_build_config(
    path: Path | str,
    registry: RepositoryRegistry | None = None,
    _loading: tuple[Path, ...] = (),
) -> BuildConfig:
    """Load a build descriptor and everything it refers to.

    Args:
        path: The descriptor, or the directory that holds it.
        registry: Repository kinds; ``default_registry()`` when omitted.

    Returns:
        The loaded configuration.

    Raises:
        ConfigError: On unreadable or invalid descriptors, unknown scopes,
            repository types or strategies, and cyclic project references.
        ScopeCycleError: If custom scopes extend each other cyclically.
    """
    config_path = find_config(path).resolve()
    if config_path in _loading:
        chain = " -> ".join(str(p.parent.name) for p in _loading + (config_path,))
        raise ConfigError(f"Cyclic project references: {chain}")
    registry = registry or default_registry()
    data = _read_yaml(config_path)
    base_dir = config_path.parent
    logger.debug("Loading build descriptor %s", config_path)

    scope_definitions = data.get("scopes") or {}
    if not isinstance(scope_definitions, Mapping):
        raise ConfigError("'scopes' must be a mapping of scope name to definition")
    scopes = scopes_from_mapping(scope_definitions)

    if data.get("cache_dir"):
        cache_root = _resolve(base_dir, data["cache_dir"])
    else:
        cache_root = default_cache_root()

    default_scopes = scopes_from_names(data.get("default_scopes"), scopes) or COMPILE_AND_RUNTIME
    try:
        max_workers = int(data.get("max_workers", 1))
        parameters = ResolutionParameters(
            conflict_strategy=_strategy(data.get("conflict_strategy")),
            max_workers=max_workers,
            default_scopes=default_scopes,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid resolution parameters in {config_path}: {exc}") from exc

    repositories = registry.create_all(
        _list(data, "repositories"), base_dir, cache_root, scopes
    )

    dependencies = DependencySet(
        tuple(dependency_from_entry(entry, scopes) for entry in _list(data, "dependencies")),
        version_provider_from(data.get("version_overrides")),
        frozenset(ModuleId.of(str(m)) for m in _list(data, "exclusions")),
    )
    for entry in _list(data, "files"):
        if isinstance(entry, str):
            entry = {"path": entry}
        if not isinstance(entry, Mapping) or "path" not in entry:
            raise ConfigError(f"Invalid file entry: {entry!r}")
        dependencies = dependencies.and_(
            FileDependency(
                (_resolve(base_dir, entry["path"]),),
                scopes_from_names(entry.get("scopes"), scopes),
            )
        )
    for entry in _list(data, "projects"):
        if isinstance(entry, str):
            entry = {"path": entry}
        if not isinstance(entry, Mapping) or "path" not in entry:
            raise ConfigError(f"Invalid project entry: {entry!r}")
        sub = load_build_config(
            _resolve(base_dir, entry["path"]), registry, _loading + (config_path,)
        )
        project = sub.as_project_dependency()
        project_scopes = scopes_from_names(entry.get("scopes"), scopes)
        if project_scopes:
            project = ProjectDependency(
                project.name,
                project.exported_dependencies,
                project.output_paths,
                project.base_dir,
                project_scopes,
            )
        dependencies = dependencies.and_(project)

    return BuildConfig(
        path=config_path,
        name=str(data.get("name") or base_dir.name),
        repositories=repositories,
        cache_root=cache_root,
        parameters=parameters,
        fail_on_error=bool(data.get("fail_on_error", True)),
        scopes=scopes,
        dependencies=dependencies,
        outputs=tuple(_resolve(base_dir, p) for p in _list(data, "outputs")),
    )
