"""Dependency model: versions, coordinates, scopes and dependency sets.

All public names are re-exported here, so callers can write
``from depforge.core.model import Coordinate, DependencySet, COMPILE``.
"""

from depforge.core.model.coordinate import (
    DEFAULT_TYPE,
    MAIN_ARTIFACT,
    ArtifactSpec,
    ConflictStrategy,
    Coordinate,
    ModuleId,
    is_coordinate_description,
    parse_coordinate,
    resolve_conflict,
)
from depforge.core.model.dependency import (
    Dependency,
    DependencySet,
    FileDependency,
    ModuleDependency,
    ProjectDependency,
    VersionProvider,
)
from depforge.core.model.scope import (
    COMPILE,
    COMPILE_AND_RUNTIME,
    PROVIDED,
    RUNTIME,
    STANDARD_SCOPES,
    TEST,
    Scope,
    closure,
    is_selected,
    scopes_from_mapping,
    scopes_inherited_by,
)
from depforge.core.model.version import (
    UNSPECIFIED,
    Version,
    highest,
    version_sort_key,
)

__all__ = [
    "ArtifactSpec",
    "COMPILE",
    "COMPILE_AND_RUNTIME",
    "ConflictStrategy",
    "Coordinate",
    "DEFAULT_TYPE",
    "Dependency",
    "DependencySet",
    "FileDependency",
    "MAIN_ARTIFACT",
    "ModuleDependency",
    "ModuleId",
    "PROVIDED",
    "ProjectDependency",
    "RUNTIME",
    "STANDARD_SCOPES",
    "Scope",
    "TEST",
    "UNSPECIFIED",
    "Version",
    "VersionProvider",
    "closure",
    "highest",
    "is_coordinate_description",
    "is_selected",
    "parse_coordinate",
    "resolve_conflict",
    "scopes_from_mapping",
    "scopes_inherited_by",
    "version_sort_key",
]
