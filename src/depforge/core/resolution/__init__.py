"""Resolution engine: repositories, caller-edge graph, results and cache."""

from depforge.core.resolution.cache import ResolutionCache
from depforge.core.resolution.engine import (
    ROOT_MODULE,
    DependencyResolver,
    ResolutionParameters,
    resolve,
)
from depforge.core.resolution.graph import (
    CallerEdge,
    FileNodeInfo,
    ModuleNodeInfo,
    ProjectKey,
    ResolvedNode,
    TreeBuilder,
)
from depforge.core.resolution.repository import (
    CACHE_DIR_ENV,
    InMemoryRepository,
    ModuleDescriptor,
    Repository,
    RepositorySet,
    default_cache_root,
)
from depforge.core.resolution.result import (
    ErrorReport,
    ModuleProblem,
    ProblemKind,
    ResolvedVersions,
    ResolveResult,
)

__all__ = [
    "CACHE_DIR_ENV",
    "CallerEdge",
    "DependencyResolver",
    "ErrorReport",
    "FileNodeInfo",
    "InMemoryRepository",
    "ModuleDescriptor",
    "ModuleNodeInfo",
    "ModuleProblem",
    "ProblemKind",
    "ProjectKey",
    "ROOT_MODULE",
    "Repository",
    "RepositorySet",
    "ResolutionCache",
    "ResolutionParameters",
    "ResolveResult",
    "ResolvedNode",
    "ResolvedVersions",
    "TreeBuilder",
    "default_cache_root",
    "resolve",
]
