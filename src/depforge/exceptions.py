"""Depforge exception hierarchy.

All public exceptions inherit from DepforgeError, giving callers a single
base class to catch when they want to handle any Depforge-specific failure
without swallowing unrelated errors.
"""

from __future__ import annotations


class DepforgeError(Exception):
    """Base exception for all Depforge errors."""


class CoordinateParseError(DepforgeError, ValueError):
    """Raised when a textual coordinate description is malformed.

    The message enumerates the accepted ``group:name[...]`` shapes.
    """


class VersionError(DepforgeError, ValueError):
    """Raised when a dynamic version (``+``, ``1.2.+``) is used where a
    concrete version is required, e.g. in an ordering comparison."""


class ScopeCycleError(DepforgeError):
    """Raised when scope inheritance forms a cycle.

    Attributes:
        cycle: Scope names forming the cycle, first name repeated last.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(
            "Cyclic scope extension detected: " + " -> ".join(cycle)
        )


class RepositoryError(DepforgeError):
    """Raised by a repository when a module or artifact cannot be served.

    Covers transport failures, unreadable descriptors, and missing
    metadata. The resolution engine turns these into report entries.
    """


class ModuleNotFoundInRepository(RepositoryError):
    """Raised when no repository knows the requested module or version."""


class ArtifactNotFound(RepositoryError):
    """Raised when module metadata exists but an artifact file does not."""


class VersionConflictError(DepforgeError):
    """Raised when the FAIL conflict strategy meets two differing versions."""

    def __init__(self, module_id: object, version: object, other: object) -> None:
        self.module_id = module_id
        self.version = version
        self.other = other
        super().__init__(
            f"{module_id} has been declared with both version "
            f"'{version}' and '{other}'"
        )


class ResolutionError(DepforgeError):
    """Raised when dependency resolution must stop hard.

    Ordinary unresolved modules are reported, not raised. This is raised
    for fail-hard conflicts and by ``ResolveResult.assert_no_error()``.
    """


class DependencyFetchError(ResolutionError):
    """Raised by ``fetch_dependencies`` when the fail-on-error policy is on
    and the resolution reported problems."""


class ConfigError(DepforgeError):
    """Raised when a build descriptor (``depforge.yaml``) is invalid."""
