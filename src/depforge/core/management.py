"""Dependency management facade used by build orchestration.

``DependencyManagement`` owns the dependencies of one project together with
the resolver (and thus the resolve-result cache) and the build-level
"fail on error" policy. It is the place where a non-empty error report
either stops the build or is merely logged.

Example::

    management = DependencyManagement(repository)
    management.add_dependencies(DependencySet.of("org.acme:core:1.0"))
    result = management.fetch_dependencies(COMPILE)
"""

from __future__ import annotations

import logging
from pathlib import Path

from depforge.core.model.coordinate import ModuleId
from depforge.core.model.dependency import DependencySet, ModuleDependency
from depforge.core.model.scope import Scope
from depforge.core.resolution.engine import DependencyResolver, ResolutionParameters
from depforge.core.resolution.repository import Repository
from depforge.core.resolution.result import ResolveResult
from depforge.exceptions import DependencyFetchError

logger = logging.getLogger(__name__)


class DependencyManagement:
    """Holds a project's dependencies and resolves them on demand.

    Args:
        repository: Repository (or ``RepositorySet``) to resolve against.
        parameters: Engine parameters, including the default scopes given
            to unscoped declarations.
        fail_on_error: When True, ``fetch_dependencies`` raises on any
            reported problem; otherwise it logs the report as a warning.
    """

    def __init__(
        self,
        repository: Repository,
        parameters: ResolutionParameters | None = None,
        fail_on_error: bool = True,
    ) -> None:
        self._resolver = DependencyResolver(repository, parameters)
        self._dependencies = DependencySet()
        self.fail_on_error = fail_on_error

    @property
    def resolver(self) -> DependencyResolver:
        return self._resolver

    @property
    def dependencies(self) -> DependencySet:
        return self._dependencies

    @property
    def default_scopes(self) -> tuple[Scope, ...]:
        return self._resolver.parameters.default_scopes

    # ---- Mutation (every replacement drops cached results) ----

    def set_dependencies(self, dependencies: DependencySet) -> DependencyManagement:
        if dependencies is None:
            raise TypeError("dependencies cannot be None")
        self._dependencies = dependencies
        self.clean_cache()
        return self

    def add_dependencies(self, dependencies: DependencySet) -> DependencyManagement:
        return self.set_dependencies(self._dependencies.and_(dependencies))

    def remove_dependencies(self, *module_ids: ModuleId | str) -> DependencyManagement:
        """Drop every module declaration of the given modules."""
        removed = {ModuleId.of(m) if isinstance(m, str) else m for m in module_ids}
        kept = tuple(
            d for d in self._dependencies.dependencies
            if not (isinstance(d, ModuleDependency) and d.module_id in removed)
        )
        return self.set_dependencies(
            DependencySet(
                kept,
                self._dependencies.version_provider,
                self._dependencies.global_exclusions,
            )
        )

    def clean_cache(self) -> None:
        cache = self._resolver.cache
        if cache is not None:
            cache.invalidate()

    # ---- Queries ----

    def scope_defaulted_dependencies(self) -> DependencySet:
        """The dependencies with unscoped declarations given the default scopes."""
        return self._dependencies.with_default_scopes(*self.default_scopes)

    def resolve(self, *scopes: Scope) -> ResolveResult:
        """Resolve without applying the fail-on-error policy."""
        return self._resolver.resolve(self._dependencies, *scopes)

    def fetch_dependencies(self, *scopes: Scope) -> ResolveResult:
        """Resolve for *scopes* and enforce the fail-on-error policy.

        Raises:
            DependencyFetchError: If the report has problems and
                ``fail_on_error`` is set.
        """
        result = self.resolve(*scopes)
        if result.error_report.has_errors:
            if self.fail_on_error:
                raise DependencyFetchError(str(result.error_report))
            logger.warning("%s", result.error_report)
        return result

    def files(self, *scopes: Scope) -> list[Path]:
        """Files of ``fetch_dependencies(*scopes)``, in tree order."""
        return self.fetch_dependencies(*scopes).files()
