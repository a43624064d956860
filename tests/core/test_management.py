"""Tests for the DependencyManagement facade."""

from __future__ import annotations

import logging

import pytest

from depforge.core.management import DependencyManagement
from depforge.core.model import COMPILE, RUNTIME, TEST, DependencySet, ModuleId, Version
from depforge.core.resolution import InMemoryRepository
from depforge.exceptions import DependencyFetchError, ResolutionError


@pytest.fixture
def management(diamond_repo: InMemoryRepository) -> DependencyManagement:
    return DependencyManagement(diamond_repo).add_dependencies(
        DependencySet.of("org.acme:a:1.0")
    )


class TestMutation:
    """Replacing the dependency set drops cached results."""

    def test_add_appends(self, management: DependencyManagement) -> None:
        management.add_dependencies(DependencySet.of("org.acme:b:1.0"))
        assert management.dependencies.module_ids == [
            ModuleId("org.acme", "a"),
            ModuleId("org.acme", "b"),
        ]

    def test_add_invalidates_cached_results(self, management: DependencyManagement) -> None:
        before = management.resolve(COMPILE)
        assert before.version_of(ModuleId("org.acme", "c")) == Version("1.0")
        management.add_dependencies(DependencySet.of("org.acme:b:1.0"))
        after = management.resolve(COMPILE)
        assert after.version_of(ModuleId("org.acme", "c")) == Version("2.0")

    def test_repeated_resolve_is_cached(self, management: DependencyManagement) -> None:
        assert management.resolve(COMPILE) is management.resolve(COMPILE)

    def test_remove(self, management: DependencyManagement) -> None:
        management.remove_dependencies("org.acme:a")
        assert len(management.dependencies) == 0
        assert management.resolve(COMPILE).module_ids == []

    def test_set_none_is_misuse(self, management: DependencyManagement) -> None:
        with pytest.raises(TypeError):
            management.set_dependencies(None)  # type: ignore[arg-type]

    def test_scope_defaulting(self, management: DependencyManagement) -> None:
        management.add_dependencies(DependencySet.of().and_("org.acme:d:1.0", TEST))
        scopes = [d.scopes for d in management.scope_defaulted_dependencies()]
        assert scopes == [(COMPILE, RUNTIME), (TEST,)]
        assert management.default_scopes == (COMPILE, RUNTIME)


class TestFailOnError:
    """The build-level policy applied by fetch_dependencies."""

    def test_clean_fetch(self, management: DependencyManagement) -> None:
        result = management.fetch_dependencies(COMPILE)
        assert not result.error_report.has_errors
        assert [p.name for p in management.files(COMPILE)] == ["a-1.0.jar", "c-1.0.jar"]

    def test_errors_raise(self, management: DependencyManagement) -> None:
        management.add_dependencies(DependencySet.of("org.acme:missing:1.0"))
        with pytest.raises(DependencyFetchError, match="org.acme:missing") as excinfo:
            management.fetch_dependencies(COMPILE)
        assert isinstance(excinfo.value, ResolutionError)

    def test_errors_are_logged_when_not_failing(
        self, management: DependencyManagement, caplog: pytest.LogCaptureFixture
    ) -> None:
        management.fail_on_error = False
        management.add_dependencies(DependencySet.of("org.acme:missing:1.0"))
        with caplog.at_level(logging.WARNING, logger="depforge.core.management"):
            result = management.fetch_dependencies(COMPILE)
        assert result.error_report.has_errors
        assert "Errors with dependencies" in caplog.text

    def test_resolve_ignores_the_policy(self, management: DependencyManagement) -> None:
        management.add_dependencies(DependencySet.of("org.acme:missing:1.0"))
        assert management.resolve(COMPILE).error_report.has_errors
