"""Tests for resolve results and error reports."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depforge.core.model import COMPILE, ArtifactSpec, ModuleId, Version
from depforge.core.resolution.graph import ModuleNodeInfo, ResolvedNode
from depforge.core.resolution.result import (
    ErrorReport,
    ModuleProblem,
    ProblemKind,
    ResolvedVersions,
    ResolveResult,
)
from depforge.exceptions import ResolutionError

A = ModuleId("g", "a")
B = ModuleId("g", "b")


def _unresolved() -> ModuleProblem:
    return ModuleProblem(A, "1.0", "not found")


def _artifact() -> ModuleProblem:
    return ModuleProblem(B, "2.0", "missing", ProblemKind.ARTIFACT, ArtifactSpec("sources"))


class TestErrorReport:
    """Problem classification and rendering."""

    def test_all_fine(self) -> None:
        report = ErrorReport.all_fine()
        assert not report.has_errors
        assert str(report) == "No resolution errors."

    def test_partitions_by_kind(self) -> None:
        report = ErrorReport((_unresolved(), _artifact()))
        assert report.module_problems == [_unresolved()]
        assert report.artifact_problems == [_artifact()]
        assert report.for_module(B) == [_artifact()]
        assert len(report) == 2

    def test_text(self) -> None:
        text = str(ErrorReport((_unresolved(), _artifact())))
        assert text.splitlines() == [
            "Errors with dependencies:",
            "  g:a:1.0 -> not found",
            "Artifacts that could not be fetched:",
            "  g:b:2.0 (classifier=sources, type=jar) -> missing",
        ]

    def test_problem_without_version(self) -> None:
        assert str(ModuleProblem(A, "", "nothing")) == "g:a -> nothing"


class TestResolvedVersions:
    """The read-only module -> version index."""

    def test_mapping_protocol(self) -> None:
        index = ResolvedVersions({A: Version("1.0"), B: Version("2.0")})
        assert index[A] == Version("1.0")
        assert list(index) == [A, B]
        assert index.version_of(ModuleId("g", "zzz")) is None
        assert dict(index) == {A: Version("1.0"), B: Version("2.0")}


class TestResolveResult:
    """Queries and serialization of a whole result."""

    @pytest.fixture
    def result(self, tmp_path: Path) -> ResolveResult:
        jar = tmp_path / "a-1.0.jar"
        child = ModuleNodeInfo(
            A,
            Version("1.0"),
            (COMPILE,),
            frozenset({COMPILE}),
            Version("1.0"),
            (jar,),
        )
        root = ModuleNodeInfo(ModuleId("g", "root"), Version(""))
        return ResolveResult(ResolvedNode(root, (ResolvedNode(child),)), ErrorReport(), (COMPILE,))

    def test_queries(self, result: ResolveResult, tmp_path: Path) -> None:
        assert result.contains("g:a")
        assert not result.contains(B)
        assert result.version_of(A) == Version("1.0")
        assert result.files_by_scope == {COMPILE: [tmp_path / "a-1.0.jar"]}
        assert result.assert_no_error() is result

    def test_assert_no_error(self, result: ResolveResult) -> None:
        failing = ResolveResult(result.tree, ErrorReport((_unresolved(),)), (COMPILE,))
        with pytest.raises(ResolutionError, match="not found"):
            failing.assert_no_error()

    def test_to_dict_is_json_serializable(self, result: ResolveResult) -> None:
        data = json.loads(json.dumps(result.to_dict()))
        assert data["requested_scopes"] == ["compile"]
        assert data["resolved_versions"] == {"g:a": "1.0"}
        (child,) = data["tree"]["children"]
        assert child["module"] == "g:a"
        assert child["scopes"] == ["compile"]
        assert child["evicted"] is False
        assert data["problems"] == []
