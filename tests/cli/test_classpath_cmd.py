"""Tests for ``depforge classpath``."""

from __future__ import annotations

import os
from pathlib import Path

from click.testing import CliRunner

from depforge.cli.main import cli


def _names(output: str) -> list[str]:
    line = output.strip().splitlines()[-1]
    return [Path(p).name for p in line.split(os.pathsep)]


def test_compile_classpath(runner: CliRunner, project_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(project_dir), "-s", "compile"])
    assert result.exit_code == 0
    assert _names(result.output) == ["a-1.0.jar", "b-1.0.jar", "c-2.0.jar", "d-1.0.jar"]


def test_test_classpath_includes_test_modules(runner: CliRunner, project_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(project_dir), "-s", "test"])
    assert result.exit_code == 0
    assert _names(result.output)[-1] == "t-1.0.jar"


def test_several_scopes_are_deduplicated(runner: CliRunner, project_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(project_dir), "-s", "compile", "-s", "test"])
    names = _names(result.output)
    assert len(names) == len(set(names)) == 5


def test_files_exist_in_cache(runner: CliRunner, project_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(project_dir)])
    paths = [Path(p) for p in result.output.strip().splitlines()[-1].split(os.pathsep)]
    assert all(p.is_file() for p in paths)
    assert all(".cache" in p.parts for p in paths)


def test_errors_exit_1(runner: CliRunner, broken_project_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(broken_project_dir)])
    assert result.exit_code == 1
    assert "org.acme:missing" in result.output


def test_no_fail_prints_what_resolved(runner: CliRunner, broken_project_dir: Path) -> None:
    result = runner.invoke(
        cli, ["classpath", str(broken_project_dir), "-s", "compile", "--no-fail"]
    )
    assert result.exit_code == 0
    assert "a-1.0.jar" in result.output


def test_missing_descriptor(runner: CliRunner, empty_dir: Path) -> None:
    result = runner.invoke(cli, ["classpath", str(empty_dir)])
    assert result.exit_code == 2
