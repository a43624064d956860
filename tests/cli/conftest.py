"""Shared fixtures for CLI tests.

Provides a CliRunner and helpers that lay out a temporary project: a
``depforge.yaml`` descriptor next to a local repository holding a small
diamond-shaped module graph.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner


def publish(repo: Path, coordinate: str, *dependencies: str, artifact: bool = True) -> None:
    """Add one module version to a local YAML repository."""
    group, name, version = coordinate.split(":")
    version_dir = repo / group / name / version
    version_dir.mkdir(parents=True)
    lines = ["dependencies:"] + [f"  - {d}" for d in dependencies] if dependencies else []
    (version_dir / "module.yaml").write_text("\n".join(lines) + "\n", encoding="utf-8")
    if artifact:
        (version_dir / f"{name}-{version}.jar").write_bytes(coordinate.encode())


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project resolving a -> c:1.0 and b -> c:2.0 -> d, plus a test-only module."""
    project = tmp_path / "webapp"
    repo = project / "repo"
    publish(repo, "org.acme:a:1.0", "org.acme:c:1.0")
    publish(repo, "org.acme:b:1.0", "org.acme:c:2.0")
    publish(repo, "org.acme:c:1.0")
    publish(repo, "org.acme:c:2.0", "org.acme:d:1.0")
    publish(repo, "org.acme:d:1.0")
    publish(repo, "org.acme:t:1.0")
    (project / "depforge.yaml").write_text(
        "name: webapp\n"
        "repositories:\n"
        "  - type: local\n"
        "    path: repo\n"
        "cache_dir: .cache\n"
        "dependencies:\n"
        "  - org.acme:a:1.0\n"
        "  - org.acme:b:1.0\n"
        "  - coordinate: org.acme:t:1.0\n"
        "    scopes: [test]\n",
        encoding="utf-8",
    )
    return project


@pytest.fixture
def broken_project_dir(project_dir: Path) -> Path:
    """The same project with an extra dependency no repository knows."""
    descriptor = project_dir / "depforge.yaml"
    descriptor.write_text(
        descriptor.read_text(encoding="utf-8") + "  - org.acme:missing:1.0\n",
        encoding="utf-8",
    )
    return project_dir


@pytest.fixture
def empty_dir(tmp_path: Path) -> Path:
    """A directory without any build descriptor."""
    empty = tmp_path / "empty"
    empty.mkdir()
    return empty
