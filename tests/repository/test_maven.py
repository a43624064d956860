"""Tests for the Maven 2 layout repository and POM parsing."""

from __future__ import annotations

from pathlib import Path

import pytest

from depforge.core.model import (
    COMPILE,
    MAIN_ARTIFACT,
    PROVIDED,
    RUNTIME,
    ArtifactSpec,
    Coordinate,
    DependencySet,
    ModuleId,
    Version,
)
from depforge.core.resolution import resolve
from depforge.exceptions import ArtifactNotFound, ModuleNotFoundInRepository, RepositoryError
from depforge.repository.maven import MavenRepository, parse_metadata_versions, parse_pom

CORE_POM = """<?xml version="1.0" encoding="UTF-8"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <modelVersion>4.0.0</modelVersion>
  <groupId>org.acme</groupId>
  <artifactId>core</artifactId>
  <version>1.0</version>
  <properties>
    <util.version>2.0</util.version>
    <log.version>${util.version}</log.version>
  </properties>
  <dependencyManagement>
    <dependencies>
      <dependency>
        <groupId>org.acme</groupId>
        <artifactId>json</artifactId>
        <version>3.2</version>
      </dependency>
    </dependencies>
  </dependencyManagement>
  <dependencies>
    <dependency>
      <groupId>${project.groupId}</groupId>
      <artifactId>util</artifactId>
      <version>${util.version}</version>
      <exclusions>
        <exclusion>
          <groupId>org.legacy</groupId>
          <artifactId>shim</artifactId>
        </exclusion>
        <exclusion>
          <groupId>*</groupId>
          <artifactId>*</artifactId>
        </exclusion>
      </exclusions>
    </dependency>
    <dependency>
      <groupId>org.acme</groupId>
      <artifactId>log</artifactId>
      <version>${log.version}</version>
      <scope>runtime</scope>
    </dependency>
    <dependency>
      <groupId>org.acme</groupId>
      <artifactId>servlet</artifactId>
      <version>4.0</version>
      <scope>provided</scope>
    </dependency>
    <dependency>
      <groupId>junit</groupId>
      <artifactId>junit</artifactId>
      <version>4.13.2</version>
      <scope>test</scope>
    </dependency>
    <dependency>
      <groupId>org.acme</groupId>
      <artifactId>extra</artifactId>
      <version>1.0</version>
      <optional>true</optional>
    </dependency>
    <dependency>
      <groupId>org.acme</groupId>
      <artifactId>natives</artifactId>
      <version>1.0</version>
      <classifier>linux</classifier>
    </dependency>
    <dependency>
      <groupId>org.acme</groupId>
      <artifactId>json</artifactId>
    </dependency>
  </dependencies>
</project>
"""

LEAF_POM = """<project>
  <groupId>org.acme</groupId>
  <artifactId>{name}</artifactId>
  <version>{version}</version>
  <packaging>{packaging}</packaging>
</project>
"""

METADATA = """<metadata>
  <groupId>org.acme</groupId>
  <artifactId>util</artifactId>
  <versioning>
    <versions>
      <version>1.0</version>
      <version>2.0</version>
    </versions>
  </versioning>
</metadata>
"""


def _publish(root: Path, coordinate: str, pom: str, *artifacts: str) -> None:
    group, name, version = coordinate.split(":")
    version_dir = root / group.replace(".", "/") / name / version
    version_dir.mkdir(parents=True)
    (version_dir / f"{name}-{version}.pom").write_text(pom, encoding="utf-8")
    for artifact in artifacts:
        (version_dir / artifact).write_bytes(artifact.encode())


def _leaf(name: str, version: str, packaging: str = "jar") -> str:
    return LEAF_POM.format(name=name, version=version, packaging=packaging)


# ===========================================================================
# POM parsing
# ===========================================================================


class TestParsePom:
    """Mapping POM documents onto module descriptors."""

    @pytest.fixture
    def descriptor(self):
        return parse_pom(CORE_POM, Coordinate.parse("org.acme:core:1.0"))

    def _dep(self, descriptor, name: str):
        (dep,) = [d for d in descriptor.dependencies.module_dependencies if d.module_id.name == name]
        return dep

    def test_properties_are_interpolated(self, descriptor) -> None:
        assert self._dep(descriptor, "util").version == Version("2.0")
        assert self._dep(descriptor, "log").version == Version("2.0")

    def test_scopes(self, descriptor) -> None:
        assert self._dep(descriptor, "util").scopes == (COMPILE,)
        assert self._dep(descriptor, "log").scopes == (RUNTIME,)
        assert self._dep(descriptor, "servlet").scopes == (PROVIDED,)
        assert self._dep(descriptor, "junit").scopes[0].name == "test"

    def test_optional_dependencies_are_dropped(self, descriptor) -> None:
        names = [d.module_id.name for d in descriptor.dependencies.module_dependencies]
        assert "extra" not in names

    def test_exclusions_skip_wildcards(self, descriptor) -> None:
        assert self._dep(descriptor, "util").exclusions == {ModuleId("org.legacy", "shim")}

    def test_classifier(self, descriptor) -> None:
        assert self._dep(descriptor, "natives").coordinate.artifact_specs == (
            ArtifactSpec("linux"),
        )

    def test_dependency_management(self, descriptor) -> None:
        json_dep = self._dep(descriptor, "json")
        assert json_dep.version.is_unspecified()
        managed = descriptor.dependencies.effective_coordinate(json_dep.coordinate)
        assert managed.version == Version("3.2")

    @pytest.mark.parametrize(
        "packaging, specs",
        [
            ("jar", (MAIN_ARTIFACT,)),
            ("bundle", (MAIN_ARTIFACT,)),
            ("pom", ()),
            ("war", (ArtifactSpec(None, "war"),)),
        ],
    )
    def test_packaging(self, packaging: str, specs) -> None:
        descriptor = parse_pom(_leaf("x", "1.0", packaging), Coordinate.parse("org.acme:x:1.0"))
        assert descriptor.artifact_specs == specs

    def test_malformed(self) -> None:
        with pytest.raises(RepositoryError, match="Malformed POM"):
            parse_pom("<project>", Coordinate.parse("org.acme:x:1.0"))

    def test_metadata_versions(self) -> None:
        assert parse_metadata_versions(METADATA) == [Version("1.0"), Version("2.0")]


# ===========================================================================
# Directory repositories
# ===========================================================================


@pytest.fixture
def maven_dir(tmp_path: Path) -> Path:
    root = tmp_path / "m2"
    _publish(root, "org.acme:core:1.0", CORE_POM, "core-1.0.jar")
    _publish(root, "org.acme:util:1.0", _leaf("util", "1.0"), "util-1.0.jar")
    _publish(root, "org.acme:util:2.0", _leaf("util", "2.0"), "util-2.0.jar")
    _publish(root, "org.acme:log:2.0", _leaf("log", "2.0"), "log-2.0.jar")
    _publish(root, "org.acme:json:3.2", _leaf("json", "3.2"), "json-3.2.jar")
    _publish(root, "org.acme:natives:1.0", _leaf("natives", "1.0"), "natives-1.0-linux.jar")
    return root


class TestDirectoryRepository:
    """A Maven layout read straight from disk."""

    def test_versions_from_directory_listing(self, maven_dir: Path, cache_root: Path) -> None:
        repo = MavenRepository(maven_dir, cache_root)
        assert not repo.is_remote
        assert repo.list_versions(ModuleId("org.acme", "util")) == [Version("1.0"), Version("2.0")]
        assert repo.list_versions(ModuleId("org.acme", "nothing")) == []

    def test_versions_from_metadata(self, maven_dir: Path, cache_root: Path) -> None:
        module_dir = maven_dir / "org" / "acme" / "log"
        (module_dir / "maven-metadata.xml").write_text(METADATA, encoding="utf-8")
        repo = MavenRepository(maven_dir, cache_root)
        assert repo.list_versions(ModuleId("org.acme", "log")) == [Version("1.0"), Version("2.0")]

    def test_describe_unknown(self, maven_dir: Path, cache_root: Path) -> None:
        with pytest.raises(ModuleNotFoundInRepository):
            MavenRepository(maven_dir, cache_root).describe(Coordinate.parse("org.acme:core:9"))

    def test_materialize(self, maven_dir: Path, cache_root: Path) -> None:
        repo = MavenRepository(maven_dir, cache_root)
        path = repo.materialize(Coordinate.parse("org.acme:util:2.0"), MAIN_ARTIFACT)
        assert path == cache_root / "org.acme" / "util" / "jars" / "util-2.0.jar"
        assert path.read_bytes() == b"util-2.0.jar"
        with pytest.raises(ArtifactNotFound):
            repo.materialize(Coordinate.parse("org.acme:util:2.0"), ArtifactSpec("sources"))

    def test_end_to_end_resolution(self, maven_dir: Path, cache_root: Path) -> None:
        repo = MavenRepository(maven_dir, cache_root)
        result = resolve(repo, DependencySet.of("org.acme:core:1.0"), COMPILE, RUNTIME)
        assert {str(k): str(v) for k, v in result.resolved_versions.items()} == {
            "org.acme:core": "1.0",
            "org.acme:util": "2.0",
            "org.acme:log": "2.0",
            "org.acme:natives": "1.0",
            "org.acme:json": "3.2",
        }
        assert not result.error_report.has_errors


# ===========================================================================
# HTTP repositories
# ===========================================================================


class TestRemoteRepository:
    """A Maven layout served over HTTP, through an httpx mock transport."""

    BASE = "https://repo.example.com/maven2"

    @pytest.fixture
    def httpx(self):
        return pytest.importorskip("httpx")

    def _repository(self, httpx, cache_root: Path, files: dict[str, bytes], seen=None):
        def handler(request):
            if seen is not None:
                seen.append(request)
            path = request.url.path.removeprefix("/maven2/")
            if path == "boom":
                return httpx.Response(500)
            if path in files:
                return httpx.Response(200, content=files[path])
            return httpx.Response(404)

        return MavenRepository(self.BASE, cache_root, transport=httpx.MockTransport(handler))

    def test_list_versions_and_describe(self, httpx, cache_root: Path) -> None:
        files = {
            "org/acme/util/maven-metadata.xml": METADATA.encode(),
            "org/acme/util/2.0/util-2.0.pom": _leaf("util", "2.0").encode(),
        }
        repo = self._repository(httpx, cache_root, files)
        assert repo.is_remote
        assert repo.list_versions(ModuleId("org.acme", "util")) == [Version("1.0"), Version("2.0")]
        descriptor = repo.describe(Coordinate.parse("org.acme:util:2.0"))
        assert descriptor.artifact_specs == (MAIN_ARTIFACT,)
        assert repo.list_versions(ModuleId("org.acme", "nothing")) == []
        repo.close()

    def test_download_once(self, httpx, cache_root: Path) -> None:
        seen: list = []
        files = {"org/acme/util/2.0/util-2.0.jar": b"bytes"}
        repo = self._repository(httpx, cache_root, files, seen)
        coordinate = Coordinate.parse("org.acme:util:2.0")
        first = repo.materialize(coordinate, MAIN_ARTIFACT)
        second = repo.materialize(coordinate, MAIN_ARTIFACT)
        assert first == second
        assert first.read_bytes() == b"bytes"
        assert len(seen) == 1
        assert seen[0].headers["User-Agent"].startswith("depforge/")

    def test_not_found(self, httpx, cache_root: Path) -> None:
        repo = self._repository(httpx, cache_root, {})
        with pytest.raises(ModuleNotFoundInRepository):
            repo.describe(Coordinate.parse("org.acme:util:2.0"))
        with pytest.raises(ArtifactNotFound):
            repo.materialize(Coordinate.parse("org.acme:util:2.0"), MAIN_ARTIFACT)

    def test_server_error(self, httpx, cache_root: Path) -> None:
        repo = self._repository(httpx, cache_root, {})
        with pytest.raises(RepositoryError, match="HTTP 500"):
            repo._fetch("boom")

    def test_transport_error(self, httpx, cache_root: Path) -> None:
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        repo = MavenRepository(self.BASE, cache_root, transport=httpx.MockTransport(handler))
        with pytest.raises(RepositoryError, match="Request error"):
            repo.list_versions(ModuleId("org.acme", "util"))
