"""Maven 2 layout repository, read from a directory or over HTTP.

Paths follow the standard layout::

    org/acme/core/maven-metadata.xml
    org/acme/core/1.0/core-1.0.pom
    org/acme/core/1.0/core-1.0.jar

POM dependencies are mapped onto the dependency model:

- ``compile`` (or no scope) and ``runtime`` keep their standard scopes;
  ``provided`` and ``system`` map to ``provided``, ``test`` to ``test``.
  The latter two are not transitive, so the engine does not follow them
  from a module's own descriptor.
- ``<optional>true</optional>`` dependencies are left out.
- ``<exclusions>`` become per-dependency exclusions.
- ``${property}`` references are interpolated from ``<properties>`` and
  the ``project.*`` values; ``<dependencyManagement>`` versions become the
  descriptor's version overrides.
- ``<packaging>pom</packaging>`` modules publish no artifact.

HTTP access needs ``httpx`` (``pip install depforge[remote]``).
"""

from __future__ import annotations

import logging
import re
import shutil
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any

from depforge.core.model.coordinate import ArtifactSpec, Coordinate, ModuleId
from depforge.core.model.dependency import DependencySet, ModuleDependency, VersionProvider
from depforge.core.model.scope import COMPILE, PROVIDED, RUNTIME, TEST, Scope
from depforge.core.model.version import Version
from depforge.core.resolution.repository import (
    ModuleDescriptor,
    Repository,
    default_cache_root,
)
from depforge.exceptions import ArtifactNotFound, ModuleNotFoundInRepository, RepositoryError

logger = logging.getLogger(__name__)

MAVEN_CENTRAL = "https://repo1.maven.org/maven2"

# Timeout for all repository HTTP requests (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = "depforge/0.1"

_MAVEN_SCOPES: dict[str, tuple[Scope, ...]] = {
    "compile": (COMPILE,),
    "runtime": (RUNTIME,),
    "provided": (PROVIDED,),
    "system": (PROVIDED,),
    "test": (TEST,),
}

_PROPERTY_RE = re.compile(r"\$\{([^}]+)\}")


def _http_module() -> Any:  # noqa: ANN401
    """The ``httpx`` module, imported on first remote access.

    Directory-backed repositories never touch it, so the ``remote`` extra
    stays optional. A missing install stops the program with the pip
    command that fixes it.
    """
    try:
        import httpx
    except ImportError:
        raise SystemExit(
            "Remote Maven repositories need httpx: pip install 'depforge[remote]'"
        ) from None
    return httpx


# ---------------------------------------------------------------------------
# POM parsing
# ---------------------------------------------------------------------------


def _strip_namespaces(root: ET.Element) -> ET.Element:
    for element in root.iter():
        if isinstance(element.tag, str) and "}" in element.tag:
            element.tag = element.tag.split("}", 1)[1]
    return root


def _text(element: ET.Element | None, path: str) -> str | None:
    if element is None:
        return None
    found = element.find(path)
    if found is None or found.text is None:
        return None
    return found.text.strip() or None


def _interpolate(value: str | None, properties: dict[str, str]) -> str | None:
    if value is None:
        return None
    # Unknown properties are left as-is.
    return _PROPERTY_RE.sub(lambda m: properties.get(m.group(1), m.group(0)), value)


def _pom_properties(project: ET.Element, coordinate: Coordinate) -> dict[str, str]:
    group = _text(project, "groupId") or _text(project, "parent/groupId") or coordinate.module_id.group
    version = _text(project, "version") or _text(project, "parent/version") or coordinate.version.value
    properties = {
        "project.groupId": group,
        "pom.groupId": group,
        "project.artifactId": _text(project, "artifactId") or coordinate.module_id.name,
        "project.version": version,
        "pom.version": version,
    }
    parent_version = _text(project, "parent/version")
    if parent_version:
        properties["project.parent.version"] = parent_version
    props = project.find("properties")
    if props is not None:
        for prop in props:
            if isinstance(prop.tag, str):
                properties[prop.tag] = (prop.text or "").strip()
    # Properties may refer to each other.
    for key, value in list(properties.items()):
        properties[key] = _interpolate(value, properties) or ""
    return properties


def _pom_dependency(element: ET.Element, properties: dict[str, str]) -> ModuleDependency | None:
    group = _interpolate(_text(element, "groupId"), properties)
    name = _interpolate(_text(element, "artifactId"), properties)
    if not group or not name:
        return None
    if (_text(element, "optional") or "").lower() == "true":
        return None
    scope = (_interpolate(_text(element, "scope"), properties) or "compile").lower()
    scopes = _MAVEN_SCOPES.get(scope)
    if scopes is None:
        # "import" only matters inside dependencyManagement.
        return None
    version = _interpolate(_text(element, "version"), properties) or ""
    classifier = _interpolate(_text(element, "classifier"), properties)
    type_ = _interpolate(_text(element, "type"), properties)
    specs: tuple[ArtifactSpec, ...] = ()
    if classifier or (type_ and type_ != "jar"):
        specs = (ArtifactSpec.of(classifier, type_),)
    exclusions = frozenset(
        ModuleId(g, n)
        for exclusion in element.findall("exclusions/exclusion")
        if (g := _text(exclusion, "groupId")) and (n := _text(exclusion, "artifactId"))
        and g != "*" and n != "*"
    )
    coordinate = Coordinate(ModuleId(group, name), Version.of(version), specs)
    return ModuleDependency(coordinate, scopes, exclusions)


def parse_pom(content: bytes | str, coordinate: Coordinate) -> ModuleDescriptor:
    """Build a ``ModuleDescriptor`` from POM text.

    Args:
        content: The POM document.
        coordinate: The module version the POM describes.

    Returns:
        The descriptor, with ``dependencyManagement`` versions as overrides.

    Raises:
        RepositoryError: If the document is not well-formed XML.
    """
    try:
        project = _strip_namespaces(ET.fromstring(content))
    except ET.ParseError as exc:
        raise RepositoryError(f"Malformed POM for {coordinate}: {exc}") from exc
    properties = _pom_properties(project, coordinate)

    managed: dict[ModuleId, Version] = {}
    for element in project.findall("dependencyManagement/dependencies/dependency"):
        group = _interpolate(_text(element, "groupId"), properties)
        name = _interpolate(_text(element, "artifactId"), properties)
        version = _interpolate(_text(element, "version"), properties)
        if group and name and version and "${" not in version:
            managed[ModuleId(group, name)] = Version.of(version)

    dependencies = tuple(
        dep
        for element in project.findall("dependencies/dependency")
        if (dep := _pom_dependency(element, properties)) is not None
    )
    packaging = (_text(project, "packaging") or "jar").lower()
    if packaging == "pom":
        specs: tuple[ArtifactSpec, ...] = ()
    elif packaging in ("jar", "bundle", "maven-plugin"):
        specs = (ArtifactSpec(),)
    else:
        specs = (ArtifactSpec.of(None, packaging),)
    return ModuleDescriptor(
        Coordinate(coordinate.module_id, coordinate.version),
        DependencySet(dependencies, VersionProvider(managed)),
        specs,
    )


def parse_metadata_versions(content: bytes | str) -> list[Version]:
    """Versions listed in a ``maven-metadata.xml`` document, in source order."""
    try:
        root = _strip_namespaces(ET.fromstring(content))
    except ET.ParseError as exc:
        raise RepositoryError(f"Malformed maven-metadata.xml: {exc}") from exc
    return [
        Version.of(item.text.strip())
        for item in root.findall("versioning/versions/version")
        if item.text and item.text.strip()
    ]


# ---------------------------------------------------------------------------
# MavenRepository
# ---------------------------------------------------------------------------


class MavenRepository(Repository):
    """Repository in the Maven 2 layout.

    Args:
        location: A directory, or an ``http(s)://`` base URL.
        cache_root: Where materialized artifacts are stored.
        timeout: HTTP request timeout in seconds.
        transport: Optional ``httpx`` transport (e.g. ``httpx.MockTransport``).
    """

    def __init__(
        self,
        location: Path | str = MAVEN_CENTRAL,
        cache_root: Path | str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Any = None,
    ) -> None:
        text = str(location)
        self._remote = text.startswith(("http://", "https://"))
        self._location = text.rstrip("/") if self._remote else Path(text).expanduser()
        self._cache_root = Path(cache_root) if cache_root else default_cache_root()
        self._timeout = timeout
        self._transport = transport
        self._client: Any = None

    @property
    def name(self) -> str:
        return f"maven:{self._location}"

    @property
    def is_remote(self) -> bool:
        return self._remote

    # ---- Transport ----

    def _http_client(self) -> Any:
        if self._client is None:
            httpx = _http_module()
            self._client = httpx.Client(
                timeout=self._timeout,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def _fetch(self, relative: str) -> bytes | None:
        """Content at *relative*, or None if it does not exist."""
        if not self._remote:
            path = Path(self._location) / relative
            if not path.is_file():
                return None
            try:
                return path.read_bytes()
            except OSError as exc:
                raise RepositoryError(f"Cannot read {path}: {exc}") from exc

        httpx = _http_module()
        url = f"{self._location}/{relative}"
        logger.debug("GET %s", url)
        try:
            response = self._http_client().get(url)
        except httpx.TimeoutException as exc:
            logger.warning("Timeout fetching %s", url)
            raise RepositoryError(f"Timeout fetching {url}") from exc
        except httpx.RequestError as exc:
            logger.warning("Request error for %s: %s", url, exc)
            raise RepositoryError(f"Request error for {url}: {exc}") from exc
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning("HTTP %d from %s", response.status_code, url)
            raise RepositoryError(f"HTTP {response.status_code} from {url}")
        return response.content

    @staticmethod
    def _module_path(module_id: ModuleId) -> str:
        return f"{module_id.group.replace('.', '/')}/{module_id.name}"

    def _version_path(self, coordinate: Coordinate) -> str:
        return f"{self._module_path(coordinate.module_id)}/{coordinate.version.value}"

    # ---- Repository capability ----

    def list_versions(self, module_id: ModuleId) -> list[Version]:
        module_path = self._module_path(module_id)
        content = self._fetch(f"{module_path}/maven-metadata.xml")
        if content is not None:
            return parse_metadata_versions(content)
        if self._remote:
            return []
        module_dir = Path(self._location) / module_path
        if not module_dir.is_dir():
            return []
        return [
            Version.of(child.name)
            for child in sorted(module_dir.iterdir())
            if (child / f"{module_id.name}-{child.name}.pom").is_file()
        ]

    def describe(self, coordinate: Coordinate) -> ModuleDescriptor:
        name = coordinate.module_id.name
        relative = f"{self._version_path(coordinate)}/{name}-{coordinate.version.value}.pom"
        content = self._fetch(relative)
        if content is None:
            raise ModuleNotFoundInRepository(
                f"{coordinate.module_id}:{coordinate.version} not found in {self._location}"
            )
        return parse_pom(content, coordinate)

    def materialize(self, coordinate: Coordinate, spec: ArtifactSpec) -> Path:
        base = Coordinate(coordinate.module_id, coordinate.version)
        target = base.cache_path(self._cache_root, spec)
        if target.exists():
            return target
        relative = f"{self._version_path(base)}/{base.cache_file_name(spec)}"
        if not self._remote:
            source = Path(self._location) / relative
            if not source.is_file():
                raise ArtifactNotFound(f"{source} does not exist")
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)
            except OSError as exc:
                raise RepositoryError(f"Cannot copy {source}: {exc}") from exc
            return target
        content = self._fetch(relative)
        if content is None:
            raise ArtifactNotFound(f"{self._location}/{relative} does not exist")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            partial = target.with_name(target.name + ".part")
            partial.write_bytes(content)
            partial.replace(target)
        except OSError as exc:
            raise RepositoryError(f"Cannot write {target}: {exc}") from exc
        logger.debug("Downloaded %s", target)
        return target

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __repr__(self) -> str:
        return f"MavenRepository({str(self._location)!r})"
