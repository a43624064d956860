"""Module identity, artifact selection and coordinates.

This module provides the value types every other part of the engine keys
on: ``ModuleId`` (group and name), ``ArtifactSpec`` (classifier and type)
and ``Coordinate`` (a module at a version, with the artifacts requested from
it). All three are frozen dataclasses with structural equality and hashing.

Textual coordinates
-------------------
``Coordinate.parse()`` accepts exactly five shapes::

    group:name
    group:name:version
    group:name:classifiers:version
    group:name:classifiers:type:version
    group:name:classifiers:type:

``classifiers`` is a comma separated list. An empty entry stands for the
default classifier, so ``,mac`` requests the main artifact plus the ``mac``
one. The version may be ``?`` (unspecified) or ``+`` (highest available).

It also holds the version conflict policy (``ConflictStrategy`` and
``resolve_conflict``) since it works on a single module's competing
versions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from depforge.core.model.version import UNSPECIFIED, Version
from depforge.exceptions import CoordinateParseError, VersionConflictError

DEFAULT_TYPE = "jar"

_SHAPES_MESSAGE = (
    "Should be one of \n"
    "  group:name \n"
    "  group:name:version \n"
    "  group:name:classifiers:version \n"
    "  group:name:classifiers:type:version \n"
    "  group:name:classifiers:type: \n"
    "where classifiers can be a comma separated list of classifiers."
)


def _blank_to_none(text: str | None) -> str | None:
    if text is None or not text.strip():
        return None
    return text.strip()


# ---------------------------------------------------------------------------
# ModuleId
# ---------------------------------------------------------------------------


@dataclass(frozen=True, order=True)
class ModuleId:
    """A module identity: ``(group, name)``. Used as a map key everywhere."""

    group: str
    name: str

    def __post_init__(self) -> None:
        for label in ("group", "name"):
            value = getattr(self, label)
            if value is None:
                raise TypeError(f"module {label} cannot be None")
            if not isinstance(value, str) or not value.strip() or ":" in value:
                raise ValueError(f"Invalid module {label}: {value!r}")

    @classmethod
    def of(cls, group_or_description: str, name: str | None = None) -> ModuleId:
        """Build from ``("group", "name")`` or from ``"group:name"``."""
        if name is not None:
            return cls(group_or_description, name)
        if group_or_description is None:
            raise TypeError("module id cannot be None")
        parts = group_or_description.split(":")
        if len(parts) != 2:
            raise CoordinateParseError(
                f"Module id {group_or_description!r} should be 'group:name'"
            )
        return cls(parts[0].strip(), parts[1].strip())

    def to_coordinate(self, version: str | Version = UNSPECIFIED) -> Coordinate:
        return Coordinate(self, Version.of(version))

    def __str__(self) -> str:
        return f"{self.group}:{self.name}"


# ---------------------------------------------------------------------------
# ArtifactSpec
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArtifactSpec:
    """Selects one artifact of a module by classifier and type.

    Attributes:
        classifier: Artifact classifier (e.g. ``"sources"``, ``"linux"``),
            or None for the main artifact.
        type: Artifact type and file extension. Defaults to ``"jar"``.
    """

    classifier: str | None = None
    type: str = DEFAULT_TYPE

    @classmethod
    def of(cls, classifier: str | None = None, type: str | None = None) -> ArtifactSpec:
        return cls(_blank_to_none(classifier), _blank_to_none(type) or DEFAULT_TYPE)

    @property
    def is_main(self) -> bool:
        return self.classifier is None and self.type == DEFAULT_TYPE

    def __str__(self) -> str:
        return f"(classifier={self.classifier}, type={self.type})"


MAIN_ARTIFACT = ArtifactSpec()


# ---------------------------------------------------------------------------
# Conflict policy
# ---------------------------------------------------------------------------


class ConflictStrategy(Enum):
    """How two competing versions of the same module are reconciled."""

    TAKE_FIRST = "take_first"
    TAKE_HIGHEST = "take_highest"
    TAKE_LOWEST = "take_lowest"
    FAIL = "fail"


def resolve_conflict(
    version: Version,
    other: Version,
    strategy: ConflictStrategy,
    module_id: ModuleId | None = None,
) -> Version:
    """Pick the winner between *version* (seen first) and *other*.

    Rules, in order:

    1. An unspecified side yields to the other side.
    2. ``FAIL`` raises when both sides are fixed (non-snapshot) and differ.
    3. A fixed release always beats a snapshot, whatever the strategy.
    4. ``TAKE_FIRST`` keeps *version*.
    5. ``TAKE_HIGHEST`` / ``TAKE_LOWEST`` keep the greater / lesser side;
       ties and anything else go to *other*.

    Raises:
        VersionConflictError: On a ``FAIL`` violation.
        VersionError: If a dynamic version reaches the comparison step.
    """
    if version.is_unspecified():
        return other
    if other.is_unspecified():
        return version
    if (
        strategy is ConflictStrategy.FAIL
        and version.is_fixed()
        and other.is_fixed()
        and version != other
    ):
        raise VersionConflictError(module_id, version, other)
    if version.is_snapshot() and not other.is_snapshot():
        return other
    if not version.is_snapshot() and other.is_snapshot():
        return version
    if strategy is ConflictStrategy.TAKE_FIRST:
        return version
    if strategy is ConflictStrategy.TAKE_HIGHEST:
        return version if version.is_greater_than(other) else other
    if strategy is ConflictStrategy.TAKE_LOWEST:
        return version if version.is_lower_than(other) else other
    return other


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Coordinate:
    """A module at a version, with the artifacts requested from it.

    Most of the time a coordinate identifies a single artifact, but several
    classifier/type pairs may be requested (e.g. ``linux`` and ``mac``
    native bundles). An empty ``artifact_specs`` means "main artifact only";
    a lone main spec is normalized to empty so both spellings are equal.

    Every ``with_*`` / ``and_*`` method returns a new instance.
    """

    module_id: ModuleId
    version: Version = UNSPECIFIED
    artifact_specs: tuple[ArtifactSpec, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.module_id is None:
            raise TypeError("module cannot be None")
        if self.version is None:
            raise TypeError(f"{self.module_id} version cannot be None")
        if self.artifact_specs is None:
            raise TypeError(f"{self.module_id} artifact specs cannot be None")
        specs = tuple(dict.fromkeys(self.artifact_specs))
        if specs == (MAIN_ARTIFACT,):
            specs = ()
        object.__setattr__(self, "artifact_specs", specs)

    # -- Construction -------------------------------------------------------

    @classmethod
    def of(
        cls,
        group: str | ModuleId,
        name: str | None = None,
        version: str | Version = UNSPECIFIED,
    ) -> Coordinate:
        """Build from ``(ModuleId, version)`` or ``(group, name, version)``."""
        if isinstance(group, ModuleId):
            module_id = group
            if name is not None:
                version = name
        else:
            module_id = ModuleId.of(group, name)
        return cls(module_id, Version.of(version))

    @classmethod
    def parse(cls, description: str) -> Coordinate:
        """Parse a textual coordinate (see module docstring for shapes).

        Raises:
            CoordinateParseError: If *description* matches none of the shapes.
        """
        if description is None:
            raise TypeError("coordinate description cannot be None")
        error = CoordinateParseError(
            f"Dependency specification '{description}' is not correct. "
            + _SHAPES_MESSAGE
        )
        if not is_coordinate_description(description):
            raise error
        parts = description.split(":")
        try:
            module_id = ModuleId(parts[0].strip(), parts[1].strip())
        except ValueError:
            raise error from None
        count = len(parts)
        if count == 2:
            return cls(module_id)
        if count in (3, 4) and not parts[-1].strip():
            raise error
        if count == 3:
            return cls(module_id, Version.of(parts[2]))
        if count == 4:
            return cls(module_id, Version.of(parts[3])).with_classifiers(parts[2])
        return cls(module_id, Version.of(parts[4])).with_classifiers_and_type(
            parts[2], parts[3]
        )

    # -- Queries ------------------------------------------------------------

    def has_unspecified_version(self) -> bool:
        return self.version.is_unspecified()

    @property
    def effective_artifact_specs(self) -> tuple[ArtifactSpec, ...]:
        """The requested specs, or just the main artifact when none are set."""
        return self.artifact_specs or (MAIN_ARTIFACT,)

    # -- Transformations ----------------------------------------------------

    def with_version(self, version: str | Version | None) -> Coordinate:
        """Return a copy at *version*; ``None`` returns this coordinate."""
        if version is None:
            return self
        return Coordinate(self.module_id, Version.of(version), self.artifact_specs)

    def with_classifiers(self, classifiers: str | None) -> Coordinate:
        return self.with_classifiers_and_type(classifiers, None)

    def with_classifiers_and_type(
        self, classifiers: str | None, type: str | None
    ) -> Coordinate:
        """Replace the artifact specs with one spec per classifier.

        ``"linux,mac"`` requests two classified artifacts, ``",mac"``
        requests the main artifact plus ``mac``.
        """
        names = [None] if classifiers is None else classifiers.split(",")
        specs = tuple(ArtifactSpec.of(name, type) for name in names)
        return Coordinate(self.module_id, self.version, specs)

    def and_classifier(self, classifier: str) -> Coordinate:
        return self.and_classifier_and_type(classifier, None)

    def and_classifier_and_type(self, classifier: str | None, type: str | None) -> Coordinate:
        """Add one artifact spec, keeping the main artifact if none was set."""
        specs = self.effective_artifact_specs + (ArtifactSpec.of(classifier, type),)
        return Coordinate(self.module_id, self.version, specs)

    # -- Conflict resolution ------------------------------------------------

    def resolve_conflict(self, other: Version, strategy: ConflictStrategy) -> Coordinate:
        """Return this coordinate at the version winning against *other*."""
        winner = resolve_conflict(self.version, other, strategy, self.module_id)
        return self if winner == self.version else self.with_version(winner)

    # -- Artifact cache layout ----------------------------------------------

    def cache_file_name(self, spec: ArtifactSpec | None = None) -> str:
        spec = spec or self.effective_artifact_specs[0]
        if not self.version.is_concrete():
            raise ValueError(
                f"{self.module_id} needs a resolved version to name its artifact, "
                f"got {self.version.value!r}"
            )
        classifier = f"-{spec.classifier}" if spec.classifier else ""
        return f"{self.module_id.name}-{self.version}{classifier}.{spec.type}"

    def cache_path(self, cache_root: Path, spec: ArtifactSpec | None = None) -> Path:
        """Deterministic storage location of one artifact of this coordinate.

        Layout: ``cache_root/group/name/{type}s/name-version[-classifier].type``.
        """
        spec = spec or self.effective_artifact_specs[0]
        return (
            Path(cache_root)
            / self.module_id.group
            / self.module_id.name
            / f"{spec.type}s"
            / self.cache_file_name(spec)
        )

    # -- Rendering ----------------------------------------------------------

    def to_description(self) -> str:
        """Render back to the textual syntax accepted by ``parse()``.

        Specs of mixed types cannot be expressed textually; they are
        appended as ``(classifier=..., type=...)`` annotations instead.
        """
        head = str(self.module_id)
        version = self.version.value
        if not self.artifact_specs:
            return f"{head}:{version}" if version else head
        types = {spec.type for spec in self.artifact_specs}
        if len(types) > 1:
            annotations = "".join(str(spec) for spec in self.artifact_specs)
            return (f"{head}:{version}" if version else head) + annotations
        classifiers = ",".join(spec.classifier or "" for spec in self.artifact_specs)
        (type_,) = types
        if type_ == DEFAULT_TYPE and version:
            return f"{head}:{classifiers}:{version}"
        return f"{head}:{classifiers}:{type_}:{version}"

    def __str__(self) -> str:
        return self.to_description()


def is_coordinate_description(candidate: str) -> bool:
    """True if *candidate* has the 2 to 5 colon separated segments of a
    coordinate description."""
    return 2 <= len(candidate.split(":")) <= 5


def parse_coordinate(description: str) -> Coordinate:
    return Coordinate.parse(description)
