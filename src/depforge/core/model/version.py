"""Module versions: parsing, classification and ordering.

A ``Version`` is a string-backed value classified as one of:

- **unspecified** -- the empty sentinel (textual ``?``), weaker than any
  concrete version during conflict resolution;
- **dynamic** -- an unresolved range marker: ``+`` (highest available) or a
  prefix range such as ``1.2.+``. Dynamic versions must be resolved against
  the versions a repository lists before they can be ordered;
- **snapshot** -- a mutable version ending with ``-SNAPSHOT``;
- **fixed** -- anything else.

Ordering follows the usual Maven conventions: numeric segments compare
numerically, qualifiers rank ``alpha < beta < milestone < rc < snapshot <
release < sp`` and trailing zeros are insignificant (``1.0 == 1.0.0`` in
ordering). Equality and hashing are structural on the raw string, so two
versions that order the same may still be distinct map keys.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import cmp_to_key

from depforge.exceptions import VersionError

UNSPECIFIED_TOKEN = "?"
HIGHEST_TOKEN = "+"
SNAPSHOT_SUFFIX = "-snapshot"

# ---------------------------------------------------------------------------
# Tokenizing and comparison
# ---------------------------------------------------------------------------

_TOKEN_RE = re.compile(r"\d+|[a-zA-Z]+")

_RELEASE_RANK = 5
_QUALIFIER_RANKS: dict[str, int] = {
    "alpha": 0,
    "a": 0,
    "beta": 1,
    "b": 1,
    "milestone": 2,
    "m": 2,
    "rc": 3,
    "cr": 3,
    "snapshot": 4,
    "ga": _RELEASE_RANK,
    "final": _RELEASE_RANK,
    "release": _RELEASE_RANK,
    "sp": 6,
}
_UNKNOWN_QUALIFIER_RANK = 7

# Padding item: an absent segment ranks like a release qualifier.
_MISSING = (0, _RELEASE_RANK, "")


def _tokenize(value: str) -> list[int | str]:
    items: list[int | str] = []
    for token in _TOKEN_RE.findall(value):
        items.append(int(token) if token.isdigit() else token.lower())
    return _normalize(items)


def _normalize(items: list[int | str]) -> list[int | str]:
    """Drop trailing zeros and release qualifiers, and zeros right before a
    qualifier, so ``1.0.0``, ``1`` and ``1.0-final`` tokenize the same."""
    out: list[int | str] = []
    for item in reversed(items):
        nxt = out[-1] if out else None
        if item == 0 and (nxt is None or isinstance(nxt, str)):
            continue
        if isinstance(item, str) and nxt is None and _rank(item) == _RELEASE_RANK:
            continue
        out.append(item)
    out.reverse()
    return out


def _rank(qualifier: str) -> int:
    return _QUALIFIER_RANKS.get(qualifier, _UNKNOWN_QUALIFIER_RANK)


def _item_key(item: int | str) -> tuple[int, int, str]:
    if isinstance(item, int):
        return (1, item, "")
    return (0, _rank(item), item)


def _compare_values(left: str, right: str) -> int:
    a = _tokenize(left)
    b = _tokenize(right)
    for i in range(max(len(a), len(b))):
        ka = _item_key(a[i]) if i < len(a) else _MISSING
        kb = _item_key(b[i]) if i < len(b) else _MISSING
        if ka != kb:
            return -1 if ka < kb else 1
    return 0


# ---------------------------------------------------------------------------
# Version
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Version:
    """An immutable, string-backed module version.

    Use ``Version.of()`` to build instances from user text; it maps blank
    text and ``?`` onto ``Version.UNSPECIFIED``.

    Attributes:
        value: The raw version string. Empty for the unspecified sentinel.
    """

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise TypeError(
                f"Version value must be a string, got {type(self.value).__name__}"
            )

    @classmethod
    def of(cls, text: str | Version) -> Version:
        """Build a version from text. ``None`` is rejected as misuse."""
        if isinstance(text, Version):
            return text
        if text is None:
            raise TypeError("version cannot be None")
        stripped = text.strip()
        if not stripped or stripped == UNSPECIFIED_TOKEN:
            return UNSPECIFIED
        return cls(stripped)

    # -- Classification -----------------------------------------------------

    def is_unspecified(self) -> bool:
        return self.value == ""

    def is_dynamic(self) -> bool:
        """True for ``+`` and prefix ranges like ``1.2.+``."""
        return self.value == HIGHEST_TOKEN or self.value.endswith("." + HIGHEST_TOKEN)

    def is_snapshot(self) -> bool:
        return self.value.lower().endswith(SNAPSHOT_SUFFIX)

    def is_concrete(self) -> bool:
        """True for versions that name one release or snapshot."""
        return not (self.is_unspecified() or self.is_dynamic())

    def is_fixed(self) -> bool:
        """True for concrete, non-snapshot versions."""
        return self.is_concrete() and not self.is_snapshot()

    def matches(self, candidate: Version) -> bool:
        """Check whether a concrete *candidate* satisfies this dynamic version.

        A concrete version only matches itself; the unspecified sentinel
        matches anything.
        """
        if self.is_unspecified() or self.value == HIGHEST_TOKEN:
            return True
        if self.is_dynamic():
            return candidate.value.startswith(self.value[:-1])
        return self.value == candidate.value

    # -- Ordering -----------------------------------------------------------

    def compare_to(self, other: Version) -> int:
        """Three-way comparison: negative, zero or positive.

        The unspecified sentinel is lower than every concrete version.

        Raises:
            VersionError: If either side is dynamic.
        """
        for v in (self, other):
            if v.is_dynamic():
                raise VersionError(
                    f"Dynamic version {v.value!r} must be resolved before comparison"
                )
        if self.is_unspecified() or other.is_unspecified():
            return int(other.is_unspecified()) - int(self.is_unspecified())
        return _compare_values(self.value, other.value)

    def is_greater_than(self, other: Version) -> bool:
        return self.compare_to(other) > 0

    def is_lower_than(self, other: Version) -> bool:
        return self.compare_to(other) < 0

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        if self.is_unspecified():
            return "Version.UNSPECIFIED"
        return f"Version({self.value!r})"


UNSPECIFIED = Version("")
Version.UNSPECIFIED = UNSPECIFIED  # type: ignore[attr-defined]

version_sort_key = cmp_to_key(Version.compare_to)
"""Sort key for ``sorted(versions, key=version_sort_key)`` (ascending)."""


def highest(versions: list[Version], prefer_release: bool = True) -> Version | None:
    """Return the highest version of *versions*, or None if empty.

    With *prefer_release*, a snapshot is only returned when no release
    version is available.
    """
    candidates = [v for v in versions if v.is_concrete()]
    if prefer_release:
        releases = [v for v in candidates if not v.is_snapshot()]
        if releases:
            candidates = releases
    if not candidates:
        return None
    return max(candidates, key=version_sort_key)
