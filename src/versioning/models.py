"""Data models for versioning and package resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import semantic_version

SNAPSHOT_MARKER = "-*"


@dataclass(frozen=True)
class SemanticVersion:
    """A parsed version plus the floating (snapshot) flag.

    ``version`` is the concrete semantic version with the floating marker
    stripped; ``original`` keeps the declared text. NuGet versions may carry
    a fourth numeric part, kept in ``revision``; ``parts`` records how many
    numeric parts were written so the text renders back the same way.
    Ordering follows semver precedence and ignores the snapshot flag and
    build metadata.
    """
    version: semantic_version.Version
    is_snapshot: bool = False
    original: str = field(default="", compare=False)
    revision: int = 0
    parts: int = field(default=3, compare=False)

    @property
    def triple(self) -> Tuple[int, int, int]:
        """Numeric (major, minor, patch)."""
        return self.version.major, self.version.minor, self.version.patch

    @property
    def numbers(self) -> Tuple[int, int, int, int]:
        """All numeric parts, revision included."""
        return (*self.triple, self.revision)

    @property
    def label(self) -> str:
        """Prerelease label, e.g. ``beta-1`` or ``rc.2``; empty for releases."""
        return ".".join(self.version.prerelease)

    def specify_snapshot(self, snapshot_value: Optional[str]) -> "SemanticVersion":
        """Resolve a floating version into a concrete one.

        ``1.0.0-*`` with ``"beta-12"`` gives ``1.0.0-beta-12``; an empty value
        drops the marker. Non-snapshot versions are returned unchanged.
        """
        from .parser import parse_version

        if not self.is_snapshot:
            return self
        text = self.original.strip()[:-len(SNAPSHOT_MARKER)]
        if snapshot_value:
            text = f"{text}-{snapshot_value}"
        return parse_version(text)

    def _key(self) -> Tuple[int, int, int, int, str]:
        return (*self.numbers, self.label.lower())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key() and self.is_snapshot == other.is_snapshot

    def __hash__(self) -> int:
        return hash((self._key(), self.is_snapshot))

    def __lt__(self, other: "SemanticVersion") -> bool:
        return self._precedence() < other._precedence()

    def __le__(self, other: "SemanticVersion") -> bool:
        return self._precedence() <= other._precedence()

    def __gt__(self, other: "SemanticVersion") -> bool:
        return self._precedence() > other._precedence()

    def __ge__(self, other: "SemanticVersion") -> bool:
        return self._precedence() >= other._precedence()

    def _precedence(self) -> Tuple[int, int, int, int, semantic_version.Version]:
        # Numbers first, then the lower-cased label; a release sorts after its prereleases.
        label = semantic_version.Version(
            major=0,
            minor=0,
            patch=0,
            prerelease=tuple(part.lower() for part in self.version.prerelease),
        )
        return (*self.numbers, label)

    def __str__(self) -> str:
        text = f"{self.version.major}.{self.version.minor}"
        if self.parts >= 3:
            text += f".{self.version.patch}"
        if self.parts >= 4:
            text += f".{self.revision}"
        if self.version.prerelease:
            text += "-" + self.label
        if self.version.build:
            text += "+" + ".".join(self.version.build)
        return text


class LibraryType(Enum):
    """Where a library description came from."""
    PROJECT = "Project"
    PACKAGE = "Package"
    SHARED = "Shared"


@dataclass(frozen=True)
class LibraryIdentity:
    """A library name and the version requested or resolved for it."""
    name: str
    version: Optional[SemanticVersion] = None

    @property
    def key(self) -> str:
        """Case-insensitive identity used to dedupe graph nodes."""
        return self.name.lower()

    def __str__(self) -> str:
        if self.version is None:
            return self.name
        return f"{self.name} {self.version.original or self.version}"


@dataclass(frozen=True)
class LibraryDescription:
    """A resolved library and the dependencies it declares."""
    identity: LibraryIdentity
    dependencies: Tuple[LibraryIdentity, ...] = ()
    type: LibraryType = LibraryType.PACKAGE
    path: str = ""


@dataclass(frozen=True)
class PackageInfo:
    """One entry from a remote catalog listing."""
    id: str
    version: SemanticVersion
    content_uri: str


@dataclass
class WalkResult:
    """Outcome of a dependency walk: what resolved and what did not."""
    resolved: set = field(default_factory=set)
    unresolved: set = field(default_factory=set)

    @property
    def success(self) -> bool:
        """True when every visited library was described by some source."""
        return not self.unresolved

    def update(self, other: "WalkResult") -> None:
        """Merge another result into this one."""
        self.resolved |= other.resolved
        self.unresolved |= other.unresolved
