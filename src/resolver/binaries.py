"""Binary-level lookups for the walker's local (flat closure) mode.

Reading references out of a compiled binary belongs to the host runtime, so
it is injected as a callable; this module only decides where binaries live.
"""
from __future__ import annotations

import logging
import os
from typing import Callable, Iterable, List, Mapping, Optional, Protocol, Sequence

from versioning.models import LibraryDescription

logger = logging.getLogger(__name__)

BINARY_EXTENSION = ".dll"

ReferenceReader = Callable[[str], Iterable[str]]


class BinaryResolver(Protocol):
    """What the walker needs to follow binary references."""

    def resolve_path(self, name: str) -> Optional[str]:
        """File path of binary ``name``, or None if it is not on disk."""

    def read_references(self, path: str) -> List[str]:
        """Names of the binaries referenced by the binary at ``path``."""

    def is_shared(self, name: str) -> bool:
        """True if ``name`` is provided by the system-wide shared store."""

    def loadable_assemblies(self, description: LibraryDescription) -> List[str]:
        """Binary names a resolved library contributes."""


class DirectoryBinaryResolver:
    """Looks binaries up in ordered search folders, then in a package map.

    Args:
        search_dirs: Folders searched first, in order (e.g. the runtime root).
        reference_reader: Returns the referenced binary names for a path.
        package_binaries: Binary name to path for binaries shipped in packages.
        shared_names: Names satisfied by the system-wide shared store.
    """

    def __init__(
        self,
        search_dirs: Sequence[str] = (),
        reference_reader: Optional[ReferenceReader] = None,
        package_binaries: Optional[Mapping[str, str]] = None,
        shared_names: Iterable[str] = (),
    ):
        self.search_dirs = list(search_dirs)
        self._reference_reader = reference_reader
        self._package_binaries = {k.lower(): v for k, v in (package_binaries or {}).items()}
        self._shared = {n.lower() for n in shared_names}

    def resolve_path(self, name: str) -> Optional[str]:
        for folder in self.search_dirs:
            candidate = os.path.join(folder, name + BINARY_EXTENSION)
            if os.path.isfile(candidate):
                return candidate
        return self._package_binaries.get(name.lower())

    def read_references(self, path: str) -> List[str]:
        if self._reference_reader is None:
            return []
        return list(self._reference_reader(path))

    def is_shared(self, name: str) -> bool:
        return name.lower() in self._shared

    def loadable_assemblies(self, description: LibraryDescription) -> List[str]:
        # Packages conventionally ship a binary named after the package.
        return [description.identity.name]
