"""Transitive dependency walker.

The walk is an explicit worklist rather than recursion, so deep graphs do
not hit the recursion limit. Every node is visited at most once (by
case-insensitive name); revisiting a node is a no-op, which is also what
makes cycles terminate. Names no source can describe are collected in the
result's ``unresolved`` set and not expanded; the walk carries on.
"""
from __future__ import annotations

import logging
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, TypeVar

from common.logging_utils import extra_context, is_debug_enabled, Timer
from versioning.models import (
    LibraryDescription,
    LibraryIdentity,
    LibraryType,
    SemanticVersion,
    WalkResult,
)

from .binaries import BinaryResolver
from .sources import DescriptionSource

logger = logging.getLogger(__name__)

N = TypeVar("N")  # worklist item
D = TypeVar("D")  # description of a resolved item


def _traverse(
    root: N,
    key: Callable[[N], Hashable],
    name: Callable[[N], str],
    describe: Callable[[N], Optional[D]],
    expand: Callable[[D], Iterable[N]],
    label: Callable[[N, D], str],
    is_external: Callable[[N], bool] = lambda item: False,
) -> WalkResult:
    """Worklist skeleton shared by the package and local walks."""
    result = WalkResult()
    visited = set()
    stack: List[N] = [root]

    while stack:
        current = stack.pop()
        current_key = key(current)
        if current_key in visited:
            continue
        visited.add(current_key)

        description = describe(current)
        if description is None:
            if not is_external(current):
                result.unresolved.add(name(current))
            continue

        result.resolved.add(label(current, description))
        stack.extend(expand(description))

    return result


class DependencyWalker:
    """Resolve the transitive closure of a library across ordered sources."""

    def __init__(self, sources: Sequence[DescriptionSource]):
        self.sources = list(sources)
        # Descriptions resolved by the latest walk, keyed by case-insensitive name.
        self.libraries: Dict[str, LibraryDescription] = {}

    def describe(self, identity: LibraryIdentity, target_framework: Optional[str]) -> Optional[LibraryDescription]:
        """Ask each source in priority order; the first answer wins."""
        for source in self.sources:
            description = source.get_description(identity.name, identity.version, target_framework)
            if description is not None:
                self.libraries[identity.key] = description
                return description
        return None

    def walk(
        self,
        root_name: str,
        target_framework: Optional[str],
        root_version: Optional[SemanticVersion] = None,
    ) -> WalkResult:
        """Package-level walk from ``root_name``.

        Returns:
            WalkResult: names of resolved libraries and of those no source
            could describe.
        """
        self.libraries = {}
        with Timer() as t:
            result = _traverse(
                LibraryIdentity(root_name, root_version),
                key=lambda identity: identity.key,
                name=lambda identity: identity.name,
                describe=lambda identity: self.describe(identity, target_framework),
                expand=lambda description: description.dependencies,
                label=lambda identity, description: identity.name,
            )

        if is_debug_enabled(logger):
            logger.debug(
                "Dependency walk finished",
                extra=extra_context(
                    event="function_exit",
                    component="walker",
                    action="walk",
                    target=root_name,
                    outcome="success" if result.success else "unresolved",
                    count=len(result.resolved),
                    duration_ms=t.duration_ms(),
                ),
            )
        return result

    @staticmethod
    def walk_local(root_binary: str, binaries: BinaryResolver) -> WalkResult:
        """Binary-level walk from ``root_binary``.

        The resolved set holds binary file paths. A name with no file that
        the shared store provides is neither resolved nor unresolved.
        """
        return _traverse(
            root_binary,
            key=lambda binary: binary.lower(),
            name=lambda binary: binary,
            describe=binaries.resolve_path,
            expand=binaries.read_references,
            label=lambda binary, path: path,
            is_external=binaries.is_shared,
        )

    def find(
        self,
        root_name: str,
        target_framework: Optional[str],
        local: bool = False,
        binaries: Optional[BinaryResolver] = None,
    ) -> WalkResult:
        """Walk packages, and in local mode also the binaries they load.

        In local mode the resolved set holds the binary paths of every
        non-project library reached by the package walk; unresolved names
        from either walk are reported together.
        """
        result = self.walk(root_name, target_framework)
        if not local:
            return result
        if binaries is None:
            raise ValueError("local mode needs a binary resolver")

        local_result = WalkResult(unresolved=set(result.unresolved))
        for key in sorted(self.libraries):
            description = self.libraries[key]
            if description.type == LibraryType.PROJECT:
                continue
            for binary in binaries.loadable_assemblies(description):
                local_result.update(self.walk_local(binary, binaries))
        return local_result
