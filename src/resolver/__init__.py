"""Dependency graph walking over pluggable description sources."""

from .binaries import BinaryResolver, DirectoryBinaryResolver
from .sources import (
    DescriptionSource,
    FeedDescriptionSource,
    ProjectDescriptionSource,
    SharedStoreDescriptionSource,
)
from .walker import DependencyWalker

__all__ = [
    "BinaryResolver",
    "DirectoryBinaryResolver",
    "DescriptionSource",
    "FeedDescriptionSource",
    "ProjectDescriptionSource",
    "SharedStoreDescriptionSource",
    "DependencyWalker",
]
