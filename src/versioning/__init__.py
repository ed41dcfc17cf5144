"""Semantic versions, floating-version matching and candidate selection."""

from .models import (
    LibraryDescription,
    LibraryIdentity,
    LibraryType,
    PackageInfo,
    SemanticVersion,
    WalkResult,
)
from .negotiator import matches, prefer_candidate, select_best
from .parser import parse_minimum_version, parse_version, try_parse_version

__all__ = [
    "LibraryDescription",
    "LibraryIdentity",
    "LibraryType",
    "PackageInfo",
    "SemanticVersion",
    "WalkResult",
    "matches",
    "prefer_candidate",
    "select_best",
    "parse_minimum_version",
    "parse_version",
    "try_parse_version",
]
