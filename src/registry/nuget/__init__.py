"""NuGet feed package.

This package provides remote feed support:
- client.py: paged version listings and package downloads with caching,
  retry and per-key request coalescing
- nuspec.py: manifest parsing and per-framework dependency selection
"""

from .client import FeedClient  # noqa: F401
from .nuspec import (  # noqa: F401
    NuspecManifest,
    open_nuspec_from_package,
    parse_nuspec,
    read_nuspec_from_package,
)

__all__ = [
    "FeedClient",
    "NuspecManifest",
    "open_nuspec_from_package",
    "parse_nuspec",
    "read_nuspec_from_package",
]
