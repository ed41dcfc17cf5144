"""Exception types raised across the resolver, feed client and publisher."""

from typing import Optional


class NuResolveError(Exception):
    """Base class for all errors raised by this package."""


class InvalidVersionFormat(NuResolveError, ValueError):
    """Raised when version text is not a valid (optionally floating) version."""

    def __init__(self, text: str, reason: Optional[str] = None):
        self.text = text
        message = f"Invalid version format: {text!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class FeedError(NuResolveError):
    """Base class for remote feed failures."""


class FeedCorruptCache(FeedError):
    """A cached listing page could not be parsed."""

    def __init__(self, cache_file: Optional[str], reason: str):
        self.cache_file = cache_file
        super().__init__(f"The file {cache_file} is corrupt: {reason}")


class FeedUnavailable(FeedError):
    """All retries against a feed were exhausted."""

    def __init__(self, feed: str, package_id: str, reason: str):
        self.feed = feed
        self.package_id = package_id
        super().__init__(f"Feed {feed} unavailable for {package_id}: {reason}")


class RepositoryConflict(NuResolveError):
    """A create-only write targeted an artifact that already exists."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Repository artifact already exists: {path}")
