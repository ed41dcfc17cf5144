"""NuGet v2 feed client: paged version listings and package downloads.

Listings and downloads are coalesced per key: concurrent callers asking for
the same package id (or package version) share one in-flight fetch. Keys
are case-insensitive, as NuGet ids are. Every
logical request is retried; only the first attempt may be served from the
disk cache so a corrupt cache entry is never retried against.
"""
from __future__ import annotations

import json
import logging
import threading
import time
import urllib.parse
from concurrent.futures import Future
from typing import Any, BinaryIO, Callable, Dict, List, Optional, TypeVar

import requests

from constants import Constants
from common.errors import FeedCorruptCache, FeedError, FeedUnavailable
from common.file_lock import execute_with_file_locked
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from registry.http import HttpSource
from versioning.models import PackageInfo
from versioning.parser import try_parse_version

from .nuspec import open_nuspec_from_package

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors worth another attempt; anything else is a bug and propagates at once.
_RETRYABLE = (requests.RequestException, FeedError, OSError)


def _content_key(package: PackageInfo) -> str:
    # Package ids and version labels are case-insensitive.
    return f"{package.id}.{package.version}".lower()


class FeedClient:
    """Client for one remote package feed."""

    def __init__(
        self,
        base_uri: str,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
        no_cache: bool = False,
        ignore_failure: bool = False,
        http_source: Optional[HttpSource] = None,
        cache_root: Optional[str] = None,
    ):
        """Initialize the feed client.

        Args:
            base_uri: Feed root, e.g. ``https://www.nuget.org/api/v2/``.
            user_name: Optional basic-auth user.
            password: Optional basic-auth password.
            no_cache: Always revalidate listings and downloads.
            ignore_failure: After exhausted retries, stop using this feed
                for the rest of the client's lifetime instead of raising.
            http_source: Override the HTTP source (tests, custom sessions).
            cache_root: Root of the disk cache; defaults to
                ``Constants.HTTP_CACHE_DIR``.
        """
        self.base_uri = base_uri if base_uri.endswith("/") else base_uri + "/"
        self._http = http_source or HttpSource(
            self.base_uri, user_name, password, cache_root=cache_root
        )
        self._ignore_failure = ignore_failure
        if no_cache:
            self._cache_age_list = 0
            self._cache_age_content = 0
        else:
            self._cache_age_list = Constants.FEED_LIST_CACHE_AGE_SEC
            self._cache_age_content = Constants.FEED_CONTENT_CACHE_AGE_SEC

        self._ignored = False
        self._ignored_lock = threading.Lock()
        self._versions_cache: Dict[str, Future] = {}
        self._versions_lock = threading.Lock()
        self._content_cache: Dict[str, Future] = {}
        self._content_lock = threading.Lock()

    @property
    def ignored(self) -> bool:
        """True once the feed was given up on (only with ``ignore_failure``)."""
        with self._ignored_lock:
            return self._ignored

    def _mark_ignored(self) -> None:
        with self._ignored_lock:
            self._ignored = True

    @staticmethod
    def _coalesce(cache: Dict[str, Future], lock: threading.Lock, key: str, fetch: Callable[[], T]) -> T:
        """Run ``fetch`` once per key; concurrent and later callers share its outcome."""
        with lock:
            future = cache.get(key)
            owner = future is None
            if owner:
                future = Future()
                cache[key] = future
        if owner:
            try:
                future.set_result(fetch())
            except Exception as exc:  # pylint: disable=broad-exception-caught
                future.set_exception(exc)
            except BaseException as exc:
                # Interrupts release the waiters but are not remembered for the key.
                with lock:
                    cache.pop(key, None)
                future.set_exception(exc)
                raise
        return future.result()

    @staticmethod
    def _backoff(attempt: int) -> None:
        delay = Constants.FEED_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1))
        if delay > 0:
            time.sleep(delay)

    def list_versions(self, package_id: str) -> List[PackageInfo]:
        """List every version of ``package_id`` published on this feed.

        Raises:
            FeedUnavailable: When all attempts failed and the client was not
                created with ``ignore_failure``.
        """
        results = self._coalesce(
            self._versions_cache,
            self._versions_lock,
            package_id.lower(),
            lambda: self._find_packages_by_id(package_id),
        )
        return list(results)

    def _find_packages_by_id(self, package_id: str) -> List[PackageInfo]:
        retry_max = Constants.FEED_RETRY_MAX
        for attempt in range(retry_max):
            if self.ignored:
                return []
            if attempt:
                self._backoff(attempt)
            try:
                return self._fetch_listing(
                    package_id, self._cache_age_list if attempt == 0 else 0
                )
            except _RETRYABLE as exc:
                if attempt < retry_max - 1:
                    logger.warning("Warning: FindPackagesById: %s\n  %s", package_id, exc)
                    continue
                if self._ignore_failure:
                    self._mark_ignored()
                    logger.warning(
                        "Failed to retrieve information from remote source '%s'",
                        safe_url(self.base_uri),
                    )
                    return []
                logger.error("Error: FindPackagesById: %s\n  %s", package_id, exc)
                raise FeedUnavailable(safe_url(self.base_uri), package_id, str(exc)) from exc
        return []

    def _listing_uri(self, package_id: str) -> str:
        quoted = urllib.parse.quote(package_id, safe="")
        return f"{self.base_uri}FindPackagesById()?Id='{quoted}'&$select=Id,Version&$format=json"

    def _fetch_listing(self, package_id: str, cache_age: float) -> List[PackageInfo]:
        uri: Optional[str] = self._listing_uri(package_id)
        results: List[PackageInfo] = []
        page = 1
        while uri:
            # Pages are cached separately, so a shrinking listing can read
            # stale later pages until the listing window expires.
            with self._http.get(uri, f"list_{package_id.lower()}_json_page{page}", cache_age) as data:
                try:
                    uri = self._parse_feed_entries(package_id, results, data.stream)
                except (ValueError, KeyError, TypeError, AttributeError) as exc:
                    logger.info("The file %s is corrupt", data.cache_file_name)
                    raise FeedCorruptCache(data.cache_file_name, str(exc)) from exc
            page += 1

        if is_debug_enabled(logger):
            logger.debug(
                "Listed package versions",
                extra=extra_context(
                    event="function_exit",
                    component="feed_client",
                    action="list_versions",
                    package_id=package_id,
                    count=len(results),
                ),
            )
        return results

    def _parse_feed_entries(self, package_id: str, results: List[PackageInfo], stream: BinaryIO) -> Optional[str]:
        """Append one page's entries to ``results`` and return the next page URI."""
        root = json.load(stream)["d"]
        for entry in root["results"]:
            info = self._build_package_info(package_id, entry)
            if info is not None:
                results.append(info)

        next_uri = root.get("__next")
        if not next_uri:
            return None
        return next_uri + "&$format=json"

    @staticmethod
    def _build_package_info(package_id: str, entry: Dict[str, Any]) -> Optional[PackageInfo]:
        # The entry's own Id has the canonical casing; the requested id is the fallback.
        entry_id = entry.get("Id") or package_id
        version = try_parse_version(entry.get("Version"))
        if version is None:
            logger.warning("Skipping %s with invalid version %r", entry_id, entry.get("Version"))
            return None
        return PackageInfo(
            id=entry_id,
            version=version,
            content_uri=entry["__metadata"]["media_src"],
        )

    def open_content(self, package: PackageInfo) -> Optional[BinaryIO]:
        """Open the package archive, downloading it if needed.

        Returns:
            A binary stream the caller must close, or None when the download
            failed on every attempt.
        """
        cache_file = self._coalesce(
            self._content_cache,
            self._content_lock,
            _content_key(package),
            lambda: self._download_content(package),
        )
        if cache_file is None:
            return None

        # Lock before opening so another process cannot delete the file
        # between the download finishing and this open.
        # pylint: disable=consider-using-with
        return execute_with_file_locked(cache_file, lambda path: open(path, "rb"))

    def _download_content(self, package: PackageInfo) -> Optional[str]:
        retry_max = Constants.FEED_RETRY_MAX
        for attempt in range(retry_max):
            if attempt:
                self._backoff(attempt)
            try:
                with self._http.get(
                    package.content_uri,
                    "nupkg_" + _content_key(package),
                    self._cache_age_content if attempt == 0 else 0,
                ) as data:
                    return data.cache_file_name
            except _RETRYABLE as exc:
                if attempt < retry_max - 1:
                    logger.warning(
                        "Warning: DownloadPackage: %s\n  %s", safe_url(package.content_uri), exc
                    )
                else:
                    logger.error(
                        "Error: DownloadPackage: %s\n  %s", safe_url(package.content_uri), exc
                    )
        return None

    def open_nuspec(self, package: PackageInfo) -> Optional[BinaryIO]:
        """Open the manifest embedded in the package archive.

        Returns:
            The nuspec stream, or None if the package could not be downloaded
            or contains no root-level nuspec.

        Raises:
            zipfile.BadZipFile: If the downloaded content is not an archive.
        """
        stream = self.open_content(package)
        if stream is None:
            return None
        with stream:
            return open_nuspec_from_package(stream)
