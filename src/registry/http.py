"""HTTP source for feed clients: GET with an on-disk response cache.

Each response body is stored under ``<cache root>/<feed folder>/<key>.dat``.
A cached file younger than the caller's age limit is served without a
network round trip; an age limit of zero always refetches. Replacing and
opening cache files happens under the cross-process file lock so that a
concurrent process never reads a half-written or just-deleted file.
"""
from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
import time
from typing import Any, BinaryIO, Optional

import requests

from constants import Constants
from common.file_lock import file_locked
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")
_CHUNK_SIZE = 64 * 1024


def _cache_folder_name(base_uri: str) -> str:
    """Readable, collision-resistant folder name for a feed base URI."""
    readable = _UNSAFE_CHARS.sub("_", base_uri.split("://", 1)[-1]).strip("_")[:64]
    digest = hashlib.sha256(base_uri.encode("utf-8")).hexdigest()[:8]
    return f"{readable}_{digest}"


def _cache_file_name(cache_key: str) -> str:
    return _UNSAFE_CHARS.sub("_", cache_key) + ".dat"


class HttpSourceResult:
    """An open response body plus the cache file it was read from."""

    def __init__(self, cache_file_name: str, stream: BinaryIO):
        self.cache_file_name = cache_file_name
        self.stream = stream

    def close(self) -> None:
        """Close the underlying stream."""
        self.stream.close()

    def __enter__(self) -> "HttpSourceResult":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()


class HttpSource:
    """Fetches feed URIs through a per-feed disk cache."""

    def __init__(
        self,
        base_uri: str,
        user_name: Optional[str] = None,
        password: Optional[str] = None,
        cache_root: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_uri = base_uri
        self._auth = (user_name, password or "") if user_name else None
        root = cache_root or Constants.HTTP_CACHE_DIR
        self.cache_dir = os.path.join(root, _cache_folder_name(base_uri))
        self._session = session or requests.Session()

    def cache_path(self, cache_key: str) -> str:
        """Absolute path of the cache file for ``cache_key``."""
        return os.path.join(self.cache_dir, _cache_file_name(cache_key))

    def get(self, uri: str, cache_key: str, cache_age_limit: float) -> HttpSourceResult:
        """Return the body of ``uri``, from cache when fresh enough.

        Args:
            uri: Absolute URI to fetch.
            cache_key: Stable name of the cache entry for this request.
            cache_age_limit: Maximum cache age in seconds; 0 forces a refetch.

        Raises:
            requests.RequestException: On network failure or an HTTP error
                status.
        """
        cache_file = self.cache_path(cache_key)
        if cache_age_limit > 0:
            cached = self._open_if_fresh(cache_file, cache_age_limit)
            if cached is not None:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP cache hit",
                        extra=extra_context(
                            event="cache_hit",
                            component="http_source",
                            action="GET",
                            target=safe_url(uri),
                        ),
                    )
                return cached

        self._download(uri, cache_file)
        with file_locked(cache_file):
            # pylint: disable=consider-using-with
            return HttpSourceResult(cache_file, open(cache_file, "rb"))

    def _open_if_fresh(self, cache_file: str, cache_age_limit: float) -> Optional[HttpSourceResult]:
        with file_locked(cache_file):
            try:
                age = time.time() - os.path.getmtime(cache_file)
            except OSError:
                return None
            if age >= cache_age_limit:
                return None
            # pylint: disable=consider-using-with
            return HttpSourceResult(cache_file, open(cache_file, "rb"))

    def _download(self, uri: str, cache_file: str) -> None:
        safe_target = safe_url(uri)
        logger.info("GET %s", safe_target)
        with Timer() as t:
            response = self._session.get(
                uri,
                auth=self._auth,
                timeout=Constants.REQUEST_TIMEOUT,
                headers={"User-Agent": Constants.USER_AGENT},
                stream=True,
            )
            try:
                response.raise_for_status()
                os.makedirs(self.cache_dir, exist_ok=True)
                fd, temp_path = tempfile.mkstemp(dir=self.cache_dir, suffix=".tmp")
                try:
                    with os.fdopen(fd, "wb") as out:
                        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                            if chunk:
                                out.write(chunk)
                    with file_locked(cache_file):
                        os.replace(temp_path, cache_file)
                except BaseException:
                    if os.path.exists(temp_path):
                        os.remove(temp_path)
                    raise
            finally:
                response.close()
        logger.info("%s %s %dms", response.status_code, safe_target, t.duration_ms())
