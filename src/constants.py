"""Constants used in the project."""

import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    ENV_LOG_LEVEL = "NURESOLVE_LOG_LEVEL"
    ENV_CONFIG = "NURESOLVE_CONFIG"
    ENV_CACHE_DIR = "NURESOLVE_CACHE_DIR"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests

    # Feed client tunables
    FEED_RETRY_MAX = 3
    FEED_RETRY_BASE_DELAY_SEC = 0.3
    FEED_LIST_CACHE_AGE_SEC = 30 * 60
    FEED_CONTENT_CACHE_AGE_SEC = 24 * 60 * 60
    HTTP_CACHE_DIR = os.path.join(os.path.expanduser("~"), ".nuresolve", "http-cache")
    USER_AGENT = "nuresolve/0.1"

    # Package and repository layout
    MANIFEST_EXTENSION = ".nuspec"
    PROJECT_JSON_FILE = "project.json"
    FEED_FOLDER = "$feed"
    INDEX_FILE = "$index.json"
    TRANSMIT_FILE = "$feed/transmit.json"

    DEFAULT_CONFIG_LOCATIONS = (
        "nuresolve.yml",
        "nuresolve.yaml",
        os.path.join("~", ".config", "nuresolve", "nuresolve.yml"),
    )


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load YAML configuration from an explicit path or the default locations.

    Precedence: explicit ``path``, then ``$NURESOLVE_CONFIG``, then the first
    existing file in ``Constants.DEFAULT_CONFIG_LOCATIONS``.

    Returns:
        dict: Parsed configuration, or an empty dict when nothing is found.
    """
    candidates = []
    if path:
        candidates.append(path)
    env_path = os.environ.get(Constants.ENV_CONFIG)
    if env_path:
        candidates.append(env_path)
    candidates.extend(Constants.DEFAULT_CONFIG_LOCATIONS)

    for candidate in candidates:
        full = os.path.expanduser(candidate)
        if not os.path.isfile(full):
            continue
        try:
            with open(full, "r", encoding="utf-8") as fh:
                data = yaml.safe_load(fh) or {}
        except (OSError, yaml.YAMLError) as exc:
            logger.warning("Couldn't read config file %s: %s", full, exc)
            return {}
        if isinstance(data, dict):
            return data
        return {}
    return {}


def apply_config(cfg: Dict[str, Any]) -> None:
    """Apply a loaded configuration mapping onto Constants.

    Recognized sections: ``http`` (timeout, cache_dir), ``feed``
    (retry_max, retry_base_delay, list_cache_age, content_cache_age) and
    ``logging`` (format). Malformed values are logged and skipped; this
    never raises.
    """
    if not isinstance(cfg, dict):
        return

    http = cfg.get("http") or {}
    feed = cfg.get("feed") or {}
    log = cfg.get("logging") or {}

    overrides = (
        (http, "timeout", "REQUEST_TIMEOUT", int),
        (http, "cache_dir", "HTTP_CACHE_DIR", os.path.expanduser),
        (feed, "retry_max", "FEED_RETRY_MAX", int),
        (feed, "retry_base_delay", "FEED_RETRY_BASE_DELAY_SEC", float),
        (feed, "list_cache_age", "FEED_LIST_CACHE_AGE_SEC", int),
        (feed, "content_cache_age", "FEED_CONTENT_CACHE_AGE_SEC", int),
        (log, "format", "LOG_FORMAT", str),
    )
    for section, key, attr, convert in overrides:
        if not isinstance(section, dict) or section.get(key) is None:
            continue
        try:
            setattr(Constants, attr, convert(section[key]))
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring invalid config value %s=%r: %s", key, section[key], exc)

    env_cache = os.environ.get(Constants.ENV_CACHE_DIR)
    if env_cache:
        Constants.HTTP_CACHE_DIR = os.path.expanduser(env_cache)
