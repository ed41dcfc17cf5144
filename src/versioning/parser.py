"""Version text parsing, including the floating ``-*`` suffix."""

import re
from typing import Optional, Tuple

import semantic_version

from common.errors import InvalidVersionFormat
from .models import SNAPSHOT_MARKER, SemanticVersion


def split_snapshot_marker(text: str) -> Tuple[str, bool]:
    """Return (text without the floating marker, is_snapshot)."""
    s = text.strip()
    if s.endswith(SNAPSHOT_MARKER):
        return s[:-len(SNAPSHOT_MARKER)], True
    return s, False


_NUGET_VERSION = re.compile(
    r"^(?P<major>\d+)\.(?P<minor>\d+)(?:\.(?P<patch>\d+))?(?:\.(?P<revision>\d+))?"
    r"(?P<label>-[0-9A-Za-z.-]+)?(?P<build>\+[0-9A-Za-z.-]+)?$"
)


def parse_version(text: str) -> SemanticVersion:
    """Parse version text such as ``1.0``, ``1.2.3``, ``4.0.30319.1``,
    ``1.0.0-beta`` or ``1.0.0-beta-*``.

    Two to four numeric parts are accepted; leading zeros are insignificant.

    Raises:
        InvalidVersionFormat: If the text (after stripping a floating marker)
            is not a valid dotted numeric version with optional label.
    """
    if text is None:
        raise InvalidVersionFormat("None", "no version text")
    stripped, is_snapshot = split_snapshot_marker(text)
    if not stripped:
        raise InvalidVersionFormat(text, "empty version")
    m = _NUGET_VERSION.match(stripped)
    if not m:
        raise InvalidVersionFormat(text, "expected two to four numeric parts")
    patch, revision = m.group("patch"), m.group("revision")
    normalized = "{}.{}.{}{}{}".format(
        int(m.group("major")),
        int(m.group("minor")),
        int(patch or 0),
        m.group("label") or "",
        m.group("build") or "",
    )
    try:
        version = semantic_version.Version(normalized)
    except ValueError as exc:
        raise InvalidVersionFormat(text, str(exc)) from exc
    parts = 2 + (patch is not None) + (revision is not None)
    return SemanticVersion(version, is_snapshot, text.strip(), int(revision or 0), parts)


def try_parse_version(text: Optional[str]) -> Optional[SemanticVersion]:
    """Parse version text, returning None instead of raising."""
    if text is None:
        return None
    try:
        return parse_version(text)
    except InvalidVersionFormat:
        return None


_SHORT_VERSION = re.compile(r"^(\d+)(?:\.(\d+))?(-.+)?$")


def parse_minimum_version(spec: Optional[str]) -> Optional[SemanticVersion]:
    """Return the lower bound of a declared dependency version.

    Accepts a plain or floating version (``1.0.0``, ``1.0.0-*``), an interval
    (``[1.0.0, 2.0.0)``; only the lower bound is used) and the short forms
    ``1`` and ``1.2``, which are padded with zeros. Returns None for an empty
    spec or an interval without a lower bound.

    Raises:
        InvalidVersionFormat: If the lower bound is not a valid version.
    """
    if spec is None:
        return None
    s = spec.strip()
    if s[:1] in ("[", "("):
        s = s[1:].rstrip("])").split(",", 1)[0].strip()
    if not s:
        return None
    m = _SHORT_VERSION.match(s)
    if m:
        s = f"{m.group(1)}.{m.group(2) or 0}.0{m.group(3) or ''}"
    return parse_version(s)
