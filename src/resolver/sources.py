"""Description sources consulted by the dependency walker.

A source answers "what is library X and what does it depend on?" or returns
None when it does not know X. The walker asks its sources in priority order
(project-local, remote feeds, system-wide shared store) and takes the first
answer.
"""
from __future__ import annotations

import json
import logging
import os
import zipfile
import xml.etree.ElementTree as ET
from glob import escape, glob
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

from constants import Constants
from common.errors import InvalidVersionFormat
from common.logging_utils import extra_context, is_debug_enabled
from registry.nuget.client import FeedClient
from registry.nuget.nuspec import parse_nuspec
from versioning.models import (
    LibraryDescription,
    LibraryIdentity,
    LibraryType,
    PackageInfo,
    SemanticVersion,
)
from versioning.negotiator import select_best
from versioning.parser import parse_minimum_version, try_parse_version

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_VERSION = "1.0.0"


class DescriptionSource(Protocol):
    """Anything that can describe a library by name and version."""

    def get_description(
        self,
        name: str,
        version: Optional[SemanticVersion],
        target_framework: Optional[str],
    ) -> Optional[LibraryDescription]:
        """Return the library's description, or None if this source lacks it."""


def _pick_version(candidates: Sequence[Any], version: Optional[SemanticVersion], key) -> Optional[Any]:
    """Choose among candidates; with no requested version, take the newest stable."""
    if not candidates:
        return None
    if version is not None:
        return select_best(candidates, version, key=key)
    stable = [c for c in candidates if not key(c).label]
    return max(stable or candidates, key=key)


def _find_child_dir(root: str, name: str) -> Optional[str]:
    """Case-insensitive lookup of ``root/name``."""
    exact = os.path.join(root, name)
    if os.path.isdir(exact):
        return exact
    try:
        entries = os.listdir(root)
    except OSError:
        return None
    wanted = name.lower()
    for entry in entries:
        if entry.lower() == wanted and os.path.isdir(os.path.join(root, entry)):
            return os.path.join(root, entry)
    return None


class ProjectDescriptionSource:
    """Projects that live side by side under one root, one folder each.

    Only the subset of ``project.json`` the resolver needs is read: the
    ``version`` and the ``dependencies`` (global and per framework).
    """

    def __init__(self, projects_root: str):
        self.projects_root = projects_root

    def get_description(
        self,
        name: str,
        version: Optional[SemanticVersion],
        target_framework: Optional[str],
    ) -> Optional[LibraryDescription]:
        project_dir = _find_child_dir(self.projects_root, name)
        if project_dir is None:
            return None
        project_file = os.path.join(project_dir, Constants.PROJECT_JSON_FILE)
        if not os.path.isfile(project_file):
            return None

        try:
            with open(project_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Couldn't parse project.json file %s: %s", project_file, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Couldn't parse project.json file %s: not an object", project_file)
            return None

        try:
            project_version = parse_minimum_version(str(data.get("version") or DEFAULT_PROJECT_VERSION))
        except InvalidVersionFormat as exc:
            logger.warning("Ignoring version of project %s: %s", name, exc)
            project_version = None
        dependencies = self._read_dependencies(data.get("dependencies"))
        frameworks = data.get("frameworks")
        if target_framework and isinstance(frameworks, dict):
            for framework, body in frameworks.items():
                if framework.lower() == target_framework.lower() and isinstance(body, dict):
                    dependencies.extend(self._read_dependencies(body.get("dependencies")))

        return LibraryDescription(
            identity=LibraryIdentity(os.path.basename(project_dir), project_version),
            dependencies=tuple(dependencies),
            type=LibraryType.PROJECT,
            path=project_file,
        )

    @staticmethod
    def _read_dependencies(section: Any) -> List[LibraryIdentity]:
        if not isinstance(section, dict):
            return []
        result = []
        for dep_name, spec in section.items():
            if isinstance(spec, dict):
                spec = spec.get("version")
            try:
                dep_version = parse_minimum_version(spec) if isinstance(spec, str) else None
            except InvalidVersionFormat as exc:
                logger.warning("Ignoring version of dependency %s: %s", dep_name, exc)
                dep_version = None
            result.append(LibraryIdentity(dep_name, dep_version))
        return result


class FeedDescriptionSource:
    """Packages available from one or more remote feeds."""

    def __init__(self, feeds: Iterable[FeedClient]):
        self.feeds = list(feeds)

    def get_description(
        self,
        name: str,
        version: Optional[SemanticVersion],
        target_framework: Optional[str],
    ) -> Optional[LibraryDescription]:
        candidates: List[Tuple[FeedClient, PackageInfo]] = []
        for feed in self.feeds:
            candidates.extend((feed, info) for info in feed.list_versions(name))

        best = _pick_version(candidates, version, key=lambda pair: pair[1].version)
        if best is None:
            return None
        feed, info = best

        if is_debug_enabled(logger):
            logger.debug(
                "Selected package version",
                extra=extra_context(
                    event="decision",
                    component="feed_source",
                    action="select_version",
                    package_id=info.id,
                    target=str(info.version),
                    count=len(candidates),
                ),
            )

        try:
            nuspec = feed.open_nuspec(info)
        except zipfile.BadZipFile as exc:
            logger.warning("Package %s %s is not a valid archive: %s", info.id, info.version, exc)
            return None
        if nuspec is None:
            logger.warning("No manifest available for %s %s", info.id, info.version)
            return None
        with nuspec:
            try:
                manifest = parse_nuspec(nuspec.read())
            except (ET.ParseError, ValueError) as exc:
                logger.warning("Couldn't parse manifest of %s %s: %s", info.id, info.version, exc)
                return None

        return LibraryDescription(
            identity=LibraryIdentity(info.id, info.version),
            dependencies=manifest.dependencies_for(target_framework),
            type=LibraryType.PACKAGE,
            path=info.content_uri,
        )


class SharedStoreDescriptionSource:
    """The system-wide shared store, laid out ``<root>/<name>/<version>/``."""

    def __init__(self, store_root: str):
        self.store_root = store_root

    def installed_versions(self, name: str) -> List[Tuple[SemanticVersion, str]]:
        """(version, folder) pairs installed for ``name``."""
        package_dir = _find_child_dir(self.store_root, name)
        if package_dir is None:
            return []
        found = []
        for entry in sorted(os.listdir(package_dir)):
            folder = os.path.join(package_dir, entry)
            parsed = try_parse_version(entry)
            if parsed is not None and os.path.isdir(folder):
                found.append((parsed, folder))
        return found

    def get_description(
        self,
        name: str,
        version: Optional[SemanticVersion],
        target_framework: Optional[str],
    ) -> Optional[LibraryDescription]:
        best = _pick_version(self.installed_versions(name), version, key=lambda pair: pair[0])
        if best is None:
            return None
        resolved_version, folder = best

        manifests = sorted(glob(os.path.join(escape(folder), "*" + Constants.MANIFEST_EXTENSION)))
        if not manifests:
            logger.warning("No manifest found in %s", folder)
            return None
        try:
            with open(manifests[0], "rb") as f:
                manifest = parse_nuspec(f.read())
        except (OSError, ET.ParseError, ValueError) as exc:
            logger.warning("Couldn't parse manifest %s: %s", manifests[0], exc)
            return None

        return LibraryDescription(
            identity=LibraryIdentity(manifest.id, resolved_version),
            dependencies=manifest.dependencies_for(target_framework),
            type=LibraryType.SHARED,
            path=folder,
        )
