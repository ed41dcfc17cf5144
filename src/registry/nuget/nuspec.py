"""Nuspec manifest reading: package identity and per-framework dependencies."""
from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
import zipfile
from dataclasses import dataclass, field
from typing import BinaryIO, Dict, List, Optional, Tuple

from constants import Constants
from common.errors import InvalidVersionFormat
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import LibraryIdentity
from versioning.parser import parse_minimum_version

logger = logging.getLogger(__name__)


@dataclass
class NuspecManifest:
    """The parts of a nuspec the resolver needs."""
    id: str
    version: str
    # None key holds dependencies that apply to every framework.
    dependency_groups: Dict[Optional[str], List[LibraryIdentity]] = field(default_factory=dict)

    def dependencies_for(self, target_framework: Optional[str]) -> Tuple[LibraryIdentity, ...]:
        """Dependencies for ``target_framework``.

        An exact (case-insensitive) framework group wins; otherwise the
        framework-neutral group applies.
        """
        if target_framework:
            wanted = target_framework.lower()
            for framework, deps in self.dependency_groups.items():
                if framework is not None and framework.lower() == wanted:
                    return tuple(deps)
        return tuple(self.dependency_groups.get(None, ()))


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if "}" in elem.tag:
            elem.tag = elem.tag.split("}")[1]


def _dependency(elem: ET.Element) -> Optional[LibraryIdentity]:
    dep_id = elem.get("id")
    if not dep_id:
        return None
    try:
        version = parse_minimum_version(elem.get("version"))
    except InvalidVersionFormat as exc:
        logger.warning("Ignoring version of dependency %s: %s", dep_id, exc)
        version = None
    return LibraryIdentity(dep_id, version)


def parse_nuspec(data: bytes) -> NuspecManifest:
    """Parse nuspec XML.

    Raises:
        ET.ParseError: If the document is not well-formed XML.
        ValueError: If the manifest has no ``metadata/id``.
    """
    root = ET.fromstring(data)
    _strip_namespaces(root)

    metadata = root.find("metadata")
    if metadata is None:
        raise ValueError("nuspec has no metadata element")
    package_id = (metadata.findtext("id") or "").strip()
    if not package_id:
        raise ValueError("nuspec has no package id")
    manifest = NuspecManifest(id=package_id, version=(metadata.findtext("version") or "").strip())

    dependencies = metadata.find("dependencies")
    if dependencies is None:
        return manifest

    groups = dependencies.findall("group")
    if groups:
        for group in groups:
            framework = group.get("targetFramework") or None
            deps = [d for d in (_dependency(e) for e in group.findall("dependency")) if d]
            manifest.dependency_groups.setdefault(framework, []).extend(deps)
    else:
        manifest.dependency_groups[None] = [
            d for d in (_dependency(e) for e in dependencies.findall("dependency")) if d
        ]

    if is_debug_enabled(logger):
        logger.debug(
            "Parsed nuspec",
            extra=extra_context(
                event="parse",
                component="nuspec",
                action="parse_nuspec",
                package_id=package_id,
                count=sum(len(v) for v in manifest.dependency_groups.values()),
            ),
        )
    return manifest


def read_nuspec_from_package(stream: BinaryIO) -> Optional[bytes]:
    """Return the bytes of the root-level ``.nuspec`` entry of a package.

    Raises:
        zipfile.BadZipFile: If the stream is not a zip archive.
    """
    with zipfile.ZipFile(stream) as archive:
        for name in archive.namelist():
            if "/" not in name and name.lower().endswith(Constants.MANIFEST_EXTENSION):
                return archive.read(name)
    return None


def open_nuspec_from_package(stream: BinaryIO) -> Optional[BinaryIO]:
    """Like :func:`read_nuspec_from_package` but returns a readable stream."""
    data = read_nuspec_from_package(stream)
    if data is None:
        return None
    return io.BytesIO(data)
