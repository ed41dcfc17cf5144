"""File-system backed repository publisher."""

from __future__ import annotations

import logging
import os
import shutil
from typing import BinaryIO, List, Optional

from common.errors import RepositoryConflict

from .publisher import PathFilter, RepositoryPublisher

logger = logging.getLogger(__name__)


class FileSystemRepositoryPublisher(RepositoryPublisher):
    """Repository whose artifact paths map 1:1 to files under ``root``."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def __repr__(self) -> str:
        return f"FileSystemRepositoryPublisher({self.root!r})"

    def _full_path(self, path: str) -> str:
        full = os.path.normpath(os.path.join(self.root, *path.split("/")))
        if full != self.root and not full.startswith(self.root + os.sep):
            raise ValueError(f"Artifact path escapes the repository root: {path}")
        return full

    def read_artifact(self, path: str) -> Optional[BinaryIO]:
        full = self._full_path(path)
        try:
            return open(full, "rb")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None

    def write_artifact(self, path: str, stream: BinaryIO, create_new: bool) -> None:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        try:
            with open(full, "xb" if create_new else "wb") as fh:
                shutil.copyfileobj(stream, fh)
        except FileExistsError as exc:
            raise RepositoryConflict(path) from exc

    def remove_artifact(self, path: str) -> None:
        full = self._full_path(path)
        try:
            os.remove(full)
        except FileNotFoundError:
            pass

    def enumerate_artifacts(self, folder_filter: PathFilter, file_filter: PathFilter) -> List[str]:
        result: List[str] = []
        if os.path.isdir(self.root):
            self._enumerate("", folder_filter, file_filter, result)
        return result

    def _enumerate(self, sub_path: str, folder_filter: PathFilter, file_filter: PathFilter, result: List[str]) -> None:
        folder = os.path.join(self.root, *sub_path.split("/")) if sub_path else self.root
        with os.scandir(folder) as listing:
            entries = sorted(listing, key=lambda e: e.name)
        for entry in entries:
            relative = f"{sub_path}/{entry.name}" if sub_path else entry.name
            if entry.is_dir():
                if folder_filter(relative):
                    self._enumerate(relative, folder_filter, file_filter, result)
            elif file_filter(relative):
                result.append(relative)


def create_publisher(path: str) -> RepositoryPublisher:
    """Publisher for the repository at ``path``."""
    logger.debug("Opening file-system repository at %s", path)
    return FileSystemRepositoryPublisher(path)
