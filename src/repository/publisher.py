"""Abstract repository publisher.

A published repository is a tree of artifacts addressed by
``<name>/<version>/<file>`` plus a reserved ``$feed/`` namespace holding
the change-record log and the push/pull progress record. Every package and
package version folder also carries a ``$index.json`` contents record that
can be rebuilt at any time by replaying the log.

Backends only provide the four artifact primitives; record storage,
merging and index maintenance live here.
"""
from __future__ import annotations

import abc
import io
import json
import logging
from typing import Any, BinaryIO, Callable, Dict, Iterable, List, Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants

from .changelog import ChangeLog
from .records import ChangeRecord, ContentsRecord, TransmitRecord

logger = logging.getLogger(__name__)

PathFilter = Callable[[str], bool]


def _first_part(path: str) -> str:
    return path.split("/", 1)[0]


def _first_two_parts(path: str) -> str:
    return "/".join(path.split("/", 2)[:2])


def _after(prefix: str, paths: Iterable[str]) -> List[str]:
    """Remainders of the ``paths`` that live under ``prefix/``."""
    start = prefix + "/"
    return [p[len(start):] for p in paths if p.startswith(start)]


def _is_indexed(path: str) -> bool:
    """True for ``<name>/<version>/<file>`` paths outside reserved folders."""
    parts = path.split("/")
    if len(parts) < 3:
        return False
    if parts[0].startswith("$") or parts[-1] == Constants.INDEX_FILE:
        return False
    return True


class RepositoryPublisher(abc.ABC):
    """Base class for change-record based repositories."""

    # Artifact primitives -------------------------------------------------

    @abc.abstractmethod
    def read_artifact(self, path: str) -> Optional[BinaryIO]:
        """Open ``path`` for reading, or return None if it does not exist."""

    @abc.abstractmethod
    def write_artifact(self, path: str, stream: BinaryIO, create_new: bool) -> None:
        """Write ``stream`` to ``path``.

        Raises:
            RepositoryConflict: ``create_new`` is set and ``path`` exists.
        """

    @abc.abstractmethod
    def remove_artifact(self, path: str) -> None:
        """Delete ``path``; a missing artifact is not an error."""

    @abc.abstractmethod
    def enumerate_artifacts(self, folder_filter: PathFilter, file_filter: PathFilter) -> List[str]:
        """List artifact paths (``/`` separated) accepted by the filters.

        ``folder_filter`` decides which folders are descended into.
        """

    # JSON records --------------------------------------------------------

    @staticmethod
    def change_record_path(index: int) -> str:
        """Sharded location of change record ``index``."""
        return "/".join(
            (
                Constants.FEED_FOLDER,
                f"{(index // 1000000) % 1000:03d}",
                f"{(index // 1000) % 1000:03d}",
                f"{index:09d}.json",
            )
        )

    def _get_file(self, path: str) -> Optional[Dict[str, Any]]:
        stream = self.read_artifact(path)
        if stream is None:
            return None
        with stream:
            text = stream.read().decode("utf-8")
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object in {path}")
        return data

    def _store_file(self, path: str, content: Dict[str, Any], create_new: bool) -> None:
        payload = json.dumps(content, sort_keys=True).encode("utf-8")
        self.write_artifact(path, io.BytesIO(payload), create_new)

    def get_change_record(self, index: int) -> Optional[ChangeRecord]:
        data = self._get_file(self.change_record_path(index))
        return None if data is None else ChangeRecord.from_dict(data)

    def store_change_record(self, index: int, record: ChangeRecord) -> None:
        """Persist a log entry; only index 0 may be overwritten."""
        self._store_file(self.change_record_path(index), record.to_dict(), create_new=index != 0)

    def get_transmit_record(self) -> Optional[TransmitRecord]:
        data = self._get_file(Constants.TRANSMIT_FILE)
        return None if data is None else TransmitRecord.from_dict(data)

    def store_transmit_record(self, record: TransmitRecord) -> None:
        self._store_file(Constants.TRANSMIT_FILE, record.to_dict(), create_new=False)

    def merge_from(self, start: int) -> Optional[ChangeRecord]:
        """Net effect of the log chain starting at ``start``."""
        return ChangeLog(self).merge_from(start)

    # Index maintenance ---------------------------------------------------

    def apply_changes(self, record: ChangeRecord, source: Optional["RepositoryPublisher"] = None) -> None:
        """Bring contents indices (and, with ``source``, files) in line with ``record``.

        Version indices are rebuilt first. A version whose contents become
        empty loses its index and is removed from the package index; a
        version that gains its first artifact is added to it.

        Args:
            record: Single or merged change record with full artifact paths.
            source: Repository to copy added artifacts from.

        Raises:
            FileNotFoundError: ``source`` lacks an artifact named in ``record.add``.
        """
        indexed_add = [p for p in record.add if _is_indexed(p)]
        indexed_remove = [p for p in record.remove if _is_indexed(p)]

        groups: Dict[str, List[str]] = {}
        for version_folder in sorted({_first_two_parts(p) for p in indexed_add + indexed_remove}):
            groups.setdefault(_first_part(version_folder), []).append(version_folder)

        for name, version_folders in groups.items():
            logger.info("Working with %s", name)
            add_versions = []
            remove_versions = []
            for version_folder in version_folders:
                logger.info("Working with %s", version_folder)
                added_all, removed_all = self._change_contents(
                    f"{version_folder}/{Constants.INDEX_FILE}",
                    _after(version_folder, indexed_add),
                    _after(version_folder, indexed_remove),
                )
                version = version_folder[len(name) + 1:]
                if added_all:
                    add_versions.append(version)
                elif removed_all:
                    remove_versions.append(version)

            self._change_contents(f"{name}/{Constants.INDEX_FILE}", add_versions, remove_versions)

        if source is not None:
            self._copy_files(record, source)

    def _change_contents(
        self,
        index_path: str,
        add_items: Iterable[str],
        remove_items: Iterable[str],
    ) -> Tuple[bool, bool]:
        """Update one contents record.

        Returns:
            tuple: (added_all, removed_all) where ``added_all`` means the
            record went from empty to non-empty and ``removed_all`` means it
            went from non-empty to empty (and was deleted).
        """
        data = self._get_file(index_path)
        original = ContentsRecord.from_dict(data).contents if data else set()
        contents = (original - set(remove_items)) | set(add_items)

        added_all = bool(contents) and not original
        removed_all = not contents and bool(original)

        if removed_all:
            self.remove_artifact(index_path)
        elif contents or data is not None:
            self._store_file(index_path, ContentsRecord(contents).to_dict(), create_new=False)

        if is_debug_enabled(logger):
            logger.debug(
                "Contents record updated",
                extra=extra_context(
                    event="index_update",
                    component="publisher",
                    action="change_contents",
                    target=index_path,
                    outcome="removed" if removed_all else ("added" if added_all else "changed"),
                    count=len(contents),
                ),
            )
        return added_all, removed_all

    def _copy_files(self, record: ChangeRecord, source: "RepositoryPublisher") -> None:
        for path in sorted(record.remove):
            self.remove_artifact(path)
        for path in sorted(record.add):
            stream = source.read_artifact(path)
            if stream is None:
                raise FileNotFoundError(f"Source repository has no artifact {path}")
            with stream:
                self.write_artifact(path, stream, create_new=False)

