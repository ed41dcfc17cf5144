"""Publishing workflow: commit local changes, pull from and push to peers.

Each repository keeps its own log. Index 0 is the head record (no changes,
``next`` of 1) and each committed record ``i`` points at ``i + 1``. Peers
exchange merged deltas; the ``$feed/transmit.json`` record remembers the
last peer index already transferred in each direction.
"""
from __future__ import annotations

import logging
from typing import Optional, Set, Tuple

from common.logging_utils import extra_context, is_debug_enabled, Timer
from constants import Constants

from .changelog import ChangeLog, merge_all
from .publisher import RepositoryPublisher
from .records import ChangeRecord, TransmitRecord

logger = logging.getLogger(__name__)


def _ensure_head(log: ChangeLog) -> None:
    if log.get(0) is None:
        log.append(0, ChangeRecord(next=1))


def _append(log: ChangeLog, add: Set[str], remove: Set[str]) -> Tuple[int, ChangeRecord]:
    """Append a record at the next free index."""
    _ensure_head(log)
    index = log.next_index()
    record = ChangeRecord.create(next=index + 1, add=add, remove=remove)
    log.append(index, record)
    logger.info("Stored change record %d (%d added, %d removed)", index, len(record.add), len(record.remove))
    return index, record


def _published_artifacts(publisher: RepositoryPublisher) -> Set[str]:
    return set(
        publisher.enumerate_artifacts(
            folder_filter=lambda path: path.split("/", 1)[0] != Constants.FEED_FOLDER,
            file_filter=lambda path: path.rsplit("/", 1)[-1] != Constants.INDEX_FILE,
        )
    )


def commit(publisher: RepositoryPublisher) -> Optional[int]:
    """Record the difference between the artifacts on disk and the log.

    Returns:
        int | None: Index of the new change record, or None when the log
        already describes the artifacts on disk.
    """
    log = ChangeLog(publisher)
    merged = log.merge_from(0)
    known = set(merged.add) if merged else set()
    current = _published_artifacts(publisher)

    add = current - known
    remove = known - current
    if not add and not remove:
        logger.info("Nothing to commit in %s", publisher)
        return None

    index, record = _append(log, add, remove)
    publisher.apply_changes(record)
    return index


def _transfer(source: RepositoryPublisher, target: RepositoryPublisher, start: int) -> Optional[int]:
    """Apply the source log from ``start`` onto ``target``.

    Returns:
        int | None: Last source index transferred, or None if there was none.
    """
    with Timer() as t:
        entries = list(ChangeLog(source).walk(start))
        if not entries:
            return None
        merged = merge_all(record for _, record in entries)
        last_index = entries[-1][0]

        if not merged.is_empty:
            _, record = _append(ChangeLog(target), set(merged.add), set(merged.remove))
            target.apply_changes(record, source)

    if is_debug_enabled(logger):
        logger.debug(
            "Transferred change records",
            extra=extra_context(
                event="function_exit",
                component="transmit",
                action="transfer",
                outcome="success",
                count=len(entries),
                target=str(target),
                duration_ms=t.duration_ms(),
            ),
        )
    return last_index


def pull(source: RepositoryPublisher, target: RepositoryPublisher, source_name: str) -> int:
    """Bring ``target`` up to date with ``source``.

    Returns:
        int: Last source index now reflected in ``target``; unchanged (or 0)
        when there was nothing new.
    """
    transmit = target.get_transmit_record() or TransmitRecord()
    previous = transmit.pull.get(source_name)
    start = previous + 1 if previous is not None else 1
    logger.info("Pulling from %s starting at record %d", source_name, start)

    last_index = _transfer(source, target, start)
    if last_index is None:
        return previous or 0

    transmit.pull[source_name] = last_index
    target.store_transmit_record(transmit)
    return last_index


def push(local: RepositoryPublisher, remote: RepositoryPublisher, remote_name: str) -> int:
    """Send the local changes not yet pushed to ``remote``.

    Progress is kept in the local transmit record's ``push`` map.
    """
    transmit = local.get_transmit_record() or TransmitRecord()
    previous = transmit.push.get(remote_name)
    start = previous + 1 if previous is not None else 1
    logger.info("Pushing to %s starting at record %d", remote_name, start)

    last_index = _transfer(local, remote, start)
    if last_index is None:
        return previous or 0

    transmit.push[remote_name] = last_index
    local.store_transmit_record(transmit)
    return last_index
