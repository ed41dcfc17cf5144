"""Append-only change-record log and its merge (compaction) function.

``merge`` folds a later record into an earlier one so that a chain of
records collapses into a single net effect. It is associative, so any
grouping of a chain gives the same result, and "later wins" when the same
path is both added and removed.
"""
from __future__ import annotations

import logging
from typing import Iterable, Iterator, Optional, Protocol, Tuple

from .records import ChangeRecord

logger = logging.getLogger(__name__)


def merge(earlier: ChangeRecord, later: ChangeRecord) -> ChangeRecord:
    """Net effect of applying ``earlier`` then ``later``."""
    return ChangeRecord(
        next=later.next,
        # A path removed later cannot survive as an earlier add, and vice versa.
        add=(earlier.add - later.remove) | later.add,
        remove=(earlier.remove | later.remove) - later.add,
    )


def merge_all(records: Iterable[ChangeRecord]) -> Optional[ChangeRecord]:
    """Left fold of ``merge``; None for no records."""
    result: Optional[ChangeRecord] = None
    for record in records:
        result = record if result is None else merge(result, record)
    return result


class ChangeRecordStore(Protocol):
    """Point access to stored change records."""

    def get_change_record(self, index: int) -> Optional[ChangeRecord]:
        """Record at ``index`` or None."""

    def store_change_record(self, index: int, record: ChangeRecord) -> None:
        """Persist ``record`` at ``index``."""


class ChangeLog:
    """Chain-following view over a store of change records."""

    def __init__(self, store: ChangeRecordStore):
        self._store = store

    def get(self, index: int) -> Optional[ChangeRecord]:
        return self._store.get_change_record(index)

    def append(self, index: int, record: ChangeRecord) -> None:
        self._store.store_change_record(index, record)

    def walk(self, start: int) -> Iterator[Tuple[int, ChangeRecord]]:
        """Yield (index, record) following ``next`` from ``start``.

        Stops at the first missing record, at a terminal record (``next``
        of 0) and at a ``next`` that points back into the visited chain.
        """
        seen = set()
        index = start
        while index not in seen:
            record = self.get(index)
            if record is None:
                return
            seen.add(index)
            yield index, record
            if record.next == 0:
                return
            index = record.next
        logger.warning("Change record chain loops back to index %d", index)

    def merge_from(self, start: int) -> Optional[ChangeRecord]:
        """Merged net effect of the chain starting at ``start``."""
        return merge_all(record for _, record in self.walk(start))

    def last_index(self) -> Optional[int]:
        """Index of the last record reachable from the head, or None if empty."""
        last = None
        for index, _ in self.walk(0):
            last = index
        return last

    def next_index(self) -> int:
        """Index the next appended record must use to stay on the chain."""
        last = self.last_index()
        if last is None:
            return 0
        record = self.get(last)
        return record.next or last + 1
