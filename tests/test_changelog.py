"""Tests for change-record merging and the log view."""

from repository.changelog import ChangeLog, merge, merge_all
from repository.records import ChangeRecord, TransmitRecord


class MemoryStore:
    """Change records kept in a dict."""

    def __init__(self, records=None):
        self.records = dict(records or {})

    def get_change_record(self, index):
        return self.records.get(index)

    def store_change_record(self, index, record):
        self.records[index] = record


A = ChangeRecord.create(next=2, add={"p/1/a", "p/1/b"}, remove={"q/1/x"})
B = ChangeRecord.create(next=3, add={"q/1/x", "p/1/c"}, remove={"p/1/a"})
C = ChangeRecord.create(next=4, add={"p/1/a"}, remove={"p/1/c", "q/1/x"})


class TestMerge:
    """Test the merge function."""

    def test_later_wins(self):
        """A later remove cancels an earlier add and vice versa."""
        merged = merge(A, B)

        assert merged.add == {"p/1/b", "p/1/c", "q/1/x"}
        assert merged.remove == {"p/1/a"}
        assert merged.next == 3

    def test_associative(self):
        """Grouping does not change the net effect."""
        left = merge(merge(A, B), C)
        right = merge(A, merge(B, C))

        assert left == right
        assert left.add == {"p/1/a", "p/1/b"}
        assert left.remove == {"p/1/c", "q/1/x"}
        assert left.next == 4

    def test_merge_all(self):
        """merge_all folds left and returns None for nothing."""
        assert merge_all([]) is None
        assert merge_all([A]) == A
        assert merge_all([A, B, C]) == merge(merge(A, B), C)


class TestChangeLog:
    """Test chain following over a record store."""

    def test_walk_follows_next(self):
        """The walk stops at the first missing record."""
        log = ChangeLog(MemoryStore({0: ChangeRecord(next=1), 1: ChangeRecord(next=2), 2: ChangeRecord(next=3)}))

        assert [index for index, _ in log.walk(0)] == [0, 1, 2]
        assert log.last_index() == 2
        assert log.next_index() == 3

    def test_terminal_record(self):
        """A record whose next is 0 ends the chain."""
        log = ChangeLog(MemoryStore({1: ChangeRecord.create(next=0, add={"p/1/a"}), 0: ChangeRecord(next=1)}))

        assert [index for index, _ in log.walk(1)] == [1]

    def test_loop_terminates(self):
        """A next pointing back into the chain stops the walk."""
        log = ChangeLog(MemoryStore({1: ChangeRecord(next=2), 2: ChangeRecord(next=1)}))

        assert [index for index, _ in log.walk(1)] == [1, 2]

    def test_merge_from(self):
        """merge_from folds the chain and is None for a missing start."""
        log = ChangeLog(MemoryStore({1: A, 2: B, 3: C}))

        assert log.merge_from(1) == merge_all([A, B, C])
        assert log.merge_from(2) == merge(B, C)
        assert log.merge_from(7) is None

    def test_empty_log(self):
        """An empty log starts at index 0."""
        log = ChangeLog(MemoryStore())

        assert log.last_index() is None
        assert log.next_index() == 0

    def test_append(self):
        """Appending stores through to the backing store."""
        store = MemoryStore()
        ChangeLog(store).append(0, ChangeRecord(next=1))

        assert store.records[0].next == 1


class TestRecords:
    """Test record serialization details."""

    def test_change_record_accepts_pascal_case(self):
        """Records written with capitalized keys are read too."""
        record = ChangeRecord.from_dict({"Next": 4, "Add": ["a/b/c"], "Remove": None})

        assert record.next == 4
        assert record.add == {"a/b/c"}
        assert record.remove == frozenset()

    def test_change_record_to_dict_is_sorted(self):
        """Serialized path lists are sorted."""
        data = ChangeRecord.create(next=2, add={"b/1/x", "a/1/x"}).to_dict()

        assert data == {"next": 2, "add": ["a/1/x", "b/1/x"], "remove": []}

    def test_transmit_record(self):
        """Transmit records read and write both maps."""
        record = TransmitRecord.from_dict({"push": {"mirror": "3"}, "pull": None})

        assert record.push == {"mirror": 3}
        assert record.pull == {}
        assert record.to_dict() == {"push": {"mirror": 3}, "pull": {}}
