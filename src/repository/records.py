"""JSON records persisted in a published repository."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Optional, Set


def _field(data: Dict[str, Any], name: str) -> Any:
    """Read ``name`` from ``data`` accepting lower or Pascal case keys."""
    if name in data:
        return data[name]
    return data.get(name[:1].upper() + name[1:])


def _paths(value: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(value or ())


@dataclass(frozen=True)
class ChangeRecord:
    """One log entry: artifact paths added and removed, plus the next index.

    ``next`` is the index where the following record lives; 0 means the
    chain ends here.
    """
    next: int = 0
    add: FrozenSet[str] = field(default_factory=frozenset)
    remove: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def create(cls, next: int = 0, add: Iterable[str] = (), remove: Iterable[str] = ()) -> "ChangeRecord":  # pylint: disable=redefined-builtin
        """Build a record from any iterables of paths."""
        return cls(next=next, add=_paths(add), remove=_paths(remove))

    @property
    def is_empty(self) -> bool:
        """True when the record neither adds nor removes anything."""
        return not self.add and not self.remove

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChangeRecord":
        return cls(
            next=int(_field(data, "next") or 0),
            add=_paths(_field(data, "add")),
            remove=_paths(_field(data, "remove")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"next": self.next, "add": sorted(self.add), "remove": sorted(self.remove)}


@dataclass
class ContentsRecord:
    """Derived index of what a package (or package version) folder holds."""
    contents: Set[str] = field(default_factory=set)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContentsRecord":
        return cls(contents=set(_field(data, "contents") or ()))

    def to_dict(self) -> Dict[str, Any]:
        return {"contents": sorted(self.contents)}


@dataclass
class TransmitRecord:
    """Last change-record index pushed to / pulled from each named peer."""
    push: Dict[str, int] = field(default_factory=dict)
    pull: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransmitRecord":
        return cls(
            push={k: int(v) for k, v in (_field(data, "push") or {}).items()},
            pull={k: int(v) for k, v in (_field(data, "pull") or {}).items()},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"push": dict(self.push), "pull": dict(self.pull)}
