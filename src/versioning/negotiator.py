"""Snapshot matching and best-candidate selection.

The selection policy is deliberately asymmetric: among candidates that
match a floating (snapshot) constraint the newest wins, while among plain
candidates the lowest version that still satisfies the constraint wins so
resolved versions drift as little as possible.
"""

from typing import Callable, Iterable, Optional, TypeVar

from .models import SemanticVersion

T = TypeVar("T")


def matches(candidate: SemanticVersion, constraint: SemanticVersion) -> bool:
    """Return True if ``candidate`` satisfies ``constraint`` exactly.

    A snapshot constraint matches any version with the same numeric parts
    whose label starts with the constraint's label (case-insensitive).
    Otherwise the versions must be equal, snapshot flag included.
    """
    if constraint.is_snapshot:
        return (
            candidate.numbers == constraint.numbers
            and candidate.label.lower().startswith(constraint.label.lower())
        )
    return candidate == constraint


def prefer_candidate(
    current: Optional[SemanticVersion],
    candidate: Optional[SemanticVersion],
    ideal: SemanticVersion,
) -> bool:
    """Decide whether ``candidate`` should replace ``current`` as the pick."""
    if candidate is None:
        return False
    if not matches(candidate, ideal) and candidate < ideal:
        # Never go below the requested version unless it is a snapshot match.
        return False
    if current is None:
        return True
    if matches(current, ideal) and matches(candidate, ideal):
        return current < candidate
    return current > candidate


def select_best(
    candidates: Iterable[T],
    ideal: SemanticVersion,
    key: Optional[Callable[[T], SemanticVersion]] = None,
) -> Optional[T]:
    """Scan ``candidates`` and return the one ``prefer_candidate`` settles on."""
    get_version = key or (lambda item: item)
    best: Optional[T] = None
    best_version: Optional[SemanticVersion] = None
    for item in candidates:
        version = get_version(item)
        if prefer_candidate(best_version, version, ideal):
            best, best_version = item, version
    return best
