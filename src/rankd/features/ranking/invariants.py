"""Invariants over the ``rank`` field of a partition.

A partition holds every entry of one media kind. Its ranks must be exactly
``1..N`` with no duplicates and no gaps.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from rankd.core.exceptions import InvariantViolationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rankd.core.types import MediaKind, RankedEntry


def rank_violations(ranks: Iterable[int]) -> list[str]:
    """Describe every way ``ranks`` differs from a contiguous ``1..N``."""
    ranks = list(ranks)
    problems: list[str] = []

    counts = Counter(ranks)
    duplicates = sorted(rank for rank, seen in counts.items() if seen > 1)
    if duplicates:
        problems.append(f"duplicate ranks {duplicates}")

    expected = set(range(1, len(ranks) + 1))
    present = set(ranks)
    missing = sorted(expected - present)
    if missing:
        problems.append(f"missing ranks {missing}")
    out_of_range = sorted(present - expected)
    if out_of_range:
        problems.append(f"ranks out of range {out_of_range}")

    return problems


def find_violations(entries: Sequence[RankedEntry]) -> list[str]:
    """Describe invariant breaks in a partition snapshot."""
    problems = []
    kinds = sorted({entry.media_kind.value for entry in entries})
    if len(kinds) > 1:
        problems.append(f"mixed media kinds {kinds}")
    problems.extend(rank_violations(entry.rank for entry in entries))
    return problems


def check_partition(entries: Sequence[RankedEntry], *, media_kind: MediaKind | None = None) -> None:
    """Raise ``InvariantViolationError`` unless ``entries`` is a valid partition."""
    problems = find_violations(entries)
    if problems:
        kind = media_kind.value if media_kind is not None else None
        raise InvariantViolationError("; ".join(problems), media_kind=kind)


def check_ordered(entries: Sequence[RankedEntry]) -> None:
    """Require a valid partition listed in ascending rank order."""
    check_partition(entries)
    for position, entry in enumerate(entries, start=1):
        if entry.rank != position:
            msg = f"partition not sorted by rank: '{entry.title}' has rank {entry.rank} at position {position}"
            raise InvariantViolationError(msg, media_kind=entry.media_kind.value)


def renumber(entries: Sequence[RankedEntry]) -> list[RankedEntry]:
    """Return the entries with ranks rewritten to ``1..N`` by current order.

    Ties on rank are broken by creation time, so the oldest entry keeps the
    better slot.
    """
    ordered = sorted(entries, key=lambda entry: (entry.rank, entry.created_at, entry.id))
    return [entry if entry.rank == position else entry.with_rank(position) for position, entry in enumerate(ordered, start=1)]
