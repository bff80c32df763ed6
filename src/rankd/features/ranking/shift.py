"""Rank shifting for inserts and deletes.

Both operations are pure: they take a partition snapshot and return a new
one, leaving the input untouched. Persisting the result together with the
insert or delete that caused it is the repository's job.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rankd.core.exceptions import InvariantViolationError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rankd.core.types import RankedEntry


def _kind_label(partition: Sequence[RankedEntry]) -> str | None:
    return partition[0].media_kind.value if partition else None


def open_gap(partition: Sequence[RankedEntry], at_rank: int) -> list[RankedEntry]:
    """Free slot ``at_rank`` by moving every entry at or below it down by one.

    Args:
        partition: Entries of one media kind with ranks ``1..N``.
        at_rank: Slot to free, ``1 <= at_rank <= N + 1``.

    Returns:
        A new snapshot in which no entry holds ``at_rank``.

    """
    size = len(partition)
    if not 1 <= at_rank <= size + 1:
        msg = f"cannot open rank {at_rank} in a partition of {size} (valid: 1..{size + 1})"
        raise InvariantViolationError(msg, media_kind=_kind_label(partition))
    return [entry.with_rank(entry.rank + 1) if entry.rank >= at_rank else entry for entry in partition]


def close_gap(partition: Sequence[RankedEntry], after_deleting_rank: int) -> list[RankedEntry]:
    """Move every entry below a removed slot up by one.

    Args:
        partition: Remaining entries, the entry at ``after_deleting_rank``
            already removed.
        after_deleting_rank: Rank the removed entry held.

    Returns:
        A new snapshot with ranks ``1..N-1``.

    """
    if after_deleting_rank < 1:
        msg = f"cannot close rank {after_deleting_rank}"
        raise InvariantViolationError(msg, media_kind=_kind_label(partition))
    occupant = next((entry for entry in partition if entry.rank == after_deleting_rank), None)
    if occupant is not None:
        msg = f"rank {after_deleting_rank} is still held by '{occupant.title}'; remove it before closing the gap"
        raise InvariantViolationError(msg, media_kind=occupant.media_kind.value)
    return [entry.with_rank(entry.rank - 1) if entry.rank > after_deleting_rank else entry for entry in partition]


def changed_entries(before: Sequence[RankedEntry], after: Sequence[RankedEntry]) -> list[RankedEntry]:
    """Entries of ``after`` whose rank differs from their ``before`` version."""
    previous = {entry.id: entry.rank for entry in before}
    return [entry for entry in after if previous.get(entry.id) != entry.rank]
