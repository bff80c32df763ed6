"""Binary-search comparison flow for placing a candidate in its partition.

The candidate is compared against the middle of the remaining search range
until the range is empty. Each judgment halves the range, so a partition of
``N`` entries needs at most ``ceil(log2(N + 1))`` comparisons. Judgments are
assumed transitive; contradictory answers are neither detected nor corrected.

The search never touches the store. Committing the result is done by
``RankingService.commit``.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from rankd.core.exceptions import InvariantViolationError, StaleComparisonStateError
from rankd.features.ranking.invariants import check_ordered

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rankd.core.types import Candidate, MediaKind, RankedEntry, Tier

logger = logging.getLogger(__name__)


class Judgment(str, Enum):
    """Outcome of one comparison, from the candidate's point of view."""

    BETTER = "better"
    WORSE = "worse"


class SearchState(str, Enum):
    COMPARING = "comparing"
    TERMINAL = "terminal"
    CANCELLED = "cancelled"
    COMMITTED = "committed"


@dataclass(frozen=True, slots=True)
class SearchSnapshot:
    """State saved before a judgment, restored by ``undo``."""

    lower: int
    upper: int
    comparison_index: int
    comparisons_made: int


def max_comparisons(size: int) -> int:
    """Worst-case comparisons for a partition of ``size``: ``ceil(log2(size + 1))``."""
    return max(size, 0).bit_length()


def estimated_comparison_count(size: int) -> int:
    """``floor(log2(max(size, 1))) + 1``, recorded on entries placed against ``size`` others."""
    return max(size, 1).bit_length()


class ComparisonSearch:
    """Single-use state machine that finds the rank of one candidate.

    Args:
        candidate: The title being placed.
        existing: Same-kind entries in ascending rank order, ranks ``1..N``.
        tier: Tier chosen for the candidate before comparing. It is stored on
            the entry but plays no part in the search.
        reranking: The entry being re-ranked, when the candidate is an
            already ranked title. It must not appear in ``existing``.

    """

    def __init__(
        self,
        candidate: Candidate,
        existing: Sequence[RankedEntry],
        *,
        tier: Tier,
        reranking: RankedEntry | None = None,
    ) -> None:
        partition = tuple(existing)
        for entry in partition:
            if entry.media_kind != candidate.media_kind:
                msg = f"'{entry.title}' is not a {candidate.media_kind.value} entry"
                raise InvariantViolationError(msg, media_kind=candidate.media_kind.value)
        check_ordered(partition)
        if reranking is not None and any(entry.id == reranking.id for entry in partition):
            msg = f"'{reranking.title}' cannot be compared against itself"
            raise InvariantViolationError(msg, media_kind=candidate.media_kind.value)

        self.candidate = candidate
        self.tier = tier
        self.reranking = reranking
        self._existing = partition
        self._lower = 0
        self._upper = len(partition)
        self._comparisons_made = 0
        self._current_index: int | None = None
        self._last_snapshot: SearchSnapshot | None = None
        self._final_rank: int | None = None
        self._state = SearchState.COMPARING
        self._lock = threading.Lock()
        self._advance()

        logger.debug(
            "Started search for '%s' against %d %s entries",
            candidate.title,
            len(partition),
            candidate.media_kind.value,
        )

    # --- read-only view -------------------------------------------------

    @property
    def media_kind(self) -> MediaKind:
        return self.candidate.media_kind

    @property
    def existing(self) -> tuple[RankedEntry, ...]:
        return self._existing

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state is SearchState.TERMINAL

    @property
    def final_rank(self) -> int | None:
        return self._final_rank

    @property
    def comparisons_made(self) -> int:
        return self._comparisons_made

    @property
    def search_range(self) -> range:
        return range(self._lower, self._upper)

    @property
    def remaining(self) -> int:
        return self._upper - self._lower

    @property
    def max_comparisons(self) -> int:
        return max_comparisons(len(self._existing))

    @property
    def comparison_count_estimate(self) -> int:
        return estimated_comparison_count(len(self._existing))

    @property
    def current_index(self) -> int | None:
        return self._current_index

    @property
    def current(self) -> RankedEntry | None:
        """The entry the candidate is being compared against, if any."""
        if self._current_index is None:
            return None
        return self._existing[self._current_index]

    @property
    def can_undo(self) -> bool:
        return self._state is SearchState.COMPARING and self._last_snapshot is not None

    @property
    def basis(self) -> tuple[tuple[str, int], ...]:
        """``(id, rank)`` pairs of the partition the search was built on."""
        return tuple((entry.id, entry.rank) for entry in self._existing)

    # --- transitions ----------------------------------------------------

    def choose(self, judgment: Judgment | str, *, shown_id: str | None = None) -> int | None:
        """Apply one judgment and return the final rank once the search ends.

        Args:
            judgment: Whether the candidate is better or worse than
                ``current``.
            shown_id: Id of the entry the decision was made against. A
                decision made against anything but ``current`` is a double
                submission and is rejected.

        """
        judgment = Judgment(judgment)
        if not self._lock.acquire(blocking=False):
            msg = "a previous decision is still being applied"
            raise StaleComparisonStateError(msg)
        try:
            self._require_comparing()
            index = self._current_index
            assert index is not None
            shown = self._existing[index]
            if shown_id is not None and shown_id != shown.id:
                msg = f"decision was made against '{shown_id}' but '{shown.title}' is being compared"
                raise StaleComparisonStateError(msg)

            self._last_snapshot = SearchSnapshot(
                lower=self._lower,
                upper=self._upper,
                comparison_index=index,
                comparisons_made=self._comparisons_made,
            )
            if judgment is Judgment.BETTER:
                self._upper = index
            else:
                self._lower = index + 1
            self._comparisons_made += 1

            logger.debug(
                "'%s' %s than #%d '%s'; range now [%d, %d)",
                self.candidate.title,
                judgment.value,
                shown.rank,
                shown.title,
                self._lower,
                self._upper,
            )
            self._advance()
            return self._final_rank
        finally:
            self._lock.release()

    def candidate_is_better(self, *, shown_id: str | None = None) -> int | None:
        return self.choose(Judgment.BETTER, shown_id=shown_id)

    def candidate_is_worse(self, *, shown_id: str | None = None) -> int | None:
        return self.choose(Judgment.WORSE, shown_id=shown_id)

    def undo(self) -> bool:
        """Revert the last judgment. Only one level is kept; returns ``False`` if nothing was undone."""
        with self._lock:
            if not self.can_undo:
                return False
            snapshot = self._last_snapshot
            assert snapshot is not None
            self._lower = snapshot.lower
            self._upper = snapshot.upper
            self._comparisons_made = snapshot.comparisons_made
            self._current_index = snapshot.comparison_index
            self._last_snapshot = None
            logger.debug("Undid last judgment for '%s'", self.candidate.title)
            return True

    def cancel(self) -> None:
        """Abandon the search. Nothing has been written, so nothing is rolled back."""
        with self._lock:
            if self._state is SearchState.COMMITTED:
                msg = f"search for '{self.candidate.title}' was already committed"
                raise StaleComparisonStateError(msg)
            self._state = SearchState.CANCELLED
            self._current_index = None
            self._last_snapshot = None
            logger.debug("Cancelled search for '%s'", self.candidate.title)

    def mark_committed(self) -> None:
        """Record that the result was persisted; the search is spent afterwards."""
        with self._lock:
            if self._state is not SearchState.TERMINAL:
                msg = f"search for '{self.candidate.title}' is {self._state.value}, not terminal"
                raise StaleComparisonStateError(msg)
            self._state = SearchState.COMMITTED

    # --- internals ------------------------------------------------------

    def _advance(self) -> None:
        if self._upper - self._lower <= 0:
            self._current_index = None
            self._final_rank = self._lower + 1
            self._state = SearchState.TERMINAL
            return
        self._current_index = self._lower + (self._upper - self._lower) // 2

    def _require_comparing(self) -> None:
        if self._state is SearchState.COMPARING:
            return
        if self._state is SearchState.TERMINAL:
            msg = f"search already finished at rank {self._final_rank}; start a new one"
        else:
            msg = f"search for '{self.candidate.title}' is {self._state.value}; start a new one"
        raise StaleComparisonStateError(msg)
