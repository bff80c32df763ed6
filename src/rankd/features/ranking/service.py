"""Ranking operations over a repository.

The service is the only writer of ranks. Every mutation is computed on a
partition snapshot with the pure shift functions, validated, and then handed
to the repository as a single atomic change.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rankd.core.exceptions import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvariantViolationError,
    StaleComparisonStateError,
)
from rankd.core.types import RankedEntry
from rankd.features.ranking.invariants import check_ordered, find_violations, renumber
from rankd.features.ranking.scoring import score_all
from rankd.features.ranking.search import ComparisonSearch, SearchState, estimated_comparison_count
from rankd.features.ranking.shift import changed_entries, close_gap, open_gap

if TYPE_CHECKING:
    from rankd.core.ports import RankingRepository
    from rankd.core.types import Candidate, MediaKind, Tier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScoredEntry:
    entry: RankedEntry
    score: float


class RankingService:
    """Insert, delete, re-rank and move entries while keeping ranks contiguous."""

    def __init__(self, repository: RankingRepository) -> None:
        self.repository = repository

    # --- comparison flows -----------------------------------------------

    def begin(self, candidate: Candidate, tier: Tier) -> ComparisonSearch:
        """Start placing a new title. Raises ``DuplicateEntryError`` if it is already ranked."""
        self._ensure_not_ranked(candidate.external_id, candidate.media_kind)
        existing = self.repository.list_partition(candidate.media_kind)
        return ComparisonSearch(candidate, existing, tier=tier)

    def begin_rerank(self, entry_id: str, tier: Tier | None = None) -> ComparisonSearch:
        """Start placing an already ranked entry again.

        The entry is compared against its partition with its own slot closed.
        It stays where it is until the search is committed.
        """
        entry = self._require(entry_id)
        partition = self.repository.list_partition(entry.media_kind)
        others = close_gap([other for other in partition if other.id != entry.id], entry.rank)
        return ComparisonSearch(
            entry.as_candidate(),
            others,
            tier=tier or entry.tier,
            reranking=entry,
        )

    def commit(self, search: ComparisonSearch) -> RankedEntry:
        """Persist the result of a finished search and return the placed entry.

        The partition is re-read first; if it changed since the search
        started, nothing is written.
        """
        if search.state is not SearchState.TERMINAL or search.final_rank is None:
            msg = f"cannot commit a search that is {search.state.value}"
            raise StaleComparisonStateError(msg)

        media_kind = search.media_kind
        rank = search.final_rank
        partition = self.repository.list_partition(media_kind)

        if search.reranking is None:
            self._ensure_not_ranked(search.candidate.external_id, media_kind)
            self._ensure_basis(search, partition)
            shifted = open_gap(partition, rank)
            placed = RankedEntry.from_candidate(
                search.candidate,
                tier=search.tier,
                rank=rank,
                comparison_count=search.comparison_count_estimate,
            )
            self.repository.apply(
                media_kind,
                inserts=[placed],
                updates=changed_entries(partition, shifted),
            )
            search.mark_committed()
            logger.info("Ranked '%s' #%d in %s (%s)", placed.title, rank, media_kind.value, placed.tier.value)
            return placed

        entry = search.reranking
        current = next((other for other in partition if other.id == entry.id), None)
        if current is None:
            raise EntryNotFoundError(entry.id)
        others = close_gap([other for other in partition if other.id != entry.id], current.rank)
        self._ensure_basis(search, others)
        shifted = open_gap(others, rank)
        placed = current.model_copy(
            update={
                "rank": rank,
                "tier": search.tier,
                "comparison_count": current.comparison_count + search.comparison_count_estimate,
            }
        )
        self.repository.apply(
            media_kind,
            updates=[*changed_entries(partition, shifted), placed],
        )
        search.mark_committed()
        logger.info("Re-ranked '%s' #%d -> #%d in %s", placed.title, current.rank, rank, media_kind.value)
        return placed

    # --- direct edits ---------------------------------------------------

    def delete(self, entry_id: str) -> RankedEntry:
        """Remove an entry and close its gap in one transaction."""
        entry = self._require(entry_id)
        partition = self.repository.list_partition(entry.media_kind)
        remaining = [other for other in partition if other.id != entry.id]
        shifted = close_gap(remaining, entry.rank)
        self.repository.apply(
            entry.media_kind,
            updates=changed_entries(remaining, shifted),
            deletes=[entry.id],
        )
        logger.info("Removed '%s' (#%d) from %s", entry.title, entry.rank, entry.media_kind.value)
        return entry

    def move(self, entry_id: str, new_rank: int) -> RankedEntry:
        """Manually move an entry to ``new_rank`` (``1..N``), shifting the entries in between."""
        entry = self._require(entry_id)
        partition = self.repository.list_partition(entry.media_kind)
        if not 1 <= new_rank <= len(partition):
            msg = f"cannot move '{entry.title}' to rank {new_rank} (valid: 1..{len(partition)})"
            raise InvariantViolationError(msg, media_kind=entry.media_kind.value)
        if new_rank == entry.rank:
            return entry

        others = close_gap([other for other in partition if other.id != entry.id], entry.rank)
        shifted = open_gap(others, new_rank)
        moved = entry.with_rank(new_rank)
        self.repository.apply(
            entry.media_kind,
            updates=[*changed_entries(partition, shifted), moved],
        )
        logger.info("Moved '%s' #%d -> #%d in %s", entry.title, entry.rank, new_rank, entry.media_kind.value)
        return moved

    # --- queries --------------------------------------------------------

    def ranked(self, media_kind: MediaKind) -> list[ScoredEntry]:
        """The partition in rank order, each entry with its score."""
        partition = self.repository.list_partition(media_kind)
        scores = score_all(partition)
        return [ScoredEntry(entry, scores[entry.id]) for entry in partition]

    def top(self, media_kind: MediaKind, limit: int = 10) -> list[ScoredEntry]:
        return self.ranked(media_kind)[:limit]

    def least_compared(self, media_kind: MediaKind) -> RankedEntry | None:
        """The entry placed with the fewest comparisons, the best candidate for a re-rank."""
        partition = self.repository.list_partition(media_kind)
        if not partition:
            return None
        return min(partition, key=lambda entry: (entry.comparison_count, entry.rank))

    def verify(self, media_kind: MediaKind) -> list[str]:
        """Describe invariant breaks found in the stored partition."""
        return find_violations(self.repository.list_partition(media_kind))

    def repair(self, media_kind: MediaKind) -> int:
        """Renumber a damaged partition by its current order. Returns the number of entries moved."""
        partition = self.repository.list_partition(media_kind)
        fixed = renumber(partition)
        check_ordered(fixed)
        updates = changed_entries(partition, fixed)
        if updates:
            self.repository.apply(media_kind, updates=updates)
            logger.info("Renumbered %d %s entries", len(updates), media_kind.value)
        return len(updates)

    # --- helpers --------------------------------------------------------

    def _require(self, entry_id: str) -> RankedEntry:
        entry = self.repository.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def _ensure_not_ranked(self, external_id: str, media_kind: MediaKind) -> None:
        if self.repository.find_by_external_id(external_id, media_kind) is not None:
            raise DuplicateEntryError(external_id, media_kind.value)

    def _ensure_basis(self, search: ComparisonSearch, partition: list[RankedEntry]) -> None:
        current = tuple((entry.id, entry.rank) for entry in partition)
        if current != search.basis:
            msg = f"{search.media_kind.value} rankings changed while '{search.candidate.title}' was being compared"
            raise StaleComparisonStateError(msg)
