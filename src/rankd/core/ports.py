import builtins
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from rankd.core.types import MediaKind, RankedEntry


@runtime_checkable
class RankingRepository(Protocol):
    """Persists ranked entries and applies partition changes atomically."""

    def initialize(self) -> None: ...

    # Reads
    def list_partition(self, media_kind: MediaKind) -> builtins.list[RankedEntry]: ...
    def list_all(self) -> builtins.list[RankedEntry]: ...
    def get(self, entry_id: str) -> RankedEntry | None: ...
    def find_by_external_id(self, external_id: str, media_kind: MediaKind) -> RankedEntry | None: ...
    def count(self, media_kind: MediaKind | None = None) -> int: ...

    # Writes
    def apply(
        self,
        media_kind: MediaKind,
        *,
        inserts: Sequence[RankedEntry] = (),
        updates: Sequence[RankedEntry] = (),
        deletes: Sequence[str] = (),
    ) -> None:
        """Apply inserts, rank/field updates and deletes as one transaction.

        Implementations must verify the partition invariants before
        committing and roll everything back on failure.
        """
        ...
