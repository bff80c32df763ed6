"""Core data types for rankd."""

import uuid
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MediaKind(str, Enum):
    """Partitions the rank space: movies and series are ranked separately."""

    MOVIE = "movie"
    SERIES = "series"

    @property
    def label(self) -> str:
        return "Movies" if self is MediaKind.MOVIE else "TV Shows"


class Tier(str, Enum):
    GOOD = "good"
    MEDIUM = "medium"
    BAD = "bad"

    @property
    def strength(self) -> int:
        """Higher is better: good > medium > bad."""
        return _TIER_STRENGTH[self]


_TIER_STRENGTH = {Tier.GOOD: 3, Tier.MEDIUM: 2, Tier.BAD: 1}


class Candidate(BaseModel):
    """A title waiting to be placed in its partition."""

    model_config = ConfigDict(frozen=True)

    external_id: str = Field(min_length=1, description="Catalog identifier")
    title: str = Field(min_length=1)
    media_kind: MediaKind
    review: str | None = None


class RankedEntry(BaseModel):
    """One ranked movie or series.

    Entries are immutable; rank changes produce copies through ``model_copy``
    so that partition snapshots never alias each other.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    external_id: str = Field(min_length=1)
    title: str
    media_kind: MediaKind
    tier: Tier
    rank: int = Field(ge=1, description="1 is best")
    comparison_count: int = Field(default=0, ge=0)
    review: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("created_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @classmethod
    def from_candidate(
        cls,
        candidate: Candidate,
        *,
        tier: Tier,
        rank: int,
        comparison_count: int,
    ) -> "RankedEntry":
        return cls(
            external_id=candidate.external_id,
            title=candidate.title,
            media_kind=candidate.media_kind,
            tier=tier,
            rank=rank,
            comparison_count=comparison_count,
            review=candidate.review,
        )

    def as_candidate(self) -> Candidate:
        return Candidate(
            external_id=self.external_id,
            title=self.title,
            media_kind=self.media_kind,
            review=self.review,
        )

    def with_rank(self, rank: int) -> "RankedEntry":
        return self.model_copy(update={"rank": rank})
