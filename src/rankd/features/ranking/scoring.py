"""Scores derived from tier and rank.

Scores are never stored. Each tier owns a band of the 0–10 scale and an
entry's place inside the band follows its rank among same-tier, same-kind
entries:

- good:   [7.0, 10.0]
- medium: [4.0, 7.0)
- bad:    [0.0, 4.0)

The bands do not overlap, so every good entry outscores every medium entry
regardless of rank.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rankd.core.types import Tier

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from rankd.core.types import RankedEntry


@dataclass(frozen=True, slots=True)
class ScoreBand:
    low: float
    high: float
    include_high: bool

    @property
    def ceiling(self) -> float:
        """Largest score the band allows."""
        return self.high if self.include_high else math.nextafter(self.high, self.low)

    def clamp(self, value: float) -> float:
        return min(max(value, self.low), self.ceiling)


TIER_BANDS: dict[Tier, ScoreBand] = {
    Tier.GOOD: ScoreBand(7.0, 10.0, include_high=True),
    Tier.MEDIUM: ScoreBand(4.0, 7.0, include_high=False),
    Tier.BAD: ScoreBand(0.0, 4.0, include_high=False),
}


def percentile(position: int, count: int) -> float:
    """1.0 for the best of ``count``, 0.0 for the worst; a lone entry gets 1.0."""
    return 1.0 - (position - 1) / max(count - 1, 1)


def band_score(tier: Tier, position: int, count: int) -> float:
    band = TIER_BANDS[tier]
    raw = band.low + percentile(position, count) * (band.high - band.low)
    return band.clamp(raw)


def _tier_group(entry: RankedEntry, entries: Iterable[RankedEntry]) -> list[RankedEntry]:
    return sorted(
        (other for other in entries if other.tier == entry.tier and other.media_kind == entry.media_kind),
        key=lambda other: other.rank,
    )


def score(entry: RankedEntry, entries: Iterable[RankedEntry]) -> float:
    """Score ``entry`` against the other entries of its partition.

    ``entries`` may hold the whole store; only entries sharing the tier and
    media kind of ``entry`` are considered. ``entry`` itself is counted even
    when it is missing from ``entries``.
    """
    group = _tier_group(entry, entries)
    if all(other.id != entry.id for other in group):
        group = sorted([*group, entry], key=lambda other: other.rank)
    position = next(index for index, other in enumerate(group, start=1) if other.id == entry.id)
    return band_score(entry.tier, position, len(group))


def score_all(entries: Sequence[RankedEntry]) -> dict[str, float]:
    """Score every entry in one pass, keyed by entry id."""
    groups: dict[tuple[Tier, str], list[RankedEntry]] = defaultdict(list)
    for entry in entries:
        groups[(entry.tier, entry.media_kind.value)].append(entry)

    scores: dict[str, float] = {}
    for (tier, _kind), group in groups.items():
        group.sort(key=lambda entry: entry.rank)
        for position, entry in enumerate(group, start=1):
            scores[entry.id] = band_score(tier, position, len(group))
    return scores


def display_score(value: float, tier: Tier) -> float:
    """Truncate to one decimal, keeping half-open bands below their edge (a top medium shows 6.9)."""
    shown = math.floor(round(value * 10, 6)) / 10
    band = TIER_BANDS[tier]
    if not band.include_high and shown >= band.high:
        shown = round(band.high - 0.1, 1)
    return shown


def sort_key(entry: RankedEntry, scores: dict[str, float]) -> tuple[float, int]:
    """Best first: higher score, then better rank."""
    return (-scores[entry.id], entry.rank)
