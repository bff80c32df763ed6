"""Ranking engine - place titles into one ordered list per media kind.

A new title is placed by binary search over its partition, one pairwise
judgment at a time. Ranks stay contiguous through every insert, delete,
re-rank and move; scores are derived from tier and rank on demand.
"""

from rankd.features.ranking.scoring import display_score, score, score_all
from rankd.features.ranking.search import ComparisonSearch, Judgment, SearchState
from rankd.features.ranking.service import RankingService, ScoredEntry
from rankd.features.ranking.shift import close_gap, open_gap

__all__ = [
    "ComparisonSearch",
    "Judgment",
    "RankingService",
    "ScoredEntry",
    "SearchState",
    "close_gap",
    "display_score",
    "open_gap",
    "score",
    "score_all",
]
