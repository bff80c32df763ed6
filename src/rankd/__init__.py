"""rankd - rank movies and series through pairwise comparisons."""

__version__ = "0.1.0"
