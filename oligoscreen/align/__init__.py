"""Pairwise alignment."""

from oligoscreen.align.pairwise import (
    PairwiseAligner,
    align,
    collect_matches,
    collect_mismatch_counts,
)

__all__ = [
    "PairwiseAligner",
    "align",
    "collect_matches",
    "collect_mismatch_counts",
]
