"""
Pairwise local alignment of an oligo window against a reference sequence.

Smith-Waterman scoring with Gotoh affine gaps. The query (template window)
runs down the rows and the target (reference) across the columns; each query
row is computed with numpy over the whole target row, so the Python loop is
only as long as the oligo.

An alignment is accepted only if it covers the full query length with no
gaps and at most ``max_mismatches`` mismatches. The best-scoring local
alignment often drops mismatching bases at the query ends; those clipped ends
are extended along the same diagonal and counted as mismatches. An extension
that would run off either end of the target is a truncated hit and rejected.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Iterable, List, Mapping, Optional, Tuple

import numpy as np

from oligoscreen.models.data_classes import AlignmentParams, PairwiseMatch

logger = logging.getLogger(__name__)

NEG_INF = -(1 << 40)


class Trace(IntEnum):
    """Source of the H value stored in the trace matrix."""
    DIAG = 0
    E = 1      # Horizontal gap (consumes target)
    F = 2      # Vertical gap (consumes query)
    STOP = 3   # Local alignment start


def _as_codes(sequence: str) -> np.ndarray:
    return np.frombuffer(sequence.upper().encode("ascii"), dtype=np.uint8)


class PairwiseAligner:
    """
    Reusable local aligner.

    Holds the trace matrix and the column ramp between calls so repeated
    alignments of similar-sized inputs allocate nothing new. Buffers grow on
    demand when a longer query or target arrives. Not thread-safe; use one
    aligner per worker.
    """

    def __init__(
        self,
        params: Optional[AlignmentParams] = None,
        max_query_len: int = 32,
        max_target_len: int = 1024,
    ):
        self.params = params or AlignmentParams()
        self._trace = np.zeros((0, 0), dtype=np.uint8)
        self._columns = np.zeros(0, dtype=np.int64)
        self._reserve(max_query_len, max_target_len)

    def _reserve(self, query_len: int, target_len: int) -> None:
        rows, cols = self._trace.shape
        if query_len + 1 <= rows and target_len + 1 <= cols:
            return
        rows = max(rows, query_len + 1)
        cols = max(cols, target_len + 1)
        logger.debug(f"Growing alignment buffers to {rows}x{cols}")
        self._trace = np.zeros((rows, cols), dtype=np.uint8)
        self._columns = np.arange(cols, dtype=np.int64)

    def align(self, query: str, target: str) -> Optional[PairwiseMatch]:
        """
        Align ``query`` inside ``target``.

        Returns:
            The accepted match, or None when the best local alignment is
            gapped, truncated, or has too many mismatches.
        """
        m, n = len(query), len(target)
        if m == 0 or m > n:
            return None

        self._reserve(m, n)
        best_pos = self._fill(_as_codes(query), _as_codes(target))
        if best_pos is None:
            return None

        # Diagonal-only traceback; any gap rejects the hit
        i, j = best_pos
        trace = self._trace
        while i > 0 and j > 0:
            source = int(trace[i, j]) & 3
            if source == Trace.STOP:
                break
            if source != Trace.DIAG:
                return None
            i -= 1
            j -= 1

        # Extend clipped query ends along the diagonal
        start = j - i
        if start < 0 or start + m > n:
            return None

        subsequence = target[start:start + m].upper()
        mismatches = sum(1 for a, b in zip(query.upper(), subsequence) if a != b)
        if mismatches > self.params.max_mismatches:
            return None

        return PairwiseMatch(
            subsequence=subsequence,
            mismatches=mismatches,
            target_start=start,
        )

    def _fill(self, q: np.ndarray, t: np.ndarray) -> Optional[Tuple[int, int]]:
        """Fill the trace matrix; return the first maximal cell or None."""
        p = self.params
        m, n = len(q), len(t)
        trace = self._trace
        gap_first = p.gap_open_penalty + p.gap_extend_penalty
        extend = p.gap_extend_penalty
        ramp = self._columns[: n + 1] * extend

        h_prev = np.zeros(n + 1, dtype=np.int64)
        f_prev = np.full(n + 1, NEG_INF, dtype=np.int64)
        diag = np.empty(n + 1, dtype=np.int64)
        e = np.empty(n + 1, dtype=np.int64)

        best = 0
        best_pos: Optional[Tuple[int, int]] = None

        for i in range(1, m + 1):
            substitution = np.where(t == q[i - 1], p.match_score, p.mismatch_score)
            diag[0] = NEG_INF
            diag[1:] = h_prev[:-1] + substitution

            f = np.maximum(h_prev + gap_first, f_prev + extend)
            f[0] = NEG_INF

            # E[j] = max over k < j of H[k] + open + extend * (j - k). Opening
            # from an E-derived H is never better than extending E, so the
            # running maximum over the gap-free H is exact.
            h_open = np.maximum(np.maximum(diag, f), 0)
            h_open[0] = 0
            running = np.maximum.accumulate(h_open - ramp)
            e[0] = NEG_INF
            e[1:] = running[:-1] + ramp[1:] + p.gap_open_penalty

            h = diag.copy()
            source = np.full(n + 1, Trace.DIAG, dtype=np.uint8)
            take_e = e > h
            h[take_e] = e[take_e]
            source[take_e] = Trace.E
            take_f = f > h
            h[take_f] = f[take_f]
            source[take_f] = Trace.F
            stop = h <= 0
            h[stop] = 0
            source[stop] = Trace.STOP
            h[0] = 0
            source[0] = Trace.STOP
            trace[i, : n + 1] = source

            col = int(h.argmax())
            if h[col] > best:
                best = int(h[col])
                best_pos = (i, col)

            h_prev, f_prev = h, f

        return best_pos


def align(query: str, target: str, params: Optional[AlignmentParams] = None) -> Optional[PairwiseMatch]:
    """One-shot alignment with a throwaway aligner."""
    return PairwiseAligner(params, len(query), len(target)).align(query, target)


def collect_matches(
    aligner: PairwiseAligner,
    query: str,
    targets: Mapping[str, str],
) -> List[Tuple[str, Optional[PairwiseMatch]]]:
    """Align one query against every target, preserving target order."""
    return [(name, aligner.align(query, sequence)) for name, sequence in targets.items()]


def collect_mismatch_counts(
    aligner: PairwiseAligner,
    query: str,
    targets: Iterable[Tuple[str, str]],
) -> List[Tuple[str, Optional[int]]]:
    """Mismatch count per target, or None where the target did not match."""
    counts = []
    for name, sequence in targets:
        match = aligner.align(query, sequence)
        counts.append((name, None if match is None else match.mismatches))
    return counts
