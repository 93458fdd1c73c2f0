"""
Variant analysis for one screening window.

Turns the equal-length subsequences matched in the references into an
ordered list of IUPAC consensus variants. Three strategies are supported:

* ``no_ambiguities`` - one variant per distinct sequence.
* ``fixed_ambiguities`` - greedy set cover where each variant may carry at
  most ``fixed_ambiguities`` ambiguities.
* ``incremental`` - each round emits the least ambiguous consensus that
  covers ``incremental_percent`` of the sequences still uncovered.

Sequences are bit-packed (see ``oligoscreen.core.iupac``) so consensus merges
and coverage tests are single integer operations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from oligoscreen.core.iupac import (
    contains_any_base,
    nibble_mask,
    pack,
    packed_ambiguity,
    packed_covers,
    unpack,
)
from oligoscreen.models.data_classes import (
    ScreenParams,
    Variant,
    VariantAnalysis,
    threshold_statistics,
)
from oligoscreen.models.enums import AnalysisMethod

logger = logging.getLogger(__name__)

# Seeds tried per incremental round
SEED_LIMIT = 8


@dataclass
class SequenceGroup:
    """Identical input sequences, weighted by multiplicity."""
    sequence: str
    packed: int
    weight: int
    order: int  # first-seen index among groups


@dataclass
class _Consensus:
    packed: int
    ambiguities: int
    covered: int  # total weight of pool groups it covers


def group_sequences(sequences: Sequence[str]) -> List[SequenceGroup]:
    """Collapse identical sequences, keeping first-seen order."""
    groups: dict = {}
    for sequence in sequences:
        group = groups.get(sequence)
        if group is None:
            groups[sequence] = SequenceGroup(sequence, pack(sequence), 1, len(groups))
        else:
            group.weight += 1
    return list(groups.values())


def _by_frequency(groups: Sequence[SequenceGroup]) -> List[SequenceGroup]:
    return sorted(groups, key=lambda g: (-g.weight, g.order))


def _covered_weight(consensus: int, pool: Sequence[SequenceGroup]) -> int:
    return sum(g.weight for g in pool if packed_covers(consensus, g.packed))


def greedy_trajectory(
    seed: SequenceGroup,
    pool: Sequence[SequenceGroup],
    length: int,
    max_ambiguities: int,
    exclude_n: bool = False,
) -> Iterator[_Consensus]:
    """
    Grow a consensus from ``seed`` one merge at a time.

    Each step trial-merges every uncovered group and keeps the merge with the
    lowest added ambiguity per newly covered sequence; ties go to the larger
    gain, then the earlier group. Merges that exceed ``max_ambiguities`` or,
    with ``exclude_n``, introduce a fully ambiguous position are infeasible.
    Yields the seed consensus first and then every accepted merge, so
    ambiguity and coverage are non-decreasing along the trajectory.
    """
    low_bits = nibble_mask(length)
    consensus = seed.packed
    ambiguities = packed_ambiguity(consensus, length)
    uncovered = [g for g in pool if not packed_covers(consensus, g.packed)]
    covered = _covered_weight(consensus, pool)
    yield _Consensus(consensus, ambiguities, covered)

    while uncovered:
        best_key: Optional[Tuple[float, int, int]] = None
        best_merge = 0
        best_gain = 0
        for group in uncovered:
            merged = consensus | group.packed
            merged_ambiguities = packed_ambiguity(merged, length)
            if merged_ambiguities > max_ambiguities:
                continue
            if exclude_n and contains_any_base(merged, low_bits):
                continue
            gain = _covered_weight(merged, uncovered)
            key = ((merged_ambiguities - ambiguities) / gain, -gain, group.order)
            if best_key is None or key < best_key:
                best_key = key
                best_merge = merged
                best_gain = gain

        if best_key is None:
            break

        consensus = best_merge
        ambiguities = packed_ambiguity(consensus, length)
        covered += best_gain
        uncovered = [g for g in uncovered if not packed_covers(consensus, g.packed)]
        yield _Consensus(consensus, ambiguities, covered)


# =============================================================================
# Strategies
# =============================================================================

def _no_ambiguity_variants(groups: List[SequenceGroup]) -> List[Tuple[str, int, int]]:
    return [(g.sequence, g.weight, 0) for g in _by_frequency(groups)]


def _fixed_ambiguity_variants(
    groups: List[SequenceGroup],
    length: int,
    max_ambiguities: int,
    exclude_n: bool,
) -> List[Tuple[str, int, int]]:
    variants = []
    remaining = list(groups)
    while remaining:
        seed = _by_frequency(remaining)[0]
        *_, final = greedy_trajectory(seed, remaining, length, max_ambiguities, exclude_n)
        variants.append((unpack(final.packed, length), final.covered, final.ambiguities))
        remaining = [g for g in remaining if not packed_covers(final.packed, g.packed)]
    return variants


def _best_within(
    trajectories: List[List[_Consensus]],
    ambiguity_limit: int,
) -> Optional[_Consensus]:
    """Best prefix consensus over all trajectories with ambiguity <= limit."""
    best: Optional[_Consensus] = None
    best_key: Optional[Tuple[int, int, int]] = None
    for seed_index, trajectory in enumerate(trajectories):
        candidate = None
        for step in trajectory:
            if step.ambiguities > ambiguity_limit:
                break
            candidate = step
        if candidate is None:
            continue
        key = (-candidate.covered, candidate.ambiguities, seed_index)
        if best_key is None or key < best_key:
            best, best_key = candidate, key
    return best


def _incremental_variants(
    groups: List[SequenceGroup],
    length: int,
    percent: int,
    max_ambiguities: Optional[int],
    exclude_n: bool,
) -> List[Tuple[str, int, int]]:
    budget = 3 * length if max_ambiguities is None else max_ambiguities
    variants = []
    remaining = list(groups)
    while remaining:
        pool_weight = sum(g.weight for g in remaining)
        seeds = _by_frequency(remaining)[:SEED_LIMIT]
        trajectories = [
            list(greedy_trajectory(seed, remaining, length, budget, exclude_n))
            for seed in seeds
        ]

        accepted = None
        for level in range(budget + 1):
            candidate = _best_within(trajectories, level)
            if candidate is not None and candidate.covered * 100 >= percent * pool_weight:
                accepted = candidate
                break

        if accepted is None:
            # Nothing reaches the target share; emit the most frequent sequence
            seed = seeds[0]
            accepted = _Consensus(seed.packed, 0, _covered_weight(seed.packed, remaining))

        variants.append((unpack(accepted.packed, length), accepted.covered, accepted.ambiguities))
        remaining = [g for g in remaining if not packed_covers(accepted.packed, g.packed)]
    return variants


# =============================================================================
# Public API
# =============================================================================

def analyze_sequences(
    sequences: Sequence[str],
    params: ScreenParams,
    total_sequences: Optional[int] = None,
) -> VariantAnalysis:
    """
    Build ranked variants for the subsequences matched at one window.

    Args:
        sequences: Matched subsequences, all the same length
        params: Screening parameters (method, budgets, threshold)
        total_sequences: Denominator for percentages, normally every
            reference attempted at this window including non-matches.
            Defaults to ``len(sequences)``.

    Returns:
        VariantAnalysis with variants sorted by descending count
    """
    if not sequences:
        return VariantAnalysis()

    total = total_sequences or len(sequences)
    length = len(sequences[0])
    groups = group_sequences(sequences)

    if params.method == AnalysisMethod.FIXED_AMBIGUITIES:
        raw = _fixed_ambiguity_variants(groups, length, params.fixed_ambiguities, params.exclude_n)
    elif params.method == AnalysisMethod.INCREMENTAL:
        raw = _incremental_variants(
            groups,
            length,
            params.incremental_percent,
            params.incremental_max_ambiguities,
            params.exclude_n,
        )
    else:
        raw = _no_ambiguity_variants(groups)

    raw.sort(key=lambda v: -v[1])

    variants = []
    cumulative = 0
    for rank, (sequence, count, ambiguities) in enumerate(raw, start=1):
        cumulative += count
        variants.append(Variant(
            sequence=sequence,
            count=count,
            percentage=count * 100.0 / total,
            cumulative_percentage=cumulative * 100.0 / total,
            ambiguities=ambiguities,
            rank=rank,
        ))

    needed, coverage = threshold_statistics(
        [v.cumulative_percentage for v in variants], params.coverage_threshold
    )
    logger.debug(
        f"{params.method.value}: {len(groups)} distinct of {len(sequences)} "
        f"-> {len(variants)} variants"
    )
    return VariantAnalysis(
        variants=variants,
        variants_for_threshold=needed,
        coverage_at_threshold=coverage,
    )
