"""
Exclusivity (differential) scoring.

For one window, aligns against every exclusivity sequence and summarizes how
close the nearest off-target hits are. A higher score means the window is
more specific to the reference set.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from oligoscreen.models.data_classes import DifferentialProfile, MismatchBucket


def build_profile(
    mismatch_counts: Iterable[Tuple[str, Optional[int]]],
    ignore_count: int = 0,
) -> DifferentialProfile:
    """
    Summarize per-sequence mismatch counts into a histogram and score.

    Args:
        mismatch_counts: (sequence name, mismatches) pairs; None marks a
            sequence that did not match at all.
        ignore_count: Number of closest matches to discard before taking the
            minimum.

    Returns:
        DifferentialProfile whose histogram covers matched sequences only.
    """
    buckets: Dict[int, List] = {}
    total = 0
    no_match_count = 0
    no_match_example = None

    for name, mismatches in mismatch_counts:
        total += 1
        if mismatches is None:
            no_match_count += 1
            if no_match_example is None:
                no_match_example = name
            continue
        bucket = buckets.get(mismatches)
        if bucket is None:
            buckets[mismatches] = [1, name]
        else:
            bucket[0] += 1

    histogram = [
        MismatchBucket(mismatches=mm, count=count, example_name=example)
        for mm, (count, example) in sorted(buckets.items())
    ]
    profile = DifferentialProfile(
        total_sequences=total,
        no_match_count=no_match_count,
        no_match_example=no_match_example,
        histogram=histogram,
        min_mismatches=histogram[0].mismatches if histogram else None,
    )
    profile.score = profile.effective_min_mismatches(ignore_count)
    return profile
