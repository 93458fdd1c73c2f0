"""
Tests for variant analysis strategies.
"""

from __future__ import annotations

import random
from typing import List

import pytest

from oligoscreen.analysis.variants import analyze_sequences, group_sequences
from oligoscreen.core.iupac import N, pack, packed_covers
from oligoscreen.models.data_classes import ScreenParams, threshold_statistics
from oligoscreen.models.enums import AnalysisMethod


def _params(method: AnalysisMethod, **kwargs) -> ScreenParams:
    return ScreenParams(method=method, min_oligo_length=4, max_oligo_length=4, **kwargs)


def _summary(analysis) -> List[tuple]:
    return [(v.sequence, v.count, v.ambiguities) for v in analysis.variants]


def _random_pool(seed: int, size: int = 40, length: int = 8) -> List[str]:
    rng = random.Random(seed)
    base = "".join(rng.choice("ACGT") for _ in range(length))
    pool = []
    for _ in range(size):
        seq = list(base)
        for index in rng.sample(range(length), rng.randint(0, 3)):
            seq[index] = rng.choice("ACGT")
        pool.append("".join(seq))
    return pool


ALL_METHODS = list(AnalysisMethod)


class TestGrouping:

    def test_groups_keep_first_seen_order(self) -> None:
        groups = group_sequences(["ACGA", "ACGT", "ACGA"])
        assert [(g.sequence, g.weight, g.order) for g in groups] == [
            ("ACGA", 2, 0),
            ("ACGT", 1, 1),
        ]


class TestNoAmbiguities:

    def test_distinct_sequences_by_count(self) -> None:
        analysis = analyze_sequences(["ACGT", "ACGA", "ACGT"], _params(AnalysisMethod.NO_AMBIGUITIES))
        assert _summary(analysis) == [("ACGT", 2, 0), ("ACGA", 1, 0)]
        assert [v.rank for v in analysis.variants] == [1, 2]
        assert analysis.variants[0].percentage == pytest.approx(200 / 3)
        assert analysis.variants[-1].cumulative_percentage == pytest.approx(100.0)

    def test_ties_keep_first_seen_order(self) -> None:
        analysis = analyze_sequences(["CCCC", "AAAA", "GGGG"], _params(AnalysisMethod.NO_AMBIGUITIES))
        assert [v.sequence for v in analysis.variants] == ["CCCC", "AAAA", "GGGG"]


class TestFixedAmbiguities:

    def test_merges_within_budget(self) -> None:
        analysis = analyze_sequences(
            ["ACGT", "ACGA", "ACGT"],
            _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=1),
        )
        assert _summary(analysis) == [("ACGW", 3, 1)]
        assert analysis.variants[0].cumulative_percentage == pytest.approx(100.0)

    def test_zero_budget_is_exact(self) -> None:
        analysis = analyze_sequences(
            ["ACGT", "ACGA", "ACGT"],
            _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=0),
        )
        assert _summary(analysis) == [("ACGT", 2, 0), ("ACGA", 1, 0)]

    def test_full_budget_reaches_n(self) -> None:
        analysis = analyze_sequences(
            ["AAAA", "CAAA", "GAAA", "TAAA"],
            _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=3),
        )
        assert _summary(analysis) == [("NAAA", 4, 3)]

    def test_exclude_n_blocks_fully_ambiguous_positions(self) -> None:
        analysis = analyze_sequences(
            ["AAAA", "CAAA", "GAAA", "TAAA"],
            _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=3, exclude_n=True),
        )
        assert _summary(analysis) == [("VAAA", 3, 2), ("TAAA", 1, 0)]

    def test_prefers_cheapest_merge_per_sequence(self) -> None:
        # AAAC is three times as common as AAAG, so it is merged first
        sequences = ["AAAA"] * 4 + ["AAAC"] * 3 + ["AAAG"]
        analysis = analyze_sequences(
            sequences,
            _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=1),
        )
        assert _summary(analysis) == [("AAAM", 7, 1), ("AAAG", 1, 0)]


class TestIncremental:

    SEQUENCES = ["AAAA"] * 5 + ["AAAC"] * 3 + ["AAAG"] * 2

    def test_low_target_share_stays_exact(self) -> None:
        analysis = analyze_sequences(
            self.SEQUENCES,
            _params(AnalysisMethod.INCREMENTAL, incremental_percent=50),
        )
        assert _summary(analysis) == [("AAAA", 5, 0), ("AAAC", 3, 0), ("AAAG", 2, 0)]

    def test_high_target_share_adds_ambiguity(self) -> None:
        analysis = analyze_sequences(
            self.SEQUENCES,
            _params(AnalysisMethod.INCREMENTAL, incremental_percent=80),
        )
        assert _summary(analysis) == [("AAAM", 8, 1), ("AAAG", 2, 0)]

    def test_falls_back_to_most_frequent_exact(self) -> None:
        analysis = analyze_sequences(
            self.SEQUENCES,
            _params(AnalysisMethod.INCREMENTAL, incremental_percent=80, incremental_max_ambiguities=0),
        )
        assert _summary(analysis) == [("AAAA", 5, 0), ("AAAC", 3, 0), ("AAAG", 2, 0)]

    def test_full_share_covers_everything_at_once(self) -> None:
        analysis = analyze_sequences(
            self.SEQUENCES,
            _params(AnalysisMethod.INCREMENTAL, incremental_percent=100),
        )
        assert _summary(analysis) == [("AAAV", 10, 2)]


class TestThreshold:

    def test_threshold_statistics(self) -> None:
        assert threshold_statistics([80.0, 95.0, 100.0], 95.0) == (2, 95.0)
        assert threshold_statistics([50.0, 70.0], 95.0) == (2, 70.0)
        assert threshold_statistics([], 95.0) == (0, 0.0)

    def test_percentages_use_all_attempted_references(self) -> None:
        analysis = analyze_sequences(
            ["ACGT", "ACGT"],
            _params(AnalysisMethod.NO_AMBIGUITIES),
            total_sequences=4,
        )
        assert analysis.variants[0].percentage == pytest.approx(50.0)
        assert analysis.variants_for_threshold == 1
        assert analysis.coverage_at_threshold == pytest.approx(50.0)

    def test_variants_needed_from_analysis(self) -> None:
        sequences = ["AAAA"] * 16 + ["CCCC"] * 3 + ["GGGG"]
        analysis = analyze_sequences(
            sequences,
            _params(AnalysisMethod.NO_AMBIGUITIES, coverage_threshold=95.0),
        )
        assert [v.percentage for v in analysis.variants] == pytest.approx([80.0, 15.0, 5.0])
        assert analysis.variants_for_threshold == 2
        assert analysis.coverage_at_threshold == pytest.approx(95.0)


class TestProperties:
    """Invariants that hold for every strategy."""

    def test_empty_input(self) -> None:
        for method in ALL_METHODS:
            analysis = analyze_sequences([], _params(method))
            assert analysis.variants == []
            assert analysis.variants_for_threshold == 0

    @pytest.mark.parametrize("method", ALL_METHODS)
    @pytest.mark.parametrize("seed", [1, 7, 23])
    def test_counts_partition_input(self, method: AnalysisMethod, seed: int) -> None:
        pool = _random_pool(seed)
        analysis = analyze_sequences(pool, _params(method, fixed_ambiguities=2, incremental_percent=60))
        assert sum(v.count for v in analysis.variants) == len(pool)
        counts = [v.count for v in analysis.variants]
        assert counts == sorted(counts, reverse=True)
        assert analysis.variants[-1].cumulative_percentage == pytest.approx(100.0)

    @pytest.mark.parametrize("seed", [1, 7, 23])
    def test_every_sequence_is_covered(self, seed: int) -> None:
        pool = _random_pool(seed)
        for method in ALL_METHODS:
            analysis = analyze_sequences(pool, _params(method, fixed_ambiguities=2))
            consensuses = [pack(v.sequence) for v in analysis.variants]
            for sequence in pool:
                assert any(packed_covers(c, pack(sequence)) for c in consensuses)

    @pytest.mark.parametrize("budget", [0, 1, 3])
    def test_fixed_budget_respected(self, budget: int) -> None:
        pool = _random_pool(5)
        analysis = analyze_sequences(
            pool, _params(AnalysisMethod.FIXED_AMBIGUITIES, fixed_ambiguities=budget)
        )
        assert all(v.ambiguities <= budget for v in analysis.variants)

    def test_incremental_cap_respected(self) -> None:
        pool = _random_pool(9)
        analysis = analyze_sequences(
            pool,
            _params(AnalysisMethod.INCREMENTAL, incremental_percent=90, incremental_max_ambiguities=2),
        )
        assert all(v.ambiguities <= 2 for v in analysis.variants)

    def test_exclude_n_never_emits_n(self) -> None:
        pool = ["".join(bases) for bases in zip("ACGT" * 3, "AAAACCCCGGGG", "TTTTTTTTTTTT")]
        for method in (AnalysisMethod.FIXED_AMBIGUITIES, AnalysisMethod.INCREMENTAL):
            analysis = analyze_sequences(
                pool,
                ScreenParams(
                    method=method,
                    fixed_ambiguities=6,
                    incremental_percent=100,
                    exclude_n=True,
                    min_oligo_length=3,
                    max_oligo_length=3,
                ),
            )
            for variant in analysis.variants:
                assert all(pack(symbol) != N for symbol in variant.sequence)
