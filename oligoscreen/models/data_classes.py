"""
Pydantic data classes for Oligoscreen.

All data structures exchanged between the screening engine and its callers
(CLI, API, persistence). Parameter models are frozen; result models are built
once per run and treated as read-only afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from oligoscreen.models.enums import AnalysisMethod


# =============================================================================
# Run Parameters
# =============================================================================

class AlignmentParams(BaseModel):
    """Scoring and acceptance settings for the pairwise aligner.

    A gap of length k scores ``gap_open_penalty + k * gap_extend_penalty``.
    """
    model_config = ConfigDict(frozen=True)

    match_score: int = Field(2, ge=0, le=10)
    mismatch_score: int = Field(-1, ge=-10, le=0)
    gap_open_penalty: int = Field(-5, ge=-20, le=0)
    gap_extend_penalty: int = Field(-1, ge=-20, le=0)
    max_mismatches: int = Field(5, ge=0, le=50)


class ScreenParams(BaseModel):
    """Settings for one screening run."""
    model_config = ConfigDict(frozen=True)

    method: AnalysisMethod = AnalysisMethod.NO_AMBIGUITIES
    fixed_ambiguities: int = Field(1, ge=0, le=20)
    incremental_percent: int = Field(50, ge=1, le=100)
    incremental_max_ambiguities: Optional[int] = Field(None, ge=0, le=20)
    exclude_n: bool = False

    min_oligo_length: int = Field(18, ge=1)
    max_oligo_length: int = Field(22, ge=1)
    resolution: int = Field(1, ge=1)
    coverage_threshold: float = Field(95.0, gt=0, le=100)

    # Differential (exclusivity) analysis
    differential: bool = False
    ignore_count: int = Field(0, ge=0)

    @property
    def oligo_lengths(self) -> range:
        return range(self.min_oligo_length, self.max_oligo_length + 1)


# =============================================================================
# Alignment
# =============================================================================

@dataclass
class PairwiseMatch:
    """An accepted full-length, gap-free alignment of a query in a target."""
    subsequence: str
    mismatches: int
    target_start: int


# =============================================================================
# Variant Analysis
# =============================================================================

def threshold_statistics(
    cumulative_percentages: List[float],
    threshold: float,
) -> Tuple[int, float]:
    """
    Number of leading variants needed to reach a coverage threshold.

    Returns:
        (variants_needed, coverage_reached). When the threshold is never
        reached, every variant is needed and the final cumulative coverage is
        reported.
    """
    for i, cumulative in enumerate(cumulative_percentages):
        if cumulative >= threshold:
            return i + 1, cumulative
    if not cumulative_percentages:
        return 0, 0.0
    return len(cumulative_percentages), cumulative_percentages[-1]


class Variant(BaseModel):
    """A consensus oligo covering a group of matched reference sequences."""
    model_config = ConfigDict(frozen=True)

    sequence: str  # IUPAC notation
    count: int = Field(ge=0)
    percentage: float = Field(ge=0)
    cumulative_percentage: float = Field(ge=0)
    ambiguities: int = Field(0, ge=0)
    rank: int = Field(1, ge=1)


class VariantAnalysis(BaseModel):
    """Variant list for one window plus its threshold statistics."""
    variants: List[Variant] = Field(default_factory=list)
    variants_for_threshold: int = 0
    coverage_at_threshold: float = 0.0


# =============================================================================
# Differential (Exclusivity) Analysis
# =============================================================================

class MismatchBucket(BaseModel):
    """Exclusivity sequences sharing one mismatch count."""
    mismatches: int = Field(ge=0)
    count: int = Field(ge=1)
    example_name: str


class DifferentialProfile(BaseModel):
    """Mismatch histogram of one window against the exclusivity set."""
    total_sequences: int
    no_match_count: int = 0
    no_match_example: Optional[str] = None
    histogram: List[MismatchBucket] = Field(default_factory=list)  # ascending mismatches
    min_mismatches: Optional[int] = None
    score: Optional[int] = None  # min mismatches after ignoring the closest hits

    @computed_field
    @property
    def matched_count(self) -> int:
        return sum(bucket.count for bucket in self.histogram)

    def effective_min_mismatches(self, ignore_count: int) -> Optional[int]:
        """Minimum mismatch count after discarding the closest matches.

        Sequences that did not match at all are never counted toward the
        ignored ones. Returns None when nothing is left.
        """
        remaining_ignore = ignore_count
        for bucket in self.histogram:
            if bucket.count <= remaining_ignore:
                remaining_ignore -= bucket.count
            else:
                return bucket.mismatches
        return None


# =============================================================================
# Screening Results
# =============================================================================

class PositionResult(BaseModel):
    """Result for one (oligo length, position) cell of the screening grid."""
    position: int = Field(ge=0)
    total_sequences: int = 0
    sequences_analyzed: int = 0
    no_match_count: int = 0
    skipped: bool = False
    skip_reason: Optional[str] = None

    variants: List[Variant] = Field(default_factory=list)
    variants_needed: int = 0
    coverage_at_threshold: float = 0.0

    differential: Optional[DifferentialProfile] = None

    def with_coverage_threshold(self, threshold: float) -> "PositionResult":
        if self.skipped:
            return self
        needed, coverage = threshold_statistics(
            [v.cumulative_percentage for v in self.variants], threshold
        )
        return self.model_copy(
            update={"variants_needed": needed, "coverage_at_threshold": coverage}
        )

    def with_ignore_count(self, ignore_count: int) -> "PositionResult":
        if self.differential is None:
            return self
        differential = self.differential.model_copy(
            update={"score": self.differential.effective_min_mismatches(ignore_count)}
        )
        return self.model_copy(update={"differential": differential})


class LengthResult(BaseModel):
    """All screened positions for one oligo length, ascending by position."""
    oligo_length: int
    positions: List[PositionResult] = Field(default_factory=list)


class ScreenResult(BaseModel):
    """Complete screening grid plus the parameters that produced it."""
    params: ScreenParams
    alignment: AlignmentParams

    template_name: str = "template"
    template_sequence: str
    template_length: int
    total_sequences: int

    differential_enabled: bool = False
    exclusivity_sequence_count: Optional[int] = None

    results_by_length: Dict[int, LengthResult] = Field(default_factory=dict)

    # Metadata
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    oligoscreen_version: str = "0.1.0"

    @model_validator(mode="after")
    def _check_template_length(self) -> "ScreenResult":
        if self.template_length != len(self.template_sequence):
            raise ValueError("template_length does not match template_sequence")
        return self

    @property
    def oligo_lengths(self) -> List[int]:
        return sorted(self.results_by_length)

    def get_position(self, oligo_length: int, position: int) -> Optional[PositionResult]:
        """Look up one grid cell by oligo length and template position."""
        length_result = self.results_by_length.get(oligo_length)
        if length_result is None:
            return None
        for result in length_result.positions:
            if result.position == position:
                return result
        return None

    def with_coverage_threshold(self, threshold: float) -> "ScreenResult":
        """Re-evaluate 'variants needed' for a new threshold without re-aligning."""
        return self._map_positions(
            lambda r: r.with_coverage_threshold(threshold),
            params=self.params.model_copy(update={"coverage_threshold": threshold}),
        )

    def with_ignore_count(self, ignore_count: int) -> "ScreenResult":
        """Re-evaluate exclusivity scores for a new ignore count."""
        return self._map_positions(
            lambda r: r.with_ignore_count(ignore_count),
            params=self.params.model_copy(update={"ignore_count": ignore_count}),
        )

    def _map_positions(self, fn, params: ScreenParams) -> "ScreenResult":
        results = {
            length: LengthResult(
                oligo_length=length,
                positions=[fn(r) for r in length_result.positions],
            )
            for length, length_result in self.results_by_length.items()
        }
        return self.model_copy(update={"results_by_length": results, "params": params})


# =============================================================================
# Progress
# =============================================================================

@dataclass
class ProgressUpdate:
    """Progress snapshot emitted while a screening run is in flight."""
    current_length: int
    current_position: int
    positions_completed: int
    total_positions: int
    lengths_completed: int
    total_lengths: int
    message: str
