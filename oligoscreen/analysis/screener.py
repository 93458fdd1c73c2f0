"""
Template screening across oligo lengths and positions.

For every oligo length in the configured range and every window position
(stepping by ``resolution``), the window is aligned against all reference
sequences, the matched subsequences are reduced to consensus variants, and
optionally the window is scored against an exclusivity set.

Positions are independent, so they are fanned out to a process pool. Each
worker receives the read-only run context once through the pool initializer
and builds its own aligner on first use. Results are placed by position
index, so output does not depend on the worker count or completion order.
"""

from __future__ import annotations

import logging
import os
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from oligoscreen.align.pairwise import PairwiseAligner, collect_matches, collect_mismatch_counts
from oligoscreen.analysis.differential import build_profile
from oligoscreen.analysis.variants import analyze_sequences
from oligoscreen.config import get_config
from oligoscreen.core.iupac import UNAMBIGUOUS_BASES
from oligoscreen.models.data_classes import (
    AlignmentParams,
    LengthResult,
    PositionResult,
    ProgressUpdate,
    ScreenParams,
    ScreenResult,
)

logger = logging.getLogger(__name__)

NO_MATCH_REASON = "No valid matches found in any reference sequence"

ExclusivityInput = Union[None, Mapping[str, str], Sequence[Mapping[str, str]]]
ProgressCallback = Callable[[ProgressUpdate], None]


class InvalidScreenInput(ValueError):
    """Raised before any work when a screening request cannot be run."""
    pass


@dataclass
class ScreenContext:
    """Read-only inputs shared by every position of one run."""
    template: str
    references: Dict[str, str]
    exclusivity: List[Tuple[str, str]]
    params: ScreenParams
    alignment: AlignmentParams

    def make_aligner(self) -> PairwiseAligner:
        longest = max(
            [len(s) for s in self.references.values()]
            + [len(s) for _, s in self.exclusivity]
        )
        return PairwiseAligner(self.alignment, self.params.max_oligo_length, longest)


def screen_position(
    context: ScreenContext,
    aligner: PairwiseAligner,
    oligo_length: int,
    position: int,
) -> PositionResult:
    """Screen the template window starting at ``position``."""
    window = context.template[position:position + oligo_length]
    hits = collect_matches(aligner, window, context.references)
    matched = [match.subsequence for _, match in hits if match is not None]
    total = len(hits)

    differential = None
    if context.params.differential:
        counts = collect_mismatch_counts(aligner, window, context.exclusivity)
        differential = build_profile(counts, context.params.ignore_count)

    if not matched:
        return PositionResult(
            position=position,
            total_sequences=total,
            no_match_count=total,
            skipped=True,
            skip_reason=NO_MATCH_REASON,
            differential=differential,
        )

    analysis = analyze_sequences(matched, context.params, total_sequences=total)

    return PositionResult(
        position=position,
        total_sequences=total,
        sequences_analyzed=len(matched),
        no_match_count=total - len(matched),
        variants=analysis.variants,
        variants_needed=analysis.variants_for_threshold,
        coverage_at_threshold=analysis.coverage_at_threshold,
        differential=differential,
    )


# =============================================================================
# Worker process state
# =============================================================================

_worker_context: Optional[ScreenContext] = None
_worker_aligner: Optional[PairwiseAligner] = None


def _init_worker(context: ScreenContext) -> None:
    global _worker_context, _worker_aligner
    _worker_context = context
    _worker_aligner = None


def _screen_position_worker(oligo_length: int, position: int) -> PositionResult:
    global _worker_aligner
    if _worker_aligner is None:
        _worker_aligner = _worker_context.make_aligner()
    return screen_position(_worker_context, _worker_aligner, oligo_length, position)


# =============================================================================
# Run
# =============================================================================

def _normalize_exclusivity(exclusivity: ExclusivityInput) -> List[Tuple[str, str]]:
    """Flatten one mapping or a list of mappings into ordered (name, seq) pairs."""
    if exclusivity is None:
        return []
    if isinstance(exclusivity, Mapping):
        exclusivity = [exclusivity]
    return [
        (name, sequence.upper())
        for mapping in exclusivity
        for name, sequence in mapping.items()
    ]


def validate_inputs(
    template: str,
    references: Mapping[str, str],
    params: ScreenParams,
    exclusivity: List[Tuple[str, str]],
) -> None:
    """Raise InvalidScreenInput if the run cannot proceed."""
    if not template:
        raise InvalidScreenInput("Template sequence is empty")
    if not references:
        raise InvalidScreenInput("No reference sequences provided")
    if params.min_oligo_length > params.max_oligo_length:
        raise InvalidScreenInput(
            f"Minimum oligo length ({params.min_oligo_length}) exceeds "
            f"maximum ({params.max_oligo_length})"
        )
    if params.max_oligo_length > len(template):
        raise InvalidScreenInput(
            f"Maximum oligo length ({params.max_oligo_length}) exceeds "
            f"template length ({len(template)})"
        )
    if params.differential and not exclusivity:
        raise InvalidScreenInput(
            "Differential analysis requested but no exclusivity sequences provided"
        )

    named = [("template", template), *references.items(), *exclusivity]
    for name, sequence in named:
        invalid = set(sequence) - UNAMBIGUOUS_BASES
        if invalid:
            raise InvalidScreenInput(
                f"{name}: non-ACGT bases {''.join(sorted(invalid))!r} are not allowed"
            )


def run_screening(
    template: str,
    references: Mapping[str, str],
    params: Optional[ScreenParams] = None,
    alignment: Optional[AlignmentParams] = None,
    exclusivity: ExclusivityInput = None,
    workers: Optional[int] = None,
    progress: Optional[ProgressCallback] = None,
    template_name: str = "template",
) -> ScreenResult:
    """
    Screen every (oligo length, position) window of a template.

    Args:
        template: Template DNA sequence
        references: Reference sequences by name
        params: Screening parameters (config defaults if None)
        alignment: Alignment parameters (config defaults if None)
        exclusivity: Exclusivity sequences, one mapping or several; only
            used when ``params.differential`` is set
        workers: Worker processes; 1 runs in-process, None uses the
            configured count or the CPU count
        progress: Called with a ProgressUpdate as positions complete
        template_name: Name stored in the result

    Returns:
        ScreenResult with one LengthResult per oligo length

    Raises:
        InvalidScreenInput: If the inputs are unusable
    """
    config = get_config()
    params = params or config.screen
    alignment = alignment or config.alignment
    template = template.upper()
    references = {name: seq.upper() for name, seq in references.items()}

    exclusivity_pairs = _normalize_exclusivity(exclusivity)
    if exclusivity_pairs and not params.differential:
        logger.warning("Exclusivity sequences given without differential analysis; ignoring them")
        exclusivity_pairs = []

    validate_inputs(template, references, params, exclusivity_pairs)

    context = ScreenContext(
        template=template,
        references=references,
        exclusivity=exclusivity_pairs,
        params=params,
        alignment=alignment,
    )

    n_workers = workers or config.workers or os.cpu_count() or 1
    lengths = list(params.oligo_lengths)
    logger.info(
        f"Screening {template_name} ({len(template)} bp) against "
        f"{len(references)} references, lengths {lengths[0]}-{lengths[-1]}, "
        f"{n_workers} worker(s)"
    )

    start_time = time.time()
    if n_workers == 1:
        results = _run_in_process(context, lengths, progress, config.progress_interval)
    else:
        results = _run_in_pool(context, lengths, progress, config.progress_interval, n_workers)
    logger.info(f"Screening finished in {time.time() - start_time:.1f}s")

    return ScreenResult(
        params=params,
        alignment=alignment,
        template_name=template_name,
        template_sequence=template,
        template_length=len(template),
        total_sequences=len(references),
        differential_enabled=params.differential,
        exclusivity_sequence_count=len(exclusivity_pairs) if params.differential else None,
        results_by_length=results,
    )


def _positions_for(context: ScreenContext, oligo_length: int) -> List[int]:
    return list(range(0, len(context.template) - oligo_length + 1, context.params.resolution))


class _ProgressReporter:
    """Emits progress every ``interval`` completed positions and per length."""

    def __init__(self, callback: Optional[ProgressCallback], interval: int, total_lengths: int):
        self.callback = callback
        self.interval = interval
        self.total_lengths = total_lengths
        self.lengths_completed = 0

    def position_done(self, oligo_length: int, position: int, completed: int, total: int) -> None:
        if self.callback is not None and completed % self.interval == 0 and completed < total:
            self.callback(ProgressUpdate(
                current_length=oligo_length,
                current_position=position,
                positions_completed=completed,
                total_positions=total,
                lengths_completed=self.lengths_completed,
                total_lengths=self.total_lengths,
                message=f"Length {oligo_length}: {completed}/{total} positions",
            ))

    def length_done(self, oligo_length: int, total: int) -> None:
        self.lengths_completed += 1
        logger.debug(f"Length {oligo_length} done ({total} positions)")
        if self.callback is not None:
            self.callback(ProgressUpdate(
                current_length=oligo_length,
                current_position=-1,
                positions_completed=total,
                total_positions=total,
                lengths_completed=self.lengths_completed,
                total_lengths=self.total_lengths,
                message=f"Completed length {oligo_length}",
            ))


def _run_in_process(
    context: ScreenContext,
    lengths: List[int],
    progress: Optional[ProgressCallback],
    interval: int,
) -> Dict[int, LengthResult]:
    aligner = context.make_aligner()
    reporter = _ProgressReporter(progress, interval, len(lengths))
    results = {}
    for oligo_length in lengths:
        positions = _positions_for(context, oligo_length)
        screened = []
        for completed, position in enumerate(positions, start=1):
            screened.append(screen_position(context, aligner, oligo_length, position))
            reporter.position_done(oligo_length, position, completed, len(positions))
        results[oligo_length] = LengthResult(oligo_length=oligo_length, positions=screened)
        reporter.length_done(oligo_length, len(positions))
    return results


def _run_in_pool(
    context: ScreenContext,
    lengths: List[int],
    progress: Optional[ProgressCallback],
    interval: int,
    n_workers: int,
) -> Dict[int, LengthResult]:
    reporter = _ProgressReporter(progress, interval, len(lengths))
    results = {}
    with ProcessPoolExecutor(
        max_workers=n_workers,
        initializer=_init_worker,
        initargs=(context,),
    ) as executor:
        for oligo_length in lengths:
            positions = _positions_for(context, oligo_length)
            screened: List[Optional[PositionResult]] = [None] * len(positions)
            futures = {
                executor.submit(_screen_position_worker, oligo_length, position): index
                for index, position in enumerate(positions)
            }
            for completed, future in enumerate(as_completed(futures), start=1):
                index = futures[future]
                screened[index] = future.result()
                reporter.position_done(oligo_length, positions[index], completed, len(positions))
            results[oligo_length] = LengthResult(oligo_length=oligo_length, positions=screened)
            reporter.length_done(oligo_length, len(positions))
    return results
