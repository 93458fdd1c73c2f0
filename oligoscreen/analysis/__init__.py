"""Variant analysis and template screening."""

from oligoscreen.analysis.variants import analyze_sequences, group_sequences
from oligoscreen.analysis.differential import build_profile
from oligoscreen.analysis.screener import (
    InvalidScreenInput,
    ScreenContext,
    run_screening,
    screen_position,
)

__all__ = [
    "analyze_sequences",
    "group_sequences",
    "build_profile",
    "InvalidScreenInput",
    "ScreenContext",
    "run_screening",
    "screen_position",
]
