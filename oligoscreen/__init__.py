"""
Oligoscreen - Degenerate Oligonucleotide Window Screening

Scans a DNA template for (oligo length, position) windows where a small set
of IUPAC-degenerate variants covers a diverse reference panel, optionally
scoring specificity against exclusivity sequences.
"""

__version__ = "0.1.0"
__author__ = "Oligoscreen Team"

from oligoscreen.models.enums import AnalysisMethod
from oligoscreen.models.data_classes import (
    AlignmentParams,
    ScreenParams,
    Variant,
    PositionResult,
    ScreenResult,
)
from oligoscreen.analysis.screener import InvalidScreenInput, run_screening

__all__ = [
    # Enums
    "AnalysisMethod",
    # Data classes
    "AlignmentParams",
    "ScreenParams",
    "Variant",
    "PositionResult",
    "ScreenResult",
    # Screening
    "InvalidScreenInput",
    "run_screening",
]
