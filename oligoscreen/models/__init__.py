"""Models package."""

from oligoscreen.models.enums import AnalysisMethod
from oligoscreen.models.data_classes import (
    AlignmentParams,
    ScreenParams,
    PairwiseMatch,
    threshold_statistics,
    Variant,
    VariantAnalysis,
    MismatchBucket,
    DifferentialProfile,
    PositionResult,
    LengthResult,
    ScreenResult,
    ProgressUpdate,
)

__all__ = [
    # Enums
    "AnalysisMethod",
    # Data classes
    "AlignmentParams",
    "ScreenParams",
    "PairwiseMatch",
    "threshold_statistics",
    "Variant",
    "VariantAnalysis",
    "MismatchBucket",
    "DifferentialProfile",
    "PositionResult",
    "LengthResult",
    "ScreenResult",
    "ProgressUpdate",
]
