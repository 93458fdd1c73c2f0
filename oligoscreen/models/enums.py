"""
Core enumerations for Oligoscreen.
"""

from enum import Enum


class AnalysisMethod(str, Enum):
    """Strategy used to build covering variants at one window."""
    NO_AMBIGUITIES = "no_ambiguities"        # Exact distinct sequences only
    FIXED_AMBIGUITIES = "fixed_ambiguities"  # Greedy cover, bounded ambiguity budget
    INCREMENTAL = "incremental"              # Cover X% of what remains, per round

    @classmethod
    def from_string(cls, value: str) -> "AnalysisMethod":
        """Parse a method name, accepting short aliases."""
        aliases = {
            "none": cls.NO_AMBIGUITIES,
            "exact": cls.NO_AMBIGUITIES,
            "fixed": cls.FIXED_AMBIGUITIES,
            "inc": cls.INCREMENTAL,
        }
        normalized = value.strip().lower().replace("-", "_")
        for method in cls:
            if method.value == normalized:
                return method
        if normalized in aliases:
            return aliases[normalized]
        raise ValueError(f"Unknown analysis method: {value}")
