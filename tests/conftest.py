"""
Test configuration and fixtures for Oligoscreen.
"""

import pytest
from pathlib import Path
from typing import Callable, Dict

from oligoscreen.models.enums import AnalysisMethod
from oligoscreen.models.data_classes import AlignmentParams, ScreenParams


@pytest.fixture
def sample_template() -> str:
    """Template whose first 4-mer window is ACGT."""
    return "ACGTACGTAC"


@pytest.fixture
def sample_references() -> Dict[str, str]:
    """Two exact hits and one single-mismatch hit for the ACGT window."""
    return {
        "ref1": "ACGTGG",
        "ref2": "ACGAGG",
        "ref3": "ACGTGG",
    }


@pytest.fixture
def sample_exclusivity() -> Dict[str, str]:
    """One exact, one single-mismatch and one unmatched off-target."""
    return {
        "off1": "ACGTGG",
        "off2": "ACGAGG",
        "off3": "TTTTTTTT",
    }


@pytest.fixture
def alignment_params() -> AlignmentParams:
    return AlignmentParams(max_mismatches=1)


@pytest.fixture
def screen_params() -> ScreenParams:
    """Single oligo length of 4 over the sample template."""
    return ScreenParams(
        method=AnalysisMethod.NO_AMBIGUITIES,
        min_oligo_length=4,
        max_oligo_length=4,
        coverage_threshold=95.0,
    )


@pytest.fixture
def write_fasta(tmp_path: Path) -> Callable[..., Path]:
    """Write name -> sequence records to a FASTA file under tmp_path."""
    def _write(file_name: str, records: Dict[str, str]) -> Path:
        path = tmp_path / file_name
        lines = []
        for name, sequence in records.items():
            lines.append(f">{name}")
            lines.append(sequence)
        path.write_text("\n".join(lines) + "\n")
        return path
    return _write
