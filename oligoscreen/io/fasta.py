"""
FASTA loading for templates, reference panels and exclusivity sets.

Uses pyfaidx for indexed access. Sequences are upper-cased, alignment gap
characters are stripped and U is read as T. Screening inputs must be plain
A/C/G/T; IUPAC ambiguity codes are only accepted with ``allow_ambiguity``.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Tuple, Union

from pyfaidx import Fasta, FastaIndexingError

from oligoscreen.core.iupac import IUPAC_MASKS, UNAMBIGUOUS_BASES

logger = logging.getLogger(__name__)

GAP_CHARACTERS = "-."


class FastaFormatError(ValueError):
    """Raised when a FASTA file is missing, malformed, or holds invalid bases."""
    pass


def clean_sequence(sequence: str, name: str = "sequence", allow_ambiguity: bool = False) -> str:
    """Normalize one sequence; raise FastaFormatError on invalid characters."""
    cleaned = "".join(sequence.split()).upper().replace("U", "T")
    for gap in GAP_CHARACTERS:
        cleaned = cleaned.replace(gap, "")
    allowed = set(IUPAC_MASKS) if allow_ambiguity else UNAMBIGUOUS_BASES
    invalid = sorted(set(cleaned) - allowed)
    if invalid:
        kind = "nucleotide" if allow_ambiguity else "non-ACGT"
        raise FastaFormatError(f"{name}: invalid {kind} characters {''.join(invalid)!r}")
    return cleaned


def load_fasta(path: Union[str, Path], allow_ambiguity: bool = False) -> Dict[str, str]:
    """
    Load every record of a FASTA file, in file order.

    Raises:
        FastaFormatError: If the file is missing, unindexable, empty, or a
            record is empty or contains invalid characters.
    """
    path = Path(path)
    if not path.exists():
        raise FastaFormatError(f"FASTA file not found: {path}")

    try:
        fasta = Fasta(str(path), as_raw=True, build_index=True)
    except (FastaIndexingError, ValueError) as e:
        raise FastaFormatError(f"Failed to read {path}: {e}") from e

    records: Dict[str, str] = {}
    try:
        for name in fasta.keys():
            sequence = clean_sequence(fasta[name][:], name, allow_ambiguity)
            if not sequence:
                raise FastaFormatError(f"{name}: empty sequence")
            records[name] = sequence
    finally:
        fasta.close()

    if not records:
        raise FastaFormatError(f"No sequences found in {path}")

    logger.info(f"Loaded {len(records)} sequence(s) from {path.name}")
    return records


def load_template(path: Union[str, Path]) -> Tuple[str, str]:
    """Load the first record of a FASTA file as (name, sequence)."""
    records = load_fasta(path)
    if len(records) > 1:
        logger.warning(f"{Path(path).name} holds {len(records)} records; using the first")
    return next(iter(records.items()))
