"""FASTA input and results persistence."""

from oligoscreen.io.fasta import FastaFormatError, load_fasta, load_template
from oligoscreen.io.results import (
    ResultsFileError,
    auto_save,
    load_results,
    sanitize_filename,
    save_results,
)

__all__ = [
    "FastaFormatError",
    "load_fasta",
    "load_template",
    "ResultsFileError",
    "auto_save",
    "load_results",
    "sanitize_filename",
    "save_results",
]
