"""Core nucleotide utilities."""

from oligoscreen.core.iupac import (
    IUPAC_MASKS,
    encode,
    decode,
    union,
    intersects,
    popcount,
    is_subset,
    ambiguity_count,
    pack,
    unpack,
    reverse_complement,
)

__all__ = [
    "IUPAC_MASKS",
    "encode",
    "decode",
    "union",
    "intersects",
    "popcount",
    "is_subset",
    "ambiguity_count",
    "pack",
    "unpack",
    "reverse_complement",
]
