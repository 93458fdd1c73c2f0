"""
IUPAC nucleotide codec.

Each base is one bit of a 4-bit mask (A=1, C=2, G=4, T=8); an ambiguity code
is the union of the bases it stands for and N is all four bits. Masks are
plain ints, so merging, compatibility and ambiguity degree are single
bitwise operations.

Whole oligos can also be bit-packed into one int, four bits per position with
position 0 in the lowest nibble. Packed consensus building then costs one
``|`` per merge and one ``&`` per coverage test regardless of oligo length.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple


A = 0b0001
C = 0b0010
G = 0b0100
T = 0b1000
N = A | C | G | T

IUPAC_MASKS: Dict[str, int] = {
    "A": A,
    "C": C,
    "G": G,
    "T": T,
    "R": A | G,       # Purine
    "Y": C | T,       # Pyrimidine
    "S": C | G,       # Strong
    "W": A | T,       # Weak
    "K": G | T,       # Keto
    "M": A | C,       # Amino
    "B": C | G | T,   # Not A
    "D": A | G | T,   # Not C
    "H": A | C | T,   # Not G
    "V": A | C | G,   # Not T
    "N": N,           # Any
}

MASK_SYMBOLS: Dict[int, str] = {mask: code for code, mask in IUPAC_MASKS.items()}

# Bit count per 4-bit mask
_POPCOUNT: Tuple[int, ...] = tuple(bin(mask).count("1") for mask in range(16))

# Complement swaps A<->T and C<->G bit positions
_COMPLEMENT: Tuple[int, ...] = tuple(
    ((m & A) << 3) | ((m & T) >> 3) | ((m & C) << 1) | ((m & G) >> 1)
    for m in range(16)
)

UNAMBIGUOUS_BASES = frozenset("ACGT")


# =============================================================================
# Single-mask algebra
# =============================================================================

def encode(symbol: str) -> int:
    """Mask for one IUPAC symbol (case-insensitive, U read as T)."""
    code = symbol.upper()
    if code == "U":
        code = "T"
    try:
        return IUPAC_MASKS[code]
    except KeyError:
        raise ValueError(f"Not an IUPAC nucleotide symbol: {symbol!r}") from None


def decode(mask: int) -> str:
    """IUPAC symbol for a non-empty mask."""
    try:
        return MASK_SYMBOLS[mask]
    except KeyError:
        raise ValueError(f"Not a nucleotide mask: {mask!r}") from None


def union(a: int, b: int) -> int:
    return a | b


def intersects(a: int, b: int) -> bool:
    """True when the two masks share at least one base."""
    return (a & b) != 0


def popcount(mask: int) -> int:
    """Ambiguity degree of one position; 1 means unambiguous."""
    return _POPCOUNT[mask]


def is_subset(mask: int, of: int) -> bool:
    """True when every base of ``mask`` is allowed by ``of``."""
    return (mask & ~of) == 0


def complement(mask: int) -> int:
    return _COMPLEMENT[mask]


# =============================================================================
# Sequences of masks
# =============================================================================

def encode_sequence(sequence: str) -> List[int]:
    return [encode(symbol) for symbol in sequence]


def decode_sequence(masks: Iterable[int]) -> str:
    return "".join(decode(mask) for mask in masks)


def ambiguity_count(masks: Iterable[int]) -> int:
    """Sum of ``popcount - 1`` over all ambiguous positions."""
    return sum(_POPCOUNT[mask] - 1 for mask in masks if _POPCOUNT[mask] > 1)


def covers(consensus: Sequence[int], masks: Sequence[int]) -> bool:
    """True when each position of ``masks`` is contained in the consensus."""
    return all(is_subset(m, c) for m, c in zip(masks, consensus))


def reverse_complement(sequence: str) -> str:
    """Reverse complement of an IUPAC sequence; unknown characters pass through."""
    out = []
    for symbol in reversed(sequence):
        mask = IUPAC_MASKS.get(symbol.upper())
        out.append(symbol if mask is None else MASK_SYMBOLS[_COMPLEMENT[mask]])
    return "".join(out)


# =============================================================================
# Bit-packed sequences
# =============================================================================

def nibble_mask(length: int) -> int:
    """Packed value with only the lowest bit of each of ``length`` nibbles set."""
    return int("1" * length, 16) if length else 0


def pack(sequence: str) -> int:
    """Pack an IUPAC sequence into one int, position 0 in the lowest nibble."""
    packed = 0
    for i, symbol in enumerate(sequence):
        packed |= encode(symbol) << (4 * i)
    return packed


def unpack(packed: int, length: int) -> str:
    return "".join(MASK_SYMBOLS[(packed >> (4 * i)) & N] for i in range(length))


def packed_ambiguity(packed: int, length: int) -> int:
    """Ambiguity count of a packed consensus with no empty positions."""
    return bin(packed).count("1") - length


def packed_covers(consensus: int, packed: int) -> bool:
    return (packed & ~consensus) == 0


def contains_any_base(packed: int, low_bits: int) -> bool:
    """True when some position of a packed sequence is the fully ambiguous N.

    ``low_bits`` is ``nibble_mask(length)`` for the sequence length.
    """
    return (packed & (packed >> 1) & (packed >> 2) & (packed >> 3) & low_bits) != 0


# =============================================================================
# Display
# =============================================================================

def add_codon_spacing(sequence: str) -> str:
    """Insert a space every three bases."""
    return " ".join(sequence[i:i + 3] for i in range(0, len(sequence), 3))


def format_sequence(sequence: str, reverse_comp: bool = False, codon_spacing: bool = False) -> str:
    """Render a sequence for display, optionally reverse-complemented and codon-spaced."""
    result = reverse_complement(sequence) if reverse_comp else sequence
    if codon_spacing:
        result = add_codon_spacing(result)
    return result
