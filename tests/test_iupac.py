"""
Tests for the IUPAC nucleotide codec.
"""

import pytest

from oligoscreen.core.iupac import (
    A, C, G, T, N,
    IUPAC_MASKS,
    add_codon_spacing,
    ambiguity_count,
    contains_any_base,
    covers,
    decode,
    encode,
    encode_sequence,
    format_sequence,
    intersects,
    is_subset,
    nibble_mask,
    pack,
    packed_ambiguity,
    packed_covers,
    popcount,
    reverse_complement,
    union,
    unpack,
)


class TestMaskAlgebra:
    """Single-position mask operations."""

    def test_bases_are_single_bits(self) -> None:
        assert (A, C, G, T) == (1, 2, 4, 8)
        assert N == 15

    def test_every_code_decodes_back(self) -> None:
        for symbol, mask in IUPAC_MASKS.items():
            assert encode(symbol) == mask
            assert decode(mask) == symbol

    def test_lowercase_and_uracil(self) -> None:
        assert encode("g") == G
        assert encode("U") == T

    def test_invalid_symbol_raises(self) -> None:
        with pytest.raises(ValueError):
            encode("X")
        with pytest.raises(ValueError):
            decode(0)

    def test_union_builds_ambiguity_codes(self) -> None:
        assert decode(union(A, G)) == "R"
        assert decode(union(C, T)) == "Y"
        assert decode(union(union(A, C), union(G, T))) == "N"

    def test_intersects(self) -> None:
        assert intersects(encode("R"), A)
        assert not intersects(encode("R"), C)
        assert intersects(N, T)

    def test_popcount(self) -> None:
        assert popcount(A) == 1
        assert popcount(encode("W")) == 2
        assert popcount(encode("B")) == 3
        assert popcount(N) == 4

    def test_is_subset(self) -> None:
        assert is_subset(A, encode("W"))
        assert not is_subset(encode("W"), A)
        assert is_subset(encode("S"), N)


class TestSequences:
    """Whole-sequence helpers."""

    def test_ambiguity_count(self) -> None:
        assert ambiguity_count(encode_sequence("ACGT")) == 0
        assert ambiguity_count(encode_sequence("ACGW")) == 1
        assert ambiguity_count(encode_sequence("NCGR")) == 4

    def test_covers(self) -> None:
        consensus = encode_sequence("ACGW")
        assert covers(consensus, encode_sequence("ACGA"))
        assert covers(consensus, encode_sequence("ACGT"))
        assert not covers(consensus, encode_sequence("ACGC"))

    def test_reverse_complement(self) -> None:
        assert reverse_complement("ACGT") == "ACGT"
        assert reverse_complement("AACG") == "CGTT"
        assert reverse_complement("ACGTRYN") == "NRYACGT"
        assert reverse_complement("acg") == "CGT"


class TestPacked:
    """Bit-packed consensus operations."""

    def test_pack_layout(self) -> None:
        # Position 0 sits in the lowest nibble
        assert pack("AC") == A | (C << 4)
        assert unpack(pack("ACGTRYKMSWBDHVN"), 15) == "ACGTRYKMSWBDHVN"

    def test_packed_ambiguity_matches_mask_count(self) -> None:
        for sequence in ["ACGT", "ACGW", "NNAC", "BDHV"]:
            assert packed_ambiguity(pack(sequence), len(sequence)) == ambiguity_count(
                encode_sequence(sequence)
            )

    def test_packed_union_and_cover(self) -> None:
        consensus = pack("ACGT") | pack("ACGA")
        assert unpack(consensus, 4) == "ACGW"
        assert packed_covers(consensus, pack("ACGA"))
        assert not packed_covers(consensus, pack("ACGG"))

    def test_contains_any_base(self) -> None:
        low_bits = nibble_mask(3)
        assert contains_any_base(pack("ANA"), low_bits)
        assert not contains_any_base(pack("AVA"), low_bits)
        assert not contains_any_base(pack("BDH"), low_bits)
        assert contains_any_base(pack("AAN"), low_bits)

    def test_nibble_mask(self) -> None:
        assert nibble_mask(0) == 0
        assert nibble_mask(2) == 0x11


class TestDisplay:
    """Display formatting."""

    def test_codon_spacing(self) -> None:
        assert add_codon_spacing("ACGTACGT") == "ACG TAC GT"
        assert add_codon_spacing("ACG") == "ACG"
        assert add_codon_spacing("") == ""

    def test_format_sequence(self) -> None:
        assert format_sequence("AACGTT") == "AACGTT"
        assert format_sequence("AACG", reverse_comp=True) == "CGTT"
        assert format_sequence("AACGTA", reverse_comp=True, codon_spacing=True) == "TAC GTT"
