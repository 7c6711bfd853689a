"""Tests for the MSB-first BitReader."""

import pytest

from sav_bitstream import BitReader


class TestReadBit:

    def test_msb_first(self) -> None:
        bits = BitReader(b"\xa5")
        assert [bits.read_bit() for _ in range(8)] == [1, 0, 1, 0, 0, 1, 0, 1]

    def test_crosses_byte_boundary(self) -> None:
        bits = BitReader(b"\x01\x80")
        assert [bits.read_bit() for _ in range(9)] == [0] * 7 + [1, 1]
        assert bits.bit_offset == 9
        assert bits.remaining == 7

    def test_exhausted_raises_and_keeps_cursor(self) -> None:
        bits = BitReader(b"\xff")
        for _ in range(8):
            bits.read_bit()
        with pytest.raises(EOFError):
            bits.read_bit()
        assert bits.bit_offset == 8

    def test_empty_buffer(self) -> None:
        with pytest.raises(EOFError):
            BitReader(b"").read_bit()


class TestReadByte:

    def test_aligned(self) -> None:
        bits = BitReader(b"\x5a\xc3")
        assert bits.read_byte() == 0x5A
        assert bits.read_byte() == 0xC3

    def test_unaligned(self) -> None:
        # 1 | 0100 0001 | 011 0000
        bits = BitReader(bytes([0b10100000, 0b10110000]))
        assert bits.read_bit() == 1
        assert bits.read_byte() == 0x41
        assert bits.bit_offset == 9

    def test_short_read_does_not_move(self) -> None:
        bits = BitReader(b"\xff")
        bits.read_bit()
        with pytest.raises(EOFError):
            bits.read_byte()
        assert bits.bit_offset == 1


def test_start_offset_out_of_range() -> None:
    with pytest.raises(ValueError):
        BitReader(b"\x00", bit_offset=9)
