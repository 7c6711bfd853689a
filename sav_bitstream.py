#!/usr/bin/env python3
"""
MSB-first Bit Reader
====================

Sequential cursor over a byte buffer used by the Huffman decoder.

Bit Order:
----------
Bits are taken from the most significant bit of each byte down to the
least significant one, then the cursor moves on to the next byte:

    byte 0x A5 = 1 0 1 0 0 1 0 1
                 ^ bit offset 0  ^ bit offset 7

A read past the last available bit raises EOFError and leaves the cursor
where it was, so the caller can report the exact bit offset.
"""


class BitReader:
    """Stateful MSB-first reader over an immutable byte buffer"""

    def __init__(self, data: bytes, bit_offset: int = 0):
        self.data = bytes(data)
        self.bit_length = len(self.data) * 8
        if bit_offset < 0 or bit_offset > self.bit_length:
            raise ValueError(f"Bit offset {bit_offset} outside buffer of {self.bit_length} bits")
        self.bit_offset = bit_offset

    @property
    def remaining(self) -> int:
        """Number of bits not yet consumed"""
        return self.bit_length - self.bit_offset

    def read_bit(self) -> int:
        """
        Read a single bit.

        Returns:
            0 or 1

        Raises:
            EOFError: No bits left
        """
        pos = self.bit_offset
        if pos >= self.bit_length:
            raise EOFError(f"Bit stream exhausted at bit {pos}")
        self.bit_offset = pos + 1
        return (self.data[pos >> 3] >> (7 - (pos & 7))) & 1

    def read_byte(self) -> int:
        """
        Read 8 bits as one byte value, first bit read is the MSB.

        Raises:
            EOFError: Fewer than 8 bits left (cursor is not moved)
        """
        pos = self.bit_offset
        if pos + 8 > self.bit_length:
            raise EOFError(f"Need 8 bits at bit {pos}, only {self.bit_length - pos} left")

        shift = pos & 7
        index = pos >> 3
        if shift == 0:
            value = self.data[index]
        else:
            # Byte straddles two source bytes
            pair = (self.data[index] << 8) | self.data[index + 1]
            value = (pair >> (8 - shift)) & 0xFF

        self.bit_offset = pos + 8
        return value

    def __repr__(self):
        return f"BitReader(bit_offset={self.bit_offset}, bit_length={self.bit_length})"
