#!/usr/bin/env python3
"""
Inner Container Parser
======================

Parses the container found inside the decompressed outer block and
isolates its Huffman coded payload.

Container Structure:
-------------------
| Offset | Size     | Field                  | Byte order           |
|--------|----------|------------------------|----------------------|
| 0x00   | 4 bytes  | total_size             | big-endian           |
| 0x04   | 3 bytes  | magic ("WSG")          | n/a, not validated   |
| 0x07   | 4 bytes  | version                | little-endian        |
| 0x0B   | 4 bytes  | hash (CRC-32, unused)  | derived from version |
| 0x0F   | 4 bytes  | inner_uncompressed_size| derived from version |
| 0x13   | variable | Huffman coded block    |                      |

Derived Endianness:
------------------
version == 2 means the hash and size fields are little-endian, any other
version means big-endian. The version field itself is always read as
little-endian. This is a quirk of the format and is kept as-is.

total_size counts everything after itself, so the Huffman block length is
total_size - 3 - 4 - 4 - 4.
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from sav_errors import MalformedContainerError
from sav_lzo import MAX_UNCOMPRESSED_SIZE

logger = logging.getLogger(__name__)

MAGIC_SIZE = 3
INNER_HEADER_SIZE = 4 + MAGIC_SIZE + 4 + 4 + 4
INNER_SIZE_OVERHEAD = MAGIC_SIZE + 4 + 4 + 4
LITTLE_ENDIAN_VERSION = 2


class Endian(Enum):
    BIG = '>'
    LITTLE = '<'

    @classmethod
    def for_version(cls, version: int) -> "Endian":
        """Byte order of the hash and size fields for a container version"""
        return cls.LITTLE if version == LITTLE_ENDIAN_VERSION else cls.BIG


def uint32_to_int32(value: int) -> int:
    """Reinterpret an unsigned 32-bit value as signed"""
    return value - 0x100000000 if value & 0x80000000 else value


class ByteCursor:
    """Forward-only reader over a byte buffer"""

    def __init__(self, data: bytes):
        self.data = data
        self.pos = 0

    @property
    def remaining(self) -> int:
        return len(self.data) - self.pos

    def read(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise MalformedContainerError(
                f"Container truncated reading {what}: need {size} bytes at offset "
                f"0x{self.pos:X}, {self.remaining} left")
        chunk = self.data[self.pos:self.pos + size]
        self.pos += size
        return chunk

    def read_uint32(self, endian: Endian, what: str) -> int:
        return struct.unpack(endian.value + 'I', self.read(4, what))[0]

    def read_int32(self, endian: Endian, what: str) -> int:
        return struct.unpack(endian.value + 'i', self.read(4, what))[0]


@dataclass
class InnerHeader:
    """Header of the inner container"""
    total_size: int
    magic: bytes
    version: int
    endianness: Endian
    hash: int
    inner_uncompressed_size: int

    @property
    def inner_compressed_size(self) -> int:
        """Length of the Huffman block; negative for a malformed header"""
        return uint32_to_int32(self.total_size) - INNER_SIZE_OVERHEAD

    def __repr__(self):
        return (f"InnerHeader(total_size={self.total_size}, magic={self.magic!r}, "
                f"version={self.version}, endianness={self.endianness.name}, "
                f"hash=0x{self.hash:08X}, inner_uncompressed_size={self.inner_uncompressed_size})")


def read_inner_header(cursor: ByteCursor) -> InnerHeader:
    """
    Read the header fields in file order, advancing the cursor by 19 bytes.

    Raises:
        MalformedContainerError: Fewer than 19 bytes available
    """
    total_size = cursor.read_uint32(Endian.BIG, "total_size")
    magic = cursor.read(MAGIC_SIZE, "magic")
    version = cursor.read_uint32(Endian.LITTLE, "version")
    endianness = Endian.for_version(version)
    hash_value = cursor.read_uint32(endianness, "hash")
    inner_uncompressed_size = cursor.read_int32(endianness, "inner_uncompressed_size")

    return InnerHeader(
        total_size=total_size,
        magic=magic,
        version=version,
        endianness=endianness,
        hash=hash_value,
        inner_uncompressed_size=inner_uncompressed_size,
    )


def parse_inner_container(decompressed: bytes, path: Optional[str] = None,
                          max_uncompressed_size: int = MAX_UNCOMPRESSED_SIZE
                          ) -> Tuple[InnerHeader, bytes]:
    """
    Parse the inner container and cut out its Huffman block.

    Args:
        decompressed: Decompressed outer block
        path: Save path, only used to annotate errors
        max_uncompressed_size: Ceiling for inner_uncompressed_size

    Returns:
        (InnerHeader, huffman_block) where len(huffman_block) ==
        header.inner_compressed_size

    Raises:
        MalformedContainerError: Truncated header, negative or oversized
                                 sizes, or a Huffman block longer than the
                                 data left
    """
    cursor = ByteCursor(decompressed)
    try:
        header = read_inner_header(cursor)

        logger.debug("%r", header)

        compressed_size = header.inner_compressed_size
        if compressed_size < 0:
            raise MalformedContainerError(
                f"Inner container total_size {header.total_size} is smaller than "
                f"its {INNER_SIZE_OVERHEAD}-byte header")
        if header.inner_uncompressed_size < 0:
            raise MalformedContainerError(
                f"Negative inner uncompressed size: {header.inner_uncompressed_size}")
        if header.inner_uncompressed_size > max_uncompressed_size:
            raise MalformedContainerError(
                f"Inner uncompressed size {header.inner_uncompressed_size} exceeds the "
                f"{max_uncompressed_size}-byte limit")

        huffman_block = cursor.read(compressed_size, "Huffman block")
    except MalformedContainerError as e:
        e.path = path
        raise

    if cursor.remaining:
        logger.debug("Ignoring %d trailing bytes after inner container", cursor.remaining)
    return header, huffman_block


def parse_inner(decompressed: bytes, path: Optional[str] = None,
                max_uncompressed_size: int = MAX_UNCOMPRESSED_SIZE) -> Tuple[bytes, int]:
    """
    Parse the inner container.

    Returns:
        (huffman_block, inner_uncompressed_size)
    """
    header, huffman_block = parse_inner_container(
        decompressed, path=path, max_uncompressed_size=max_uncompressed_size)
    return huffman_block, header.inner_uncompressed_size
