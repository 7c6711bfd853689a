#!/usr/bin/env python3
"""
Outer LZO1X Block Reader
========================

The file body after the digest is one length-prefixed LZO1X block:

| Offset | Size     | Type                                     |
|--------|----------|------------------------------------------|
| 0x00   | 4 bytes  | Uncompressed size (u32, big-endian)      |
| 0x04   | variable | LZO1X compressed stream (no lzo header)  |

Decompression itself is done by python-lzo. Its failures are reported as a
single exception type whose message ends with the numeric LZO result code
("Compressed data violation -4"); that code is mapped back onto
DecompressionReason so callers can tell an input overrun from an output
overrun.

python-lzo does not say where a failing decode stopped, so `offset` is only
known for short output, where it is the number of bytes produced.
"""

import logging
import re
import struct
from dataclasses import dataclass
from typing import Optional

import lzo

from sav_errors import DecompressionError, DecompressionReason

logger = logging.getLogger(__name__)

OUTER_SIZE_FIELD = 4
MAX_UNCOMPRESSED_SIZE = 64 * 1024 * 1024
INT32_MAX = 0x7FFFFFFF

_RESULT_CODE = re.compile(r"(-?\d+)\s*$")


@dataclass
class OuterBlock:
    """Length-prefixed compressed region following the digest"""
    declared_uncompressed_size: int
    compressed_bytes: bytes

    @classmethod
    def parse(cls, body: bytes, path: Optional[str] = None) -> "OuterBlock":
        """
        Split the body into declared size and compressed stream.

        Raises:
            DecompressionError: Body too short to hold the size field
        """
        if len(body) < OUTER_SIZE_FIELD:
            raise DecompressionError(DecompressionReason.INVALID_ARGUMENT, offset=0, path=path)
        size = struct.unpack('>I', body[:OUTER_SIZE_FIELD])[0]
        return cls(declared_uncompressed_size=size, compressed_bytes=body[OUTER_SIZE_FIELD:])


def reason_from_lzo_error(error: Exception) -> DecompressionReason:
    """Recover the LZO result code from a python-lzo error message"""
    match = _RESULT_CODE.search(str(error))
    if match is None:
        return DecompressionReason.ERROR
    return DecompressionReason.from_code(int(match.group(1)))


class LZODecompressor:
    """
    LZO1X decompressor for the outer save block.

    Args:
        max_uncompressed_size: Declared sizes above this are refused before
                               any buffer is allocated
    """

    def __init__(self, max_uncompressed_size: int = MAX_UNCOMPRESSED_SIZE):
        self.max_uncompressed_size = max_uncompressed_size

    def decompress(self, compressed: bytes, expected_size: int,
                   path: Optional[str] = None) -> bytes:
        """
        Decompress exactly `expected_size` bytes.

        Args:
            compressed: Raw LZO1X stream
            expected_size: Output length the stream must produce
            path: Save path, only used to annotate errors

        Returns:
            Decompressed bytes, len == expected_size

        Raises:
            DecompressionError: Any decoder failure or a size mismatch
        """
        if expected_size > INT32_MAX:
            raise DecompressionError(DecompressionReason.INVALID_ARGUMENT, offset=0, path=path)
        if expected_size > self.max_uncompressed_size:
            raise DecompressionError(DecompressionReason.OUT_OF_MEMORY, offset=0, path=path)

        try:
            output = lzo.decompress(bytes(compressed), False, expected_size)
        except MemoryError:
            raise DecompressionError(DecompressionReason.OUT_OF_MEMORY, path=path) from None
        except OverflowError:
            raise DecompressionError(DecompressionReason.INVALID_ARGUMENT, path=path) from None
        except lzo.error as e:
            reason = reason_from_lzo_error(e)
            logger.debug("python-lzo rejected block: %s", e)
            raise DecompressionError(reason, path=path) from e

        # Headerless decompression returns whatever the stream produced
        if len(output) != expected_size:
            raise DecompressionError(
                DecompressionReason.OUTPUT_NOT_CONSUMED, offset=len(output), path=path)
        return output


def read_outer(body: bytes, decompressor: Optional[LZODecompressor] = None,
               path: Optional[str] = None) -> bytes:
    """
    Read the outer block from the bytes following the digest.

    Args:
        body: File bytes after the 20-byte digest
        decompressor: LZODecompressor to use (default limits if None)
        path: Save path, only used to annotate errors

    Returns:
        Decompressed outer block (declared_uncompressed_size bytes)

    Raises:
        DecompressionError: Missing size field or failed decompression
    """
    if decompressor is None:
        decompressor = LZODecompressor()

    block = OuterBlock.parse(body, path=path)
    logger.debug("Outer block: declared %d bytes, %d compressed bytes",
                 block.declared_uncompressed_size, len(block.compressed_bytes))
    return decompressor.decompress(block.compressed_bytes, block.declared_uncompressed_size, path=path)
