#!/usr/bin/env python3
"""
Borderlands 2 Save Errors
=========================

Error taxonomy shared by every stage of the save decode pipeline.

Hierarchy:
----------
    SaveFileError
    ├── SaveValidationError        (the caller handed us the wrong thing)
    │   ├── FileAccessError        missing / non-regular / wrong extension
    │   ├── ChecksumMismatchError  SHA-1 digest envelope does not match
    │   └── OutputExistsError      dump target already present
    └── SaveCorruptionError        (the file itself is damaged)
        ├── DecompressionError     outer LZO block failed to inflate
        ├── MalformedContainerError inner header size arithmetic is off
        ├── HuffmanDecodeError     bit stream exhausted / bad tree shape
        └── PayloadParseError      schema codec rejected the payload

Every error carries the path being processed (when known) and the
PipelineStage the load had reached before it failed.
"""

from enum import Enum
from typing import Optional


# =============================================================================
# Pipeline stages
# =============================================================================

class PipelineStage(Enum):
    """States of a single load invocation, in order"""
    UNVALIDATED = "unvalidated"
    CHECKSUM_VERIFIED = "checksum_verified"
    OUTER_DECOMPRESSED = "outer_decompressed"
    INNER_PARSED = "inner_parsed"
    HUFFMAN_DECODED = "huffman_decoded"
    PAYLOAD_PARSED = "payload_parsed"
    FAILED = "failed"


# =============================================================================
# LZO result codes
# =============================================================================

class DecompressionReason(Enum):
    """LZO1X result codes (values match lzoconf.h)"""
    ERROR = -1
    OUT_OF_MEMORY = -2
    NOT_COMPRESSIBLE = -3
    INPUT_OVERRUN = -4
    OUTPUT_OVERRUN = -5
    LOOKBEHIND_OVERRUN = -6
    EOF_NOT_FOUND = -7
    INPUT_NOT_CONSUMED = -8
    NOT_YET_IMPLEMENTED = -9
    INVALID_ARGUMENT = -10
    INVALID_ALIGNMENT = -11
    OUTPUT_NOT_CONSUMED = -12
    INTERNAL_ERROR = -99

    @classmethod
    def from_code(cls, code: int) -> "DecompressionReason":
        """Map a raw LZO result code, falling back to the catch-all ERROR"""
        try:
            return cls(code)
        except ValueError:
            return cls.ERROR

    @property
    def is_input_overrun(self) -> bool:
        """True for failures caused by a compressed stream that ends early"""
        return self in (DecompressionReason.INPUT_OVERRUN, DecompressionReason.EOF_NOT_FOUND)


REASON_MESSAGES = {
    DecompressionReason.ERROR: "LZO decompression failed!",
    DecompressionReason.OUT_OF_MEMORY: "LZO decompression failed! Out of memory!",
    DecompressionReason.NOT_COMPRESSIBLE: "LZO decompression failed! Not compressible!",
    DecompressionReason.INPUT_OVERRUN: "LZO decompression failed! Input overrun!",
    DecompressionReason.OUTPUT_OVERRUN: "LZO decompression failed! Output overrun!",
    DecompressionReason.LOOKBEHIND_OVERRUN: "LZO decompression failed! Lookbehind overrun!",
    DecompressionReason.EOF_NOT_FOUND: "LZO decompression failed! EOF not found!",
    DecompressionReason.INPUT_NOT_CONSUMED: "LZO decompression failed! Input not consumed!",
    DecompressionReason.NOT_YET_IMPLEMENTED: "LZO decompression failed! Not yet implemented!",
    DecompressionReason.INVALID_ARGUMENT: "LZO decompression failed! Invalid argument!",
    DecompressionReason.INVALID_ALIGNMENT: "LZO decompression failed! Invalid alignment!",
    DecompressionReason.OUTPUT_NOT_CONSUMED: "LZO decompression failed! Output not consumed!",
    DecompressionReason.INTERNAL_ERROR: "LZO decompression failed! Internal error!",
}


# =============================================================================
# Exceptions
# =============================================================================

class SaveFileError(Exception):
    """Base class for every failure raised by the save pipeline"""

    def __init__(self, message: str, path: Optional[str] = None,
                 stage: Optional[PipelineStage] = None):
        super().__init__(message)
        self.message = message
        self.path = path
        self.stage = stage

    def __str__(self):
        if self.path:
            return f"{self.message} ({self.path})"
        return self.message


class SaveValidationError(SaveFileError):
    """The input (path, digest, output target) is not acceptable"""


class SaveCorruptionError(SaveFileError):
    """A layer of the container is structurally damaged"""


class FileAccessError(SaveValidationError):
    """Path is missing, not a regular file, or lacks the save extension"""


class ChecksumMismatchError(SaveValidationError):
    """Leading SHA-1 digest does not match the rest of the file"""


class OutputExistsError(SaveValidationError):
    """Refusing to overwrite an existing dump target"""


class DecompressionError(SaveCorruptionError):
    """
    The outer LZO block could not be inflated.

    Attributes:
        reason: DecompressionReason describing the failure
        offset: Output byte offset at which decoding stopped. python-lzo
                does not report this for the failures it raises, so it is
                None for those; it is only set for short output (the number
                of bytes produced) and for size checks made before
                decompressing (0)
        block: Which compressed block failed (always "outer" for BL2 saves)
    """

    def __init__(self, reason: DecompressionReason, offset: Optional[int] = None,
                 path: Optional[str] = None, block: str = "outer"):
        where = offset if offset is not None else "unknown"
        message = f"{REASON_MESSAGES[reason]} Failure at byte: {where}"
        super().__init__(message, path=path)
        self.reason = reason
        self.offset = offset
        self.block = block


class MalformedContainerError(SaveCorruptionError):
    """Inner container header is truncated or its sizes are inconsistent"""


class HuffmanDecodeError(SaveCorruptionError):
    """Huffman tree or symbol stream could not be decoded"""

    def __init__(self, message: str, bit_offset: Optional[int] = None,
                 path: Optional[str] = None):
        super().__init__(message, path=path)
        self.bit_offset = bit_offset


class PayloadParseError(SaveCorruptionError):
    """The payload schema codec rejected the decoded bytes"""
