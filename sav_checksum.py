#!/usr/bin/env python3
"""
SHA-1 Digest Envelope
=====================

Every Borderlands 2 save starts with a 20-byte SHA-1 digest of the rest of
the file:

| Offset | Size     | Contents                                |
|--------|----------|-----------------------------------------|
| 0x0000 | 20 bytes | SHA-1 of bytes [20:]                    |
| 0x0014 | 4 bytes  | Outer uncompressed size (big-endian)    |
| 0x0018 | variable | LZO1X compressed outer block            |

is_save_file() is the cheap gate: it never raises and only answers whether
a path looks like an intact save. read_verified() is what the load pipeline
uses; it raises typed errors instead.
"""

import hashlib
import os
from typing import Tuple

from sav_errors import ChecksumMismatchError, FileAccessError

SAVE_EXTENSION = ".sav"
DIGEST_SIZE = 20


def sha1(data: bytes) -> bytes:
    """SHA-1 digest (20 bytes) of data"""
    return hashlib.sha1(data).digest()


def split_digest(raw: bytes) -> Tuple[bytes, bytes]:
    """
    Split raw file bytes into (digest, body).

    Raises:
        ChecksumMismatchError: File is shorter than the digest itself
    """
    if len(raw) < DIGEST_SIZE:
        raise ChecksumMismatchError(
            f"File is {len(raw)} bytes, shorter than the {DIGEST_SIZE}-byte digest")
    return raw[:DIGEST_SIZE], raw[DIGEST_SIZE:]


def digest_matches(digest: bytes, body: bytes) -> bool:
    """Compare the stored digest with SHA-1(body), stopping at the first differing byte"""
    calculated = sha1(body)
    if len(digest) != len(calculated):
        return False
    for expected, actual in zip(digest, calculated):
        if expected != actual:
            return False
    return True


def check_path(path: str, extension: str = SAVE_EXTENSION) -> None:
    """
    Validate the shape of a save path without reading it.

    Raises:
        FileAccessError: Path missing, not a regular file, or wrong extension
    """
    if not os.path.exists(path):
        raise FileAccessError("Save file not found", path=path)
    if not os.path.isfile(path):
        raise FileAccessError("Save path is not a regular file", path=path)
    if os.path.splitext(path)[1] != extension:
        raise FileAccessError(f"Save file must have the '{extension}' extension", path=path)


def read_verified(path: str, extension: str = SAVE_EXTENSION) -> bytes:
    """
    Read a save file and check its digest envelope.

    Args:
        path: Path to a .sav file
        extension: Required file extension

    Returns:
        File body after the digest (outer size + compressed block)

    Raises:
        FileAccessError: Bad path shape
        ChecksumMismatchError: Digest missing or wrong
        OSError: The file could not be read
    """
    check_path(path, extension)

    with open(path, 'rb') as f:
        raw = f.read()

    try:
        digest, body = split_digest(raw)
    except ChecksumMismatchError as e:
        e.path = path
        raise
    del raw

    if not digest_matches(digest, body):
        raise ChecksumMismatchError("SHA-1 checksum invalid", path=path)
    return body


def is_save_file(path: str, extension: str = SAVE_EXTENSION) -> bool:
    """
    Check whether `path` is an intact save file.

    Returns False (never raises) for missing paths, non-regular files,
    wrong extensions, unreadable files, files shorter than the digest, and
    digest mismatches.
    """
    try:
        read_verified(path, extension)
    except (FileAccessError, ChecksumMismatchError, OSError):
        return False
    return True
