#!/usr/bin/env python3
"""
Borderlands 2 Savegame Parser
=============================

Load pipeline for Borderlands 2 .sav files: checks the digest envelope,
inflates the outer LZO block, parses the inner container, Huffman decodes
the payload and hands it to the schema codec.

File Structure:
--------------
| Layer | Contents                                              |
|-------|-------------------------------------------------------|
| 1     | SHA-1 digest (20 bytes) over everything that follows  |
| 2     | u32 BE uncompressed size + LZO1X block                |
| 3     | Inner container: size, "WSG", version, hash, size     |
| 4     | Huffman coded block (in-band tree + symbols)          |
| 5     | WillowTwoPlayerSaveGame protobuf payload              |

Pipeline States:
---------------
    UNVALIDATED -> CHECKSUM_VERIFIED -> OUTER_DECOMPRESSED -> INNER_PARSED
                -> HUFFMAN_DECODED -> PAYLOAD_PARSED

Any stage can fail; the raised SaveFileError records the last stage that
succeeded. Nothing is retried and no state is shared between invocations,
so one SaveLoader can be used from several threads.

Error Contract:
--------------
- load() / dump() raise the typed SaveFileError for the failing stage.
- verify() returns False for every SaveFileError, including a missing
  path or wrong extension. OSError from reading an existing, correctly
  named file (permission denied, I/O error) is raised, not swallowed.
- try_load() returns a LoadResult instead of raising SaveFileError.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import sav_huffman
from sav_checksum import SAVE_EXTENSION, is_save_file, read_verified
from sav_container import InnerHeader, parse_inner_container
from sav_errors import OutputExistsError, PipelineStage, SaveFileError
from sav_lzo import MAX_UNCOMPRESSED_SIZE, LZODecompressor, read_outer
from willow_save import WillowSaveCodec

_log = logging.getLogger(__name__)


class _Invocation:
    """Tracks the stage reached by one pipeline run"""

    def __init__(self, path: str, log: logging.Logger):
        self.path = path
        self.log = log
        self.stage = PipelineStage.UNVALIDATED

    def advance(self, stage: PipelineStage, detail: str = ""):
        self.stage = stage
        self.log.debug("%s: %s %s", self.path, stage.value, detail)

    def fail(self, error: SaveFileError):
        if error.path is None:
            error.path = self.path
        error.stage = self.stage
        self.log.warning("%s: failed after %s: %s", self.path, self.stage.value, error.message)
        self.stage = PipelineStage.FAILED


@dataclass
class LoadResult:
    """Tagged outcome of try_load(): exactly one of record / error is set"""
    path: str
    stage: PipelineStage
    record: Any = None
    error: Optional[SaveFileError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SaveFile:
    """A loaded save: where it came from, its container header and payload"""
    path: str
    header: InnerHeader
    record: Any

    # Protobuf messages are unhashable
    __hash__ = None

    @classmethod
    def open(cls, path: str, loader: Optional["SaveLoader"] = None) -> "SaveFile":
        if loader is None:
            loader = SaveLoader()
        header, record = loader.load_with_header(path)
        return cls(path=os.path.abspath(path), header=header, record=record)

    def to_json(self, codec: Optional[WillowSaveCodec] = None) -> str:
        return (codec or WillowSaveCodec()).to_json(self.record)


class SaveLoader:
    """
    Borderlands 2 save loader.

    Args:
        extension: Required save file extension
        max_uncompressed_size: Ceiling for the declared outer and inner sizes
        codec: Payload codec with parse(bytes) and to_json(record)
        logger: Logger to report stage transitions to (module logger if None)
    """

    def __init__(self, extension: str = SAVE_EXTENSION,
                 max_uncompressed_size: int = MAX_UNCOMPRESSED_SIZE,
                 codec: Optional[WillowSaveCodec] = None,
                 logger: Optional[logging.Logger] = None):
        self.extension = extension
        self.max_uncompressed_size = max_uncompressed_size
        self.decompressor = LZODecompressor(max_uncompressed_size)
        self.codec = codec if codec is not None else WillowSaveCodec()
        self.logger = logger if logger is not None else _log

    # -------------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------------

    def _decode(self, run: _Invocation) -> Tuple[InnerHeader, bytes]:
        path = run.path

        body = read_verified(path, self.extension)
        run.advance(PipelineStage.CHECKSUM_VERIFIED, f"({len(body)} bytes after digest)")

        outer = read_outer(body, self.decompressor, path=path)
        del body
        run.advance(PipelineStage.OUTER_DECOMPRESSED, f"({len(outer)} bytes)")

        header, huffman_block = parse_inner_container(
            outer, path=path, max_uncompressed_size=self.max_uncompressed_size)
        del outer
        run.advance(PipelineStage.INNER_PARSED,
                    f"(version {header.version}, {header.endianness.name} endian, "
                    f"hash 0x{header.hash:08X})")

        payload = sav_huffman.decode(huffman_block, header.inner_uncompressed_size, path=path,
                                     max_output_size=self.max_uncompressed_size)
        del huffman_block
        run.advance(PipelineStage.HUFFMAN_DECODED, f"({len(payload)} bytes)")
        return header, payload

    def _run(self, path: str, parse: bool) -> Tuple[InnerHeader, Any]:
        run = _Invocation(os.fspath(path), self.logger)
        try:
            header, payload = self._decode(run)
            if not parse:
                return header, payload
            record = self.codec.parse(payload)
            del payload
            run.advance(PipelineStage.PAYLOAD_PARSED)
        except SaveFileError as e:
            run.fail(e)
            raise
        return header, record

    def decode_payload(self, path: str) -> bytes:
        """
        Run the pipeline up to the Huffman stage.

        Returns:
            Raw payload bytes as handed to the schema codec
        """
        return self._run(path, parse=False)[1]

    def load_with_header(self, path: str) -> Tuple[InnerHeader, Any]:
        """Like load(), also returning the inner container header"""
        return self._run(path, parse=True)

    def load(self, path: str):
        """
        Load and decode a save file.

        Args:
            path: Path to a .sav file

        Returns:
            Parsed WillowTwoPlayerSaveGame record

        Raises:
            SaveFileError: Typed error for the stage that failed
            OSError: The file exists but could not be read
        """
        record = self._run(path, parse=True)[1]
        self.logger.info("Loaded save %s", path)
        return record

    def try_load(self, path: str) -> LoadResult:
        """Load without raising SaveFileError"""
        try:
            record = self.load(path)
        except SaveFileError as e:
            return LoadResult(path=os.fspath(path), stage=PipelineStage.FAILED, error=e)
        return LoadResult(path=os.fspath(path), stage=PipelineStage.PAYLOAD_PARSED, record=record)

    def verify(self, path: str) -> bool:
        """
        Check that a save decodes through every stage.

        Returns:
            True if the whole chain succeeds, False on any SaveFileError

        Raises:
            OSError: The file exists but could not be read
        """
        try:
            self._run(path, parse=True)
        except SaveFileError:
            return False
        return True

    def is_save_file(self, path: str) -> bool:
        """Digest-only check; never raises"""
        return is_save_file(path, self.extension)

    def dump(self, path: str, out_path: str) -> None:
        """
        Decode a save and write it as pretty-printed UTF-8 JSON.

        Args:
            path: Path to a .sav file
            out_path: JSON destination; must not exist yet

        Raises:
            OutputExistsError: out_path already exists (nothing is written)
            SaveFileError: Typed error for the stage that failed
        """
        if os.path.lexists(out_path):
            raise OutputExistsError("Refusing to overwrite existing dump target", path=os.fspath(out_path))

        record = self.load(path)
        document = self.codec.to_json(record)

        try:
            with open(out_path, 'x', encoding='utf-8') as f:
                f.write(document)
        except FileExistsError:
            raise OutputExistsError(
                "Refusing to overwrite existing dump target", path=os.fspath(out_path)) from None
        self.logger.info("Dumped %s to %s", path, out_path)


# =============================================================================
# Module-level convenience functions
# =============================================================================

def verify(path: str) -> bool:
    return SaveLoader().verify(path)


def load(path: str):
    return SaveLoader().load(path)


def try_load(path: str) -> LoadResult:
    return SaveLoader().try_load(path)


def dump(path: str, out_path: str) -> None:
    SaveLoader().dump(path, out_path)


def decode_payload(path: str) -> bytes:
    return SaveLoader().decode_payload(path)
