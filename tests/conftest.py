"""Shared pytest fixtures for the save pipeline tests."""

import pytest

from save_builder import build_save, sample_record


@pytest.fixture()
def record():
    """A populated WillowTwoPlayerSaveGame message."""
    return sample_record()


@pytest.fixture()
def payload(record) -> bytes:
    return record.SerializeToString()


@pytest.fixture()
def write_save(tmp_path):
    """Write raw bytes to a file under tmp_path and return its path."""

    def _write(data: bytes, name: str = "Save0001.sav") -> str:
        path = tmp_path / name
        path.write_bytes(data)
        return str(path)

    return _write


@pytest.fixture()
def good_save(write_save, payload) -> str:
    """Path to an intact version-2 (little-endian) save."""
    return write_save(build_save(payload))
