"""Block devices that a dzFS filesystem is stored on."""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import BinaryIO

from .errors import ArgumentError, DiskIOError
from .layout import BLOCK_SIZE


class BlockDevice(ABC):
    """A disk addressed in blocks of ``BLOCK_SIZE`` bytes, block 0 first."""

    @abstractmethod
    def read_block(self, index: int) -> bytes:
        """Return the contents of block ``index``."""

    @abstractmethod
    def write_block(self, index: int, data: bytes) -> None:
        """Replace the contents of block ``index``."""

    @abstractmethod
    def total_blocks(self) -> int:
        """Return the number of blocks on the device."""

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.total_blocks():
            raise DiskIOError(f"block {index} is out of range")

    @staticmethod
    def _check_data(data: bytes) -> None:
        if len(data) != BLOCK_SIZE:
            raise ArgumentError(f"block must be {BLOCK_SIZE} bytes, got {len(data)}")


class MemoryBlockDevice(BlockDevice):
    """A zero-filled disk held in memory."""

    def __init__(self, blocks: int) -> None:
        if blocks < 0:
            raise ArgumentError("block count must not be negative")
        self._blocks = blocks
        self._data = bytearray(blocks * BLOCK_SIZE)

    def read_block(self, index: int) -> bytes:
        self._check_index(index)
        start = index * BLOCK_SIZE
        return bytes(self._data[start:start + BLOCK_SIZE])

    def write_block(self, index: int, data: bytes) -> None:
        self._check_index(index)
        self._check_data(data)
        start = index * BLOCK_SIZE
        self._data[start:start + BLOCK_SIZE] = data

    def total_blocks(self) -> int:
        return self._blocks


class FileBlockDevice(BlockDevice):
    """A disk stored in a file, starting ``offset`` bytes into it.

    Without ``blocks`` the size is taken from the file. With ``create`` a
    missing file is created and grown to hold ``blocks`` blocks.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        blocks: int | None = None,
        offset: int = 0,
        create: bool = False,
    ) -> None:
        if offset < 0:
            raise ArgumentError("offset must not be negative")
        if blocks is not None and blocks < 0:
            raise ArgumentError("block count must not be negative")
        path = os.fspath(path)
        mode = "w+b" if create and not os.path.exists(path) else "r+b"
        self._file: BinaryIO = open(path, mode)
        self._offset = offset
        size = os.fstat(self._file.fileno()).st_size
        if blocks is None:
            blocks = max(0, (size - offset) // BLOCK_SIZE)
        elif create and size < offset + blocks * BLOCK_SIZE:
            self._file.truncate(offset + blocks * BLOCK_SIZE)
        self._blocks = blocks

    def read_block(self, index: int) -> bytes:
        self._check_index(index)
        try:
            self._file.seek(self._offset + index * BLOCK_SIZE)
            data = self._file.read(BLOCK_SIZE)
        except (OSError, ValueError) as exc:
            raise DiskIOError(str(exc)) from exc
        return data.ljust(BLOCK_SIZE, b"\0")

    def write_block(self, index: int, data: bytes) -> None:
        self._check_index(index)
        self._check_data(data)
        try:
            self._file.seek(self._offset + index * BLOCK_SIZE)
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError) as exc:
            raise DiskIOError(str(exc)) from exc

    def total_blocks(self) -> int:
        return self._blocks

    def close(self) -> None:
        self._file.close()

    def __enter__(self) -> FileBlockDevice:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()