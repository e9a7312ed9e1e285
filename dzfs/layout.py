"""On-disk layout of dzFS blocks.

Every block is 4096 bytes, little endian. Dnodes start with a packed header
(type byte, 255-byte NUL terminated name, signed 64-bit creation date).
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Iterable

from .errors import ArgumentError, LimitError

MAGIC = b"dzFS"
VERSION = 1
BLOCK_SIZE = 4096
INDIRECT_BLOCK_COUNT = BLOCK_SIZE // 4
MAX_FILENAME = 254
DIRECT_BLOCKS = 956
MAX_DIR_CONTENTS = 957
MAX_FILESIZE = BLOCK_SIZE * (1024 + DIRECT_BLOCKS)
BITSET_COVERED_BLOCKS = BLOCK_SIZE * 8

_SUPERBLOCK = struct.Struct("<4sII")
_HEADER = struct.Struct(f"<B{MAX_FILENAME + 1}sq")
_FILE_FIELDS = struct.Struct(f"<II{DIRECT_BLOCKS}I")
_DIR_FIELDS = struct.Struct(f"<I{MAX_DIR_CONTENTS}I")
_INDIRECT = struct.Struct(f"<{INDIRECT_BLOCK_COUNT}I")


class EntityType(IntEnum):
    """Kind of a dnode."""

    FILE = 1
    FOLDER = 2


def _check_block(data: bytes) -> None:
    if len(data) != BLOCK_SIZE:
        raise ArgumentError(f"block must be {BLOCK_SIZE} bytes, got {len(data)}")


def _pack(layout: struct.Struct, *values: object) -> bytes:
    try:
        return layout.pack(*values)
    except struct.error as exc:
        raise ArgumentError(str(exc)) from exc


def _encode_name(name: str) -> bytes:
    raw = name.encode("utf-8", "surrogateescape")
    if b"\0" in raw:
        raise ArgumentError("name contains a NUL byte")
    if len(raw) > MAX_FILENAME:
        raise LimitError(f"name longer than {MAX_FILENAME} bytes")
    return raw


def _decode_name(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")


def _padded(values: Iterable[int], count: int) -> list[int]:
    entries = list(values)
    if len(entries) > count:
        raise LimitError(f"at most {count} entries fit, got {len(entries)}")
    return entries + [0] * (count - len(entries))


def decode_header(data: bytes) -> tuple[int, str, int]:
    """Return the raw type, name and creation date of a dnode block."""
    _check_block(data)
    entity_type, name, creation_date = _HEADER.unpack_from(data, 0)
    return entity_type, _decode_name(name), creation_date


@dataclass
class Superblock:
    """The filesystem superblock stored in block 1."""

    blocks: int
    version: int = VERSION
    magic: bytes = MAGIC

    @property
    def valid(self) -> bool:
        return self.magic == MAGIC

    def pack(self) -> bytes:
        return _pack(_SUPERBLOCK, self.magic, self.version, self.blocks).ljust(
            BLOCK_SIZE, b"\0"
        )

    @classmethod
    def unpack(cls, data: bytes) -> Superblock:
        _check_block(data)
        magic, version, blocks = _SUPERBLOCK.unpack_from(data, 0)
        return cls(blocks=blocks, version=version, magic=magic)


@dataclass
class FileBlock:
    """A file dnode: header, size, indirect block and direct block pointers."""

    name: str
    creation_date: int = 0
    size: int = 0
    indirect_block: int = 0
    direct_blocks: list[int] = field(default_factory=lambda: [0] * DIRECT_BLOCKS)

    entity_type = EntityType.FILE

    def pack(self) -> bytes:
        header = _pack(
            _HEADER, EntityType.FILE, _encode_name(self.name), self.creation_date
        )
        body = _pack(
            _FILE_FIELDS,
            self.size,
            self.indirect_block,
            *_padded(self.direct_blocks, DIRECT_BLOCKS),
        )
        return header + body

    @classmethod
    def unpack(cls, data: bytes) -> FileBlock:
        _, name, creation_date = decode_header(data)
        size, indirect, *direct = _FILE_FIELDS.unpack_from(data, _HEADER.size)
        return cls(
            name=name,
            creation_date=creation_date,
            size=size,
            indirect_block=indirect,
            direct_blocks=direct,
        )


@dataclass
class DirectoryBlock:
    """A folder dnode: header, parent dnode and the dnodes of its entries."""

    name: str
    creation_date: int = 0
    parent: int = 0
    content_dnodes: list[int] = field(
        default_factory=lambda: [0] * MAX_DIR_CONTENTS
    )

    entity_type = EntityType.FOLDER

    def pack(self) -> bytes:
        header = _pack(
            _HEADER, EntityType.FOLDER, _encode_name(self.name), self.creation_date
        )
        body = _pack(
            _DIR_FIELDS,
            self.parent,
            *_padded(self.content_dnodes, MAX_DIR_CONTENTS),
        )
        return header + body

    @classmethod
    def unpack(cls, data: bytes) -> DirectoryBlock:
        _, name, creation_date = decode_header(data)
        parent, *contents = _DIR_FIELDS.unpack_from(data, _HEADER.size)
        return cls(
            name=name,
            creation_date=creation_date,
            parent=parent,
            content_dnodes=contents,
        )


def pack_indirect(entries: Iterable[int]) -> bytes:
    """Pack a list of block numbers into an indirect block."""
    return _pack(_INDIRECT, *_padded(entries, INDIRECT_BLOCK_COUNT))


def unpack_indirect(data: bytes) -> list[int]:
    """Return the block numbers stored in an indirect block."""
    _check_block(data)
    return list(_INDIRECT.unpack(data))


@dataclass
class Stat:
    """Information about a file or folder dnode."""

    type: int
    name: str
    creation_date: int
    size: int
    parent: int = 0
    dnode: int = 0