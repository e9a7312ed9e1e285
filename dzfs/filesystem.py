"""The dzFS filesystem: formatting, mounting, path lookup and file I/O.

Disk layout::

    [ bootloader | superblock | free bitmap (variable) | root folder | ... ]
"""

from __future__ import annotations

import time
from enum import IntFlag
from itertools import takewhile
from typing import Callable, Iterator

from .allocator import (
    FIRST_BITMAP_BLOCK,
    allocate_block,
    bitmap_blocks_for,
    bitmap_clear,
    count_free_blocks,
    free_block,
)
from .blockdev import BlockDevice
from .directory import (
    content_count,
    is_last_part,
    lookup_name,
    path_next_part,
    remove_content,
)
from .errors import (
    ArgumentError,
    InvalidFilesystemError,
    LimitError,
    NotEmptyError,
    NotFoundError,
    TooSmallError,
)
from .layout import (
    BITSET_COVERED_BLOCKS,
    BLOCK_SIZE,
    DIRECT_BLOCKS,
    INDIRECT_BLOCK_COUNT,
    MAX_DIR_CONTENTS,
    MAX_FILESIZE,
    DirectoryBlock,
    EntityType,
    FileBlock,
    Stat,
    Superblock,
    decode_header,
    pack_indirect,
    unpack_indirect,
)

SUPERBLOCK_DNODE = 1

Clock = Callable[[], int]


def _system_clock() -> int:
    return int(time.time())


class OpenFlags(IntFlag):
    """Flags controlling how a path is opened."""

    NONE = 0
    CREATE = 1
    DIR = 2


class DzFS:
    """A dzFS filesystem stored on a block device."""

    def __init__(
        self, device: BlockDevice, clock: Clock, superblock: Superblock
    ) -> None:
        self.device = device
        self.clock = clock
        self.superblock = superblock
        self.free_bitmap_blocks = bitmap_blocks_for(superblock.blocks)
        self.root_dnode = FIRST_BITMAP_BLOCK + self.free_bitmap_blocks

    # -- creation -----------------------------------------------------------

    @classmethod
    def format(cls, device: BlockDevice, clock: Clock | None = None) -> DzFS:
        """Write an empty filesystem to ``device`` and return it."""
        clock = clock or _system_clock
        total = device.total_blocks()
        # bootloader, superblock, one bitmap block and the root folder
        if total <= 4:
            raise TooSmallError()
        superblock = Superblock(blocks=total)
        device.write_block(SUPERBLOCK_DNODE, superblock.pack())
        fs = cls(device, clock, superblock)
        bitmaps = fs.free_bitmap_blocks
        if total <= 3 + bitmaps:
            raise TooSmallError()

        full = bytes([0xFF]) * BLOCK_SIZE
        for number in range(1, bitmaps - 1):
            device.write_block(FIRST_BITMAP_BLOCK + number, full)

        first = bytearray(full)
        for block in range(bitmaps + 3):
            bitmap_clear(first, block)
        device.write_block(FIRST_BITMAP_BLOCK, bytes(first))

        last = first if bitmaps == 1 else bytearray(full)
        for block in range(BITSET_COVERED_BLOCKS * bitmaps - 1, total - 1, -1):
            bitmap_clear(last, block % BITSET_COVERED_BLOCKS)
        device.write_block(FIRST_BITMAP_BLOCK + bitmaps - 1, bytes(last))

        root = DirectoryBlock(name="/", creation_date=clock(), parent=fs.root_dnode)
        device.write_block(fs.root_dnode, root.pack())
        return fs

    @classmethod
    def mount(cls, device: BlockDevice, clock: Clock | None = None) -> DzFS:
        """Open the filesystem already stored on ``device``."""
        superblock = Superblock.unpack(device.read_block(SUPERBLOCK_DNODE))
        if not superblock.valid:
            raise InvalidFilesystemError()
        return cls(device, clock or _system_clock, superblock)

    # -- block helpers ------------------------------------------------------

    def _read(self, dnode: int) -> bytes:
        return self.device.read_block(dnode)

    def _load_folder(self, dnode: int) -> DirectoryBlock:
        data = self._read(dnode)
        if decode_header(data)[0] != EntityType.FOLDER:
            raise ArgumentError(f"dnode {dnode} is not a folder")
        return DirectoryBlock.unpack(data)

    def _load_file(self, dnode: int) -> FileBlock:
        data = self._read(dnode)
        if decode_header(data)[0] != EntityType.FILE:
            raise ArgumentError(f"dnode {dnode} is not a file")
        return FileBlock.unpack(data)

    def _load_entity(self, dnode: int) -> FileBlock | DirectoryBlock:
        data = self._read(dnode)
        entity_type = decode_header(data)[0]
        if entity_type == EntityType.FILE:
            return FileBlock.unpack(data)
        if entity_type == EntityType.FOLDER:
            return DirectoryBlock.unpack(data)
        raise ArgumentError(f"dnode {dnode} has unknown type {entity_type}")

    def _allocate(self) -> int:
        return allocate_block(self.device, self.free_bitmap_blocks)

    def _parent_of(self, dnode: int) -> int:
        return DirectoryBlock.unpack(self._read(dnode)).parent

    # -- lookup -------------------------------------------------------------

    def open_absolute(
        self, path: str, flags: OpenFlags = OpenFlags.NONE
    ) -> tuple[int, int]:
        """Resolve an absolute path; return ``(dnode, parent_dnode)``."""
        if not path.startswith("/"):
            raise ArgumentError("path must be absolute")
        if path == "/":
            return self.root_dnode, self.root_dnode
        return self.open_relative(path[1:], self.root_dnode, flags)

    def open_relative(
        self, path: str, relative_to: int, flags: OpenFlags = OpenFlags.NONE
    ) -> tuple[int, int]:
        """Resolve ``path`` from folder ``relative_to``; return ``(dnode, parent_dnode)``.

        With ``OpenFlags.CREATE`` a missing last component is created, as a
        folder when ``OpenFlags.DIR`` is also given.
        """
        if path.startswith("/"):
            return self.open_absolute(path, flags)
        if relative_to == 0:
            raise ArgumentError("relative_to must not be zero")
        self._read(relative_to)

        while True:
            if path.startswith("./"):
                path = path[2:]
            elif path.startswith("../") or path == "..":
                parent = self._parent_of(relative_to)
                if parent != 0:
                    relative_to = parent
                path = path[3:]
                if not path:
                    break
            else:
                break

        if path in ("", "."):
            return relative_to, self._parent_of(relative_to)

        current_index = relative_to
        current = DirectoryBlock.unpack(self._read(current_index))
        while True:
            part = path_next_part(path)
            found = lookup_name(self.device, current.content_dnodes, part)
            if found is None:
                if flags & OpenFlags.CREATE and is_last_part(path):
                    return self._create(current_index, current, part, flags)
                raise NotFoundError(f"{part!r} not found")
            if is_last_part(path):
                return found, current_index
            data = self._read(found)
            if decode_header(data)[0] != EntityType.FOLDER:
                raise NotFoundError(f"{part!r} is not a folder")
            current_index = found
            current = DirectoryBlock.unpack(data)
            path = path[len(part) + 1:]

    def _create(
        self, parent: int, folder: DirectoryBlock, name: str, flags: OpenFlags
    ) -> tuple[int, int]:
        count = content_count(folder.content_dnodes)
        if count == MAX_DIR_CONTENTS:
            raise LimitError("folder is full")
        entry: FileBlock | DirectoryBlock
        if flags & OpenFlags.DIR:
            entry = DirectoryBlock(name=name, creation_date=self.clock(), parent=parent)
        else:
            entry = FileBlock(name=name, creation_date=self.clock())
        packed = entry.pack()
        dnode = self._allocate()
        folder.content_dnodes[count] = dnode
        self.device.write_block(parent, folder.pack())
        self.device.write_block(dnode, packed)
        return dnode, parent

    # -- file contents ------------------------------------------------------

    def write(self, dnode: int, data: bytes, offset: int = 0) -> int:
        """Write ``data`` into file ``dnode`` at ``offset``; return the bytes written.

        The offset may not lie past the end of the file.
        """
        if offset < 0:
            raise ArgumentError("offset must not be negative")
        entry = self._load_file(dnode)
        end = offset + len(data)
        if end > MAX_FILESIZE:
            raise LimitError("file would exceed the maximum size")
        if offset > entry.size:
            raise ArgumentError("offset is past the end of the file")
        if entry.indirect_block:
            indirect = unpack_indirect(self._read(entry.indirect_block))
        else:
            indirect = [0] * INDIRECT_BLOCK_COUNT

        view = memoryview(bytes(data))
        position = offset
        while view:
            index, start = divmod(position, BLOCK_SIZE)
            if index >= DIRECT_BLOCKS:
                if not entry.indirect_block:
                    entry.indirect_block = self._allocate()
                pointers, slot = indirect, index - DIRECT_BLOCKS
            else:
                pointers, slot = entry.direct_blocks, index
            block = pointers[slot]
            if block:
                content = bytearray(self._read(block))
            else:
                block = self._allocate()
                pointers[slot] = block
                content = bytearray(BLOCK_SIZE)
            chunk = view[:BLOCK_SIZE - start]
            content[start:start + len(chunk)] = chunk
            self.device.write_block(block, bytes(content))
            view = view[len(chunk):]
            position += len(chunk)

        if entry.indirect_block:
            self.device.write_block(entry.indirect_block, pack_indirect(indirect))
        entry.size = max(entry.size, end)
        self.device.write_block(dnode, entry.pack())
        return len(data)

    def read(self, dnode: int, size: int, offset: int = 0) -> bytes:
        """Read up to ``size`` bytes of file ``dnode`` from ``offset``; empty at EOF."""
        if size < 0 or offset < 0:
            raise ArgumentError("size and offset must not be negative")
        entry = self._load_file(dnode)
        if offset >= entry.size:
            return b""
        if entry.indirect_block:
            indirect = unpack_indirect(self._read(entry.indirect_block))
        else:
            indirect = [0] * INDIRECT_BLOCK_COUNT
        remaining = min(entry.size - offset, size)
        chunks: list[bytes] = []
        while remaining > 0:
            index, start = divmod(offset, BLOCK_SIZE)
            if index >= DIRECT_BLOCKS:
                block = indirect[index - DIRECT_BLOCKS]
            else:
                block = entry.direct_blocks[index]
            length = min(BLOCK_SIZE - start, remaining)
            chunks.append(self._read(block)[start:start + length])
            remaining -= length
            offset += length
        return b"".join(chunks)

    # -- directories --------------------------------------------------------

    def read_dir(self, dnode: int, offset: int) -> Stat:
        """Return the stat of entry ``offset`` of folder ``dnode``.

        Raises LimitError once ``offset`` is past the last entry.
        """
        folder = self._load_folder(dnode)
        if not 0 <= offset < MAX_DIR_CONTENTS:
            raise LimitError("offset out of range")
        child = folder.content_dnodes[offset]
        if not child:
            raise LimitError("no more entries")
        return self.stat(child)

    def iter_dir(self, dnode: int) -> Iterator[Stat]:
        """Yield the stat of every entry of folder ``dnode``."""
        folder = self._load_folder(dnode)
        for child in takewhile(bool, folder.content_dnodes):
            yield self.stat(child)

    def delete(self, dnode: int, parent: int) -> None:
        """Delete a file or an empty folder and free its blocks."""
        if dnode == self.root_dnode:
            raise ArgumentError("the root folder cannot be deleted")
        data = self._read(dnode)
        entity_type = decode_header(data)[0]
        to_free: list[int] = []
        if entity_type == EntityType.FILE:
            entry = FileBlock.unpack(data)
            if entry.indirect_block:
                indirect = unpack_indirect(self._read(entry.indirect_block))
                to_free.extend(takewhile(bool, indirect))
                to_free.append(entry.indirect_block)
            to_free.extend(takewhile(bool, entry.direct_blocks))
        elif entity_type == EntityType.FOLDER:
            if any(DirectoryBlock.unpack(data).content_dnodes):
                raise NotEmptyError()
        else:
            raise ArgumentError(f"dnode {dnode} has unknown type {entity_type}")

        folder = self._load_folder(parent)
        remove_content(folder.content_dnodes, dnode)
        self.device.write_block(parent, folder.pack())
        for block in to_free:
            free_block(self.device, block)
        free_block(self.device, dnode)

    def stat(self, dnode: int) -> Stat:
        """Return information about a file or folder dnode."""
        data = self._read(dnode)
        entity_type, name, created = decode_header(data)
        parent = 0
        if entity_type == EntityType.FILE:
            size = FileBlock.unpack(data).size
        elif entity_type == EntityType.FOLDER:
            folder = DirectoryBlock.unpack(data)
            parent = folder.parent
            size = content_count(folder.content_dnodes)
        else:
            raise ArgumentError(f"dnode {dnode} has unknown type {entity_type}")
        return Stat(
            type=EntityType(entity_type),
            name=name,
            creation_date=created,
            size=size,
            parent=parent,
            dnode=dnode,
        )

    def move(
        self,
        dnode: int,
        old_parent: int,
        new_parent: int,
        new_name: str | None = None,
    ) -> None:
        """Move ``dnode`` to ``new_parent``, optionally renaming it.

        An entry of the same name in the destination is deleted first.
        """
        if old_parent == new_parent and new_name is None:
            return
        entry = self._load_entity(dnode)
        if old_parent == new_parent and new_name == entry.name:
            return
        destination = self._load_folder(new_parent)
        changed = False
        if new_name is not None:
            entry.name = new_name
            entry.pack()
            changed = True
        existing = lookup_name(self.device, destination.content_dnodes, entry.name)
        if existing is not None:
            self.delete(existing, new_parent)
            destination = self._load_folder(new_parent)
        count = content_count(destination.content_dnodes)
        if count == MAX_DIR_CONTENTS:
            raise LimitError("destination folder is full")
        destination.content_dnodes[count] = dnode
        self.device.write_block(new_parent, destination.pack())

        source = self._load_folder(old_parent)
        remove_content(source.content_dnodes, dnode)
        self.device.write_block(old_parent, source.pack())

        if isinstance(entry, DirectoryBlock) and entry.parent != new_parent:
            entry.parent = new_parent
            changed = True
        if changed:
            self.device.write_block(dnode, entry.pack())

    def free_blocks(self) -> int:
        """Return the number of free blocks on the disk."""
        return count_free_blocks(self.device, self.free_bitmap_blocks)