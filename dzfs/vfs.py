"""In-memory inodes over a dzFS filesystem.

An inode stands for one open dnode and counts the open files using it.
The table holds a fixed number of inodes.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .blockdev import BlockDevice
from .errors import ArgumentError, InvalidFilesystemError, LimitError
from .filesystem import Clock, DzFS, OpenFlags
from .layout import EntityType

MAX_INODES = 64


class InodeType(Enum):
    """What an inode refers to."""

    EMPTY = 0
    FILE = 1
    DIRECTORY = 2


@dataclass(eq=False)
class Inode:
    """An open dnode shared by every file that uses it."""

    type: InodeType = InodeType.EMPTY
    dnode: int = 0
    parent_dnode: int = 0
    size: int = 0
    reference_count: int = 0
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    def _reset(self) -> None:
        self.type = InodeType.EMPTY
        self.dnode = 0
        self.parent_dnode = 0
        self.size = 0
        self.reference_count = 0


@dataclass(frozen=True)
class DirEntry:
    """One entry of a directory listing."""

    type: InodeType
    name: str
    creation_date: int
    size: int


_ENTITY_TO_INODE = {
    EntityType.FILE: InodeType.FILE,
    EntityType.FOLDER: InodeType.DIRECTORY,
}


def _inode_type(entity_type: int) -> InodeType:
    try:
        return _ENTITY_TO_INODE[EntityType(entity_type)]
    except (ValueError, KeyError) as exc:
        raise ArgumentError(f"invalid dnode type {entity_type}") from exc


class InodeTable:
    """A fixed-size table of inodes over one filesystem."""

    def __init__(self, fs: DzFS, capacity: int = MAX_INODES) -> None:
        if capacity <= 0:
            raise ArgumentError("capacity must be positive")
        self.fs = fs
        self.inodes = [Inode() for _ in range(capacity)]
        self._lock = threading.Lock()

    def _base_dnode(self, relative_to: Optional[Inode]) -> int:
        return self.fs.root_dnode if relative_to is None else relative_to.dnode

    def open(
        self,
        path: str,
        relative_to: Optional[Inode] = None,
        flags: OpenFlags = OpenFlags.NONE,
    ) -> Inode:
        """Return the inode of ``path``, taking a reference on it.

        Paths are resolved from ``relative_to``, or from the root when it is
        None. Raises LimitError when every inode is in use.
        """
        dnode, parent = self.fs.open_relative(
            path, self._base_dnode(relative_to), flags
        )
        with self._lock:
            free: Optional[Inode] = None
            for inode in self.inodes:
                with inode.lock:
                    if inode.type is InodeType.EMPTY:
                        free = inode
                    elif inode.dnode == dnode:
                        inode.reference_count += 1
                        return inode
            if free is None:
                raise LimitError("no free inode")
            stat = self.fs.stat(dnode)
            with free.lock:
                free.type = _inode_type(stat.type)
                free.dnode = dnode
                free.parent_dnode = parent
                free.size = stat.size
                free.reference_count = 1
            return free

    def dup(self, inode: Inode) -> Inode:
        """Take one more reference on ``inode`` and return it."""
        with inode.lock:
            inode.reference_count += 1
        return inode

    def close(self, inode: Inode) -> None:
        """Drop one reference; the inode is emptied when none remain."""
        with inode.lock:
            inode.reference_count -= 1
            if inode.reference_count <= 0:
                inode._reset()

    def write(self, inode: Inode, data: bytes, offset: int = 0) -> int:
        """Write ``data`` at ``offset``; return the number of bytes written."""
        with inode.lock:
            written = self.fs.write(inode.dnode, data, offset)
            inode.size = max(inode.size, offset + len(data))
            return written

    def read(self, inode: Inode, size: int, offset: int = 0) -> bytes:
        """Read up to ``size`` bytes from ``offset``."""
        with inode.lock:
            return self.fs.read(inode.dnode, size, offset)

    def delete(self, path: str, relative_to: Optional[Inode] = None) -> None:
        """Delete a file or an empty directory."""
        dnode, parent = self.fs.open_relative(path, self._base_dnode(relative_to))
        self.fs.delete(dnode, parent)

    def mkdir(self, directory: str, relative_to: Optional[Inode] = None) -> None:
        """Create an empty directory; an existing one is left as it is."""
        self.fs.open_relative(
            directory,
            self._base_dnode(relative_to),
            OpenFlags.CREATE | OpenFlags.DIR,
        )

    def readdir(
        self, inode: Inode, offset: int = 0, limit: Optional[int] = None
    ) -> list[DirEntry]:
        """List directory entries from ``offset``, at most ``limit`` of them.

        An empty list means the end of the directory was reached.
        """
        if inode.type is not InodeType.DIRECTORY:
            raise ArgumentError("not a directory")
        entries: list[DirEntry] = []
        while limit is None or len(entries) < limit:
            try:
                stat = self.fs.read_dir(inode.dnode, offset)
            except LimitError:
                break
            entries.append(
                DirEntry(
                    type=_inode_type(stat.type),
                    name=stat.name,
                    creation_date=stat.creation_date,
                    size=stat.size,
                )
            )
            offset += 1
        return entries

    def install_file(self, path: str, data: bytes) -> int:
        """Create the file at absolute ``path`` if needed and write ``data`` at its start."""
        dnode, _ = self.fs.open_absolute(path, OpenFlags.CREATE)
        self.fs.write(dnode, data, 0)
        return dnode


def initialize(device: BlockDevice, clock: Optional[Clock] = None) -> InodeTable:
    """Mount the filesystem on ``device``, formatting it first if it holds none."""
    try:
        fs = DzFS.mount(device, clock)
    except InvalidFilesystemError:
        DzFS.format(device, clock)
        fs = DzFS.mount(device, clock)
    return InodeTable(fs)