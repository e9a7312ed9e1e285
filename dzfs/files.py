"""Per-process open files over the inode table and a set of devices.

A process owns a fixed-size table of file descriptors. A descriptor refers
either to an inode of the filesystem or to a device from a registry.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum, IntFlag
from typing import Any, Callable, Iterable, Iterator, Optional

from .errors import ArgumentError, LimitError, NotFoundError
from .filesystem import OpenFlags
from .vfs import DirEntry, Inode, InodeTable

DEFAULT_MAX_OPEN_FILES = 16

_U32 = 0xFFFFFFFF


class FileKind(Enum):
    """What a file descriptor refers to."""

    EMPTY = 0
    INODE = 1
    DEVICE = 2


class OpenMode(IntFlag):
    """Flags accepted by ``Process.open``."""

    RDONLY = 0
    WRONLY = 1
    RDWR = 2
    CREATE = 4
    DIR = 8
    DEVICE = 16


class Whence(IntEnum):
    """Reference point of a seek."""

    SET = 0
    CUR = 1
    END = 2


@dataclass(frozen=True)
class Device:
    """A device a process can open by name.

    ``read`` takes a size and returns bytes, ``write`` takes bytes and returns
    the count written, ``lseek`` takes an offset and a whence, ``control``
    takes a command and its argument. Missing operations are None.
    """

    name: str
    read: Optional[Callable[[int], bytes]] = None
    write: Optional[Callable[[bytes], int]] = None
    lseek: Optional[Callable[[int, int], int]] = None
    control: Optional[Callable[[int, Any], Any]] = None


class DeviceRegistry:
    """The devices available to processes, addressed by name or index."""

    def __init__(self, devices: Iterable[Device] = ()) -> None:
        self._devices = list(devices)

    def index(self, name: str) -> int:
        """Return the index of the device called ``name``."""
        found = next(
            (i for i, device in enumerate(self._devices) if device.name == name),
            None,
        )
        if found is None:
            raise NotFoundError(f"no device named {name!r}")
        return found

    def get(self, index: int) -> Optional[Device]:
        """Return the device at ``index``, or None when it is out of range."""
        if 0 <= index < len(self._devices):
            return self._devices[index]
        return None

    def __len__(self) -> int:
        return len(self._devices)

    def __iter__(self) -> Iterator[Device]:
        return iter(self._devices)


@dataclass
class OpenFile:
    """One slot of a process's file descriptor table.

    For directories ``offset`` counts the entries already read.
    """

    kind: FileKind = FileKind.EMPTY
    inode: Optional[Inode] = None
    device: int = -1
    offset: int = 0
    readable: bool = False
    writable: bool = False


class Process:
    """A process with a working directory and its open files."""

    def __init__(
        self,
        table: InodeTable,
        devices: Optional[DeviceRegistry] = None,
        working_directory: Optional[Inode] = None,
        max_open_files: int = DEFAULT_MAX_OPEN_FILES,
    ) -> None:
        if max_open_files <= 0:
            raise ArgumentError("max_open_files must be positive")
        self.table = table
        self.devices = devices if devices is not None else DeviceRegistry()
        self.working_directory = (
            working_directory if working_directory is not None else table.open("/")
        )
        self.open_files = [OpenFile() for _ in range(max_open_files)]

    # -- descriptor helpers -------------------------------------------------

    def _allocate_fd(self) -> int:
        fd = next(
            (
                fd
                for fd, entry in enumerate(self.open_files)
                if entry.kind is FileKind.EMPTY
            ),
            None,
        )
        if fd is None:
            raise LimitError("no free file descriptor")
        return fd

    def _entry(self, fd: int) -> OpenFile:
        if not 0 <= fd < len(self.open_files):
            raise ArgumentError(f"bad file descriptor {fd}")
        entry = self.open_files[fd]
        if entry.kind is FileKind.EMPTY:
            raise ArgumentError(f"file descriptor {fd} is not open")
        return entry

    def _device(self, entry: OpenFile) -> Device:
        device = self.devices.get(entry.device)
        if device is None:
            raise ArgumentError(f"no device at index {entry.device}")
        return device

    @staticmethod
    def _inode(entry: OpenFile) -> Inode:
        if entry.inode is None:
            raise ArgumentError("descriptor has no inode")
        return entry.inode

    # -- opening ------------------------------------------------------------

    def open(self, path: str, flags: OpenMode = OpenMode.RDONLY) -> int:
        """Open a file, directory or (with ``OpenMode.DEVICE``) a device; return its fd."""
        flags = OpenMode(flags)
        if flags & OpenMode.DEVICE:
            return self._open_device(path)
        return self._open_file(path, flags)

    def _open_device(self, name: str) -> int:
        index = self.devices.index(name)
        fd = self._allocate_fd()
        device = self.devices.get(index)
        assert device is not None
        self.open_files[fd] = OpenFile(
            kind=FileKind.DEVICE,
            device=index,
            offset=0,
            readable=device.read is not None,
            writable=device.write is not None,
        )
        return fd

    def _open_file(self, path: str, flags: OpenMode) -> int:
        fd = self._allocate_fd()
        fs_flags = OpenFlags.NONE
        if flags & OpenMode.CREATE:
            fs_flags |= OpenFlags.CREATE
        if flags & OpenMode.DIR:
            fs_flags |= OpenFlags.DIR
        inode = self.table.open(path, self.working_directory, fs_flags)
        self.open_files[fd] = OpenFile(
            kind=FileKind.INODE,
            inode=inode,
            offset=0,
            readable=not flags & OpenMode.WRONLY,
            writable=bool(flags & (OpenMode.WRONLY | OpenMode.RDWR)),
        )
        return fd

    # -- data ---------------------------------------------------------------

    def read(self, fd: int, size: int) -> bytes:
        """Read up to ``size`` bytes; files advance their offset."""
        entry = self._entry(fd)
        if not entry.readable:
            raise ArgumentError(f"file descriptor {fd} is not open for reading")
        if entry.kind is FileKind.INODE:
            data = self.table.read(self._inode(entry), size, entry.offset)
            entry.offset += len(data)
            return data
        device = self._device(entry)
        if device.read is None:
            raise ArgumentError(f"device {device.name!r} cannot be read")
        return device.read(size)

    def write(self, fd: int, data: bytes) -> int:
        """Write ``data``; files advance their offset. Return the bytes written."""
        entry = self._entry(fd)
        if not entry.writable:
            raise ArgumentError(f"file descriptor {fd} is not open for writing")
        if entry.kind is FileKind.INODE:
            written = self.table.write(self._inode(entry), bytes(data), entry.offset)
            entry.offset += written
            return written
        device = self._device(entry)
        if device.write is None:
            raise ArgumentError(f"device {device.name!r} cannot be written")
        return device.write(bytes(data))

    def seek(self, fd: int, offset: int, whence: int = Whence.SET) -> int:
        """Move the offset of ``fd`` and return the new one.

        File offsets are unsigned 32-bit values and never pass the end of
        the file. Devices decide for themselves.
        """
        entry = self._entry(fd)
        if entry.kind is FileKind.DEVICE:
            device = self._device(entry)
            if device.lseek is None:
                raise ArgumentError(f"device {device.name!r} cannot seek")
            return device.lseek(offset, int(whence))
        try:
            reference = Whence(whence)
        except ValueError as exc:
            raise ArgumentError(f"invalid whence {whence}") from exc
        size = self._inode(entry).size
        if reference is Whence.SET:
            position = offset & _U32
        elif reference is Whence.CUR:
            position = (entry.offset + offset) & _U32
        else:
            position = (size - offset) & _U32
        entry.offset = min(position, size)
        return entry.offset

    def close(self, fd: int) -> None:
        """Close ``fd``. Device descriptors stay as they are."""
        entry = self._entry(fd)
        if entry.kind is FileKind.INODE:
            self.table.close(self._inode(entry))
            self.open_files[fd] = OpenFile()

    def ioctl(self, fd: int, command: int, data: Any = None) -> Any:
        """Send ``command`` to the device behind ``fd`` and return its answer."""
        entry = self._entry(fd)
        if entry.kind is FileKind.INODE:
            raise ArgumentError("files do not accept control commands")
        device = self._device(entry)
        if device.control is None:
            raise ArgumentError(f"device {device.name!r} has no controls")
        return device.control(command, data)

    # -- namespace ----------------------------------------------------------

    def unlink(self, path: str) -> None:
        """Remove a file or an empty directory."""
        self.table.delete(path, self.working_directory)

    def mkdir(self, directory: str) -> None:
        """Create an empty directory."""
        self.table.mkdir(directory, self.working_directory)

    def chdir(self, directory: str) -> None:
        """Change the working directory."""
        new_directory = self.table.open(
            directory, self.working_directory, OpenFlags.DIR
        )
        self.table.close(self.working_directory)
        self.working_directory = new_directory

    def readdir(self, fd: int, limit: Optional[int] = None) -> list[DirEntry]:
        """Return the next directory entries of ``fd``, at most ``limit`` of them.

        An empty list means the end of the directory.
        """
        entry = self._entry(fd)
        if entry.kind is not FileKind.INODE:
            raise ArgumentError(f"file descriptor {fd} is not a directory")
        entries = self.table.readdir(self._inode(entry), entry.offset, limit)
        entry.offset += len(entries)
        return entries