"""Exceptions raised by the dzFS filesystem.

Each exception carries the numeric ``code`` that the on-disk driver reports
for the same condition.
"""

from __future__ import annotations


class DzFSError(Exception):
    """Base class of every dzFS error."""

    code: int = 0
    default_message: str = "dzFS error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ArgumentError(DzFSError, ValueError):
    """An argument is invalid for the requested operation."""

    code = -1
    default_message = "invalid argument"


class InvalidFilesystemError(DzFSError):
    """The disk does not hold a dzFS filesystem."""

    code = -2
    default_message = "invalid filesystem"


class LimitError(DzFSError):
    """A size or count limit of the filesystem would be exceeded."""

    code = -3
    default_message = "limit reached"


class NotFoundError(DzFSError):
    """The requested file or directory does not exist."""

    code = -4
    default_message = "not found"


class DiskFullError(DzFSError):
    """No free block is left on the disk."""

    code = -5
    default_message = "disk full"


class NotEmptyError(DzFSError):
    """A directory that must be empty still has entries."""

    code = -6
    default_message = "directory not empty"


class TooSmallError(DzFSError):
    """The disk is too small to hold a filesystem."""

    code = -7
    default_message = "disk too small"


class DiskIOError(DzFSError):
    """Reading or writing a block failed."""

    code = -8
    default_message = "I/O error"