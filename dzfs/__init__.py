"""A small block-based filesystem: on-disk format, allocator, inode table, file tables and a disk-image tool."""

__version__ = "0.1.0"