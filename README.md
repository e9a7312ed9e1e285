# dzfs

`dzfs` is a small filesystem for read-mostly workloads. It does not keep a
journal. The package covers the on-disk format, a block allocator, the
filesystem operations, a reference-counted inode table, per-process file
descriptor tables and a command-line tool for disk images. It needs only the
standard library.

## The format

A disk is a sequence of 4096-byte blocks with this layout:

    [ boot block | superblock | free-block bitmap ... | root directory | data ... ]

- Block 0, the boot block, is never touched.
- Block 1, the superblock, holds the magic `dzFS`, the format version (1) and
  the total number of blocks.
- The free-block bitmap starts at block 2. Each bitmap block covers 32768
  blocks. A set bit marks a free block.
- The root directory comes right after the bitmap.

Each file or directory occupies one block, called a dnode. A file dnode holds
the file's size, 956 direct block pointers and one indirect block with a
further 1024 pointers. The largest possible file is therefore
4096 × (1024 + 956) = 8,110,080 bytes. A directory dnode holds its parent and
up to 957 entries. A name may be at most 254 bytes long (UTF-8). All integers
are little endian.

A disk must have more than 4 blocks to be formatted.

## Using it from Python

```python
from dzfs.blockdev import MemoryBlockDevice
from dzfs.filesystem import DzFS, OpenFlags

fs = DzFS.format(MemoryBlockDevice(64))
dnode, parent = fs.open_absolute("/hello.txt", OpenFlags.CREATE)
fs.write(dnode, b"hello, world")
print(fs.read(dnode, 100))           # b'hello, world'
print([s.name for s in fs.iter_dir(fs.root_dnode)])
```

### Modules

- `dzfs.layout` packs and unpacks the block structures: `Superblock`,
  `FileBlock` and `DirectoryBlock`, each with `pack()` and `unpack()`. It also
  provides `decode_header`, `pack_indirect`, `unpack_indirect`, the `Stat`
  record and the `EntityType` enum (`FILE`, `FOLDER`).
- `dzfs.blockdev` defines the abstract `BlockDevice` (`read_block`,
  `write_block`, `total_blocks`) and two implementations.
  `MemoryBlockDevice(blocks)` is a zero-filled disk in memory.
  `FileBlockDevice(path, blocks=None, offset=0, create=False)` works on an
  image file, starting `offset` bytes into it. It is a context manager. When
  `blocks` is not given, the size comes from the file. With `create`, a
  missing file is created and grown to fit.
- `dzfs.allocator` manages the free-block bitmap: `allocate_block`,
  `free_block`, `count_free_blocks`, `bitmap_set`, `bitmap_clear`,
  `bitmap_blocks_for` and `bitmap_block_index`.
- `dzfs.directory` provides path and directory-entry helpers:
  `path_next_part`, `is_last_part`, `content_count`, `remove_content` and
  `lookup_name`.
- `dzfs.filesystem` contains `DzFS`. `DzFS.format(device, clock=None)` writes
  an empty filesystem and `DzFS.mount(device, clock=None)` opens an existing
  one. The clock is a callable that returns a Unix time and defaults to
  `time.time`. The methods are:
  - `open_absolute(path, flags)` and `open_relative(path, relative_to, flags)`
    return `(dnode, parent_dnode)`. They understand `.` and `..`. With
    `OpenFlags.CREATE`, a missing last component is created, as a directory
    when `OpenFlags.DIR` is also set.
  - `write(dnode, data, offset=0)` writes at an offset that must not lie past
    the end of the file.
  - `read(dnode, size, offset=0)` returns `b""` at end of file.
  - `stat(dnode)` returns a `Stat`. For a directory, `size` is the number of
    entries.
  - `read_dir(dnode, offset)` raises `LimitError` once past the last entry.
    `iter_dir(dnode)` yields the stat of every entry.
  - `delete(dnode, parent)` removes a file or an empty directory.
  - `move(dnode, old_parent, new_parent, new_name=None)` moves and/or renames.
    An entry with the same name at the destination is deleted first.
  - `free_blocks()` returns the number of free blocks.
- `dzfs.vfs` contains `InodeTable(fs, capacity=64)`, a table of shared,
  reference-counted `Inode`s. Its methods are `open`, `dup`, `close`, `read`,
  `write`, `delete`, `mkdir`, `readdir` (which returns `DirEntry` records) and
  `install_file(path, data)`. `initialize(device, clock=None)` mounts the
  device, formatting it first if it holds no filesystem, and returns an
  `InodeTable`.
- `dzfs.files` contains `Process(table, devices=None, working_directory=None,
  max_open_files=16)`, a file-descriptor table with a working directory. It
  offers:
  - `open(path, flags)`, where flags are `OpenMode` values: `RDONLY`,
    `WRONLY`, `RDWR`, `CREATE`, `DIR` and `DEVICE`;
  - `read`, `write` and `seek(fd, offset, whence)`, where whence is a `Whence`
    value. File offsets never pass the end of the file;
  - `close`, `ioctl`, `unlink`, `mkdir`, `chdir` and `readdir(fd, limit=None)`.

  With `OpenMode.DEVICE`, a name is opened from a `DeviceRegistry` of
  `Device` records. Each record supplies optional `read`, `write`, `lseek` and
  `control` callables.

### Errors

Failures raise subclasses of `dzfs.errors.DzFSError`:

- `ArgumentError`, which is also a `ValueError`;
- `InvalidFilesystemError`;
- `LimitError`;
- `NotFoundError`;
- `DiskFullError`;
- `NotEmptyError`;
- `TooSmallError`;
- `DiskIOError`.

Each one carries a numeric `code`.

## Command line

The `dzfs` command works on image files. Every subcommand takes the image path
and an optional `--offset` in bytes.

    dzfs init disk.img --blocks 512     # create/format unless already formatted
    dzfs ls disk.img /                  # list a directory
    dzfs install disk.img prog.bin /prog
    dzfs cat disk.img /prog
    dzfs mkdir disk.img /etc
    dzfs rm disk.img /prog
    dzfs df disk.img                    # number of free blocks
    dzfs --help

`init` prints `dzFS initialized` when it formats the image, then
`dzFS ready`. On an error, the command prints a message to standard error and
exits with status 1.

## What it does not do

- `Process` and `InodeTable` cannot rename or move files. Only `DzFS.move`
  can.
- Files cannot grow with holes. A write must start at or before the current
  end of the file.
- Files never shrink. `write` and `install_file` overwrite bytes in place, and
  any old data beyond the new data stays.
- `mkdir`, like opening with `CREATE`, leaves an existing entry of that name as
  it is, whether that entry is a directory or a file.
- There are no built-in devices. A `DeviceRegistry` holds only the devices you
  give it.

## Development

    pip install -e ".[test]"
    pytest