"""Path splitting and directory content helpers."""

from __future__ import annotations

from itertools import takewhile
from typing import Sequence

from .blockdev import BlockDevice
from .errors import ArgumentError
from .layout import MAX_DIR_CONTENTS, decode_header


def path_next_part(path: str) -> str:
    """Return the first component of ``path``, e.g. "hello" for "hello/world"."""
    return path.split("/", 1)[0]


def is_last_part(path: str) -> bool:
    """Tell whether ``path`` holds a single component, with or without a trailing "/"."""
    rest = path[len(path_next_part(path)):]
    return rest in ("", "/")


def content_count(contents: Sequence[int]) -> int:
    """Return the number of entries before the first zero dnode."""
    return sum(1 for _ in takewhile(bool, contents[:MAX_DIR_CONTENTS]))


def remove_content(contents: list[int], dnode: int) -> None:
    """Remove ``dnode`` from ``contents`` in place, moving the last entry into its slot.

    Raises ArgumentError if ``dnode`` is not among the entries.
    """
    count = content_count(contents)
    if dnode == 0 or dnode not in contents[:count]:
        raise ArgumentError(f"dnode {dnode} is not in the directory")
    index = contents.index(dnode)
    last = count - 1
    contents[index] = contents[last]
    contents[last] = 0


def lookup_name(
    device: BlockDevice, contents: Sequence[int], name: str
) -> int | None:
    """Return the dnode of the entry called ``name``, or None if there is none."""
    for dnode in takewhile(bool, contents[:MAX_DIR_CONTENTS]):
        _, entry_name, _ = decode_header(device.read_block(dnode))
        if entry_name == name:
            return dnode
    return None