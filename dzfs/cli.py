"""Command line tool for dzFS disk images."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from .blockdev import FileBlockDevice
from .errors import DzFSError, InvalidFilesystemError
from .filesystem import DzFS
from .vfs import InodeTable, InodeType


def _write_out(data: bytes) -> None:
    buffer = getattr(sys.stdout, "buffer", None)
    if buffer is None:
        sys.stdout.write(data.decode("utf-8", "replace"))
        return
    sys.stdout.flush()
    buffer.write(data)
    buffer.flush()


def _cmd_init(args: argparse.Namespace) -> None:
    with FileBlockDevice(
        args.image,
        blocks=args.blocks,
        offset=args.offset,
        create=args.blocks is not None,
    ) as device:
        try:
            DzFS.mount(device)
        except InvalidFilesystemError:
            DzFS.format(device)
            DzFS.mount(device)
            print("dzFS initialized")
    print("dzFS ready")


def _with_table(action: Callable[[InodeTable, argparse.Namespace], None]):
    def run(args: argparse.Namespace) -> None:
        with FileBlockDevice(args.image, offset=args.offset) as device:
            action(InodeTable(DzFS.mount(device)), args)

    return run


def _ls(table: InodeTable, args: argparse.Namespace) -> None:
    inode = table.open(args.path)
    try:
        for entry in table.readdir(inode):
            kind = "d" if entry.type is InodeType.DIRECTORY else "-"
            print(f"{kind} {entry.size:>10} {entry.name}")
    finally:
        table.close(inode)


def _cat(table: InodeTable, args: argparse.Namespace) -> None:
    inode = table.open(args.path)
    try:
        _write_out(table.read(inode, inode.size))
    finally:
        table.close(inode)


def _install(table: InodeTable, args: argparse.Namespace) -> None:
    table.install_file(args.path, Path(args.source).read_bytes())


def _mkdir(table: InodeTable, args: argparse.Namespace) -> None:
    table.mkdir(args.path)


def _rm(table: InodeTable, args: argparse.Namespace) -> None:
    table.delete(args.path)


def _df(table: InodeTable, args: argparse.Namespace) -> None:
    print(table.fs.free_blocks())


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dzfs", description="Inspect and modify dzFS disk images."
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("image", help="disk image file")
    common.add_argument(
        "--offset", type=int, default=0,
        help="byte offset of the filesystem inside the image",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    init = sub.add_parser(
        "init", parents=[common],
        help="format the image unless it already holds a filesystem",
    )
    init.add_argument("--blocks", type=int, help="create the image with this many blocks")
    init.set_defaults(handler=_cmd_init)

    ls = sub.add_parser("ls", parents=[common], help="list a directory")
    ls.add_argument("path", nargs="?", default="/")
    ls.set_defaults(handler=_with_table(_ls))

    cat = sub.add_parser("cat", parents=[common], help="print a file")
    cat.add_argument("path")
    cat.set_defaults(handler=_with_table(_cat))

    install = sub.add_parser(
        "install", parents=[common], help="copy a host file into the image"
    )
    install.add_argument("source", help="host file to copy")
    install.add_argument("path", help="absolute destination path")
    install.set_defaults(handler=_with_table(_install))

    mkdir = sub.add_parser("mkdir", parents=[common], help="create a directory")
    mkdir.add_argument("path")
    mkdir.set_defaults(handler=_with_table(_mkdir))

    rm = sub.add_parser("rm", parents=[common], help="remove a file or empty directory")
    rm.add_argument("path")
    rm.set_defaults(handler=_with_table(_rm))

    df = sub.add_parser("df", parents=[common], help="print the number of free blocks")
    df.set_defaults(handler=_with_table(_df))
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line tool and return its exit status."""
    args = _build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (DzFSError, OSError) as exc:
        print(f"dzfs: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())