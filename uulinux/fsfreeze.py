"""Suspend or resume access to a mounted filesystem."""

from __future__ import annotations

import argparse
import os
import stat
import sys

FIFREEZE = 0xC0045877
FITHAW = 0xC0045878


class FsfreezeError(Exception):
    """A freeze failure; ``code`` is the exit status the command uses."""

    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.code = code


def freeze_filesystem(mountpoint: str | os.PathLike, freeze: bool) -> None:
    """Freeze (or thaw) the filesystem mounted at ``mountpoint``.

    A failing ioctl raises FsfreezeError with code 0: the command reports
    it but still exits successfully.
    """
    import fcntl

    op_name, op_code = ("freeze", FIFREEZE) if freeze else ("unfreeze", FITHAW)
    fd = os.open(mountpoint, os.O_RDONLY)
    try:
        if not stat.S_ISDIR(os.fstat(fd).st_mode):
            raise FsfreezeError("not a directory")
        try:
            fcntl.ioctl(fd, op_code, 0)
        except OSError as err:
            raise FsfreezeError(
                f"failed to {op_name} the filesystem: {err.strerror}", code=0
            ) from err
    finally:
        os.close(fd)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="fsfreeze",
        description="suspend access to a filesystem",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    action = parser.add_mutually_exclusive_group(required=True)
    action.add_argument("-f", "--freeze", action="store_true", help="freeze the filesystem")
    action.add_argument("-u", "--unfreeze", action="store_true", help="unfreeze the filesystem")
    parser.add_argument("mountpoint", help="mountpoint of the filesystem")
    args = parser.parse_args(argv)

    if not sys.platform.startswith("linux"):
        print("fsfreeze: `fsfreeze` is available only on Linux.", file=sys.stderr)
        return 1

    try:
        freeze_filesystem(args.mountpoint, args.freeze)
    except FsfreezeError as err:
        print(f"fsfreeze: {err}", file=sys.stderr)
        return err.code
    except OSError as err:
        print(f"fsfreeze: {err.strerror or err}", file=sys.stderr)
        return 1
    return 0