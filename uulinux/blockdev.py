"""Get or set block device attributes through ioctl calls."""

from __future__ import annotations

import argparse
import enum
import os
import re
import struct
import sys
from dataclasses import dataclass
from pathlib import Path

REPORT_HEADER = "RO    RA   SSZ   BSZ        StartSec            Size   Device"

_USIZE_MAX = 2**64 - 1
_SIZE_T = struct.calcsize("N")
_BLOCK = 0x12
_UNSIGNED_RE = re.compile(r"\+?[0-9]+")


def _io(nr: int) -> int:
    return (_BLOCK << 8) | nr


def _ior(nr: int) -> int:
    return (2 << 30) | (_SIZE_T << 16) | (_BLOCK << 8) | nr


def _iow(nr: int) -> int:
    return (1 << 30) | (_SIZE_T << 16) | (_BLOCK << 8) | nr


BLKROSET = _io(93)
BLKROGET = _io(94)
BLKRRPART = _io(95)
BLKGETSIZE = _io(96)
BLKFLSBUF = _io(97)
BLKRASET = _io(98)
BLKRAGET = _io(99)
BLKFRASET = _io(100)
BLKFRAGET = _io(101)
BLKSECTGET = _io(103)
BLKSSZGET = _io(104)
BLKBSZGET = _ior(112)
BLKBSZSET = _iow(113)
BLKGETSIZE64 = _ior(114)
BLKIOMIN = _io(120)
BLKIOOPT = _io(121)
BLKALIGNOFF = _io(122)
BLKPBSZGET = _io(123)
BLKDISCARDZEROES = _io(124)


class BlockdevError(Exception):
    """A failed device query or operation."""


class IoctlArgType(enum.Enum):
    """The C type an attribute-reading ioctl fills in."""

    SHORT = enum.auto()
    INT = enum.auto()
    LONG = enum.auto()
    U64_SECTORS = enum.auto()
    U64 = enum.auto()


_FORMATS = {
    IoctlArgType.SHORT: "@H",
    IoctlArgType.INT: "@I",
    IoctlArgType.LONG: "@L",
    IoctlArgType.U64_SECTORS: "@Q",
    IoctlArgType.U64: "@Q",
}


class ActionKind(enum.Enum):
    """What a command-line operation does."""

    SET_VERBOSITY = enum.auto()
    GET = enum.auto()
    SET = enum.auto()
    OPERATION = enum.auto()


@dataclass(frozen=True)
class BlockdevAction:
    """One operation selectable with a long option of the same name."""

    name: str
    description: str
    kind: ActionKind
    code: int = 0
    arg_type: IoctlArgType | None = None
    param: int = 0
    verbose: bool = False


def _get(name: str, description: str, code: int, arg_type: IoctlArgType) -> BlockdevAction:
    return BlockdevAction(name, description, ActionKind.GET, code, arg_type)


def _set(name: str, description: str, code: int) -> BlockdevAction:
    return BlockdevAction(name, description, ActionKind.SET, code)


def _op(name: str, description: str, code: int, param: int) -> BlockdevAction:
    return BlockdevAction(name, description, ActionKind.OPERATION, code, param=param)


BLOCKDEV_ACTIONS: tuple[BlockdevAction, ...] = (
    BlockdevAction("verbose", "verbose mode", ActionKind.SET_VERBOSITY, verbose=True),
    BlockdevAction("quiet", "quiet mode", ActionKind.SET_VERBOSITY, verbose=False),
    _op("flushbufs", "flush buffers", BLKFLSBUF, 0),
    _get("getalignoff", "get alignment offset in bytes", BLKALIGNOFF, IoctlArgType.INT),
    _get("getbsz", "get blocksize", BLKBSZGET, IoctlArgType.INT),
    _get(
        "getdiscardzeroes",
        "get discard zeroes support status",
        BLKDISCARDZEROES,
        IoctlArgType.INT,
    ),
    _get("getfra", "get filesystem readahead", BLKFRAGET, IoctlArgType.LONG),
    _get("getiomin", "get minimum I/O size", BLKIOMIN, IoctlArgType.INT),
    _get("getioopt", "get optimal I/O size", BLKIOOPT, IoctlArgType.INT),
    _get("getmaxsect", "get max sectors per request", BLKSECTGET, IoctlArgType.SHORT),
    _get("getpbsz", "get physical block (sector) size", BLKPBSZGET, IoctlArgType.INT),
    _get("getra", "get readahead", BLKRAGET, IoctlArgType.LONG),
    _get("getro", "get read-only", BLKROGET, IoctlArgType.INT),
    _get("getsize64", "get size in bytes", BLKGETSIZE64, IoctlArgType.U64),
    _get(
        "getsize",
        "get 32-bit sector count (deprecated, use --getsz)",
        BLKGETSIZE,
        IoctlArgType.LONG,
    ),
    _get("getss", "get logical block (sector) size", BLKSSZGET, IoctlArgType.INT),
    _get("getsz", "get size in 512-byte sectors", BLKGETSIZE64, IoctlArgType.U64_SECTORS),
    _op("rereadpt", "reread partition table", BLKRRPART, 0),
    _set("setbsz", "set blocksize", BLKBSZSET),
    _set("setfra", "set filesystem readahead", BLKFRASET),
    _set("setra", "set readahead", BLKRASET),
    _op("setro", "set read-only", BLKROSET, 1),
    _op("setrw", "set read-write", BLKROSET, 0),
)

_ACTIONS_BY_NAME = {action.name: action for action in BLOCKDEV_ACTIONS}


def find_action(name: str) -> BlockdevAction:
    """Return the operation with the given option name."""
    try:
        return _ACTIONS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"unknown blockdev operation: {name}") from None


def _os_error(err: OSError) -> BlockdevError:
    return BlockdevError(err.strerror or str(err))


def _ioctl(fd: int, code: int, arg: int) -> None:
    import fcntl

    try:
        fcntl.ioctl(fd, code, arg)
    except OverflowError as err:
        raise BlockdevError("Invalid argument") from err
    except OSError as err:
        raise _os_error(err) from err


def get_ioctl_attribute(fd: int, code: int, arg_type: IoctlArgType) -> int:
    """Read an integer attribute of the device open on ``fd``."""
    import fcntl

    fmt = _FORMATS[arg_type]
    buffer = bytearray(struct.calcsize(fmt))
    try:
        fcntl.ioctl(fd, code, buffer, True)
    except OSError as err:
        raise _os_error(err) from err
    (value,) = struct.unpack(fmt, buffer)
    if arg_type is IoctlArgType.U64_SECTORS:
        return value // 512
    return value


def get_partition_offset(rdev: int, sys_root: str | os.PathLike = "/sys") -> int:
    """Return the start sector of a partition device, or 0 for a whole disk."""
    block_dir = Path(sys_root) / "dev" / "block" / f"{os.major(rdev)}:{os.minor(rdev)}"
    if not (block_dir / "partition").exists():
        return 0
    try:
        text = (block_dir / "start").read_text().strip()
    except OSError as err:
        raise _os_error(err) from err
    if not _UNSIGNED_RE.fullmatch(text) or int(text) > _USIZE_MAX:
        raise BlockdevError("Unable to parse partition start offset")
    return int(text)


def report_line(
    read_only: int,
    readahead: int,
    sector_size: int,
    block_size: int,
    start_sector: int,
    size: int,
    device: str,
) -> str:
    """Format one row of the ``--report`` table."""
    mode = "ro" if read_only == 1 else "rw"
    return (
        f"{mode} {readahead:>5} {sector_size:>5} {block_size:>5} "
        f"{start_sector:>15} {size:>15}   {device}"
    )


_REPORT_FIELDS = ("getro", "getra", "getss", "getbsz", "getsize64")


def do_report(device_path: str) -> None:
    """Print the report row for one device."""
    fd = os.open(device_path, os.O_RDONLY | getattr(os, "O_CLOEXEC", 0))
    try:
        offset = get_partition_offset(os.fstat(fd).st_rdev)
        read_only, readahead, sector_size, block_size, size = (
            get_ioctl_attribute(fd, action.code, action.arg_type)
            for action in map(find_action, _REPORT_FIELDS)
        )
    finally:
        os.close(fd)
    print(
        report_line(read_only, readahead, sector_size, block_size, offset, size, device_path)
    )


def do_ioctl_command(fd: int, action: BlockdevAction, verbose: bool, arg: int) -> None:
    """Carry out one ioctl operation and print its outcome."""
    if action.kind is ActionKind.GET:
        value = get_ioctl_attribute(fd, action.code, action.arg_type)
        print(f"{action.description}: {value}" if verbose else value)
        return
    if action.kind is ActionKind.SET:
        _ioctl(fd, action.code, arg)
    elif action.kind is ActionKind.OPERATION:
        _ioctl(fd, action.code, action.param)
    else:
        raise ValueError(f"{action.name} is not an ioctl operation")
    if verbose:
        print(f"{action.description} succeeded.")


def _usize(text: str) -> int:
    if not _UNSIGNED_RE.fullmatch(text) or int(text) > _USIZE_MAX:
        raise argparse.ArgumentTypeError(f"invalid value '{text}'")
    return int(text)


class _OperationAction(argparse.Action):
    def __init__(self, option_strings, dest, blockdev_action: BlockdevAction, **kwargs):
        self.blockdev_action = blockdev_action
        super().__init__(option_strings, dest, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        value = values if isinstance(values, int) else 0
        operations = list(getattr(namespace, self.dest, None) or [])
        operations.append((self.blockdev_action, value))
        setattr(namespace, self.dest, operations)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blockdev",
        description="Get or set various block device attributes.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    parser.add_argument(
        "--report", action="store_true", help="print report for specified devices"
    )
    for action in BLOCKDEV_ACTIONS:
        options = [f"--{action.name}"]
        if action.kind is ActionKind.SET_VERBOSITY:
            options.insert(0, "-v" if action.verbose else "-q")
        extra = (
            {"type": _usize, "metavar": "VALUE"}
            if action.kind is ActionKind.SET
            else {"nargs": 0}
        )
        parser.add_argument(
            *options,
            action=_OperationAction,
            dest="operations",
            default=None,
            blockdev_action=action,
            help=action.description,
            **extra,
        )
    parser.add_argument("devices", nargs="+")
    return parser


def _parse(argv: list[str] | None) -> argparse.Namespace:
    parser = _build_parser()
    args = parser.parse_intermixed_args(argv)
    if args.operations is None:
        args.operations = []
    if args.report and args.operations:
        parser.error("argument --report: not allowed with other operations")
    return args


def collect_operations(argv: list[str] | None) -> list[tuple[BlockdevAction, int]]:
    """Return the operations named in ``argv``, in command-line order."""
    return _parse(argv).operations


def _show(err: Exception) -> None:
    if isinstance(err, OSError):
        message = err.strerror or str(err)
    else:
        message = str(err)
    print(f"blockdev: {message}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    args = _parse(argv)
    if not sys.platform.startswith("linux"):
        print("blockdev: `blockdev` is available only on Linux.", file=sys.stderr)
        return 1

    if args.report:
        print(REPORT_HEADER)
        status = 0
        for device in args.devices:
            try:
                do_report(device)
            except (BlockdevError, OSError) as err:
                _show(err)
                status = 1
        return status

    for device in args.devices:
        try:
            fd = os.open(device, os.O_RDONLY | getattr(os, "O_CLOEXEC", 0))
        except OSError as err:
            _show(err)
            return 1
        try:
            verbose = False
            for action, value in args.operations:
                if action.kind is ActionKind.SET_VERBOSITY:
                    verbose = action.verbose
                    continue
                try:
                    do_ioctl_command(fd, action, verbose, value)
                except BlockdevError as err:
                    if verbose:
                        print(f"{action.description} failed.")
                    _show(err)
                    return 1
        finally:
            os.close(fd)
    return 0