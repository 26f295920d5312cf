"""Show or set the kernel's Ctrl-Alt-Del behaviour."""

from __future__ import annotations

import argparse
import enum
import re
import sys
from pathlib import Path

CTRL_ALT_DEL_PATH = "/proc/sys/kernel/ctrl-alt-del"

_NOT_ROOT = "You must be root to set the Ctrl-Alt-Del behavior"
_UNKNOWN_DATA = "unknown data"


class CtrlAltDelError(Exception):
    """A failure to read, interpret or change the setting."""


class CtrlAltDel(enum.Enum):
    """The kernel's reaction to Ctrl-Alt-Del, valued as in sysctl."""

    SOFT = 0
    HARD = 1

    def __str__(self) -> str:
        return self.name.lower()


def _parse_pattern(pattern: str) -> CtrlAltDel:
    if pattern == "hard":
        return CtrlAltDel.HARD
    if pattern == "soft":
        return CtrlAltDel.SOFT
    raise CtrlAltDelError(f"unknown argument: {pattern}")


def get_ctrlaltdel(path: str | Path = CTRL_ALT_DEL_PATH) -> CtrlAltDel:
    """Read the current behaviour from the sysctl file."""
    text = Path(path).read_text().strip()
    if not re.fullmatch(r"[+-]?\d+", text):
        raise CtrlAltDelError(_UNKNOWN_DATA)
    try:
        return CtrlAltDel(int(text))
    except ValueError as err:
        raise CtrlAltDelError(_UNKNOWN_DATA) from err


def set_ctrlaltdel(value: CtrlAltDel, path: str | Path = CTRL_ALT_DEL_PATH) -> None:
    """Write a new behaviour to the sysctl file."""
    try:
        Path(path).write_text(f"{value.value}\n")
    except OSError as err:
        raise CtrlAltDelError(_NOT_ROOT) from err


def _fail(message: str) -> int:
    print(f"ctrlaltdel: {message}", file=sys.stderr)
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="ctrlaltdel",
        description="Set the function of the Ctrl-Alt-Del combination.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    parser.add_argument("pattern", nargs="?")
    args = parser.parse_args(argv)

    if not sys.platform.startswith("linux"):
        return _fail("`ctrlaltdel` is unavailable on current platform.")

    try:
        if args.pattern is None:
            print(get_ctrlaltdel(CTRL_ALT_DEL_PATH))
        else:
            set_ctrlaltdel(_parse_pattern(args.pattern), CTRL_ALT_DEL_PATH)
    except CtrlAltDelError as err:
        return _fail(str(err))
    except OSError as err:
        return _fail(err.strerror or str(err))
    return 0