"""One entry point that dispatches to every utility of the package."""

from __future__ import annotations

import shlex
import shutil
import sys
import textwrap
from pathlib import PurePath
from typing import Callable, Sequence

from uulinux import blockdev, chcpu, ctrlaltdel, dmesg, fsfreeze, last

VERSION = "0.0.1"
UNKNOWN_BINARY = "<unknown binary name>"

UtilityMain = Callable[[list], int]

_UTILITIES: dict[str, UtilityMain] = {
    "blockdev": blockdev.main,
    "chcpu": chcpu.main,
    "ctrlaltdel": ctrlaltdel.main,
    "dmesg": dmesg.main,
    "fsfreeze": fsfreeze.main,
    "last": last.main,
}


def utility_map() -> dict[str, UtilityMain]:
    """Return the available utilities by name, in sorted order."""
    return {name: _UTILITIES[name] for name in sorted(_UTILITIES)}


def usage(name: str, width: int | None = None) -> str:
    """Return the multi-call usage text for a binary called ``name``.

    The list of functions is wrapped to ``width`` columns; by default the
    terminal width, at most 100, less 8 for the indentation on both sides.
    """
    if width is None:
        width = min(shutil.get_terminal_size().columns, 100) - 4 * 2
    names = ", ".join(sorted(utility_map()))
    listing = textwrap.indent(textwrap.fill(names, max(width, 1)), "    ")
    return (
        f"{name} {VERSION} (multi-call binary)\n\n"
        f"Usage: {name} [function [arguments...]]\n\n"
        "Currently defined functions:\n\n"
        f"{listing}\n"
    )


def resolve_utility(binary_name: str) -> str | None:
    """Find the utility a binary name stands for.

    The name matches a utility when it is the utility's name, possibly
    after a prefix that ends in a non-alphanumeric character.
    """
    for util in utility_map():
        if binary_name.endswith(util):
            prefix = binary_name[: len(binary_name) - len(util)]
            if not prefix or not prefix[-1].isalnum():
                return util
    return None


def _run(func: UtilityMain, args: list[str]) -> int:
    try:
        code = func(args)
    except SystemExit as exit_:
        if exit_.code is None:
            return 0
        if isinstance(exit_.code, int):
            return exit_.code
        print(exit_.code, file=sys.stderr)
        return 1
    finally:
        sys.stdout.flush()
    return 0 if code is None else int(code)


def _not_found(util: str) -> int:
    print(f"{shlex.quote(util)}: function/utility not found")
    return 1


def main(argv: Sequence[str] | None = None) -> int:
    """Dispatch on the binary name or the first argument.

    ``argv`` is the whole argument vector, binary path first.
    """
    args = list(sys.argv if argv is None else argv)
    binary = args[0] if args and args[0] else sys.executable
    rest = args[1:]
    binary_name = PurePath(binary).stem
    utils = utility_map()

    if not binary_name:
        print(usage(UNKNOWN_BINARY), end="")
        return 0

    if binary_name in utils:
        return _run(utils[binary_name], rest)

    util = resolve_utility(binary_name)
    if util is None:
        if not rest:
            print(usage(binary_name), end="")
            return 0
        util, rest = rest[0], rest[1:]

    if util in utils:
        return _run(utils[util], rest)

    if util in ("--help", "-h"):
        if rest:
            wanted, rest = rest[0], rest[1:]
            if wanted not in utils:
                return _not_found(wanted)
            return _run(utils[wanted], ["--help", *rest])
        print(usage(binary_name), end="")
        return 0

    return _not_found(util)