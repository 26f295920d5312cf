"""CPU lists such as ``0,2,7,10-13`` and dispatching modes."""

from __future__ import annotations

import enum
import re
import sys
from typing import Callable, Iterable, Iterator

from uulinux.chcpu_errors import (
    CPU_SPEC_FIRST_AFTER_LAST,
    CPU_SPEC_NOT_POSITIVE_INTEGER,
    EMPTY_CPU_LIST,
    ChCpuError,
)

PARTIAL_SUCCESS = 64

_USIZE_MAX = 2**64 - 1
_ASCII_WS = b" \t\n\r\x0c"
_INDEX_RE = re.compile(r"\+?[0-9]+")


class DispatchMode(enum.Enum):
    """How the hypervisor spreads work over CPUs."""

    HORIZONTAL = 0
    VERTICAL = 1

    def __str__(self) -> str:
        return self.name.lower()


class CpuList:
    """A set of CPU indices kept as merged inclusive ranges."""

    def __init__(self, ranges: Iterable[tuple[int, int]] = ()) -> None:
        self._ranges: list[tuple[int, int]] = []
        for first, last in ranges:
            self._insert(first, last)

    def _insert(self, first: int, last: int) -> None:
        kept = []
        for start, end in self._ranges:
            if end + 1 < first or start > last + 1:
                kept.append((start, end))
            else:
                first, last = min(first, start), max(last, end)
        kept.append((first, last))
        self._ranges = sorted(kept)

    def _delete(self, first: int, last: int) -> None:
        kept = []
        for start, end in self._ranges:
            if end < first or start > last:
                kept.append((start, end))
                continue
            if start < first:
                kept.append((start, first - 1))
            if end > last:
                kept.append((last + 1, end))
        self._ranges = kept

    def __iter__(self) -> Iterator[int]:
        for start, end in self._ranges:
            yield from range(start, end + 1)

    def __contains__(self, cpu: object) -> bool:
        return any(start <= cpu <= end for start, end in self._ranges)

    def __bool__(self) -> bool:
        return bool(self._ranges)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CpuList):
            return NotImplemented
        return self._ranges == other._ranges

    def __repr__(self) -> str:
        return f"CpuList({self._ranges!r})"

    def add(self, cpu: int) -> None:
        """Add one CPU index."""
        self._insert(cpu, cpu)

    def remove(self, cpu: int) -> None:
        """Remove one CPU index if present."""
        self._delete(cpu, cpu)

    def run(self, func: Callable[[int], object]) -> int:
        """Apply ``func`` to each CPU, reporting failures on standard error.

        Returns 0 when all succeed and 64 when only some do; when every
        call fails the first error is raised.
        """
        succeeded = False
        first_error: ChCpuError | None = None
        for cpu in self:
            try:
                func(cpu)
            except ChCpuError as err:
                print(err, file=sys.stderr)
                if first_error is None:
                    first_error = err
            else:
                succeeded = True
        if first_error is None:
            return 0
        if succeeded:
            return PARTIAL_SUCCESS
        raise first_error


def _parse_index(raw: bytes) -> int:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as err:
        raise ChCpuError(CPU_SPEC_NOT_POSITIVE_INTEGER) from err
    if not _INDEX_RE.fullmatch(text):
        raise ChCpuError(CPU_SPEC_NOT_POSITIVE_INTEGER)
    value = int(text)
    if value > _USIZE_MAX:
        raise ChCpuError(CPU_SPEC_NOT_POSITIVE_INTEGER)
    return value


def parse_cpu_list(text: str | bytes) -> CpuList:
    """Parse a comma-separated list of CPU indices and inclusive ranges."""
    data = text.encode("utf-8") if isinstance(text, str) else bytes(text)
    ranges = []
    for element in data.split(b","):
        parts = element.split(b"-", 1)
        first = _parse_index(parts[0].strip(_ASCII_WS))
        last = first
        if len(parts) == 2:
            last = _parse_index(parts[1].strip(_ASCII_WS))
            if first > last:
                raise ChCpuError(CPU_SPEC_FIRST_AFTER_LAST)
        ranges.append((first, last))
    if not ranges:
        raise ChCpuError(EMPTY_CPU_LIST)
    return CpuList(ranges)