"""Print or filter the kernel ring buffer."""

from __future__ import annotations

import argparse
import enum
import os
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Iterator, TextIO

from uulinux.dmesg_json import serialize_records
from uulinux.dmesg_time import (
    DeltaFormatter,
    ReltimeFormatter,
    ctime,
    datetime_from_microseconds_since_boot,
    iso,
    parse_datetime,
    raw,
)

KMSG_PATH = "/dev/kmsg"

_U32_MAX = 2**32 - 1
_U64_MAX = 2**64 - 1
_I64_MAX = 2**63 - 1
_READ_SIZE = 8192

_NUMBER = "0|[1-9][0-9]*"
_ADDITIONAL_FIELDS = ",^[,;]*"
_RECORD_RE = re.compile(
    rf"^({_NUMBER}),({_NUMBER}),({_NUMBER}),.(?:{_ADDITIONAL_FIELDS})*;(.*)$",
    re.MULTILINE,
)


class DmesgError(Exception):
    """A failure that ends the command with exit status 1."""


class OutputFormat(enum.Enum):
    NORMAL = "normal"
    JSON = "json"


class TimeFormat(enum.Enum):
    DELTA = "delta"
    RELTIME = "reltime"
    CTIME = "ctime"
    NOTIME = "notime"
    ISO = "iso"
    RAW = "raw"


class Facility(enum.Enum):
    KERN = 0
    USER = 1
    MAIL = 2
    DAEMON = 3
    AUTH = 4
    SYSLOG = 5
    LPR = 6
    NEWS = 7
    UUCP = 8
    CRON = 9
    AUTHPRIV = 10
    FTP = 11
    RES0 = 12
    RES1 = 13
    RES2 = 14
    RES3 = 15
    LOCAL0 = 16
    LOCAL1 = 17
    LOCAL2 = 18
    LOCAL3 = 19
    LOCAL4 = 20
    LOCAL5 = 21
    LOCAL6 = 22
    LOCAL7 = 23
    UNKNOWN = -1

    @classmethod
    def from_priority(cls, value: int) -> Facility:
        """Extract the facility from a combined priority/facility value."""
        code = (value >> 3) & 0xFF
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class Level(enum.Enum):
    EMERG = 0
    ALERT = 1
    CRIT = 2
    ERR = 3
    WARN = 4
    NOTICE = 5
    INFO = 6
    DEBUG = 7
    UNKNOWN = -1

    @classmethod
    def from_priority(cls, value: int) -> Level:
        """Extract the log level from a combined priority/facility value."""
        try:
            return cls(value & 0b111)
        except ValueError:
            return cls.UNKNOWN


_FACILITY_NAMES = {f.name.lower(): f for f in Facility if f is not Facility.UNKNOWN}
_LEVEL_NAMES = {lv.name.lower(): lv for lv in Level if lv is not Level.UNKNOWN}


@dataclass(frozen=True)
class Record:
    """One kernel log record."""

    priority_facility: int
    sequence: int
    timestamp_us: int
    message: str


def _record_from_fields(pri_fac: str, seq: str, time: str, msg: str) -> Record | None:
    pri, sequence, stamp = int(pri_fac), int(seq), int(time)
    if pri > _U32_MAX or sequence > _U64_MAX or stamp > _I64_MAX:
        return None
    return Record(pri, sequence, stamp, msg)


def parse_record(line: str) -> Record | None:
    """Return the first well-formed record in ``line``, or None."""
    for match in _RECORD_RE.finditer(line):
        record = _record_from_fields(*match.groups())
        if record is not None:
            return record
    return None


def _split_lists(values: Iterable[str]) -> Iterator[str]:
    for value in values:
        yield from value.split(",")


def parse_facilities(values: Iterable[str]) -> set[Facility]:
    """Parse comma-separated facility names."""
    result = set()
    for name in _split_lists(values):
        facility = _FACILITY_NAMES.get(name)
        if facility is None:
            raise DmesgError(f"unknown facility '{name}'")
        result.add(facility)
    return result


def parse_levels(values: Iterable[str]) -> set[Level]:
    """Parse comma-separated level names."""
    result = set()
    for name in _split_lists(values):
        level = _LEVEL_NAMES.get(name)
        if level is None:
            raise DmesgError(f"unknown level '{name}'")
        result.add(level)
    return result


def parse_time_format(value: str) -> TimeFormat:
    """Parse a --time-format argument."""
    try:
        return TimeFormat(value)
    except ValueError as err:
        raise DmesgError(f"unknown time format: {value}") from err


def _read_chunks(fd: int, separator: bytes) -> Iterator[bytes]:
    buffer = b""
    try:
        while True:
            index = buffer.find(separator)
            if index >= 0:
                chunk, buffer = buffer[: index + 1], buffer[index + 1 :]
                yield chunk
                continue
            try:
                data = os.read(fd, _READ_SIZE)
            except BlockingIOError:
                return
            except OSError as err:
                raise DmesgError(err.strerror or str(err)) from err
            if not data:
                if buffer:
                    yield buffer
                return
            buffer += data
    finally:
        os.close(fd)


@dataclass
class Dmesg:
    """Settings for one run: the source, the output form and the filters."""

    kmsg_file: str = KMSG_PATH
    kmsg_record_separator: bytes = b"\n"
    output_format: OutputFormat = OutputFormat.NORMAL
    time_format: TimeFormat = TimeFormat.RAW
    facility_filters: set[Facility] | None = None
    level_filters: set[Level] | None = None
    since_filter: datetime | None = None
    until_filter: datetime | None = None

    def records(self) -> Iterator[Record]:
        """Open the source and return an iterator over its parsed records."""
        flags = os.O_RDONLY | getattr(os, "O_NONBLOCK", 0) | getattr(os, "O_BINARY", 0)
        try:
            fd = os.open(self.kmsg_file, flags)
        except OSError as err:
            raise DmesgError(
                f"cannot open {self.kmsg_file}: {err.strerror or err}"
            ) from err
        if hasattr(os, "SEEK_DATA"):
            try:
                os.lseek(fd, 0, os.SEEK_DATA)
            except OSError:
                pass
        return self._parse_chunks(_read_chunks(fd, self.kmsg_record_separator))

    @staticmethod
    def _parse_chunks(chunks: Iterator[bytes]) -> Iterator[Record]:
        for chunk in chunks:
            record = parse_record(chunk.decode("utf-8", errors="replace"))
            if record is not None:
                yield record

    def _accepts(self, record: Record) -> bool:
        if (
            self.facility_filters is not None
            and Facility.from_priority(record.priority_facility) not in self.facility_filters
        ):
            return False
        if (
            self.level_filters is not None
            and Level.from_priority(record.priority_facility) not in self.level_filters
        ):
            return False
        if self.since_filter is not None or self.until_filter is not None:
            moment = datetime_from_microseconds_since_boot(record.timestamp_us)
            if self.since_filter is not None and moment < self.since_filter:
                return False
            if self.until_filter is not None and moment > self.until_filter:
                return False
        return True

    def filtered_records(self) -> Iterator[Record]:
        """Return the records that pass every configured filter."""
        return filter(self._accepts, self.records())

    def print(self, stream: TextIO | None = None) -> None:
        """Write the records to ``stream`` (standard output by default)."""
        out = sys.stdout if stream is None else stream
        if self.output_format is OutputFormat.JSON:
            records = list(self.filtered_records())
            out.write(serialize_records(records) + "\n")
            return
        reltime = ReltimeFormatter()
        delta = DeltaFormatter()
        for record in self.filtered_records():
            stamp = record.timestamp_us
            prefix = {
                TimeFormat.DELTA: lambda: f"[{delta.format(stamp)}] ",
                TimeFormat.RELTIME: lambda: f"[{reltime.format(stamp)}] ",
                TimeFormat.CTIME: lambda: f"[{ctime(stamp)}] ",
                TimeFormat.ISO: lambda: f"{iso(stamp)} ",
                TimeFormat.RAW: lambda: f"[{raw(stamp)}] ",
                TimeFormat.NOTIME: lambda: "",
            }[self.time_format]()
            out.write(f"{prefix}{record.message}\n")


def _parse_time(value: str) -> datetime:
    try:
        return parse_datetime(value)
    except ValueError as err:
        raise DmesgError(str(err)) from err


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dmesg", description="Display or control the kernel ring buffer.")
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    parser.add_argument("-K", "--kmsg-file", help="use the file in kmsg format")
    parser.add_argument("-J", "--json", action="store_true", help="use JSON output format")
    parser.add_argument(
        "--time-format",
        help="show timestamp using the given format: [delta|reltime|ctime|notime|iso|raw]",
    )
    parser.add_argument("-f", "--facility", action="append", help="restrict output to defined facilities")
    parser.add_argument("-l", "--level", action="append", help="restrict output to defined levels")
    parser.add_argument("--since", help="display the lines since the specified time")
    parser.add_argument("--until", help="display the lines until the specified time")
    return parser


def _configure(args: argparse.Namespace) -> Dmesg:
    dmesg = Dmesg()
    if args.json:
        dmesg.output_format = OutputFormat.JSON
    if args.time_format is not None:
        dmesg.time_format = parse_time_format(args.time_format)
    if args.facility is not None:
        dmesg.facility_filters = parse_facilities(args.facility)
    if args.level is not None:
        dmesg.level_filters = parse_levels(args.level)
    if args.since is not None:
        dmesg.since_filter = _parse_time(args.since)
    if args.until is not None:
        dmesg.until_filter = _parse_time(args.until)
    if args.kmsg_file is not None:
        dmesg.kmsg_file = args.kmsg_file
        dmesg.kmsg_record_separator = b"\0"
    elif sys.platform == "win32":
        raise DmesgError("Windows requires the use of '-K'")
    return dmesg


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        _configure(args).print()
    except DmesgError as err:
        print(f"dmesg: {err}", file=sys.stderr)
        return 1
    return 0