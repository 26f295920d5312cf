"""Show a listing of last logged-in users from a wtmp file."""

from __future__ import annotations

import argparse
import ipaddress
import os
import socket
import struct
import sys
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import PurePath
from typing import TextIO

WTMP_PATH = "/var/log/wtmp"
TIME_FORMATS = ("notime", "short", "full", "iso")

RUN_LVL = 1
BOOT_TIME = 2
USER_PROCESS = 7
DEAD_PROCESS = 8

RUN_LEVEL_STR = "runlevel"
REBOOT_STR = "reboot"
SHUTDOWN_STR = "shutdown"

_UTMP_ENTRY = struct.Struct("=hxxi32s4s32s256shhiii16s20x")
UTMP_RECORD_SIZE = _UTMP_ENTRY.size

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_TIME_SIZE = 3 + 2 + 2 + 1 + 2
_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1


class LastError(Exception):
    """A failure of the command; ``code`` is the exit status it ends with."""

    def __init__(self, message: str, code: int = 1) -> None:
        super().__init__(message)
        self.code = code


def _text(raw: bytes) -> str:
    return raw.split(b"\0", 1)[0].decode("utf-8", errors="replace")


@dataclass(frozen=True)
class UtmpRecord:
    """One login accounting entry."""

    type: int
    pid: int
    line: str
    id: str
    user: str
    host: str
    exit_termination: int = 0
    exit_status: int = 0
    session: int = 0
    tv_sec: int = 0
    tv_usec: int = 0
    addr_v6: bytes = b""

    def is_user_process(self) -> bool:
        """True for a normal login entry that names a user."""
        return self.type == USER_PROCESS and self.user != ""

    def login_time(self, tz: tzinfo | None = None) -> datetime:
        """The entry's time, in ``tz`` or the local zone."""
        moment = _EPOCH + timedelta(seconds=self.tv_sec, microseconds=self.tv_usec)
        return moment.astimezone(tz)


def read_utmp(path: str | os.PathLike) -> list[UtmpRecord]:
    """Read every complete entry of a utmp/wtmp file, oldest first."""
    with open(path, "rb") as handle:
        data = handle.read()
    usable = len(data) - len(data) % UTMP_RECORD_SIZE
    return [
        UtmpRecord(
            type=entry_type,
            pid=pid,
            line=_text(line),
            id=_text(ident),
            user=_text(user),
            host=_text(host),
            exit_termination=e_term,
            exit_status=e_exit,
            session=session,
            tv_sec=tv_sec,
            tv_usec=tv_usec,
            addr_v6=addr,
        )
        for (
            entry_type, pid, line, ident, user, host,
            e_term, e_exit, session, tv_sec, tv_usec, addr,
        ) in _UTMP_ENTRY.iter_unpack(data[:usable])
    ]


def is_numeric(s: str) -> bool:
    """True when every character is numeric (including the empty string)."""
    return all(c.isnumeric() for c in s)


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // b
    return -quotient if a < 0 else quotient


def _pad(n: int) -> str:
    return str(n).rjust(2, "0")


def duration_string(seconds: float | timedelta) -> str:
    """Format a session length as ``(hh:mm)`` or ``(d+hh:mm)``."""
    if isinstance(seconds, timedelta):
        seconds = seconds.total_seconds()
    remaining = int(seconds)
    days = _trunc_div(remaining, 86400)
    remaining -= days * 86400
    hours = _trunc_div(remaining, 3600)
    remaining -= hours * 3600
    minutes = _trunc_div(remaining, 60)
    if days > 0:
        return f"({days}+{_pad(hours)}:{_pad(minutes)})"
    return f"({_pad(hours)}:{_pad(minutes)})"


def find_dns_name(host: str) -> str:
    """Look up the name of an IPv4 host; unparsable input gives 0.0.0.0."""
    try:
        address = str(ipaddress.IPv4Address(host))
    except ValueError:
        address = "0.0.0.0"
    if address == "0.0.0.0":
        return address
    try:
        return socket.getnameinfo((address, 0), 0)[0]
    except OSError:
        return ""


def _offset(moment: datetime) -> str:
    total = int((moment.utcoffset() or timedelta(0)).total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    return f"{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _full(moment: datetime) -> str:
    return (
        f"{_WEEKDAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} "
        f"{moment.day:>2} {moment:%H:%M:%S} {moment.year:04d}"
    )


def _start_short(moment: datetime) -> str:
    return (
        f"{_WEEKDAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} "
        f"{moment.day:>2} {moment:%H:%M}"
    )


def _iso(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment:%m-%dT%H:%M:%S}+{_offset(moment)}"


def _host_prefix(host: str) -> str:
    raw = host.encode("utf-8")
    if len(raw) < 16:
        return host
    try:
        return raw[:16].decode("utf-8")
    except UnicodeDecodeError:
        return host


@dataclass
class Last:
    """Options for one listing and the state kept while walking the file."""

    file: str = WTMP_PATH
    system: bool = False
    dns: bool = False
    host_last: bool = False
    no_host: bool = False
    limit: int = 0
    time_format: str = "short"
    users: list[str] | None = None
    tz: tzinfo | None = None
    stream: TextIO | None = None
    _last_reboot: UtmpRecord | None = field(default=None, init=False, repr=False)
    _last_shutdown: UtmpRecord | None = field(default=None, init=False, repr=False)
    _last_dead: list[UtmpRecord] = field(default_factory=list, init=False, repr=False)

    def _emit(self, text: str) -> None:
        print(text, file=sys.stdout if self.stream is None else self.stream)

    def _login(self, ut: UtmpRecord) -> datetime:
        return ut.login_time(self.tz)

    def _file_time(self, moment: datetime) -> str:
        if self.time_format in ("short", "full"):
            return _full(moment.astimezone(self.tz))
        if self.time_format == "iso":
            return _iso(moment.astimezone(self.tz))
        return ""

    def _time_string(self, ut: UtmpRecord) -> str:
        moment = self._login(ut)
        if self.time_format == "short":
            return _start_short(moment)
        if self.time_format == "full":
            return _full(moment)
        if self.time_format == "iso":
            return _iso(moment)
        return ""

    def _end_time_string(self, status: str | None, end: datetime) -> str:
        if status is not None:
            return status
        if self.time_format == "short":
            return f"- {end:%H:%M}"
        if self.time_format == "full":
            return f"- {_full(end)}"
        if self.time_format == "iso":
            return f"- {_iso(end)}"
        return ""

    def _end_state(self, ut: UtmpRecord, dead: UtmpRecord | None) -> tuple[str, str]:
        current = self._login(ut)
        if dead is not None:
            dead_time = self._login(dead)
            return (
                self._end_time_string(None, dead_time),
                duration_string(dead_time - current),
            )
        if self._last_shutdown is None:
            if ut.is_user_process():
                if self._last_reboot is not None and self._login(self._last_reboot) > current:
                    return "- crash", ""
                return "  still logged in", ""
            return "  still running", ""
        shutdown = self._login(self._last_shutdown)
        status = "- down" if ut.is_user_process() else None
        return self._end_time_string(status, shutdown), duration_string(shutdown - current)

    def _host(self, ut: UtmpRecord) -> str:
        return find_dns_name(ut.host) if self.dns else ut.host

    def _wanted(self, *names: str) -> bool:
        if self.users is None:
            return True
        stripped = {name.strip() for name in names}
        return any(user.strip() in stripped for user in self.users)

    def _print_runlevel(self, ut: UtmpRecord) -> bool:
        if not self._wanted(ut.user) or not self.system:
            return False
        level = chr(ut.pid % 256)
        end_date, delta = self._end_state(ut, None)
        self._emit(
            self.format_line(
                RUN_LEVEL_STR, f"(to lvl {level})", self._time_string(ut),
                self._host(ut), end_date, delta,
            )
        )
        return True

    def _print_shutdown(self, ut: UtmpRecord) -> bool:
        if not self._wanted("system down", ut.user):
            return False
        host = self._host(ut)
        if not self.system:
            return False
        end_date, delta = self._end_state(ut, None)
        self._emit(
            self.format_line(
                SHUTDOWN_STR, "system down", self._time_string(ut), host, end_date, delta
            )
        )
        return True

    def _print_reboot(self, ut: UtmpRecord) -> bool:
        if not self._wanted(ut.user, "system boot"):
            return False
        end_date, delta = self._end_state(ut, None)
        self._emit(
            self.format_line(
                REBOOT_STR, "system boot", self._time_string(ut),
                self._host(ut), end_date, delta,
            )
        )
        return True

    def _print_user(self, ut: UtmpRecord, dead: UtmpRecord | None) -> bool:
        if not self._wanted(ut.line, ut.user):
            return False
        host = self._host(ut)
        end_date, delta = self._end_state(ut, dead)
        self._emit(
            self.format_line(ut.user, ut.line, self._time_string(ut), host, end_date, delta)
        )
        return True

    def _take_dead(self, tty: str) -> UtmpRecord | None:
        for pos, dead in enumerate(self._last_dead):
            if dead.line == tty:
                self._last_dead[pos] = self._last_dead[-1]
                self._last_dead.pop()
                return dead
        return None

    def _file_label(self) -> str:
        absolute = os.path.join(os.getcwd(), self.file)
        name = PurePath(absolute).name
        if name in ("", ".."):
            if os.path.isdir(absolute):
                raise LastError("Is a directory")
            raise LastError("Undefined")
        return name

    def format_line(
        self, user: str, line: str, time: str, host: str, end_time: str, delta: str
    ) -> str:
        """Lay out one output row."""
        host_to_print = _host_prefix(host)
        parts = [f"{user:<8}", f" {line:<12}"]
        if not self.host_last and not self.no_host:
            parts.append(f" {host_to_print:<16}")
        if self.time_format != "notime":
            parts.append(f" {time:<{_TIME_SIZE}}")
            parts.append(f" {end_time:<8}")
            if self.host_last and not self.no_host:
                parts.append(f" {host_to_print}")
        parts.append(f" {delta:^6}")
        return "".join(parts).rstrip()

    def exec(self) -> None:
        """Print the listing, newest entry first, then the file's start time."""
        self._last_reboot = None
        self._last_shutdown = None
        self._last_dead = []
        try:
            stack = read_utmp(self.file)
        except OSError:
            stack = []

        counter = 0
        first_time: str | None = None
        while stack:
            ut = stack.pop()
            if not stack:
                first_time = self._file_time(self._login(ut))
            if self.limit > 0 and counter >= self.limit:
                break
            if ut.is_user_process():
                if self._print_user(ut, self._take_dead(ut.line)):
                    counter += 1
            elif ut.user == RUN_LEVEL_STR:
                if self._print_runlevel(ut):
                    counter += 1
            elif ut.user == SHUTDOWN_STR:
                if self._print_shutdown(ut):
                    counter += 1
                self._last_shutdown = ut
            elif ut.user == REBOOT_STR:
                if self._print_reboot(ut):
                    counter += 1
                self._last_reboot = ut
            elif ut.user == "":
                self._last_dead.append(ut)

        name = self._file_label()
        if first_time is None:
            ctime_ns = os.stat(self.file).st_ctime_ns
            moment = _EPOCH + timedelta(microseconds=ctime_ns // 1000)
            first_time = self._file_time(moment)
        self._emit(f"\n{name} begins {first_time}")


def _limit(text: str) -> int:
    try:
        value = int(text)
    except ValueError as err:
        raise argparse.ArgumentTypeError(f"invalid value '{text}'") from err
    if not _I32_MIN <= value <= _I32_MAX:
        raise argparse.ArgumentTypeError(f"invalid value '{text}'")
    return value


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="last",
        description="Show a listing of last logged in users.",
        epilog=f"If FILE is not specified, use {WTMP_PATH}.  "
        "/var/log/wtmp as FILE is common.",
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    parser.add_argument(
        "-f", "--file", default=WTMP_PATH,
        help="use a specific file instead of /var/log/wtmp",
    )
    parser.add_argument(
        "-x", "--system", action="store_true",
        help="display system shutdown entries and run level changes",
    )
    parser.add_argument(
        "-d", "--dns", action="store_true",
        help="translate the IP number back into a hostname",
    )
    parser.add_argument(
        "-a", "--hostlast", action="store_true",
        help="display hostnames in the last column",
    )
    parser.add_argument(
        "-R", "--nohostname", action="store_true",
        help="don't display the hostname field",
    )
    parser.add_argument("-n", "--limit", type=_limit, help="how many lines to show")
    parser.add_argument(
        "--time-format", default="short",
        help="show timestamps in the specified <format>: notime|short|full|iso",
    )
    parser.add_argument("username", nargs="*")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if sys.platform == "win32":
        print("unsupported command on Windows")
        return 0
    if sys.platform.startswith("openbsd"):
        print("unsupported command on OpenBSD")
        return 0

    try:
        if args.time_format.strip() not in TIME_FORMATS:
            raise LastError(f"unknown time format: {args.time_format}", code=0)
        users = (
            [f"tty{name}" if is_numeric(name) else name for name in args.username]
            if args.username
            else None
        )
        Last(
            file=args.file,
            system=args.system,
            dns=args.dns,
            host_last=args.hostlast,
            no_host=args.nohostname,
            limit=args.limit if args.limit is not None else 0,
            time_format=args.time_format,
            users=users,
        ).exec()
    except LastError as err:
        print(f"last: {err}", file=sys.stderr)
        return err.code
    except OSError as err:
        print(f"last: {err.strerror or err}", file=sys.stderr)
        return 1
    return 0