"""Timestamp formatting for kernel ring buffer records."""

from __future__ import annotations

import enum
import re
import struct
from datetime import datetime, timedelta, timezone
from pathlib import Path

from dateutil import parser as _dateparser

UTMP_PATH = "/var/run/utmp"

_US_PER_SECOND = 1_000_000
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

# One utmp entry: type, padding, everything up to tv_sec, tv_sec, tv_usec, rest.
_UTMP_ENTRY = struct.Struct("=h2x336xii36x")
_UTMP_BOOT_TIME = 2

_boot_time: datetime | None = None


def _split_us(timestamp_us: int) -> tuple[int, int]:
    """Split microseconds into seconds and remainder, truncating toward zero."""
    seconds, sub = divmod(abs(timestamp_us), _US_PER_SECOND)
    if timestamp_us < 0:
        return -seconds, -sub
    return seconds, sub


def _trunc_div(a: int, b: int) -> int:
    quotient = abs(a) // b
    return -quotient if a < 0 else quotient


def _read_boot_time() -> datetime:
    try:
        data = Path(UTMP_PATH).read_bytes()
    except OSError:
        data = b""
    usable = len(data) - len(data) % _UTMP_ENTRY.size
    for entry_type, tv_sec, tv_usec in _UTMP_ENTRY.iter_unpack(data[:usable]):
        if entry_type == _UTMP_BOOT_TIME:
            moment = datetime.fromtimestamp(tv_sec, tz=timezone.utc)
            return (moment + timedelta(microseconds=tv_usec)).astimezone()
    return _EPOCH


def boot_time() -> datetime:
    """Return the system boot time as a timezone-aware datetime."""
    global _boot_time
    if _boot_time is None:
        _boot_time = _read_boot_time()
    return _boot_time


def set_boot_time(value: datetime | None) -> None:
    """Fix the boot time used for formatting; None restores detection."""
    global _boot_time
    if value is not None and value.tzinfo is None:
        raise ValueError("boot time must be timezone-aware")
    _boot_time = value


def datetime_from_microseconds_since_boot(microseconds: int) -> datetime:
    """Return the wall-clock time of an offset from boot."""
    return boot_time() + timedelta(microseconds=microseconds)


def _utc_offset(moment: datetime) -> str:
    offset = moment.utcoffset() or timedelta(0)
    total = int(offset.total_seconds())
    sign = "+" if total >= 0 else "-"
    total = abs(total)
    return f"{sign}{total // 3600:02d}:{total % 3600 // 60:02d}"


def _short_date(moment: datetime) -> str:
    return f"{_MONTHS[moment.month - 1]}{moment.day:02d} {moment:%H:%M}"


def raw(timestamp_us: int) -> str:
    """Format microseconds since boot as seconds with six decimals."""
    seconds, sub = _split_us(timestamp_us)
    return f"{seconds:>5}.{str(sub).rjust(6, '0')}"


def ctime(timestamp_us: int) -> str:
    """Format a record time in the classic ctime style."""
    moment = datetime_from_microseconds_since_boot(timestamp_us)
    return (
        f"{_WEEKDAYS[moment.weekday()]} {_MONTHS[moment.month - 1]} "
        f"{moment.day:02d} {moment:%H:%M:%S} {moment.year}"
    )


def iso(timestamp_us: int) -> str:
    """Format a record time as ISO-8601 with a comma before microseconds."""
    moment = datetime_from_microseconds_since_boot(timestamp_us)
    return (
        f"{moment:%Y-%m-%dT%H:%M:%S},{moment.microsecond:06d}"
        f"{_utc_offset(moment)}"
    )


class _State(enum.Enum):
    INITIAL = enum.auto()
    AFTER_BOOT = enum.auto()
    DELTA = enum.auto()


def _next_state(state: _State, timestamp_us: int) -> _State:
    if state is _State.INITIAL and timestamp_us == 0:
        return _State.AFTER_BOOT
    return _State.DELTA


class ReltimeFormatter:
    """Show a date when the minute changes and relative deltas otherwise."""

    def __init__(self) -> None:
        self._state = _State.INITIAL
        self._prev_timestamp_us = 0
        self._prev_unix_timestamp = 0

    def format(self, timestamp_us: int) -> str:
        moment = datetime_from_microseconds_since_boot(timestamp_us)
        unix_timestamp = (moment - _EPOCH) // timedelta(seconds=1)
        minute_changes = _trunc_div(unix_timestamp, 60) != _trunc_div(
            self._prev_unix_timestamp, 60
        )
        if self._state is _State.INITIAL or minute_changes:
            result = _short_date(moment)
        elif self._state is _State.AFTER_BOOT:
            result = self._delta(0)
        else:
            result = self._delta(timestamp_us - self._prev_timestamp_us)
        self._prev_timestamp_us = timestamp_us
        self._prev_unix_timestamp = unix_timestamp
        self._state = _next_state(self._state, timestamp_us)
        return result

    @staticmethod
    def _delta(delta_us: int) -> str:
        seconds, sub = _split_us(delta_us)
        sign = "+" if delta_us >= 0 else "-"
        return f"{sign}{abs(seconds)}.{abs(sub):06d}".rjust(11)


class DeltaFormatter:
    """Show the time elapsed since the previous record."""

    def __init__(self) -> None:
        self._state = _State.INITIAL
        self._prev_timestamp_us = 0

    def format(self, timestamp_us: int) -> str:
        if self._state is _State.DELTA:
            result = self._delta(timestamp_us - self._prev_timestamp_us)
        else:
            result = self._delta(0)
        self._prev_timestamp_us = timestamp_us
        self._state = _next_state(self._state, timestamp_us)
        return result

    @staticmethod
    def _delta(delta_us: int) -> str:
        seconds, sub = _split_us(delta_us)
        text = f"{abs(seconds)}.{abs(sub):06d}"
        if delta_us < 0:
            text = "-" + text
        return f"<{text:>12}>"


def parse_datetime(s: str) -> datetime:
    """Parse a user-supplied time into a timezone-aware datetime."""
    text = s.strip()
    try:
        if text == "now":
            return datetime.now().astimezone()
        if re.fullmatch(r"@[+-]?\d+(\.\d+)?", text):
            return datetime.fromtimestamp(float(text[1:]), tz=timezone.utc)
        parsed = _dateparser.parse(text)
        if parsed.tzinfo is None:
            parsed = parsed.astimezone()
        return parsed
    except (ValueError, OverflowError, OSError) as err:
        raise ValueError(f'invalid time value "{s}"') from err