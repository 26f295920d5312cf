"""JSON output for kernel ring buffer records."""

from __future__ import annotations

import json
from typing import Iterable, Protocol

from uulinux.dmesg_time import raw

_INDENT = "   "


class _RecordLike(Protocol):
    priority_facility: int
    timestamp_us: int
    message: str


def _field(key: str, value: str) -> str:
    return f"{_INDENT * 3}{json.dumps(key)}: {value}"


def _record_object(record: _RecordLike) -> str:
    fields = [
        _field("pri", str(int(record.priority_facility))),
        _field("time", raw(record.timestamp_us)),
        _field("msg", json.dumps(record.message, ensure_ascii=False)),
    ]
    return "{\n" + ",\n".join(fields) + "\n" + _INDENT * 2 + "}"


def serialize_records(records: Iterable[_RecordLike]) -> str:
    """Render records as the indented JSON document dmesg prints."""
    objects = [_record_object(record) for record in records]
    items = _INDENT * 2 + ",".join(objects) if objects else ""
    array = "[\n" + items + "\n" + _INDENT + "]"
    return "{\n" + _INDENT + '"dmesg": ' + array + "\n}"