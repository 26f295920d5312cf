import json
from dataclasses import dataclass

import pytest

from uulinux.dmesg_json import serialize_records


@dataclass
class _Rec:
    priority_facility: int
    timestamp_us: int
    message: str


def test_single_record_layout():
    out = serialize_records([_Rec(6, 1_500_000, "hello")])
    assert out == (
        "{\n"
        '   "dmesg": [\n'
        "      {\n"
        '         "pri": 6,\n'
        '         "time":     1.500000,\n'
        '         "msg": "hello"\n'
        "      }\n"
        "   ]\n"
        "}"
    )


def test_records_are_joined_without_newline():
    out = serialize_records([_Rec(6, 0, "a"), _Rec(5, 1, "b")])
    assert "},{\n" in out


@pytest.mark.parametrize(
    "records",
    [
        [_Rec(6, 0, "boot")],
        [_Rec(0, 123_456_789_012, "x"), _Rec(30, 42, 'say "hi"\n\ttab')],
        [_Rec(14, 7, "ünïcode \\ back")],
    ],
)
def test_output_is_valid_json(records):
    data = json.loads(serialize_records(records))
    assert [r["pri"] for r in data["dmesg"]] == [r.priority_facility for r in records]
    assert [r["msg"] for r in data["dmesg"]] == [r.message for r in records]
    for parsed, rec in zip(data["dmesg"], records):
        assert parsed["time"] == pytest.approx(rec.timestamp_us / 1_000_000)


def test_empty_records():
    out = serialize_records([])
    assert json.loads(out) == {"dmesg": []}
    assert out.startswith("{\n")
    assert out.endswith("\n}")


def test_non_ascii_kept_literal():
    out = serialize_records([_Rec(6, 0, "ünï")])
    assert "ünï" in out