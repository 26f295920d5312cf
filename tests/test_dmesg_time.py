from datetime import datetime, timedelta, timezone

import pytest

from uulinux.dmesg_time import (
    DeltaFormatter,
    ReltimeFormatter,
    boot_time,
    ctime,
    datetime_from_microseconds_since_boot,
    iso,
    parse_datetime,
    raw,
    set_boot_time,
)

BOOT = datetime(2024, 11, 18, 19, 34, 12, 866807, tzinfo=timezone(timedelta(hours=7)))


@pytest.fixture(autouse=True)
def fixed_boot():
    set_boot_time(BOOT)
    yield
    set_boot_time(None)


@pytest.mark.parametrize("ts", [0, 1, 999999, 1000000, 123456789])
def test_raw_round_trip(ts):
    text = raw(ts)
    assert len(text) == 12
    assert len(text.split(".")[1]) == 6
    assert int(text.replace(".", "").strip()) == ts


def test_ctime_at_boot():
    assert ctime(0) == "Mon Nov 18 19:34:12 2024"


@pytest.mark.parametrize("ts", [0, 5_000_000, 86_400_000_000])
def test_ctime_matches_boot_offset(ts):
    parsed = datetime.strptime(ctime(ts), "%a %b %d %H:%M:%S %Y")
    expected = (BOOT + timedelta(microseconds=ts)).replace(tzinfo=None, microsecond=0)
    assert parsed == expected


def test_iso_at_boot():
    assert iso(0) == "2024-11-18T19:34:12,866807+07:00"


@pytest.mark.parametrize("ts", [0, 1, 3_600_000_123])
def test_iso_round_trip(ts):
    parsed = datetime.fromisoformat(iso(ts).replace(",", "."))
    assert parsed == BOOT + timedelta(microseconds=ts)


def test_datetime_from_microseconds_since_boot():
    assert datetime_from_microseconds_since_boot(5_000_000) - boot_time() == timedelta(seconds=5)


def test_set_boot_time_rejects_naive():
    with pytest.raises(ValueError):
        set_boot_time(datetime(2024, 1, 1))


def test_reltime_sequence_from_boot():
    formatter = ReltimeFormatter()
    assert formatter.format(0) == BOOT.strftime("%b%d %H:%M")
    second = formatter.format(1_000_000)
    assert second == "  +0.000000"
    third = formatter.format(2_500_000)
    assert len(third) == 11
    assert third.strip() == "+1.500000"
    later = formatter.format(60_000_000)
    assert later == datetime_from_microseconds_since_boot(60_000_000).strftime("%b%d %H:%M")


def test_reltime_nonzero_start_uses_delta():
    formatter = ReltimeFormatter()
    formatter.format(5_000_000)
    assert formatter.format(6_000_000).strip() == "+1.000000"


def test_delta_after_boot_is_zero_twice():
    formatter = DeltaFormatter()
    outputs = [formatter.format(ts) for ts in (0, 2_000_000, 5_000_000)]
    assert outputs[0] == outputs[1] == "<    0.000000>"
    assert all(len(o) == 14 and o.startswith("<") and o.endswith(">") for o in outputs)
    assert outputs[2].strip("<> ") == raw(3_000_000).strip()


def test_delta_negative():
    formatter = DeltaFormatter()
    formatter.format(7_000_000)
    assert formatter.format(4_000_000) == "<   -3.000000>"


def test_parse_datetime_with_offset():
    parsed = parse_datetime("2024-11-18 19:34:12+07:00")
    assert parsed == BOOT.replace(microsecond=0)


def test_parse_datetime_epoch():
    assert parse_datetime("@0") == datetime(1970, 1, 1, tzinfo=timezone.utc)


def test_parse_datetime_naive_becomes_aware():
    parsed = parse_datetime("2024-01-02 03:04:05")
    assert parsed.utcoffset() is not None
    assert (parsed.year, parsed.month, parsed.day) == (2024, 1, 2)


def test_parse_datetime_invalid():
    with pytest.raises(ValueError, match='invalid time value "not a date"'):
        parse_datetime("not a date")