import pytest

from uulinux.multicall import main, resolve_utility, usage, utility_map

NAMES = ["blockdev", "chcpu", "ctrlaltdel", "dmesg", "fsfreeze", "last"]


def test_utility_map_is_sorted_and_complete():
    utils = utility_map()
    assert list(utils) == NAMES
    assert all(callable(func) for func in utils.values())


@pytest.mark.parametrize("name", NAMES)
def test_resolve_exact_name(name):
    assert resolve_utility(name) == name


@pytest.mark.parametrize(
    "binary, expected",
    [
        ("uu-dmesg", "dmesg"),
        ("uu_last", "last"),
        ("x.blockdev", "blockdev"),
        ("xdmesg", None),
        ("util-linux", None),
        ("", None),
    ],
)
def test_resolve_prefixed_names(binary, expected):
    assert resolve_utility(binary) == expected


def test_usage_header_and_indentation():
    text = usage("util-linux", 40)
    lines = text.splitlines()
    assert lines[0] == "util-linux 0.0.1 (multi-call binary)"
    assert "Usage: util-linux [function [arguments...]]" in lines
    start = lines.index("Currently defined functions:") + 2
    listing = lines[start:]
    assert listing
    assert all(line.startswith("    ") for line in listing)
    assert all(len(line) <= 44 for line in listing)
    joined = " ".join(line.strip() for line in listing)
    assert joined == ", ".join(NAMES)


def test_usage_narrow_width_wraps_more():
    narrow = usage("x", 12).splitlines()
    wide = usage("x", 92).splitlines()
    assert len(narrow) > len(wide)


def test_no_arguments_prints_usage(capsys):
    assert main(["util-linux"]) == 0
    out = capsys.readouterr().out
    assert out == usage("util-linux")


def test_unknown_utility(capsys):
    assert main(["util-linux", "nosuch"]) == 1
    assert capsys.readouterr().out == "nosuch: function/utility not found\n"


def test_help_without_utility_prints_usage(capsys):
    assert main(["util-linux", "--help"]) == 0
    assert capsys.readouterr().out == usage("util-linux")


def test_help_for_unknown_utility(capsys):
    assert main(["util-linux", "-h", "nosuch"]) == 1
    assert "nosuch: function/utility not found" in capsys.readouterr().out


def test_help_for_known_utility(capsys):
    assert main(["util-linux", "--help", "ctrlaltdel"]) == 0
    assert "ctrlaltdel" in capsys.readouterr().out


def test_prefixed_binary_dispatches(capsys):
    assert main(["/usr/bin/uu-ctrlaltdel", "--help"]) == 0
    assert "ctrlaltdel" in capsys.readouterr().out


def test_exact_binary_dispatches(capsys):
    assert main(["/usr/bin/chcpu.exe", "--help"]) == 0
    assert "chcpu" in capsys.readouterr().out


def test_utility_error_status_is_returned(capsys, tmp_path):
    kmsg = tmp_path / "kmsg"
    kmsg.write_bytes(b"")
    status = main(["util-linux", "dmesg", "-K", str(kmsg), "--time-format", "bogus"])
    assert status == 1
    assert "unknown time format: bogus" in capsys.readouterr().err


def test_argument_error_status_is_returned(capsys):
    assert main(["util-linux", "last", "--bogus"]) == 2
    assert "--bogus" in capsys.readouterr().err