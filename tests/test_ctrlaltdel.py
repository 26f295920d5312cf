import pytest

from uulinux import ctrlaltdel
from uulinux.ctrlaltdel import (
    CtrlAltDel,
    CtrlAltDelError,
    get_ctrlaltdel,
    main,
    set_ctrlaltdel,
)


def test_get_soft(tmp_path):
    path = tmp_path / "cad"
    path.write_text("0\n")
    value = get_ctrlaltdel(path)
    assert value is CtrlAltDel.SOFT
    assert str(value) == "soft"


def test_get_hard(tmp_path):
    path = tmp_path / "cad"
    path.write_text("1")
    assert str(get_ctrlaltdel(path)) == "hard"


@pytest.mark.parametrize("content", ["abc", "", "7"])
def test_get_unknown_data(tmp_path, content):
    path = tmp_path / "cad"
    path.write_text(content)
    with pytest.raises(CtrlAltDelError, match="unknown data"):
        get_ctrlaltdel(path)


def test_get_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_ctrlaltdel(tmp_path / "missing")


@pytest.mark.parametrize("value", list(CtrlAltDel))
def test_set_round_trip(tmp_path, value):
    path = tmp_path / "cad"
    set_ctrlaltdel(value, path)
    assert path.read_text() == f"{value.value}\n"
    assert get_ctrlaltdel(path) is value


def test_set_failure_reports_root(tmp_path):
    with pytest.raises(CtrlAltDelError, match="You must be root"):
        set_ctrlaltdel(CtrlAltDel.HARD, tmp_path / "no" / "such" / "dir")


def test_main_unknown_argument(capsys):
    assert main(["medium"]) == 1
    assert capsys.readouterr().err.startswith("ctrlaltdel: ")


def test_main_prints_current(tmp_path, monkeypatch, capsys):
    path = tmp_path / "cad"
    path.write_text("1\n")
    monkeypatch.setattr(ctrlaltdel, "CTRL_ALT_DEL_PATH", str(path))
    assert main([]) == 0
    assert capsys.readouterr().out == "hard\n"


def test_main_sets_value(tmp_path, monkeypatch):
    path = tmp_path / "cad"
    path.write_text("1\n")
    monkeypatch.setattr(ctrlaltdel, "CTRL_ALT_DEL_PATH", str(path))
    assert main(["soft"]) == 0
    assert get_ctrlaltdel(path) is CtrlAltDel.SOFT