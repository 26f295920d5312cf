import io

import pytest

from uulinux.chcpu_errors import (
    CPU_IS_ENABLED,
    CPU_NOT_CONFIGURABLE,
    CPU_NOT_HOT_PLUGGABLE,
    CPU_RESCAN_UNSUPPORTED,
    ONE_CPU_IS_ENABLED,
    SET_CPU_DISPATCH_UNSUPPORTED,
    ChCpuError,
    ChCpuIOError,
)
from uulinux.chcpu_sysfs import SysFSCpu
from uulinux.cpulist import DispatchMode, parse_cpu_list


def make_tree(root):
    (root / "online").write_text("0-1\n")
    (root / "cpu0").mkdir()
    (root / "cpu0" / "online").write_text("1\n")
    (root / "cpu1").mkdir()
    (root / "cpu1" / "online").write_text("1\n")
    (root / "cpu1" / "configure").write_text("1\n")
    (root / "cpu2").mkdir()
    (root / "dispatching").write_text("0\n")
    (root / "rescan").write_text("0\n")
    return root


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def sysfs(tmp_path, out):
    return SysFSCpu(make_tree(tmp_path), out=out)


def test_missing_root(tmp_path):
    with pytest.raises(ChCpuIOError) as info:
        SysFSCpu(tmp_path / "absent")
    assert info.value.message == "failed to open"


def test_read_value(sysfs):
    assert sysfs.read_value("cpu0/online") == 1


def test_read_value_not_integer(sysfs, tmp_path):
    (tmp_path / "junk").write_text("abc\n")
    with pytest.raises(ChCpuError) as info:
        sysfs.read_value("junk")
    assert str(info.value) == "data is not an integer 'abc'"


def test_read_missing_file(sysfs):
    with pytest.raises(ChCpuIOError) as info:
        sysfs.read_value("nothing")
    assert info.value.message == "failed to open"


def test_write_then_read_round_trip(sysfs):
    sysfs.write_value("rescan", 1)
    assert sysfs.read_value("rescan") == 1


def test_enabled_cpu_list(sysfs):
    assert sysfs.enabled_cpu_list() == parse_cpu_list("0-1")


def test_cpu_dir_path(sysfs):
    assert str(sysfs.cpu_dir_path(1)) == "cpu1"
    with pytest.raises(ChCpuError) as info:
        sysfs.cpu_dir_path(9)
    assert str(info.value) == "CPU 9 does not exist"


def test_ensure_accessible_missing(sysfs):
    with pytest.raises(ChCpuIOError) as info:
        sysfs.ensure_accessible("missing")
    assert info.value.message == "file/directory is inaccessible"


def test_enable_already_enabled(sysfs, out):
    sysfs.enable_cpu(None, 0, True)
    assert out.getvalue() == "CPU 0 is already enabled\n"
    assert sysfs.read_value("cpu0/online") == 1


def test_disable_updates_file_and_list(sysfs, out):
    cpus = sysfs.enabled_cpu_list()
    sysfs.enable_cpu(cpus, 1, False)
    assert sysfs.read_value("cpu1/online") == 0
    assert 1 not in cpus
    assert out.getvalue() == "CPU 1 disabled\n"


def test_disable_last_enabled_cpu(sysfs):
    with pytest.raises(ChCpuError) as info:
        sysfs.enable_cpu(parse_cpu_list("1"), 1, False)
    assert str(info.value) == ONE_CPU_IS_ENABLED
    assert sysfs.read_value("cpu1/online") == 1


def test_not_hot_pluggable(sysfs):
    with pytest.raises(ChCpuError) as info:
        sysfs.enable_cpu(None, 2, True)
    assert str(info.value) == CPU_NOT_HOT_PLUGGABLE.format(2)


def test_deconfigure_enabled_cpu(sysfs):
    with pytest.raises(ChCpuError) as info:
        sysfs.configure_cpu(sysfs.enabled_cpu_list(), 1, False)
    assert str(info.value) == CPU_IS_ENABLED.format(1)


def test_deconfigure_without_list(sysfs, out):
    sysfs.configure_cpu(None, 1, False)
    assert sysfs.read_value("cpu1/configure") == 0
    assert out.getvalue() == "CPU 1 deconfigured\n"


def test_not_configurable(sysfs):
    with pytest.raises(ChCpuError) as info:
        sysfs.configure_cpu(None, 0, True)
    assert str(info.value) == CPU_NOT_CONFIGURABLE.format(0)


def test_set_dispatch_mode(sysfs, out):
    sysfs.set_dispatch_mode(DispatchMode.VERTICAL)
    assert sysfs.read_value("dispatching") == DispatchMode.VERTICAL.value
    assert out.getvalue() == "Successfully set vertical dispatching mode\n"


def test_set_dispatch_mode_unsupported(sysfs, tmp_path):
    (tmp_path / "dispatching").unlink()
    with pytest.raises(ChCpuError) as info:
        sysfs.set_dispatch_mode(DispatchMode.HORIZONTAL)
    assert str(info.value) == SET_CPU_DISPATCH_UNSUPPORTED


def test_set_dispatch_mode_write_failure(sysfs, tmp_path):
    (tmp_path / "dispatching").unlink()
    (tmp_path / "dispatching").mkdir()
    with pytest.raises(ChCpuIOError) as info:
        sysfs.set_dispatch_mode(DispatchMode.HORIZONTAL)
    assert info.value.message == "failed to set dispatch mode"


def test_rescan(sysfs, out):
    sysfs.rescan_cpus()
    assert sysfs.read_value("rescan") == 1
    assert out.getvalue() == "Triggered rescan of CPUs\n"


def test_rescan_unsupported(sysfs, tmp_path):
    (tmp_path / "rescan").unlink()
    with pytest.raises(ChCpuError) as info:
        sysfs.rescan_cpus()
    assert str(info.value) == CPU_RESCAN_UNSUPPORTED