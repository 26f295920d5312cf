"""CPU control through the sysfs CPU directory."""

from __future__ import annotations

import errno
import itertools
import os
import re
import sys
from pathlib import Path
from typing import TextIO

from uulinux.chcpu_errors import (
    CPU_IS_ENABLED,
    CPU_NOT_CONFIGURABLE,
    CPU_NOT_HOT_PLUGGABLE,
    CPU_RESCAN_UNSUPPORTED,
    INVALID_CPU_INDEX,
    NOT_INTEGER,
    ONE_CPU_IS_ENABLED,
    SET_CPU_DISPATCH_UNSUPPORTED,
    ChCpuError,
    ChCpuIOError,
)
from uulinux.cpulist import CpuList, DispatchMode, parse_cpu_list

PATH_SYS_CPU = "/sys/devices/system/cpu"

_O_CLOEXEC = getattr(os, "O_CLOEXEC", 0)
_INT_RE = re.compile(r"[+-]?[0-9]+")
_I32_MIN, _I32_MAX = -(2**31), 2**31 - 1


class SysFSCpu:
    """The sysfs CPU directory, by default the system's own."""

    def __init__(self, root: str | os.PathLike = PATH_SYS_CPU, out: TextIO | None = None) -> None:
        self.root = Path(root)
        self._out = out
        try:
            fd = os.open(self.root, os.O_RDONLY | _O_CLOEXEC)
        except OSError as err:
            raise ChCpuIOError("failed to open", err, self.root) from err
        os.close(fd)

    def _path(self, name: str | os.PathLike) -> Path:
        if "\0" in os.fspath(name):
            raise ChCpuIOError(
                "invalid name", OSError(errno.EINVAL, "invalid input parameter"), name
            )
        return self.root / name

    def _say(self, text: str) -> None:
        out = sys.stdout if self._out is None else self._out
        try:
            print(text, file=out)
        except OSError as err:
            raise ChCpuIOError("write standard output", err) from err

    def _open(self, name: str | os.PathLike, flags: int) -> int:
        path = self._path(name)
        try:
            return os.open(path, flags | _O_CLOEXEC)
        except OSError as err:
            raise ChCpuIOError("failed to open", err, path) from err

    def ensure_accessible(self, name: str | os.PathLike) -> None:
        """Raise unless ``name`` exists inside the directory."""
        path = self._path(name)
        try:
            os.stat(path)
        except OSError as err:
            raise ChCpuIOError("file/directory is inaccessible", err, path) from err

    def read_value(self, name: str | os.PathLike) -> int:
        """Read the first line of a file as an integer."""
        fd = self._open(name, os.O_RDONLY)
        path = self._path(name)
        try:
            with open(fd, "rb") as handle:
                line = handle.readline().decode("utf-8")
        except OSError as err:
            raise ChCpuIOError("failed to read file", err, path) from err
        except UnicodeDecodeError as err:
            raise ChCpuIOError(
                "failed to read file",
                OSError(errno.EINVAL, "stream did not contain valid UTF-8"),
                path,
            ) from err
        text = line.strip()
        if not _INT_RE.fullmatch(text) or not _I32_MIN <= int(text) <= _I32_MAX:
            raise ChCpuError(NOT_INTEGER.format(text))
        return int(text)

    def write_value(self, name: str | os.PathLike, value: object) -> None:
        """Write ``value`` as text into an existing file."""
        fd = self._open(name, os.O_WRONLY)
        data = memoryview(str(value).encode("utf-8"))
        try:
            while data:
                data = data[os.write(fd, data):]
        except OSError as err:
            raise ChCpuIOError("failed to write file", err, self._path(name)) from err
        finally:
            os.close(fd)

    def enabled_cpu_list(self) -> CpuList:
        """Return the CPUs the kernel lists as online."""
        fd = self._open("online", os.O_RDONLY)
        try:
            with open(fd, "rb") as handle:
                data = handle.read()
        except OSError as err:
            raise ChCpuIOError("failed to read file", err, self._path("online")) from err
        return parse_cpu_list(data)

    def cpu_dir_path(self, cpu_index: int) -> Path:
        """Return the directory name of a CPU, relative to the root."""
        dir_name = Path(f"cpu{cpu_index}")
        try:
            self.ensure_accessible(dir_name)
        except ChCpuError as err:
            raise ChCpuError(INVALID_CPU_INDEX.format(cpu_index)) from err
        return dir_name

    def enable_cpu(self, enabled_cpu_list: CpuList | None, cpu_index: int, enable: bool) -> None:
        """Bring a CPU online or offline, keeping ``enabled_cpu_list`` in step."""
        dir_name = self.cpu_dir_path(cpu_index)
        online_path = dir_name / "online"
        try:
            self.ensure_accessible(online_path)
        except ChCpuError as err:
            raise ChCpuError(CPU_NOT_HOT_PLUGGABLE.format(cpu_index)) from err

        online = self.read_value(online_path) != 0
        new_state = "enabled" if enable else "disabled"
        if enable == online:
            self._say(f"CPU {cpu_index} is already {new_state}")
            return

        if enabled_cpu_list is not None and not enable:
            if len(list(itertools.islice(enabled_cpu_list, 2))) <= 1:
                raise ChCpuError(ONE_CPU_IS_ENABLED)

        try:
            configured: int | None = self.read_value(dir_name / "configure")
        except ChCpuError:
            configured = None

        try:
            self.write_value(online_path, int(enable))
        except ChCpuError as err:
            operation = "enable" if enable else "disable"
            reason = " (CPU is deconfigured)" if enable and configured == 0 else ""
            raise err.with_io_message(
                f"CPU {cpu_index} {operation} failed{reason}"
            ) from err

        if enabled_cpu_list is not None:
            if enable:
                enabled_cpu_list.add(cpu_index)
            else:
                enabled_cpu_list.remove(cpu_index)
        self._say(f"CPU {cpu_index} {new_state}")

    def configure_cpu(
        self, enabled_cpu_list: CpuList | None, cpu_index: int, configure: bool
    ) -> None:
        """Configure or deconfigure a CPU."""
        dir_name = self.cpu_dir_path(cpu_index)
        configure_path = dir_name / "configure"
        try:
            self.ensure_accessible(configure_path)
        except ChCpuError as err:
            raise ChCpuError(CPU_NOT_CONFIGURABLE.format(cpu_index)) from err

        previous = self.read_value(configure_path) != 0
        new_state = "configured" if configure else "deconfigured"
        if configure == previous:
            self._say(f"CPU {cpu_index} is already {new_state}")
            return

        if (
            enabled_cpu_list is not None
            and previous
            and not configure
            and cpu_index in enabled_cpu_list
        ):
            raise ChCpuError(CPU_IS_ENABLED.format(cpu_index))

        try:
            self.write_value(configure_path, int(configure))
        except ChCpuError as err:
            operation = "configure" if configure else "deconfigure"
            raise err.with_io_message(f"CPU {cpu_index} {operation} failed") from err
        self._say(f"CPU {cpu_index} {new_state}")

    def set_dispatch_mode(self, mode: DispatchMode) -> None:
        """Set the dispatching mode."""
        try:
            self.ensure_accessible("dispatching")
        except ChCpuError as err:
            raise ChCpuError(SET_CPU_DISPATCH_UNSUPPORTED) from err
        try:
            self.write_value("dispatching", mode.value)
        except ChCpuError as err:
            raise err.with_io_message("failed to set dispatch mode") from err
        self._say(f"Successfully set {str(mode)} dispatching mode")

    def rescan_cpus(self) -> None:
        """Ask the kernel to rescan for CPUs."""
        try:
            self.ensure_accessible("rescan")
        except ChCpuError as err:
            raise ChCpuError(CPU_RESCAN_UNSUPPORTED) from err
        try:
            self.write_value("rescan", "1")
        except ChCpuError as err:
            raise err.with_io_message("failed to trigger rescan of CPUs") from err
        self._say("Triggered rescan of CPUs")