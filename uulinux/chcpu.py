"""Configure CPUs in a multi-processor system."""

from __future__ import annotations

import argparse
import sys

from uulinux.chcpu_errors import ChCpuError
from uulinux.chcpu_sysfs import SysFSCpu
from uulinux.cpulist import CpuList, DispatchMode, parse_cpu_list

_AFTER_HELP = (
    "<cpu-list> is one or more elements separated by commas. "
    "Each element is either a positive integer (e.g., 3), "
    "or an inclusive range of positive integers (e.g., 0-5). "
    "For example, 0,2,7,10-13 refers to CPUs whose addresses are: "
    "0, 2, 7, 10, 11, 12, and 13."
)


def enable_cpu(cpu_list: CpuList, enable: bool, sysfs: SysFSCpu | None = None) -> int:
    """Enable or disable CPUs; returns 0, or 64 on partial success."""
    if sysfs is None:
        sysfs = SysFSCpu()
    try:
        enabled: CpuList | None = sysfs.enabled_cpu_list()
    except ChCpuError:
        enabled = None
    return cpu_list.run(lambda cpu: sysfs.enable_cpu(enabled, cpu, enable))


def configure_cpu(cpu_list: CpuList, configure: bool, sysfs: SysFSCpu | None = None) -> int:
    """Configure or deconfigure CPUs; returns 0, or 64 on partial success."""
    if sysfs is None:
        sysfs = SysFSCpu()
    try:
        enabled: CpuList | None = sysfs.enabled_cpu_list()
    except ChCpuError:
        enabled = None
    return cpu_list.run(lambda cpu: sysfs.configure_cpu(enabled, cpu, configure))


def set_dispatch_mode(mode: DispatchMode, sysfs: SysFSCpu | None = None) -> None:
    """Set the CPU dispatching mode."""
    (SysFSCpu() if sysfs is None else sysfs).set_dispatch_mode(mode)


def rescan_cpus(sysfs: SysFSCpu | None = None) -> None:
    """Trigger a rescan of CPUs."""
    (SysFSCpu() if sysfs is None else sysfs).rescan_cpus()


def _cpu_list_arg(text: str) -> CpuList:
    try:
        return parse_cpu_list(text)
    except ChCpuError as err:
        raise argparse.ArgumentTypeError(str(err)) from err


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chcpu",
        description="configure CPUs in a multi-processor system",
        epilog=_AFTER_HELP,
    )
    parser.add_argument("--version", action="version", version="%(prog)s 0.0.1")
    group = parser.add_mutually_exclusive_group()
    for short, long, text in (
        ("-e", "--enable", "enable CPUs"),
        ("-d", "--disable", "disable CPUs"),
        ("-c", "--configure", "configure CPUs"),
        ("-g", "--deconfigure", "deconfigure CPUs"),
    ):
        group.add_argument(short, long, metavar="cpu-list", type=_cpu_list_arg, help=text)
    group.add_argument(
        "-p",
        "--dispatch",
        metavar="mode",
        choices=[str(mode) for mode in DispatchMode],
        help="set dispatching mode",
    )
    group.add_argument("-r", "--rescan", action="store_true", help="trigger rescan of CPUs")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv:
        parser.print_help(sys.stderr)
        return 2
    args = parser.parse_args(argv)
    try:
        if args.enable is not None:
            return enable_cpu(args.enable, True)
        if args.disable is not None:
            return enable_cpu(args.disable, False)
        if args.configure is not None:
            return configure_cpu(args.configure, True)
        if args.deconfigure is not None:
            return configure_cpu(args.deconfigure, False)
        if args.dispatch is not None:
            set_dispatch_mode(DispatchMode[args.dispatch.upper()])
            return 0
        if args.rescan:
            rescan_cpus()
            return 0
    except ChCpuError as err:
        print(f"chcpu: {err}", file=sys.stderr)
        return 1
    parser.print_help(sys.stderr)
    return 2