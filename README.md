# uulinux

A small collection of Linux system administration commands:

| Command          | What it does                                                       |
| ---------------- | ------------------------------------------------------------------ |
| `uu-blockdev`    | get or set block device attributes through ioctl calls             |
| `uu-chcpu`       | enable, disable, configure or deconfigure CPUs; rescan; dispatch   |
| `uu-ctrlaltdel`  | show or set the kernel's Ctrl-Alt-Del behaviour (`hard` / `soft`)  |
| `uu-dmesg`       | print kernel log records, with filters and JSON output             |
| `uu-fsfreeze`    | freeze or unfreeze a mounted filesystem                            |
| `uu-last`        | list the logins recorded in a wtmp file                            |

All of them are also reachable through one entry point, `uulinux`, which
takes the utility name as its first argument.

## Installation

```
pip install .
```

Python 3.10 or newer is required; the only dependency is `python-dateutil`.
The commands read or write files under `/proc`, `/sys`, `/dev` and
`/var/log`, so they are meant for Linux, and several need root. `blockdev`,
`ctrlaltdel` and `fsfreeze` refuse to run on other platforms.

## The multi-call entry point

```
uulinux                      # usage text and the list of utilities
uulinux dmesg --time-format iso
uulinux --help last          # help for one utility
```

`uulinux.multicall.main` looks at the name it was started under first: if
that name is a utility's name, or ends in one after a prefix whose last
character is not a letter or digit (for example `my-dmesg`), that utility
runs. Otherwise the first argument names the utility. An unknown name prints
`<name>: function/utility not found` and exits with status 1.

## Commands

### uu-dmesg

```
uu-dmesg -K ./kmsg.dump --level err,warn --json
uu-dmesg -K ./kmsg.dump --facility kern --since "2024-11-18 19:00"
```

Without `-K` it reads `/dev/kmsg`, one record per line. With
`-K/--kmsg-file FILE` it reads records in the same format from `FILE`,
separated by NUL bytes. A record looks like `PRI,SEQ,TIME,...;message`, with
`TIME` in microseconds since boot; lines that do not match are skipped.

- `--time-format` takes `delta`, `reltime`, `ctime`, `notime`, `iso` or `raw`
  (the default, `[    1.500000]`).
- `-f/--facility` and `-l/--level` take comma-separated names (`kern`,
  `user`, ... `local7`; `emerg`, `alert`, `crit`, `err`, `warn`, `notice`,
  `info`, `debug`) and may be repeated.
- `--since` and `--until` take `now`, `@SECONDS`, or any date/time that
  `dateutil` can parse; times without a zone are taken as local.
- `-J/--json` prints the records as an indented JSON document.

Wall-clock times are computed from the boot time found in `/var/run/utmp`;
if none is found the Unix epoch is used.

### uu-blockdev

```
uu-blockdev --report /dev/sda
uu-blockdev -v --getro --getsize64 /dev/sda
uu-blockdev --setra 256 /dev/sda
```

Operations run in the order given on the command line, for each device in
turn. `-v/--verbose` and `-q/--quiet` switch labelled output on and off
between operations. Available operations: `--flushbufs`, `--getalignoff`,
`--getbsz`, `--getdiscardzeroes`, `--getfra`, `--getiomin`, `--getioopt`,
`--getmaxsect`, `--getpbsz`, `--getra`, `--getro`, `--getsize64`,
`--getsize`, `--getss`, `--getsz`, `--rereadpt`, `--setbsz N`, `--setfra N`,
`--setra N`, `--setro`, `--setrw`. `--report` prints a table of read-only
flag, readahead, sector size, block size, start sector and size, and cannot
be combined with other operations.

### uu-chcpu

```
uu-chcpu --disable 2,4-6
uu-chcpu --enable 3
uu-chcpu --dispatch vertical
uu-chcpu --rescan
```

`-e/--enable`, `-d/--disable`, `-c/--configure` and `-g/--deconfigure` take a
CPU list: elements separated by commas, each a non-negative integer (`3`) or
an inclusive range (`0-5`). `0,2,7,10-13` means CPUs 0, 2, 7, 10, 11, 12 and
13. `-p/--dispatch` takes `horizontal` or `vertical`; `-r/--rescan` asks the
kernel to rescan. Only one of these may be given. Failures for single CPUs are
reported on standard error; when some CPUs succeed and others fail the exit
status is 64. The last enabled CPU is never disabled. Without arguments the
help is printed and the exit status is 2.

### uu-ctrlaltdel

```
uu-ctrlaltdel                # prints "hard" or "soft"
uu-ctrlaltdel soft
```

Reads or writes `/proc/sys/kernel/ctrl-alt-del`. Setting it needs root.

### uu-fsfreeze

```
uu-fsfreeze --freeze /mnt/data
uu-fsfreeze --unfreeze /mnt/data
```

Exactly one of `-f/--freeze` and `-u/--unfreeze` is required. The mount point
must be a directory. A failing freeze or thaw is reported on standard error
but the exit status stays 0.

### uu-last

```
uu-last -n 10 --time-format iso
uu-last -x -f /var/log/wtmp.1 alice
```

Reads a wtmp file (default `/var/log/wtmp`, in the Linux x86-64 record
layout) and lists logins newest first, followed by the time the file begins.

- `-n/--limit N` shows at most `N` lines; 0 or a negative number means all.
- `-x/--system` also shows shutdown and run level entries.
- `-a/--hostlast` moves the host name to the last column; `-R/--nohostname`
  hides it; `-d/--dns` looks IPv4 addresses up as host names.
- `--time-format` takes `notime`, `short` (the default), `full` or `iso`.
- Trailing arguments restrict the listing to those users or terminals; an
  all-digit argument `N` stands for `ttyN`.

## Using it as a library

```python
from uulinux.cpulist import parse_cpu_list
from uulinux.dmesg import parse_record
from uulinux.dmesg_time import raw

cpus = parse_cpu_list("0,2,4-6")
print(list(cpus))            # [0, 2, 4, 5, 6]

record = parse_record("6,1,1500000,-;hello")
print(record.message)        # hello
print(raw(1500000))          # "    1.500000"
```

Other useful pieces: `uulinux.dmesg.Dmesg` (its `records`,
`filtered_records` and `print` methods), `uulinux.dmesg_time.set_boot_time`
to fix the boot time used for formatting, `uulinux.dmesg_json.serialize_records`,
`uulinux.chcpu_sysfs.SysFSCpu`, which accepts another directory in place of
`/sys/devices/system/cpu`, `uulinux.last.read_utmp` and `uulinux.last.Last`,
and `uulinux.ctrlaltdel.get_ctrlaltdel` / `set_ctrlaltdel`, which accept
another file path.

## What it does not do

The multi-call entry point has no shell completion or manual page generation.
The collection holds only the six commands above.

## Running the tests

```
pip install ".[test]"
pytest
```