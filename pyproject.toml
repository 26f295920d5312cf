[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uulinux"
version = "0.0.1"
description = "Linux system utilities: blockdev, chcpu, ctrlaltdel, dmesg, fsfreeze and last"
requires-python = ">=3.10"
dependencies = [
    "python-dateutil",
]
keywords = ["dmesg", "blockdev", "chcpu", "fsfreeze", "last", "ctrlaltdel", "wtmp", "sysfs", "cli"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
uulinux = "uulinux.multicall:main"
uu-blockdev = "uulinux.blockdev:main"
uu-chcpu = "uulinux.chcpu:main"
uu-ctrlaltdel = "uulinux.ctrlaltdel:main"
uu-dmesg = "uulinux.dmesg:main"
uu-fsfreeze = "uulinux.fsfreeze:main"
uu-last = "uulinux.last:main"

[tool.hatch.build.targets.wheel]
packages = ["uulinux"]

[tool.hatch.build.targets.sdist]
include = ["uulinux", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
