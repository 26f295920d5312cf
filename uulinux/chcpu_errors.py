"""Errors raised while changing CPU state."""

from __future__ import annotations

import os

CPU_IS_ENABLED = "CPU {} is enabled"
CPU_NOT_CONFIGURABLE = "CPU {} is not configurable"
CPU_NOT_HOT_PLUGGABLE = "CPU {} is not hot pluggable"
CPU_RESCAN_UNSUPPORTED = "this system does not support rescanning of CPUs"
CPU_SPEC_FIRST_AFTER_LAST = (
    "first element of CPU list range is greater than its last element"
)
CPU_SPEC_NOT_POSITIVE_INTEGER = "CPU list element is not a positive number"
EMPTY_CPU_LIST = "CPU list is empty"
INVALID_CPU_INDEX = "CPU {} does not exist"
ONE_CPU_IS_ENABLED = "only one CPU is enabled"
NOT_INTEGER = "data is not an integer '{}'"
SET_CPU_DISPATCH_UNSUPPORTED = (
    "this system does not support setting the dispatching mode of CPUs"
)


class ChCpuError(Exception):
    """A failure of a CPU control operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def with_io_message(self, message: str) -> ChCpuError:
        """Return the error with a new context message; only I/O errors change."""
        return self


class ChCpuIOError(ChCpuError):
    """An operating-system error, with context and an optional path."""

    def __init__(
        self,
        message: str,
        error: OSError,
        path: str | os.PathLike | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.path = path

    def __str__(self) -> str:
        reason = self.error.strerror or str(self.error)
        if self.path is None:
            return f"{self.message}: {reason}"
        return f"{self.message} '{os.fspath(self.path)}': {reason}"

    def with_io_message(self, message: str) -> ChCpuIOError:
        return ChCpuIOError(message, self.error, self.path)