"""Exceptions raised by the process runtime.

Every failure is raised synchronously from the call that triggered it.
Failures that happen after a successful spawn (crash, pipe close) are only
reported through the exit notification.
"""

from __future__ import annotations

__all__ = [
    "ProcessError",
    "TooManyArgumentsError",
    "MissingExecutableError",
    "SpawnFailedError",
    "ReadStartFailedError",
    "ProcessStateError",
    "AlreadySpawnedError",
    "InvalidKillTargetError",
    "PipeError",
]


class ProcessError(Exception):
    """Base exception for the process runtime."""
    pass


class TooManyArgumentsError(ProcessError):
    """More arguments were supplied than the configured limit allows.

    Attributes:
        count: Number of arguments supplied
        limit: Maximum number of arguments allowed
    """

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            f"Cannot spawn process: {count} arguments given, "
            f"maximum of {limit} command line arguments are supported"
        )


class MissingExecutableError(ProcessError):
    """Neither a file path nor a first argument names the executable."""

    def __init__(self) -> None:
        super().__init__("Cannot spawn process: no executable file or arguments set")


class SpawnFailedError(ProcessError):
    """The OS rejected process creation.

    Attributes:
        code: OS error number (errno), or None when unknown
        message: Error description
    """

    def __init__(self, code: int | None, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"Cannot spawn process: [{code}] {message}")


class ReadStartFailedError(ProcessError):
    """The process was created but reading its stdout could not start.

    The child may already be running. It is not killed automatically.
    """

    def __init__(self, pid: int | None) -> None:
        self.pid = pid
        super().__init__(f"Cannot read stdout pipe of pid={pid}")


class ProcessStateError(ProcessError):
    """Operation is not valid in the current lifecycle state."""
    pass


class AlreadySpawnedError(ProcessStateError):
    """spawn() called on an instance that already spawned a process."""
    pass


class InvalidKillTargetError(ProcessStateError):
    """kill() called without a running process."""
    pass


class PipeError(ProcessError):
    """Pipe endpoint used before init() or after close()."""
    pass
