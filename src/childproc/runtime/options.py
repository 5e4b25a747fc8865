"""Spawn options: executable, argv, working directory and stdio table."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .errors import MissingExecutableError, PipeError, TooManyArgumentsError

if TYPE_CHECKING:
    from .pipe import Pipe

__all__ = [
    "STDIO_COUNT",
    "StdioRedirect",
    "StdioContainer",
    "ProcessOptions",
    "resolve_options",
]

# child stdin, child stdout
STDIO_COUNT = 2


class StdioRedirect(str, Enum):
    """Redirection of one child stdio slot, seen from the child.

    - NONE: not redirected (stdin is /dev/null, stdout is inherited)
    - PIPE_READABLE: a fresh pipe the child reads from
    - PIPE_WRITABLE: a fresh pipe the child writes to
    """

    NONE = "none"
    PIPE_READABLE = "pipe-readable"
    PIPE_WRITABLE = "pipe-writable"


@dataclass
class StdioContainer:
    """One entry of the stdio redirection table."""

    redirect: StdioRedirect = StdioRedirect.NONE
    pipe: Pipe | None = None

    def child_fd(self, slot: int) -> int | None:
        """Return the fd handed to the child for this slot.

        Returns:
            The child-side pipe fd, DEVNULL for an unredirected stdin,
            or None to inherit the parent's stream.

        Raises:
            PipeError: If the slot is redirected to an uninitialised pipe
        """
        if self.redirect is StdioRedirect.NONE:
            return subprocess.DEVNULL if slot == 0 else None
        if self.pipe is None or self.pipe.child_fd is None:
            raise PipeError(f"stdio[{slot}] pipe is not initialised")
        return self.pipe.child_fd


def _default_stdio() -> list[StdioContainer]:
    return [StdioContainer() for _ in range(STDIO_COUNT)]


@dataclass
class ProcessOptions:
    """Resolved spawn options.

    Attributes:
        file: Executable path passed to the OS
        args: Full argv (first element is argv[0])
        cwd: Working directory (None = inherit)
        env: Environment (None = inherit parent)
        stdio: Redirection table, exactly STDIO_COUNT entries
    """

    file: str
    args: list[str]
    cwd: str | None = None
    env: dict[str, str] | None = None
    stdio: list[StdioContainer] = field(default_factory=_default_stdio)

    def __post_init__(self) -> None:
        if len(self.stdio) != STDIO_COUNT:
            raise ValueError(f"stdio table must have {STDIO_COUNT} entries, got {len(self.stdio)}")

    @property
    def stdio_count(self) -> int:
        return len(self.stdio)


def resolve_options(
    file: str | None,
    args: Sequence[str],
    *,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    stdio: list[StdioContainer] | None = None,
    max_args: int | None = None,
) -> ProcessOptions:
    """Build ProcessOptions from the caller-facing fields.

    Resolution rules:
    1. More than max_args arguments fails before anything else
    2. If file is set it is the executable; argv defaults to [file]
    3. Otherwise the first argument is the executable
    4. With neither, there is nothing to run

    Args:
        file: Explicit executable path (empty/None = use args[0])
        args: Argument list, argv[0] included
        cwd: Working directory
        env: Environment variables (None = inherit parent)
        stdio: Redirection table (default: nothing redirected)
        max_args: Argument limit, None or 0 for no limit

    Returns:
        A new ProcessOptions value

    Raises:
        TooManyArgumentsError: len(args) exceeds max_args
        MissingExecutableError: Both file and args are empty
    """
    argv = [str(arg) for arg in args]
    if max_args and len(argv) > max_args:
        raise TooManyArgumentsError(len(argv), max_args)

    if file:
        executable = str(file)
        if not argv:
            argv = [executable]
    elif argv:
        executable = argv[0]
    else:
        raise MissingExecutableError()

    return ProcessOptions(
        file=executable,
        args=argv,
        cwd=str(cwd) if cwd else None,
        env=dict(env) if env is not None else None,
        stdio=list(stdio) if stdio is not None else _default_stdio(),
    )
