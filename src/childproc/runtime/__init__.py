"""Runtime module for child process management.

This module provides a managed child process with piped stdin/stdout,
asynchronous exit notification and signal-based termination.
"""

from __future__ import annotations

from .errors import (
    AlreadySpawnedError,
    InvalidKillTargetError,
    MissingExecutableError,
    PipeError,
    ProcessError,
    ProcessStateError,
    ReadStartFailedError,
    SpawnFailedError,
    TooManyArgumentsError,
)
from .loop import AsyncioEventLoop, EventLoop, ProcessHandle
from .options import ProcessOptions, StdioContainer, StdioRedirect, resolve_options
from .pipe import Pipe
from .process import ManagedProcess, ProcessState
from .runner import ProcessResult, run_process

__all__ = [
    "AlreadySpawnedError",
    "AsyncioEventLoop",
    "EventLoop",
    "InvalidKillTargetError",
    "ManagedProcess",
    "MissingExecutableError",
    "Pipe",
    "PipeError",
    "ProcessError",
    "ProcessHandle",
    "ProcessOptions",
    "ProcessResult",
    "ProcessState",
    "ProcessStateError",
    "ReadStartFailedError",
    "SpawnFailedError",
    "StdioContainer",
    "StdioRedirect",
    "TooManyArgumentsError",
    "resolve_options",
    "run_process",
]
