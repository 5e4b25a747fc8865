"""Managed child process with piped stdin/stdout and exit notification.

Lifecycle:
    UNCONFIGURED -> CONFIGURED -> SPAWNING -> RUNNING -> TERMINATED

- SPAWNING is transient: it ends in RUNNING, or falls back to
  CONFIGURED with `error` set when validation or the OS fails
- RUNNING -> TERMINATED happens only through the exit notification
- There is no way back from RUNNING/TERMINATED; one instance spawns one
  process

Example:
    proc = ManagedProcess(["cat"])
    proc.on_stdout = lambda chunk: print(chunk)
    proc.on_exit = lambda code: print("exit", code)

    await proc.spawn()
    proc.stdin.write(b"hello\\n")
    proc.stdin.shutdown()
    await proc.wait()
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from enum import Enum

import anyio

from ..config import get_config
from .errors import (
    AlreadySpawnedError,
    InvalidKillTargetError,
    PipeError,
    ProcessError,
    ProcessStateError,
    ReadStartFailedError,
    SpawnFailedError,
)
from .loop import AsyncioEventLoop, EventLoop, ProcessHandle
from .options import ProcessOptions, StdioContainer, StdioRedirect, resolve_options
from .pipe import Pipe

__all__ = ["ManagedProcess", "ProcessState"]

logger = logging.getLogger(__name__)


class ProcessState(str, Enum):
    """Lifecycle state of a ManagedProcess."""

    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"
    SPAWNING = "spawning"
    RUNNING = "running"
    TERMINATED = "terminated"


class ManagedProcess:
    """One child process, its two pipes and its callbacks.

    The instance owns both pipes for its whole lifetime. They are created
    here, before any spawn attempt, and wired into a fixed two-entry stdio
    table: slot 0 is the child's stdin, slot 1 the child's stdout.

    Attributes:
        file: Executable path (empty = use args[0])
        cwd: Working directory (None = inherit)
        args: Argument list, argv[0] included
        env: Environment (None = inherit parent)
        on_exit: Called with the exit code when the process terminates
        on_stdout: Called with each chunk read from the child's stdout
        exit_code: Exit status once terminated (0 if killed by a signal)
        term_signal: Signal that terminated the process, 0 if none
        error: Last spawn error, None if the last spawn succeeded
        options: Options used by the last spawn attempt

    Args:
        args: Initial argument list
        loop: Event loop (default: AsyncioEventLoop on the running loop)
        max_args: Argument limit (default from config, 0 = unlimited)
        read_chunk_size: Maximum bytes per stdout read (default from config)
    """

    def __init__(
        self,
        args: Iterable[str] | None = None,
        loop: EventLoop | None = None,
        *,
        max_args: int | None = None,
        read_chunk_size: int | None = None,
    ) -> None:
        config = get_config()
        self._loop = loop if loop is not None else AsyncioEventLoop()
        self.max_args = config.max_args if max_args is None else (max_args or None)
        self.kill_signal = config.kill_signal

        self.file: str = ""
        self.cwd: str | None = None
        self.args: list[str] = list(args) if args is not None else []
        self.env: dict[str, str] | None = None
        self.on_exit: Callable[[int], None] | None = None
        self.on_stdout: Callable[[bytes], None] | None = None

        self.exit_code: int | None = None
        self.term_signal: int | None = None
        self.error: ProcessError | None = None
        self.options: ProcessOptions | None = None

        self._state = ProcessState.UNCONFIGURED
        self._handle: ProcessHandle | None = None
        self._spawned = False
        self._closed = False
        self._exited: anyio.Event | None = None
        self._drained: anyio.Event | None = None

        chunk_size = read_chunk_size or config.read_chunk_size
        self._stdin = Pipe(self._loop, StdioRedirect.PIPE_READABLE, chunk_size=chunk_size)
        self._stdout = Pipe(self._loop, StdioRedirect.PIPE_WRITABLE, chunk_size=chunk_size)
        self._stdin.init()
        self._stdout.init()
        self._stdout.subscribe(self._on_stdout_chunk)
        self._stdout.subscribe_eof(self._on_stdout_eof)

        self._stdio = [
            StdioContainer(StdioRedirect.PIPE_READABLE, self._stdin),
            StdioContainer(StdioRedirect.PIPE_WRITABLE, self._stdout),
        ]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> ProcessState:
        if self._state is ProcessState.UNCONFIGURED and (self.file or self.args):
            return ProcessState.CONFIGURED
        return self._state

    @property
    def pid(self) -> int | None:
        """OS pid of the running process, None before spawn and after exit.

        The handle is released by the exit notification, so a child that
        exits before spawn() resumes leaves pid as None even though spawn()
        succeeded. exit_code and term_signal are set in that case.
        """
        if self._handle is None:
            return None
        return self._handle.pid

    @property
    def stdin(self) -> Pipe:
        """Writable endpoint feeding the child's stdin."""
        return self._stdin

    @property
    def stdout(self) -> Pipe:
        """Readable endpoint carrying the child's stdout.

        Reads are already driven into on_stdout after spawn.
        """
        return self._stdout

    @property
    def stdio(self) -> list[StdioContainer]:
        return self._stdio

    async def spawn(self) -> None:
        """Create the OS process and start reading its stdout.

        Returns as soon as the process exists; never waits for it to exit.

        Raises:
            TooManyArgumentsError: More arguments than max_args
            MissingExecutableError: Neither file nor args set
            SpawnFailedError: The OS rejected process creation
            ReadStartFailedError: The process runs but stdout cannot be read;
                it is not killed, call kill() to clean up
            AlreadySpawnedError: This instance already spawned a process
            ProcessStateError: The instance was closed
        """
        if self._closed:
            raise ProcessStateError("Cannot spawn process: instance is closed")
        if self._spawned:
            raise AlreadySpawnedError(
                f"Cannot spawn process: already spawned (state={self._state.value})"
            )

        self._state = ProcessState.SPAWNING
        self.error = None

        try:
            options = resolve_options(
                self.file,
                self.args,
                cwd=self.cwd,
                env=self.env,
                stdio=self._stdio,
                max_args=self.max_args,
            )
            for slot, container in enumerate(options.stdio):
                if container.pipe is not None and not container.pipe.initialized:
                    raise PipeError(f"stdio[{slot}] pipe is not initialised")
        except ProcessError as e:
            self._fail(e)
            raise

        self.options = options
        self._exited = anyio.Event()
        self._drained = anyio.Event()

        try:
            handle = await self._loop.create_process(options, self._on_process_exit)
        except (OSError, ValueError, TypeError) as e:
            # ValueError/TypeError: arguments or env the OS cannot accept
            error = SpawnFailedError(getattr(e, "errno", None), getattr(e, "strerror", None) or str(e))
            self._fail(error)
            raise error from e
        except BaseException as e:
            # Cancelled or interrupted while creation was pending
            self._fail(SpawnFailedError(None, f"spawn interrupted: {e!r}"))
            raise

        self._spawned = True
        # Child ends belong to the child from here on
        self._stdin.close_child_end()
        self._stdout.close_child_end()

        if self._state is ProcessState.SPAWNING:
            self._handle = handle
            self._state = ProcessState.RUNNING
        else:
            # Exit was reported before creation returned
            handle.close()

        logger.debug(
            "Spawned process pid=%s options=%s",
            handle.pid,
            {"file": options.file, "args": options.args, "cwd": options.cwd},
        )

        if not self._stdout.read_start():
            error = ReadStartFailedError(handle.pid)
            self.error = error
            self._drained.set()
            raise error

    def kill(self, signum: int | None = None) -> bool:
        """Send a signal to the running process.

        Fire-and-forget: success means the OS accepted the signal, the exit
        is observed later through on_exit.

        Args:
            signum: Signal number (default from config, SIGTERM)

        Returns:
            True if the signal was delivered

        Raises:
            InvalidKillTargetError: No running process
        """
        pid = self.pid
        if not pid:
            raise InvalidKillTargetError("Cannot kill process: no running process")

        if signum is None:
            signum = self.kill_signal
        delivered = self._loop.send_signal(pid, signum)
        logger.debug(f"Sent signal {signum} to pid={pid} delivered={delivered}")
        return delivered

    async def wait(self, timeout: float | None = None, *, drain: bool = True) -> int:
        """Wait for the process to exit.

        Args:
            timeout: Seconds to wait (None = forever)
            drain: Also wait until all stdout has been delivered

        Returns:
            The exit code

        Raises:
            ProcessStateError: Nothing was spawned
            TimeoutError: The timeout expired
        """
        if self._exited is None:
            raise ProcessStateError("Cannot wait: process has not been spawned")

        with anyio.fail_after(timeout):
            await self._exited.wait()
            if drain and self._drained is not None:
                await self._drained.wait()

        assert self.exit_code is not None
        return self.exit_code

    def close(self) -> None:
        """Signal a running process and release both pipes.

        Does not wait for the process to exit.
        """
        if self._closed:
            return
        self._closed = True

        if self.pid:
            self.kill()

        self._stdin.close()
        self._stdout.close()
        if self._drained is not None:
            self._drained.set()

    async def __aenter__(self) -> ManagedProcess:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        try:
            self.close()
        except Exception as e:
            logger.debug(f"Error closing process on finalize: {e}")

    def __repr__(self) -> str:
        argv = self.args or ([self.file] if self.file else [])
        return (
            f"ManagedProcess(argv={argv}, "
            f"state={self.state.value}, "
            f"pid={self.pid}, "
            f"exit_code={self.exit_code})"
        )

    # ------------------------------------------------------------------
    # Loop callbacks
    # ------------------------------------------------------------------

    def _fail(self, error: ProcessError) -> None:
        self.error = error
        self._state = ProcessState.UNCONFIGURED
        self._exited = None
        self._drained = None
        logger.debug(f"Spawn failed: {error}")

    def _on_process_exit(self, exit_status: int, term_signal: int) -> None:
        self.exit_code = exit_status
        self.term_signal = term_signal
        self._state = ProcessState.TERMINATED

        handle, self._handle = self._handle, None
        if handle is not None:
            logger.debug(
                f"Process exited pid={handle.pid} "
                f"exit_code={exit_status} term_signal={term_signal}"
            )
            handle.close()

        if self._exited is not None:
            self._exited.set()

        if self.on_exit:
            try:
                self.on_exit(exit_status)
            except Exception as e:
                logger.warning(f"Error in exit callback: {e}")

    def _on_stdout_chunk(self, chunk: bytes) -> None:
        if self.on_stdout:
            self.on_stdout(chunk)

    def _on_stdout_eof(self) -> None:
        if self._drained is not None:
            self._drained.set()
