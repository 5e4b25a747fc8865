"""Event-loop collaborator interface and its asyncio implementation.

ManagedProcess never touches asyncio directly. It talks to an EventLoop,
which provides:
- Process creation with an exit notification callback
- fd readiness registration for pipe I/O
- Signal delivery by pid

AsyncioEventLoop is the default. Tests substitute a recording double.
"""

from __future__ import annotations

import asyncio
import logging
import os
from abc import ABC, abstractmethod
from collections.abc import Callable

from .options import ProcessOptions

__all__ = [
    "ExitCallback",
    "EventLoop",
    "ProcessHandle",
    "AsyncioEventLoop",
]

logger = logging.getLogger(__name__)

# (exit_status, term_signal)
ExitCallback = Callable[[int, int], None]


class ProcessHandle(ABC):
    """OS process handle owned by the loop."""

    @property
    @abstractmethod
    def pid(self) -> int:
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the handle resources. Safe to call more than once."""


class EventLoop(ABC):
    """The narrow loop interface consumed by the process runtime."""

    @abstractmethod
    async def create_process(
        self,
        options: ProcessOptions,
        on_exit: ExitCallback,
    ) -> ProcessHandle:
        """Create the OS process described by options.

        on_exit is invoked exactly once, on the loop, with
        (exit_status, term_signal) when the process terminates.

        Raises:
            OSError: If the OS rejects process creation
        """

    @abstractmethod
    def add_reader(self, fd: int, callback: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def remove_reader(self, fd: int) -> None:
        ...

    @abstractmethod
    def add_writer(self, fd: int, callback: Callable[[], None]) -> None:
        ...

    @abstractmethod
    def remove_writer(self, fd: int) -> None:
        ...

    @abstractmethod
    def send_signal(self, pid: int, signum: int) -> bool:
        """Deliver signum to pid. Returns False if the OS refused."""


class _ExitProtocol(asyncio.SubprocessProtocol):
    """Routes asyncio's process_exited into an ExitCallback."""

    def __init__(self, on_exit: ExitCallback) -> None:
        self._on_exit = on_exit
        self._transport: asyncio.SubprocessTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def process_exited(self) -> None:
        returncode = self._transport.get_returncode() if self._transport else None
        if returncode is None:
            returncode = 0
        # Negative return codes mean the process was killed by a signal
        if returncode < 0:
            exit_status, term_signal = 0, -returncode
        else:
            exit_status, term_signal = returncode, 0
        self._on_exit(exit_status, term_signal)


class _AsyncioProcessHandle(ProcessHandle):
    def __init__(self, transport: asyncio.SubprocessTransport) -> None:
        self._transport = transport
        self._pid = transport.get_pid()

    @property
    def pid(self) -> int:
        return self._pid

    def close(self) -> None:
        if not self._transport.is_closing():
            self._transport.close()


class AsyncioEventLoop(EventLoop):
    """EventLoop backed by an asyncio loop (POSIX selector loops).

    Args:
        loop: Loop to use; defaults to the running loop at first use
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    async def create_process(
        self,
        options: ProcessOptions,
        on_exit: ExitCallback,
    ) -> ProcessHandle:
        stdin_fd, stdout_fd = (
            options.stdio[slot].child_fd(slot) for slot in range(options.stdio_count)
        )

        transport, _ = await self.loop.subprocess_exec(
            lambda: _ExitProtocol(on_exit),
            *options.args,
            executable=options.file,
            stdin=stdin_fd,
            stdout=stdout_fd,
            stderr=None,
            cwd=options.cwd,
            env=options.env,
        )
        handle = _AsyncioProcessHandle(transport)
        logger.debug(
            f"Created process pid={handle.pid} "
            f"file={options.file} cwd={options.cwd}"
        )
        return handle

    def add_reader(self, fd: int, callback: Callable[[], None]) -> None:
        self.loop.add_reader(fd, callback)

    def remove_reader(self, fd: int) -> None:
        self.loop.remove_reader(fd)

    def add_writer(self, fd: int, callback: Callable[[], None]) -> None:
        self.loop.add_writer(fd, callback)

    def remove_writer(self, fd: int) -> None:
        self.loop.remove_writer(fd)

    def send_signal(self, pid: int, signum: int) -> bool:
        try:
            os.kill(pid, signum)
        except OSError as e:
            logger.debug(f"Signal {signum} to pid={pid} failed: {e}")
            return False
        return True
