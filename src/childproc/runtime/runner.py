"""One-shot helper: spawn, feed stdin, collect stdout, wait."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from .loop import EventLoop
from .process import ManagedProcess

__all__ = ["ProcessResult", "run_process"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of run_process.

    Attributes:
        exit_code: Exit status (0 if killed by a signal)
        term_signal: Terminating signal, 0 if none
        stdout: Everything the child wrote to stdout
    """

    exit_code: int
    term_signal: int
    stdout: bytes


async def run_process(
    args: Sequence[str],
    *,
    file: str | None = None,
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
    stdin_bytes: bytes | None = None,
    timeout: float | None = None,
    loop: EventLoop | None = None,
) -> ProcessResult:
    """Run a process to completion and collect its stdout.

    Args:
        args: Argument list, argv[0] included
        file: Explicit executable (default: args[0])
        cwd: Working directory
        env: Environment variables (None = inherit parent)
        stdin_bytes: Bytes written to stdin before it is closed
        timeout: Seconds before the child is killed

    Returns:
        ProcessResult with exit status and collected stdout

    Raises:
        TimeoutError: The child did not finish in time (it has been signalled)
    """
    chunks: list[bytes] = []

    async with ManagedProcess(args, loop) as proc:
        proc.file = file or ""
        proc.cwd = cwd
        proc.env = dict(env) if env is not None else None
        proc.on_stdout = chunks.append

        await proc.spawn()

        if stdin_bytes:
            proc.stdin.write(stdin_bytes)
        proc.stdin.shutdown()

        try:
            await proc.wait(timeout)
        except TimeoutError:
            # Leaving the context signals the child
            logger.debug(f"Process timed out after {timeout}s pid={proc.pid}")
            raise

        return ProcessResult(
            exit_code=proc.exit_code or 0,
            term_signal=proc.term_signal or 0,
            stdout=b"".join(chunks),
        )
