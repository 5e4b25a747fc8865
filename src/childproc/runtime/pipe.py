"""Byte-stream pipe endpoint bound to an EventLoop.

A Pipe owns both ends of one OS pipe until the process is spawned:
- child end: handed to the child through the stdio table, then closed
  in the parent
- parent end: non-blocking, driven by loop readiness callbacks

Data is a raw byte stream. Chunk boundaries carry no meaning.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

from .errors import PipeError
from .loop import EventLoop
from .options import StdioRedirect

__all__ = ["Pipe", "ReadCallback", "DEFAULT_CHUNK_SIZE"]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

ReadCallback = Callable[[bytes], None]


class Pipe:
    """One OS pipe, parent end bound to the loop.

    Args:
        loop: Event loop providing fd readiness
        redirect: PIPE_READABLE if the child reads this pipe (child stdin),
            PIPE_WRITABLE if the child writes it (child stdout)
        chunk_size: Maximum bytes per read
    """

    def __init__(
        self,
        loop: EventLoop,
        redirect: StdioRedirect,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if redirect is StdioRedirect.NONE:
            raise ValueError("Pipe requires a PIPE_READABLE or PIPE_WRITABLE redirect")
        self._loop = loop
        self.redirect = redirect
        self.chunk_size = chunk_size

        self._parent_fd: int | None = None
        self._child_fd: int | None = None
        self._read_callbacks: list[ReadCallback] = []
        self._eof_callbacks: list[Callable[[], None]] = []
        self._reading = False
        self._writing = False
        self._write_buffer = bytearray()
        self._shutdown_pending = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Create the OS pipe. Must run before the pipe enters a stdio table."""
        if self._closed:
            raise PipeError("Pipe is closed")
        if self._parent_fd is not None:
            return

        read_fd, write_fd = os.pipe()
        if self.redirect is StdioRedirect.PIPE_READABLE:
            self._child_fd, self._parent_fd = read_fd, write_fd
        else:
            self._parent_fd, self._child_fd = read_fd, write_fd
        os.set_blocking(self._parent_fd, False)

    @property
    def initialized(self) -> bool:
        return self._parent_fd is not None

    @property
    def parent_fd(self) -> int | None:
        return self._parent_fd

    @property
    def child_fd(self) -> int | None:
        return self._child_fd

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reading(self) -> bool:
        return self._reading

    @property
    def pending_bytes(self) -> int:
        return len(self._write_buffer)

    def close_child_end(self) -> None:
        """Close the child's end in the parent once the child holds a copy."""
        if self._child_fd is not None:
            fd, self._child_fd = self._child_fd, None
            os.close(fd)

    def close(self) -> None:
        """Stop all I/O and close both ends."""
        if self._closed:
            return
        self.close_child_end()
        self._close_parent_end()
        self._closed = True

    def _close_parent_end(self) -> None:
        self.read_stop()
        self._stop_writing()
        self._write_buffer.clear()
        if self._parent_fd is not None:
            fd, self._parent_fd = self._parent_fd, None
            os.close(fd)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def subscribe(self, callback: ReadCallback) -> None:
        """Register a callback for every chunk read."""
        self._read_callbacks.append(callback)

    def subscribe_eof(self, callback: Callable[[], None]) -> None:
        """Register a callback for end of stream."""
        self._eof_callbacks.append(callback)

    def read_start(self, callback: ReadCallback | None = None) -> bool:
        """Start delivering incoming chunks to the read callbacks.

        Args:
            callback: Optional extra read callback to subscribe

        Returns:
            True if the loop accepted the read registration
        """
        if callback is not None:
            self.subscribe(callback)
        if self._reading:
            return True
        if self._parent_fd is None or self.redirect is not StdioRedirect.PIPE_WRITABLE:
            return False
        try:
            self._loop.add_reader(self._parent_fd, self._on_readable)
        except (OSError, ValueError, RuntimeError) as e:
            logger.warning(f"Cannot start reading fd={self._parent_fd}: {e}")
            return False
        self._reading = True
        return True

    def read_stop(self) -> None:
        if self._reading and self._parent_fd is not None:
            self._loop.remove_reader(self._parent_fd)
        self._reading = False

    def _on_readable(self) -> None:
        if self._parent_fd is None:
            return
        try:
            chunk = os.read(self._parent_fd, self.chunk_size)
        except BlockingIOError:
            return
        except OSError as e:
            logger.warning(f"Read error on fd={self._parent_fd}: {e}")
            chunk = b""

        if not chunk:
            self._on_eof()
            return

        for callback in list(self._read_callbacks):
            try:
                callback(chunk)
            except Exception as e:
                logger.warning(f"Error in pipe read callback: {e}")

    def _on_eof(self) -> None:
        logger.debug(f"EOF on fd={self._parent_fd}")
        self.close()
        for callback in list(self._eof_callbacks):
            try:
                callback()
            except Exception as e:
                logger.warning(f"Error in pipe EOF callback: {e}")

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def write(self, data: bytes) -> None:
        """Queue data for the child. Returns without waiting for the OS.

        Raises:
            PipeError: If the pipe is closed, shut down or not writable
        """
        if self._closed or self._parent_fd is None:
            raise PipeError("Cannot write: pipe is closed")
        if self._shutdown_pending:
            raise PipeError("Cannot write: pipe is shutting down")
        if self.redirect is not StdioRedirect.PIPE_READABLE:
            raise PipeError("Cannot write: pipe is read-only in the parent")
        if not data:
            return

        self._write_buffer.extend(data)
        if not self._writing:
            self._flush()

    def shutdown(self) -> None:
        """Close the write end once buffered data is flushed."""
        if self._closed:
            return
        self._shutdown_pending = True
        if not self._write_buffer:
            self._close_parent_end()

    def _flush(self) -> None:
        while self._write_buffer and self._parent_fd is not None:
            try:
                written = os.write(self._parent_fd, self._write_buffer)
            except BlockingIOError:
                self._start_writing()
                return
            except BrokenPipeError:
                logger.debug(
                    f"Broken pipe on fd={self._parent_fd}, "
                    f"dropping {len(self._write_buffer)} bytes"
                )
                self.close()
                return
            del self._write_buffer[:written]

        self._stop_writing()
        if self._shutdown_pending:
            self._close_parent_end()

    def _start_writing(self) -> None:
        if not self._writing and self._parent_fd is not None:
            self._loop.add_writer(self._parent_fd, self._flush)
            self._writing = True

    def _stop_writing(self) -> None:
        if self._writing and self._parent_fd is not None:
            self._loop.remove_writer(self._parent_fd)
        self._writing = False
