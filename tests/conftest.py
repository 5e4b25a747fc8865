"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable
from pathlib import Path

import anyio
import pytest

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
FAKE_CHILD_PATH = FIXTURES_DIR / "fake_child.py"

from childproc.config import reload_config  # noqa: E402
from childproc.runtime.loop import EventLoop, ExitCallback, ProcessHandle  # noqa: E402
from childproc.runtime.options import ProcessOptions  # noqa: E402


# =============================================================================
# Test doubles
# =============================================================================


class FakeHandle(ProcessHandle):
    """Process handle that records close()."""

    def __init__(self, pid: int) -> None:
        self._pid = pid
        self.close_count = 0

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def closed(self) -> bool:
        return self.close_count > 0

    def close(self) -> None:
        self.close_count += 1


class FakeEventLoop(EventLoop):
    """EventLoop double that records every interaction with the OS.

    Args:
        spawn_error: Raised from create_process when set
        spawn_hang: create_process never returns (until cancelled)
        reader_error: Raised from add_reader when set
        signal_result: Value returned by send_signal
        keep_callbacks: Store callbacks (False lets the process be collected)
    """

    def __init__(
        self,
        *,
        spawn_error: Exception | None = None,
        spawn_hang: bool = False,
        reader_error: Exception | None = None,
        signal_result: bool = True,
        keep_callbacks: bool = True,
    ) -> None:
        self.spawn_error = spawn_error
        self.spawn_hang = spawn_hang
        self.reader_error = reader_error
        self.signal_result = signal_result
        self.keep_callbacks = keep_callbacks

        self.created: list[ProcessOptions] = []
        self.handles: list[FakeHandle] = []
        self.exit_callbacks: list[ExitCallback] = []
        self.readers: dict[int, Callable[[], None] | None] = {}
        self.writers: dict[int, Callable[[], None] | None] = {}
        self.signals: list[tuple[int, int]] = []
        self.next_pid = 4242

    async def create_process(
        self,
        options: ProcessOptions,
        on_exit: ExitCallback,
    ) -> ProcessHandle:
        if self.spawn_hang:
            await anyio.sleep_forever()
        if self.spawn_error is not None:
            raise self.spawn_error
        self.created.append(options)
        if self.keep_callbacks:
            self.exit_callbacks.append(on_exit)
        handle = FakeHandle(self.next_pid)
        self.next_pid += 1
        self.handles.append(handle)
        return handle

    def add_reader(self, fd: int, callback: Callable[[], None]) -> None:
        if self.reader_error is not None:
            raise self.reader_error
        self.readers[fd] = callback if self.keep_callbacks else None

    def remove_reader(self, fd: int) -> None:
        self.readers.pop(fd, None)

    def add_writer(self, fd: int, callback: Callable[[], None]) -> None:
        self.writers[fd] = callback if self.keep_callbacks else None

    def remove_writer(self, fd: int) -> None:
        self.writers.pop(fd, None)

    def send_signal(self, pid: int, signum: int) -> bool:
        self.signals.append((pid, signum))
        return self.signal_result

    def exit(self, exit_status: int = 0, term_signal: int = 0, index: int = -1) -> None:
        """Deliver the exit notification of a created process."""
        self.exit_callbacks[index](exit_status, term_signal)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def default_config(monkeypatch: pytest.MonkeyPatch):
    """Run every test against the default configuration."""
    for key in list(os.environ):
        if key.startswith("CHILDPROC_"):
            monkeypatch.delenv(key, raising=False)
    config = reload_config()
    yield config
    reload_config()


@pytest.fixture
def fake_loop() -> FakeEventLoop:
    return FakeEventLoop()


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """Create temporary workspace directory."""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def fake_child() -> list[str]:
    """argv prefix running the fake child script with this interpreter."""
    return [sys.executable, str(FAKE_CHILD_PATH)]
