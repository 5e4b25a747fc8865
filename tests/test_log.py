"""日志配置测试。"""

from __future__ import annotations

import logging

import pytest

from conftest import FakeEventLoop

from childproc.config import Config
from childproc.log import JsonSerializingFormatter, setup_logging
from childproc.runtime.process import ManagedProcess


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    package_level = logging.getLogger("childproc").level
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)
    logging.getLogger("childproc").setLevel(package_level)


class TestSetupLogging:
    """测试日志输出目标选择。"""

    def test_default_stderr(self, restore_logging):
        handlers = setup_logging(Config())

        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert logging.getLogger("childproc").level == logging.INFO
        assert logging.getLogger().level == logging.WARNING

    def test_debug_file(self, restore_logging, tmp_path):
        log_file = tmp_path / "debug.log"
        handlers = setup_logging(Config(log_debug=True, log_file=str(log_file)))

        assert isinstance(handlers[0], logging.FileHandler)
        assert logging.getLogger("childproc").level == logging.DEBUG

        logging.getLogger("childproc.runtime.process").debug("%s %s", "spawned", {"pid": 1})
        handlers[0].flush()

        content = log_file.read_text(encoding="utf-8")
        assert '{"pid": 1}' in content
        assert "[DEBUG] childproc.runtime.process" in content

    @pytest.mark.asyncio
    async def test_spawn_options_serialised(self, restore_logging, tmp_path, fake_loop: FakeEventLoop):
        """spawn 的调试日志把选项序列化为 JSON。"""
        log_file = tmp_path / "spawn.log"
        handlers = setup_logging(Config(log_debug=True, log_file=str(log_file)))

        proc = ManagedProcess(["echo", "hi"], fake_loop)
        await proc.spawn()
        proc.close()
        handlers[0].flush()

        content = log_file.read_text(encoding="utf-8")
        assert '"args": ["echo", "hi"]' in content
        assert "pid=4242" in content


class TestJsonSerializingFormatter:
    """测试参数序列化。"""

    def test_plain_args_untouched(self):
        formatter = JsonSerializingFormatter("%(message)s")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "%s=%d", ("a", 1), None)

        assert formatter.format(record) == "a=1"

    def test_object_args_serialised(self):
        class Point:
            def __init__(self) -> None:
                self.x = 1

        formatter = JsonSerializingFormatter("%(message)s")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "%s", (Point(),), None)

        assert formatter.format(record) == '{"x": 1}'
