"""childproc 日志配置。

库本身只通过 logging.getLogger(__name__) 输出日志；
应用可以调用 setup_logging() 按环境变量配置输出目标。
"""

from __future__ import annotations

import json
import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class JsonSerializingFormatter(logging.Formatter):
    """尝试将日志参数中的 dict / 对象 JSON 序列化。"""

    def format(self, record: logging.LogRecord) -> str:
        if record.args and isinstance(record.args, tuple):
            new_args = []
            for arg in record.args:
                try:
                    if isinstance(arg, dict):
                        new_args.append(json.dumps(arg, ensure_ascii=False, default=str))
                    elif hasattr(arg, "__dict__") and not isinstance(arg, (str, int, float, bool, type(None))):
                        new_args.append(json.dumps(vars(arg), ensure_ascii=False, default=str))
                    else:
                        new_args.append(arg)
                except (TypeError, ValueError):
                    new_args.append(arg)
            record.args = tuple(new_args)
        return super().format(record)


def setup_logging(config: Config | None = None) -> list[logging.Handler]:
    """配置日志输出。

    Args:
        config: 配置（默认使用全局配置）

    Returns:
        已安装的日志处理器列表
    """
    config = config or get_config()
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(JsonSerializingFormatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    # root logger（第三方库）为 WARNING，减少噪音
    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
        force=True,
    )
    # 只对 childproc 命名空间启用详细日志
    logging.getLogger("childproc").setLevel(log_level)

    return log_handlers
