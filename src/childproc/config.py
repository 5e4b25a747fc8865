"""childproc 环境变量配置管理。

环境变量:
    CHILDPROC_MAX_ARGS: spawn 时允许的最大参数个数
        - 默认 10
        - 0 = 不限制

    CHILDPROC_KILL_SIGNAL: kill() 默认发送的信号
        - 信号名 (SIGTERM / TERM / SIGKILL ...) 或信号编号
        - 默认 SIGTERM，无效值回退到默认

    CHILDPROC_READ_CHUNK_SIZE: 从 stdout 管道单次读取的最大字节数
        - 默认 65536
        - 限制在 1024 - 1048576 范围

    CHILDPROC_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import os
import signal
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_MAX_ARGS = 10
DEFAULT_KILL_SIGNAL = int(signal.SIGTERM)
DEFAULT_READ_CHUNK_SIZE = 64 * 1024

MIN_READ_CHUNK_SIZE = 1024
MAX_READ_CHUNK_SIZE = 1024 * 1024


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_max_args(value: str | None) -> int | None:
    """解析最大参数个数。

    Returns:
        参数上限，None 表示不限制
    """
    if not value or not value.strip():
        return DEFAULT_MAX_ARGS
    try:
        limit = int(value)
    except ValueError:
        return DEFAULT_MAX_ARGS
    if limit <= 0:
        return None
    return limit


def _parse_signal(value: str | None) -> int:
    """解析信号名或信号编号。

    Args:
        value: 例如 "SIGKILL"、"kill"、"9"

    Returns:
        信号编号，无效值返回 SIGTERM
    """
    if not value or not value.strip():
        return DEFAULT_KILL_SIGNAL

    value = value.strip().upper()
    if value.isdigit():
        try:
            return int(signal.Signals(int(value)))
        except ValueError:
            return DEFAULT_KILL_SIGNAL

    name = value if value.startswith("SIG") else f"SIG{value}"
    try:
        return int(signal.Signals[name])
    except KeyError:
        return DEFAULT_KILL_SIGNAL


def _parse_chunk_size(value: str | None) -> int:
    """解析读取块大小。"""
    if not value:
        return DEFAULT_READ_CHUNK_SIZE
    try:
        size = int(value)
        return max(MIN_READ_CHUNK_SIZE, min(size, MAX_READ_CHUNK_SIZE))
    except ValueError:
        return DEFAULT_READ_CHUNK_SIZE


@dataclass
class Config:
    """childproc 配置。

    Attributes:
        max_args: spawn 允许的最大参数个数，None 表示不限制
        kill_signal: kill() 默认信号
        read_chunk_size: stdout 单次读取的最大字节数
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    max_args: int | None = DEFAULT_MAX_ARGS
    kill_signal: int = DEFAULT_KILL_SIGNAL
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        max_args_str = str(self.max_args) if self.max_args is not None else "unlimited"
        return (
            f"Config(max_args={max_args_str}, "
            f"kill_signal={signal.Signals(self.kill_signal).name}, "
            f"read_chunk_size={self.read_chunk_size}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "childproc"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"childproc_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CHILDPROC_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        max_args=_parse_max_args(os.environ.get("CHILDPROC_MAX_ARGS")),
        kill_signal=_parse_signal(os.environ.get("CHILDPROC_KILL_SIGNAL")),
        read_chunk_size=_parse_chunk_size(os.environ.get("CHILDPROC_READ_CHUNK_SIZE")),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
