"""childproc - 事件循环驱动的子进程管理。

环境变量:
    CHILDPROC_MAX_ARGS: spawn 最大参数个数 (默认 10, 0=不限制)
    CHILDPROC_KILL_SIGNAL: kill() 默认信号 (默认 SIGTERM)
    CHILDPROC_READ_CHUNK_SIZE: stdout 单次读取字节数 (默认 65536)
    CHILDPROC_LOG_DEBUG: 日志输出到临时文件 (默认 false)
"""

__version__ = "0.1.0"

from .log import setup_logging
from .runtime import ManagedProcess, ProcessState, run_process

__all__ = ["__version__", "ManagedProcess", "ProcessState", "run_process", "setup_logging"]
