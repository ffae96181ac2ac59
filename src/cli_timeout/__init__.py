"""cli-timeout - run a command with a time limit.

环境变量:
    CLI_TIMEOUT_LOG_DEBUG: 日志输出到临时文件 (默认 false)
    CLI_TIMEOUT_VERBOSE: 报告信号发送 (默认 false)
    CLI_TIMEOUT_KILL_AFTER: 默认 kill-after 秒数 (默认 0)

用法:
    cli-timeout -k 5 30 make test
"""

__version__ = "0.1.0"

from .app import main
from .runtime import ExitStatus, TimeoutSpec, run, run_simple

__all__ = ["__version__", "main", "ExitStatus", "TimeoutSpec", "run", "run_simple"]
