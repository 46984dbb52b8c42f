"""cmdwatch - 受监控的外部命令执行。

启动子进程并监视其输出；当取消令牌触发，或进程在超时时间内
没有任何输出时，终止该进程。

环境变量:
    CMDWATCH_TIMEOUT: 无输出超时（秒，默认 120）
    CMDWATCH_LOG_DEBUG: 日志输出到临时文件 (默认 false)

用法:
    cmdwatch -- git fetch origin
"""

__version__ = "0.1.0"

from .cancel import CancelToken, OperationCancelled
from .runner import LocalRepo, Repo, run_from_cwd, run_from_repo_dir
from .runtime import (
    ActivityBuffer,
    Command,
    CommandError,
    CommandExitError,
    CommandOutput,
    KillCommandError,
    MonitoredCommand,
    NoProgressError,
)

__all__ = [
    "__version__",
    "ActivityBuffer",
    "CancelToken",
    "Command",
    "CommandError",
    "CommandExitError",
    "CommandOutput",
    "KillCommandError",
    "LocalRepo",
    "MonitoredCommand",
    "NoProgressError",
    "OperationCancelled",
    "Repo",
    "run_from_cwd",
    "run_from_repo_dir",
]
