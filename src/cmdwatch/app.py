"""cmdwatch 命令行入口。

包含日志配置、信号集成和主入口点。
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Sequence

from .cancel import CancelToken, OperationCancelled
from .config import get_config
from .runner import LocalRepo, run_from_cwd, run_from_repo_dir
from .runtime import CommandExitError, CommandOutput, KillCommandError, NoProgressError
from .signal_manager import SignalManager

__all__ = ["exit_code_for", "main", "run_command"]

logger = logging.getLogger(__name__)

# 与 coreutils timeout(1) 一致
TIMEOUT_EXIT_CODE = 124
CANCELLED_EXIT_CODE = 130  # 128 + SIGINT(2)


def exit_code_for(error: BaseException | None) -> int:
    """将分类错误映射为进程退出码。"""
    if error is None:
        return 0
    if isinstance(error, CommandExitError):
        return error.exit_code
    if isinstance(error, NoProgressError):
        return TIMEOUT_EXIT_CODE
    if isinstance(error, KillCommandError):
        return 1
    if isinstance(error, OperationCancelled):
        return CANCELLED_EXIT_CODE
    if isinstance(error, FileNotFoundError):
        return 127
    if isinstance(error, PermissionError):
        return 126
    return 1


async def run_command(command: Sequence[str], cwd: Path | None = None) -> int:
    """运行单个受监控命令并返回退出码。

    集成信号管理器：
    - SIGINT: 取消命令（进程被终止后返回）
    - 双击 SIGINT: 放弃等待，立即返回
    - SIGTERM: 取消命令并退出
    """
    token = CancelToken()
    signal_manager = SignalManager(token)
    run_task: asyncio.Task[CommandOutput] | None = None
    shutdown_watcher: asyncio.Task[None] | None = None

    async def _watch_shutdown() -> None:
        """双击 SIGINT 时取消运行任务。"""
        await signal_manager.wait_for_shutdown()
        if signal_manager.is_force_exit and run_task and not run_task.done():
            logger.warning("Force exit requested, abandoning command")
            run_task.cancel()

    try:
        await signal_manager.start()

        if cwd is not None:
            coro = run_from_repo_dir(token, LocalRepo(cwd), command[0], *command[1:])
        else:
            coro = run_from_cwd(token, command[0], *command[1:])
        run_task = asyncio.create_task(coro, name="cmdwatch-run")
        shutdown_watcher = asyncio.create_task(_watch_shutdown(), name="shutdown-watcher")

        try:
            result = await run_task
        except asyncio.CancelledError:
            if signal_manager.is_force_exit:
                return CANCELLED_EXIT_CODE
            raise

    finally:
        if shutdown_watcher and not shutdown_watcher.done():
            shutdown_watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await shutdown_watcher
        await signal_manager.stop()

    if result.ok:
        sys.stdout.buffer.write(result.output)
        sys.stdout.flush()
    else:
        sys.stderr.buffer.write(result.output)
        sys.stderr.flush()
        logger.error(f"{command[0]}: {result.error}")

    return exit_code_for(result.error)


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number: {value!r}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be positive: {value!r}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cmdwatch",
        description="Run a command, killing it when it stops producing output.",
    )
    parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="No-progress timeout in seconds (default: CMDWATCH_TIMEOUT or 120)",
    )
    parser.add_argument("--cwd", type=Path, default=None, help="Run the command in this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command and arguments")
    return parser


def _configure_logging(verbose: bool) -> None:
    """配置日志输出。"""
    config = get_config()
    log_handlers: list[logging.Handler] = []
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(formatter)
        log_handlers.append(stderr_handler)
        log_level = logging.DEBUG if verbose else logging.INFO

    # 第三方库只输出 WARNING 以上
    logging.basicConfig(level=logging.WARNING, handlers=log_handlers)
    logging.getLogger("cmdwatch").setLevel(log_level)


def main(argv: Sequence[str] | None = None) -> int:
    """主入口点。"""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]
    if not command:
        parser.error("no command given")

    _configure_logging(args.verbose)
    config = get_config()
    if args.timeout is not None:
        config.timeout = args.timeout
    logger.debug(f"Running {command!r} with {config}")

    return asyncio.run(run_command(command, cwd=args.cwd))


if __name__ == "__main__":
    sys.exit(main())
