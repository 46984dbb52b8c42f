"""信号管理模块。

将 OS 信号转换为对当前命令的取消操作：
- SIGINT: 取消正在运行的命令（而不是直接退出进程）
- SIGTERM: 取消命令 + 请求退出

支持的配置：
- CMDWATCH_SIGINT_DOUBLE_TAP_WINDOW: 双击退出窗口时间
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import time
from typing import Callable, Optional

from .cancel import CancelToken, OperationCancelled
from .config import get_config

__all__ = ["SignalManager"]

logger = logging.getLogger(__name__)


class SignalManager:
    """信号管理器。

    Example:
        ```python
        token = CancelToken()
        signal_manager = SignalManager(token)

        async def main():
            await signal_manager.start()
            try:
                result = await run_from_cwd(token, "git", "fetch")
            finally:
                await signal_manager.stop()
        ```

    Attributes:
        token: 收到信号时触发的取消令牌
        double_tap_window: 双击退出窗口时间（秒）
    """

    def __init__(
        self,
        token: CancelToken,
        double_tap_window: Optional[float] = None,
        on_shutdown: Optional[Callable[[], None]] = None,
    ) -> None:
        """初始化信号管理器。

        Args:
            token: 取消令牌
            double_tap_window: 双击退出窗口时间（默认从配置读取）
            on_shutdown: 关闭时的回调函数
        """
        self.token = token
        self.double_tap_window = (
            double_tap_window if double_tap_window is not None else get_config().sigint_double_tap_window
        )
        self._on_shutdown = on_shutdown

        # 内部状态
        self._last_sigint_time: float = 0.0
        self._shutdown_requested: bool = False
        self._force_exit: bool = False  # 双击 SIGINT 触发的强制退出标志
        self._shutdown_event: Optional[asyncio.Event] = None
        self._original_sigint_handler = None
        self._running: bool = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def is_shutdown_requested(self) -> bool:
        """是否已请求关闭。"""
        return self._shutdown_requested

    @property
    def is_force_exit(self) -> bool:
        """是否请求强制退出（双击 SIGINT）。"""
        return self._force_exit

    async def start(self) -> None:
        """启动信号监听。

        必须在 asyncio 事件循环中调用。
        """
        if self._running:
            logger.warning("SignalManager already running")
            return

        self._loop = asyncio.get_running_loop()
        self._shutdown_event = asyncio.Event()
        self._running = True

        if sys.platform != "win32":
            self._loop.add_signal_handler(signal.SIGINT, self._handle_sigint)
            self._loop.add_signal_handler(signal.SIGTERM, self._handle_sigterm)
            logger.debug(f"Signal handlers installed (double_tap_window={self.double_tap_window}s)")
        else:
            # Windows: signal.signal() 处理器在主线程运行，需要转回事件循环
            loop = self._loop
            self._original_sigint_handler = signal.signal(
                signal.SIGINT,
                lambda sig, frame: loop.call_soon_threadsafe(self._handle_sigint),
            )
            logger.debug("SIGINT handler installed on Windows")

    async def stop(self) -> None:
        """停止信号监听，恢复原始信号处理器。"""
        if not self._running:
            return

        self._running = False

        if sys.platform != "win32" and self._loop:
            try:
                self._loop.remove_signal_handler(signal.SIGINT)
                self._loop.remove_signal_handler(signal.SIGTERM)
            except (RuntimeError, ValueError) as e:
                logger.debug(f"Error removing signal handlers: {e}")
        elif sys.platform == "win32" and self._original_sigint_handler is not None:
            signal.signal(signal.SIGINT, self._original_sigint_handler)

        logger.debug("Signal handlers removed")

    async def wait_for_shutdown(self) -> None:
        """等待关闭信号。"""
        if self._shutdown_event:
            await self._shutdown_event.wait()

    def _handle_sigint(self) -> None:
        """处理 SIGINT 信号。

        - 第一次：取消当前命令
        - 在双击窗口内再次收到：强制退出
        """
        current_time = time.time()
        time_since_last = current_time - self._last_sigint_time
        self._last_sigint_time = current_time

        if time_since_last < self.double_tap_window and self.token.cancelled:
            logger.warning("Double SIGINT detected, forcing shutdown")
            self._force_exit = True
            self._request_shutdown()
            return

        if self.token.cancel(OperationCancelled("interrupted by SIGINT")):
            logger.info(
                f"SIGINT received, cancelling command. "
                f"Press Ctrl+C again within {self.double_tap_window}s to exit."
            )
        else:
            logger.info("SIGINT received, command already cancelled")

    def _handle_sigterm(self) -> None:
        """处理 SIGTERM 信号：取消命令并请求关闭。"""
        logger.info("SIGTERM received, initiating graceful shutdown")
        self.token.cancel(OperationCancelled("terminated by SIGTERM"))
        self._request_shutdown()

    def _request_shutdown(self) -> None:
        """请求关闭。"""
        self._shutdown_requested = True

        if self._on_shutdown:
            try:
                self._on_shutdown()
            except Exception as e:
                logger.warning(f"Error in shutdown callback: {e}")

        if self._shutdown_event and self._loop:
            self._loop.call_soon_threadsafe(self._shutdown_event.set)
