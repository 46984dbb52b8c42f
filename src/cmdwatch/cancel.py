"""Cooperative cancellation tokens.

A CancelToken is handed to monitored command runs by whoever owns the
larger operation. Firing it makes the run kill its process and raise the
token's reason.

Thread-safety: cancel() may be called from any thread. Each wait() owns
an event bound to the loop it runs on; waiters on other loops or threads
are woken through loop.call_soon_threadsafe. An unfired token can be
reused across event loops (e.g. one abort token shared by several
asyncio.run() calls).
"""

from __future__ import annotations

import asyncio
import logging
import threading

import anyio

__all__ = ["CancelToken", "OperationCancelled"]

logger = logging.getLogger(__name__)


class OperationCancelled(Exception):
    """Default reason carried by a fired CancelToken."""

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)


class CancelToken:
    """A one-shot cancellation signal with a reason.

    Example:
        token = CancelToken()
        task = asyncio.create_task(run_from_cwd(token, "git", "fetch"))
        ...
        token.cancel(OperationCancelled("user aborted"))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reason: Exception | None = None
        self._waiters: list[tuple[asyncio.AbstractEventLoop, anyio.Event]] = []

    def __repr__(self) -> str:
        state = f"cancelled={self._reason!r}" if self._reason is not None else "active"
        return f"CancelToken({state})"

    @property
    def cancelled(self) -> bool:
        return self._reason is not None

    @property
    def error(self) -> Exception | None:
        """The cancellation reason, or None if the token has not fired."""
        return self._reason

    def cancel(self, reason: Exception | None = None) -> bool:
        """Fire the token.

        Args:
            reason: Error raised by runs observing the token
                (default OperationCancelled())

        Returns:
            True if this call fired the token, False if it had already fired
        """
        with self._lock:
            if self._reason is not None:
                return False
            self._reason = reason if reason is not None else OperationCancelled()
            waiters, self._waiters = self._waiters, []

        logger.debug(f"Cancel token fired: {self._reason!r} (waiters={len(waiters)})")
        for loop, event in waiters:
            self._wake(loop, event)
        return True

    def check(self) -> None:
        """Raise the cancellation reason if the token has fired."""
        if self._reason is not None:
            raise self._reason

    async def wait(self) -> Exception:
        """Suspend until the token fires and return its reason."""
        loop = asyncio.get_running_loop()
        event = anyio.Event()
        entry = (loop, event)
        with self._lock:
            if self._reason is not None:
                return self._reason
            self._waiters.append(entry)

        try:
            await event.wait()
        finally:
            with self._lock:
                if entry in self._waiters:
                    self._waiters.remove(entry)

        assert self._reason is not None
        return self._reason

    @staticmethod
    def _wake(loop: asyncio.AbstractEventLoop, event: anyio.Event) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is loop:
            event.set()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(event.set)
