"""Monitored command execution with a no-progress timeout.

A MonitoredCommand runs one Command until it finishes, until the supplied
CancelToken fires, or until the command has shown no signs of activity
(nothing written to stdout or stderr) for longer than the timeout.

Key design points:
- One background task owns the single Command.wait() call and acts as the
  completion signal for natural *and* kill-induced termination
- The supervisor multiplexes completion, a periodic tick and the cancel
  token with asyncio.wait(); it never busy-polls
- Kill is only issued while the exited flag is unset, so a process that
  finished at the same moment as a tick or cancellation is never signalled
- After a kill the supervisor still waits for the process to be reaped
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from ..cancel import CancelToken
from .activity import ActivityBuffer
from .command import Command
from .errors import KillCommandError, NoProgressError

__all__ = [
    "CommandOutput",
    "MonitoredCommand",
    "tick_interval",
]

logger = logging.getLogger(__name__)

# Tick bounds (seconds)
MAX_TICK = 1.0
MIN_TICK = 0.005


def tick_interval(timeout: float) -> float:
    """Compute how often inactivity is checked for a given timeout.

    With tick-based checks the longest possible run without progress is
    timeout + one tick, so the tick has to be well below the timeout. Start
    with ten checks per timeout; long timeouts are checked once per second,
    and short ones no more often than every 5ms (or the timeout itself, if
    that is smaller).

    Args:
        timeout: No-progress timeout in seconds

    Returns:
        Tick interval in seconds
    """
    tick = timeout / 10
    if tick > MAX_TICK:
        return MAX_TICK
    if tick < MIN_TICK:
        return timeout if timeout < MIN_TICK else MIN_TICK
    return tick


@dataclass(frozen=True)
class CommandOutput:
    """Output of a monitored run.

    Attributes:
        output: stdout on success, stderr on failure
        error: The classified error, or None on success
    """

    output: bytes
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def check(self) -> bytes:
        """Return the output, raising the error if the run failed."""
        if self.error is not None:
            raise self.error
        return self.output


class MonitoredCommand:
    """Supervises a single Command run.

    Example:
        monitored = MonitoredCommand(Command(["git", "fetch"]), timeout=120.0)
        result = await monitored.combined_output(token)
        if not result.ok:
            handle(result.error, result.output)

    Attributes:
        cmd: The supervised command (must not be started yet)
        timeout: No-progress timeout in seconds
        stdout: Activity buffer attached as the command's stdout
        stderr: Activity buffer attached as the command's stderr
    """

    def __init__(self, cmd: Command, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError(f"timeout must be positive, got {timeout}")
        if cmd.started:
            raise ValueError(f"command already started: {cmd!r}")

        self.cmd = cmd
        self.timeout = timeout
        self.stdout = ActivityBuffer()
        self.stderr = ActivityBuffer()
        cmd.stdout, cmd.stderr = self.stdout, self.stderr

        self._running = False
        self._exited = False
        self._started_at: float | None = None

    async def run(self, cancel: CancelToken | None = None) -> None:
        """Run the command and wait for it to finish.

        If the command shows no progress, as indicated by writes to stdout
        or stderr, for more than the timeout, the process is killed.

        Args:
            cancel: Optional token; firing it kills the process

        Raises:
            OSError: If the process could not be started
            NoProgressError: If the process was killed for inactivity
            KillCommandError: If killing the process failed
            CommandExitError: If the process exited with a non-zero status
            Exception: The cancel token's reason, if it fired
        """
        if self._running:
            raise RuntimeError("monitored command can only be run once")
        self._running = True

        if cancel is not None:
            cancel.check()

        await self.cmd.start()
        self._started_at = time.monotonic()

        tick = tick_interval(self.timeout)
        loop = asyncio.get_running_loop()

        waiter = asyncio.create_task(self._wait_for_exit(), name=f"wait-{self.cmd.pid}")
        cancel_task: asyncio.Task[Exception] | None = None
        if cancel is not None:
            cancel_task = asyncio.create_task(cancel.wait(), name=f"cancel-{self.cmd.pid}")

        try:
            kill_error = await self._supervise(loop, tick, waiter, cancel_task)
            if kill_error is None:
                waiter.result()
                return

            # Only reachable on the kill path: block until the waiter reports
            # that the command has exited.
            # TODO: bound this wait; a process that survives the kill keeps
            # run() blocked here forever.
            await asyncio.wait({waiter})
            waiter.exception()
            raise kill_error

        except asyncio.CancelledError:
            logger.debug(f"Supervision of pid={self.cmd.pid} cancelled, cleaning up")
            if not self._exited:
                try:
                    self.cmd.kill()
                except Exception as e:
                    logger.warning(f"Error killing pid={self.cmd.pid} during cleanup: {e}")
            await self._reap(waiter)
            raise

        finally:
            if cancel_task is not None and not cancel_task.done():
                cancel_task.cancel()

    async def combined_output(self, cancel: CancelToken | None = None) -> CommandOutput:
        """Run the command and return its output.

        On failure the output is the stderr buffer, on success the stdout
        buffer; despite the name the two streams are never merged.

        Args:
            cancel: Optional token; firing it kills the process

        Returns:
            CommandOutput with the selected buffer and the error, if any
        """
        try:
            await self.run(cancel)
        except Exception as e:
            return CommandOutput(self.stderr.getvalue(), e)

        # FIXME: this is not actually combined output
        return CommandOutput(self.stdout.getvalue())

    def has_timed_out(self, now: float | None = None) -> bool:
        """Whether both streams have been silent for longer than the timeout.

        A stream that was never written counts as silent since the start.
        """
        if now is None:
            now = time.monotonic()
        threshold = now - self.timeout
        stamps = [
            stamp
            for stamp in (self.stdout.last_activity(), self.stderr.last_activity(), self._started_at)
            if stamp is not None
        ]
        return all(stamp < threshold for stamp in stamps)

    async def _supervise(
        self,
        loop: asyncio.AbstractEventLoop,
        tick: float,
        waiter: asyncio.Task[None],
        cancel_task: asyncio.Task[Exception] | None,
    ) -> Exception | None:
        """Race completion, ticks and cancellation.

        Returns:
            None when the command completed on its own, otherwise the error
            to raise once the killed process has been reaped
        """
        next_tick = loop.time() + tick

        while True:
            watched: set[asyncio.Task] = {waiter}
            if cancel_task is not None:
                watched.add(cancel_task)

            done, _ = await asyncio.wait(
                watched,
                timeout=max(0.0, next_tick - loop.time()),
                return_when=asyncio.FIRST_COMPLETED,
            )

            if waiter in done:
                return None

            if cancel_task is not None and cancel_task in done:
                if self._exited:
                    # Already exited; let the completion signal win
                    cancel_task = None
                    continue
                if cancel_task.cancelled():
                    return self._kill(RuntimeError("cancel watcher was cancelled"), "cancel watcher lost")
                failure = cancel_task.exception()
                if failure is not None:
                    # The token never fired; still kill and reap
                    return self._kill(failure, "cancel watcher failed")
                return self._kill(cancel_task.result(), "cancelled")

            if not done:
                now = loop.time()
                next_tick += tick
                if next_tick < now:
                    next_tick = now + tick
                if not self._exited and self.has_timed_out():
                    return self._kill(NoProgressError(self.timeout), "no progress")

    def _kill(self, reason: Exception, why: str) -> Exception:
        logger.debug(f"Killing pid={self.cmd.pid} ({why}, timeout={self.timeout:g}s)")
        try:
            self.cmd.kill()
        except Exception as e:
            error = KillCommandError(e)
            error.__cause__ = e
            return error
        return reason

    async def _wait_for_exit(self) -> None:
        # wait() can only be called once, so this is the completion
        # indicator for both normal and kill-induced termination.
        try:
            await self.cmd.wait()
        finally:
            self._exited = True

    @staticmethod
    async def _reap(waiter: asyncio.Task[None]) -> None:
        # Repeated cancellation of the caller must not abandon the waiter
        while not waiter.done():
            try:
                await asyncio.shield(asyncio.wait({waiter}))
            except asyncio.CancelledError:
                logger.debug("Cancelled again while reaping, still waiting for exit")
        if not waiter.cancelled():
            waiter.exception()
