"""Classified errors raised by monitored command execution.

Callers tell failure kinds apart with ``isinstance`` checks:

- NoProgressError: the command produced no output for too long and was killed
- KillCommandError: killing the command (after a timeout or cancellation) failed
- CommandExitError: the command ran to completion with a non-zero status

Start failures are the ``OSError`` raised by process creation and
cancellation raises the cancel token's own reason; neither is wrapped.
"""

from __future__ import annotations

import signal
from collections.abc import Sequence

__all__ = [
    "CommandError",
    "CommandExitError",
    "KillCommandError",
    "NoProgressError",
]


class CommandError(Exception):
    """Base class for errors produced by the monitored runtime."""


class NoProgressError(CommandError):
    """The monitored process was killed after exceeding the progress timeout.

    Attributes:
        timeout: The no-progress timeout in seconds
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(f"command killed after {timeout:g}s of no activity")

    def __reduce__(self):
        return (type(self), (self.timeout,))


class KillCommandError(CommandError):
    """Sending the kill signal to the monitored process failed.

    The process may still be running, so this takes precedence over the
    timeout or cancellation that triggered the kill.

    Attributes:
        err: The underlying error raised by the kill attempt
    """

    def __init__(self, err: BaseException) -> None:
        self.err = err
        super().__init__(f"error killing command: {err}")

    def __reduce__(self):
        return (type(self), (self.err,))


class CommandExitError(CommandError):
    """The process exited on its own with a non-zero status.

    Attributes:
        argv: Command line of the process
        returncode: Exit status; negative when terminated by a signal
    """

    def __init__(self, argv: Sequence[str], returncode: int) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        super().__init__(self._describe(returncode))

    def __reduce__(self):
        return (type(self), (self.argv, self.returncode))

    @property
    def exit_code(self) -> int:
        """Shell-style exit code (128 + N for signal N)."""
        if self.returncode < 0:
            return 128 - self.returncode
        return self.returncode

    @staticmethod
    def _describe(returncode: int) -> str:
        if returncode < 0:
            try:
                name = signal.Signals(-returncode).name
            except ValueError:
                name = str(-returncode)
            return f"signal: {name}"
        return f"exit status {returncode}"
