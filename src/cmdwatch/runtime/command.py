"""Process handle for a single external command.

A Command is configured up front (argv, working directory, environment)
and started later by whoever supervises it. Output is relayed chunk by
chunk into the sinks attached as ``stdout``/``stderr`` before start.

Key design points:
- wait() may be awaited exactly once, and covers both natural and
  kill-induced termination
- kill() signals the single process only; no process-group handling
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol

from .errors import CommandExitError

__all__ = [
    "Command",
    "OutputSink",
]

logger = logging.getLogger(__name__)

# Relay chunk size
READ_CHUNK_SIZE = 4096


class OutputSink(Protocol):
    """Anything that accepts relayed output chunks."""

    def write(self, data: bytes) -> int: ...


class Command:
    """A not-yet-started external process.

    Example:
        cmd = Command(["git", "status"], cwd=Path("/repo"))
        cmd.stdout = ActivityBuffer()
        await cmd.start()
        await cmd.wait()

    Attributes:
        argv: Command line arguments (first element is the executable)
        cwd: Working directory for the process (None = inherit)
        env: Environment variables (None = inherit parent)
        stdout: Sink receiving stdout chunks (None = discard)
        stderr: Sink receiving stderr chunks (None = discard)
    """

    def __init__(
        self,
        argv: Sequence[str],
        *,
        cwd: str | Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> None:
        if not argv:
            raise ValueError("argv must not be empty")
        self.argv = list(argv)
        self.cwd = cwd
        self.env = env
        self.stdout: OutputSink | None = None
        self.stderr: OutputSink | None = None

        self._process: asyncio.subprocess.Process | None = None
        self._relays: list[asyncio.Task[None]] = []
        self._waited = False

    def __repr__(self) -> str:
        return f"Command(argv={self.argv!r}, cwd={self.cwd!r})"

    @property
    def started(self) -> bool:
        return self._process is not None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    async def start(self) -> None:
        """Launch the process and begin relaying its output.

        Raises:
            RuntimeError: If the command was already started
            OSError: If the process cannot be created (e.g. FileNotFoundError)
        """
        if self._process is not None:
            raise RuntimeError(f"command already started: {self.argv[0]}")

        self._process = await asyncio.create_subprocess_exec(
            *self.argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE if self.stdout is not None else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE if self.stderr is not None else asyncio.subprocess.DEVNULL,
            cwd=self.cwd,
            env=dict(self.env) if self.env is not None else None,
        )
        logger.debug(f"Started command pid={self._process.pid} argv={self.argv[0]} cwd={self.cwd}")

        if self._process.stdout is not None and self.stdout is not None:
            self._relays.append(asyncio.create_task(self._relay(self._process.stdout, self.stdout)))
        if self._process.stderr is not None and self.stderr is not None:
            self._relays.append(asyncio.create_task(self._relay(self._process.stderr, self.stderr)))

    async def wait(self) -> None:
        """Wait for the process to exit and its output to be drained.

        Raises:
            RuntimeError: If the command was not started or wait() was already called
            CommandExitError: If the process exited with a non-zero status
        """
        if self._process is None:
            raise RuntimeError(f"command not started: {self.argv[0]}")
        if self._waited:
            raise RuntimeError(f"wait already called: {self.argv[0]}")
        self._waited = True

        returncode = await self._process.wait()
        if self._relays:
            await asyncio.gather(*self._relays)

        logger.debug(f"Command exited pid={self._process.pid} returncode={returncode}")
        if returncode != 0:
            raise CommandExitError(self.argv, returncode)

    def kill(self) -> None:
        """Send SIGKILL (TerminateProcess on Windows) to the process.

        Raises:
            RuntimeError: If the command was not started
            ProcessLookupError: If the process has already finished
        """
        if self._process is None:
            raise RuntimeError(f"command not started: {self.argv[0]}")
        if self._process.returncode is not None:
            raise ProcessLookupError(f"process already finished: pid={self._process.pid}")
        self._process.kill()

    @staticmethod
    async def _relay(stream: asyncio.StreamReader, sink: OutputSink) -> None:
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            sink.write(chunk)
