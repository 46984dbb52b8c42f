"""Convenience entry points for running monitored commands.

Both helpers wrap the command in a MonitoredCommand using the configured
no-progress timeout (two minutes unless CMDWATCH_TIMEOUT says otherwise)
and return its CommandOutput.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from .cancel import CancelToken
from .config import get_config
from .runtime import Command, CommandOutput, MonitoredCommand

__all__ = [
    "LocalRepo",
    "Repo",
    "run_from_cwd",
    "run_from_repo_dir",
]


class Repo(Protocol):
    """A repository that can build commands rooted in its working directory."""

    def cmd_from_dir(self, cmd: str, *args: str) -> Command: ...


@dataclass(frozen=True)
class LocalRepo:
    """A repository checked out at a local path.

    Attributes:
        local_path: Working directory of the checkout
    """

    local_path: Path

    def cmd_from_dir(self, cmd: str, *args: str) -> Command:
        """Build a command that runs inside the checkout.

        The environment is inherited with PWD pointing at the checkout, so
        tools that trust PWD over getcwd() agree with the real directory.
        """
        env = dict(os.environ)
        env["PWD"] = str(self.local_path)
        return Command([cmd, *args], cwd=self.local_path, env=env)


async def run_from_cwd(cancel: CancelToken | None, cmd: str, *args: str) -> CommandOutput:
    """Run a command in the current working directory.

    Args:
        cancel: Optional token; firing it kills the process
        cmd: Executable name or path
        *args: Command arguments

    Returns:
        CommandOutput (stdout on success, stderr and the error on failure)
    """
    monitored = MonitoredCommand(Command([cmd, *args]), get_config().timeout)
    return await monitored.combined_output(cancel)


async def run_from_repo_dir(
    cancel: CancelToken | None,
    repo: Repo,
    cmd: str,
    *args: str,
) -> CommandOutput:
    """Run a command rooted in a repository's working directory.

    Args:
        cancel: Optional token; firing it kills the process
        repo: Repository building the command
        cmd: Executable name or path
        *args: Command arguments

    Returns:
        CommandOutput (stdout on success, stderr and the error on failure)
    """
    monitored = MonitoredCommand(repo.cmd_from_dir(cmd, *args), get_config().timeout)
    return await monitored.combined_output(cancel)
