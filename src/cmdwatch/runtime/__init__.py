"""Runtime module for monitored subprocess execution.

This module provides supervised process execution with a no-progress
timeout, cooperative cancellation and classified errors.
"""

from __future__ import annotations

from .activity import ActivityBuffer
from .command import Command
from .errors import CommandError, CommandExitError, KillCommandError, NoProgressError
from .monitor import CommandOutput, MonitoredCommand, tick_interval

__all__ = [
    "ActivityBuffer",
    "Command",
    "CommandError",
    "CommandExitError",
    "CommandOutput",
    "KillCommandError",
    "MonitoredCommand",
    "NoProgressError",
    "tick_interval",
]
