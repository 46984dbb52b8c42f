"""Classified error tests."""

from __future__ import annotations

import pickle
import signal

import pytest

from cmdwatch.runtime.errors import CommandError, CommandExitError, KillCommandError, NoProgressError


class TestErrorMessages:
    """Test messages and attributes."""

    def test_no_progress(self):
        err = NoProgressError(120.0)
        assert err.timeout == 120.0
        assert str(err) == "command killed after 120s of no activity"
        assert isinstance(err, CommandError)

    def test_no_progress_fractional(self):
        assert str(NoProgressError(0.05)) == "command killed after 0.05s of no activity"

    def test_kill_command(self):
        cause = PermissionError("operation not permitted")
        err = KillCommandError(cause)
        assert err.err is cause
        assert str(err) == "error killing command: operation not permitted"

    def test_exit_status(self):
        err = CommandExitError(["git", "fetch"], 1)
        assert err.argv == ["git", "fetch"]
        assert err.returncode == 1
        assert err.exit_code == 1
        assert str(err) == "exit status 1"

    def test_exit_by_signal(self):
        err = CommandExitError(["sleep", "10"], -signal.SIGTERM)
        assert str(err) == "signal: SIGTERM"
        assert err.exit_code == 128 + signal.SIGTERM

    def test_exit_by_unknown_signal(self):
        assert str(CommandExitError(["x"], -200)) == "signal: 200"


class TestErrorPickling:
    """Errors survive pickling with their attributes."""

    @pytest.mark.parametrize(
        "err",
        [
            NoProgressError(2.0),
            KillCommandError(ProcessLookupError("gone")),
            CommandExitError(["git"], 3),
        ],
    )
    def test_roundtrip(self, err: CommandError):
        restored = pickle.loads(pickle.dumps(err))
        assert type(restored) is type(err)
        assert str(restored) == str(err)
