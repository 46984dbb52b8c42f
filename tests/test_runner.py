"""Runner entry-point tests."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest import mock

import pytest

from cmdwatch.cancel import CancelToken, OperationCancelled
from cmdwatch.config import reload_config
from cmdwatch.runner import LocalRepo, run_from_cwd, run_from_repo_dir
from cmdwatch.runtime import Command, CommandExitError, NoProgressError


class TestLocalRepo:
    """Test command construction inside a checkout."""

    def test_cmd_from_dir(self, tmp_path: Path):
        cmd = LocalRepo(tmp_path).cmd_from_dir("git", "status", "--short")

        assert isinstance(cmd, Command)
        assert cmd.argv == ["git", "status", "--short"]
        assert cmd.cwd == tmp_path
        assert cmd.env is not None
        assert cmd.env["PWD"] == str(tmp_path)
        assert cmd.started is False


class TestRunFromCwd:
    """Test run_from_cwd."""

    @pytest.mark.asyncio
    async def test_returns_stdout(self, clean_config, fake_cli: list[str]):
        result = await run_from_cwd(None, fake_cli[0], fake_cli[1], "--write", "ok", "--stderr-text", "noise")

        assert result.ok
        assert result.output == b"ok"

    @pytest.mark.asyncio
    async def test_failure_returns_stderr(self, clean_config, fake_cli: list[str]):
        result = await run_from_cwd(
            None, fake_cli[0], fake_cli[1], "--write", "ok", "--stderr-text", "fatal: bad", "--exit-code", "128",
        )

        assert isinstance(result.error, CommandExitError)
        assert result.error.returncode == 128
        assert result.output == b"fatal: bad"

    @pytest.mark.asyncio
    async def test_cancelled_token(self, clean_config):
        token = CancelToken()
        token.cancel()

        result = await run_from_cwd(token, sys.executable, "-c", "pass")

        assert isinstance(result.error, OperationCancelled)

    @pytest.mark.asyncio
    async def test_uses_configured_timeout(self, clean_config, fake_cli: list[str]):
        with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": "0.2"}):
            reload_config()
            result = await run_from_cwd(None, fake_cli[0], fake_cli[1], "--sleep", "30")

        assert isinstance(result.error, NoProgressError)
        assert result.error.timeout == 0.2


class TestRunFromRepoDir:
    """Test run_from_repo_dir."""

    @pytest.mark.asyncio
    async def test_runs_in_repo_directory(self, clean_config, fake_cli: list[str], tmp_path: Path):
        repo = LocalRepo(tmp_path)

        result = await run_from_repo_dir(None, repo, fake_cli[0], fake_cli[1], "--print-cwd")

        assert result.ok
        cwd, pwd = result.output.decode().splitlines()
        assert Path(cwd).resolve() == tmp_path.resolve()
        assert pwd == str(tmp_path)

    @pytest.mark.asyncio
    async def test_uses_repo_factory(self, clean_config):
        repo = mock.MagicMock()
        repo.cmd_from_dir.return_value = Command([sys.executable, "-c", "print('from repo')"])

        result = await run_from_repo_dir(None, repo, "tool", "arg")

        repo.cmd_from_dir.assert_called_once_with("tool", "arg")
        assert result.output.strip() == b"from repo"
