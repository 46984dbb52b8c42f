"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest import mock

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

# 测试用假 CLI
FAKE_CLI_PATH = Path(__file__).parent / "fixtures" / "fake_cli.py"


@pytest.fixture
def fake_cli() -> list[str]:
    """运行假 CLI 的命令前缀。"""
    return [sys.executable, str(FAKE_CLI_PATH)]


@pytest.fixture
def clean_config():
    """清除 CMDWATCH_* 环境变量并重新加载配置。"""
    from cmdwatch.config import reload_config

    env = {k: v for k, v in os.environ.items() if not k.startswith("CMDWATCH_")}
    with mock.patch.dict(os.environ, env, clear=True):
        yield reload_config()
    reload_config()


@pytest.fixture(autouse=True)
def _restore_cmdwatch_logger_level():
    """恢复 cmdwatch logger 级别，避免 app 测试中的日志配置泄漏到其他测试。"""
    import logging

    cmdwatch_logger = logging.getLogger("cmdwatch")
    level = cmdwatch_logger.level
    yield
    cmdwatch_logger.setLevel(level)
