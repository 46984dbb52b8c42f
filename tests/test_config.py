"""Config 模块测试。

测试 CMDWATCH_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from unittest import mock

from cmdwatch.config import DEFAULT_TIMEOUT, Config, get_config, load_config, reload_config


class TestParseTimeout:
    """测试超时时间解析。"""

    def test_default_timeout(self, clean_config):
        """未设置时使用两分钟。"""
        assert clean_config.timeout == DEFAULT_TIMEOUT == 120.0

    def test_custom_timeout(self, clean_config):
        with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": "30"}):
            assert load_config().timeout == 30.0

    def test_fractional_timeout(self, clean_config):
        with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": "0.5"}):
            assert load_config().timeout == 0.5

    def test_invalid_timeout_falls_back(self, clean_config):
        """无效值使用默认值。"""
        with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": "soon"}):
            assert load_config().timeout == DEFAULT_TIMEOUT

    def test_non_positive_timeout_falls_back(self, clean_config):
        """非正数使用默认值。"""
        for value in ("0", "-5"):
            with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": value}):
                assert load_config().timeout == DEFAULT_TIMEOUT


class TestLogDebug:
    """测试日志调试模式。"""

    def test_disabled_by_default(self, clean_config):
        assert clean_config.log_debug is False
        assert clean_config.log_file is None

    def test_enabled_generates_log_file(self, clean_config):
        for value in ("true", "1", "YES", "on"):
            with mock.patch.dict(os.environ, {"CMDWATCH_LOG_DEBUG": value}):
                config = load_config()
                assert config.log_debug is True
                assert config.log_file is not None
                assert "cmdwatch_debug_" in config.log_file


class TestDoubleTapWindow:
    """测试双击窗口时间解析。"""

    def test_default(self, clean_config):
        assert clean_config.sigint_double_tap_window == 1.0

    def test_clamped(self, clean_config):
        with mock.patch.dict(os.environ, {"CMDWATCH_SIGINT_DOUBLE_TAP_WINDOW": "100"}):
            assert load_config().sigint_double_tap_window == 10.0
        with mock.patch.dict(os.environ, {"CMDWATCH_SIGINT_DOUBLE_TAP_WINDOW": "0.01"}):
            assert load_config().sigint_double_tap_window == 0.1

    def test_invalid(self, clean_config):
        with mock.patch.dict(os.environ, {"CMDWATCH_SIGINT_DOUBLE_TAP_WINDOW": "abc"}):
            assert load_config().sigint_double_tap_window == 1.0


class TestGlobalConfig:
    """测试全局配置实例。"""

    def test_get_config_is_cached(self, clean_config):
        assert get_config() is get_config()

    def test_reload_config(self, clean_config):
        first = get_config()
        with mock.patch.dict(os.environ, {"CMDWATCH_TIMEOUT": "5"}):
            second = reload_config()
        assert second is not first
        assert get_config().timeout == 5.0

    def test_repr(self):
        text = repr(Config(timeout=2.5))
        assert "timeout=2.5s" in text
        assert "log_debug=False" in text
