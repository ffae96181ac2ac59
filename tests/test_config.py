"""Config 模块测试。

测试 CLI_TIMEOUT_* 环境变量解析和配置管理。
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import pytest

from cli_timeout.config import Config, get_config, load_config, reload_config

_ENV_KEYS = ("CLI_TIMEOUT_LOG_DEBUG", "CLI_TIMEOUT_VERBOSE", "CLI_TIMEOUT_KILL_AFTER")


def _clean_env() -> dict[str, str]:
    return {k: v for k, v in os.environ.items() if k not in _ENV_KEYS}


class TestDefaults:
    """测试默认值。"""

    def test_unset_env(self):
        """未设置任何环境变量。"""
        with mock.patch.dict(os.environ, _clean_env(), clear=True):
            config = load_config()
            assert config == Config()


class TestParseBool:
    """测试布尔值解析。"""

    @pytest.mark.parametrize("value", ["true", "True", "TRUE", "1", "yes", "Yes", "on"])
    def test_truthy_values(self, value: str):
        """真值。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_VERBOSE": value}, clear=False):
            config = load_config()
            assert config.verbose is True

    @pytest.mark.parametrize("value", ["false", "False", "0", "no", "off", ""])
    def test_falsy_values(self, value: str):
        """假值。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_VERBOSE": value}, clear=False):
            config = load_config()
            assert config.verbose is False


class TestKillAfter:
    """测试 kill-after 解析。"""

    def test_valid_value(self):
        """有效值。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_KILL_AFTER": "2.5"}, clear=False):
            assert load_config().kill_after == 2.5

    def test_negative_clamped_to_zero(self):
        """负数限制为 0。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_KILL_AFTER": "-3"}, clear=False):
            assert load_config().kill_after == 0.0

    def test_invalid_value(self):
        """无效值返回 0。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_KILL_AFTER": "soon"}, clear=False):
            assert load_config().kill_after == 0.0


class TestLogDebug:
    """测试日志调试模式。"""

    def test_log_file_generated(self):
        """开启时生成日志文件路径。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_LOG_DEBUG": "1"}, clear=False):
            config = load_config()
            assert config.log_debug is True
            assert config.log_file is not None
            log_file = Path(config.log_file)
            assert log_file.is_absolute()
            assert log_file.parent.name == "cli-timeout"
            assert log_file.name.startswith("timeout_debug_")

    def test_no_log_file_by_default(self):
        """关闭时没有日志文件。"""
        with mock.patch.dict(os.environ, _clean_env(), clear=True):
            config = load_config()
            assert config.log_debug is False
            assert config.log_file is None


class TestGlobalConfig:
    """测试全局配置实例。"""

    def test_get_config_is_cached(self):
        """get_config 返回同一实例。"""
        assert get_config() is get_config()

    def test_reload_config(self):
        """reload_config 重新读取环境变量。"""
        with mock.patch.dict(os.environ, {"CLI_TIMEOUT_KILL_AFTER": "7"}, clear=False):
            config = reload_config()
            assert config.kill_after == 7.0
            assert get_config() is config

        reload_config()
