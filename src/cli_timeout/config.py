"""cli-timeout 环境变量配置管理。

环境变量:
    CLI_TIMEOUT_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (DEBUG 日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    CLI_TIMEOUT_VERBOSE: 详细模式
        - true/1/yes = 开启 (信号发送等事件以 DEBUG 级别输出到 stderr)
        - false/0/no = 关闭 (默认)

    CLI_TIMEOUT_KILL_AFTER: 默认 kill-after 宽限时间（秒）
        - 默认 0，表示超时后不强制 kill
        - 命令行 -k/--kill-after 优先
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_kill_after(value: str | None) -> float:
    """解析 kill-after 环境变量，无效值返回 0。"""
    if not value:
        return 0.0
    try:
        return max(0.0, float(value))
    except ValueError:
        return 0.0


@dataclass
class Config:
    """cli-timeout 配置。

    Attributes:
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        verbose: 详细模式
        kill_after: 默认 kill-after 宽限时间（秒），0 表示禁用
    """

    log_debug: bool = False
    log_file: str | None = None
    verbose: bool = False
    kill_after: float = 0.0


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "cli-timeout"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"timeout_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("CLI_TIMEOUT_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        log_debug=log_debug,
        log_file=log_file,
        verbose=_parse_bool(os.environ.get("CLI_TIMEOUT_VERBOSE"), default=False),
        kill_after=_parse_kill_after(os.environ.get("CLI_TIMEOUT_KILL_AFTER")),
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
