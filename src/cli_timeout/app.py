"""cli-timeout 命令行入口。

用法:
    cli-timeout [-s SIGNAL] [-k DURATION] [--foreground] [--preserve-status]
                [-v] DURATION COMMAND [ARG]...

DURATION 为浮点数，可带后缀 s (秒，默认)、m (分)、h (时)、d (天)。
超时后发送 SIGNAL（默认 TERM），若设置了 -k 则在宽限时间后发送 KILL。

退出码:
    124: 超时（且未设置 --preserve-status）
    125: cli-timeout 自身出错
    126: 命令无法执行
    127: 命令不存在
    137: 被强制 kill
    其他: 命令自身的退出码
"""

from __future__ import annotations

import argparse
import logging
import math
import signal
import sys

from .config import Config, get_config
from .runtime import TimeoutSpec, run_simple
from .runtime.exit_status import EXIT_UNKNOWN_ERR
from .signals import parse_signal

__all__ = ["build_parser", "parse_duration", "run_cli", "main"]

logger = logging.getLogger(__name__)

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str) -> float:
    """解析时间间隔，返回秒数。

    Raises:
        ValueError: 格式无效或为负数
    """
    text = value.strip()
    multiplier = 1
    if text and text[-1] in _DURATION_UNITS:
        multiplier = _DURATION_UNITS[text[-1]]
        text = text[:-1]

    try:
        seconds = float(text)
    except ValueError:
        raise ValueError(f"invalid time interval: {value!r}") from None

    if seconds < 0 or not math.isfinite(seconds):
        raise ValueError(f"invalid time interval: {value!r}")
    return seconds * multiplier


def _duration_arg(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def _signal_arg(value: str) -> signal.Signals:
    try:
        return parse_signal(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


class _ArgumentParser(argparse.ArgumentParser):
    """用法错误时以 125 退出（与 GNU timeout 一致）。"""

    def error(self, message: str):
        self.print_usage(sys.stderr)
        self.exit(EXIT_UNKNOWN_ERR, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    """构建命令行解析器。"""
    parser = _ArgumentParser(
        prog="cli-timeout",
        description="Start COMMAND, and kill it if still running after DURATION.",
    )
    parser.add_argument(
        "-s", "--signal",
        type=_signal_arg,
        default=None,
        help="signal to send on timeout (name or number, default: TERM)",
    )
    parser.add_argument(
        "-k", "--kill-after",
        type=_duration_arg,
        default=None,
        metavar="DURATION",
        help="also send KILL if COMMAND is still running this long after the signal",
    )
    parser.add_argument(
        "--foreground",
        action="store_true",
        help="send the signals to COMMAND's whole process group",
    )
    parser.add_argument(
        "--preserve-status",
        action="store_true",
        help="exit with the same status as COMMAND, even when it times out",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="report signal deliveries on stderr",
    )
    parser.add_argument("duration", type=_duration_arg, metavar="DURATION")
    parser.add_argument("command", metavar="COMMAND")
    parser.add_argument("args", nargs=argparse.REMAINDER, metavar="ARG")
    return parser


def _configure_logging(config: Config, verbose: bool) -> None:
    """配置日志输出。"""
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        handler: logging.Handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr，只报告警告以上，避免干扰命令自身的输出
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.DEBUG if verbose else logging.WARNING

    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    log_handlers.append(handler)

    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    logging.getLogger("cli_timeout").setLevel(log_level)


def run_cli(argv: list[str] | None = None) -> int:
    """解析参数并运行命令，返回退出码。"""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = get_config()

    _configure_logging(config, verbose=args.verbose or config.verbose)

    if args.duration <= 0:
        parser.error("DURATION must be positive")

    kill_after = args.kill_after if args.kill_after is not None else config.kill_after

    spec = TimeoutSpec(
        argv=[args.command, *args.args],
        duration=args.duration,
        kill_after=kill_after,
        signal=args.signal,
        foreground=args.foreground,
    )
    logger.debug(f"Running {spec}")

    try:
        return run_simple(spec, preserve_status=args.preserve_status)
    except KeyboardInterrupt:
        logger.info("Interrupted, child process killed")
        return 130  # 128 + SIGINT(2)


def main() -> None:
    """主入口点。"""
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
